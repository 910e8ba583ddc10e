"""
Known robots, keyed by what their user agent claims.

A user agent is only a claim. Search engines are confirmed with FCrDNS
against ``dns_suffixes``; AI crawlers are confirmed against their published
``networks``. Either way the claim alone never earns an allow rule.
"""

import re
from dataclasses import dataclass
from typing import Iterable, Optional


@dataclass(frozen=True)
class Crawler:
    name: str
    agents: tuple[str, ...]
    dns_suffixes: tuple[str, ...] = ()
    networks: tuple[str, ...] = ()

    def claimed_by(self, ua_lower: str) -> bool:
        return any(agent in ua_lower for agent in self.agents)


SEARCH_ENGINES = (
    Crawler(
        "google",
        ("googlebot", "google-inspectiontool", "storebot-google", "apis-google", "googleother"),
        dns_suffixes=(".googlebot.com", ".google.com"),
    ),
    Crawler("bing", ("bingbot", "bingpreview", "msnbot"), dns_suffixes=(".search.msn.com",)),
    Crawler("yahoo", ("slurp",), dns_suffixes=(".crawl.yahoo.net", ".yahoo.com")),
    Crawler("apple", ("applebot",), dns_suffixes=(".applebot.apple.com",)),
    Crawler(
        "yandex",
        ("yandexbot", "yandexmobilebot", "yandeximages"),
        dns_suffixes=(".yandex.ru", ".yandex.net", ".yandex.com"),
    ),
    Crawler("duckduckgo", ("duckduckbot",), dns_suffixes=(".duckduckgo.com",)),
    Crawler("baidu", ("baiduspider",), dns_suffixes=(".baidu.com", ".baidu.jp")),
)

# Ranges are copied by hand from https://openai.com/gptbot.json and the
# Anthropic crawler docs. Crawlers without published ranges stay unverifiable.
AI_CRAWLERS = (
    Crawler(
        "openai",
        ("gptbot", "chatgpt-user", "oai-searchbot"),
        networks=(
            "20.15.240.64/28", "20.15.240.80/28", "20.15.240.96/28",
            "20.15.240.176/28", "20.15.241.0/28", "20.15.242.128/28",
            "20.15.242.144/28", "20.15.242.192/28", "40.83.2.64/28",
            "52.230.152.0/24", "52.233.106.0/24",
        ),
    ),
    Crawler("anthropic", ("claudebot", "claude-web"), networks=("160.79.104.0/23",)),
    Crawler("perplexity", ("perplexitybot",)),
    Crawler("commoncrawl", ("ccbot",)),
)

# Link previews, monitors and archivers. Neither denied nor promoted.
UNVERIFIABLE_AGENTS = frozenset({
    "facebookexternalhit", "twitterbot", "linkedinbot", "discordbot",
    "slackbot", "telegrambot", "uptimerobot", "pingdom",
    "chrome-lighthouse", "feedly", "archive.org_bot", "ia_archiver",
})

# Scanners and attack tools, denied outright.
BLOCKED_AGENTS = re.compile(
    r"nikto|sqlmap|masscan|nmap|wp-?scan|havij|acunetix|nessus|openvas"
    r"|dirbuster|gobuster|nuclei|zgrab|wfuzz|hydra",
    re.IGNORECASE,
)

_BY_NAME = {crawler.name: crawler for crawler in SEARCH_ENGINES + AI_CRAWLERS}


def _claimed(user_agent: str, crawlers: Iterable[Crawler]) -> Optional[str]:
    ua_lower = user_agent.lower()
    for crawler in crawlers:
        if crawler.claimed_by(ua_lower):
            return crawler.name
    return None


def identify_search_bot(user_agent: str) -> Optional[str]:
    """Name of the search engine the user agent claims to be (google, bing, ...)."""
    return _claimed(user_agent, SEARCH_ENGINES)


def identify_ai_crawler(user_agent: str) -> Optional[str]:
    return _claimed(user_agent, AI_CRAWLERS)


def is_allowed_bot(user_agent: str) -> bool:
    ua_lower = user_agent.lower()
    return any(agent in ua_lower for agent in UNVERIFIABLE_AGENTS)


def is_blocked(user_agent: str) -> bool:
    return BLOCKED_AGENTS.search(user_agent) is not None


def get_fcrdns_patterns(name: str) -> list[str]:
    crawler = _BY_NAME.get(name)
    return list(crawler.dns_suffixes) if crawler else []


def crawler_networks() -> dict[str, tuple[str, ...]]:
    """Published networks per AI crawler, for crawlers that publish any."""
    return {crawler.name: crawler.networks for crawler in AI_CRAWLERS if crawler.networks}
