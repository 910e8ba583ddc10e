"""
Robot classifier.

Sorts a request into a tier from its user agent, then checks any crawler
claim against DNS (search engines) or published networks (AI crawlers), so a
scraper cannot earn an allow rule by calling itself Googlebot.

Only the two verified tiers count as allowed agents. BLOCKED always counts
as a denied agent, and UNVERIFIED_CLAIM does too when ``deny_spoofed`` is set.
"""

import logging
from dataclasses import dataclass
from enum import Enum
from typing import Iterable, Optional

from .bot_patterns import (
    crawler_networks,
    get_fcrdns_patterns,
    identify_ai_crawler,
    identify_search_bot,
    is_allowed_bot,
    is_blocked,
)
from .context import RequestContext
from .dns_verification import DNSVerifier, VerificationResult
from .networks import NetworkMatch, NetworkRegistry

logger = logging.getLogger(__name__)


class BotTier(Enum):
    VERIFIED_SEARCH = "verified_search"  # FCrDNS passed
    VERIFIED_AI = "verified_ai"  # address in published range
    ALLOWED = "allowed"  # known bot with no way to verify
    UNVERIFIED_CLAIM = "unverified_claim"  # verification failed
    BLOCKED = "blocked"
    ANONYMOUS = "anonymous"


@dataclass
class BotVerificationResult:
    tier: BotTier
    claimed_bot: Optional[str] = None
    verified_as: Optional[str] = None
    verification_method: Optional[str] = None
    details: Optional[str] = None
    dns_result: Optional[VerificationResult] = None
    ip_result: Optional[NetworkMatch] = None

    @property
    def is_verified(self) -> bool:
        return self.tier in (BotTier.VERIFIED_SEARCH, BotTier.VERIFIED_AI)

    @property
    def is_suspicious(self) -> bool:
        return self.tier == BotTier.UNVERIFIED_CLAIM


class RobotVerifier:
    """
    RobotClassifier backed by FCrDNS and crawler IP ranges.

    Args:
        dns_verifier: Shared DNS verifier; owns the lookup cache
        crawler_ranges: Registry of AI crawler networks; defaults to the published ranges
        denied_agents: Extra user-agent substrings to deny
        deny_spoofed: Deny requests whose crawler claim fails verification
    """

    def __init__(
        self,
        dns_verifier: Optional[DNSVerifier] = None,
        crawler_ranges: Optional[NetworkRegistry] = None,
        denied_agents: Iterable[str] = (),
        deny_spoofed: bool = False,
    ):
        self._dns = dns_verifier or DNSVerifier()
        if crawler_ranges is None:
            crawler_ranges = NetworkRegistry()
            for name, cidrs in crawler_networks().items():
                crawler_ranges.add_ranges(name, cidrs)
        self._ranges = crawler_ranges
        self._denied_agents = tuple(agent.lower() for agent in denied_agents)
        self.deny_spoofed = deny_spoofed

    def is_denied_agent(self, ctx: RequestContext) -> bool:
        result = self.verify(ctx.user_agent, ctx.ip)
        return result.tier == BotTier.BLOCKED or (self.deny_spoofed and result.is_suspicious)

    def is_allowed_agent(self, ctx: RequestContext) -> bool:
        return self.verify(ctx.user_agent, ctx.ip).is_verified

    def is_google(self, ctx: RequestContext) -> bool:
        return self._is_engine(ctx, "google")

    def is_bing(self, ctx: RequestContext) -> bool:
        return self._is_engine(ctx, "bing")

    def is_yahoo(self, ctx: RequestContext) -> bool:
        return self._is_engine(ctx, "yahoo")

    def _is_engine(self, ctx: RequestContext, engine: str) -> bool:
        result = self.verify(ctx.user_agent, ctx.ip)
        return result.tier == BotTier.VERIFIED_SEARCH and result.verified_as == engine

    def resolve_hostname(self, ip: str) -> str:
        """PTR hostname for logs and rule records; empty when unknown."""
        try:
            return self._dns.reverse_lookup(ip) or ""
        except OSError as e:
            logger.debug(f"Reverse lookup failed for {ip}: {e}")
            return ""

    def verify(self, user_agent: str, client_ip: str) -> BotVerificationResult:
        """Classify a request. DNS outcomes are cached, so repeat calls are cheap."""
        ua_lower = user_agent.lower()
        if is_blocked(user_agent) or any(agent in ua_lower for agent in self._denied_agents):
            return BotVerificationResult(BotTier.BLOCKED, details="Blocked agent")

        engine = identify_search_bot(user_agent)
        if engine:
            return self._check_search_engine(engine, client_ip)

        crawler = identify_ai_crawler(user_agent)
        if crawler:
            return self._check_ai_crawler(crawler, client_ip)

        if is_allowed_bot(user_agent):
            return BotVerificationResult(BotTier.ALLOWED, verification_method="ua_match")
        return BotVerificationResult(BotTier.ANONYMOUS)

    def _check_search_engine(self, engine: str, client_ip: str) -> BotVerificationResult:
        suffixes = get_fcrdns_patterns(engine)
        if not suffixes:
            return BotVerificationResult(BotTier.ALLOWED, claimed_bot=engine, verification_method="ua_match")

        dns_result = self._dns.verify_fcrdns(client_ip, suffixes, engine)
        if dns_result.is_verified:
            tier, verified_as = BotTier.VERIFIED_SEARCH, engine
        else:
            tier, verified_as = BotTier.UNVERIFIED_CLAIM, None
            logger.warning(f"Unverified {engine} claim from {client_ip}: {dns_result.details}")
        return BotVerificationResult(
            tier,
            claimed_bot=engine,
            verified_as=verified_as,
            verification_method="fcrdns",
            details=str(dns_result),
            dns_result=dns_result,
        )

    def _check_ai_crawler(self, crawler: str, client_ip: str) -> BotVerificationResult:
        if not self._ranges.has_ranges(crawler):
            return BotVerificationResult(BotTier.ALLOWED, claimed_bot=crawler, verification_method="ua_match")

        match = self._ranges.match(client_ip, crawler)
        if match.is_match:
            tier, verified_as = BotTier.VERIFIED_AI, crawler
        else:
            tier, verified_as = BotTier.UNVERIFIED_CLAIM, None
            logger.warning(f"Unverified {crawler} claim from {client_ip}: {match.details}")
        return BotVerificationResult(
            tier,
            claimed_bot=crawler,
            verified_as=verified_as,
            verification_method="ip_range",
            details=str(match),
            ip_result=match,
        )
