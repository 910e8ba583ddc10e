"""
Decision engine settings.

Defaults follow the classic anti-scraping thresholds: two pageviews a second,
ten a minute, thirty an hour, sixty a day, with anomaly flags forgiven after
an hour. ``ShieldSettings.from_env()`` reads overrides from ``GATEKEEPER_*``
environment variables.
"""

import os
from dataclasses import dataclass, field
from enum import Enum

from .codes import TimeUnit


def _env_bool(name: str, default: bool) -> bool:
    value = os.getenv(name)
    if value is None:
        return default
    return value.strip().lower() in ("1", "true", "yes", "on")


def _env_int(name: str, default: int) -> int:
    value = os.getenv(name)
    return int(value) if value else default


class StoreErrorPolicy(str, Enum):
    """What a request gets when the store cannot be reached."""
    ALLOW = "allow"  # fail open
    DENY = "deny"  # fail closed


def _default_time_period_units() -> dict[TimeUnit, int]:
    return {
        TimeUnit.SECOND: 2,
        TimeUnit.MINUTE: 10,
        TimeUnit.HOUR: 30,
        TimeUnit.DAY: 60,
    }


def _default_limit_flags() -> dict[str, int]:
    return {"cookie": 5, "session": 5, "referer": 10}


@dataclass
class ShieldSettings:
    """Feature toggles and thresholds for the decision engine."""

    # Run anomaly detection at all. When off, only the robot classifier and
    # the rule list can deny.
    enable_filtering: bool = True

    # Most crawlers do not run JavaScript, so a cookie set by a script never
    # comes back from them. Off by default since it needs the page to set it.
    enable_cookie_check: bool = False

    # A client that gets a new session on every request does not keep cookies.
    enable_session_check: bool = True

    # Pageview quotas per second, minute, hour and day.
    enable_frequency_check: bool = True

    # A visitor browsing internal links sends a referer; a scraper often does not.
    enable_referer_check: bool = True

    time_period_units: dict[TimeUnit, int] = field(default_factory=_default_time_period_units)
    time_reset_flags: int = 3600
    interval_check_referer: int = 5
    interval_check_session: int = 30
    limit_flags: dict[str, int] = field(default_factory=_default_limit_flags)
    cookie_name: str = "ssjd"
    # What the page script writes into cookie_name.
    cookie_value: str = "1"
    cookie_domain: str = ""

    # Create store tables on first use. Turn off once the schema exists.
    create_schema: bool = True
    on_store_error: StoreErrorPolicy = StoreErrorPolicy.ALLOW

    @classmethod
    def from_env(cls) -> "ShieldSettings":
        """Build settings from ``GATEKEEPER_*`` environment variables."""
        defaults = cls()
        return cls(
            enable_filtering=_env_bool("GATEKEEPER_FILTERING", defaults.enable_filtering),
            enable_cookie_check=_env_bool("GATEKEEPER_COOKIE_CHECK", defaults.enable_cookie_check),
            enable_session_check=_env_bool("GATEKEEPER_SESSION_CHECK", defaults.enable_session_check),
            enable_frequency_check=_env_bool("GATEKEEPER_FREQUENCY_CHECK", defaults.enable_frequency_check),
            enable_referer_check=_env_bool("GATEKEEPER_REFERER_CHECK", defaults.enable_referer_check),
            time_period_units={
                TimeUnit.SECOND: _env_int("GATEKEEPER_QUOTA_S", defaults.time_period_units[TimeUnit.SECOND]),
                TimeUnit.MINUTE: _env_int("GATEKEEPER_QUOTA_M", defaults.time_period_units[TimeUnit.MINUTE]),
                TimeUnit.HOUR: _env_int("GATEKEEPER_QUOTA_H", defaults.time_period_units[TimeUnit.HOUR]),
                TimeUnit.DAY: _env_int("GATEKEEPER_QUOTA_D", defaults.time_period_units[TimeUnit.DAY]),
            },
            time_reset_flags=_env_int("GATEKEEPER_TIME_RESET_FLAGS", defaults.time_reset_flags),
            interval_check_referer=_env_int("GATEKEEPER_INTERVAL_REFERER", defaults.interval_check_referer),
            interval_check_session=_env_int("GATEKEEPER_INTERVAL_SESSION", defaults.interval_check_session),
            limit_flags={
                "cookie": _env_int("GATEKEEPER_LIMIT_COOKIE", defaults.limit_flags["cookie"]),
                "session": _env_int("GATEKEEPER_LIMIT_SESSION", defaults.limit_flags["session"]),
                "referer": _env_int("GATEKEEPER_LIMIT_REFERER", defaults.limit_flags["referer"]),
            },
            cookie_name=os.getenv("GATEKEEPER_COOKIE_NAME", defaults.cookie_name),
            cookie_value=os.getenv("GATEKEEPER_COOKIE_VALUE", defaults.cookie_value),
            cookie_domain=os.getenv("GATEKEEPER_COOKIE_DOMAIN", defaults.cookie_domain),
            create_schema=_env_bool("GATEKEEPER_CREATE_SCHEMA", defaults.create_schema),
            on_store_error=StoreErrorPolicy(
                os.getenv("GATEKEEPER_ON_STORE_ERROR", defaults.on_store_error.value)
            ),
        )
