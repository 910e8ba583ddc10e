"""
Action and reason codes.

The integer values are persisted in rule records and must stay stable.
"""

from enum import Enum, IntEnum


class Action(IntEnum):
    """What was decided for an identity."""
    DENY = 0
    ALLOW = 1
    UNBAN = 9


class Reason(IntEnum):
    """Why an identity was allowed or denied."""
    # Allowed crawlers
    IS_SEARCH_ENGINE = 100
    IS_GOOGLE = 101
    IS_BING = 102
    IS_YAHOO = 103

    # Anomalies
    TOO_MANY_SESSIONS = 1
    TOO_MANY_ACCESSES = 2
    EMPTY_JS_COOKIE = 3
    EMPTY_REFERER = 4

    # Frequency quotas
    REACHED_LIMIT_DAY = 11
    REACHED_LIMIT_HOUR = 12
    REACHED_LIMIT_MINUTE = 13
    REACHED_LIMIT_SECOND = 14

    MANUAL_BAN = 99


class TimeUnit(str, Enum):
    """Pageview bucket granularity. Values are the record field suffixes."""
    SECOND = "s"
    MINUTE = "m"
    HOUR = "h"
    DAY = "d"

    @property
    def period(self) -> int:
        """Bucket length in seconds."""
        return _PERIODS[self]

    @property
    def limit_reason(self) -> Reason:
        """Reason code used when this bucket's quota is reached."""
        return _LIMIT_REASONS[self]


_PERIODS = {
    TimeUnit.SECOND: 1,
    TimeUnit.MINUTE: 60,
    TimeUnit.HOUR: 3600,
    TimeUnit.DAY: 86400,
}

_LIMIT_REASONS = {
    TimeUnit.SECOND: Reason.REACHED_LIMIT_SECOND,
    TimeUnit.MINUTE: Reason.REACHED_LIMIT_MINUTE,
    TimeUnit.HOUR: Reason.REACHED_LIMIT_HOUR,
    TimeUnit.DAY: Reason.REACHED_LIMIT_DAY,
}


class RecordKind(str, Enum):
    """Store partitions."""
    LOG = "log"
    RULE = "rule"
