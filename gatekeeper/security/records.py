"""
Records read and written by the decision engine.

CounterRecord (kind ``log``) holds the rolling counters for an identity that
has not been decided yet. Verdict (kind ``rule``) holds a persisted decision.
Both serialize to flat dicts so any store can persist them.
"""

from dataclasses import dataclass, field
from typing import Any, Optional

from .codes import Action, Reason, TimeUnit
from .errors import StoreError

FLAG_FIELDS = ("flag_multi_session", "flag_empty_referer", "flag_js_cookie")


def _unit_dict(value: int = 0) -> dict[TimeUnit, int]:
    return {unit: value for unit in TimeUnit}


@dataclass
class CounterRecord:
    """Rolling pageview buckets and anomaly flags for one identity."""
    ip: str
    session: str = ""
    hostname: str = ""
    last_time: int = 0
    pageviews: dict[TimeUnit, int] = field(default_factory=_unit_dict)
    first_time: dict[TimeUnit, int] = field(default_factory=_unit_dict)
    first_time_flag: int = 0
    flag_multi_session: int = 0
    flag_empty_referer: int = 0
    flag_js_cookie: int = 0
    pageviews_cookie: int = 0

    @classmethod
    def first_sight(cls, ip: str, now: int, session: str = "", hostname: str = "") -> "CounterRecord":
        """A fresh record: every bucket opened at ``now`` with zero counts."""
        return cls(
            ip=ip,
            session=session,
            hostname=hostname,
            last_time=now,
            first_time=_unit_dict(now),
            first_time_flag=now,
        )

    def reset_flags(self, now: int, time_reset_flags: int) -> bool:
        """Clear the anomaly flags once ``time_reset_flags`` seconds have passed.

        Returns True when the flags were reset. Pageview buckets and the
        cookie pageview counter are left alone.
        """
        if now - self.first_time_flag < time_reset_flags:
            return False
        for name in FLAG_FIELDS:
            setattr(self, name, 0)
        self.first_time_flag = now
        return True

    def reset_bucket(self, unit: TimeUnit, now: int) -> None:
        self.pageviews[unit] = 0
        self.first_time[unit] = now

    def to_dict(self) -> dict[str, Any]:
        data: dict[str, Any] = {
            "ip": self.ip,
            "session": self.session,
            "hostname": self.hostname,
            "last_time": self.last_time,
            "first_time_flag": self.first_time_flag,
            "flag_multi_session": self.flag_multi_session,
            "flag_empty_referer": self.flag_empty_referer,
            "flag_js_cookie": self.flag_js_cookie,
            "pageviews_cookie": self.pageviews_cookie,
        }
        for unit in TimeUnit:
            data[f"pageviews_{unit.value}"] = self.pageviews[unit]
            data[f"first_time_{unit.value}"] = self.first_time[unit]
        return data

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> Optional["CounterRecord"]:
        """Parse a stored log record. An empty dict means the identity was never seen."""
        if not data or not data.get("ip"):
            return None
        try:
            return cls(
                ip=str(data["ip"]),
                session=str(data.get("session") or ""),
                hostname=str(data.get("hostname") or ""),
                last_time=int(data.get("last_time", 0)),
                pageviews={u: int(data.get(f"pageviews_{u.value}", 0)) for u in TimeUnit},
                first_time={u: int(data.get(f"first_time_{u.value}", 0)) for u in TimeUnit},
                first_time_flag=int(data.get("first_time_flag", 0)),
                flag_multi_session=int(data.get("flag_multi_session", 0)),
                flag_empty_referer=int(data.get("flag_empty_referer", 0)),
                flag_js_cookie=int(data.get("flag_js_cookie", 0)),
                pageviews_cookie=int(data.get("pageviews_cookie", 0)),
            )
        except (TypeError, ValueError) as e:
            raise StoreError(f"Malformed log record: {e}", ip=data.get("ip"), kind="log") from e


@dataclass(frozen=True)
class Verdict:
    """A persisted allow or deny decision.

    Stored under the column names ``log_ip``, ``ip_resolve``, ``time``,
    ``type`` and ``reason``.
    """
    ip: str
    type: Action
    reason: int
    time: int
    hostname: str = ""

    @property
    def is_allow(self) -> bool:
        return self.type == Action.ALLOW

    @property
    def is_deny(self) -> bool:
        return self.type == Action.DENY

    def to_dict(self) -> dict[str, Any]:
        return {
            "log_ip": self.ip,
            "ip_resolve": self.hostname,
            "time": self.time,
            "type": int(self.type),
            "reason": int(self.reason),
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> Optional["Verdict"]:
        if not data:
            return None
        try:
            return cls(
                ip=str(data["log_ip"]),
                hostname=str(data.get("ip_resolve") or ""),
                time=int(data["time"]),
                type=Action(int(data["type"])),
                reason=int(data["reason"]),
            )
        except (KeyError, TypeError, ValueError) as e:
            raise StoreError(f"Malformed rule record: {e}", ip=data.get("log_ip"), kind="rule") from e


@dataclass(frozen=True)
class Decision:
    """The outcome of one pipeline run."""
    action: Action
    reason: Optional[Reason] = None
    clear_cookie: bool = False
    error: Optional[StoreError] = None

    @property
    def allowed(self) -> bool:
        return self.action != Action.DENY

    @classmethod
    def allow(cls, reason: Optional[Reason] = None, *, clear_cookie: bool = False) -> "Decision":
        return cls(Action.ALLOW, reason, clear_cookie=clear_cookie)

    @classmethod
    def deny(cls, reason: Optional[Reason] = None) -> "Decision":
        return cls(Action.DENY, reason)
