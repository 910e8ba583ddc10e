"""Fakes and settings builders shared by the test modules."""
from __future__ import annotations

from typing import Any

from gatekeeper.security import RequestContext, ShieldSettings, TimeUnit

START = 1_700_000_000
IP = "203.0.113.7"


class FakeClock:
    """Settable clock; the engine only ever reads whole seconds."""

    def __init__(self, start: int = START) -> None:
        self.now = start

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: int) -> int:
        self.now += seconds
        return self.now


class FakeClassifier:
    """RobotClassifier with fixed answers that counts how often it is asked."""

    def __init__(self, denied: bool = False, allowed: bool = False, engine: str | None = None) -> None:
        self.denied = denied
        self.allowed = allowed
        self.engine = engine
        self.allowed_calls = 0

    def is_denied_agent(self, ctx: RequestContext) -> bool:
        return self.denied

    def is_allowed_agent(self, ctx: RequestContext) -> bool:
        self.allowed_calls += 1
        return self.allowed

    def is_google(self, ctx: RequestContext) -> bool:
        return self.engine == "google"

    def is_bing(self, ctx: RequestContext) -> bool:
        return self.engine == "bing"

    def is_yahoo(self, ctx: RequestContext) -> bool:
        return self.engine == "yahoo"


def make_context(ip: str = IP, **kwargs: Any) -> RequestContext:
    kwargs.setdefault("referer", "https://example.com/")
    kwargs.setdefault("session", "session-1")
    return RequestContext(ip=ip, **kwargs)


def frequency_only(**quotas: int) -> ShieldSettings:
    """Settings with referer, session and cookie checks off and generous quotas."""
    units = {TimeUnit.SECOND: 1000, TimeUnit.MINUTE: 1000, TimeUnit.HOUR: 1000, TimeUnit.DAY: 1000}
    for key, value in quotas.items():
        units[TimeUnit(key)] = value
    return ShieldSettings(
        enable_referer_check=False,
        enable_session_check=False,
        enable_cookie_check=False,
        enable_frequency_check=True,
        time_period_units=units,
    )


def flags_only(**limits: int) -> ShieldSettings:
    """Settings with every check off; tests switch on the one they exercise."""
    flags = {"cookie": 5, "session": 5, "referer": 10}
    flags.update(limits)
    return ShieldSettings(
        enable_frequency_check=False,
        enable_referer_check=False,
        enable_session_check=False,
        enable_cookie_check=False,
        limit_flags=flags,
    )
