"""
Collaborator interfaces for the decision engine.

One protocol per role. The engine checks objects against these at
construction time so a wrong object fails early, not mid-request.
"""

from dataclasses import dataclass
from enum import Enum
from typing import Any, Callable, Optional, Protocol, runtime_checkable

from .context import RequestContext
from .records import Verdict


@runtime_checkable
class Store(Protocol):
    """Record persistence partitioned into ``log`` and ``rule`` kinds."""

    def set_channel(self, channel: str) -> None: ...

    def init(self, create_schema: bool) -> None: ...

    def get(self, ip: str, kind: str) -> dict[str, Any]: ...

    def save(self, ip: str, data: dict[str, Any], kind: str) -> None: ...

    def delete(self, ip: str, kind: str) -> None: ...


@runtime_checkable
class RobotClassifier(Protocol):
    """Tells bad robots, trusted robots and verified search engines apart."""

    def is_denied_agent(self, ctx: RequestContext) -> bool: ...

    def is_allowed_agent(self, ctx: RequestContext) -> bool: ...

    def is_google(self, ctx: RequestContext) -> bool: ...

    def is_bing(self, ctx: RequestContext) -> bool: ...

    def is_yahoo(self, ctx: RequestContext) -> bool: ...


class RuleStatus(str, Enum):
    ALLOW = "allow"
    DENY = "deny"
    NONE = "none"


@dataclass(frozen=True)
class RuleLookup:
    """Answer from a rule list. ``code`` says which list or rule matched."""
    status: RuleStatus
    code: int = 0

    @property
    def is_listed(self) -> bool:
        return self.status in (RuleStatus.ALLOW, RuleStatus.DENY)


@runtime_checkable
class RuleList(Protocol):
    """Explicit allow/deny verdicts, backed by the store on a cache miss."""

    def lookup(self, ip: str, fallback: Callable[[], Optional[Verdict]]) -> RuleLookup: ...

    def add_to_deny_list(self, ip: str) -> None: ...

    def remove_from_list(self, ip: str, kind: str) -> None: ...


class NullRobotClassifier:
    """Classifier used when robot detection is disabled.

    Never denies and never promotes, so every request goes through the rule
    lookup and anomaly detection.
    """

    def is_denied_agent(self, ctx: RequestContext) -> bool:
        return False

    def is_allowed_agent(self, ctx: RequestContext) -> bool:
        return False

    def is_google(self, ctx: RequestContext) -> bool:
        return False

    def is_bing(self, ctx: RequestContext) -> bool:
        return False

    def is_yahoo(self, ctx: RequestContext) -> bool:
        return False
