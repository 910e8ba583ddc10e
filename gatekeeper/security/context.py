"""Per-request values handed to the decision engine."""

from dataclasses import dataclass, field
from types import MappingProxyType
from typing import Mapping


@dataclass(frozen=True)
class RequestContext:
    """Everything the engine knows about the request under evaluation.

    The engine never stores a context; each call receives its own.
    """
    ip: str
    hostname: str = ""
    referer: str = ""
    session: str = ""
    user_agent: str = ""
    cookies: Mapping[str, str] = field(default_factory=lambda: MappingProxyType({}))

    def cookie(self, name: str) -> str | None:
        return self.cookies.get(name)
