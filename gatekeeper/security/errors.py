"""Exceptions raised by the decision engine and its collaborators."""

from typing import Optional

__all__ = (
    "ShieldError",
    "ConfigurationError",
    "CollaboratorError",
    "StoreError",
)


class ShieldError(Exception):
    """Base exception for all gatekeeper errors."""


class ConfigurationError(ShieldError):
    """Raised when the engine is used before it is fully configured."""


class CollaboratorError(ShieldError, TypeError):
    """Raised when an object passed as a collaborator lacks the required methods."""

    def __init__(self, role: str, obj: object) -> None:
        self.role = role
        self.obj = obj
        super().__init__(f"{type(obj).__name__} does not implement the {role} interface")


class StoreError(ShieldError):
    """Raised by a store when a read or write could not be completed."""

    def __init__(self, message: str, *, ip: Optional[str] = None, kind: Optional[str] = None) -> None:
        self.ip = ip
        self.kind = kind
        super().__init__(message)
