"""
Explicit allow and deny lists.

Checked before anomaly detection. An address on the deny list is refused
even if it is also on the allow list. When neither list matches, the stored
rule for the address (if any) decides.
"""

import logging
from enum import IntEnum
from typing import Callable, Iterable, Optional

from .codes import Action
from .interfaces import RuleLookup, RuleStatus
from .networks import NetworkRegistry
from .records import Verdict

logger = logging.getLogger(__name__)

ALLOW_LIST = "allow"
DENY_LIST = "deny"


class RuleCode(IntEnum):
    """Where a lookup answer came from."""
    NO_RULE = 0
    DENY_IP_LIST = 1
    ALLOW_IP_LIST = 2
    DENY_IP_RULE = 3
    ALLOW_IP_RULE = 4


class IpRuleList:
    """In-memory allow/deny lists backed by stored rules."""

    def __init__(
        self,
        allowed: Iterable[str] = (),
        denied: Iterable[str] = (),
        registry: Optional[NetworkRegistry] = None,
    ):
        self._networks = registry or NetworkRegistry()
        self._networks.add_ranges(ALLOW_LIST, allowed)
        self._networks.add_ranges(DENY_LIST, denied)

    def lookup(self, ip: str, fallback: Callable[[], Optional[Verdict]]) -> RuleLookup:
        """
        Find an explicit verdict for an address.

        Args:
            ip: The address to look up
            fallback: Reads the stored rule; only called when neither list matches

        Returns:
            RuleLookup with status allow, deny or none
        """
        if self._networks.match(ip, DENY_LIST).is_match:
            return RuleLookup(RuleStatus.DENY, RuleCode.DENY_IP_LIST)

        if self._networks.match(ip, ALLOW_LIST).is_match:
            return RuleLookup(RuleStatus.ALLOW, RuleCode.ALLOW_IP_LIST)

        verdict = fallback()
        if verdict is None:
            return RuleLookup(RuleStatus.NONE, RuleCode.NO_RULE)
        if verdict.type == Action.DENY:
            return RuleLookup(RuleStatus.DENY, RuleCode.DENY_IP_RULE)
        if verdict.type == Action.ALLOW:
            return RuleLookup(RuleStatus.ALLOW, RuleCode.ALLOW_IP_RULE)
        return RuleLookup(RuleStatus.NONE, RuleCode.NO_RULE)

    def add_to_allow_list(self, ip: str) -> None:
        self._networks.add_ranges(ALLOW_LIST, [ip])

    def add_to_deny_list(self, ip: str) -> None:
        if self._networks.add_ranges(DENY_LIST, [ip]):
            logger.info(f"Added {ip} to deny list")

    def remove_from_list(self, ip: str, kind: str) -> None:
        """Remove an address from the ``allow`` or ``deny`` list."""
        if kind not in (ALLOW_LIST, DENY_LIST):
            raise ValueError(f"Unknown list: {kind}")
        if self._networks.remove_range(kind, ip):
            logger.info(f"Removed {ip} from {kind} list")

    def is_denied(self, ip: str) -> bool:
        return self._networks.match(ip, DENY_LIST).is_match

    def is_allowed(self, ip: str) -> bool:
        return self._networks.match(ip, ALLOW_LIST).is_match
