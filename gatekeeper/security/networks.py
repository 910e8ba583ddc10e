"""
Named sets of IP networks.

Used in two places: the rule list keeps its allow and deny lists here, and
the robot classifier keeps the published ranges of AI crawlers here.

Supports both IPv4 and IPv6 CIDR notation. A bare address is stored as a
single-host network (/32 or /128).
"""

import ipaddress
import logging
import threading
from dataclasses import dataclass, field
from typing import Iterable, Optional

logger = logging.getLogger(__name__)

Network = ipaddress.IPv4Network | ipaddress.IPv6Network


@dataclass
class NetworkMatch:
    """Result of looking an address up in a named list."""
    is_match: bool
    name: str
    matched_range: Optional[str] = None
    details: Optional[str] = None

    def __str__(self) -> str:
        if self.is_match:
            return f"MATCH: {self.name} ({self.matched_range})"
        return f"NO MATCH: {self.details}"


@dataclass
class NetworkRegistry:
    """Thread-safe mapping of list name to networks."""

    _ranges: dict[str, list[Network]] = field(default_factory=dict)
    _lock: threading.Lock = field(default_factory=threading.Lock, repr=False)

    def _parse_ranges(self, cidr_strings: Iterable[str]) -> list[Network]:
        """Parse CIDR strings into network objects, skipping invalid ones."""
        networks = []
        for cidr in cidr_strings:
            try:
                networks.append(ipaddress.ip_network(cidr.strip(), strict=False))
            except ValueError as e:
                logger.warning(f"Invalid CIDR {cidr}: {e}")
        return networks

    def add_ranges(self, name: str, cidr_strings: Iterable[str]) -> int:
        """
        Add networks to a named list.

        Args:
            name: List name (e.g., "deny", "openai")
            cidr_strings: CIDR strings or bare addresses

        Returns:
            Number of valid networks added
        """
        networks = self._parse_ranges(cidr_strings)
        with self._lock:
            existing = self._ranges.setdefault(name, [])
            added = [n for n in networks if n not in existing]
            existing.extend(added)

        logger.debug(f"Added {len(added)} networks to {name}")
        return len(added)

    def remove_range(self, name: str, cidr: str) -> bool:
        """Remove one network from a named list. Returns True if it was present."""
        networks = self._parse_ranges([cidr])
        if not networks:
            return False
        with self._lock:
            existing = self._ranges.get(name, [])
            if networks[0] not in existing:
                return False
            existing.remove(networks[0])
        return True

    def clear_ranges(self, name: Optional[str] = None) -> None:
        """Clear one list, or every list when ``name`` is None."""
        with self._lock:
            if name:
                self._ranges.pop(name, None)
            else:
                self._ranges.clear()

    def match(self, ip_address: str, name: str) -> NetworkMatch:
        """Check whether an address falls inside any network of a named list."""
        with self._lock:
            networks = list(self._ranges.get(name, ()))

        if not networks:
            return NetworkMatch(
                is_match=False,
                name=name,
                details=f"No networks registered for {name}"
            )

        try:
            ip = ipaddress.ip_address(ip_address)
        except ValueError:
            return NetworkMatch(
                is_match=False,
                name=name,
                details=f"Invalid IP address: {ip_address}"
            )

        for network in networks:
            if ip in network:
                return NetworkMatch(
                    is_match=True,
                    name=name,
                    matched_range=str(network),
                    details=f"IP {ip_address} in {network}"
                )

        return NetworkMatch(
            is_match=False,
            name=name,
            details=f"IP {ip_address} not in any {name} network"
        )

    def has_ranges(self, name: str) -> bool:
        with self._lock:
            return bool(self._ranges.get(name))

    def get_range_count(self, name: str) -> int:
        with self._lock:
            return len(self._ranges.get(name, []))

    def stats(self) -> dict:
        """Get statistics about loaded networks."""
        with self._lock:
            return {
                "total_ranges": sum(len(r) for r in self._ranges.values()),
                "ranges_by_name": {name: len(ranges) for name, ranges in self._ranges.items()},
            }
