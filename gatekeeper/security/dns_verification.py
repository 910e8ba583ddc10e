"""
Forward-confirmed reverse DNS (FCrDNS) for search engine crawlers.

An address passes when its PTR hostname ends with one of the engine's
suffixes and that hostname resolves back to the same address. This is the
check Google, Bing and Yahoo document for verifying their crawlers:
https://developers.google.com/search/docs/crawling-indexing/verifying-googlebot

Lookups block, so outcomes are cached per (address, engine).
"""

import logging
import socket
import threading
import time
from dataclasses import dataclass
from enum import Enum
from typing import Callable, Optional

logger = logging.getLogger(__name__)


class VerificationStatus(Enum):
    VERIFIED = "verified"
    FAILED_PATTERN = "failed_pattern"
    FAILED_FORWARD = "failed_forward"
    FAILED_NO_PTR = "failed_no_ptr"
    FAILED_DNS_ERROR = "failed_dns_error"
    CACHED = "cached"


@dataclass
class VerificationResult:
    is_verified: bool
    status: VerificationStatus
    hostname: Optional[str] = None
    details: Optional[str] = None
    cached: bool = False

    def __str__(self) -> str:
        if self.is_verified:
            return f"VERIFIED via {self.hostname}"
        return f"FAILED: {self.status.value} - {self.details}"

    def as_cached(self) -> "VerificationResult":
        return VerificationResult(
            is_verified=self.is_verified,
            status=VerificationStatus.CACHED,
            hostname=self.hostname,
            details=f"Cached: {self.status.value}",
            cached=True,
        )


class _ResultCache:
    """Thread-safe map of key to (result, expiry)."""

    def __init__(self, clock: Callable[[], float]):
        self._clock = clock
        self._entries: dict[str, tuple[VerificationResult, float]] = {}
        self._lock = threading.Lock()

    def get(self, key: str) -> Optional[VerificationResult]:
        with self._lock:
            entry = self._entries.get(key)
            if entry is None:
                return None
            result, expires_at = entry
            if expires_at < self._clock():
                del self._entries[key]
                return None
            return result

    def put(self, key: str, result: VerificationResult, ttl: float) -> None:
        with self._lock:
            self._entries[key] = (result, self._clock() + ttl)

    def clear(self) -> None:
        with self._lock:
            self._entries.clear()

    def stats(self) -> dict:
        now = self._clock()
        with self._lock:
            total = len(self._entries)
            live = sum(1 for _, expires_at in self._entries.values() if expires_at > now)
        return {"total_entries": total, "valid_entries": live, "expired_entries": total - live}


class DNSVerifier:
    """
    FCrDNS checker with a result cache.

    The resolver functions default to the ``socket`` module and follow its
    return shapes, so tests can pass in fakes.
    """

    # Seconds to remember an outcome. Real crawlers keep their hostnames;
    # lookup errors are usually transient.
    TTL_VERIFIED = 86400
    TTL_FAILED = 3600
    TTL_ERROR = 300

    def __init__(
        self,
        reverse: Callable[[str], tuple] = socket.gethostbyaddr,
        forward: Callable[[str], tuple] = socket.gethostbyname_ex,
        clock: Callable[[], float] = time.time,
    ):
        self._reverse = reverse
        self._forward = forward
        self._cache = _ResultCache(clock)

    def verify_fcrdns(
        self,
        ip_address: str,
        expected_patterns: list[str],
        bot_name: str = "unknown",
    ) -> VerificationResult:
        """
        Check that ``ip_address`` belongs to ``bot_name``.

        Args:
            ip_address: Address the request came from
            expected_patterns: Hostname suffixes the engine publishes
            bot_name: Engine name, used for the cache key and logs
        """
        key = f"{ip_address}:{bot_name}"
        hit = self._cache.get(key)
        if hit is not None:
            logger.debug(f"FCrDNS cache hit: {key}")
            return hit.as_cached()

        try:
            result = self._check(ip_address, [p.lower() for p in expected_patterns])
        except OSError as e:
            logger.error(f"DNS error verifying {bot_name} ({ip_address}): {e}")
            result = VerificationResult(False, VerificationStatus.FAILED_DNS_ERROR, details=f"DNS error: {e}")

        if result.is_verified:
            logger.info(f"FCrDNS verified {bot_name}: {ip_address} -> {result.hostname}")
        elif result.status != VerificationStatus.FAILED_DNS_ERROR:
            logger.warning(f"FCrDNS failed for {bot_name} ({ip_address}): {result.details}")

        self._cache.put(key, result, self._ttl(result))
        return result

    def _check(self, ip_address: str, suffixes: list[str]) -> VerificationResult:
        hostname = self.reverse_lookup(ip_address)
        if hostname is None:
            return VerificationResult(
                False, VerificationStatus.FAILED_NO_PTR, details=f"No PTR record for {ip_address}"
            )

        hostname = hostname.lower()
        if not hostname.endswith(tuple(suffixes)):
            return VerificationResult(
                False,
                VerificationStatus.FAILED_PATTERN,
                hostname=hostname,
                details=f"{hostname} does not end with any of {suffixes}",
            )

        addresses = self.forward_lookup(hostname)
        if ip_address not in addresses:
            return VerificationResult(
                False,
                VerificationStatus.FAILED_FORWARD,
                hostname=hostname,
                details=f"{hostname} resolves to {addresses}, not {ip_address}",
            )

        return VerificationResult(True, VerificationStatus.VERIFIED, hostname=hostname)

    def _ttl(self, result: VerificationResult) -> float:
        if result.is_verified:
            return self.TTL_VERIFIED
        if result.status in (VerificationStatus.FAILED_NO_PTR, VerificationStatus.FAILED_DNS_ERROR):
            return self.TTL_ERROR
        return self.TTL_FAILED

    def reverse_lookup(self, ip_address: str) -> Optional[str]:
        """PTR hostname for an address, or None when there is none."""
        try:
            hostname, _aliases, _addresses = self._reverse(ip_address)
        except socket.herror:
            return None
        return hostname

    def forward_lookup(self, hostname: str) -> list[str]:
        try:
            _name, _aliases, addresses = self._forward(hostname)
        except socket.gaierror:
            return []
        return list(addresses)

    def clear_cache(self) -> None:
        self._cache.clear()

    def cache_stats(self) -> dict:
        return self._cache.stats()
