"""In-process store. Good for tests and single-worker deployments."""

import copy
import threading
from collections import defaultdict
from typing import Any

from gatekeeper.security.codes import RecordKind


class MemoryStore:
    """Dict-backed store, namespaced by channel."""

    def __init__(self, channel: str = "gatekeeper"):
        self.channel = channel
        self._data: dict[tuple[str, str, str], dict[str, Any]] = {}
        self._lock = threading.Lock()
        self.init_calls: dict[str, int] = defaultdict(int)

    def set_channel(self, channel: str) -> None:
        self.channel = channel

    def init(self, create_schema: bool) -> None:
        # Nothing to create; counted so callers can see it is invoked per request.
        self.init_calls[self.channel] += 1

    def _key(self, ip: str, kind: str) -> tuple[str, str, str]:
        return (self.channel, RecordKind(kind).value, ip)

    def get(self, ip: str, kind: str) -> dict[str, Any]:
        with self._lock:
            return copy.deepcopy(self._data.get(self._key(ip, kind), {}))

    def save(self, ip: str, data: dict[str, Any], kind: str) -> None:
        with self._lock:
            self._data[self._key(ip, kind)] = copy.deepcopy(data)

    def delete(self, ip: str, kind: str) -> None:
        with self._lock:
            self._data.pop(self._key(ip, kind), None)

    def __len__(self) -> int:
        with self._lock:
            return len(self._data)
