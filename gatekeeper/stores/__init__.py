"""Store implementations for the decision engine."""

from gatekeeper.config import CHANNEL, STORE_BACKEND
from gatekeeper.security.interfaces import Store
from gatekeeper.stores.kv import KVStore
from gatekeeper.stores.memory import MemoryStore
from gatekeeper.stores.sql import SqlStore

__all__ = ["KVStore", "MemoryStore", "SqlStore", "build_store"]


def build_store(backend: str = STORE_BACKEND, channel: str = CHANNEL) -> Store:
    """Create the store named by ``GATEKEEPER_STORE``."""
    if backend == "memory":
        return MemoryStore(channel=channel)
    if backend == "sql":
        return SqlStore(channel=channel)
    if backend == "kv":
        return KVStore(channel=channel)
    raise ValueError(f"Unknown store backend: {backend}")
