# tests/conftest.py
from __future__ import annotations

from collections.abc import Callable
from typing import Any

import pytest

from gatekeeper.security import Shield
from gatekeeper.stores import MemoryStore
from tests.helpers import FakeClock


@pytest.fixture()
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture()
def store() -> MemoryStore:
    return MemoryStore()


@pytest.fixture()
def make_shield(store: MemoryStore, clock: FakeClock) -> Callable[..., Shield]:
    def factory(**kwargs: Any) -> Shield:
        kwargs.setdefault("store", store)
        kwargs.setdefault("clock", clock)
        return Shield(**kwargs)

    return factory
