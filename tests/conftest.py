from __future__ import annotations

from typing import List

import pytest

from domain.models import EventToEmit
from infra.clock import ManualClock
from infra.memory_store import MemoryStore

# 2023-11-14 22:13:20 UTC
T0 = 1_700_000_000.0


class CollectingSink:
    def __init__(self) -> None:
        self.published: List[tuple[str, float, EventToEmit]] = []

    def publish(self, session_id: str, t_epoch: float, event: EventToEmit) -> None:
        self.published.append((session_id, t_epoch, event))

    def codes(self) -> List[str]:
        return [e.code.value for _, _, e in self.published]


@pytest.fixture
def clock() -> ManualClock:
    return ManualClock(T0)


@pytest.fixture
def store() -> MemoryStore:
    return MemoryStore()


@pytest.fixture
def sink() -> CollectingSink:
    return CollectingSink()
