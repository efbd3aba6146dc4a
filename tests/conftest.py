from __future__ import annotations

import sys
from collections.abc import Iterator
from dataclasses import dataclass
from pathlib import Path

import pytest

ROOT = Path(__file__).resolve().parents[1]
SRC = ROOT / "src"
if str(SRC) not in sys.path:
    sys.path.insert(0, str(SRC))

from otherside.config import Settings  # noqa: E402
from otherside.service import EnigmaService  # noqa: E402
from otherside.storage import KeyValueStore, ProgressStore  # noqa: E402
from otherside.timers import Scheduler  # noqa: E402


@dataclass
class FakeClock:
    """Manually advanced monotonic clock."""

    now: float = 0.0

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture
def scheduler(clock: FakeClock) -> Scheduler:
    return Scheduler(clock=clock)


@pytest.fixture
def store() -> Iterator[ProgressStore]:
    progress = ProgressStore(KeyValueStore(":memory:"))
    yield progress
    progress.close()


@pytest.fixture
def make_service(store: ProgressStore, scheduler: Scheduler):
    """Build a service on the shared in-memory store, as a fresh page load would."""

    def factory(settings: Settings | None = None) -> EnigmaService:
        return EnigmaService(store, settings=settings, scheduler=scheduler)

    return factory
