from __future__ import annotations

from datetime import datetime, timedelta, timezone

import pytest

from ..core.store import RoomStore
from ..models import TimerSettings


class FakeClock:
    """Manually advanced wall clock."""

    def __init__(self, start: datetime | None = None) -> None:
        self.now = start or datetime(2024, 3, 1, 9, 0, tzinfo=timezone.utc)

    def __call__(self) -> datetime:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += timedelta(seconds=seconds)


@pytest.fixture()
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture()
def store(clock: FakeClock) -> RoomStore:
    return RoomStore(clock=clock)


@pytest.fixture()
def settings() -> TimerSettings:
    return TimerSettings()
