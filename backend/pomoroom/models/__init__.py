"""Domain models for the Pomoroom room service."""
from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import StrEnum
from typing import List

MAX_PARTICIPANTS = 20
INACTIVITY_TIMEOUT_SECONDS = 2 * 60 * 60
ROOM_CODE_LENGTH = 6
# No 0/O or 1/I.
ROOM_CODE_ALPHABET = "ABCDEFGHJKLMNPQRSTUVWXYZ23456789"


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


class TimerPhase(StrEnum):
    WORK = "work"
    SHORT_BREAK = "shortBreak"
    LONG_BREAK = "longBreak"


class TimerStatus(StrEnum):
    IDLE = "idle"
    RUNNING = "running"
    PAUSED = "paused"


@dataclass(frozen=True)
class TimerSettings:
    """Durations in minutes; fixed for the lifetime of a room."""

    work_duration: int = 25
    short_break_duration: int = 5
    long_break_duration: int = 15
    long_break_interval: int = 4

    def __post_init__(self) -> None:
        for name in ("work_duration", "short_break_duration", "long_break_duration"):
            if getattr(self, name) <= 0:
                raise ValueError(f"{name} must be a positive number of minutes")
        if self.long_break_interval < 2:
            raise ValueError("long_break_interval must be at least 2")


@dataclass
class RoomTimerState:
    """Authoritative timer bookkeeping.

    ``started_at`` is set only while the timer is running; ``elapsed`` holds the
    seconds accumulated before the current run began.
    """

    phase: TimerPhase
    status: TimerStatus
    duration: int
    started_at: datetime | None = None
    elapsed: int = 0
    pomodoro_count: int = 0


@dataclass
class Participant:
    id: str
    name: str
    joined_at: datetime = field(default_factory=utcnow)


@dataclass
class Room:
    id: str
    name: str
    host_id: str
    host_name: str
    settings: TimerSettings
    timer_state: RoomTimerState
    participants: List[Participant] = field(default_factory=list)
    created_at: datetime = field(default_factory=utcnow)
    last_activity_at: datetime = field(default_factory=utcnow)

    def find_participant(self, participant_id: str) -> Participant | None:
        for participant in self.participants:
            if participant.id == participant_id:
                return participant
        return None

    def is_host(self, participant_id: str) -> bool:
        return self.host_id == participant_id
