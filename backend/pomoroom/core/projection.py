"""Read-only views of rooms as they leave the store."""
from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime
from typing import Tuple

from ..models import Room, TimerPhase, TimerSettings, TimerStatus
from .timer import resolve_if_expired, time_remaining


@dataclass(frozen=True)
class TimerView:
    phase: TimerPhase
    status: TimerStatus
    time_remaining: int
    pomodoro_count: int


@dataclass(frozen=True)
class ParticipantView:
    id: str
    name: str
    joined_at: datetime


@dataclass(frozen=True)
class RoomView:
    id: str
    name: str
    host_id: str
    host_name: str
    created_at: datetime
    last_activity_at: datetime
    settings: TimerSettings
    timer_state: TimerView
    participants: Tuple[ParticipantView, ...]

    @property
    def participant_count(self) -> int:
        return len(self.participants)


def project_room(room: Room, now: datetime) -> RoomView:
    """Snapshot ``room`` with the remaining time computed for ``now``.

    Pending phase transitions are applied first so the view never shows an
    expired running phase. Internal bookkeeping (duration, elapsed, start
    instant) is not part of the view.
    """
    state = room.timer_state
    resolve_if_expired(state, room.settings, now)
    return RoomView(
        id=room.id,
        name=room.name,
        host_id=room.host_id,
        host_name=room.host_name,
        created_at=room.created_at,
        last_activity_at=room.last_activity_at,
        settings=room.settings,
        timer_state=TimerView(
            phase=state.phase,
            status=state.status,
            time_remaining=time_remaining(state, now),
            pomodoro_count=state.pomodoro_count,
        ),
        participants=tuple(
            ParticipantView(id=p.id, name=p.name, joined_at=p.joined_at)
            for p in room.participants
        ),
    )
