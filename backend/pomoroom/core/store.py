"""In-memory room registry with per-room serialisation.

Every operation on a room runs inside that room's ``asyncio.Lock`` and reads
the clock exactly once, so the ``status``/``started_at``/``elapsed`` triple is
never observed half updated. Expired phases are resolved lazily inside the
same critical section, which makes concurrent polls of an expired room apply
the transition exactly once.
"""
from __future__ import annotations

import asyncio
import logging
import secrets
from collections.abc import AsyncIterator, Callable
from contextlib import asynccontextmanager
from dataclasses import dataclass, replace
from datetime import datetime, timedelta
from typing import Any

from ..exceptions import RoomCodeExhaustedError, RoomFullError, RoomNotFoundError
from ..models import (
    INACTIVITY_TIMEOUT_SECONDS,
    MAX_PARTICIPANTS,
    ROOM_CODE_ALPHABET,
    ROOM_CODE_LENGTH,
    Participant,
    Room,
    TimerPhase,
    TimerSettings,
    TimerStatus,
    utcnow,
)
from .projection import RoomView, project_room
from .timer import (
    advance_phase,
    inherited_timer_state,
    initial_timer_state,
    live_elapsed,
    resolve_if_expired,
)

log = logging.getLogger(__name__)

RoomGuard = Callable[[Room], None]
"""Called with the locked room before a mutation; raise to veto it."""


@dataclass(frozen=True)
class InheritedTimer:
    """Timer state handed over from a solo session when a room is created."""

    phase: TimerPhase
    status: TimerStatus
    time_remaining: int
    pomodoro_count: int
    settings: TimerSettings | None = None


def normalise_room_code(room_id: str) -> str:
    return room_id.strip().upper()


class RoomStore:
    """Authoritative owner of every live room.

    Construct one per process (the application lifespan does this) or one per
    test. ``clock`` must return timezone-aware datetimes from a single source.
    """

    def __init__(
        self,
        *,
        clock: Callable[[], datetime] = utcnow,
        default_settings: TimerSettings | None = None,
        max_participants: int = MAX_PARTICIPANTS,
        inactivity_timeout: timedelta = timedelta(seconds=INACTIVITY_TIMEOUT_SECONDS),
        code_length: int = ROOM_CODE_LENGTH,
        code_attempts: int = 32,
        code_factory: Callable[[], str] | None = None,
    ) -> None:
        self._clock = clock
        self._default_settings = default_settings or TimerSettings()
        self._max_participants = max_participants
        self._inactivity_timeout = inactivity_timeout
        self._code_length = code_length
        self._code_attempts = code_attempts
        self._code_factory = code_factory or self._random_code
        self._rooms: dict[str, Room] = {}
        self._locks: dict[str, asyncio.Lock] = {}
        self._registry_lock = asyncio.Lock()

    # Registry helpers ----------------------------------------------------

    def __len__(self) -> int:
        return len(self._rooms)

    def __contains__(self, room_id: object) -> bool:
        return isinstance(room_id, str) and normalise_room_code(room_id) in self._rooms

    @property
    def default_settings(self) -> TimerSettings:
        return self._default_settings

    def _random_code(self) -> str:
        return "".join(secrets.choice(ROOM_CODE_ALPHABET) for _ in range(self._code_length))

    def _generate_code(self) -> str:
        for attempt in range(1, self._code_attempts + 1):
            code = self._code_factory()
            if code not in self._rooms:
                return code
            log.warning("room code collision on %s (attempt %d)", code, attempt)
        raise RoomCodeExhaustedError(self._code_attempts)

    def _discard(self, room_id: str) -> None:
        self._rooms.pop(room_id, None)
        self._locks.pop(room_id, None)

    @asynccontextmanager
    async def _locked(self, room_id: str) -> AsyncIterator[Room]:
        code = normalise_room_code(room_id)
        lock = self._locks.get(code)
        if lock is None:
            raise RoomNotFoundError(code)
        async with lock:
            # The room may have been deleted while we waited for the lock.
            room = self._rooms.get(code)
            if room is None:
                raise RoomNotFoundError(code)
            yield room

    def _resolve(self, room: Room, now: datetime) -> None:
        if resolve_if_expired(room.timer_state, room.settings, now):
            room.last_activity_at = now

    # Lifecycle -----------------------------------------------------------

    def merge_settings(self, overrides: dict[str, Any] | None = None) -> TimerSettings:
        """Apply non-null ``overrides`` on top of the store defaults."""
        if not overrides:
            return self._default_settings
        values = {key: value for key, value in overrides.items() if value is not None}
        return replace(self._default_settings, **values)

    async def create(
        self,
        *,
        host_id: str,
        host_name: str,
        name: str,
        settings: dict[str, Any] | None = None,
        inherited: InheritedTimer | None = None,
    ) -> RoomView:
        await self.sweep()
        now = self._clock()

        overrides = settings
        if overrides is None and inherited is not None and inherited.settings is not None:
            overrides = {
                "work_duration": inherited.settings.work_duration,
                "short_break_duration": inherited.settings.short_break_duration,
                "long_break_duration": inherited.settings.long_break_duration,
                "long_break_interval": inherited.settings.long_break_interval,
            }
        merged = self.merge_settings(overrides)

        if inherited is not None:
            timer_state = inherited_timer_state(
                merged,
                phase=inherited.phase,
                status=inherited.status,
                time_remaining_seconds=inherited.time_remaining,
                pomodoro_count=inherited.pomodoro_count,
                now=now,
            )
        else:
            timer_state = initial_timer_state(merged)

        async with self._registry_lock:
            code = self._generate_code()
            room = Room(
                id=code,
                name=name,
                host_id=host_id,
                host_name=host_name,
                settings=merged,
                timer_state=timer_state,
                participants=[Participant(id=host_id, name=host_name, joined_at=now)],
                created_at=now,
                last_activity_at=now,
            )
            self._rooms[code] = room
            self._locks[code] = asyncio.Lock()
            view = project_room(room, now)

        log.info("room %s created by %s (%s)", code, host_id, name)
        return view

    async def sweep(self) -> list[str]:
        """Delete rooms idle for longer than the inactivity timeout."""
        removed: list[str] = []
        async with self._registry_lock:
            for code in list(self._rooms):
                lock = self._locks.get(code)
                if lock is None:
                    continue
                async with lock:
                    room = self._rooms.get(code)
                    if room is None:
                        continue
                    if self._clock() - room.last_activity_at > self._inactivity_timeout:
                        self._discard(code)
                        removed.append(code)
        if removed:
            log.info("swept %d inactive room(s): %s", len(removed), ", ".join(removed))
        return removed

    async def get(self, room_id: str) -> RoomView:
        async with self._locked(room_id) as room:
            now = self._clock()
            self._resolve(room, now)
            return project_room(room, now)

    async def list_rooms(self) -> list[RoomView]:
        await self.sweep()
        views: list[RoomView] = []
        for code in list(self._rooms):
            try:
                views.append(await self.get(code))
            except RoomNotFoundError:
                continue
        return views

    # Membership ----------------------------------------------------------

    async def join(self, room_id: str, participant_id: str, participant_name: str) -> RoomView:
        async with self._locked(room_id) as room:
            now = self._clock()
            if room.find_participant(participant_id) is None:
                if len(room.participants) >= self._max_participants:
                    raise RoomFullError(room.id, self._max_participants)
                room.participants.append(
                    Participant(id=participant_id, name=participant_name, joined_at=now)
                )
                log.info("%s joined room %s", participant_id, room.id)
            room.last_activity_at = now
            self._resolve(room, now)
            return project_room(room, now)

    async def leave(self, room_id: str, participant_id: str) -> RoomView | None:
        """Remove a participant; returns ``None`` once the room no longer exists."""
        try:
            async with self._locked(room_id) as room:
                now = self._clock()
                if room.find_participant(participant_id) is None:
                    self._resolve(room, now)
                    return project_room(room, now)

                room.participants = [p for p in room.participants if p.id != participant_id]
                if not room.participants:
                    self._discard(room.id)
                    log.info("room %s closed: last participant %s left", room.id, participant_id)
                    return None

                if room.host_id == participant_id:
                    # Participants are kept in join order.
                    new_host = room.participants[0]
                    room.host_id = new_host.id
                    room.host_name = new_host.name
                    log.info("room %s host transferred %s -> %s", room.id, participant_id, new_host.id)

                room.last_activity_at = now
                self._resolve(room, now)
                return project_room(room, now)
        except RoomNotFoundError:
            return None

    async def end(self, room_id: str, requester_id: str, *, guard: RoomGuard | None = None) -> None:
        async with self._locked(room_id) as room:
            if guard is not None:
                guard(room)
            self._discard(room.id)
            log.info("room %s ended by %s", room.id, requester_id)

    # Timer control -------------------------------------------------------

    async def start(self, room_id: str, *, guard: RoomGuard | None = None) -> RoomView:
        async with self._locked(room_id) as room:
            if guard is not None:
                guard(room)
            now = self._clock()
            self._resolve(room, now)
            state = room.timer_state
            if state.status != TimerStatus.RUNNING:
                # elapsed is kept so a paused phase resumes where it stopped.
                state.status = TimerStatus.RUNNING
                state.started_at = now
                log.debug("room %s started %s at elapsed=%d", room.id, state.phase, state.elapsed)
            room.last_activity_at = now
            return project_room(room, now)

    async def pause(self, room_id: str, *, guard: RoomGuard | None = None) -> RoomView:
        async with self._locked(room_id) as room:
            if guard is not None:
                guard(room)
            now = self._clock()
            self._resolve(room, now)
            state = room.timer_state
            if state.status != TimerStatus.RUNNING:
                return project_room(room, now)
            state.elapsed += live_elapsed(state, now)
            state.status = TimerStatus.PAUSED
            state.started_at = None
            room.last_activity_at = now
            log.debug("room %s paused %s at elapsed=%d", room.id, state.phase, state.elapsed)
            return project_room(room, now)

    async def reset(self, room_id: str, *, guard: RoomGuard | None = None) -> RoomView:
        async with self._locked(room_id) as room:
            if guard is not None:
                guard(room)
            now = self._clock()
            room.timer_state = initial_timer_state(room.settings)
            room.last_activity_at = now
            log.debug("room %s reset", room.id)
            return project_room(room, now)

    async def skip(self, room_id: str, *, guard: RoomGuard | None = None) -> RoomView:
        async with self._locked(room_id) as room:
            if guard is not None:
                guard(room)
            now = self._clock()
            # An expired phase already counts as the one transition a skip makes.
            if not resolve_if_expired(room.timer_state, room.settings, now):
                advance_phase(room.timer_state, room.settings)
            room.last_activity_at = now
            return project_room(room, now)
