"""Polling client that keeps a local view of a room in step with the server.

The server is the only source of truth. Each poll adopts the room snapshot
verbatim; between polls the countdown may be interpolated from the local
clock, but never below zero and never more than one poll interval below the
last value the server reported. Phase changes are only ever taken from the
server.
"""
from __future__ import annotations

import asyncio
import logging
import math
from collections.abc import Awaitable, Callable
from datetime import datetime, timedelta
from enum import StrEnum
from uuid import uuid4

import httpx

from ..core.config import AppSettings
from ..core.timer import duration_for
from ..models import TimerSettings, TimerStatus, utcnow
from ..schemas.rooms import RoomResponse
from ..schemas.sessions import PomodoroSession

log = logging.getLogger(__name__)

SessionRecorder = Callable[[PomodoroSession], Awaitable[None]]


class ConnectionState(StrEnum):
    CONNECTED = "connected"
    RECONNECTING = "reconnecting"
    DISCONNECTED = "disconnected"
    CLOSED = "closed"


class RoomPoller:
    """Background worker that polls one room for one user."""

    def __init__(
        self,
        room_id: str,
        *,
        user_id: str,
        base_url: str = "http://localhost:8000",
        api_prefix: str = "/api",
        poll_interval: float = 1.0,
        failure_threshold: int = 3,
        client: httpx.AsyncClient | None = None,
        recorder: SessionRecorder | None = None,
        clock: Callable[[], datetime] = utcnow,
    ) -> None:
        self.room_id = room_id
        self.user_id = user_id
        self._base_url = base_url.rstrip("/")
        self._path = f"{api_prefix.rstrip('/')}/rooms/{room_id}"
        self._poll_interval = poll_interval
        self._failure_threshold = failure_threshold
        self._client = client
        self._owns_client = client is None
        self._recorder = recorder
        self._clock = clock
        self._stop_event = asyncio.Event()
        self._task: asyncio.Task[None] | None = None

        self.room: RoomResponse | None = None
        self.synced_at: datetime | None = None
        self.state = ConnectionState.CONNECTED
        self.consecutive_failures = 0

    @classmethod
    def from_settings(
        cls, room_id: str, *, user_id: str, base_url: str, settings: AppSettings, **kwargs
    ) -> "RoomPoller":
        return cls(
            room_id,
            user_id=user_id,
            base_url=base_url,
            api_prefix=settings.api_prefix,
            poll_interval=settings.poll_interval,
            failure_threshold=settings.poll_failure_threshold,
            **kwargs,
        )

    # Lifecycle -----------------------------------------------------------

    async def start(self) -> None:
        if self._task is not None and not self._task.done():
            return
        self._stop_event.clear()
        self._ensure_client()
        self._task = asyncio.create_task(self._run())

    async def stop(self) -> None:
        self._stop_event.set()
        if self._task is not None:
            await self._task
            self._task = None
        if self._client is not None and self._owns_client:
            await self._client.aclose()
            self._client = None

    async def _run(self) -> None:
        while not self._stop_event.is_set():
            await self.poll_once()
            if self.state == ConnectionState.CLOSED:
                return
            try:
                await asyncio.wait_for(self._stop_event.wait(), timeout=self._poll_interval)
            except asyncio.TimeoutError:
                continue

    # Polling -------------------------------------------------------------

    def _ensure_client(self) -> httpx.AsyncClient:
        if self._client is None:
            self._client = httpx.AsyncClient(base_url=self._base_url, timeout=5.0)
            self._owns_client = True
        return self._client

    async def poll_once(self) -> RoomResponse | None:
        client = self._ensure_client()
        try:
            response = await client.get(self._path)
            if response.status_code == httpx.codes.NOT_FOUND:
                log.info("room %s no longer exists", self.room_id)
                self.state = ConnectionState.CLOSED
                return None
            response.raise_for_status()
            room = RoomResponse.model_validate(response.json())
        except (httpx.HTTPError, ValueError) as exc:
            self._record_failure(exc)
            return None

        now = self._clock()
        previous = self.room
        previous_synced_at = self.synced_at
        self.room = room
        self.synced_at = now
        self.consecutive_failures = 0
        if self.state != ConnectionState.CONNECTED:
            log.info("room %s poll recovered", self.room_id)
        self.state = ConnectionState.CONNECTED

        if previous is not None and previous_synced_at is not None:
            await self._detect_rollover(previous, previous_synced_at, room, now)
        return room

    def _record_failure(self, exc: Exception) -> None:
        self.consecutive_failures += 1
        if self.consecutive_failures >= self._failure_threshold:
            self.state = ConnectionState.DISCONNECTED
        else:
            self.state = ConnectionState.RECONNECTING
        log.warning(
            "poll of room %s failed (%d in a row): %s",
            self.room_id,
            self.consecutive_failures,
            exc,
        )

    # Local view ----------------------------------------------------------

    def local_remaining(self, now: datetime | None = None) -> int | None:
        """Countdown to display, interpolated from the last poll."""
        if self.room is None or self.synced_at is None:
            return None
        server_remaining = self.room.timer_state.time_remaining
        if self.room.timer_state.status != TimerStatus.RUNNING:
            return server_remaining
        now = now or self._clock()
        drift = max(0, math.floor((now - self.synced_at).total_seconds()))
        floor_value = max(0, server_remaining - math.ceil(self._poll_interval))
        return max(floor_value, server_remaining - drift)

    # Phase boundaries ----------------------------------------------------

    async def _detect_rollover(
        self,
        previous: RoomResponse,
        previous_synced_at: datetime,
        current: RoomResponse,
        now: datetime,
    ) -> None:
        before, after = previous.timer_state, current.timer_state
        same_phase = before.phase == after.phase and before.pomodoro_count == after.pomodoro_count
        # Within one phase the countdown only grows again after a reset.
        if same_phase and after.time_remaining <= before.time_remaining:
            return
        log.debug("room %s moved %s -> %s", self.room_id, before.phase, after.phase)
        if self._recorder is None:
            return
        session = self.build_session(previous, previous_synced_at, now)
        if session is None:
            return
        try:
            await self._recorder(session)
        except Exception:
            # Analytics must never stop room sync.
            log.exception("recording %s session for room %s failed", session.phase, self.room_id)

    def build_session(
        self, previous: RoomResponse, previous_synced_at: datetime, now: datetime
    ) -> PomodoroSession | None:
        """Describe the phase that ended between the last two polls.

        A running phase whose remaining time had elapsed by ``now`` counts as
        completed; anything else ended early (skip, reset) and is partial.
        """
        timer = previous.timer_state
        settings = TimerSettings(
            work_duration=previous.settings.work_duration,
            short_break_duration=previous.settings.short_break_duration,
            long_break_duration=previous.settings.long_break_duration,
            long_break_interval=previous.settings.long_break_interval,
        )
        planned = duration_for(timer.phase, settings)
        ran_out = (
            timer.status == TimerStatus.RUNNING
            and previous_synced_at + timedelta(seconds=timer.time_remaining) <= now
        )
        actual = planned if ran_out else max(0, planned - timer.time_remaining)
        if actual <= 0:
            return None
        ended_at = previous_synced_at + timedelta(seconds=timer.time_remaining) if ran_out else now
        return PomodoroSession(
            id=str(uuid4()),
            user_id=self.user_id,
            started_at=ended_at - timedelta(seconds=actual),
            ended_at=ended_at,
            phase=timer.phase,
            planned_duration=planned,
            actual_duration=actual,
            completed=ran_out,
            completion_percentage=round(actual / planned * 100),
            date=ended_at.date(),
        )
