"""Wall-clock timer arithmetic shared by the room store and the projector.

Nothing here keeps time on its own. Remaining time is always derived from
``started_at``/``elapsed`` and an explicit ``now``, and phase changes are
applied lazily whenever a caller notices the running phase has expired.
"""
from __future__ import annotations

import logging
import math
from datetime import datetime

from ..models import RoomTimerState, TimerPhase, TimerSettings, TimerStatus

log = logging.getLogger(__name__)


def duration_for(phase: TimerPhase, settings: TimerSettings) -> int:
    """Return the planned length of ``phase`` in seconds."""
    if phase == TimerPhase.WORK:
        return settings.work_duration * 60
    if phase == TimerPhase.SHORT_BREAK:
        return settings.short_break_duration * 60
    return settings.long_break_duration * 60


def live_elapsed(state: RoomTimerState, now: datetime) -> int:
    """Whole seconds accrued by the current run, zero unless running."""
    if state.status != TimerStatus.RUNNING or state.started_at is None:
        return 0
    seconds = math.floor((now - state.started_at).total_seconds())
    return max(0, seconds)


def time_remaining(state: RoomTimerState, now: datetime) -> int:
    """Seconds left in the current phase, never negative."""
    return max(0, state.duration - state.elapsed - live_elapsed(state, now))


def initial_timer_state(settings: TimerSettings) -> RoomTimerState:
    return RoomTimerState(
        phase=TimerPhase.WORK,
        status=TimerStatus.IDLE,
        duration=duration_for(TimerPhase.WORK, settings),
    )


def inherited_timer_state(
    settings: TimerSettings,
    *,
    phase: TimerPhase,
    status: TimerStatus,
    time_remaining_seconds: int,
    pomodoro_count: int,
    now: datetime,
) -> RoomTimerState:
    """Rebuild bookkeeping for a timer carried over from a solo session.

    An idle carried-over timer is indistinguishable from a fresh one, so the
    cycle starts over in that case.
    """
    if status == TimerStatus.IDLE:
        return initial_timer_state(settings)

    duration = duration_for(phase, settings)
    elapsed = min(duration, max(0, duration - time_remaining_seconds))
    return RoomTimerState(
        phase=phase,
        status=status,
        duration=duration,
        started_at=now if status == TimerStatus.RUNNING else None,
        elapsed=elapsed,
        pomodoro_count=max(0, pomodoro_count),
    )


def advance_phase(state: RoomTimerState, settings: TimerSettings) -> TimerPhase:
    """Move ``state`` to the phase after the current one and leave it idle.

    Completing a work phase counts a pomodoro; every ``long_break_interval``-th
    pomodoro earns a long break.
    """
    previous = state.phase
    if previous == TimerPhase.WORK:
        state.pomodoro_count += 1
        if state.pomodoro_count % settings.long_break_interval == 0:
            next_phase = TimerPhase.LONG_BREAK
        else:
            next_phase = TimerPhase.SHORT_BREAK
    else:
        next_phase = TimerPhase.WORK

    state.phase = next_phase
    state.duration = duration_for(next_phase, settings)
    state.status = TimerStatus.IDLE
    state.started_at = None
    state.elapsed = 0
    log.debug(
        "phase %s -> %s (pomodoros=%d)", previous, next_phase, state.pomodoro_count
    )
    return next_phase


def resolve_if_expired(
    state: RoomTimerState, settings: TimerSettings, now: datetime
) -> bool:
    """Apply the pending phase transition, if any.

    Returns ``True`` when a transition happened. A second call right after a
    transition is a no-op because the state is no longer running.
    """
    if state.status != TimerStatus.RUNNING:
        return False
    if time_remaining(state, now) > 0:
        return False
    advance_phase(state, settings)
    return True
