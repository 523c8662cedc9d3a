"""Room flows exposed over HTTP.

This is the edge adjacent to the store: it decides who may do what (timer
control and ending a room are host-only) and turns store errors into HTTP
responses. The host check runs inside the room's critical section so a host
transfer cannot slip in between the check and the mutation.
"""
from __future__ import annotations

import logging
from collections.abc import Iterator
from contextlib import contextmanager

from fastapi import HTTPException, status

from ..core.projection import RoomView
from ..core.store import InheritedTimer, RoomGuard, RoomStore
from ..exceptions import (
    ForbiddenActionError,
    RoomCodeExhaustedError,
    RoomFullError,
    RoomNotFoundError,
)
from ..models import Room, TimerSettings
from ..schemas.rooms import (
    EndAction,
    JoinAction,
    LeaveAction,
    PauseAction,
    ResetAction,
    RoomAction,
    RoomCreatePayload,
    SkipAction,
    StartAction,
)

log = logging.getLogger(__name__)

HOST_ONLY_ACTIONS = frozenset({"start", "pause", "reset", "skip", "end"})


@contextmanager
def translate_room_errors() -> Iterator[None]:
    try:
        yield
    except RoomNotFoundError:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="room_not_found") from None
    except RoomFullError:
        raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail="room_full") from None
    except ForbiddenActionError as exc:
        log.info("rejected %s on room %s by non-host %s", exc.action, exc.room_id, exc.user_id)
        raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail="host_only") from None
    except RoomCodeExhaustedError:
        log.error("room code space exhausted")
        raise HTTPException(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE, detail="room_codes_exhausted"
        ) from None


def require_host(user_id: str, action: str) -> RoomGuard:
    def guard(room: Room) -> None:
        if not room.is_host(user_id):
            raise ForbiddenActionError(room.id, user_id, action)

    return guard


async def create_room(store: RoomStore, payload: RoomCreatePayload) -> RoomView:
    inherited: InheritedTimer | None = None
    if payload.inherited_timer_state is not None:
        carried = payload.inherited_timer_state
        inherited = InheritedTimer(
            phase=carried.phase,
            status=carried.status,
            time_remaining=carried.time_remaining,
            pomodoro_count=carried.pomodoro_count,
            settings=TimerSettings(**carried.settings.model_dump()) if carried.settings else None,
        )

    with translate_room_errors():
        try:
            return await store.create(
                host_id=payload.host_id,
                host_name=payload.host_name,
                name=payload.name,
                settings=payload.settings.model_dump() if payload.settings else None,
                inherited=inherited,
            )
        except ValueError as exc:
            raise HTTPException(
                status_code=status.HTTP_400_BAD_REQUEST, detail=f"invalid_settings: {exc}"
            ) from None


async def get_room(store: RoomStore, room_id: str) -> RoomView:
    with translate_room_errors():
        return await store.get(room_id)


async def list_rooms(store: RoomStore) -> list[RoomView]:
    return await store.list_rooms()


async def apply_room_action(
    store: RoomStore,
    room_id: str,
    action: RoomAction,
) -> RoomView | None:
    """Run one room action; returns ``None`` for ``leave`` and ``end``."""
    guard = require_host(action.user_id, action.action) if action.action in HOST_ONLY_ACTIONS else None

    with translate_room_errors():
        if isinstance(action, JoinAction):
            return await store.join(room_id, action.user_id, action.user_name)
        if isinstance(action, LeaveAction):
            await store.leave(room_id, action.user_id)
            return None
        if isinstance(action, EndAction):
            await store.end(room_id, action.user_id, guard=guard)
            return None
        if isinstance(action, StartAction):
            return await store.start(room_id, guard=guard)
        if isinstance(action, PauseAction):
            return await store.pause(room_id, guard=guard)
        if isinstance(action, ResetAction):
            return await store.reset(room_id, guard=guard)
        if isinstance(action, SkipAction):
            return await store.skip(room_id, guard=guard)

    raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="invalid_action")
