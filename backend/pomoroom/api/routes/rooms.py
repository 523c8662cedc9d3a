"""Room API routes."""
from __future__ import annotations

from typing import Annotated, List, Union

from fastapi import APIRouter, Body, Depends

from ...core.projection import RoomView
from ...core.store import RoomStore
from ...schemas.rooms import (
    ActionAck,
    RoomAction,
    RoomCreatePayload,
    RoomResponse,
    RoomSummary,
)
from ...services.rooms import apply_room_action, create_room, get_room, list_rooms
from ..dependencies import get_room_store

router = APIRouter(prefix="/rooms", tags=["rooms"])


def _room_response(view: RoomView) -> RoomResponse:
    return RoomResponse.model_validate(view)


def _room_summary(view: RoomView) -> RoomSummary:
    return RoomSummary(
        id=view.id,
        name=view.name,
        host_name=view.host_name,
        participant_count=view.participant_count,
        phase=view.timer_state.phase,
        status=view.timer_state.status,
    )


@router.post("", status_code=201, response_model=RoomResponse)
async def create_room_endpoint(
    payload: RoomCreatePayload,
    store: RoomStore = Depends(get_room_store),
) -> RoomResponse:
    view = await create_room(store, payload)
    return _room_response(view)


@router.get("", response_model=List[RoomSummary])
async def list_rooms_endpoint(
    store: RoomStore = Depends(get_room_store),
) -> List[RoomSummary]:
    return [_room_summary(view) for view in await list_rooms(store)]


@router.get("/{room_id}", response_model=RoomResponse)
async def read_room_endpoint(
    room_id: str,
    store: RoomStore = Depends(get_room_store),
) -> RoomResponse:
    view = await get_room(store, room_id)
    return _room_response(view)


@router.post("/{room_id}/actions", response_model=Union[RoomResponse, ActionAck])
async def room_action_endpoint(
    room_id: str,
    payload: Annotated[RoomAction, Body(discriminator="action")],
    store: RoomStore = Depends(get_room_store),
) -> RoomResponse | ActionAck:
    view = await apply_room_action(store, room_id, payload)
    if view is None:
        return ActionAck()
    return _room_response(view)
