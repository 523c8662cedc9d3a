"""Health check endpoints for monitoring."""

from fastapi import APIRouter, Depends

from ...core.config import AppSettings
from ...core.store import RoomStore
from ..dependencies import get_app_settings, get_room_store

router = APIRouter()


@router.get("/", summary="Service health probe")
def read_health(
    store: RoomStore = Depends(get_room_store),
    settings: AppSettings = Depends(get_app_settings),
) -> dict[str, object]:
    """Report liveness and the number of rooms currently held."""
    return {"status": "ok", "service": settings.app_name, "rooms": len(store)}
