"""FastAPI dependencies.

The room store and the settings the app was built with live on
``request.app.state``. Both are put there by the application lifespan, so
every app (and every test app) has its own.
"""
from __future__ import annotations

from fastapi import Request

from ..core.config import AppSettings
from ..core.store import RoomStore


def get_room_store(request: Request) -> RoomStore:
    """Get the room store from app.state."""
    return request.app.state.room_store


def get_app_settings(request: Request) -> AppSettings:
    return request.app.state.settings
