"""FastAPI application entrypoint."""
from __future__ import annotations

import logging
from contextlib import asynccontextmanager
from datetime import timedelta

from fastapi import FastAPI

from .api.routes.health import router as health_router
from .api.routes.rooms import router as rooms_router
from .core.config import AppSettings, get_settings
from .core.store import RoomStore
from .models import TimerSettings

log = logging.getLogger(__name__)


def build_room_store(settings: AppSettings) -> RoomStore:
    return RoomStore(
        default_settings=TimerSettings(
            work_duration=settings.default_work_duration,
            short_break_duration=settings.default_short_break_duration,
            long_break_duration=settings.default_long_break_duration,
            long_break_interval=settings.default_long_break_interval,
        ),
        max_participants=settings.max_participants,
        inactivity_timeout=timedelta(seconds=settings.inactivity_timeout_seconds),
        code_length=settings.room_code_length,
        code_attempts=settings.room_code_max_attempts,
    )


def create_app(settings: AppSettings | None = None, store: RoomStore | None = None) -> FastAPI:
    """Application factory used by ASGI servers."""
    settings = settings or get_settings()
    logging.basicConfig(
        level=settings.log_level.upper(),
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        app.state.settings = settings
        app.state.room_store = store if store is not None else build_room_store(settings)
        log.info("%s started (%s)", settings.app_name, settings.environment)
        try:
            yield
        finally:
            log.info("%s stopping with %d live room(s)", settings.app_name, len(app.state.room_store))

    app = FastAPI(title=settings.app_name, lifespan=lifespan)

    app.include_router(health_router, prefix=f"{settings.api_prefix}/health", tags=["health"])
    app.include_router(rooms_router, prefix=settings.api_prefix)

    return app


app = create_app()


def main() -> None:
    import uvicorn

    uvicorn.run("pomoroom.main:app", host="0.0.0.0", port=8000)


if __name__ == "__main__":
    main()
