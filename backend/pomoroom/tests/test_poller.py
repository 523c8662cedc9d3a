"""Client reconciliation loop tests."""
from __future__ import annotations

import asyncio
from collections.abc import Callable
from typing import Any

import httpx

from ..client.poller import ConnectionState, RoomPoller
from ..core.config import AppSettings
from ..core.store import RoomStore
from ..main import create_app
from ..schemas.sessions import PomodoroSession
from .conftest import FakeClock


def _room_payload(
    *,
    phase: str = "work",
    status: str = "running",
    remaining: int = 100,
    count: int = 0,
) -> dict[str, Any]:
    return {
        "id": "ABCDEF",
        "name": "Focus Club",
        "hostId": "host",
        "hostName": "Hana",
        "createdAt": "2024-03-01T09:00:00+00:00",
        "lastActivityAt": "2024-03-01T09:00:00+00:00",
        "settings": {
            "workDuration": 25,
            "shortBreakDuration": 5,
            "longBreakDuration": 15,
            "longBreakInterval": 4,
        },
        "timerState": {
            "phase": phase,
            "status": status,
            "timeRemaining": remaining,
            "pomodoroCount": count,
        },
        "participants": [
            {"id": "host", "name": "Hana", "joinedAt": "2024-03-01T09:00:00+00:00"}
        ],
    }


def _poller(
    handler: Callable[[httpx.Request], httpx.Response],
    clock: FakeClock,
    **kwargs: Any,
) -> RoomPoller:
    client = httpx.AsyncClient(transport=httpx.MockTransport(handler), base_url="http://rooms")
    return RoomPoller("ABCDEF", user_id="host", client=client, clock=clock, **kwargs)


def test_poll_adopts_server_snapshot(clock: FakeClock) -> None:
    async def handler(request: httpx.Request) -> httpx.Response:
        assert request.url.path == "/api/rooms/ABCDEF"
        return httpx.Response(200, json=_room_payload(status="paused", remaining=842, count=2))

    async def flow() -> None:
        poller = _poller(handler, clock)
        room = await poller.poll_once()
        assert room is not None
        assert room.timer_state.time_remaining == 842
        assert room.timer_state.pomodoro_count == 2
        assert poller.synced_at == clock()
        assert poller.state == ConnectionState.CONNECTED

        clock.advance(30)
        assert poller.local_remaining() == 842

    asyncio.run(flow())


def test_interpolation_is_bounded_by_poll_interval(clock: FakeClock) -> None:
    async def handler(request: httpx.Request) -> httpx.Response:
        return httpx.Response(200, json=_room_payload(remaining=100))

    async def flow() -> None:
        poller = _poller(handler, clock, poll_interval=2.0)
        await poller.poll_once()
        assert poller.local_remaining() == 100
        clock.advance(1.5)
        assert poller.local_remaining() == 99
        clock.advance(60)
        assert poller.local_remaining() == 98

    asyncio.run(flow())


def test_interpolation_never_goes_negative(clock: FakeClock) -> None:
    async def handler(request: httpx.Request) -> httpx.Response:
        return httpx.Response(200, json=_room_payload(remaining=1))

    async def flow() -> None:
        poller = _poller(handler, clock, poll_interval=5.0)
        await poller.poll_once()
        clock.advance(30)
        assert poller.local_remaining() == 0

    asyncio.run(flow())


def test_consecutive_failures_degrade_then_recover(clock: FakeClock) -> None:
    outcomes = ["ok", "down", "down", "down", "ok"]

    async def handler(request: httpx.Request) -> httpx.Response:
        outcome = outcomes.pop(0)
        if outcome == "down":
            raise httpx.ConnectError("connection refused", request=request)
        return httpx.Response(200, json=_room_payload(remaining=500))

    async def flow() -> None:
        poller = _poller(handler, clock, failure_threshold=3)
        await poller.poll_once()
        assert poller.state == ConnectionState.CONNECTED

        await poller.poll_once()
        assert poller.state == ConnectionState.RECONNECTING
        await poller.poll_once()
        assert poller.state == ConnectionState.RECONNECTING
        await poller.poll_once()
        assert poller.state == ConnectionState.DISCONNECTED
        assert poller.consecutive_failures == 3
        # The last snapshot is kept; no phase change is invented while offline.
        assert poller.room is not None
        assert poller.room.timer_state.phase == "work"

        await poller.poll_once()
        assert poller.state == ConnectionState.CONNECTED
        assert poller.consecutive_failures == 0

    asyncio.run(flow())


def test_server_errors_count_as_failures(clock: FakeClock) -> None:
    async def handler(request: httpx.Request) -> httpx.Response:
        return httpx.Response(500, json={"detail": "boom"})

    async def flow() -> None:
        poller = _poller(handler, clock, failure_threshold=1)
        assert await poller.poll_once() is None
        assert poller.state == ConnectionState.DISCONNECTED

    asyncio.run(flow())


def test_missing_room_closes_poller(clock: FakeClock) -> None:
    calls = 0

    async def handler(request: httpx.Request) -> httpx.Response:
        nonlocal calls
        calls += 1
        return httpx.Response(404, json={"detail": "room_not_found"})

    async def flow() -> None:
        poller = _poller(handler, clock, poll_interval=0.01)
        await poller.start()
        await asyncio.sleep(0.05)
        await poller.stop()
        assert poller.state == ConnectionState.CLOSED
        assert calls == 1

    asyncio.run(flow())


def test_run_loop_polls_until_stopped(clock: FakeClock) -> None:
    calls = 0

    async def handler(request: httpx.Request) -> httpx.Response:
        nonlocal calls
        calls += 1
        return httpx.Response(200, json=_room_payload())

    async def flow() -> None:
        poller = _poller(handler, clock, poll_interval=0.01)
        await poller.start()
        await asyncio.sleep(0.1)
        await poller.stop()
        seen = calls
        await asyncio.sleep(0.05)
        assert seen >= 2
        assert calls == seen

    asyncio.run(flow())


def test_failing_recorder_does_not_stop_polling(clock: FakeClock) -> None:
    snapshots = [
        _room_payload(remaining=1),
        _room_payload(phase="shortBreak", status="idle", remaining=300, count=1),
    ]
    calls = 0

    async def handler(request: httpx.Request) -> httpx.Response:
        nonlocal calls
        calls += 1
        payload = snapshots[0] if calls == 1 else snapshots[1]
        return httpx.Response(200, json=payload)

    async def recorder(session: PomodoroSession) -> None:
        raise RuntimeError("analytics down")

    async def flow() -> None:
        poller = _poller(handler, clock, poll_interval=0.01, recorder=recorder)
        await poller.start()
        clock.advance(5)
        await asyncio.sleep(0.1)
        assert poller._task is not None and not poller._task.done()
        await poller.stop()
        assert calls >= 3
        assert poller.state == ConnectionState.CONNECTED
        assert poller.room is not None
        assert poller.room.timer_state.phase == "shortBreak"

    asyncio.run(flow())


def test_reset_within_first_work_phase_records_partial_session(clock: FakeClock) -> None:
    snapshots = [
        _room_payload(status="running", remaining=1500),
        _room_payload(status="running", remaining=1455),
        _room_payload(status="idle", remaining=1500),
        _room_payload(status="idle", remaining=1500),
    ]
    recorded: list[PomodoroSession] = []

    async def handler(request: httpx.Request) -> httpx.Response:
        return httpx.Response(200, json=snapshots.pop(0))

    async def recorder(session: PomodoroSession) -> None:
        recorded.append(session)

    async def flow() -> None:
        poller = _poller(handler, clock, recorder=recorder)
        await poller.poll_once()
        clock.advance(45)
        await poller.poll_once()
        assert recorded == []

        await poller.poll_once()
        assert len(recorded) == 1
        assert recorded[0].phase == "work"
        assert recorded[0].completed is False
        assert recorded[0].actual_duration == 45
        assert recorded[0].completion_percentage == 3

        await poller.poll_once()
        assert len(recorded) == 1

    asyncio.run(flow())


def test_poller_against_live_app_records_sessions(clock: FakeClock) -> None:
    store = RoomStore(clock=clock)
    app = create_app(settings=AppSettings(), store=store)
    app.state.room_store = store
    recorded: list[PomodoroSession] = []

    async def recorder(session: PomodoroSession) -> None:
        recorded.append(session)

    async def flow() -> None:
        view = await store.create(host_id="host", host_name="Hana", name="Focus Club")
        client = httpx.AsyncClient(transport=httpx.ASGITransport(app=app), base_url="http://rooms")
        poller = RoomPoller(view.id, user_id="host", client=client, clock=clock, recorder=recorder)

        await store.start(view.id)
        await poller.poll_once()
        clock.advance(1500)
        room = await poller.poll_once()
        assert room is not None
        assert room.timer_state.phase == "shortBreak"
        assert room.timer_state.pomodoro_count == 1

        assert len(recorded) == 1
        completed = recorded[0]
        assert completed.phase == "work"
        assert completed.completed is True
        assert completed.planned_duration == completed.actual_duration == 1500
        assert completed.completion_percentage == 100
        assert completed.user_id == "host"

        await store.start(view.id)
        clock.advance(120)
        await poller.poll_once()
        await store.skip(view.id)
        await poller.poll_once()

        assert len(recorded) == 2
        partial = recorded[1]
        assert partial.phase == "shortBreak"
        assert partial.completed is False
        assert partial.actual_duration == 120
        assert partial.completion_percentage == 40

        await client.aclose()

    asyncio.run(flow())
