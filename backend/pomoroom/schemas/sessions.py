"""Pomodoro session records handed to the analytics recorder."""
from __future__ import annotations

import datetime as dt

from pydantic import Field

from ..models import TimerPhase
from .rooms import CamelModel


class PomodoroSession(CamelModel):
    id: str
    user_id: str
    started_at: dt.datetime
    ended_at: dt.datetime | None
    phase: TimerPhase
    planned_duration: int = Field(ge=0, description="Seconds")
    actual_duration: int = Field(ge=0, description="Seconds")
    completed: bool
    completion_percentage: int = Field(ge=0, le=100)
    date: dt.date
