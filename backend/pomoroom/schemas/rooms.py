"""Schemas for room creation, room actions and room snapshots."""
from __future__ import annotations

from datetime import datetime
from typing import List, Literal, Union

from pydantic import BaseModel, Field
from pydantic.alias_generators import to_camel
from pydantic.config import ConfigDict

from ..models import TimerPhase, TimerStatus


class CamelModel(BaseModel):
    model_config = ConfigDict(
        alias_generator=to_camel, populate_by_name=True, from_attributes=True
    )


class TimerSettingsSchema(CamelModel):
    work_duration: int = Field(gt=0, description="Work phase length in minutes")
    short_break_duration: int = Field(gt=0, description="Short break length in minutes")
    long_break_duration: int = Field(gt=0, description="Long break length in minutes")
    long_break_interval: int = Field(ge=2, description="Work phases per long break")


class TimerSettingsPayload(CamelModel):
    """Partial settings merged over the service defaults."""

    work_duration: int | None = Field(default=None, gt=0)
    short_break_duration: int | None = Field(default=None, gt=0)
    long_break_duration: int | None = Field(default=None, gt=0)
    long_break_interval: int | None = Field(default=None, ge=2)


class InheritedTimerPayload(CamelModel):
    phase: TimerPhase
    status: TimerStatus
    time_remaining: int = Field(ge=0, description="Seconds left when the room was created")
    pomodoro_count: int = Field(default=0, ge=0)
    settings: TimerSettingsSchema | None = None


class RoomCreatePayload(CamelModel):
    host_id: str = Field(min_length=1, description="Identifier of the creating user")
    host_name: str = Field(default="Anonymous", min_length=1, max_length=64)
    name: str = Field(min_length=1, max_length=64)
    settings: TimerSettingsPayload | None = None
    inherited_timer_state: InheritedTimerPayload | None = None


class _UserAction(CamelModel):
    user_id: str = Field(min_length=1)


class JoinAction(_UserAction):
    action: Literal["join"]
    user_name: str = Field(default="Anonymous", min_length=1, max_length=64)


class LeaveAction(_UserAction):
    action: Literal["leave"]


class StartAction(_UserAction):
    action: Literal["start"]


class PauseAction(_UserAction):
    action: Literal["pause"]


class ResetAction(_UserAction):
    action: Literal["reset"]


class SkipAction(_UserAction):
    action: Literal["skip"]


class EndAction(_UserAction):
    action: Literal["end"]


RoomAction = Union[JoinAction, LeaveAction, StartAction, PauseAction, ResetAction, SkipAction, EndAction]


class ParticipantSchema(CamelModel):
    id: str
    name: str
    joined_at: datetime


class TimerStateSchema(CamelModel):
    phase: TimerPhase
    status: TimerStatus
    time_remaining: int
    pomodoro_count: int


class RoomResponse(CamelModel):
    id: str
    name: str
    host_id: str
    host_name: str
    created_at: datetime
    last_activity_at: datetime
    settings: TimerSettingsSchema
    timer_state: TimerStateSchema
    participants: List[ParticipantSchema]


class RoomSummary(CamelModel):
    id: str
    name: str
    host_name: str
    participant_count: int
    phase: TimerPhase
    status: TimerStatus


class ActionAck(BaseModel):
    success: bool = True
