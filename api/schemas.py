from __future__ import annotations

from datetime import date as dt_date
from datetime import datetime as dt_datetime
from datetime import time as dt_time
from typing import Optional

from pydantic import BaseModel, ConfigDict, Field


class HealthOut(BaseModel):
    status: str
    environment: str


class MessageOut(BaseModel):
    message: str


class TeamOut(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    name: str


class SessionOut(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    club_id: int
    season_id: Optional[int] = None
    title: str
    description: Optional[str] = None
    session_type: str
    anchor_date: dt_date
    start_time: dt_time
    end_time: dt_time
    location: Optional[str] = None
    coach_id: Optional[int] = None
    max_participants: Optional[int] = None
    status: str
    is_recurring: bool
    recurrence_pattern: Optional[str] = None
    recurrence_days: Optional[list[int]] = None
    recurrence_end_date: Optional[dt_date] = None
    team_ids: list[int] = Field(default_factory=list)
    teams: list[TeamOut] = Field(default_factory=list)
    created_by: int
    created_at: Optional[dt_datetime] = None
    updated_at: Optional[dt_datetime] = None


class ExceptionOut(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    training_session_id: int
    occurrence_date: dt_date
    exception_type: str
    override_date: Optional[dt_date] = None
    override_start_time: Optional[dt_time] = None
    override_end_time: Optional[dt_time] = None
    override_title: Optional[str] = None
    override_description: Optional[str] = None
    override_location: Optional[str] = None
    override_coach_id: Optional[int] = None
    override_max_participants: Optional[int] = None
    override_status: Optional[str] = None
    created_by: Optional[int] = None
    updated_at: Optional[dt_datetime] = None


class OccurrenceOut(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    template_id: int
    occurrence_date: dt_date
    effective_date: dt_date
    start_time: dt_time
    end_time: dt_time
    title: str
    description: Optional[str] = None
    session_type: str
    location: Optional[str] = None
    coach_id: Optional[int] = None
    max_participants: Optional[int] = None
    status: str
    club_id: int
    season_id: Optional[int] = None
    is_recurring: bool
    team_ids: list[int] = Field(default_factory=list)
    is_exception: bool = False
    is_rescheduled: bool = False
    exception_id: Optional[int] = None
    exception_type: Optional[str] = None


class CreatedSeriesOut(BaseModel):
    session: SessionOut
    occurrences_count: int


class SessionDetailOut(BaseModel):
    session: SessionOut
    exceptions: list[ExceptionOut]
    occurrences_count: int


class SplitOut(BaseModel):
    head: SessionOut
    tail: SessionOut
    moved_exceptions: int
    head_closed: bool


class OccurrenceListOut(BaseModel):
    from_date: dt_date
    to_date: dt_date
    total: int
    items: list[OccurrenceOut]
