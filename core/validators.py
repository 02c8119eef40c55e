"""Pydantic validation models for all scheduling entry points."""

from __future__ import annotations

from datetime import date as dt_date
from datetime import time as dt_time
from typing import Literal, Optional

from pydantic import AliasChoices, BaseModel, ConfigDict, Field, field_validator

SessionType = Literal["training", "practice", "conditioning", "tactical", "friendly", "other"]
RecurrencePattern = Literal["daily", "weekly", "biweekly", "monthly"]
OccurrenceStatus = Literal["draft", "scheduled", "completed", "cancelled"]


def normalize_recurrence_days(v: Optional[list[int]]) -> Optional[list[int]]:
    if v is None:
        return v
    bad = [d for d in v if not 0 <= d <= 6]
    if bad:
        raise ValueError("recurrence_days must be weekday ordinals 0-6 (0 = Sunday)")
    return sorted(set(v))


def normalize_team_ids(v: Optional[list[int]]) -> Optional[list[int]]:
    if v is None:
        return v
    if any(t <= 0 for t in v):
        raise ValueError("team ids must be positive")
    return sorted(set(v))


class SessionCreateInput(BaseModel):
    model_config = ConfigDict(extra="forbid", populate_by_name=True)

    season_id: Optional[int] = Field(default=None, gt=0)
    title: str = Field(min_length=3, max_length=200)
    description: Optional[str] = Field(default=None, max_length=5000)
    session_type: SessionType = "training"
    anchor_date: dt_date = Field(validation_alias=AliasChoices("anchor_date", "date"))
    start_time: dt_time
    end_time: dt_time
    location: Optional[str] = Field(default=None, max_length=200)
    coach_id: Optional[int] = Field(default=None, gt=0)
    max_participants: Optional[int] = Field(default=None, ge=1)
    status: Literal["draft", "scheduled"] = "draft"
    team_ids: list[int] = Field(default_factory=list)
    is_recurring: bool = False
    recurrence_pattern: Optional[RecurrencePattern] = None
    recurrence_days: Optional[list[int]] = None
    recurrence_end_date: Optional[dt_date] = None

    @field_validator("recurrence_days")
    @classmethod
    def valid_days(cls, v):
        return normalize_recurrence_days(v)

    @field_validator("team_ids")
    @classmethod
    def valid_team_ids(cls, v):
        return normalize_team_ids(v)


class SessionUpdateInput(BaseModel):
    """Direct template edit (PUT). Anchor/recurrence changes are allowed only without exceptions."""

    model_config = ConfigDict(extra="forbid", populate_by_name=True)

    season_id: Optional[int] = Field(default=None, gt=0)
    title: Optional[str] = Field(default=None, min_length=3, max_length=200)
    description: Optional[str] = Field(default=None, max_length=5000)
    session_type: Optional[SessionType] = None
    anchor_date: Optional[dt_date] = Field(default=None, validation_alias=AliasChoices("anchor_date", "date"))
    start_time: Optional[dt_time] = None
    end_time: Optional[dt_time] = None
    location: Optional[str] = Field(default=None, max_length=200)
    coach_id: Optional[int] = Field(default=None, gt=0)
    max_participants: Optional[int] = Field(default=None, ge=1)
    status: Optional[Literal["draft", "scheduled"]] = None
    team_ids: Optional[list[int]] = None
    is_recurring: Optional[bool] = None
    recurrence_pattern: Optional[RecurrencePattern] = None
    recurrence_days: Optional[list[int]] = None
    recurrence_end_date: Optional[dt_date] = None

    @field_validator("recurrence_days")
    @classmethod
    def valid_days(cls, v):
        return normalize_recurrence_days(v)

    @field_validator("team_ids")
    @classmethod
    def valid_team_ids(cls, v):
        return normalize_team_ids(v)


class OccurrenceChangeInput(BaseModel):
    """Field overrides for a single occurrence."""

    model_config = ConfigDict(extra="forbid")

    date: Optional[dt_date] = None
    start_time: Optional[dt_time] = None
    end_time: Optional[dt_time] = None
    title: Optional[str] = Field(default=None, min_length=1, max_length=200)
    description: Optional[str] = Field(default=None, max_length=5000)
    location: Optional[str] = Field(default=None, max_length=200)
    coach_id: Optional[int] = Field(default=None, gt=0)
    max_participants: Optional[int] = Field(default=None, ge=1)
    status: Optional[OccurrenceStatus] = None


class RescheduleInput(BaseModel):
    model_config = ConfigDict(extra="forbid", populate_by_name=True)

    new_date: dt_date = Field(validation_alias=AliasChoices("new_date", "newDate"))
    new_start_time: Optional[dt_time] = Field(default=None, validation_alias=AliasChoices("new_start_time", "newStartTime"))
    new_end_time: Optional[dt_time] = Field(default=None, validation_alias=AliasChoices("new_end_time", "newEndTime"))


class SeriesChangeInput(BaseModel):
    """Changes applied to every occurrence of a series in place."""

    model_config = ConfigDict(extra="forbid")

    season_id: Optional[int] = Field(default=None, gt=0)
    title: Optional[str] = Field(default=None, min_length=3, max_length=200)
    description: Optional[str] = Field(default=None, max_length=5000)
    session_type: Optional[SessionType] = None
    start_time: Optional[dt_time] = None
    end_time: Optional[dt_time] = None
    location: Optional[str] = Field(default=None, max_length=200)
    coach_id: Optional[int] = Field(default=None, gt=0)
    max_participants: Optional[int] = Field(default=None, ge=1)
    status: Optional[Literal["draft", "scheduled", "cancelled"]] = None
    team_ids: Optional[list[int]] = None

    @field_validator("team_ids")
    @classmethod
    def valid_team_ids(cls, v):
        return normalize_team_ids(v)


class FutureChangeInput(SeriesChangeInput):
    """Changes for "this and all future" occurrences; may also reshape the recurrence."""

    recurrence_pattern: Optional[RecurrencePattern] = None
    recurrence_days: Optional[list[int]] = None
    recurrence_end_date: Optional[dt_date] = None

    @field_validator("recurrence_days")
    @classmethod
    def valid_days(cls, v):
        return normalize_recurrence_days(v)
