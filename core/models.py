from __future__ import annotations

import datetime as dt
from typing import Optional

from sqlalchemy import (
    JSON,
    Boolean,
    CheckConstraint,
    Column,
    Date,
    DateTime,
    ForeignKey,
    Index,
    Integer,
    String,
    Table,
    Text,
    Time,
    UniqueConstraint,
)
from sqlalchemy.orm import DeclarativeBase, Mapped, mapped_column, relationship


SESSION_TYPES = ("training", "practice", "conditioning", "tactical", "friendly", "other")
SESSION_STATUSES = ("draft", "scheduled", "cancelled")
OCCURRENCE_STATUSES = ("draft", "scheduled", "completed", "cancelled")
RECURRENCE_PATTERNS = ("daily", "weekly", "biweekly", "monthly")
EXCEPTION_TYPES = ("cancelled", "rescheduled", "modified")


class Base(DeclarativeBase):
    pass


training_session_teams = Table(
    "training_session_teams",
    Base.metadata,
    Column("training_session_id", ForeignKey("training_sessions.id", ondelete="CASCADE"), primary_key=True),
    Column("team_id", ForeignKey("teams.id", ondelete="CASCADE"), primary_key=True, index=True),
    Column("assigned_at", DateTime, default=dt.datetime.utcnow),
)


class Team(Base):
    """Reference row owned by the team module; only read here."""

    __tablename__ = "teams"
    id: Mapped[int] = mapped_column(primary_key=True)
    club_id: Mapped[int] = mapped_column(Integer, index=True)
    name: Mapped[str] = mapped_column(String(120))


class Season(Base):
    __tablename__ = "seasons"
    id: Mapped[int] = mapped_column(primary_key=True)
    club_id: Mapped[int] = mapped_column(Integer, index=True)
    name: Mapped[str] = mapped_column(String(100))
    start_date: Mapped[dt.date] = mapped_column(Date)
    end_date: Mapped[dt.date] = mapped_column(Date)
    is_active: Mapped[bool] = mapped_column(Boolean, default=True)


class TrainingSession(Base):
    """A session template: one-off, or the definition of a recurring series."""

    __tablename__ = "training_sessions"
    id: Mapped[int] = mapped_column(primary_key=True)
    club_id: Mapped[int] = mapped_column(Integer)
    season_id: Mapped[Optional[int]] = mapped_column(ForeignKey("seasons.id", ondelete="SET NULL"), index=True)
    title: Mapped[str] = mapped_column(String(200))
    description: Mapped[Optional[str]] = mapped_column(Text)
    session_type: Mapped[str] = mapped_column(String(20), default="training")
    anchor_date: Mapped[dt.date] = mapped_column(Date)
    start_time: Mapped[dt.time] = mapped_column(Time)
    end_time: Mapped[dt.time] = mapped_column(Time)
    location: Mapped[Optional[str]] = mapped_column(String(200))
    coach_id: Mapped[Optional[int]] = mapped_column(Integer)
    max_participants: Mapped[Optional[int]] = mapped_column(Integer)
    status: Mapped[str] = mapped_column(String(16), default="draft")
    is_recurring: Mapped[bool] = mapped_column(Boolean, default=False)
    recurrence_pattern: Mapped[Optional[str]] = mapped_column(String(16))
    recurrence_days: Mapped[Optional[list[int]]] = mapped_column(JSON)
    recurrence_end_date: Mapped[Optional[dt.date]] = mapped_column(Date)
    created_by: Mapped[int] = mapped_column(Integer)
    created_at: Mapped[dt.datetime] = mapped_column(DateTime, default=dt.datetime.utcnow)
    updated_at: Mapped[dt.datetime] = mapped_column(DateTime, default=dt.datetime.utcnow, onupdate=dt.datetime.utcnow)

    teams: Mapped[list[Team]] = relationship(secondary=training_session_teams, lazy="selectin", order_by=Team.id)

    __table_args__ = (
        Index("ix_training_sessions_club_status", "club_id", "status"),
        Index("ix_training_sessions_anchor", "anchor_date", "start_time"),
        CheckConstraint("max_participants IS NULL OR max_participants >= 1", name="ck_training_sessions_capacity"),
    )

    @property
    def team_ids(self) -> list[int]:
        return [team.id for team in self.teams]


class TrainingSessionException(Base):
    """Per-occurrence override keyed by the date the template originally produced."""

    __tablename__ = "training_session_exceptions"
    id: Mapped[int] = mapped_column(primary_key=True)
    training_session_id: Mapped[int] = mapped_column(ForeignKey("training_sessions.id", ondelete="CASCADE"), index=True)
    occurrence_date: Mapped[dt.date] = mapped_column(Date, index=True)
    exception_type: Mapped[str] = mapped_column(String(16))
    override_date: Mapped[Optional[dt.date]] = mapped_column(Date)
    override_start_time: Mapped[Optional[dt.time]] = mapped_column(Time)
    override_end_time: Mapped[Optional[dt.time]] = mapped_column(Time)
    override_title: Mapped[Optional[str]] = mapped_column(String(200))
    override_description: Mapped[Optional[str]] = mapped_column(Text)
    override_location: Mapped[Optional[str]] = mapped_column(String(200))
    override_coach_id: Mapped[Optional[int]] = mapped_column(Integer)
    override_max_participants: Mapped[Optional[int]] = mapped_column(Integer)
    override_status: Mapped[Optional[str]] = mapped_column(String(16))
    created_by: Mapped[Optional[int]] = mapped_column(Integer)
    created_at: Mapped[dt.datetime] = mapped_column(DateTime, default=dt.datetime.utcnow)
    updated_at: Mapped[dt.datetime] = mapped_column(DateTime, default=dt.datetime.utcnow, onupdate=dt.datetime.utcnow)

    __table_args__ = (
        UniqueConstraint("training_session_id", "occurrence_date", name="uq_session_exception_occurrence"),
        Index("ix_session_exceptions_override_date", "override_date"),
    )
