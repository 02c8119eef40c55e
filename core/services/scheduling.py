"""Scheduling service: the single entry point for session templates and occurrences.

Owns the transaction for every call. Reads go through the occurrence
resolver; per-occurrence and series edits are delegated to the series edit
coordinator inside one transaction. Every call is scoped to the caller's
club, and templates of another club are reported as not found.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from datetime import date, timedelta
from typing import Any, Callable, Mapping, Optional, Union

from pydantic import BaseModel
from sqlalchemy import and_, exists, or_, select
from sqlalchemy.orm import Session

from core.config import Settings, get_settings
from core.db import session_scope
from core.errors import SeriesAlreadyCancelled, SessionNotFound, ValidationError
from core.models import Season, TrainingSession, TrainingSessionException, training_session_teams
from core.services.exception_store import ExceptionStore
from core.services.occurrences import OccurrenceResolver, VirtualOccurrence
from core.services.recurrence import count_occurrences, describe, normalize_days, validate_recurrence
from core.services.series_edit import SeriesEditCoordinator, SplitResult, load_club_teams
from core.validators import SessionCreateInput

logger = logging.getLogger(__name__)

Changes = Union[BaseModel, Mapping[str, Any]]


@dataclass
class ScheduleFilters:
    from_date: Optional[date] = None
    to_date: Optional[date] = None
    team_id: Optional[int] = None
    status: Optional[str] = None
    season_id: Optional[int] = None
    session_type: Optional[str] = None
    include_cancelled: bool = False


@dataclass
class CreatedSeries:
    template: TrainingSession
    occurrences_count: int


@dataclass
class SessionDetail:
    template: TrainingSession
    exceptions: list[TrainingSessionException] = field(default_factory=list)
    occurrences_count: int = 0


def _as_changes(data: Changes) -> dict[str, Any]:
    if isinstance(data, BaseModel):
        return data.model_dump(exclude_unset=True)
    return dict(data)


class SchedulingService:
    def __init__(
        self,
        session_factory: Optional[Callable[[], Session]] = None,
        settings: Optional[Settings] = None,
    ) -> None:
        self._session_factory = session_factory
        self.settings = settings or get_settings()

    def _transaction(self):
        return session_scope(self._session_factory)

    def _coordinator(self, session: Session) -> SeriesEditCoordinator:
        return SeriesEditCoordinator(session, lock_timeout_ms=self.settings.schedule_lock_timeout_ms)

    @staticmethod
    def _get_template(session: Session, club_id: int, session_id: int) -> TrainingSession:
        stmt = select(TrainingSession).where(TrainingSession.id == session_id, TrainingSession.club_id == club_id)
        template = session.execute(stmt).scalar_one_or_none()
        if template is None:
            raise SessionNotFound("Training session not found", session_id=session_id)
        return template

    # -- windows --

    def resolve_window(
        self,
        from_date: Optional[date],
        to_date: Optional[date],
        today: Optional[date] = None,
    ) -> tuple[date, date]:
        """Bounded expansion window; open ends default to a forward window from today."""
        default_span = timedelta(days=self.settings.schedule_default_window_days)
        if from_date is None:
            from_date = to_date - default_span if to_date is not None else (today or date.today())
        if to_date is None:
            to_date = from_date + default_span
        if to_date < from_date:
            raise ValidationError("to_date must not be before from_date", from_date=from_date, to_date=to_date)
        if (to_date - from_date).days > self.settings.schedule_max_window_days:
            raise ValidationError(
                f"Date window is limited to {self.settings.schedule_max_window_days} days",
                from_date=from_date,
                to_date=to_date,
            )
        return from_date, to_date

    # -- templates --

    def create_session(self, club_id: int, actor_id: int, data: Union[SessionCreateInput, Mapping[str, Any]]) -> CreatedSeries:
        payload = data if isinstance(data, SessionCreateInput) else SessionCreateInput.model_validate(data)
        validate_recurrence(
            is_recurring=payload.is_recurring,
            anchor_date=payload.anchor_date,
            recurrence_pattern=payload.recurrence_pattern,
            recurrence_days=payload.recurrence_days,
            recurrence_end_date=payload.recurrence_end_date,
        )
        if payload.start_time >= payload.end_time:
            raise ValidationError("start_time must be before end_time")

        with self._transaction() as s:
            teams = load_club_teams(s, club_id, payload.team_ids)
            if payload.season_id is not None:
                self._check_season(s, club_id, payload.season_id)
            recurring = payload.is_recurring
            template = TrainingSession(
                club_id=club_id,
                season_id=payload.season_id,
                title=payload.title,
                description=payload.description,
                session_type=payload.session_type,
                anchor_date=payload.anchor_date,
                start_time=payload.start_time,
                end_time=payload.end_time,
                location=payload.location,
                coach_id=payload.coach_id,
                max_participants=payload.max_participants,
                status=payload.status,
                is_recurring=recurring,
                recurrence_pattern=payload.recurrence_pattern if recurring else None,
                recurrence_days=(normalize_days(payload.recurrence_days) or None) if recurring else None,
                recurrence_end_date=payload.recurrence_end_date if recurring else None,
                created_by=actor_id,
            )
            template.teams = teams
            s.add(template)
            s.flush()
            count = count_occurrences(template)
            logger.info(
                "session_created",
                extra={
                    "ctx_session_id": template.id,
                    "ctx_club_id": club_id,
                    "ctx_recurrence": describe(template),
                    "ctx_occurrences": count,
                },
            )
        return CreatedSeries(template=template, occurrences_count=count)

    @staticmethod
    def _check_season(session: Session, club_id: int, season_id: int) -> None:
        season = session.get(Season, season_id)
        if season is None or season.club_id != club_id:
            raise ValidationError("Unknown season for this club", season_id=season_id)

    def get_session(self, club_id: int, session_id: int) -> SessionDetail:
        with self._transaction() as s:
            template = self._get_template(s, club_id, session_id)
            exceptions = ExceptionStore(s).list_for_template(template.id)
            return SessionDetail(template=template, exceptions=exceptions, occurrences_count=count_occurrences(template))

    def update_session(self, club_id: int, session_id: int, data: Changes, actor_id: Optional[int] = None) -> TrainingSession:
        changes = _as_changes(data)
        with self._transaction() as s:
            if changes.get("season_id") is not None:
                self._check_season(s, club_id, changes["season_id"])
            return self._coordinator(s).edit_all(
                session_id, changes, actor_id=actor_id, club_id=club_id, allow_reschedule_series=True
            )

    def delete_session(self, club_id: int, session_id: int) -> None:
        with self._transaction() as s:
            coordinator = self._coordinator(s)
            template = coordinator.lock_template(session_id, club_id)
            removed = coordinator.store.delete_for_template(template.id)
            template.teams = []
            s.delete(template)
            s.flush()
            logger.info("session_deleted", extra={"ctx_session_id": session_id, "ctx_exceptions_removed": removed})

    def publish_session(self, club_id: int, session_id: int) -> TrainingSession:
        with self._transaction() as s:
            template = self._coordinator(s).lock_template(session_id, club_id)
            if template.status == "cancelled":
                raise SeriesAlreadyCancelled("This session series has been cancelled", session_id=session_id)
            if template.status == "draft":
                template.status = "scheduled"
                s.flush()
                logger.info("session_published", extra={"ctx_session_id": session_id})
            return template

    def cancel_session(self, club_id: int, session_id: int) -> TrainingSession:
        with self._transaction() as s:
            template = self._coordinator(s).lock_template(session_id, club_id)
            if template.status == "cancelled":
                raise SeriesAlreadyCancelled("This session series has already been cancelled", session_id=session_id)
            if template.status != "scheduled":
                raise ValidationError("Only scheduled sessions can be cancelled", status=template.status)
            template.status = "cancelled"
            s.flush()
            logger.info("session_cancelled", extra={"ctx_session_id": session_id})
            return template

    # -- listing --

    def _filtered_templates(self, club_id: int, filters: ScheduleFilters, with_status: bool = True):
        stmt = select(TrainingSession).where(TrainingSession.club_id == club_id)
        if with_status and filters.status:
            stmt = stmt.where(TrainingSession.status == filters.status)
        if filters.season_id is not None:
            stmt = stmt.where(TrainingSession.season_id == filters.season_id)
        if filters.session_type:
            stmt = stmt.where(TrainingSession.session_type == filters.session_type)
        if filters.team_id is not None:
            stmt = stmt.where(
                exists().where(
                    training_session_teams.c.training_session_id == TrainingSession.id,
                    training_session_teams.c.team_id == filters.team_id,
                )
            )
        return stmt

    @staticmethod
    def _overlapping(window_start: date, window_end: date):
        """Templates whose own date range touches the window, or with an occurrence moved into it."""
        in_range = and_(
            TrainingSession.anchor_date <= window_end,
            or_(
                TrainingSession.anchor_date >= window_start,
                and_(TrainingSession.is_recurring.is_(True), TrainingSession.recurrence_end_date >= window_start),
            ),
        )
        moved_in = exists().where(
            TrainingSessionException.training_session_id == TrainingSession.id,
            TrainingSessionException.override_date >= window_start,
            TrainingSessionException.override_date <= window_end,
        )
        return or_(in_range, moved_in)

    def list_occurrences(
        self,
        club_id: int,
        filters: Optional[ScheduleFilters] = None,
        expand: bool = True,
        today: Optional[date] = None,
    ) -> Union[list[TrainingSession], list[VirtualOccurrence]]:
        """Raw template rows (``expand=False``) or resolved occurrences across a window."""
        filters = filters or ScheduleFilters()
        if not expand:
            return self._list_templates(club_id, filters)

        window_start, window_end = self.resolve_window(filters.from_date, filters.to_date, today)
        include_cancelled = filters.include_cancelled or filters.status == "cancelled"
        with self._transaction() as s:
            stmt = self._filtered_templates(club_id, filters, with_status=False).where(
                self._overlapping(window_start, window_end)
            )
            templates = list(s.execute(stmt).scalars())
            occurrences = OccurrenceResolver(ExceptionStore(s)).resolve_many(
                templates, window_start, window_end, include_cancelled=include_cancelled
            )
        if filters.status:
            occurrences = [o for o in occurrences if o.status == filters.status]
        logger.debug(
            "occurrences_listed",
            extra={"ctx_club_id": club_id, "ctx_templates": len(templates), "ctx_occurrences": len(occurrences)},
        )
        return occurrences

    def _list_templates(self, club_id: int, filters: ScheduleFilters) -> list[TrainingSession]:
        with self._transaction() as s:
            stmt = self._filtered_templates(club_id, filters)
            if filters.from_date is not None:
                stmt = stmt.where(
                    or_(
                        TrainingSession.anchor_date >= filters.from_date,
                        and_(
                            TrainingSession.is_recurring.is_(True),
                            TrainingSession.recurrence_end_date >= filters.from_date,
                        ),
                    )
                )
            if filters.to_date is not None:
                stmt = stmt.where(TrainingSession.anchor_date <= filters.to_date)
            stmt = stmt.order_by(
                TrainingSession.anchor_date.desc(), TrainingSession.start_time.desc(), TrainingSession.id.desc()
            )
            return list(s.execute(stmt).scalars())

    def upcoming_occurrences(
        self,
        club_id: int,
        limit: Optional[int] = None,
        today: Optional[date] = None,
    ) -> list[VirtualOccurrence]:
        """Next published occurrences from today onwards."""
        limit = limit or self.settings.upcoming_default_limit
        window_start, window_end = self.resolve_window(today or date.today(), None)
        with self._transaction() as s:
            stmt = (
                select(TrainingSession)
                .where(TrainingSession.club_id == club_id, TrainingSession.status == "scheduled")
                .where(self._overlapping(window_start, window_end))
            )
            templates = list(s.execute(stmt).scalars())
            occurrences = OccurrenceResolver(ExceptionStore(s)).resolve_many(templates, window_start, window_end)
        return [o for o in occurrences if o.status not in ("draft", "cancelled")][:limit]

    # -- occurrence and series edits --

    def cancel_occurrence(self, club_id: int, session_id: int, occurrence_date: date, actor_id: Optional[int] = None):
        with self._transaction() as s:
            return self._coordinator(s).cancel_occurrence(
                session_id, occurrence_date, actor_id=actor_id, club_id=club_id
            )

    def reschedule_occurrence(
        self,
        club_id: int,
        session_id: int,
        occurrence_date: date,
        new_date: date,
        new_start_time=None,
        new_end_time=None,
        actor_id: Optional[int] = None,
    ):
        with self._transaction() as s:
            return self._coordinator(s).reschedule_occurrence(
                session_id,
                occurrence_date,
                new_date,
                new_start_time,
                new_end_time,
                actor_id=actor_id,
                club_id=club_id,
            )

    def modify_occurrence(
        self,
        club_id: int,
        session_id: int,
        occurrence_date: date,
        changes: Changes,
        actor_id: Optional[int] = None,
    ):
        with self._transaction() as s:
            return self._coordinator(s).edit_this(
                session_id, occurrence_date, _as_changes(changes), actor_id=actor_id, club_id=club_id
            )

    def edit_future(
        self,
        club_id: int,
        session_id: int,
        split_date: date,
        changes: Changes,
        actor_id: Optional[int] = None,
    ) -> SplitResult:
        changes = _as_changes(changes)
        with self._transaction() as s:
            if changes.get("season_id") is not None:
                self._check_season(s, club_id, changes["season_id"])
            return self._coordinator(s).edit_future(session_id, split_date, changes, actor_id=actor_id, club_id=club_id)

    def edit_all(self, club_id: int, session_id: int, changes: Changes, actor_id: Optional[int] = None) -> TrainingSession:
        changes = _as_changes(changes)
        with self._transaction() as s:
            if changes.get("season_id") is not None:
                self._check_season(s, club_id, changes["season_id"])
            return self._coordinator(s).edit_all(session_id, changes, actor_id=actor_id, club_id=club_id)

    def delete_exception(self, club_id: int, session_id: int, occurrence_date: date) -> bool:
        with self._transaction() as s:
            return self._coordinator(s).delete_exception(session_id, occurrence_date, club_id=club_id)
