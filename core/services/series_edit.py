"""Series edits: this occurrence, this and all future occurrences, the whole series.

Every operation runs inside the caller's transaction and starts by locking
the template row (SELECT ... FOR UPDATE), so two edits of the same series
are serialized and a split can never leave overlapping head/tail ranges.
Validation happens before any write; the caller's transaction rolls back
everything on failure.

Splitting ("future" scope) is a two-node rewrite: the original template
(head) is truncated to end the day before the split, a new template (tail)
starts at the split date, and every exception dated on or after the split
moves to the tail. Each exception therefore always belongs to the template
whose range contains its date.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, replace
from datetime import date, timedelta
from typing import Any, Iterable, Mapping, Optional

from sqlalchemy import select
from sqlalchemy.orm import Session

from core.db import apply_lock_timeout
from core.errors import OccurrenceNotInSeries, SeriesAlreadyCancelled, SessionNotFound, ValidationError
from core.models import OCCURRENCE_STATUSES, SESSION_STATUSES, SESSION_TYPES, Team, TrainingSession, TrainingSessionException
from core.services.exception_store import OVERRIDE_FIELDS, ExceptionStore, OccurrenceOverrides
from core.services.recurrence import expand, normalize_days, occurs_on, validate_recurrence

logger = logging.getLogger(__name__)

SERIES_FIELDS = (
    "title",
    "description",
    "session_type",
    "start_time",
    "end_time",
    "location",
    "coach_id",
    "max_participants",
    "status",
    "season_id",
)
RECURRENCE_FIELDS = ("recurrence_pattern", "recurrence_days", "recurrence_end_date")
# Copied from head to tail on a split; anchor_date and audit columns are set explicitly.
CLONED_FIELDS = SERIES_FIELDS + RECURRENCE_FIELDS + ("club_id",)
# Template columns that cannot be cleared by a series edit.
REQUIRED_FIELDS = ("title", "session_type", "start_time", "end_time", "status", "anchor_date", "is_recurring")


@dataclass
class SplitResult:
    head: TrainingSession
    tail: TrainingSession
    moved_exceptions: int
    head_closed: bool


def load_club_teams(session: Session, club_id: int, team_ids: Iterable[int]) -> list[Team]:
    """Fetch teams by id, rejecting ids that are unknown or belong to another club."""
    wanted = sorted({int(t) for t in team_ids})
    if not wanted:
        return []
    teams = list(session.execute(select(Team).where(Team.id.in_(wanted), Team.club_id == club_id)).scalars())
    missing = sorted(set(wanted) - {t.id for t in teams})
    if missing:
        raise ValidationError("Unknown team ids for this club", team_ids=missing)
    return sorted(teams, key=lambda t: t.id)


def _reject_unknown(changes: Mapping[str, Any], allowed: Iterable[str]) -> None:
    unknown = sorted(set(changes) - set(allowed))
    if unknown:
        raise ValidationError(f"Fields cannot be changed in this scope: {', '.join(unknown)}", fields=unknown)


def _reject_nulls(changes: Mapping[str, Any]) -> None:
    cleared = sorted(name for name in REQUIRED_FIELDS if name in changes and changes[name] is None)
    if cleared:
        raise ValidationError(f"Fields cannot be cleared: {', '.join(cleared)}", fields=cleared)


def _check_field_values(values: Mapping[str, Any], statuses: Iterable[str] = SESSION_STATUSES) -> None:
    status = values.get("status")
    if status is not None and status not in statuses:
        raise ValidationError(f"Unknown status: {status!r}", status=status)
    session_type = values.get("session_type")
    if session_type is not None and session_type not in SESSION_TYPES:
        raise ValidationError(f"Unknown session type: {session_type!r}", session_type=session_type)
    capacity = values.get("max_participants")
    if capacity is not None and capacity < 1:
        raise ValidationError("max_participants must be at least 1")
    if "title" in values and not (values["title"] or "").strip():
        raise ValidationError("title must not be blank")


def _check_times(start_time, end_time) -> None:
    if start_time >= end_time:
        raise ValidationError("start_time must be before end_time", start_time=start_time, end_time=end_time)


def classify_change(template: TrainingSession, occurrence_date: date, overrides: OccurrenceOverrides) -> str:
    """Exception type implied by an override record.

    Cancelling wins; a different date or time is a reschedule; anything else
    is a plain modification.
    """
    if overrides.status == "cancelled":
        return "cancelled"
    if overrides.date is not None and overrides.date != occurrence_date:
        return "rescheduled"
    if overrides.start_time is not None and overrides.start_time != template.start_time:
        return "rescheduled"
    if overrides.end_time is not None and overrides.end_time != template.end_time:
        return "rescheduled"
    return "modified"


class SeriesEditCoordinator:
    def __init__(self, session: Session, lock_timeout_ms: Optional[int] = None) -> None:
        self.session = session
        self.store = ExceptionStore(session)
        self.lock_timeout_ms = lock_timeout_ms

    def lock_template(self, template_id: int, club_id: Optional[int] = None) -> TrainingSession:
        apply_lock_timeout(self.session, self.lock_timeout_ms)
        stmt = (
            select(TrainingSession)
            .where(TrainingSession.id == template_id)
            .with_for_update()
            .execution_options(populate_existing=True)
        )
        if club_id is not None:
            stmt = stmt.where(TrainingSession.club_id == club_id)
        template = self.session.execute(stmt).scalar_one_or_none()
        if template is None:
            raise SessionNotFound("Training session not found", session_id=template_id)
        return template

    @staticmethod
    def _ensure_not_cancelled(template: TrainingSession) -> None:
        if template.status == "cancelled":
            raise SeriesAlreadyCancelled("This session series has been cancelled", session_id=template.id)

    # -- scope: this occurrence --

    def edit_this(
        self,
        template_id: int,
        occurrence_date: date,
        changes: Mapping[str, Any],
        actor_id: Optional[int] = None,
        club_id: Optional[int] = None,
    ) -> TrainingSessionException:
        template = self.lock_template(template_id, club_id)
        self._ensure_not_cancelled(template)
        if not occurs_on(template, occurrence_date):
            raise OccurrenceNotInSeries(
                "That date is not part of this session series",
                session_id=template.id,
                occurrence_date=occurrence_date,
            )
        _reject_unknown(changes, OVERRIDE_FIELDS)
        _check_field_values(changes, statuses=OCCURRENCE_STATUSES)
        requested = OccurrenceOverrides.from_changes(changes)
        if requested.is_empty():
            raise ValidationError("No changes supplied for this occurrence")

        existing = self.store.get(template.id, occurrence_date)
        overrides = requested
        if existing is not None:
            previous = OccurrenceOverrides.from_row(existing)
            if existing.exception_type == "cancelled" and requested.status is None:
                # Editing a cancelled occurrence brings it back.
                previous = replace(previous, status=None)
            overrides = previous.merged(requested)

        _check_times(overrides.start_time or template.start_time, overrides.end_time or template.end_time)
        exception_type = classify_change(template, occurrence_date, overrides)
        row = self.store.upsert(template, occurrence_date, exception_type, overrides, actor_id=actor_id)
        logger.info(
            "occurrence_exception_upserted",
            extra={
                "ctx_session_id": template.id,
                "ctx_occurrence_date": occurrence_date.isoformat(),
                "ctx_exception_type": exception_type,
            },
        )
        return row

    def cancel_occurrence(self, template_id: int, occurrence_date: date, **kwargs) -> TrainingSessionException:
        return self.edit_this(template_id, occurrence_date, {"status": "cancelled"}, **kwargs)

    def reschedule_occurrence(
        self,
        template_id: int,
        occurrence_date: date,
        new_date: date,
        new_start_time=None,
        new_end_time=None,
        **kwargs,
    ) -> TrainingSessionException:
        changes: dict[str, Any] = {"date": new_date}
        if new_start_time is not None:
            changes["start_time"] = new_start_time
        if new_end_time is not None:
            changes["end_time"] = new_end_time
        return self.edit_this(template_id, occurrence_date, changes, **kwargs)

    # -- scope: this and all future occurrences --

    def edit_future(
        self,
        template_id: int,
        split_date: date,
        changes: Mapping[str, Any],
        actor_id: Optional[int] = None,
        club_id: Optional[int] = None,
    ) -> SplitResult:
        head = self.lock_template(template_id, club_id)
        self._ensure_not_cancelled(head)
        if not head.is_recurring:
            raise ValidationError("Only a recurring series can be split; edit the session directly", session_id=head.id)
        if split_date < head.anchor_date or not occurs_on(head, split_date):
            raise OccurrenceNotInSeries(
                "That date is not part of this session series",
                session_id=head.id,
                occurrence_date=split_date,
            )
        _reject_unknown(changes, SERIES_FIELDS + RECURRENCE_FIELDS + ("team_ids",))
        _reject_nulls(changes)
        _check_field_values(changes)

        values = {name: getattr(head, name) for name in CLONED_FIELDS}
        values.update({k: v for k, v in changes.items() if k != "team_ids"})
        values["recurrence_days"] = normalize_days(values["recurrence_days"]) or None
        validate_recurrence(
            is_recurring=True,
            anchor_date=split_date,
            recurrence_pattern=values["recurrence_pattern"],
            recurrence_days=values["recurrence_days"],
            recurrence_end_date=values["recurrence_end_date"],
        )
        _check_times(values["start_time"], values["end_time"])
        if changes.get("team_ids") is not None:
            teams = load_club_teams(self.session, head.club_id, changes["team_ids"])
        else:
            teams = list(head.teams)

        tail = TrainingSession(
            **values,
            anchor_date=split_date,
            is_recurring=True,
            created_by=actor_id if actor_id is not None else head.created_by,
        )
        dropped = [
            row.occurrence_date
            for row in self.store.list_on_or_after(head.id, split_date)
            if not occurs_on(tail, row.occurrence_date)
        ]
        if dropped:
            raise ValidationError(
                "Remove the single-occurrence changes on dates the new pattern no longer produces",
                session_id=head.id,
                occurrence_dates=[d.isoformat() for d in dropped],
            )
        self.session.add(tail)
        self.session.flush()

        head.recurrence_end_date = split_date - timedelta(days=1)
        head_closed = not expand(head, head.anchor_date, head.recurrence_end_date)
        moved = self.store.reassign_template(head.id, tail.id, split_date)
        tail.teams = teams
        self.session.flush()

        logger.info(
            "series_split",
            extra={
                "ctx_head_id": head.id,
                "ctx_tail_id": tail.id,
                "ctx_split_date": split_date.isoformat(),
                "ctx_moved_exceptions": moved,
                "ctx_head_closed": head_closed,
            },
        )
        return SplitResult(head=head, tail=tail, moved_exceptions=moved, head_closed=head_closed)

    # -- scope: the whole series --

    def edit_all(
        self,
        template_id: int,
        changes: Mapping[str, Any],
        actor_id: Optional[int] = None,
        club_id: Optional[int] = None,
        allow_reschedule_series: bool = False,
    ) -> TrainingSession:
        """Apply ``changes`` to the template row in place.

        Existing exceptions stay as they are and keep overriding their own
        occurrences. With ``allow_reschedule_series`` the anchor date and
        recurrence may change too, but only while the series has no
        exceptions, since those are keyed by dates the old rule produced.
        """
        template = self.lock_template(template_id, club_id)
        if template.status == "cancelled" and changes.get("status") in (None, "cancelled"):
            raise SeriesAlreadyCancelled("This session series has been cancelled", session_id=template.id)

        allowed = SERIES_FIELDS + ("team_ids",)
        if allow_reschedule_series:
            allowed += RECURRENCE_FIELDS + ("anchor_date", "is_recurring")
        _reject_unknown(changes, allowed)
        _reject_nulls(changes)
        _check_field_values(changes)

        reshapes_series = any(k in changes for k in RECURRENCE_FIELDS + ("anchor_date", "is_recurring"))
        if reshapes_series:
            if self.store.list_for_template(template.id):
                raise ValidationError(
                    "Remove the single-occurrence changes before moving the whole series",
                    session_id=template.id,
                )
            is_recurring = changes.get("is_recurring", template.is_recurring)
            validate_recurrence(
                is_recurring=is_recurring,
                anchor_date=changes.get("anchor_date", template.anchor_date),
                recurrence_pattern=changes.get("recurrence_pattern", template.recurrence_pattern),
                recurrence_days=changes.get("recurrence_days", template.recurrence_days),
                recurrence_end_date=changes.get("recurrence_end_date", template.recurrence_end_date),
            )
        _check_times(changes.get("start_time", template.start_time), changes.get("end_time", template.end_time))

        teams = None
        if changes.get("team_ids") is not None:
            teams = load_club_teams(self.session, template.club_id, changes["team_ids"])

        for name, value in changes.items():
            if name == "team_ids":
                continue
            if name == "recurrence_days":
                value = normalize_days(value) or None
            setattr(template, name, value)
        if reshapes_series and not template.is_recurring:
            template.recurrence_pattern = None
            template.recurrence_days = None
            template.recurrence_end_date = None
        if teams is not None:
            template.teams = teams
        self.session.flush()

        logger.info(
            "series_updated",
            extra={"ctx_session_id": template.id, "ctx_fields": sorted(changes), "ctx_actor_id": actor_id},
        )
        return template

    # -- restore --

    def delete_exception(self, template_id: int, occurrence_date: date, club_id: Optional[int] = None) -> bool:
        """Drop the exception for one occurrence. Deleting a missing one is a no-op."""
        template = self.lock_template(template_id, club_id)
        removed = self.store.delete(template.id, occurrence_date)
        if removed:
            logger.info(
                "occurrence_restored",
                extra={"ctx_session_id": template.id, "ctx_occurrence_date": occurrence_date.isoformat()},
            )
        return removed
