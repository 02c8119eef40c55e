"""Persistence for per-occurrence overrides.

Rows are keyed by ``(training_session_id, occurrence_date)`` where the date is
the one the template originally produced. The store holds no business rules
beyond refusing rows for dates the template does not produce.
"""

from __future__ import annotations

import datetime as dt
import logging
from dataclasses import asdict, dataclass, replace
from typing import Any, Iterable, Mapping, Optional

from sqlalchemy import delete, select, update
from sqlalchemy.orm import Session

from core.errors import OccurrenceNotInSeries, ValidationError
from core.models import EXCEPTION_TYPES, TrainingSession, TrainingSessionException
from core.services.recurrence import occurs_on

logger = logging.getLogger(__name__)

OVERRIDE_FIELDS = (
    "date",
    "start_time",
    "end_time",
    "title",
    "description",
    "location",
    "coach_id",
    "max_participants",
    "status",
)


@dataclass(frozen=True)
class OccurrenceOverrides:
    """Sparse override record; ``None`` means "inherit from the template"."""

    date: Optional[dt.date] = None
    start_time: Optional[dt.time] = None
    end_time: Optional[dt.time] = None
    title: Optional[str] = None
    description: Optional[str] = None
    location: Optional[str] = None
    coach_id: Optional[int] = None
    max_participants: Optional[int] = None
    status: Optional[str] = None

    @classmethod
    def from_changes(cls, changes: Mapping[str, Any]) -> "OccurrenceOverrides":
        return cls(**{k: v for k, v in changes.items() if k in OVERRIDE_FIELDS})

    @classmethod
    def from_row(cls, row: TrainingSessionException) -> "OccurrenceOverrides":
        return cls(**{name: getattr(row, f"override_{name}") for name in OVERRIDE_FIELDS})

    def set_fields(self) -> dict[str, Any]:
        return {k: v for k, v in asdict(self).items() if v is not None}

    def merged(self, newer: "OccurrenceOverrides") -> "OccurrenceOverrides":
        return replace(self, **newer.set_fields())

    def is_empty(self) -> bool:
        return not self.set_fields()

    def apply_to(self, row: TrainingSessionException) -> None:
        for name in OVERRIDE_FIELDS:
            setattr(row, f"override_{name}", getattr(self, name))


class ExceptionStore:
    def __init__(self, session: Session) -> None:
        self.session = session

    def get(self, template_id: int, occurrence_date: dt.date) -> Optional[TrainingSessionException]:
        stmt = select(TrainingSessionException).where(
            TrainingSessionException.training_session_id == template_id,
            TrainingSessionException.occurrence_date == occurrence_date,
        )
        return self.session.execute(stmt).scalar_one_or_none()

    def upsert(
        self,
        template: TrainingSession,
        occurrence_date: dt.date,
        exception_type: str,
        overrides: OccurrenceOverrides,
        actor_id: Optional[int] = None,
    ) -> TrainingSessionException:
        """Create or replace the exception for one occurrence.

        The stored override columns are replaced wholesale by ``overrides``, so
        writing the same record twice leaves the same row.
        """
        if exception_type not in EXCEPTION_TYPES:
            raise ValidationError(f"Unknown exception type: {exception_type!r}", exception_type=exception_type)
        if not occurs_on(template, occurrence_date):
            raise OccurrenceNotInSeries(
                "That date is not part of this session series",
                session_id=template.id,
                occurrence_date=occurrence_date,
            )

        row = self.get(template.id, occurrence_date)
        if row is None:
            row = TrainingSessionException(
                training_session_id=template.id,
                occurrence_date=occurrence_date,
                created_by=actor_id,
            )
            self.session.add(row)
        row.exception_type = exception_type
        overrides.apply_to(row)
        self.session.flush()
        return row

    def delete(self, template_id: int, occurrence_date: dt.date) -> bool:
        result = self.session.execute(
            delete(TrainingSessionException).where(
                TrainingSessionException.training_session_id == template_id,
                TrainingSessionException.occurrence_date == occurrence_date,
            )
        )
        return bool(result.rowcount)

    def list_for_template(self, template_id: int) -> list[TrainingSessionException]:
        stmt = (
            select(TrainingSessionException)
            .where(TrainingSessionException.training_session_id == template_id)
            .order_by(TrainingSessionException.occurrence_date)
        )
        return list(self.session.execute(stmt).scalars())

    def list_on_or_after(self, template_id: int, occurrence_date: dt.date) -> list[TrainingSessionException]:
        stmt = (
            select(TrainingSessionException)
            .where(
                TrainingSessionException.training_session_id == template_id,
                TrainingSessionException.occurrence_date >= occurrence_date,
            )
            .order_by(TrainingSessionException.occurrence_date)
        )
        return list(self.session.execute(stmt).scalars())

    def by_date(self, template_id: int) -> dict[dt.date, TrainingSessionException]:
        return {row.occurrence_date: row for row in self.list_for_template(template_id)}

    def by_template(self, template_ids: Iterable[int]) -> dict[int, dict[dt.date, TrainingSessionException]]:
        """Exceptions for many templates in one query, grouped by template then original date."""
        ids = list(template_ids)
        grouped: dict[int, dict[dt.date, TrainingSessionException]] = {tid: {} for tid in ids}
        if not ids:
            return grouped
        stmt = select(TrainingSessionException).where(TrainingSessionException.training_session_id.in_(ids))
        for row in self.session.execute(stmt).scalars():
            grouped[row.training_session_id][row.occurrence_date] = row
        return grouped

    def reassign_template(self, old_template_id: int, new_template_id: int, on_or_after: dt.date) -> int:
        """Move every exception dated on/after ``on_or_after`` to another template.

        A single UPDATE statement, so it lands entirely or not at all.
        """
        stmt = (
            update(TrainingSessionException)
            .where(
                TrainingSessionException.training_session_id == old_template_id,
                TrainingSessionException.occurrence_date >= on_or_after,
            )
            .values(training_session_id=new_template_id, updated_at=dt.datetime.utcnow())
            .execution_options(synchronize_session="fetch")
        )
        moved = self.session.execute(stmt).rowcount or 0
        logger.debug(
            "exceptions_reassigned",
            extra={"ctx_from": old_template_id, "ctx_to": new_template_id, "ctx_count": moved},
        )
        return moved

    def delete_for_template(self, template_id: int) -> int:
        result = self.session.execute(
            delete(TrainingSessionException).where(TrainingSessionException.training_session_id == template_id)
        )
        return result.rowcount or 0
