"""Occurrence resolution: template dates overlaid with per-occurrence exceptions.

Exceptions are an overlay on the template, so an edit to the template shows
up on every occurrence that has no exception without touching exception rows.
"""

from __future__ import annotations

from dataclasses import dataclass, field, replace
from datetime import date, time
from typing import Iterable, Mapping, Optional

from core.models import TrainingSession, TrainingSessionException
from core.services.exception_store import ExceptionStore, OccurrenceOverrides
from core.services.recurrence import expand, occurs_on


@dataclass
class VirtualOccurrence:
    """One computed calendar instance of a template. Never persisted."""

    template_id: int
    occurrence_date: date
    effective_date: date
    start_time: time
    end_time: time
    title: str
    description: Optional[str]
    session_type: str
    location: Optional[str]
    coach_id: Optional[int]
    max_participants: Optional[int]
    status: str
    club_id: int
    season_id: Optional[int]
    is_recurring: bool
    team_ids: list[int] = field(default_factory=list)
    is_exception: bool = False
    exception_id: Optional[int] = None
    exception_type: Optional[str] = None

    @property
    def is_rescheduled(self) -> bool:
        return self.effective_date != self.occurrence_date


def base_occurrence(template: TrainingSession, occurrence_date: date) -> VirtualOccurrence:
    return VirtualOccurrence(
        template_id=template.id,
        occurrence_date=occurrence_date,
        effective_date=occurrence_date,
        start_time=template.start_time,
        end_time=template.end_time,
        title=template.title,
        description=template.description,
        session_type=template.session_type,
        location=template.location,
        coach_id=template.coach_id,
        max_participants=template.max_participants,
        status=template.status,
        club_id=template.club_id,
        season_id=template.season_id,
        is_recurring=bool(template.is_recurring),
        team_ids=list(template.team_ids),
    )


def merge_occurrence(
    template: TrainingSession,
    occurrence_date: date,
    exception: Optional[TrainingSessionException] = None,
) -> VirtualOccurrence:
    """Template fields for ``occurrence_date`` with the exception's non-null overrides on top."""
    occurrence = base_occurrence(template, occurrence_date)
    if exception is None:
        return occurrence

    overrides = OccurrenceOverrides.from_row(exception).set_fields()
    new_date = overrides.pop("date", None)
    occurrence = replace(
        occurrence,
        **overrides,
        is_exception=True,
        exception_id=exception.id,
        exception_type=exception.exception_type,
    )
    if exception.exception_type == "rescheduled" and new_date is not None:
        occurrence.effective_date = new_date
    elif exception.exception_type == "cancelled":
        occurrence.status = "cancelled"
    return occurrence


def sort_occurrences(occurrences: Iterable[VirtualOccurrence]) -> list[VirtualOccurrence]:
    return sorted(occurrences, key=lambda o: (o.effective_date, o.start_time, o.template_id))


def resolve_with_exceptions(
    template: TrainingSession,
    exceptions: Mapping[date, TrainingSessionException],
    window_start: date,
    window_end: date,
    include_cancelled: bool = False,
) -> list[VirtualOccurrence]:
    """Resolve ``template`` over a window given its exceptions keyed by original date.

    The window applies to the effective date: an occurrence rescheduled into
    the window from outside it is included, one moved out of it is not.
    Cancelled occurrences are dropped unless ``include_cancelled``.
    """
    candidates = set(expand(template, window_start, window_end))
    for original_date, exception in exceptions.items():
        moved_to = exception.override_date
        if moved_to is not None and window_start <= moved_to <= window_end and occurs_on(template, original_date):
            candidates.add(original_date)

    resolved = []
    for occurrence_date in candidates:
        exception = exceptions.get(occurrence_date)
        if exception is not None and exception.exception_type == "cancelled" and not include_cancelled:
            continue
        occurrence = merge_occurrence(template, occurrence_date, exception)
        if window_start <= occurrence.effective_date <= window_end:
            resolved.append(occurrence)
    return sort_occurrences(resolved)


class OccurrenceResolver:
    def __init__(self, store: ExceptionStore) -> None:
        self.store = store

    def resolve(
        self,
        template: TrainingSession,
        window_start: date,
        window_end: date,
        include_cancelled: bool = False,
    ) -> list[VirtualOccurrence]:
        exceptions = self.store.by_date(template.id)
        return resolve_with_exceptions(template, exceptions, window_start, window_end, include_cancelled)

    def resolve_many(
        self,
        templates: Iterable[TrainingSession],
        window_start: date,
        window_end: date,
        include_cancelled: bool = False,
    ) -> list[VirtualOccurrence]:
        """Resolve several templates into one calendar, loading exceptions in a single query."""
        templates = list(templates)
        exceptions = self.store.by_template(t.id for t in templates)
        resolved: list[VirtualOccurrence] = []
        for template in templates:
            resolved.extend(
                resolve_with_exceptions(template, exceptions[template.id], window_start, window_end, include_cancelled)
            )
        return sort_occurrences(resolved)
