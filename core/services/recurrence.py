"""Recurrence expansion for session templates.

Turns a template's anchor date, pattern, weekday set and end date into the
calendar dates it recurs on. Pure date arithmetic: no I/O, no state, so the
same template and window always give the same dates, which is what lets
occurrence exceptions be keyed by date alone.

Weekday ordinals follow the club calendar convention: 0 = Sunday ... 6 = Saturday.
"""

from __future__ import annotations

from datetime import date, datetime, time
from typing import Any, Iterable, Optional

from dateutil.rrule import DAILY, MONTHLY, WEEKLY, FR, MO, SA, SU, TH, TU, WE, rrule

from core.errors import ValidationError
from core.models import RECURRENCE_PATTERNS

WEEKLY_PATTERNS = {"weekly", "biweekly"}
DAY_NAMES = ["Sun", "Mon", "Tue", "Wed", "Thu", "Fri", "Sat"]
# Indexed by Sunday-based ordinal.
RRULE_WEEKDAYS = (SU, MO, TU, WE, TH, FR, SA)


def weekday_ordinal(day: date) -> int:
    """Sunday-based weekday ordinal (0 = Sun, 1 = Mon, ... 6 = Sat)."""
    return (day.weekday() + 1) % 7


def normalize_days(days: Optional[Iterable[int]]) -> list[int]:
    return sorted({int(d) for d in days}) if days else []


def _midnight(day: date) -> datetime:
    return datetime.combine(day, time.min)


def build_rule(template: Any) -> rrule:
    """The dateutil rule for a recurring template, starting at its anchor date.

    Weeks start on Sunday, so a biweekly series keeps the even weeks counted
    from the week that contains the anchor. Monthly series repeat on the
    anchor's day of month, falling back to the last day of shorter months.
    """
    anchor = template.anchor_date
    until = _midnight(template.recurrence_end_date) if template.recurrence_end_date is not None else None
    pattern = template.recurrence_pattern
    if pattern == "daily":
        return rrule(DAILY, dtstart=_midnight(anchor), until=until)
    if pattern in WEEKLY_PATTERNS:
        # Rows written before day sets were mandatory recur on the anchor's weekday.
        days = normalize_days(template.recurrence_days) or [weekday_ordinal(anchor)]
        return rrule(
            WEEKLY,
            interval=2 if pattern == "biweekly" else 1,
            byweekday=[RRULE_WEEKDAYS[d] for d in days],
            wkst=SU,
            dtstart=_midnight(anchor),
            until=until,
        )
    if pattern == "monthly":
        return rrule(MONTHLY, bymonthday=(anchor.day, -1), bysetpos=1, dtstart=_midnight(anchor), until=until)
    raise ValidationError(f"Unknown recurrence pattern: {pattern!r}", recurrence_pattern=pattern)


def expand(template: Any, window_start: date, window_end: date) -> list[date]:
    """Return the sorted dates ``template`` recurs on inside ``[window_start, window_end]``.

    A non-recurring template yields its anchor date when it falls in the
    window. A recurring template never yields dates before its anchor or
    after its ``recurrence_end_date``; a head template truncated to before its
    own anchor (a closed series) yields nothing.
    """
    anchor = template.anchor_date
    if not template.is_recurring:
        return [anchor] if window_start <= anchor <= window_end else []

    rule = build_rule(template)
    end_date = template.recurrence_end_date
    stop = min(end_date, window_end) if end_date is not None else window_end
    start = max(anchor, window_start)
    if start > stop:
        return []
    return [occurrence.date() for occurrence in rule.between(_midnight(start), _midnight(stop), inc=True)]


def occurs_on(template: Any, day: date) -> bool:
    """True when ``day`` is one of the dates the template currently produces."""
    return bool(expand(template, day, day))


def last_occurrence_bound(template: Any) -> date:
    """Upper bound of the dates a template can produce (its anchor when one-off)."""
    if template.is_recurring and template.recurrence_end_date is not None:
        return template.recurrence_end_date
    return template.anchor_date


def count_occurrences(template: Any) -> int:
    return len(expand(template, template.anchor_date, last_occurrence_bound(template)))


def validate_recurrence(
    *,
    is_recurring: bool,
    anchor_date: date,
    recurrence_pattern: Optional[str],
    recurrence_days: Optional[Iterable[int]],
    recurrence_end_date: Optional[date],
) -> None:
    """Raise ValidationError for recurrence parameters that cannot define a series."""
    if not is_recurring:
        return
    if recurrence_pattern not in RECURRENCE_PATTERNS:
        raise ValidationError(
            f"recurrence_pattern must be one of {', '.join(RECURRENCE_PATTERNS)}",
            recurrence_pattern=recurrence_pattern,
        )
    if recurrence_end_date is None:
        raise ValidationError("recurrence_end_date is required for recurring sessions")
    if recurrence_end_date < anchor_date:
        raise ValidationError(
            "recurrence_end_date must not be before the first session date",
            anchor_date=anchor_date,
            recurrence_end_date=recurrence_end_date,
        )
    days = list(recurrence_days or [])
    if recurrence_pattern in WEEKLY_PATTERNS and not days:
        raise ValidationError(f"recurrence_days is required for {recurrence_pattern} sessions")
    bad = [d for d in days if not isinstance(d, int) or not 0 <= d <= 6]
    if bad:
        raise ValidationError("recurrence_days must be weekday ordinals 0-6", recurrence_days=bad)


def describe(template: Any) -> str:
    """Short human label, e.g. 'weekly on Mon, Wed until 2024-01-31'."""
    if not template.is_recurring:
        return f"once on {template.anchor_date.isoformat()}"
    label = template.recurrence_pattern
    if template.recurrence_pattern in WEEKLY_PATTERNS:
        days = normalize_days(template.recurrence_days)
        label += " on " + ", ".join(DAY_NAMES[d] for d in days)
    if template.recurrence_end_date is not None:
        label += f" until {template.recurrence_end_date.isoformat()}"
    return label
