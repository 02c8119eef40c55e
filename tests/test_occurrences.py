"""Tests for occurrence resolution (template + exception overlay)."""

from __future__ import annotations

from datetime import date, time

import pytest

from core.services.scheduling import ScheduleFilters, SchedulingService

JAN = ScheduleFilters(from_date=date(2024, 1, 1), to_date=date(2024, 1, 31))


@pytest.fixture
def service(session_factory):
    return SchedulingService(session_factory)


@pytest.fixture
def weekly(service):
    created = service.create_session(
        1,
        7,
        {
            "title": "Mon/Wed squad",
            "anchor_date": date(2024, 1, 1),
            "start_time": time(18, 0),
            "end_time": time(19, 30),
            "location": "Main pitch",
            "status": "scheduled",
            "team_ids": [1],
            "is_recurring": True,
            "recurrence_pattern": "weekly",
            "recurrence_days": [1, 3],
            "recurrence_end_date": date(2024, 1, 31),
        },
    )
    return created.template


def _by_date(occurrences):
    return {o.effective_date: o for o in occurrences}


def test_plain_series_resolves_template_fields(service, weekly):
    occurrences = service.list_occurrences(1, JAN)
    assert len(occurrences) == 10
    first = occurrences[0]
    assert first.effective_date == date(2024, 1, 1)
    assert first.title == "Mon/Wed squad"
    assert first.team_ids == [1]
    assert first.is_exception is False


def test_modified_exception_overrides_only_its_fields(service, weekly):
    service.modify_occurrence(1, weekly.id, date(2024, 1, 10), {"location": "Indoor hall"})
    occ = _by_date(service.list_occurrences(1, JAN))[date(2024, 1, 10)]
    assert occ.location == "Indoor hall"
    assert occ.title == "Mon/Wed squad"
    assert occ.start_time == time(18, 0)
    assert occ.exception_type == "modified"
    assert occ.is_exception is True


def test_cancelled_occurrence_is_suppressed_by_default(service, weekly):
    service.cancel_occurrence(1, weekly.id, date(2024, 1, 15))
    assert date(2024, 1, 15) not in _by_date(service.list_occurrences(1, JAN))

    with_cancelled = service.list_occurrences(
        1, ScheduleFilters(from_date=date(2024, 1, 1), to_date=date(2024, 1, 31), include_cancelled=True)
    )
    assert _by_date(with_cancelled)[date(2024, 1, 15)].status == "cancelled"


def test_template_edit_shows_through_unexcepted_occurrences(service, weekly):
    service.modify_occurrence(1, weekly.id, date(2024, 1, 3), {"title": "Keepers only"})
    service.edit_all(1, weekly.id, {"title": "Squad training"})
    occurrences = _by_date(service.list_occurrences(1, JAN))
    assert occurrences[date(2024, 1, 3)].title == "Keepers only"
    assert occurrences[date(2024, 1, 8)].title == "Squad training"


def test_reschedule_uses_effective_date_for_window(service, weekly):
    service.reschedule_occurrence(1, weekly.id, date(2024, 1, 31), date(2024, 2, 2))
    january = _by_date(service.list_occurrences(1, JAN))
    assert date(2024, 1, 31) not in january
    february = service.list_occurrences(1, ScheduleFilters(from_date=date(2024, 2, 1), to_date=date(2024, 2, 29)))
    assert [(o.occurrence_date, o.effective_date) for o in february] == [(date(2024, 1, 31), date(2024, 2, 2))]
    assert february[0].is_rescheduled is True


def test_reschedule_into_window_from_outside(service, weekly):
    service.reschedule_occurrence(1, weekly.id, date(2024, 1, 1), date(2023, 12, 30), time(10, 0), time(11, 0))
    december = service.list_occurrences(1, ScheduleFilters(from_date=date(2023, 12, 1), to_date=date(2023, 12, 31)))
    assert len(december) == 1
    assert december[0].start_time == time(10, 0)
    assert december[0].exception_type == "rescheduled"


def test_results_sorted_across_templates(service, weekly):
    service.create_session(
        1,
        7,
        {
            "title": "Early session",
            "anchor_date": date(2024, 1, 3),
            "start_time": time(7, 0),
            "end_time": time(8, 0),
            "status": "scheduled",
        },
    )
    occurrences = service.list_occurrences(1, ScheduleFilters(from_date=date(2024, 1, 3), to_date=date(2024, 1, 3)))
    assert [o.title for o in occurrences] == ["Early session", "Mon/Wed squad"]
