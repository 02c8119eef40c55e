"""Tests for the scheduling service facade."""

from __future__ import annotations

from datetime import date, time, timedelta

import pytest

from core.config import Settings
from core.errors import SeriesAlreadyCancelled, SessionNotFound, ValidationError
from core.services.scheduling import ScheduleFilters, SchedulingService


@pytest.fixture
def service(session_factory):
    return SchedulingService(session_factory)


def _payload(**overrides):
    data = {
        "title": "Tuesday drills",
        "anchor_date": date(2024, 3, 5),
        "start_time": time(17, 0),
        "end_time": time(18, 15),
        "status": "scheduled",
        "team_ids": [1],
        "season_id": 1,
        "is_recurring": True,
        "recurrence_pattern": "weekly",
        "recurrence_days": [2],
        "recurrence_end_date": date(2024, 3, 26),
    }
    data.update(overrides)
    return data


# ── Create / read ──


def test_create_counts_occurrences(service):
    created = service.create_session(1, 7, _payload())
    assert created.occurrences_count == 4
    assert created.template.team_ids == [1]
    assert created.template.created_by == 7
    assert created.template.recurrence_days == [2]


def test_create_one_off_clears_recurrence_fields(service):
    created = service.create_session(
        1, 7, _payload(is_recurring=False, recurrence_pattern="weekly", recurrence_days=[2], recurrence_end_date=None)
    )
    t = created.template
    assert created.occurrences_count == 1
    assert t.recurrence_pattern is None
    assert t.recurrence_days is None


def test_create_rejects_other_club_team(service):
    with pytest.raises(ValidationError) as exc:
        service.create_session(1, 7, _payload(team_ids=[1, 3]))
    assert exc.value.context["team_ids"] == [3]


def test_create_rejects_other_club_season(service):
    with pytest.raises(ValidationError):
        service.create_session(1, 7, _payload(season_id=2))


def test_create_rejects_inverted_times(service):
    with pytest.raises(ValidationError):
        service.create_session(1, 7, _payload(start_time=time(19, 0)))


def test_create_rejects_missing_end_date(service):
    with pytest.raises(ValidationError):
        service.create_session(1, 7, _payload(recurrence_end_date=None))


def test_get_session_includes_exceptions(service):
    t = service.create_session(1, 7, _payload()).template
    service.cancel_occurrence(1, t.id, date(2024, 3, 12))
    detail = service.get_session(1, t.id)
    assert detail.template.id == t.id
    assert [e.occurrence_date for e in detail.exceptions] == [date(2024, 3, 12)]
    assert detail.occurrences_count == 4


def test_other_club_sees_not_found(service):
    t = service.create_session(1, 7, _payload()).template
    with pytest.raises(SessionNotFound):
        service.get_session(2, t.id)
    with pytest.raises(SessionNotFound):
        service.cancel_occurrence(2, t.id, date(2024, 3, 12))
    with pytest.raises(SessionNotFound):
        service.delete_session(2, t.id)
    assert service.list_occurrences(2, ScheduleFilters(from_date=date(2024, 3, 1), to_date=date(2024, 3, 31))) == []


# ── Listing ──


def test_list_filters(service):
    service.create_session(1, 7, _payload())
    service.create_session(1, 7, _payload(title="Goalkeeping", session_type="practice", team_ids=[2], season_id=None))
    march = dict(from_date=date(2024, 3, 1), to_date=date(2024, 3, 31))

    assert len(service.list_occurrences(1, ScheduleFilters(**march))) == 8
    assert {o.title for o in service.list_occurrences(1, ScheduleFilters(team_id=2, **march))} == {"Goalkeeping"}
    assert {o.title for o in service.list_occurrences(1, ScheduleFilters(season_id=1, **march))} == {"Tuesday drills"}
    assert {o.title for o in service.list_occurrences(1, ScheduleFilters(session_type="practice", **march))} == {
        "Goalkeeping"
    }


def test_status_filter_cancelled_includes_cancelled_occurrences(service):
    t = service.create_session(1, 7, _payload()).template
    service.cancel_occurrence(1, t.id, date(2024, 3, 19))
    cancelled = service.list_occurrences(
        1, ScheduleFilters(from_date=date(2024, 3, 1), to_date=date(2024, 3, 31), status="cancelled")
    )
    assert [o.effective_date for o in cancelled] == [date(2024, 3, 19)]


def test_list_without_expand_returns_templates_newest_first(service):
    service.create_session(1, 7, _payload(title="Older block"))
    service.create_session(1, 7, _payload(title="Newer block", anchor_date=date(2024, 4, 2), recurrence_end_date=date(2024, 4, 30)))
    rows = service.list_occurrences(1, ScheduleFilters(), expand=False)
    assert [r.title for r in rows] == ["Newer block", "Older block"]


def test_default_window_starts_today(service):
    today = date(2024, 3, 10)
    service.create_session(1, 7, _payload())
    occurrences = service.list_occurrences(1, today=today)
    assert [o.effective_date for o in occurrences] == [date(2024, 3, 12), date(2024, 3, 19), date(2024, 3, 26)]


def test_window_limits(service):
    with pytest.raises(ValidationError):
        service.resolve_window(date(2024, 3, 2), date(2024, 3, 1))
    with pytest.raises(ValidationError):
        service.resolve_window(date(2024, 1, 1), date(2026, 1, 3))
    assert service.resolve_window(None, None, today=date(2024, 1, 1)) == (date(2024, 1, 1), date(2024, 12, 31))


def test_window_respects_settings(session_factory):
    service = SchedulingService(session_factory, Settings(database_url="x", schedule_default_window_days=7))
    start, end = service.resolve_window(date(2024, 1, 1), None)
    assert end - start == timedelta(days=7)


def test_upcoming_skips_drafts_and_cancelled(service):
    service.create_session(1, 7, _payload(title="Draft plan", status="draft"))
    t = service.create_session(1, 7, _payload()).template
    service.cancel_occurrence(1, t.id, date(2024, 3, 12))
    upcoming = service.upcoming_occurrences(1, limit=2, today=date(2024, 3, 6))
    assert [o.effective_date for o in upcoming] == [date(2024, 3, 19), date(2024, 3, 26)]
    assert all(o.title == "Tuesday drills" for o in upcoming)


# ── Lifecycle ──


def test_publish_then_cancel(service):
    t = service.create_session(1, 7, _payload(status="draft")).template
    assert service.publish_session(1, t.id).status == "scheduled"
    assert service.publish_session(1, t.id).status == "scheduled"
    assert service.cancel_session(1, t.id).status == "cancelled"
    with pytest.raises(SeriesAlreadyCancelled):
        service.cancel_session(1, t.id)
    with pytest.raises(SeriesAlreadyCancelled):
        service.publish_session(1, t.id)


def test_cancel_draft_rejected(service):
    t = service.create_session(1, 7, _payload(status="draft")).template
    with pytest.raises(ValidationError):
        service.cancel_session(1, t.id)


def test_update_session_can_move_series_without_exceptions(service):
    t = service.create_session(1, 7, _payload()).template
    updated = service.update_session(1, t.id, {"anchor_date": date(2024, 3, 7), "recurrence_days": [4]})
    assert updated.anchor_date == date(2024, 3, 7)
    assert service.get_session(1, t.id).occurrences_count == 3


def test_update_session_refuses_move_with_exceptions(service):
    t = service.create_session(1, 7, _payload()).template
    service.modify_occurrence(1, t.id, date(2024, 3, 12), {"location": "Hall"})
    with pytest.raises(ValidationError):
        service.update_session(1, t.id, {"recurrence_days": [4]})


def test_update_session_to_one_off(service):
    t = service.create_session(1, 7, _payload()).template
    updated = service.update_session(1, t.id, {"is_recurring": False})
    assert updated.recurrence_pattern is None
    assert updated.recurrence_end_date is None


def test_delete_session_removes_template_and_exceptions(service):
    t = service.create_session(1, 7, _payload()).template
    service.cancel_occurrence(1, t.id, date(2024, 3, 12))
    service.delete_session(1, t.id)
    with pytest.raises(SessionNotFound):
        service.get_session(1, t.id)
