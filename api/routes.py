from __future__ import annotations

import logging
from datetime import date
from typing import Annotated, Optional, Union

from fastapi import APIRouter, Depends, Query, Response

from api.auth import AuthPrincipal, get_current_principal, require_manager
from api.deps import get_scheduling_service
from api.schemas import (
    CreatedSeriesOut,
    ExceptionOut,
    HealthOut,
    OccurrenceListOut,
    OccurrenceOut,
    SessionDetailOut,
    SessionOut,
    SplitOut,
)
from core.config import get_settings
from core.services.scheduling import ScheduleFilters, SchedulingService
from core.validators import (
    FutureChangeInput,
    OccurrenceChangeInput,
    RescheduleInput,
    SeriesChangeInput,
    SessionCreateInput,
    SessionUpdateInput,
)

logger = logging.getLogger(__name__)
router = APIRouter(prefix="/api/v1")

Reader = Annotated[AuthPrincipal, Depends(get_current_principal)]
Manager = Annotated[AuthPrincipal, Depends(require_manager)]
Service = Annotated[SchedulingService, Depends(get_scheduling_service)]


@router.get("/health", response_model=HealthOut, tags=["system"])
def health():
    return HealthOut(status="ok", environment=get_settings().app_env)


# ── Templates ──


@router.post("/sessions", response_model=CreatedSeriesOut, status_code=201, tags=["sessions"])
def create_session(body: SessionCreateInput, principal: Manager, service: Service):
    created = service.create_session(principal.club_id, principal.user_id, body)
    return CreatedSeriesOut(
        session=SessionOut.model_validate(created.template),
        occurrences_count=created.occurrences_count,
    )


@router.get("/sessions", response_model=Union[OccurrenceListOut, list[SessionOut]], tags=["sessions"])
def list_sessions(
    principal: Reader,
    service: Service,
    expand: bool = Query(True),
    from_date: Optional[date] = Query(None),
    to_date: Optional[date] = Query(None),
    team_id: Optional[int] = Query(None, gt=0),
    status: Optional[str] = Query(None),
    season_id: Optional[int] = Query(None, gt=0),
    session_type: Optional[str] = Query(None),
    include_cancelled: bool = Query(False),
):
    filters = ScheduleFilters(
        from_date=from_date,
        to_date=to_date,
        team_id=team_id,
        status=status,
        season_id=season_id,
        session_type=session_type,
        include_cancelled=include_cancelled,
    )
    if not expand:
        rows = service.list_occurrences(principal.club_id, filters, expand=False)
        return [SessionOut.model_validate(r) for r in rows]

    window_start, window_end = service.resolve_window(from_date, to_date)
    filters.from_date, filters.to_date = window_start, window_end
    occurrences = service.list_occurrences(principal.club_id, filters, expand=True)
    return OccurrenceListOut(
        from_date=window_start,
        to_date=window_end,
        total=len(occurrences),
        items=[OccurrenceOut.model_validate(o) for o in occurrences],
    )


@router.get("/sessions/upcoming", response_model=list[OccurrenceOut], tags=["sessions"])
def upcoming_sessions(principal: Reader, service: Service, limit: Optional[int] = Query(None, ge=1, le=100)):
    return [OccurrenceOut.model_validate(o) for o in service.upcoming_occurrences(principal.club_id, limit=limit)]


@router.get("/sessions/{session_id}", response_model=SessionDetailOut, tags=["sessions"])
def get_session(session_id: int, principal: Reader, service: Service):
    detail = service.get_session(principal.club_id, session_id)
    return SessionDetailOut(
        session=SessionOut.model_validate(detail.template),
        exceptions=[ExceptionOut.model_validate(e) for e in detail.exceptions],
        occurrences_count=detail.occurrences_count,
    )


@router.put("/sessions/{session_id}", response_model=SessionOut, tags=["sessions"])
def update_session(session_id: int, body: SessionUpdateInput, principal: Manager, service: Service):
    template = service.update_session(principal.club_id, session_id, body, actor_id=principal.user_id)
    return SessionOut.model_validate(template)


@router.delete("/sessions/{session_id}", status_code=204, tags=["sessions"])
def delete_session(session_id: int, principal: Manager, service: Service):
    service.delete_session(principal.club_id, session_id)
    return Response(status_code=204)


@router.post("/sessions/{session_id}/publish", response_model=SessionOut, tags=["sessions"])
def publish_session(session_id: int, principal: Manager, service: Service):
    return SessionOut.model_validate(service.publish_session(principal.club_id, session_id))


@router.post("/sessions/{session_id}/cancel", response_model=SessionOut, tags=["sessions"])
def cancel_session(session_id: int, principal: Manager, service: Service):
    return SessionOut.model_validate(service.cancel_session(principal.club_id, session_id))


# ── Occurrences ──


@router.post("/sessions/{session_id}/occurrences/{occurrence_date}/cancel", response_model=ExceptionOut, tags=["occurrences"])
def cancel_occurrence(session_id: int, occurrence_date: date, principal: Manager, service: Service):
    row = service.cancel_occurrence(principal.club_id, session_id, occurrence_date, actor_id=principal.user_id)
    return ExceptionOut.model_validate(row)


@router.post("/sessions/{session_id}/occurrences/{occurrence_date}/reschedule", response_model=ExceptionOut, tags=["occurrences"])
def reschedule_occurrence(
    session_id: int,
    occurrence_date: date,
    body: RescheduleInput,
    principal: Manager,
    service: Service,
):
    row = service.reschedule_occurrence(
        principal.club_id,
        session_id,
        occurrence_date,
        body.new_date,
        body.new_start_time,
        body.new_end_time,
        actor_id=principal.user_id,
    )
    return ExceptionOut.model_validate(row)


@router.patch("/sessions/{session_id}/occurrences/{occurrence_date}", response_model=ExceptionOut, tags=["occurrences"])
def modify_occurrence(
    session_id: int,
    occurrence_date: date,
    body: OccurrenceChangeInput,
    principal: Manager,
    service: Service,
):
    row = service.modify_occurrence(principal.club_id, session_id, occurrence_date, body, actor_id=principal.user_id)
    return ExceptionOut.model_validate(row)


@router.patch("/sessions/{session_id}/occurrences/{occurrence_date}/future", response_model=SplitOut, tags=["occurrences"])
def edit_future(
    session_id: int,
    occurrence_date: date,
    body: FutureChangeInput,
    principal: Manager,
    service: Service,
):
    result = service.edit_future(principal.club_id, session_id, occurrence_date, body, actor_id=principal.user_id)
    return SplitOut(
        head=SessionOut.model_validate(result.head),
        tail=SessionOut.model_validate(result.tail),
        moved_exceptions=result.moved_exceptions,
        head_closed=result.head_closed,
    )


@router.patch("/sessions/{session_id}/all", response_model=SessionOut, tags=["occurrences"])
def edit_all(session_id: int, body: SeriesChangeInput, principal: Manager, service: Service):
    template = service.edit_all(principal.club_id, session_id, body, actor_id=principal.user_id)
    return SessionOut.model_validate(template)


@router.delete("/sessions/{session_id}/occurrences/{occurrence_date}/exception", status_code=204, tags=["occurrences"])
def delete_exception(session_id: int, occurrence_date: date, principal: Manager, service: Service):
    service.delete_exception(principal.club_id, session_id, occurrence_date)
    return Response(status_code=204)
