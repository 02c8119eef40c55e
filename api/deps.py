from __future__ import annotations

from core.services.scheduling import SchedulingService


def get_scheduling_service() -> SchedulingService:
    return SchedulingService()
