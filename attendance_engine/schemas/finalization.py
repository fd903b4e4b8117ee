"""
Finalization job and calendar schemas
"""
from datetime import date, datetime
from typing import Any, Dict, List, Optional
from pydantic import BaseModel, ConfigDict, Field, field_serializer

from attendance_engine.models.finalization import FinalizationRunStatus
from attendance_engine.utils.datetime_utils import iso_org


class FinalizationRequest(BaseModel):
    work_date: Optional[date] = Field(None, description="Date to finalize; defaults to yesterday")


class FinalizationSummaryOut(BaseModel):
    work_date: date
    calendar_class: Optional[str] = None
    run_id: Optional[int] = None
    finalized: int
    skipped: int
    flagged: int
    errored: int
    already_finalized: int
    deferred: int
    errors: List[Dict[str, Any]] = []


class FinalizationRunOut(BaseModel):
    id: int
    work_date: date
    calendar_class: Optional[str] = None
    status: FinalizationRunStatus
    finalized: int
    skipped: int
    flagged: int
    errored: int
    already_finalized: int
    deferred: int
    errors: Optional[List[Dict[str, Any]]] = None
    triggered_by: Optional[int] = None
    started_at: datetime
    completed_at: Optional[datetime] = None

    model_config = ConfigDict(from_attributes=True)

    @field_serializer("started_at", "completed_at", when_used="always")
    @classmethod
    def _ser_datetime(cls, dt: Optional[datetime]) -> Optional[str]:
        return iso_org(dt)


class CalendarDayOut(BaseModel):
    day: date
    calendar_class: str
    holiday_name: Optional[str] = None
    weekend_days: List[int]
