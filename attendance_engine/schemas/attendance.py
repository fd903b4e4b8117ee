"""
Attendance schemas: session/break requests and the record aggregate DTOs.
All response datetimes are rendered in the organization timezone with offset.
"""
from datetime import date, datetime
from decimal import Decimal
from typing import List, Optional
from pydantic import BaseModel, ConfigDict, Field, field_serializer, field_validator

from attendance_engine.models.attendance import (
    ApprovalStatus,
    AttendanceStatus,
    HalfDayType,
    RemarkSource,
    SessionStatus,
    WorkLocation,
)
from attendance_engine.utils.datetime_utils import iso_org


class SessionStartRequest(BaseModel):
    """Clock-in. location_details is required for client_site."""
    work_location: WorkLocation = Field(default=WorkLocation.OFFICE, description="office / wfh / client_site")
    location_details: Optional[str] = Field(None, max_length=500)
    at: Optional[datetime] = Field(None, description="Client-captured event time; defaults to server time")
    source: str = Field(default="WEB", description="MOBILE/WEB")


class EventTimeRequest(BaseModel):
    """Clock-out / break start / break end. Optional client-captured event time."""
    at: Optional[datetime] = Field(None, description="Client-captured event time; defaults to server time")
    source: str = Field(default="WEB", description="MOBILE/WEB")


class BreakDto(BaseModel):
    id: int
    session_id: int
    start_time: datetime
    end_time: Optional[datetime] = None
    duration_minutes: int

    model_config = ConfigDict(from_attributes=True)

    @field_serializer("start_time", "end_time", when_used="always")
    @classmethod
    def _ser_datetime(cls, dt: Optional[datetime]) -> Optional[str]:
        return iso_org(dt)


class SessionDto(BaseModel):
    id: int
    record_id: int
    check_in: datetime
    check_out: Optional[datetime] = None
    work_location: WorkLocation
    location_details: Optional[str] = None
    status: SessionStatus
    total_break_minutes: int
    worked_minutes: int
    auto_closed: bool
    source: str
    breaks: List[BreakDto] = []

    model_config = ConfigDict(from_attributes=True)

    @field_serializer("check_in", "check_out", when_used="always")
    @classmethod
    def _ser_datetime(cls, dt: Optional[datetime]) -> Optional[str]:
        return iso_org(dt)


class RemarkDto(BaseModel):
    id: int
    note: str
    source: RemarkSource
    added_by: Optional[int] = None
    added_at: datetime

    model_config = ConfigDict(from_attributes=True)

    @field_serializer("added_at", when_used="always")
    @classmethod
    def _ser_datetime(cls, dt: Optional[datetime]) -> Optional[str]:
        return iso_org(dt)


class AttendanceRecordDto(BaseModel):
    id: int
    employee_id: int
    work_date: date
    status: AttendanceStatus
    status_reason: Optional[str] = None
    half_day_type: Optional[HalfDayType] = None
    is_late: bool
    late_minutes: int
    is_early_departure: bool
    early_exit_minutes: int
    worked_minutes: int
    work_hours: Decimal
    break_minutes: int
    overtime_minutes: int
    approval_status: ApprovalStatus
    finalized_at: Optional[datetime] = None
    version_id: int
    sessions: List[SessionDto] = []
    remarks: List[RemarkDto] = []

    model_config = ConfigDict(from_attributes=True)

    @field_serializer("finalized_at", when_used="always")
    @classmethod
    def _ser_datetime(cls, dt: Optional[datetime]) -> Optional[str]:
        return iso_org(dt)

    @field_serializer("work_hours", when_used="always")
    @classmethod
    def _ser_hours(cls, v: Decimal) -> float:
        return float(v)


class AttendanceRecordListResponse(BaseModel):
    items: List[AttendanceRecordDto]
    total: int


class TodayResponse(BaseModel):
    """Today's record for the current user; record is null before the first clock-in."""
    work_date: date
    record: Optional[AttendanceRecordDto] = None
    open_session: Optional[SessionDto] = None


# --- Admin corrections ---


class BreakInput(BaseModel):
    start_time: datetime
    end_time: datetime


class SessionInsertRequest(BaseModel):
    """Insert a completed session; structural problems are flagged, not rejected."""
    check_in: datetime
    check_out: datetime
    work_location: WorkLocation = WorkLocation.OFFICE
    location_details: Optional[str] = Field(None, max_length=500)
    breaks: List[BreakInput] = []
    note: Optional[str] = Field(None, max_length=1000)


class ResolveRequest(BaseModel):
    decision: ApprovalStatus = Field(..., description="approved or rejected")
    note: str = Field(..., min_length=1, max_length=1000)

    @field_validator("decision")
    @classmethod
    def check_decision(cls, v: ApprovalStatus) -> ApprovalStatus:
        if v not in (ApprovalStatus.APPROVED, ApprovalStatus.REJECTED):
            raise ValueError("decision must be approved or rejected")
        return v
