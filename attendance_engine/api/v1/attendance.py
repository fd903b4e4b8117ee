"""
Attendance endpoints for the current user: clock in/out, breaks, today and history.
Work date is the organization-timezone date of the server clock; an optional
client-captured `at` may not lead the server clock.
"""
import logging
from datetime import date
from typing import Optional
from fastapi import APIRouter, Depends, Query, status
from sqlalchemy.orm import Session

from attendance_engine.core.deps import get_clock, get_current_user
from attendance_engine.db.session import get_db
from attendance_engine.models.employee import Employee
from attendance_engine.schemas.attendance import (
    AttendanceRecordDto,
    AttendanceRecordListResponse,
    BreakDto,
    EventTimeRequest,
    SessionDto,
    SessionStartRequest,
    TodayResponse,
)
from attendance_engine.services import attendance_session_service as svc
from attendance_engine.utils.datetime_utils import Clock, get_work_date

router = APIRouter()
_log = logging.getLogger(__name__)


@router.post("/sessions/start", response_model=SessionDto, status_code=status.HTTP_201_CREATED)
async def start_session_endpoint(
    body: Optional[SessionStartRequest] = None,
    db: Session = Depends(get_db),
    current_user: Employee = Depends(get_current_user),
    clock: Clock = Depends(get_clock),
):
    """
    Clock in. 400 SESSION_ALREADY_OPEN when a session is already open today;
    400 LOCATION_DETAILS_REQUIRED for client_site without details.
    """
    payload = body or SessionStartRequest()
    session = svc.start_session(
        db,
        current_user.id,
        payload.work_location,
        payload.location_details,
        now=clock.now(),
        at=payload.at,
        source=payload.source,
    )
    return SessionDto.model_validate(session)


@router.post("/sessions/end", response_model=SessionDto)
async def end_session_endpoint(
    body: Optional[EventTimeRequest] = None,
    db: Session = Depends(get_db),
    current_user: Employee = Depends(get_current_user),
    clock: Clock = Depends(get_clock),
):
    """Clock out. 400 NO_OPEN_SESSION, or BREAK_IN_PROGRESS while on a break."""
    payload = body or EventTimeRequest()
    session = svc.end_session(db, current_user.id, now=clock.now(), at=payload.at, source=payload.source)
    return SessionDto.model_validate(session)


@router.post("/breaks/start", response_model=BreakDto, status_code=status.HTTP_201_CREATED)
async def start_break_endpoint(
    body: Optional[EventTimeRequest] = None,
    db: Session = Depends(get_db),
    current_user: Employee = Depends(get_current_user),
    clock: Clock = Depends(get_clock),
):
    """Start a break. 400 NO_ACTIVE_SESSION or BREAK_ALREADY_OPEN."""
    payload = body or EventTimeRequest()
    brk = svc.start_break(db, current_user.id, now=clock.now(), at=payload.at)
    return BreakDto.model_validate(brk)


@router.post("/breaks/end", response_model=BreakDto)
async def end_break_endpoint(
    body: Optional[EventTimeRequest] = None,
    db: Session = Depends(get_db),
    current_user: Employee = Depends(get_current_user),
    clock: Clock = Depends(get_clock),
):
    """End the open break. 400 NO_OPEN_BREAK."""
    payload = body or EventTimeRequest()
    brk = svc.end_break(db, current_user.id, now=clock.now(), at=payload.at)
    return BreakDto.model_validate(brk)


@router.get("/today", response_model=TodayResponse)
async def today_endpoint(
    db: Session = Depends(get_db),
    current_user: Employee = Depends(get_current_user),
    clock: Clock = Depends(get_clock),
):
    """Today's record for the current user (null before the first clock-in)."""
    now = clock.now()
    record = svc.get_today_record(db, current_user.id, now)
    open_session = svc.open_session(record)
    return TodayResponse(
        work_date=get_work_date(now),
        record=AttendanceRecordDto.model_validate(record) if record else None,
        open_session=SessionDto.model_validate(open_session) if open_session else None,
    )


@router.get("/records/{work_date}", response_model=AttendanceRecordDto)
async def record_endpoint(
    work_date: date,
    db: Session = Depends(get_db),
    current_user: Employee = Depends(get_current_user),
):
    """Own record for a date. 404 RECORD_NOT_FOUND when there is none."""
    record = svc.get_record(db, current_user.id, work_date)
    return AttendanceRecordDto.model_validate(record)


@router.get("/my", response_model=AttendanceRecordListResponse)
async def my_endpoint(
    from_date: date = Query(..., alias="from", description="Start date (YYYY-MM-DD)"),
    to_date: date = Query(..., alias="to", description="End date (YYYY-MM-DD)"),
    db: Session = Depends(get_db),
    current_user: Employee = Depends(get_current_user),
):
    """List own attendance records in date range."""
    records = svc.list_records(db, from_date, to_date, employee_id=current_user.id)
    return AttendanceRecordListResponse(
        items=[AttendanceRecordDto.model_validate(r) for r in records],
        total=len(records),
    )
