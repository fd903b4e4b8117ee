"""
Admin attendance endpoints (HR/ADMIN): record listing, session insertion,
anomaly resolution, the finalization job and calendar inspection.
"""
from datetime import date
from typing import List, Optional
from fastapi import APIRouter, Depends, Query, status
from sqlalchemy.orm import Session

from attendance_engine.core.deps import get_clock, require_roles
from attendance_engine.db.session import SessionLocal, get_db
from attendance_engine.models.attendance import AttendanceStatus
from attendance_engine.models.employee import Employee, Role
from attendance_engine.schemas.attendance import (
    AttendanceRecordDto,
    AttendanceRecordListResponse,
    ResolveRequest,
    SessionDto,
    SessionInsertRequest,
)
from attendance_engine.schemas.finalization import (
    CalendarDayOut,
    FinalizationRequest,
    FinalizationRunOut,
    FinalizationSummaryOut,
)
from attendance_engine.core.config import settings
from attendance_engine.services import attendance_session_service as svc
from attendance_engine.services import correction_service, finalization_service
from attendance_engine.services.calendar_service import classify_date, get_holiday, weekend_days_for
from attendance_engine.utils.datetime_utils import Clock, get_work_date

router = APIRouter()

require_hr_admin = require_roles(Role.HR, Role.ADMIN)


@router.get("/records", response_model=AttendanceRecordListResponse)
async def admin_list_records(
    from_date: Optional[date] = Query(None, alias="from", description="Start date (default: today)"),
    to_date: Optional[date] = Query(None, alias="to", description="End date (default: from)"),
    employee_id: Optional[int] = Query(None),
    record_status: Optional[AttendanceStatus] = Query(None, alias="status"),
    db: Session = Depends(get_db),
    current_user: Employee = Depends(require_hr_admin),
    clock: Clock = Depends(get_clock),
):
    """List records, e.g. ?status=pending_correction for the review queue."""
    from_date = from_date or get_work_date(clock.now())
    to_date = to_date or from_date
    records = svc.list_records(db, from_date, to_date, employee_id=employee_id, record_status=record_status)
    return AttendanceRecordListResponse(
        items=[AttendanceRecordDto.model_validate(r) for r in records],
        total=len(records),
    )


@router.post(
    "/records/{employee_id}/{work_date}/sessions",
    response_model=SessionDto,
    status_code=status.HTTP_201_CREATED,
)
async def admin_insert_session(
    employee_id: int,
    work_date: date,
    body: SessionInsertRequest,
    db: Session = Depends(get_db),
    current_user: Employee = Depends(require_hr_admin),
    clock: Clock = Depends(get_clock),
):
    """Insert a completed session; anomalies it introduces flag the record for review."""
    session = correction_service.insert_session(
        db,
        employee_id,
        work_date,
        body.check_in,
        body.check_out,
        body.work_location,
        body.location_details,
        [(b.start_time, b.end_time) for b in body.breaks],
        actor_id=current_user.id,
        note=body.note,
        now=clock.now(),
    )
    return SessionDto.model_validate(session)


@router.post("/records/{record_id}/resolve", response_model=AttendanceRecordDto)
async def admin_resolve_record(
    record_id: int,
    body: ResolveRequest,
    db: Session = Depends(get_db),
    current_user: Employee = Depends(require_hr_admin),
    clock: Clock = Depends(get_clock),
):
    """Approve (re-classify) or reject a record under review. 400 INVALID_RESOLUTION otherwise."""
    record = correction_service.resolve_record(
        db, record_id, body.decision, body.note, actor_id=current_user.id, now=clock.now(),
    )
    return AttendanceRecordDto.model_validate(record)


@router.post("/finalization", response_model=FinalizationSummaryOut)
async def admin_run_finalization(
    body: Optional[FinalizationRequest] = None,
    db: Session = Depends(get_db),
    current_user: Employee = Depends(require_hr_admin),
    clock: Clock = Depends(get_clock),
):
    """Run daily finalization for a date (default: yesterday). Safe to repeat."""
    payload = body or FinalizationRequest()
    summary = finalization_service.run_finalization(
        db,
        payload.work_date,
        now=clock.now(),
        actor_id=current_user.id,
        max_workers=settings.FINALIZATION_MAX_WORKERS,
        session_factory=SessionLocal,
    )
    return FinalizationSummaryOut(**summary.to_dict())


@router.get("/finalization/runs", response_model=List[FinalizationRunOut])
async def admin_list_runs(
    work_date: Optional[date] = Query(None),
    limit: int = Query(50, ge=1, le=500),
    db: Session = Depends(get_db),
    current_user: Employee = Depends(require_hr_admin),
):
    runs = finalization_service.list_runs(db, work_date, limit)
    return [FinalizationRunOut.model_validate(r) for r in runs]


@router.get("/calendar/{day}", response_model=CalendarDayOut)
async def admin_calendar_day(
    day: date,
    db: Session = Depends(get_db),
    current_user: Employee = Depends(require_hr_admin),
):
    """How the organization calendar classifies a date."""
    holiday = get_holiday(db, day)
    return CalendarDayOut(
        day=day,
        calendar_class=classify_date(db, day).value,
        holiday_name=holiday.name if holiday else None,
        weekend_days=weekend_days_for(db, day),
    )
