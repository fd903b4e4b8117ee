"""
Attendance session service: the session/break state machine for an employee's day.

work_date is the organization-timezone date of the server clock, except while an
overnight shift that started the day before is still open: its clock-out and
breaks stay on the record where it began. All timestamps are stored in UTC.
Every operation runs as one read-modify-write unit per (employee_id, work_date):
keyed lock, row lock, then the record's version_id compare-and-swap on commit.
"""
import logging
from contextlib import ExitStack
from datetime import date, datetime, timedelta
from typing import List, Optional
from fastapi import HTTPException, status
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session
from sqlalchemy.orm.attributes import flag_modified
from sqlalchemy.orm.exc import StaleDataError

from attendance_engine.core.config import settings
from attendance_engine.core.constants import SOURCE_SYSTEM, SOURCE_WEB
from attendance_engine.core.errors import (
    BreakAlreadyOpen,
    BreakInProgress,
    ConcurrentModification,
    FutureTimestamp,
    LocationDetailsRequired,
    NoActiveSession,
    NoOpenBreak,
    NoOpenSession,
    RecordNotFound,
    SessionAlreadyOpen,
)
from attendance_engine.models.attendance import (
    AttendanceEvent,
    AttendanceEventType,
    AttendanceRecord,
    AttendanceStatus,
    ApprovalStatus,
    OPEN_SESSION_STATUSES,
    SessionBreak,
    SessionStatus,
    WorkLocation,
    WorkSession,
)
from attendance_engine.services.audit_service import log_audit
from attendance_engine.services.consistency_validator import detect_anomalies, flag_record
from attendance_engine.services.locking import record_lock
from attendance_engine.services.remark_service import add_remark
from attendance_engine.services.shift_service import ShiftPolicy, find_shift_for
from attendance_engine.services.status_classifier import apply_aggregates, session_worked_minutes
from attendance_engine.utils.datetime_utils import (
    end_of_day,
    ensure_utc,
    get_work_date,
    iso_org,
    minutes_between,
    now_utc,
)
from attendance_engine.utils.json_serializer import sanitize_for_json

_log = logging.getLogger(__name__)

# Statuses reopened when the employee clocks in again on an already classified day
_REOPENABLE = (AttendanceStatus.PRESENT, AttendanceStatus.HALF_DAY, AttendanceStatus.ABSENT)


def resolve_event_time(now: datetime, at: Optional[datetime]) -> datetime:
    """Client-captured event time, defaulting to now; must not lead the server clock."""
    if at is None:
        return now
    at = ensure_utc(at)
    if at > now + timedelta(seconds=settings.EVENT_TIME_TOLERANCE_SECONDS):
        raise FutureTimestamp()
    return at


def load_record(
    db: Session,
    employee_id: int,
    work_date: date,
    *,
    create: bool = False,
    now: Optional[datetime] = None,
) -> Optional[AttendanceRecord]:
    """
    Load the (employee_id, work_date) record under a row lock, optionally creating it.

    A concurrent insert of the same key loses on the unique constraint; the
    loser rolls back and picks up the winner's row.
    """
    record = _select_for_update(db, employee_id, work_date)
    if record is not None or not create:
        return record

    now = now or now_utc()
    record = AttendanceRecord(
        employee_id=employee_id,
        work_date=work_date,
        status=AttendanceStatus.IN_PROGRESS,
        approval_status=ApprovalStatus.NONE,
        created_at=now,
        updated_at=now,
    )
    db.add(record)
    try:
        db.flush()
    except IntegrityError:
        db.rollback()
        _log.info("Record created concurrently, reloading: employee_id=%s work_date=%s", employee_id, work_date)
        record = _select_for_update(db, employee_id, work_date)
        if record is None:
            raise ConcurrentModification()
    return record


def _select_for_update(db: Session, employee_id: int, work_date: date) -> Optional[AttendanceRecord]:
    # FOR UPDATE is dropped by dialects without row locks (SQLite)
    return (
        db.query(AttendanceRecord)
        .filter(
            AttendanceRecord.employee_id == employee_id,
            AttendanceRecord.work_date == work_date,
        )
        .with_for_update()
        .first()
    )


def touch(record: AttendanceRecord, now: datetime) -> None:
    """Force an UPDATE of the record row so its version_id is checked and bumped."""
    record.updated_at = now
    flag_modified(record, "updated_at")


def commit_record(db: Session) -> None:
    """Commit; a lost version check or unique-key race becomes ConcurrentModification."""
    try:
        db.commit()
    except (StaleDataError, IntegrityError) as exc:
        db.rollback()
        _log.warning("Concurrent modification detected: %s", exc)
        raise ConcurrentModification() from exc


def add_event(
    db: Session,
    record: AttendanceRecord,
    event_type: AttendanceEventType,
    event_at: datetime,
    *,
    session: Optional[WorkSession] = None,
    meta: Optional[dict] = None,
    created_by: Optional[int] = None,
) -> AttendanceEvent:
    event = AttendanceEvent(
        record_id=record.id,
        session_id=session.id if session is not None else None,
        employee_id=record.employee_id,
        event_type=event_type,
        event_at=event_at,
        meta_json=sanitize_for_json(meta) if meta else None,
        created_by=created_by,
        created_at=event_at,
    )
    db.add(event)
    return event


def open_session(record: Optional[AttendanceRecord]) -> Optional[WorkSession]:
    """The record's single ACTIVE or ON_BREAK session, if any."""
    if record is None:
        return None
    for session in record.sessions:
        if session.status in OPEN_SESSION_STATUSES:
            return session
    return None


def open_break(session: WorkSession) -> Optional[SessionBreak]:
    for brk in session.breaks:
        if brk.end_time is None:
            return brk
    return None


def _validate(record: AttendanceRecord, now: datetime) -> None:
    anomalies = detect_anomalies(record)
    if anomalies:
        flag_record(record, anomalies, now)


def forced_cutoff(session: WorkSession, policy: Optional[ShiftPolicy], work_date: date, now: datetime) -> datetime:
    """
    Instant at which a forgotten session is closed: the shift end on the work date
    (next day for overnight shifts). Falls back to the end of the day when there
    is no shift or the shift ended before the check-in. Never later than now.
    """
    check_in = ensure_utc(session.check_in)
    cutoff = policy.end_instant(work_date) if policy is not None else end_of_day(work_date)
    if cutoff <= check_in:
        cutoff = end_of_day(work_date)
    return max(min(cutoff, now), check_in)


def force_close_open_sessions(
    db: Session,
    record: AttendanceRecord,
    policy: Optional[ShiftPolicy],
    now: datetime,
) -> int:
    """Close every ACTIVE/ON_BREAK session (and its open break) at the cutoff. Returns how many were closed."""
    closed = 0
    for session in record.sessions:
        if session.status == SessionStatus.COMPLETED:
            continue
        cutoff = forced_cutoff(session, policy, record.work_date, now)
        brk = open_break(session)
        if brk is not None:
            brk.end_time = max(cutoff, ensure_utc(brk.start_time))
            brk.duration_minutes = minutes_between(brk.start_time, brk.end_time)
            session.total_break_minutes = (session.total_break_minutes or 0) + brk.duration_minutes
        session.check_out = cutoff
        session.status = SessionStatus.COMPLETED
        session.auto_closed = True
        session.worked_minutes = session_worked_minutes(session)

        add_remark(
            record,
            f"Session {describe_session(session)} auto-closed at {iso_org(cutoff)}: no clock-out recorded",
            now,
            dedup_key=f"auto-close:{session.id}",
        )
        add_event(
            db, record, AttendanceEventType.AUTO_CLOSE, cutoff,
            session=session,
            meta={"source": SOURCE_SYSTEM, "cutoff": cutoff, "worked_minutes": session.worked_minutes},
        )
        _log.info(
            "Auto-closed session: employee_id=%s work_date=%s session_id=%s cutoff=%s",
            record.employee_id, record.work_date, session.id, cutoff.isoformat(),
        )
        closed += 1
    return closed


def shift_ready_at(policy: ShiftPolicy, work_date: date) -> datetime:
    """Shift end on the work date plus the finalization buffer."""
    return policy.end_instant(work_date) + timedelta(minutes=settings.FINALIZATION_BUFFER_MINUTES)


def carries_over(policy: Optional[ShiftPolicy], work_date: date, now: datetime) -> bool:
    """True while an overnight shift that started on work_date is still running (buffer included)."""
    if policy is None or not policy.is_overnight:
        return False
    return now < shift_ready_at(policy, work_date)


def _open_session_dates(db: Session, employee_id: int, before: date) -> List[date]:
    # Column query: leaves the identity map alone until the record is locked
    rows = (
        db.query(AttendanceRecord.work_date)
        .join(WorkSession, WorkSession.record_id == AttendanceRecord.id)
        .filter(
            AttendanceRecord.employee_id == employee_id,
            AttendanceRecord.work_date < before,
            WorkSession.status.in_(OPEN_SESSION_STATUSES),
        )
        .distinct()
        .order_by(AttendanceRecord.work_date)
        .all()
    )
    return [row[0] for row in rows]


def active_work_date(db: Session, employee_id: int, now: datetime) -> date:
    """
    Work date the employee's clock events apply to: yesterday while an overnight
    shift begun then is still open, otherwise today.
    """
    today = get_work_date(now)
    previous = today - timedelta(days=1)
    if previous in _open_session_dates(db, employee_id, before=today):
        if carries_over(find_shift_for(db, employee_id), previous, now):
            return previous
    return today


def start_session(
    db: Session,
    employee_id: int,
    work_location: WorkLocation = WorkLocation.OFFICE,
    location_details: Optional[str] = None,
    *,
    now: Optional[datetime] = None,
    at: Optional[datetime] = None,
    source: str = SOURCE_WEB,
) -> WorkSession:
    """
    Clock in: open a new ACTIVE session on today's record, creating the record lazily.
    The day's first session sets lateness against shift start + grace.

    Rejected while any session of the employee is open, including an overnight
    shift from yesterday. A session left open on an earlier day whose shift is
    over is auto-closed at its cutoff first.
    """
    now = ensure_utc(now) or now_utc()
    event_at = resolve_event_time(now, at)
    work_date = get_work_date(now)
    work_location = WorkLocation(work_location)
    if work_location == WorkLocation.CLIENT_SITE and not (location_details or "").strip():
        raise LocationDetailsRequired()

    with ExitStack() as locks:
        # Locks are always taken today first, then earlier dates
        locks.enter_context(record_lock(employee_id, work_date))
        policy = find_shift_for(db, employee_id)

        earlier_dates = _open_session_dates(db, employee_id, before=work_date)
        if any(carries_over(policy, earlier, now) for earlier in earlier_dates):
            db.rollback()
            raise SessionAlreadyOpen()

        record = load_record(db, employee_id, work_date, create=True, now=now)
        if open_session(record) is not None:
            db.rollback()
            raise SessionAlreadyOpen()

        for earlier in earlier_dates:
            locks.enter_context(record_lock(employee_id, earlier))
            stale = load_record(db, employee_id, earlier)
            if stale is not None and force_close_open_sessions(db, stale, policy, now):
                apply_aggregates(stale, policy)
                touch(stale, now)

        first_of_day = not record.sessions
        session = WorkSession(
            check_in=event_at,
            check_out=None,
            work_location=work_location,
            location_details=location_details,
            status=SessionStatus.ACTIVE,
            total_break_minutes=0,
            worked_minutes=0,
            auto_closed=False,
            source=source,
        )
        record.sessions.append(session)

        if record.status in _REOPENABLE:
            record.status = AttendanceStatus.IN_PROGRESS
            record.status_reason = "Reopened by a new session"
            record.half_day_type = None
            record.finalized_at = None

        apply_aggregates(record, policy)
        if first_of_day and policy is not None and record.is_late:
            _log.debug("Late clock-in: employee_id=%s late_minutes=%s", employee_id, record.late_minutes)
            if policy.late_threshold_minutes > 0 and record.late_minutes > policy.late_threshold_minutes:
                add_remark(
                    record,
                    f"Late by {record.late_minutes} minutes, beyond the late threshold of "
                    f"{policy.late_threshold_minutes} minutes",
                    now,
                    dedup_key="late-threshold",
                )
        touch(record, now)
        db.flush()

        add_event(
            db, record, AttendanceEventType.SESSION_START, event_at,
            session=session,
            meta={"source": source, "work_location": work_location, "location_details": location_details},
            created_by=employee_id,
        )
        commit_record(db)

    db.refresh(session)
    _log.debug("Session started: employee_id=%s work_date=%s session_id=%s", employee_id, work_date, session.id)

    log_audit(
        db=db,
        actor_id=employee_id,
        action="ATTENDANCE_SESSION_START",
        entity_type="attendance_records",
        entity_id=session.record_id,
        meta={
            "work_date": str(work_date),
            "session_id": session.id,
            "check_in": event_at.isoformat(),
            "work_location": work_location,
            "source": source,
        },
        at=now,
    )
    return session


def end_session(
    db: Session,
    employee_id: int,
    *,
    now: Optional[datetime] = None,
    at: Optional[datetime] = None,
    source: str = SOURCE_WEB,
) -> WorkSession:
    """Clock out of today's open session. Rejected while a break is open."""
    now = ensure_utc(now) or now_utc()
    event_at = resolve_event_time(now, at)
    work_date = active_work_date(db, employee_id, now)

    with record_lock(employee_id, work_date):
        record = load_record(db, employee_id, work_date)
        session = open_session(record)
        if session is None:
            db.rollback()
            raise NoOpenSession()
        if session.status == SessionStatus.ON_BREAK:
            db.rollback()
            raise BreakInProgress()

        session.check_out = event_at
        session.status = SessionStatus.COMPLETED
        session.worked_minutes = session_worked_minutes(session)

        apply_aggregates(record, find_shift_for(db, employee_id))
        _validate(record, now)
        touch(record, now)

        add_event(
            db, record, AttendanceEventType.SESSION_END, event_at,
            session=session,
            meta={"source": source, "worked_minutes": session.worked_minutes},
            created_by=employee_id,
        )
        commit_record(db)

    db.refresh(session)
    _log.debug("Session ended: employee_id=%s session_id=%s worked=%s", employee_id, session.id, session.worked_minutes)

    log_audit(
        db=db,
        actor_id=employee_id,
        action="ATTENDANCE_SESSION_END",
        entity_type="attendance_records",
        entity_id=session.record_id,
        meta={
            "work_date": str(work_date),
            "session_id": session.id,
            "check_out": event_at.isoformat(),
            "worked_minutes": session.worked_minutes,
        },
        at=now,
    )
    return session


def start_break(
    db: Session,
    employee_id: int,
    *,
    now: Optional[datetime] = None,
    at: Optional[datetime] = None,
) -> SessionBreak:
    """Open a break inside today's ACTIVE session."""
    now = ensure_utc(now) or now_utc()
    event_at = resolve_event_time(now, at)
    work_date = active_work_date(db, employee_id, now)

    with record_lock(employee_id, work_date):
        record = load_record(db, employee_id, work_date)
        session = open_session(record)
        if session is None:
            db.rollback()
            raise NoActiveSession()
        if session.status == SessionStatus.ON_BREAK or open_break(session) is not None:
            db.rollback()
            raise BreakAlreadyOpen()

        brk = SessionBreak(start_time=event_at, end_time=None, duration_minutes=0)
        session.breaks.append(brk)
        session.status = SessionStatus.ON_BREAK
        touch(record, now)
        db.flush()

        add_event(
            db, record, AttendanceEventType.BREAK_START, event_at,
            session=session,
            meta={"break_id": brk.id},
            created_by=employee_id,
        )
        commit_record(db)

    db.refresh(brk)
    _log.debug("Break started: employee_id=%s break_id=%s", employee_id, brk.id)

    log_audit(
        db=db,
        actor_id=employee_id,
        action="ATTENDANCE_BREAK_START",
        entity_type="attendance_records",
        entity_id=record.id,
        meta={"work_date": str(work_date), "break_id": brk.id, "start_time": event_at.isoformat()},
        at=now,
    )
    return brk


def end_break(
    db: Session,
    employee_id: int,
    *,
    now: Optional[datetime] = None,
    at: Optional[datetime] = None,
) -> SessionBreak:
    """Close the open break and return the session to ACTIVE."""
    now = ensure_utc(now) or now_utc()
    event_at = resolve_event_time(now, at)
    work_date = active_work_date(db, employee_id, now)

    with record_lock(employee_id, work_date):
        record = load_record(db, employee_id, work_date)
        session = open_session(record)
        brk = open_break(session) if session is not None else None
        if brk is None:
            db.rollback()
            raise NoOpenBreak()

        brk.end_time = event_at
        brk.duration_minutes = minutes_between(brk.start_time, event_at)
        session.total_break_minutes = (session.total_break_minutes or 0) + brk.duration_minutes
        session.status = SessionStatus.ACTIVE

        apply_aggregates(record)
        _validate(record, now)
        touch(record, now)

        add_event(
            db, record, AttendanceEventType.BREAK_END, event_at,
            session=session,
            meta={"break_id": brk.id, "duration_minutes": brk.duration_minutes},
            created_by=employee_id,
        )
        commit_record(db)

    db.refresh(brk)
    _log.debug("Break ended: employee_id=%s break_id=%s duration=%s", employee_id, brk.id, brk.duration_minutes)

    log_audit(
        db=db,
        actor_id=employee_id,
        action="ATTENDANCE_BREAK_END",
        entity_type="attendance_records",
        entity_id=record.id,
        meta={
            "work_date": str(work_date),
            "break_id": brk.id,
            "end_time": event_at.isoformat(),
            "duration_minutes": brk.duration_minutes,
        },
        at=now,
    )
    return brk


def get_record(db: Session, employee_id: int, work_date: date) -> AttendanceRecord:
    """The employee's record for a date; RecordNotFound when none exists."""
    record = (
        db.query(AttendanceRecord)
        .filter(
            AttendanceRecord.employee_id == employee_id,
            AttendanceRecord.work_date == work_date,
        )
        .first()
    )
    if record is None:
        raise RecordNotFound(f"No attendance record for employee {employee_id} on {work_date}")
    return record


def get_today_record(db: Session, employee_id: int, now: Optional[datetime] = None) -> Optional[AttendanceRecord]:
    """
    The record clock events currently apply to: today's, or yesterday's while an
    overnight shift is still open. None before the first clock-in.
    """
    work_date = active_work_date(db, employee_id, ensure_utc(now) or now_utc())
    return (
        db.query(AttendanceRecord)
        .filter(
            AttendanceRecord.employee_id == employee_id,
            AttendanceRecord.work_date == work_date,
        )
        .first()
    )


def list_records(
    db: Session,
    from_date: date,
    to_date: date,
    employee_id: Optional[int] = None,
    record_status: Optional[AttendanceStatus] = None,
) -> List[AttendanceRecord]:
    """Records in the inclusive date range, oldest first."""
    if from_date > to_date:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="from must be less than or equal to to",
        )
    query = db.query(AttendanceRecord).filter(
        AttendanceRecord.work_date >= from_date,
        AttendanceRecord.work_date <= to_date,
    )
    if employee_id is not None:
        query = query.filter(AttendanceRecord.employee_id == employee_id)
    if record_status is not None:
        query = query.filter(AttendanceRecord.status == record_status)
    return query.order_by(AttendanceRecord.work_date, AttendanceRecord.employee_id).all()


def describe_session(session: WorkSession) -> str:
    """Short human label, e.g. '09:00-17:00'."""
    start = iso_org(session.check_in)[11:16]
    end = iso_org(session.check_out)[11:16] if session.check_out is not None else "open"
    return f"{start}-{end}"
