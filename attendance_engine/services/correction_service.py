"""
Administrative corrections: insert a missed session, resolve a flagged record.

Corrections are additive. Inserted sessions are not checked inline; the
consistency validator runs afterwards and flags whatever they break.
"""
import logging
from bisect import bisect_right
from datetime import date, datetime
from typing import Iterable, Optional, Tuple
from sqlalchemy.orm import Session

from attendance_engine.core.constants import SOURCE_ADMIN
from attendance_engine.core.errors import InvalidResolution, LocationDetailsRequired, RecordNotFound
from attendance_engine.models.attendance import (
    AttendanceEventType,
    AttendanceRecord,
    AttendanceStatus,
    ApprovalStatus,
    RemarkSource,
    SessionBreak,
    SessionStatus,
    WorkLocation,
    WorkSession,
)
from attendance_engine.services.attendance_session_service import (
    add_event,
    commit_record,
    describe_session,
    load_record,
    resolve_event_time,
    touch,
)
from attendance_engine.services.audit_service import log_audit
from attendance_engine.services.calendar_service import classify_date, classify_for_employee
from attendance_engine.services.consistency_validator import detect_anomalies, flag_record
from attendance_engine.services.locking import record_lock
from attendance_engine.services.remark_service import add_remark
from attendance_engine.services.shift_service import find_shift_for, get_shift_for
from attendance_engine.services.status_classifier import apply_aggregates, classify, session_worked_minutes
from attendance_engine.utils.datetime_utils import ensure_utc, minutes_between, now_utc

logger = logging.getLogger(__name__)

# Classified statuses that a correction re-derives
_RECLASSIFIABLE = (AttendanceStatus.PRESENT, AttendanceStatus.HALF_DAY, AttendanceStatus.ABSENT)


def _reclassify(db: Session, record: AttendanceRecord, now: datetime) -> None:
    """Re-derive the status of a record whose gate is clear."""
    policy = get_shift_for(db, record.employee_id)
    calendar_class = classify_for_employee(classify_date(db, record.work_date), policy.weekly_off_days, record.work_date)
    apply_aggregates(record, policy)
    result = classify(record, policy, calendar_class, now)
    record.status = result.status
    record.status_reason = result.reason
    record.half_day_type = result.half_day_type
    record.finalized_at = None if result.status == AttendanceStatus.IN_PROGRESS else now


def insert_session(
    db: Session,
    employee_id: int,
    work_date: date,
    check_in: datetime,
    check_out: datetime,
    work_location: WorkLocation = WorkLocation.OFFICE,
    location_details: Optional[str] = None,
    breaks: Optional[Iterable[Tuple[datetime, datetime]]] = None,
    *,
    actor_id: int,
    note: Optional[str] = None,
    now: Optional[datetime] = None,
) -> WorkSession:
    """
    Insert a completed session (with optional breaks) into the employee's record
    for work_date, creating the record if needed.
    """
    now = ensure_utc(now) or now_utc()
    check_in = resolve_event_time(now, check_in)
    check_out = resolve_event_time(now, check_out)
    work_location = WorkLocation(work_location)
    if work_location == WorkLocation.CLIENT_SITE and not (location_details or "").strip():
        raise LocationDetailsRequired()

    with record_lock(employee_id, work_date):
        record = load_record(db, employee_id, work_date, create=True, now=now)

        session = WorkSession(
            check_in=check_in,
            check_out=check_out,
            work_location=work_location,
            location_details=location_details,
            status=SessionStatus.COMPLETED,
            total_break_minutes=0,
            auto_closed=False,
            source=SOURCE_ADMIN,
        )
        for start, end in breaks or ():
            start = ensure_utc(start)
            end = ensure_utc(end)
            duration = minutes_between(start, end)
            session.breaks.append(SessionBreak(start_time=start, end_time=end, duration_minutes=duration))
            session.total_break_minutes += duration
        session.worked_minutes = session_worked_minutes(session)

        # Keep sessions in check-in order
        starts = [ensure_utc(s.check_in) for s in record.sessions]
        record.sessions.insert(bisect_right(starts, check_in), session)

        add_remark(
            record,
            note or f"Session {describe_session(session)} inserted by employee {actor_id}",
            now,
            source=RemarkSource.HUMAN,
            added_by=actor_id,
        )

        anomalies = detect_anomalies(record)
        flagged = bool(anomalies) and flag_record(record, anomalies, now)
        if not flagged and record.status in _RECLASSIFIABLE and record.approval_status != ApprovalStatus.PENDING:
            _reclassify(db, record, now)
        else:
            apply_aggregates(record, find_shift_for(db, employee_id))
        touch(record, now)
        db.flush()

        add_event(
            db, record, AttendanceEventType.ADMIN_INSERT, now,
            session=session,
            meta={
                "check_in": check_in,
                "check_out": check_out,
                "work_location": work_location,
                "anomalies": [a.to_dict() for a in anomalies],
            },
            created_by=actor_id,
        )
        commit_record(db)

    db.refresh(session)
    logger.info(
        "Session inserted: employee_id=%s work_date=%s session_id=%s by=%s anomalies=%s",
        employee_id, work_date, session.id, actor_id, len(anomalies),
    )

    log_audit(
        db=db,
        actor_id=actor_id,
        action="ATTENDANCE_SESSION_INSERT",
        entity_type="attendance_records",
        entity_id=session.record_id,
        meta={
            "employee_id": employee_id,
            "work_date": str(work_date),
            "session_id": session.id,
            "check_in": check_in.isoformat(),
            "check_out": check_out.isoformat(),
            "anomalies": len(anomalies),
        },
        at=now,
    )
    return session


def resolve_record(
    db: Session,
    record_id: int,
    decision: ApprovalStatus,
    note: str,
    *,
    actor_id: int,
    now: Optional[datetime] = None,
) -> AttendanceRecord:
    """
    Resolve a record under review.

    APPROVED clears the gate and re-derives the status from the sessions as they
    stand. REJECTED keeps the record in pending_correction.
    """
    now = ensure_utc(now) or now_utc()
    try:
        decision = ApprovalStatus(decision)
    except ValueError:
        raise InvalidResolution(f"Unknown decision: {decision}")
    if decision not in (ApprovalStatus.APPROVED, ApprovalStatus.REJECTED):
        raise InvalidResolution("Decision must be approved or rejected")

    existing = db.query(AttendanceRecord).filter(AttendanceRecord.id == record_id).first()
    if existing is None:
        raise RecordNotFound(f"Attendance record {record_id} not found")
    employee_id, work_date = existing.employee_id, existing.work_date

    with record_lock(employee_id, work_date):
        record = load_record(db, employee_id, work_date)
        if record is None:
            raise RecordNotFound(f"Attendance record {record_id} not found")
        if record.approval_status != ApprovalStatus.PENDING and record.status != AttendanceStatus.PENDING_CORRECTION:
            db.rollback()
            raise InvalidResolution()

        previous = record.status
        record.approval_status = decision
        if decision == ApprovalStatus.APPROVED:
            _reclassify(db, record, now)
        else:
            record.status = AttendanceStatus.PENDING_CORRECTION
            record.status_reason = f"Correction rejected: {note}"
            record.half_day_type = None
            record.finalized_at = None

        add_remark(
            record,
            f"{decision.value.capitalize()} by employee {actor_id}: {note}",
            now,
            source=RemarkSource.HUMAN,
            added_by=actor_id,
        )
        touch(record, now)
        add_event(
            db, record, AttendanceEventType.ADMIN_RESOLVE, now,
            meta={"decision": decision, "note": note, "previous_status": previous, "status": record.status},
            created_by=actor_id,
        )
        commit_record(db)

    db.refresh(record)
    logger.info("Record resolved: record_id=%s decision=%s status=%s", record.id, decision.value, record.status.value)

    log_audit(
        db=db,
        actor_id=actor_id,
        action="ATTENDANCE_RECORD_RESOLVE",
        entity_type="attendance_records",
        entity_id=record.id,
        meta={"decision": decision, "status": record.status, "note": note},
        at=now,
    )
    return record
