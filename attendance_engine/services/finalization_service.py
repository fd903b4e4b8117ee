"""
Daily finalization: gives every employee a terminal status for a past (or,
after the shift cutoff, the current) work date.

Safe to re-run: terminal records are left alone, records under review stay
flagged, and only records still in progress or newly eligible are processed.
A failure for one employee is recorded and the batch continues; losing the
database aborts the run.
"""
import enum
import logging
from concurrent.futures import ThreadPoolExecutor, as_completed
from dataclasses import dataclass, field, asdict
from datetime import date, datetime, timedelta
from typing import Callable, Dict, List, Optional
from sqlalchemy.exc import OperationalError
from sqlalchemy.orm import Session

from attendance_engine.core.config import settings
from attendance_engine.core.errors import FutureTimestamp
from attendance_engine.models.attendance import (
    AttendanceEventType,
    AttendanceRecord,
    AttendanceStatus,
    ApprovalStatus,
    HalfDayType,
    TERMINAL_STATUSES,
)
from attendance_engine.models.finalization import FinalizationRun, FinalizationRunStatus
from attendance_engine.services.attendance_session_service import (
    add_event,
    commit_record,
    force_close_open_sessions,
    load_record,
    shift_ready_at,
    touch,
)
from attendance_engine.services.audit_service import log_audit
from attendance_engine.services.calendar_service import CalendarClass, classify_date, classify_for_employee
from attendance_engine.services.consistency_validator import detect_anomalies, flag_record
from attendance_engine.services.employee_service import list_active_employee_ids
from attendance_engine.services.locking import record_lock
from attendance_engine.services.shift_service import ShiftPolicy, find_shift_for, get_shift_for
from attendance_engine.services.status_classifier import apply_aggregates, classify, has_open_session
from attendance_engine.utils.datetime_utils import ensure_utc, get_work_date, now_utc

logger = logging.getLogger(__name__)


class Outcome(str, enum.Enum):
    FINALIZED = "finalized"
    SKIPPED = "skipped"
    FLAGGED = "flagged"
    ALREADY_FINALIZED = "already_finalized"
    DEFERRED = "deferred"


_CALENDAR_STATUS = {
    CalendarClass.HOLIDAY: AttendanceStatus.HOLIDAY,
    CalendarClass.WEEKEND: AttendanceStatus.WEEKEND,
}


@dataclass
class FinalizationSummary:
    work_date: date
    calendar_class: Optional[str] = None
    run_id: Optional[int] = None
    finalized: int = 0
    skipped: int = 0
    flagged: int = 0
    errored: int = 0
    already_finalized: int = 0
    deferred: int = 0
    errors: List[Dict] = field(default_factory=list)

    def count(self, outcome: Outcome) -> None:
        setattr(self, outcome.value, getattr(self, outcome.value) + 1)

    def to_dict(self) -> Dict:
        data = asdict(self)
        data["work_date"] = str(self.work_date)
        return data


def default_work_date(now: datetime) -> date:
    """The previous organization-calendar day."""
    return get_work_date(now) - timedelta(days=1)


def _mark_finalized(
    db: Session,
    record: AttendanceRecord,
    status: AttendanceStatus,
    reason: str,
    now: datetime,
    half_day_type: Optional[HalfDayType] = None,
) -> None:
    record.status = status
    record.status_reason = reason
    record.half_day_type = half_day_type
    record.finalized_at = now
    touch(record, now)
    add_event(
        db, record, AttendanceEventType.FINALIZED, now,
        meta={"status": status, "reason": reason, "worked_minutes": record.worked_minutes},
    )


def _finalize_non_working_day(
    db: Session,
    employee_id: int,
    work_date: date,
    calendar_class: CalendarClass,
    policy: Optional[ShiftPolicy],
    now: datetime,
) -> Outcome:
    record = load_record(db, employee_id, work_date, create=True, now=now)
    if policy is not None and has_open_session(record) and now < shift_ready_at(policy, work_date):
        # Overnight shift begun on a non-working day is still running
        db.rollback()
        return Outcome.DEFERRED

    closed = force_close_open_sessions(db, record, policy, now)
    target = _CALENDAR_STATUS[calendar_class]
    if closed == 0 and record.status == target and record.finalized_at is not None:
        db.rollback()
        return Outcome.SKIPPED

    apply_aggregates(record, policy)
    if policy is not None:
        result = classify(record, policy, calendar_class, now)
        reason = result.reason
    else:
        reason = f"{target.value.capitalize()}: no working day"
    _mark_finalized(db, record, target, reason, now)
    commit_record(db)
    return Outcome.SKIPPED


def finalize_employee_day(
    db: Session,
    employee_id: int,
    work_date: date,
    calendar_class: CalendarClass,
    now: datetime,
) -> Outcome:
    """Finalize one employee's record under the per-key lock."""
    with record_lock(employee_id, work_date):
        if calendar_class != CalendarClass.WORKING_DAY:
            return _finalize_non_working_day(
                db, employee_id, work_date, calendar_class, find_shift_for(db, employee_id), now,
            )

        policy = get_shift_for(db, employee_id)
        effective = classify_for_employee(calendar_class, policy.weekly_off_days, work_date)
        if effective != CalendarClass.WORKING_DAY:
            return _finalize_non_working_day(db, employee_id, work_date, effective, policy, now)

        record = load_record(db, employee_id, work_date)
        if record is not None and record.status in TERMINAL_STATUSES and record.approval_status != ApprovalStatus.PENDING:
            db.rollback()
            return Outcome.ALREADY_FINALIZED

        # Any date, so a night shift is not cut short by a run just after midnight
        if now < shift_ready_at(policy, work_date):
            db.rollback()
            return Outcome.DEFERRED

        if record is None:
            record = load_record(db, employee_id, work_date, create=True, now=now)

        closed = force_close_open_sessions(db, record, policy, now)
        apply_aggregates(record, policy)

        if record.status == AttendanceStatus.PENDING_CORRECTION or record.approval_status == ApprovalStatus.PENDING:
            if closed:
                touch(record, now)
                commit_record(db)
            else:
                db.rollback()
            return Outcome.FLAGGED

        anomalies = detect_anomalies(record)
        if anomalies and flag_record(record, anomalies, now):
            touch(record, now)
            commit_record(db)
            return Outcome.FLAGGED

        result = classify(record, policy, effective, now)
        if result.status == AttendanceStatus.IN_PROGRESS:
            # Day still running (no sessions yet today); keep whatever was closed
            record.status_reason = result.reason
            touch(record, now)
            commit_record(db)
            return Outcome.DEFERRED

        _mark_finalized(db, record, result.status, result.reason, now, result.half_day_type)
        commit_record(db)
        logger.debug(
            "Finalized: employee_id=%s work_date=%s status=%s reason=%s",
            employee_id, work_date, result.status.value, result.reason,
        )
        return Outcome.FINALIZED


def _process(db: Session, employee_id: int, work_date: date, calendar_class: CalendarClass, now: datetime, summary: FinalizationSummary) -> None:
    try:
        outcome = finalize_employee_day(db, employee_id, work_date, calendar_class, now)
    except OperationalError:
        raise
    except Exception as exc:
        db.rollback()
        logger.error(
            "Finalization failed: employee_id=%s work_date=%s error=%s",
            employee_id, work_date, exc, exc_info=True,
        )
        summary.errored += 1
        summary.errors.append({"employee_id": employee_id, "error": getattr(exc, "detail", None) or str(exc)})
        return
    summary.count(outcome)


def _run_parallel(
    session_factory: Callable[[], Session],
    employee_ids: List[int],
    work_date: date,
    calendar_class: CalendarClass,
    now: datetime,
    summary: FinalizationSummary,
    max_workers: int,
) -> None:
    # Each worker owns its own DB session; FinalizationSummary updates are merged on the caller's thread
    def work(employee_id: int) -> FinalizationSummary:
        partial = FinalizationSummary(work_date=work_date)
        worker_db = session_factory()
        try:
            _process(worker_db, employee_id, work_date, calendar_class, now, partial)
        finally:
            worker_db.close()
        return partial

    executor = ThreadPoolExecutor(max_workers=max_workers, thread_name_prefix="finalize")
    try:
        futures = [executor.submit(work, employee_id) for employee_id in employee_ids]
        for future in as_completed(futures):
            partial = future.result()
            for outcome in Outcome:
                setattr(summary, outcome.value, getattr(summary, outcome.value) + getattr(partial, outcome.value))
            summary.errored += partial.errored
            summary.errors.extend(partial.errors)
    except OperationalError:
        executor.shutdown(wait=True, cancel_futures=True)
        raise
    executor.shutdown(wait=True)


def _employees_for(db: Session, work_date: date) -> List[int]:
    """Active employees plus anyone who already has a record for the date."""
    ids = set(list_active_employee_ids(db, work_date))
    rows = db.query(AttendanceRecord.employee_id).filter(AttendanceRecord.work_date == work_date).all()
    ids.update(row[0] for row in rows)
    return sorted(ids)


def _mark_run_failed(db: Session, run_id: int, now: datetime, error: str) -> None:
    try:
        run = db.query(FinalizationRun).filter(FinalizationRun.id == run_id).first()
        if run is not None:
            run.status = FinalizationRunStatus.FAILED
            run.completed_at = now
            run.errors = [{"employee_id": None, "error": error}]
            db.commit()
    except OperationalError:
        db.rollback()
        logger.error("Could not mark finalization run %s as failed", run_id)


def run_finalization(
    db: Session,
    work_date: Optional[date] = None,
    *,
    now: Optional[datetime] = None,
    actor_id: Optional[int] = None,
    max_workers: Optional[int] = None,
    session_factory: Optional[Callable[[], Session]] = None,
) -> FinalizationSummary:
    """
    Finalize every employee's record for work_date (default: yesterday).

    Returns:
        FinalizationSummary with counts of finalized, skipped (holiday/weekend),
        flagged, errored, already_finalized and deferred employees.

    Raises:
        FutureTimestamp: work_date is after today
        OperationalError: the database became unavailable; the run is marked FAILED
    """
    now = ensure_utc(now) or now_utc()
    work_date = work_date or default_work_date(now)
    if work_date > get_work_date(now):
        raise FutureTimestamp(f"Cannot finalize future date {work_date}")
    max_workers = max_workers or settings.FINALIZATION_MAX_WORKERS

    run = FinalizationRun(
        work_date=work_date,
        status=FinalizationRunStatus.RUNNING,
        triggered_by=actor_id,
        started_at=now,
    )
    db.add(run)
    db.commit()
    run_id = run.id
    summary = FinalizationSummary(work_date=work_date, run_id=run_id)
    logger.info("Finalization run %s started for %s", run_id, work_date)

    try:
        calendar_class = classify_date(db, work_date)
        summary.calendar_class = calendar_class.value
        employee_ids = _employees_for(db, work_date)

        if max_workers > 1 and session_factory is not None and len(employee_ids) > 1:
            _run_parallel(session_factory, employee_ids, work_date, calendar_class, now, summary, max_workers)
        else:
            for employee_id in employee_ids:
                _process(db, employee_id, work_date, calendar_class, now, summary)
    except OperationalError as exc:
        db.rollback()
        logger.error("Finalization run %s aborted: database unavailable", run_id, exc_info=True)
        _mark_run_failed(db, run_id, now, str(exc))
        raise

    run = db.query(FinalizationRun).filter(FinalizationRun.id == run_id).first()
    run.calendar_class = summary.calendar_class
    run.status = FinalizationRunStatus.COMPLETED
    run.finalized = summary.finalized
    run.skipped = summary.skipped
    run.flagged = summary.flagged
    run.errored = summary.errored
    run.already_finalized = summary.already_finalized
    run.deferred = summary.deferred
    run.errors = summary.errors or None
    run.completed_at = now
    db.commit()

    logger.info(
        "Finalization run %s completed for %s (%s): finalized=%s skipped=%s flagged=%s errored=%s already_finalized=%s deferred=%s",
        run_id, work_date, summary.calendar_class, summary.finalized, summary.skipped,
        summary.flagged, summary.errored, summary.already_finalized, summary.deferred,
    )

    log_audit(
        db=db,
        actor_id=actor_id,
        action="ATTENDANCE_FINALIZATION_RUN",
        entity_type="finalization_runs",
        entity_id=run_id,
        meta=summary.to_dict(),
        at=now,
    )
    return summary


def list_runs(db: Session, work_date: Optional[date] = None, limit: int = 50) -> List[FinalizationRun]:
    query = db.query(FinalizationRun)
    if work_date is not None:
        query = query.filter(FinalizationRun.work_date == work_date)
    return query.order_by(FinalizationRun.id.desc()).limit(limit).all()
