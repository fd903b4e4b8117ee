"""
Status classifier: converts a day's sessions, the shift policy and the calendar
class into a day status with a human-readable reason.

classify() and the compute_* helpers are pure. apply_aggregates() writes the
derived numbers back onto the record.
"""
from dataclasses import dataclass
from datetime import date, datetime, timedelta
from decimal import Decimal, ROUND_HALF_UP
from typing import Optional, Tuple

from attendance_engine.models.attendance import (
    AttendanceRecord,
    AttendanceStatus,
    HalfDayType,
    SessionStatus,
    OPEN_SESSION_STATUSES,
    WorkSession,
)
from attendance_engine.services.calendar_service import CalendarClass
from attendance_engine.services.shift_service import ShiftPolicy
from attendance_engine.utils.datetime_utils import end_of_day, ensure_utc, minutes_between


@dataclass(frozen=True)
class Classification:
    status: AttendanceStatus
    reason: str
    half_day_type: Optional[HalfDayType] = None


def format_hours(minutes) -> str:
    """485 -> '8.08', 480 -> '8', 450 -> '7.5'"""
    hours = (Decimal(minutes) / 60).quantize(Decimal("0.01"), rounding=ROUND_HALF_UP)
    text = format(hours, "f")
    if "." in text:
        text = text.rstrip("0").rstrip(".")
    return text


def session_worked_minutes(session: WorkSession) -> int:
    """(check_out - check_in) - breaks; negative results are kept for the validator."""
    if session.check_out is None:
        return 0
    return minutes_between(session.check_in, session.check_out) - (session.total_break_minutes or 0)


def total_worked_minutes(record: AttendanceRecord) -> int:
    return sum(
        s.worked_minutes or 0
        for s in record.sessions
        if s.status == SessionStatus.COMPLETED
    )


def has_open_session(record: AttendanceRecord) -> bool:
    return any(s.status in OPEN_SESSION_STATUSES for s in record.sessions)


def classify(
    record: AttendanceRecord,
    policy: ShiftPolicy,
    calendar_class: CalendarClass,
    now: datetime,
) -> Classification:
    """Derive the day status. Holiday wins over weekend, both win over worked time."""
    worked = total_worked_minutes(record)

    if calendar_class == CalendarClass.HOLIDAY:
        return Classification(
            AttendanceStatus.HOLIDAY,
            f"Holiday: classified as holiday regardless of worked time ({format_hours(worked)}h logged)",
        )
    if calendar_class == CalendarClass.WEEKEND:
        return Classification(
            AttendanceStatus.WEEKEND,
            f"Weekend: classified as weekend regardless of worked time ({format_hours(worked)}h logged)",
        )

    day_over = ensure_utc(now) >= end_of_day(record.work_date)

    if not record.sessions:
        if day_over:
            return Classification(
                AttendanceStatus.ABSENT,
                f"Worked 0h < half-day threshold {format_hours(policy.half_day_minutes)}h (no sessions recorded)",
            )
        return Classification(AttendanceStatus.IN_PROGRESS, "No sessions recorded yet today")

    if has_open_session(record) and not day_over:
        return Classification(
            AttendanceStatus.IN_PROGRESS,
            f"Session in progress; worked {format_hours(worked)}h so far",
        )

    full = policy.full_day_minutes
    half = policy.half_day_minutes
    full_h = format_hours(full)
    half_h = format_hours(half)
    worked_h = format_hours(worked)

    if worked >= full:
        return Classification(
            AttendanceStatus.PRESENT,
            f"Worked {worked_h}h >= full-day threshold {full_h}h",
            HalfDayType.FULL_DAY,
        )
    if worked >= half:
        return Classification(
            AttendanceStatus.HALF_DAY,
            f"Worked {worked_h}h >= half-day threshold {half_h}h and < full-day threshold {full_h}h",
            compute_half_day_type(record, policy),
        )
    return Classification(
        AttendanceStatus.ABSENT,
        f"Worked {worked_h}h < half-day threshold {half_h}h",
    )


def compute_lateness(first_check_in: datetime, policy: ShiftPolicy, work_date: date) -> Tuple[bool, int]:
    """Late when the first check-in is after shift start + grace; minutes counted past the grace window."""
    deadline = policy.start_instant(work_date) + timedelta(minutes=policy.grace_period_minutes)
    check_in = ensure_utc(first_check_in)
    if check_in <= deadline:
        return False, 0
    return True, minutes_between(deadline, check_in)


def compute_half_day_type(record: AttendanceRecord, policy: ShiftPolicy) -> HalfDayType:
    """
    First or second half, by whether more closed-session time falls before or
    after the shift midpoint. Ties go to the first half.
    """
    start = policy.start_instant(record.work_date)
    midpoint = start + (policy.end_instant(record.work_date) - start) / 2
    before = after = 0
    for session in record.sessions:
        if session.check_out is None:
            continue
        check_in, check_out = ensure_utc(session.check_in), ensure_utc(session.check_out)
        if check_in < midpoint:
            before += max(minutes_between(check_in, min(check_out, midpoint)), 0)
        if check_out > midpoint:
            after += max(minutes_between(max(check_in, midpoint), check_out), 0)
    return HalfDayType.FIRST_HALF if before >= after else HalfDayType.SECOND_HALF


def compute_overtime(worked_minutes: int, policy: ShiftPolicy) -> int:
    overtime = Decimal(worked_minutes) - policy.full_day_minutes
    return int(overtime) if overtime > 0 else 0


def compute_early_departure(last_check_out: datetime, policy: ShiftPolicy, work_date: date) -> Tuple[bool, int]:
    """Early departure when the last clock-out precedes the shift end."""
    shift_end = policy.end_instant(work_date)
    check_out = ensure_utc(last_check_out)
    if check_out >= shift_end:
        return False, 0
    return True, minutes_between(check_out, shift_end)


def first_session(record: AttendanceRecord) -> Optional[WorkSession]:
    if not record.sessions:
        return None
    return min(record.sessions, key=lambda s: (ensure_utc(s.check_in), s.id or 0))


def apply_aggregates(record: AttendanceRecord, policy: Optional[ShiftPolicy] = None) -> None:
    """Recompute worked/break totals and, when a policy is known, lateness, overtime and early departure."""
    worked = total_worked_minutes(record)
    record.worked_minutes = worked
    record.break_minutes = sum(s.total_break_minutes or 0 for s in record.sessions)
    record.work_hours = (Decimal(worked) / 60).quantize(Decimal("0.01"), rounding=ROUND_HALF_UP)

    if policy is None:
        return

    first = first_session(record)
    if first is not None:
        record.is_late, record.late_minutes = compute_lateness(first.check_in, policy, record.work_date)
    else:
        record.is_late, record.late_minutes = False, 0

    record.overtime_minutes = compute_overtime(worked, policy)

    closed = [s for s in record.sessions if s.check_out is not None]
    if closed and not has_open_session(record):
        last_out = max(ensure_utc(s.check_out) for s in closed)
        record.is_early_departure, record.early_exit_minutes = compute_early_departure(
            last_out, policy, record.work_date
        )
    else:
        record.is_early_departure, record.early_exit_minutes = False, 0
