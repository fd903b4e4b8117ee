"""
In-memory builders for records, sessions and breaks (not attached to a DB session)
"""
from attendance_engine.models.attendance import (
    ApprovalStatus,
    AttendanceRecord,
    AttendanceStatus,
    SessionBreak,
    SessionStatus,
    WorkLocation,
    WorkSession,
)
from attendance_engine.services.status_classifier import session_worked_minutes
from attendance_engine.utils.datetime_utils import minutes_between


def build_session(check_in, check_out=None, breaks=(), session_id=None, total_break_minutes=None):
    session = WorkSession(
        id=session_id,
        check_in=check_in,
        check_out=check_out,
        work_location=WorkLocation.OFFICE,
        status=SessionStatus.COMPLETED if check_out is not None else SessionStatus.ACTIVE,
        total_break_minutes=0,
        worked_minutes=0,
        auto_closed=False,
        source="WEB",
    )
    for index, (start, end) in enumerate(breaks, start=1):
        duration = minutes_between(start, end) if end is not None else 0
        session.breaks.append(SessionBreak(id=index, start_time=start, end_time=end, duration_minutes=duration))
        session.total_break_minutes += duration
    if total_break_minutes is not None:
        session.total_break_minutes = total_break_minutes
    session.worked_minutes = session_worked_minutes(session)
    return session


def build_record(work_date, *sessions):
    record = AttendanceRecord(
        employee_id=1,
        work_date=work_date,
        status=AttendanceStatus.IN_PROGRESS,
        approval_status=ApprovalStatus.NONE,
    )
    for session in sessions:
        record.sessions.append(session)
    return record
