"""
Database models
"""
from attendance_engine.models.shift import Shift
from attendance_engine.models.employee import Employee, Role
from attendance_engine.models.calendar import Holiday, WorkingRule
from attendance_engine.models.audit_log import AuditLog
from attendance_engine.models.attendance import (
    AttendanceRecord,
    WorkSession,
    SessionBreak,
    AttendanceRemark,
    AttendanceEvent,
    AttendanceStatus,
    ApprovalStatus,
    HalfDayType,
    WorkLocation,
    SessionStatus,
    RemarkSource,
    AttendanceEventType,
    TERMINAL_STATUSES,
    OPEN_SESSION_STATUSES,
)
from attendance_engine.models.finalization import FinalizationRun, FinalizationRunStatus

__all__ = [
    "Shift",
    "Employee",
    "Role",
    "Holiday",
    "WorkingRule",
    "AuditLog",
    "AttendanceRecord",
    "WorkSession",
    "SessionBreak",
    "AttendanceRemark",
    "AttendanceEvent",
    "AttendanceStatus",
    "ApprovalStatus",
    "HalfDayType",
    "WorkLocation",
    "SessionStatus",
    "RemarkSource",
    "AttendanceEventType",
    "TERMINAL_STATUSES",
    "OPEN_SESSION_STATUSES",
    "FinalizationRun",
    "FinalizationRunStatus",
]
