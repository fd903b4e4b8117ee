"""
Attendance aggregate: one AttendanceRecord per (employee, work_date) owning its
work sessions, their breaks, the remarks history and an immutable event log.
"""
from sqlalchemy import (
    Column,
    Integer,
    Date,
    DateTime,
    ForeignKey,
    String,
    Text,
    Boolean,
    Numeric,
    JSON,
    UniqueConstraint,
    Enum as SQLEnum,
)
from sqlalchemy.orm import relationship
from sqlalchemy.sql import func
import enum
from attendance_engine.db.base import Base


def _values(enum_cls):
    return [member.value for member in enum_cls]


def _enum_column(enum_cls, **kwargs):
    # Stored as portable VARCHAR holding the enum value
    return Column(
        SQLEnum(enum_cls, values_callable=_values, native_enum=False, length=32, validate_strings=True),
        **kwargs,
    )


class AttendanceStatus(str, enum.Enum):
    IN_PROGRESS = "in_progress"
    PRESENT = "present"
    HALF_DAY = "half_day"
    ABSENT = "absent"
    WEEKEND = "weekend"
    HOLIDAY = "holiday"
    PENDING_CORRECTION = "pending_correction"


TERMINAL_STATUSES = frozenset({
    AttendanceStatus.PRESENT,
    AttendanceStatus.HALF_DAY,
    AttendanceStatus.ABSENT,
    AttendanceStatus.WEEKEND,
    AttendanceStatus.HOLIDAY,
})


class ApprovalStatus(str, enum.Enum):
    NONE = "none"
    PENDING = "pending"
    APPROVED = "approved"
    REJECTED = "rejected"


class HalfDayType(str, enum.Enum):
    FIRST_HALF = "first_half"
    SECOND_HALF = "second_half"
    FULL_DAY = "full_day"


class WorkLocation(str, enum.Enum):
    OFFICE = "office"
    WFH = "wfh"
    CLIENT_SITE = "client_site"


class SessionStatus(str, enum.Enum):
    ACTIVE = "active"
    ON_BREAK = "on_break"
    COMPLETED = "completed"


OPEN_SESSION_STATUSES = (SessionStatus.ACTIVE, SessionStatus.ON_BREAK)


class RemarkSource(str, enum.Enum):
    SYSTEM = "system"
    HUMAN = "human"


class AttendanceEventType(str, enum.Enum):
    SESSION_START = "SESSION_START"
    SESSION_END = "SESSION_END"
    BREAK_START = "BREAK_START"
    BREAK_END = "BREAK_END"
    AUTO_CLOSE = "AUTO_CLOSE"
    ADMIN_INSERT = "ADMIN_INSERT"
    ADMIN_RESOLVE = "ADMIN_RESOLVE"
    FINALIZED = "FINALIZED"


class AttendanceRecord(Base):
    __tablename__ = "attendance_records"

    id = Column(Integer, primary_key=True, index=True)
    employee_id = Column(Integer, ForeignKey("employees.id"), nullable=False, index=True)
    work_date = Column(Date, nullable=False, index=True)  # organization-timezone date
    status = _enum_column(AttendanceStatus, nullable=False, default=AttendanceStatus.IN_PROGRESS, index=True)
    status_reason = Column(Text, nullable=True)
    half_day_type = _enum_column(HalfDayType, nullable=True)  # which half of the shift was worked
    is_late = Column(Boolean, nullable=False, default=False)
    late_minutes = Column(Integer, nullable=False, default=0)
    is_early_departure = Column(Boolean, nullable=False, default=False)
    early_exit_minutes = Column(Integer, nullable=False, default=0)
    worked_minutes = Column(Integer, nullable=False, default=0)
    work_hours = Column(Numeric(5, 2), nullable=False, default=0)
    break_minutes = Column(Integer, nullable=False, default=0)
    overtime_minutes = Column(Integer, nullable=False, default=0)
    approval_status = _enum_column(ApprovalStatus, nullable=False, default=ApprovalStatus.NONE)
    finalized_at = Column(DateTime(timezone=True), nullable=True)
    version_id = Column(Integer, nullable=False)
    created_at = Column(DateTime(timezone=True), server_default=func.current_timestamp(), nullable=False)
    updated_at = Column(DateTime(timezone=True), server_default=func.current_timestamp(), nullable=False)

    __table_args__ = (
        UniqueConstraint("employee_id", "work_date", name="uq_attendance_records_employee_work_date"),
    )
    __mapper_args__ = {"version_id_col": version_id}

    employee = relationship("Employee")
    sessions = relationship(
        "WorkSession",
        back_populates="record",
        cascade="all, delete-orphan",
        order_by="[WorkSession.check_in, WorkSession.id]",
    )
    remarks = relationship(
        "AttendanceRemark",
        back_populates="record",
        cascade="all, delete-orphan",
        order_by="AttendanceRemark.id",
    )
    events = relationship("AttendanceEvent", back_populates="record", order_by="AttendanceEvent.id")


class WorkSession(Base):
    __tablename__ = "attendance_work_sessions"

    id = Column(Integer, primary_key=True, index=True)
    record_id = Column(Integer, ForeignKey("attendance_records.id"), nullable=False, index=True)
    check_in = Column(DateTime(timezone=True), nullable=False)
    check_out = Column(DateTime(timezone=True), nullable=True)
    work_location = _enum_column(WorkLocation, nullable=False, default=WorkLocation.OFFICE)
    location_details = Column(Text, nullable=True)  # required for client_site
    status = _enum_column(SessionStatus, nullable=False, default=SessionStatus.ACTIVE)
    total_break_minutes = Column(Integer, nullable=False, default=0)
    worked_minutes = Column(Integer, nullable=False, default=0)
    auto_closed = Column(Boolean, nullable=False, default=False)
    source = Column(String, nullable=False, default="WEB")  # WEB/MOBILE/ADMIN/SYSTEM

    record = relationship("AttendanceRecord", back_populates="sessions")
    breaks = relationship(
        "SessionBreak",
        back_populates="session",
        cascade="all, delete-orphan",
        order_by="[SessionBreak.start_time, SessionBreak.id]",
    )


class SessionBreak(Base):
    __tablename__ = "attendance_breaks"

    id = Column(Integer, primary_key=True, index=True)
    session_id = Column(Integer, ForeignKey("attendance_work_sessions.id"), nullable=False, index=True)
    start_time = Column(DateTime(timezone=True), nullable=False)
    end_time = Column(DateTime(timezone=True), nullable=True)
    duration_minutes = Column(Integer, nullable=False, default=0)

    session = relationship("WorkSession", back_populates="breaks")


class AttendanceRemark(Base):
    __tablename__ = "attendance_remarks"

    id = Column(Integer, primary_key=True, index=True)
    record_id = Column(Integer, ForeignKey("attendance_records.id"), nullable=False, index=True)
    note = Column(Text, nullable=False)
    source = _enum_column(RemarkSource, nullable=False, default=RemarkSource.SYSTEM)
    dedup_key = Column(String(255), nullable=True)
    added_by = Column(Integer, ForeignKey("employees.id"), nullable=True)
    added_at = Column(DateTime(timezone=True), nullable=False)

    __table_args__ = (
        UniqueConstraint("record_id", "dedup_key", name="uq_attendance_remarks_record_dedup_key"),
    )

    record = relationship("AttendanceRecord", back_populates="remarks")


class AttendanceEvent(Base):
    __tablename__ = "attendance_events"

    id = Column(Integer, primary_key=True, index=True)
    record_id = Column(Integer, ForeignKey("attendance_records.id"), nullable=False, index=True)
    session_id = Column(Integer, ForeignKey("attendance_work_sessions.id"), nullable=True, index=True)
    employee_id = Column(Integer, ForeignKey("employees.id"), nullable=False, index=True)
    event_type = _enum_column(AttendanceEventType, nullable=False)
    event_at = Column(DateTime(timezone=True), nullable=False)
    meta_json = Column(JSON, nullable=True)
    created_by = Column(Integer, ForeignKey("employees.id"), nullable=True)
    created_at = Column(DateTime(timezone=True), server_default=func.current_timestamp(), nullable=False)

    record = relationship("AttendanceRecord", back_populates="events")
