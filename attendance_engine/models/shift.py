"""
Shift model: per-employee work-hour thresholds, grace period and weekly offs
"""
from sqlalchemy import Column, Integer, String, Boolean, DateTime, Time, Numeric, JSON
from sqlalchemy.sql import func
from attendance_engine.db.base import Base


class Shift(Base):
    __tablename__ = "shifts"

    id = Column(Integer, primary_key=True, index=True)
    name = Column(String(100), nullable=False)
    code = Column(String(20), unique=True, nullable=False)
    start_time = Column(Time, nullable=False)  # wall clock, organization timezone
    end_time = Column(Time, nullable=False)  # earlier than start_time => overnight shift
    full_day_hours = Column(Numeric(4, 2), nullable=False, default=8)
    half_day_hours = Column(Numeric(4, 2), nullable=False, default=4)
    grace_period_minutes = Column(Integer, nullable=False, default=0)
    late_threshold_minutes = Column(Integer, nullable=False, default=0)  # 0 = no threshold remark
    weekly_off_days = Column(JSON, nullable=False, default=list)  # ISO weekdays, Mon=1 .. Sun=7
    is_default = Column(Boolean, default=False, nullable=False)
    active = Column(Boolean, default=True, nullable=False)
    created_at = Column(DateTime(timezone=True), server_default=func.current_timestamp(), nullable=False)
    updated_at = Column(DateTime(timezone=True), server_default=func.current_timestamp(), onupdate=func.current_timestamp(), nullable=False)
