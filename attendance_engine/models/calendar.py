"""
Organization calendar models: holidays and working rules (weekend days)
"""
from sqlalchemy import Column, Integer, Date, DateTime, String, Boolean, JSON
from sqlalchemy.sql import func
from attendance_engine.db.base import Base


class Holiday(Base):
    __tablename__ = "holidays"

    id = Column(Integer, primary_key=True, index=True)
    date = Column(Date, nullable=False, unique=True, index=True)
    name = Column(String(255), nullable=False)
    active = Column(Boolean, default=True, nullable=False)
    created_at = Column(DateTime(timezone=True), server_default=func.current_timestamp(), nullable=False)
    updated_at = Column(DateTime(timezone=True), server_default=func.current_timestamp(), onupdate=func.current_timestamp(), nullable=False)


class WorkingRule(Base):
    __tablename__ = "working_rules"

    id = Column(Integer, primary_key=True, index=True)
    name = Column(String(100), nullable=False)
    weekend_days = Column(JSON, nullable=False, default=list)  # ISO weekdays, Mon=1 .. Sun=7
    effective_from = Column(Date, nullable=False)
    effective_to = Column(Date, nullable=True)  # open-ended when null
    is_default = Column(Boolean, default=False, nullable=False)
    active = Column(Boolean, default=True, nullable=False)
    created_at = Column(DateTime(timezone=True), server_default=func.current_timestamp(), nullable=False)
    updated_at = Column(DateTime(timezone=True), server_default=func.current_timestamp(), onupdate=func.current_timestamp(), nullable=False)
