"""
Employee model (directory data the engine reads: identity, activity window, shift assignment)
"""
from sqlalchemy import Column, Integer, String, Boolean, DateTime, Date, ForeignKey
from sqlalchemy.orm import relationship
from sqlalchemy.sql import func
import enum
from attendance_engine.db.base import Base


class Role(str, enum.Enum):
    EMPLOYEE = "EMPLOYEE"
    MANAGER = "MANAGER"
    HR = "HR"
    ADMIN = "ADMIN"


class Employee(Base):
    __tablename__ = "employees"

    id = Column(Integer, primary_key=True, index=True)
    emp_code = Column(String, unique=True, nullable=False, index=True)
    name = Column(String, nullable=False)
    role = Column(String, nullable=False, default=Role.EMPLOYEE.value)
    password_hash = Column(String, nullable=True)
    join_date = Column(Date, nullable=False)
    exit_date = Column(Date, nullable=True)  # last working day; inactive for dates after it
    active = Column(Boolean, default=True, nullable=False)
    shift_id = Column(Integer, ForeignKey("shifts.id"), nullable=True)  # falls back to the default shift
    created_at = Column(DateTime(timezone=True), server_default=func.current_timestamp(), nullable=False)
    updated_at = Column(DateTime(timezone=True), server_default=func.current_timestamp(), onupdate=func.current_timestamp(), nullable=False)

    shift = relationship("Shift")
