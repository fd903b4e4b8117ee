"""
Finalization run ledger: one row per invocation of the daily finalization job
"""
from sqlalchemy import Column, Integer, Date, DateTime, String, ForeignKey, JSON, Enum as SQLEnum
import enum
from attendance_engine.db.base import Base


class FinalizationRunStatus(str, enum.Enum):
    RUNNING = "RUNNING"
    COMPLETED = "COMPLETED"
    FAILED = "FAILED"


class FinalizationRun(Base):
    __tablename__ = "finalization_runs"

    id = Column(Integer, primary_key=True, index=True)
    work_date = Column(Date, nullable=False, index=True)
    calendar_class = Column(String(20), nullable=True)
    status = Column(
        SQLEnum(FinalizationRunStatus, native_enum=False, length=20),
        nullable=False,
        default=FinalizationRunStatus.RUNNING,
    )
    finalized = Column(Integer, nullable=False, default=0)
    skipped = Column(Integer, nullable=False, default=0)
    flagged = Column(Integer, nullable=False, default=0)
    errored = Column(Integer, nullable=False, default=0)
    already_finalized = Column(Integer, nullable=False, default=0)
    deferred = Column(Integer, nullable=False, default=0)
    errors = Column(JSON, nullable=True)  # [{"employee_id": .., "error": ..}]
    triggered_by = Column(Integer, ForeignKey("employees.id"), nullable=True)  # null for scheduled runs
    started_at = Column(DateTime(timezone=True), nullable=False)
    completed_at = Column(DateTime(timezone=True), nullable=True)
