"""
Audit log model
"""
from sqlalchemy import Column, Integer, String, DateTime, ForeignKey, JSON
from attendance_engine.db.base import Base


class AuditLog(Base):
    __tablename__ = "audit_logs"

    id = Column(Integer, primary_key=True, index=True)
    actor_id = Column(Integer, ForeignKey("employees.id"), nullable=True)  # null for system jobs
    action = Column(String, nullable=False)  # e.g. "ATTENDANCE_SESSION_START", "ATTENDANCE_FINALIZATION_RUN"
    entity_type = Column(String, nullable=False)  # e.g. "attendance_records", "finalization_runs"
    entity_id = Column(Integer, nullable=True)
    meta_json = Column(JSON, nullable=True)
    created_at = Column(DateTime(timezone=True), nullable=False)
