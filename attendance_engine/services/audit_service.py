"""
Audit trail: who did what to which attendance entity
"""
from datetime import datetime
from typing import Any, Dict, Optional
from sqlalchemy.orm import Session

from attendance_engine.models.audit_log import AuditLog
from attendance_engine.utils.datetime_utils import ensure_utc, now_utc
from attendance_engine.utils.json_serializer import sanitize_for_json


def log_audit(
    db: Session,
    actor_id: Optional[int],
    action: str,
    entity_type: str,
    entity_id: Optional[int] = None,
    meta: Optional[Dict[str, Any]] = None,
    *,
    at: Optional[datetime] = None,
) -> AuditLog:
    """
    Append an audit entry.

    actor_id is None for the scheduled finalization job. `at` follows the
    caller's clock so entries line up with the events they describe. Commits
    immediately, after the change it records has been committed.
    """
    entry = AuditLog(
        actor_id=actor_id,
        action=action,
        entity_type=entity_type,
        entity_id=entity_id,
        meta_json=sanitize_for_json(meta) if meta is not None else None,
        # set explicitly; SQLite ignores the timezone on server defaults
        created_at=ensure_utc(at) or now_utc(),
    )
    db.add(entry)
    db.commit()
    db.refresh(entry)
    return entry
