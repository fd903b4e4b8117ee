"""
Consistency validator: detects physically impossible or conflicting timestamps
in a day's sessions and breaks.

detect_anomalies() is pure and never mutates the record. flag_record() is the
separate gate that suspends automatic classification until a human resolves
the anomalies.
"""
import enum
import hashlib
import logging
from dataclasses import dataclass, asdict
from datetime import datetime
from typing import List, Optional

from attendance_engine.models.attendance import (
    AttendanceRecord,
    AttendanceStatus,
    ApprovalStatus,
)
from attendance_engine.services.remark_service import add_remark, has_remark
from attendance_engine.utils.datetime_utils import ensure_utc, minutes_between

logger = logging.getLogger(__name__)


class AnomalyType(str, enum.Enum):
    INVALID_TIMESTAMP_ORDER = "INVALID_TIMESTAMP_ORDER"
    NEGATIVE_DURATION = "NEGATIVE_DURATION"
    BREAK_OUTSIDE_SESSION = "BREAK_OUTSIDE_SESSION"
    BREAK_EXCEEDS_SESSION = "BREAK_EXCEEDS_SESSION"
    SESSION_OVERLAP = "SESSION_OVERLAP"


@dataclass(frozen=True)
class Anomaly:
    type: AnomalyType
    message: str
    session_id: Optional[int] = None
    break_id: Optional[int] = None

    def to_dict(self) -> dict:
        data = asdict(self)
        data["type"] = self.type.value
        return data


def _ordered_sessions(record: AttendanceRecord):
    return sorted(
        record.sessions,
        key=lambda s: (ensure_utc(s.check_in), s.id or 0),
    )


def detect_anomalies(record: AttendanceRecord) -> List[Anomaly]:
    """Return every structural anomaly in the record's sessions and breaks."""
    anomalies: List[Anomaly] = []
    sessions = _ordered_sessions(record)

    for index, session in enumerate(sessions, start=1):
        check_in = ensure_utc(session.check_in)
        check_out = ensure_utc(session.check_out)

        if check_out is not None and check_out < check_in:
            anomalies.append(Anomaly(
                AnomalyType.INVALID_TIMESTAMP_ORDER,
                f"Session {index}: clock-out time is before clock-in time",
                session_id=session.id,
            ))

        if check_out is not None and (session.worked_minutes or 0) < 0:
            anomalies.append(Anomaly(
                AnomalyType.NEGATIVE_DURATION,
                f"Session {index}: negative worked minutes ({session.worked_minutes})",
                session_id=session.id,
            ))

        for b_index, brk in enumerate(session.breaks, start=1):
            start = ensure_utc(brk.start_time)
            end = ensure_utc(brk.end_time)
            label = f"Session {index}, break {b_index}"

            if end is not None and end < start:
                anomalies.append(Anomaly(
                    AnomalyType.INVALID_TIMESTAMP_ORDER,
                    f"{label}: end time before start time",
                    session_id=session.id,
                    break_id=brk.id,
                ))
            if (brk.duration_minutes or 0) < 0:
                anomalies.append(Anomaly(
                    AnomalyType.NEGATIVE_DURATION,
                    f"{label}: negative duration ({brk.duration_minutes})",
                    session_id=session.id,
                    break_id=brk.id,
                ))
            if start < check_in:
                anomalies.append(Anomaly(
                    AnomalyType.BREAK_OUTSIDE_SESSION,
                    f"{label}: break starts before the session",
                    session_id=session.id,
                    break_id=brk.id,
                ))
            if check_out is not None and end is not None and end > check_out:
                anomalies.append(Anomaly(
                    AnomalyType.BREAK_OUTSIDE_SESSION,
                    f"{label}: break ends after the session",
                    session_id=session.id,
                    break_id=brk.id,
                ))

        if check_out is not None and check_out >= check_in:
            span = minutes_between(check_in, check_out)
            if (session.total_break_minutes or 0) > span:
                anomalies.append(Anomaly(
                    AnomalyType.BREAK_EXCEEDS_SESSION,
                    f"Session {index}: total break time ({session.total_break_minutes}m) exceeds session duration ({span}m)",
                    session_id=session.id,
                ))

    for index in range(1, len(sessions)):
        prev, nxt = sessions[index - 1], sessions[index]
        prev_out = ensure_utc(prev.check_out)
        # An open session followed by another one overlaps it by definition
        if prev_out is None or ensure_utc(nxt.check_in) < prev_out:
            anomalies.append(Anomaly(
                AnomalyType.SESSION_OVERLAP,
                f"Session {index + 1} starts before session {index} ends",
                session_id=nxt.id,
            ))

    return anomalies


def anomaly_key(anomalies: List[Anomaly]) -> str:
    """Stable dedup key for a set of anomalies."""
    parts = sorted(f"{a.type.value}:{a.session_id}:{a.break_id}" for a in anomalies)
    digest = hashlib.sha1("|".join(parts).encode("utf-8")).hexdigest()[:16]
    return f"anomalies:{digest}"


def flag_record(record: AttendanceRecord, anomalies: List[Anomaly], now: datetime) -> bool:
    """
    Put the record under review. Returns False when nothing changed: no anomalies,
    or the same anomalies were already reviewed and approved.
    """
    if not anomalies:
        return False
    key = anomaly_key(anomalies)
    if record.approval_status == ApprovalStatus.APPROVED and has_remark(record, key):
        return False

    count = len(anomalies)
    noun = "anomaly" if count == 1 else "anomalies"
    record.approval_status = ApprovalStatus.PENDING
    record.status = AttendanceStatus.PENDING_CORRECTION
    record.status_reason = f"Flagged for review: {count} {noun} detected"
    record.half_day_type = None
    record.finalized_at = None
    add_remark(
        record,
        "System detected anomalies: " + "; ".join(a.message for a in anomalies),
        now,
        dedup_key=key,
    )
    logger.warning(
        "Attendance record flagged: employee_id=%s work_date=%s anomalies=%s",
        record.employee_id, record.work_date, [a.type.value for a in anomalies],
    )
    return True
