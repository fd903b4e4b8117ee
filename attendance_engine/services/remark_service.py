"""
Append-only remarks on an attendance record.
"""
from datetime import datetime
from typing import Optional

from attendance_engine.models.attendance import AttendanceRecord, AttendanceRemark, RemarkSource


def has_remark(record: AttendanceRecord, dedup_key: str) -> bool:
    return any(r.dedup_key == dedup_key for r in record.remarks)


def add_remark(
    record: AttendanceRecord,
    note: str,
    now: datetime,
    *,
    source: RemarkSource = RemarkSource.SYSTEM,
    dedup_key: Optional[str] = None,
    added_by: Optional[int] = None,
) -> Optional[AttendanceRemark]:
    """
    Append a remark to the record. When dedup_key is given and a remark with the
    same key already exists, nothing is appended and None is returned.
    """
    if dedup_key is not None and has_remark(record, dedup_key):
        return None
    remark = AttendanceRemark(
        note=note,
        source=source,
        dedup_key=dedup_key,
        added_by=added_by,
        added_at=now,
    )
    record.remarks.append(remark)
    return remark
