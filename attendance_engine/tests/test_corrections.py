"""
Tests for administrative corrections: session insertion and review resolution
"""
from datetime import timedelta

import pytest
from conftest import MONDAY, auth_headers, ist
from fastapi import status

from attendance_engine.core.errors import InvalidResolution, RecordNotFound
from attendance_engine.models.attendance import (
    AttendanceEventType,
    AttendanceRecord,
    AttendanceStatus,
    ApprovalStatus,
    RemarkSource,
)
from attendance_engine.services import attendance_session_service as svc
from attendance_engine.services.correction_service import insert_session, resolve_record
from attendance_engine.services.finalization_service import run_finalization

AFTER_MONDAY = ist(MONDAY + timedelta(days=1), 1, 0)


def _record(db, employee):
    db.expire_all()
    return (
        db.query(AttendanceRecord)
        .filter(AttendanceRecord.employee_id == employee.id, AttendanceRecord.work_date == MONDAY)
        .first()
    )


def _overlapping_day(db, employee, hr_user):
    """Employee worked 09:00-17:00; HR then inserts an overlapping 16:00-18:00 session."""
    svc.start_session(db, employee.id, now=ist(MONDAY, 9, 0))
    svc.end_session(db, employee.id, now=ist(MONDAY, 17, 0))
    return insert_session(
        db, employee.id, MONDAY, ist(MONDAY, 16, 0), ist(MONDAY, 18, 0),
        actor_id=hr_user.id, now=ist(MONDAY, 19, 0),
    )


def test_overlapping_insert_flags_record(db, employee, hr_user):
    session = _overlapping_day(db, employee, hr_user)

    record = _record(db, employee)
    assert session.record_id == record.id
    assert len(record.sessions) == 2
    assert record.approval_status == ApprovalStatus.PENDING
    assert record.status == AttendanceStatus.PENDING_CORRECTION
    assert record.status_reason == "Flagged for review: 1 anomaly detected"

    sources = [r.source for r in record.remarks]
    assert sources == [RemarkSource.HUMAN, RemarkSource.SYSTEM]
    assert "16:00-18:00" in record.remarks[0].note
    assert "Session 2 starts before session 1 ends" in record.remarks[1].note

    insert_event = [e for e in record.events if e.event_type == AttendanceEventType.ADMIN_INSERT][0]
    assert insert_event.created_by == hr_user.id
    assert insert_event.meta_json["anomalies"][0]["type"] == "SESSION_OVERLAP"


def test_missed_session_reclassifies_finalized_day(db, employee, hr_user):
    svc.start_session(db, employee.id, now=ist(MONDAY, 9, 0))
    svc.end_session(db, employee.id, now=ist(MONDAY, 13, 0))
    run_finalization(db, MONDAY, now=AFTER_MONDAY)
    assert _record(db, employee).status == AttendanceStatus.HALF_DAY

    insert_session(
        db, employee.id, MONDAY, ist(MONDAY, 14, 0), ist(MONDAY, 18, 0),
        actor_id=hr_user.id, note="Forgot to clock in after lunch", now=AFTER_MONDAY,
    )

    record = _record(db, employee)
    assert record.worked_minutes == 480
    assert record.status == AttendanceStatus.PRESENT
    assert record.approval_status == ApprovalStatus.NONE
    assert record.remarks[-1].note == "Forgot to clock in after lunch"


def test_insert_creates_missing_record(db, employee, hr_user):
    insert_session(
        db, employee.id, MONDAY, ist(MONDAY, 9, 0), ist(MONDAY, 17, 0),
        breaks=[(ist(MONDAY, 13, 0), ist(MONDAY, 13, 30))],
        actor_id=hr_user.id, now=ist(MONDAY, 20, 0),
    )

    record = _record(db, employee)
    assert record is not None
    assert record.worked_minutes == 450
    assert record.break_minutes == 30
    assert record.approval_status == ApprovalStatus.NONE

    run_finalization(db, MONDAY, now=AFTER_MONDAY)
    assert _record(db, employee).status == AttendanceStatus.HALF_DAY


def test_inserted_sessions_kept_in_check_in_order(db, employee, hr_user):
    svc.start_session(db, employee.id, now=ist(MONDAY, 14, 0))
    svc.end_session(db, employee.id, now=ist(MONDAY, 18, 0))
    insert_session(
        db, employee.id, MONDAY, ist(MONDAY, 9, 0), ist(MONDAY, 13, 0),
        actor_id=hr_user.id, now=ist(MONDAY, 19, 0),
    )

    record = _record(db, employee)
    starts = [s.check_in for s in record.sessions]
    assert starts == sorted(starts)
    assert record.approval_status == ApprovalStatus.NONE


def test_approve_reclassifies(db, employee, hr_user):
    _overlapping_day(db, employee, hr_user)
    record_id = _record(db, employee).id

    record = resolve_record(
        db, record_id, ApprovalStatus.APPROVED, "Overtime confirmed by manager",
        actor_id=hr_user.id, now=AFTER_MONDAY,
    )

    assert record.approval_status == ApprovalStatus.APPROVED
    assert record.status == AttendanceStatus.PRESENT
    assert record.worked_minutes == 600
    assert record.finalized_at is not None
    assert record.remarks[-1].source == RemarkSource.HUMAN

    # Finalization leaves the approved record alone
    summary = run_finalization(db, MONDAY, now=AFTER_MONDAY + timedelta(hours=1))
    assert summary.already_finalized == 1
    assert _record(db, employee).status == AttendanceStatus.PRESENT


def test_reject_keeps_record_flagged(db, employee, hr_user):
    _overlapping_day(db, employee, hr_user)
    record_id = _record(db, employee).id

    record = resolve_record(
        db, record_id, ApprovalStatus.REJECTED, "Duplicate entry",
        actor_id=hr_user.id, now=AFTER_MONDAY,
    )

    assert record.approval_status == ApprovalStatus.REJECTED
    assert record.status == AttendanceStatus.PENDING_CORRECTION
    assert record.status_reason == "Correction rejected: Duplicate entry"

    summary = run_finalization(db, MONDAY, now=AFTER_MONDAY + timedelta(hours=1))
    assert summary.flagged == 1


def test_resolving_clean_record_rejected(db, employee, hr_user):
    svc.start_session(db, employee.id, now=ist(MONDAY, 9, 0))
    record_id = _record(db, employee).id

    with pytest.raises(InvalidResolution):
        resolve_record(db, record_id, ApprovalStatus.APPROVED, "ok", actor_id=hr_user.id, now=ist(MONDAY, 10, 0))


def test_resolve_invalid_decision(db, employee, hr_user):
    _overlapping_day(db, employee, hr_user)
    with pytest.raises(InvalidResolution):
        resolve_record(db, _record(db, employee).id, ApprovalStatus.PENDING, "?", actor_id=hr_user.id)


def test_resolve_unknown_record(db, hr_user):
    with pytest.raises(RecordNotFound):
        resolve_record(db, 9999, ApprovalStatus.APPROVED, "ok", actor_id=hr_user.id)


def test_review_queue_via_api(client, employee, hr_user, clock):
    employee_headers = auth_headers(client, "EMP001")
    hr_headers = auth_headers(client, "HR001")
    client.post("/api/v1/attendance/sessions/start", headers=employee_headers)
    clock.set(ist(MONDAY, 17, 0))
    client.post("/api/v1/attendance/sessions/end", headers=employee_headers)

    clock.set(ist(MONDAY, 19, 0))
    response = client.post(
        f"/api/v1/admin/attendance/records/{employee.id}/{MONDAY}/sessions",
        json={
            "check_in": ist(MONDAY, 16, 0).isoformat(),
            "check_out": ist(MONDAY, 18, 0).isoformat(),
            "note": "Client call",
        },
        headers=hr_headers,
    )
    assert response.status_code == status.HTTP_201_CREATED
    assert response.json()["source"] == "ADMIN"

    response = client.get(
        f"/api/v1/admin/attendance/records?from={MONDAY}&status=pending_correction",
        headers=hr_headers,
    )
    assert response.status_code == status.HTTP_200_OK
    queue = response.json()
    assert queue["total"] == 1
    record_id = queue["items"][0]["id"]

    response = client.post(
        f"/api/v1/admin/attendance/records/{record_id}/resolve",
        json={"decision": "pending", "note": "?"},
        headers=hr_headers,
    )
    assert response.status_code == status.HTTP_422_UNPROCESSABLE_ENTITY

    response = client.post(
        f"/api/v1/admin/attendance/records/{record_id}/resolve",
        json={"decision": "approved", "note": "Confirmed"},
        headers=hr_headers,
    )
    assert response.status_code == status.HTTP_200_OK
    data = response.json()
    assert data["approval_status"] == "approved"
    assert data["status"] == "present"

    response = client.post(
        f"/api/v1/admin/attendance/records/{record_id}/resolve",
        json={"decision": "approved", "note": "Again"},
        headers=hr_headers,
    )
    assert response.status_code == status.HTTP_400_BAD_REQUEST
    assert response.json()["code"] == "INVALID_RESOLUTION"


def test_employee_cannot_insert_sessions(client, employee):
    headers = auth_headers(client, "EMP001")
    response = client.post(
        f"/api/v1/admin/attendance/records/{employee.id}/{MONDAY}/sessions",
        json={"check_in": ist(MONDAY, 9, 0).isoformat(), "check_out": ist(MONDAY, 10, 0).isoformat()},
        headers=headers,
    )
    assert response.status_code == status.HTTP_403_FORBIDDEN
