"""
Tests for the consistency validator (pure anomaly detection and the review gate)
"""
from conftest import MONDAY, ist
from factories import build_record, build_session

from attendance_engine.models.attendance import ApprovalStatus, AttendanceStatus
from attendance_engine.services.consistency_validator import (
    AnomalyType,
    anomaly_key,
    detect_anomalies,
    flag_record,
)


def _types(anomalies):
    return {a.type for a in anomalies}


def test_clean_day_has_no_anomalies():
    record = build_record(
        MONDAY,
        build_session(ist(MONDAY, 9, 0), ist(MONDAY, 13, 0), breaks=[(ist(MONDAY, 11, 0), ist(MONDAY, 11, 15))], session_id=1),
        build_session(ist(MONDAY, 14, 0), ist(MONDAY, 18, 0), session_id=2),
    )
    assert detect_anomalies(record) == []


def test_clock_out_before_clock_in_is_reported_not_clamped():
    session = build_session(ist(MONDAY, 17, 0), ist(MONDAY, 9, 0), session_id=1)
    record = build_record(MONDAY, session)

    anomalies = detect_anomalies(record)

    assert session.worked_minutes == -480
    assert AnomalyType.INVALID_TIMESTAMP_ORDER in _types(anomalies)
    assert AnomalyType.NEGATIVE_DURATION in _types(anomalies)
    assert all(a.session_id == 1 for a in anomalies)


def test_break_end_before_start():
    session = build_session(
        ist(MONDAY, 9, 0), ist(MONDAY, 17, 0),
        breaks=[(ist(MONDAY, 12, 30), ist(MONDAY, 12, 0))],
        session_id=1,
    )
    anomalies = detect_anomalies(build_record(MONDAY, session))

    assert AnomalyType.INVALID_TIMESTAMP_ORDER in _types(anomalies)
    assert AnomalyType.NEGATIVE_DURATION in _types(anomalies)
    assert any(a.break_id == 1 for a in anomalies)


def test_break_starting_before_session_is_outside():
    session = build_session(
        ist(MONDAY, 9, 0), ist(MONDAY, 17, 0),
        breaks=[(ist(MONDAY, 8, 30), ist(MONDAY, 9, 15))],
        session_id=1,
    )
    anomalies = detect_anomalies(build_record(MONDAY, session))
    assert _types(anomalies) == {AnomalyType.BREAK_OUTSIDE_SESSION}


def test_break_ending_after_session_is_outside():
    session = build_session(
        ist(MONDAY, 9, 0), ist(MONDAY, 17, 0),
        breaks=[(ist(MONDAY, 16, 45), ist(MONDAY, 17, 30))],
        session_id=1,
    )
    anomalies = detect_anomalies(build_record(MONDAY, session))
    assert _types(anomalies) == {AnomalyType.BREAK_OUTSIDE_SESSION}


def test_total_break_exceeding_session_span():
    session = build_session(ist(MONDAY, 9, 0), ist(MONDAY, 10, 0), session_id=1, total_break_minutes=90)
    anomalies = detect_anomalies(build_record(MONDAY, session))

    assert AnomalyType.BREAK_EXCEEDS_SESSION in _types(anomalies)
    # worked = 60 - 90
    assert AnomalyType.NEGATIVE_DURATION in _types(anomalies)


def test_overlapping_sessions():
    """Clock-in 09:00-17:00 plus an inserted 16:00-18:00 session overlaps."""
    record = build_record(
        MONDAY,
        build_session(ist(MONDAY, 9, 0), ist(MONDAY, 17, 0), session_id=1),
        build_session(ist(MONDAY, 16, 0), ist(MONDAY, 18, 0), session_id=2),
    )
    anomalies = detect_anomalies(record)

    assert len(anomalies) == 1
    assert anomalies[0].type == AnomalyType.SESSION_OVERLAP
    assert anomalies[0].session_id == 2


def test_overlap_detected_regardless_of_insertion_order():
    record = build_record(
        MONDAY,
        build_session(ist(MONDAY, 16, 0), ist(MONDAY, 18, 0), session_id=2),
        build_session(ist(MONDAY, 9, 0), ist(MONDAY, 17, 0), session_id=1),
    )
    assert _types(detect_anomalies(record)) == {AnomalyType.SESSION_OVERLAP}


def test_open_session_followed_by_another_overlaps():
    record = build_record(
        MONDAY,
        build_session(ist(MONDAY, 9, 0), None, session_id=1),
        build_session(ist(MONDAY, 13, 0), ist(MONDAY, 15, 0), session_id=2),
    )
    assert _types(detect_anomalies(record)) == {AnomalyType.SESSION_OVERLAP}


def test_back_to_back_sessions_do_not_overlap():
    record = build_record(
        MONDAY,
        build_session(ist(MONDAY, 9, 0), ist(MONDAY, 13, 0), session_id=1),
        build_session(ist(MONDAY, 13, 0), ist(MONDAY, 18, 0), session_id=2),
    )
    assert detect_anomalies(record) == []


def test_detection_does_not_mutate_record():
    record = build_record(
        MONDAY,
        build_session(ist(MONDAY, 9, 0), ist(MONDAY, 17, 0), session_id=1),
        build_session(ist(MONDAY, 16, 0), ist(MONDAY, 18, 0), session_id=2),
    )
    detect_anomalies(record)

    assert record.approval_status == ApprovalStatus.NONE
    assert record.status == AttendanceStatus.IN_PROGRESS
    assert list(record.remarks) == []


def test_flag_record_sets_review_gate_and_remark():
    record = build_record(
        MONDAY,
        build_session(ist(MONDAY, 9, 0), ist(MONDAY, 17, 0), session_id=1),
        build_session(ist(MONDAY, 16, 0), ist(MONDAY, 18, 0), session_id=2),
    )
    anomalies = detect_anomalies(record)

    assert flag_record(record, anomalies, ist(MONDAY, 19, 0)) is True
    assert record.approval_status == ApprovalStatus.PENDING
    assert record.status == AttendanceStatus.PENDING_CORRECTION
    assert record.status_reason == "Flagged for review: 1 anomaly detected"
    assert len(record.remarks) == 1
    assert "Session 2 starts before session 1 ends" in record.remarks[0].note


def test_flag_record_deduplicates_remarks():
    record = build_record(
        MONDAY,
        build_session(ist(MONDAY, 9, 0), ist(MONDAY, 17, 0), session_id=1),
        build_session(ist(MONDAY, 16, 0), ist(MONDAY, 18, 0), session_id=2),
    )
    anomalies = detect_anomalies(record)
    flag_record(record, anomalies, ist(MONDAY, 19, 0))
    flag_record(record, detect_anomalies(record), ist(MONDAY, 20, 0))

    assert len(record.remarks) == 1
    assert record.remarks[0].dedup_key == anomaly_key(anomalies)


def test_approved_anomalies_are_not_flagged_again():
    record = build_record(
        MONDAY,
        build_session(ist(MONDAY, 9, 0), ist(MONDAY, 17, 0), session_id=1),
        build_session(ist(MONDAY, 16, 0), ist(MONDAY, 18, 0), session_id=2),
    )
    flag_record(record, detect_anomalies(record), ist(MONDAY, 19, 0))
    record.approval_status = ApprovalStatus.APPROVED
    record.status = AttendanceStatus.PRESENT

    assert flag_record(record, detect_anomalies(record), ist(MONDAY, 20, 0)) is False
    assert record.approval_status == ApprovalStatus.APPROVED


def test_flag_record_without_anomalies_is_noop():
    record = build_record(MONDAY)
    assert flag_record(record, [], ist(MONDAY, 19, 0)) is False
    assert record.approval_status == ApprovalStatus.NONE
