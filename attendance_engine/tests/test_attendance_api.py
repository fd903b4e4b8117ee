"""
Tests for the employee-facing attendance API
"""
from datetime import timedelta

from conftest import MONDAY, auth_headers, ist
from fastapi import status


def test_requires_authentication(client, employee):
    response = client.post("/api/v1/attendance/sessions/start")
    assert response.status_code in (status.HTTP_401_UNAUTHORIZED, status.HTTP_403_FORBIDDEN)


def test_login_returns_token(client, employee):
    response = client.post(
        "/api/v1/auth/login",
        json={"emp_code": "EMP001", "password": "testpass123"},
    )
    assert response.status_code == status.HTTP_200_OK
    data = response.json()
    assert data["token_type"] == "bearer"
    assert data["employee_id"] == employee.id


def test_login_wrong_password(client, employee):
    response = client.post(
        "/api/v1/auth/login",
        json={"emp_code": "EMP001", "password": "wrong"},
    )
    assert response.status_code == status.HTTP_401_UNAUTHORIZED


def test_clock_in_and_out(client, employee, clock):
    headers = auth_headers(client, "EMP001")

    clock.set(ist(MONDAY, 9, 5))
    response = client.post("/api/v1/attendance/sessions/start", json={"work_location": "wfh"}, headers=headers)
    assert response.status_code == status.HTTP_201_CREATED
    session = response.json()
    assert session["status"] == "active"
    assert session["work_location"] == "wfh"
    assert session["check_in"] == "2026-03-02T09:05:00+05:30"

    clock.set(ist(MONDAY, 13, 0))
    response = client.post("/api/v1/attendance/breaks/start", headers=headers)
    assert response.status_code == status.HTTP_201_CREATED

    clock.set(ist(MONDAY, 13, 15))
    response = client.post("/api/v1/attendance/breaks/end", headers=headers)
    assert response.status_code == status.HTTP_200_OK
    assert response.json()["duration_minutes"] == 15

    clock.set(ist(MONDAY, 17, 25))
    response = client.post("/api/v1/attendance/sessions/end", json={}, headers=headers)
    assert response.status_code == status.HTTP_200_OK
    data = response.json()
    assert data["status"] == "completed"
    assert data["worked_minutes"] == 485

    response = client.get(f"/api/v1/attendance/records/{MONDAY}", headers=headers)
    assert response.status_code == status.HTTP_200_OK
    record = response.json()
    assert record["status"] == "in_progress"
    assert record["worked_minutes"] == 485
    assert record["work_hours"] == 8.08
    assert len(record["sessions"]) == 1
    assert len(record["sessions"][0]["breaks"]) == 1


def test_second_clock_in_returns_error_code(client, employee, clock):
    headers = auth_headers(client, "EMP001")
    client.post("/api/v1/attendance/sessions/start", headers=headers)

    response = client.post("/api/v1/attendance/sessions/start", headers=headers)

    assert response.status_code == status.HTTP_400_BAD_REQUEST
    assert response.json()["code"] == "SESSION_ALREADY_OPEN"


def test_double_break_returns_error_code(client, employee, clock):
    headers = auth_headers(client, "EMP001")
    client.post("/api/v1/attendance/sessions/start", headers=headers)
    clock.advance(hours=2)
    client.post("/api/v1/attendance/breaks/start", headers=headers)

    clock.advance(minutes=5)
    response = client.post("/api/v1/attendance/breaks/start", headers=headers)

    assert response.status_code == status.HTTP_400_BAD_REQUEST
    assert response.json()["code"] == "BREAK_ALREADY_OPEN"

    today = client.get("/api/v1/attendance/today", headers=headers).json()
    assert today["open_session"]["status"] == "on_break"
    assert len(today["open_session"]["breaks"]) == 1


def test_clock_out_on_break_rejected(client, employee, clock):
    headers = auth_headers(client, "EMP001")
    client.post("/api/v1/attendance/sessions/start", headers=headers)
    clock.advance(hours=1)
    client.post("/api/v1/attendance/breaks/start", headers=headers)

    response = client.post("/api/v1/attendance/sessions/end", headers=headers)

    assert response.status_code == status.HTTP_400_BAD_REQUEST
    assert response.json()["code"] == "BREAK_IN_PROGRESS"


def test_error_codes_without_session(client, employee):
    headers = auth_headers(client, "EMP001")

    assert client.post("/api/v1/attendance/sessions/end", headers=headers).json()["code"] == "NO_OPEN_SESSION"
    assert client.post("/api/v1/attendance/breaks/start", headers=headers).json()["code"] == "NO_ACTIVE_SESSION"
    assert client.post("/api/v1/attendance/breaks/end", headers=headers).json()["code"] == "NO_OPEN_BREAK"


def test_client_site_requires_details(client, employee):
    headers = auth_headers(client, "EMP001")

    response = client.post(
        "/api/v1/attendance/sessions/start",
        json={"work_location": "client_site"},
        headers=headers,
    )

    assert response.status_code == status.HTTP_400_BAD_REQUEST
    assert response.json()["code"] == "LOCATION_DETAILS_REQUIRED"


def test_future_event_time_rejected(client, employee, clock):
    headers = auth_headers(client, "EMP001")

    response = client.post(
        "/api/v1/attendance/sessions/start",
        json={"at": (clock.now() + timedelta(minutes=5)).isoformat()},
        headers=headers,
    )

    assert response.status_code == status.HTTP_400_BAD_REQUEST
    assert response.json()["code"] == "FUTURE_TIMESTAMP"


def test_today_before_first_clock_in(client, employee):
    headers = auth_headers(client, "EMP001")

    response = client.get("/api/v1/attendance/today", headers=headers)

    assert response.status_code == status.HTTP_200_OK
    data = response.json()
    assert data["work_date"] == str(MONDAY)
    assert data["record"] is None
    assert data["open_session"] is None


def test_missing_record_is_404(client, employee):
    headers = auth_headers(client, "EMP001")

    response = client.get(f"/api/v1/attendance/records/{MONDAY}", headers=headers)

    assert response.status_code == status.HTTP_404_NOT_FOUND
    assert response.json()["code"] == "RECORD_NOT_FOUND"


def test_my_records_range(client, employee, clock):
    headers = auth_headers(client, "EMP001")
    client.post("/api/v1/attendance/sessions/start", headers=headers)
    clock.set(ist(MONDAY + timedelta(days=1), 9, 0))
    client.post("/api/v1/attendance/sessions/start", headers=headers)

    response = client.get(
        f"/api/v1/attendance/my?from={MONDAY}&to={MONDAY + timedelta(days=6)}",
        headers=headers,
    )
    assert response.status_code == status.HTTP_200_OK
    assert response.json()["total"] == 2

    response = client.get(f"/api/v1/attendance/my?from={MONDAY}&to={MONDAY - timedelta(days=1)}", headers=headers)
    assert response.status_code == status.HTTP_400_BAD_REQUEST


def test_admin_endpoints_require_hr(client, employee):
    headers = auth_headers(client, "EMP001")

    response = client.get("/api/v1/admin/attendance/records", headers=headers)

    assert response.status_code == status.HTTP_403_FORBIDDEN


