"""
Pytest configuration and fixtures
"""
import os

# Settings are read at import time; provide test values before the app is imported
os.environ["DATABASE_URL"] = "sqlite:///:memory:"
os.environ.setdefault("JWT_SECRET_KEY", "test-secret-key-for-attendance-engine")
os.environ["APP_ENV"] = "local"
os.environ["ORG_TIMEZONE"] = "Asia/Kolkata"

from datetime import date, datetime, time  # noqa: E402
from zoneinfo import ZoneInfo  # noqa: E402

import pytest  # noqa: E402
from fastapi.testclient import TestClient  # noqa: E402
from sqlalchemy import create_engine, event  # noqa: E402
from sqlalchemy.engine import Engine  # noqa: E402
from sqlalchemy.orm import sessionmaker  # noqa: E402
from sqlalchemy.pool import StaticPool  # noqa: E402

from attendance_engine.main import app  # noqa: E402
from attendance_engine.db.base import Base  # noqa: E402
from attendance_engine.db.session import get_db  # noqa: E402
from attendance_engine.core.deps import get_clock  # noqa: E402
from attendance_engine.core.security import hash_password  # noqa: E402
from attendance_engine.utils.datetime_utils import FixedClock  # noqa: E402

# Import all models to ensure they're registered with Base.metadata
from attendance_engine.models import (  # noqa: E402,F401
    AttendanceRecord,
    AuditLog,
    Employee,
    FinalizationRun,
    Holiday,
    Role,
    Shift,
    WorkingRule,
)

IST = ZoneInfo("Asia/Kolkata")

# Monday; the following Saturday/Sunday are 2026-03-07/08
MONDAY = date(2026, 3, 2)


def ist(day: date, hour: int, minute: int = 0) -> datetime:
    """Wall-clock time in the organization timezone on the given day."""
    return datetime.combine(day, time(hour, minute), tzinfo=IST)


# Use in-memory SQLite for testing
SQLALCHEMY_TEST_DATABASE_URL = "sqlite:///:memory:"

engine = create_engine(
    SQLALCHEMY_TEST_DATABASE_URL,
    connect_args={"check_same_thread": False},
    poolclass=StaticPool,
)


# Enable foreign keys for SQLite
@event.listens_for(Engine, "connect")
def set_sqlite_pragma(dbapi_conn, connection_record):
    cursor = dbapi_conn.cursor()
    cursor.execute("PRAGMA foreign_keys=ON")
    cursor.close()


TestingSessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=engine)


@pytest.fixture(scope="function")
def db():
    """Create a fresh database for each test"""
    Base.metadata.drop_all(bind=engine)
    Base.metadata.create_all(bind=engine)

    db = TestingSessionLocal()
    try:
        yield db
    finally:
        db.close()
        Base.metadata.drop_all(bind=engine)


@pytest.fixture
def clock():
    """Injected clock, starting Monday 09:00 organization time"""
    return FixedClock(ist(MONDAY, 9, 0))


@pytest.fixture(scope="function")
def client(db, clock):
    """Test client fixture with database and clock overrides"""
    def override_get_db():
        try:
            yield db
        finally:
            pass

    app.dependency_overrides[get_db] = override_get_db
    app.dependency_overrides[get_clock] = lambda: clock
    yield TestClient(app)
    app.dependency_overrides.clear()


@pytest.fixture
def general_shift(db):
    """Default 09:00-18:00 shift: full day 8h, half day 4h, 10 minutes grace"""
    shift = Shift(
        name="General",
        code="GEN",
        start_time=time(9, 0),
        end_time=time(18, 0),
        full_day_hours=8,
        half_day_hours=4,
        grace_period_minutes=10,
        late_threshold_minutes=0,
        weekly_off_days=[],
        is_default=True,
        active=True,
    )
    db.add(shift)
    db.commit()
    db.refresh(shift)
    return shift


def make_employee(db, emp_code, name, role=Role.EMPLOYEE, shift=None, password="testpass123",
                  join_date=date(2026, 1, 1), exit_date=None, active=True):
    employee = Employee(
        emp_code=emp_code,
        name=name,
        role=role.value,
        password_hash=hash_password(password),
        join_date=join_date,
        exit_date=exit_date,
        active=active,
        shift_id=shift.id if shift is not None else None,
    )
    db.add(employee)
    db.commit()
    db.refresh(employee)
    return employee


@pytest.fixture
def employee(db, general_shift):
    return make_employee(db, "EMP001", "Test Employee", shift=general_shift)


@pytest.fixture
def hr_user(db, general_shift):
    return make_employee(db, "HR001", "HR Officer", role=Role.HR, shift=general_shift)


def get_auth_token(client, emp_code, password="testpass123"):
    """Helper to get auth token"""
    response = client.post(
        "/api/v1/auth/login",
        json={"emp_code": emp_code, "password": password}
    )
    return response.json()["access_token"]


def auth_headers(client, emp_code, password="testpass123"):
    return {"Authorization": f"Bearer {get_auth_token(client, emp_code, password)}"}


@pytest.fixture
def night_worker(db):
    """Employee on a 22:00-06:00 overnight shift"""
    shift = Shift(
        name="Night", code="NGT", start_time=time(22, 0), end_time=time(6, 0),
        full_day_hours=8, half_day_hours=4, grace_period_minutes=10,
        late_threshold_minutes=0, weekly_off_days=[], is_default=False, active=True,
    )
    db.add(shift)
    db.commit()
    return make_employee(db, "EMP600", "Night Owl", shift=shift)
