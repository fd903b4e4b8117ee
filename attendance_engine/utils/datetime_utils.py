"""
Timezone-aware datetime helpers.
- Store and compute instants in UTC.
- Work dates and shift instants are derived in the organization timezone (settings.ORG_TIMEZONE).
- "Now" comes from an injected Clock so services stay deterministic under test.
"""
from abc import ABC, abstractmethod
from datetime import date, datetime, time, timedelta, timezone
from typing import Optional
from zoneinfo import ZoneInfo

from attendance_engine.core.config import settings

UTC = timezone.utc


def org_tz() -> ZoneInfo:
    """Organization timezone from settings."""
    return ZoneInfo(settings.ORG_TIMEZONE)


class Clock(ABC):
    """Source of the current instant."""

    @abstractmethod
    def now(self) -> datetime:
        ...


class SystemClock(Clock):
    """Wall clock in UTC."""

    def now(self) -> datetime:
        return datetime.now(UTC)


class FixedClock(Clock):
    """Clock pinned to a given instant; advance it explicitly."""

    def __init__(self, instant: datetime):
        self.instant = ensure_utc(instant)

    def now(self) -> datetime:
        return self.instant

    def set(self, instant: datetime) -> None:
        self.instant = ensure_utc(instant)

    def advance(self, **kwargs) -> datetime:
        self.instant = self.instant + timedelta(**kwargs)
        return self.instant


system_clock = SystemClock()


def now_utc() -> datetime:
    """Current time in UTC (timezone-aware)."""
    return system_clock.now()


def ensure_utc(dt: Optional[datetime]) -> Optional[datetime]:
    """If dt is naive, treat as UTC and return timezone-aware UTC. If already aware, convert to UTC."""
    if dt is None:
        return None
    if dt.tzinfo is None:
        return dt.replace(tzinfo=UTC)
    return dt.astimezone(UTC)


def to_org(dt: Optional[datetime]) -> Optional[datetime]:
    """Convert to the organization timezone. Naive datetimes are treated as UTC."""
    if dt is None:
        return None
    return ensure_utc(dt).astimezone(org_tz())


def get_work_date(utc_now: Optional[datetime] = None) -> date:
    """Return the work date (organization calendar date) for the given instant (default now)."""
    return to_org(utc_now or now_utc()).date()


def local_instant(work_date: date, at: time) -> datetime:
    """UTC instant of a wall-clock time on a work date in the organization timezone."""
    return datetime.combine(work_date, at, tzinfo=org_tz()).astimezone(UTC)


def end_of_day(work_date: date) -> datetime:
    """UTC instant at which the work date ends (start of the next day)."""
    return local_instant(work_date + timedelta(days=1), time.min)


def minutes_between(start: datetime, end: datetime) -> int:
    """Whole minutes from start to end; negative when end precedes start."""
    seconds = (ensure_utc(end) - ensure_utc(start)).total_seconds()
    if seconds >= 0:
        return int(seconds // 60)
    return -int(-seconds // 60)


def iso_org(dt: Optional[datetime]) -> Optional[str]:
    """Serialize as ISO-8601 in the organization timezone (with offset). Use for API response datetime fields."""
    if dt is None:
        return None
    return to_org(dt).isoformat()

