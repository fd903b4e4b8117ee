"""
Shift policy lookup: the thresholds, grace period and weekly offs used to
classify an employee's day. Read-only; shifts are configured elsewhere.
"""
from dataclasses import dataclass
from datetime import date, datetime, time, timedelta
from decimal import Decimal
from typing import FrozenSet, Optional
from sqlalchemy.orm import Session

from attendance_engine.core.errors import ShiftPolicyNotFound
from attendance_engine.models.employee import Employee
from attendance_engine.models.shift import Shift
from attendance_engine.utils.datetime_utils import local_instant


@dataclass(frozen=True)
class ShiftPolicy:
    """Immutable snapshot of a shift, safe to hand to the pure classifier."""

    start_time: time
    end_time: time
    full_day_hours: Decimal = Decimal("8")
    half_day_hours: Decimal = Decimal("4")
    grace_period_minutes: int = 0
    late_threshold_minutes: int = 0
    weekly_off_days: FrozenSet[int] = frozenset()
    shift_id: Optional[int] = None
    name: str = ""

    @property
    def full_day_minutes(self) -> Decimal:
        return Decimal(self.full_day_hours) * 60

    @property
    def half_day_minutes(self) -> Decimal:
        return Decimal(self.half_day_hours) * 60

    @property
    def is_overnight(self) -> bool:
        return self.end_time <= self.start_time

    def start_instant(self, work_date: date) -> datetime:
        """UTC instant the shift starts on the work date."""
        return local_instant(work_date, self.start_time)

    def end_instant(self, work_date: date) -> datetime:
        """UTC instant the shift ends; overnight shifts end on the following date."""
        end_date = work_date + timedelta(days=1) if self.is_overnight else work_date
        return local_instant(end_date, self.end_time)

    def is_weekly_off(self, work_date: date) -> bool:
        return work_date.isoweekday() in self.weekly_off_days

    @classmethod
    def from_shift(cls, shift: Shift) -> "ShiftPolicy":
        return cls(
            start_time=shift.start_time,
            end_time=shift.end_time,
            full_day_hours=Decimal(str(shift.full_day_hours)),
            half_day_hours=Decimal(str(shift.half_day_hours)),
            grace_period_minutes=shift.grace_period_minutes or 0,
            late_threshold_minutes=shift.late_threshold_minutes or 0,
            weekly_off_days=frozenset(int(d) for d in (shift.weekly_off_days or [])),
            shift_id=shift.id,
            name=shift.name,
        )


def get_default_shift(db: Session) -> Optional[Shift]:
    """The active shift flagged as default, if one is configured."""
    return (
        db.query(Shift)
        .filter(Shift.is_default == True, Shift.active == True)  # noqa: E712
        .order_by(Shift.id)
        .first()
    )


def find_shift_for(db: Session, employee_id: int) -> Optional[ShiftPolicy]:
    """Employee's assigned active shift, else the default shift, else None."""
    employee = db.query(Employee).filter(Employee.id == employee_id).first()
    shift = employee.shift if employee is not None else None
    if shift is None or not shift.active:
        shift = get_default_shift(db)
    return ShiftPolicy.from_shift(shift) if shift is not None else None


def get_shift_for(db: Session, employee_id: int) -> ShiftPolicy:
    """
    Shift policy for an employee.

    Raises:
        ShiftPolicyNotFound: no assigned shift and no default shift configured
    """
    policy = find_shift_for(db, employee_id)
    if policy is None:
        raise ShiftPolicyNotFound(f"No shift policy for employee {employee_id}")
    return policy
