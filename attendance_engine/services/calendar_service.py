"""
Calendar classification: holiday, weekend or working day for a date.

Holidays win over weekends. Weekend days come from the working rule in effect
on the date, then the default working rule, then settings.DEFAULT_WEEKEND_DAYS.
"""
import enum
import logging
from datetime import date
from typing import List, Optional
from sqlalchemy import or_
from sqlalchemy.orm import Session

from attendance_engine.core.config import settings
from attendance_engine.models.calendar import Holiday, WorkingRule

logger = logging.getLogger(__name__)


class CalendarClass(str, enum.Enum):
    HOLIDAY = "holiday"
    WEEKEND = "weekend"
    WORKING_DAY = "working_day"


def get_holiday(db: Session, day: date) -> Optional[Holiday]:
    return db.query(Holiday).filter(Holiday.date == day, Holiday.active == True).first()  # noqa: E712


def get_working_rule(db: Session, day: date) -> Optional[WorkingRule]:
    """Working rule in effect on the date; dated rules take precedence over the default one."""
    rule = (
        db.query(WorkingRule)
        .filter(
            WorkingRule.active == True,  # noqa: E712
            WorkingRule.effective_from <= day,
            or_(WorkingRule.effective_to.is_(None), WorkingRule.effective_to >= day),
        )
        .order_by(WorkingRule.is_default.asc(), WorkingRule.effective_from.desc(), WorkingRule.id.desc())
        .first()
    )
    if rule is not None:
        return rule
    return (
        db.query(WorkingRule)
        .filter(WorkingRule.active == True, WorkingRule.is_default == True)  # noqa: E712
        .order_by(WorkingRule.id.desc())
        .first()
    )


def weekend_days_for(db: Session, day: date) -> List[int]:
    """ISO weekdays (Mon=1 .. Sun=7) that are weekend days on the given date."""
    rule = get_working_rule(db, day)
    if rule is not None and rule.weekend_days is not None:
        return sorted(int(d) for d in rule.weekend_days)
    return list(settings.DEFAULT_WEEKEND_DAYS)


def classify_date(db: Session, day: date) -> CalendarClass:
    """Organization-wide classification of a date."""
    if get_holiday(db, day) is not None:
        return CalendarClass.HOLIDAY
    if day.isoweekday() in weekend_days_for(db, day):
        return CalendarClass.WEEKEND
    return CalendarClass.WORKING_DAY


def classify_for_employee(calendar_class: CalendarClass, weekly_off_days, day: date) -> CalendarClass:
    """Narrow an organization working day to WEEKEND when it is the employee's shift weekly off."""
    if calendar_class == CalendarClass.WORKING_DAY and day.isoweekday() in (weekly_off_days or ()):
        return CalendarClass.WEEKEND
    return calendar_class
