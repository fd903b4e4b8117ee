"""
Employee directory lookups used by the attendance engine
"""
from datetime import date
from typing import Optional, Set
from sqlalchemy import or_
from sqlalchemy.orm import Session

from attendance_engine.models.employee import Employee


def get_employee(db: Session, employee_id: int) -> Optional[Employee]:
    """Get an employee by ID"""
    return db.query(Employee).filter(Employee.id == employee_id).first()


def get_employee_by_code(db: Session, emp_code: str) -> Optional[Employee]:
    return db.query(Employee).filter(Employee.emp_code == emp_code).first()


def list_active_employee_ids(db: Session, day: date) -> Set[int]:
    """
    Employees expected to have an attendance record on the date: active,
    joined on or before it and not exited before it.
    """
    rows = (
        db.query(Employee.id)
        .filter(
            Employee.active == True,  # noqa: E712
            Employee.join_date <= day,
            or_(Employee.exit_date.is_(None), Employee.exit_date >= day),
        )
        .all()
    )
    return {row[0] for row in rows}
