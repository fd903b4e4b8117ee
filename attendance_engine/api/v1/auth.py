"""
Login for employees and HR/admin staff: emp_code + password -> bearer token
"""
import logging
from fastapi import APIRouter, Depends, HTTPException, status
from sqlalchemy.orm import Session

from attendance_engine.core.security import create_access_token, verify_password
from attendance_engine.db.session import get_db
from attendance_engine.models.employee import Employee
from attendance_engine.schemas.auth import LoginRequest, TokenResponse
from attendance_engine.services.audit_service import log_audit
from attendance_engine.services.employee_service import get_employee_by_code

router = APIRouter()
logger = logging.getLogger(__name__)

_BAD_CREDENTIALS = "Invalid employee code or password"


def _authenticate(db: Session, emp_code: str, password: str) -> Employee:
    employee = get_employee_by_code(db, emp_code)
    # Unknown code, missing hash and wrong password look the same to the caller
    if employee is None or not employee.password_hash or not verify_password(password, employee.password_hash):
        logger.info("Login rejected: emp_code=%s", emp_code)
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail=_BAD_CREDENTIALS)
    if not employee.active:
        raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail="Account is inactive")
    return employee


@router.post("/login", response_model=TokenResponse)
async def login(login_data: LoginRequest, db: Session = Depends(get_db)):
    """Issue a JWT whose `sub` is the employee id (as a string) and which carries the role."""
    employee = _authenticate(db, login_data.emp_code, login_data.password)
    access_token = create_access_token(
        data={"sub": str(employee.id), "emp_code": employee.emp_code, "role": employee.role}
    )

    log_audit(
        db=db,
        actor_id=employee.id,
        action="AUTH_LOGIN_SUCCESS",
        entity_type="employees",
        entity_id=employee.id,
        meta={"emp_code": employee.emp_code},
    )
    return TokenResponse(access_token=access_token, employee_id=employee.id, role=employee.role)
