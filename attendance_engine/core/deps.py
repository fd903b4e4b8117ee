"""
Request dependencies: database session, clock, authenticated employee, role guard
"""
from fastapi import Depends, HTTPException, status
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer
from sqlalchemy.orm import Session

from attendance_engine.core.security import decode_token
from attendance_engine.db.session import get_db
from attendance_engine.models.employee import Employee, Role
from attendance_engine.services.employee_service import get_employee
from attendance_engine.utils.datetime_utils import Clock, system_clock

bearer_scheme = HTTPBearer()


def get_clock() -> Clock:
    """Source of "now" for request handlers; tests override it with a FixedClock."""
    return system_clock


def _unauthorized(detail: str) -> HTTPException:
    return HTTPException(
        status_code=status.HTTP_401_UNAUTHORIZED,
        detail=detail,
        headers={"WWW-Authenticate": "Bearer"},
    )


async def get_current_user(
    credentials: HTTPAuthorizationCredentials = Depends(bearer_scheme),
    db: Session = Depends(get_db),
) -> Employee:
    """Employee named by the token's `sub` claim; 401 for bad tokens, 403 when deactivated."""
    try:
        employee_id = int(decode_token(credentials.credentials)["sub"])
    except (KeyError, TypeError, ValueError):
        raise _unauthorized("Invalid authentication credentials")

    employee = get_employee(db, employee_id)
    if employee is None:
        raise _unauthorized("User not found")
    if not employee.active:
        raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail="Inactive user")
    return employee


def require_roles(*allowed_roles: Role):
    """
    Guard factory: the current user must hold one of the roles. ADMIN always passes.

        @router.post("/finalization")
        async def run(user: Employee = Depends(require_roles(Role.HR))): ...
    """
    allowed = {Role.ADMIN.value} | {r.value for r in allowed_roles}

    def role_checker(current_user: Employee = Depends(get_current_user)) -> Employee:
        if current_user.role not in allowed:
            raise HTTPException(
                status_code=status.HTTP_403_FORBIDDEN,
                detail=f"Access denied. Required roles: {sorted(allowed)}",
            )
        return current_user

    return role_checker
