"""
Login request/response
"""
from pydantic import BaseModel, Field


class LoginRequest(BaseModel):
    emp_code: str = Field(..., min_length=1, description="Employee code, e.g. EMP001")
    password: str = Field(..., min_length=1)


class TokenResponse(BaseModel):
    """Bearer token plus the identity clients need to route between employee and admin views."""
    access_token: str
    token_type: str = "bearer"
    employee_id: int
    role: str
