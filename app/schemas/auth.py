from datetime import datetime
from typing import Optional
from uuid import UUID

from pydantic import field_validator

from app.schemas.common import CamelModel


class LoginRequest(CamelModel):
    employee_id: str
    password: str

    @field_validator("employee_id")
    @classmethod
    def normalize_employee_id(cls, v: str) -> str:
        return (v or "").strip()


class TokenOut(CamelModel):
    access_token: str
    token_type: str = "bearer"
    expires_in: int


class UserOut(CamelModel):
    id: UUID
    employee_id: str
    full_name: str
    email: Optional[str] = None
    role: str
    branch: Optional[str] = None
    assigned_branches: list[str] = []
    permissions: list[str] = []
    is_active: bool
    last_login: Optional[datetime] = None
    created_at: Optional[datetime] = None


class LoginResponse(TokenOut):
    user: UserOut
