from uuid import UUID

from pydantic import field_validator

from app.schemas.common import CamelModel, UserRole


def _clean_list(values: list[str] | None) -> list[str]:
    seen: list[str] = []
    for value in values or []:
        item = (value or "").strip()
        if item and item not in seen:
            seen.append(item)
    return seen


class UserCreate(CamelModel):
    employee_id: str
    full_name: str
    email: str | None = None
    role: UserRole
    branch: str | None = None
    assigned_branches: list[str] = []
    permissions: list[str] = []
    password: str

    @field_validator("employee_id", "full_name")
    @classmethod
    def non_empty(cls, v: str) -> str:
        value = (v or "").strip()
        if not value:
            raise ValueError("Value cannot be empty")
        return value

    @field_validator("assigned_branches", "permissions")
    @classmethod
    def dedupe(cls, v: list[str]) -> list[str]:
        return _clean_list(v)


class UserAccessUpdate(CamelModel):
    role: UserRole | None = None
    assigned_branches: list[str] | None = None
    permissions: list[str] | None = None
    is_active: bool | None = None

    @field_validator("assigned_branches", "permissions")
    @classmethod
    def dedupe(cls, v: list[str] | None) -> list[str] | None:
        return None if v is None else _clean_list(v)


class UserListOut(CamelModel):
    id: UUID
    employee_id: str
    full_name: str
    role: str
    branch: str | None = None
    assigned_branches: list[str] = []
    is_active: bool
