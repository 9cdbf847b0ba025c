from __future__ import annotations

from enum import Enum

from pydantic import BaseModel, ConfigDict
from pydantic.alias_generators import to_camel


class CamelModel(BaseModel):
    """Wire models speak camelCase; Python code uses snake_case."""

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True, from_attributes=True)


class Team(str, Enum):
    OPERATIONS = "Operations"
    SALES = "Sales"
    CREDIT = "Credit"
    ADMIN = "Admin"

    @classmethod
    def _missing_(cls, value):  # type: ignore[override]
        if isinstance(value, str):
            cleaned = value.strip().lower()
            for member in cls:
                if member.value.lower() == cleaned:
                    return member
            if cleaned in {"operation", "ops"}:
                return cls.OPERATIONS
        return None


class MarkedForTeam(str, Enum):
    SALES = "sales"
    CREDIT = "credit"
    BOTH = "both"

    @classmethod
    def _missing_(cls, value):  # type: ignore[override]
        if isinstance(value, str):
            return cls._value2member_map_.get(value.strip().lower())
        return None


class UserRole(str, Enum):
    ADMIN = "admin"
    OPERATIONS = "operations"
    SALES = "sales"
    CREDIT = "credit"


ROLE_TEAMS: dict[str, Team] = {
    UserRole.ADMIN.value: Team.ADMIN,
    UserRole.OPERATIONS.value: Team.OPERATIONS,
    UserRole.SALES.value: Team.SALES,
    UserRole.CREDIT.value: Team.CREDIT,
}


def team_for_role(role: str | None) -> Team:
    """Team a role acts as. Unknown roles raise ``ValueError`` and get no team."""
    key = (role or "").strip().lower()
    if key not in ROLE_TEAMS:
        raise ValueError(f"Unknown role: {role!r}")
    return ROLE_TEAMS[key]
