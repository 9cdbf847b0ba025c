from datetime import datetime
from decimal import Decimal
from uuid import UUID

from pydantic import field_validator

from app.schemas.common import CamelModel

SANCTIONED_STATUSES = ("active", "expired", "utilized")


class SanctionedApplicationCreate(CamelModel):
    app_no: str
    customer_name: str
    branch_code: str | None = None
    sanctioned_amount: Decimal | None = None
    status: str = "active"
    sanctioned_at: datetime | None = None

    @field_validator("app_no", "customer_name")
    @classmethod
    def non_empty(cls, v: str) -> str:
        value = (v or "").strip()
        if not value:
            raise ValueError("Value cannot be empty")
        return value

    @field_validator("status")
    @classmethod
    def known_status(cls, v: str) -> str:
        value = (v or "").strip().lower()
        if value not in SANCTIONED_STATUSES:
            raise ValueError(f"status must be one of: {', '.join(SANCTIONED_STATUSES)}")
        return value


class SanctionedApplicationOut(CamelModel):
    id: UUID
    app_no: str
    customer_name: str
    branch_code: str | None = None
    sanctioned_amount: Decimal | None = None
    status: str
    sanctioned_at: datetime | None = None
    created_at: datetime | None = None


class SanctionedStatsOut(CamelModel):
    total: int
    by_status: dict[str, int]
