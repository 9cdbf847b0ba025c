from uuid import UUID

from app.schemas.common import CamelModel


class BranchOut(CamelModel):
    id: UUID
    code: str
    name: str
    region: str | None = None
    state: str | None = None
    city: str | None = None
    is_active: bool = True
