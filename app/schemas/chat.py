from __future__ import annotations

from datetime import datetime
from uuid import UUID

from pydantic import Field, field_validator

from app.schemas.common import CamelModel, Team


class ChatMessageCreate(CamelModel):
    message: str
    sender: str | None = None
    team: Team = Team.OPERATIONS

    @field_validator("message")
    @classmethod
    def non_empty(cls, v: str) -> str:
        value = (v or "").strip()
        if not value:
            raise ValueError("Message cannot be empty")
        return value


class ChatMessageOut(CamelModel):
    id: UUID
    query_id: str
    message: str
    sender: str
    sender_role: str
    team: str
    action_type: str
    is_system_message: bool = False
    metadata: dict = Field(default_factory=dict, validation_alias="details")
    timestamp: datetime


class DuplicateCleanupOut(CamelModel):
    before: int
    duplicates_removed: int
    after: int
