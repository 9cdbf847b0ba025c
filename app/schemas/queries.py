from __future__ import annotations

from datetime import datetime
from enum import Enum
from typing import Literal
from uuid import UUID

from pydantic import Field, field_validator

from app.schemas.common import CamelModel, MarkedForTeam, Team


class SubQueryStatus(str, Enum):
    PENDING = "pending"
    RESOLVED = "resolved"
    APPROVED = "approved"
    DEFERRED = "deferred"
    OTC = "otc"
    WAITING_FOR_APPROVAL = "waiting for approval"
    WAIVED = "waived"
    REVERTED = "reverted"


class QueryAction(str, Enum):
    APPROVE = "approve"
    DEFERRAL = "deferral"
    OTC = "otc"
    WAIVER = "waiver"
    REVERT = "revert"
    ASSIGN_BRANCH = "assign-branch"
    ESCALATE = "escalate"
    RESPOND = "respond"


class SubQueryOut(CamelModel):
    id: UUID
    text: str
    status: str
    position: int
    proposed_action: str | None = None
    proposed_by: str | None = None
    proposed_at: datetime | None = None
    is_resolved: bool = False
    resolved_by: str | None = None
    resolved_by_team: str | None = None
    resolved_at: datetime | None = None
    resolution_reason: str | None = None
    approved_by: str | None = None
    approved_at: datetime | None = None
    assigned_to_branch: str | None = None


class RemarkOut(CamelModel):
    id: UUID
    text: str
    author: str
    author_role: str
    author_team: str
    timestamp: datetime | None = Field(default=None, validation_alias="created_at")
    is_edited: bool = False
    is_system: bool = False
    edited_at: datetime | None = None


class QueryRecordOut(CamelModel):
    id: UUID
    app_no: str
    customer_name: str
    title: str | None = None
    priority: str
    branch: str | None = None
    branch_code: str | None = None
    assigned_to_branch: str | None = None
    marked_for_team: str
    visible_to: list[str] = []
    status: str
    submitted_by: str | None = None
    created_at: datetime | None = None
    updated_at: datetime | None = None
    queries: list[SubQueryOut] = Field(default_factory=list, validation_alias="sub_queries")
    remarks: list[RemarkOut] = []


class SubQueryCreate(CamelModel):
    text: str

    @field_validator("text")
    @classmethod
    def non_empty(cls, v: str) -> str:
        value = (v or "").strip()
        if not value:
            raise ValueError("Query text cannot be empty")
        return value


class QueryRecordCreate(CamelModel):
    app_no: str
    customer_name: str = ""
    title: str | None = None
    priority: Literal["high", "medium", "low"] = "medium"
    branch: str | None = None
    branch_code: str | None = None
    marked_for_team: MarkedForTeam
    queries: list[SubQueryCreate] = Field(min_length=1)

    @field_validator("app_no")
    @classmethod
    def strip_app_no(cls, v: str) -> str:
        value = (v or "").strip()
        if not value:
            raise ValueError("appNo cannot be empty")
        return value


class QueryActionRequest(CamelModel):
    """Body of ``POST /query-actions``.

    ``type`` selects the operation; a body with ``queryId`` and ``action`` but no
    ``type`` is treated as ``action``.
    """

    type: Literal["action", "approval", "revert", "message"] | None = None
    query_id: str | None = None
    action: str | None = None
    decision: Literal["approve", "reject"] | None = None
    remarks: str | None = None
    message: str | None = None
    team: Team | None = None
    operation_team_member: str | None = None
    sales_team_member: str | None = None
    credit_team_member: str | None = None
    assigned_to_branch: str | None = None
    response_text: str | None = None
    connection_id: str | None = None

    @field_validator("query_id", mode="before")
    @classmethod
    def stringify_query_id(cls, v):
        if v is None:
            return None
        value = str(v).strip()
        return value or None

    def team_member(self) -> str | None:
        return self.credit_team_member or self.sales_team_member or self.operation_team_member


class RoleQueryActionRequest(CamelModel):
    query_id: str
    action: str
    remarks: str | None = None
    assigned_to_branch: str | None = None
    response_text: str | None = None
    team_member: str | None = None
    connection_id: str | None = None

    @field_validator("query_id", mode="before")
    @classmethod
    def stringify_query_id(cls, v):
        return str(v).strip() if v is not None else v


class ActionResultOut(CamelModel):
    query_id: UUID
    record_id: UUID
    action: str
    mode: str
    previous_status: str
    status: str
    record_status: str
    proposed_action: str | None = None
    message: str
    remark: RemarkOut
    sub_query: SubQueryOut


class RemarkCreate(CamelModel):
    text: str
    author: str
    author_role: str
    author_team: str

    @field_validator("text", "author", "author_role", "author_team")
    @classmethod
    def non_empty(cls, v: str) -> str:
        value = (v or "").strip()
        if not value:
            raise ValueError("Value cannot be empty")
        return value


class RemarkUpdate(CamelModel):
    remark_id: UUID
    text: str

    @field_validator("text")
    @classmethod
    def non_empty(cls, v: str) -> str:
        value = (v or "").strip()
        if not value:
            raise ValueError("Value cannot be empty")
        return value


class QueryUpdateOut(CamelModel):
    query_id: str
    app_no: str | None = None
    customer_name: str | None = None
    branch: str | None = None
    status: str | None = None
    action: str
    team: str | None = None
    marked_for_team: str | None = None
    timestamp: datetime
