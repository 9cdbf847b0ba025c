from __future__ import annotations

from typing import Any


class QueryWorkflowError(Exception):
    """Base for domain failures raised by the query services.

    Routers translate these into ``HTTPException`` with a ``{code, message, details}``
    detail, so the status code lives on the class.
    """

    status_code = 400
    code = "query_workflow_error"

    def __init__(self, message: str, *, details: dict[str, Any] | None = None) -> None:
        super().__init__(message)
        self.message = message
        self.details = details or {}

    def __str__(self) -> str:
        return self.message


class QueryNotFound(QueryWorkflowError):
    status_code = 404
    code = "query_not_found"


class RemarkNotFound(QueryWorkflowError):
    status_code = 404
    code = "remark_not_found"


class UserNotFound(QueryWorkflowError):
    status_code = 404
    code = "user_not_found"


class InvalidAction(QueryWorkflowError):
    code = "invalid_action"


class ApprovalNotAllowed(QueryWorkflowError):
    status_code = 403
    code = "approval_not_allowed"


class ApprovalStateConflict(QueryWorkflowError):
    status_code = 409
    code = "approval_state_conflict"


class DuplicateUser(QueryWorkflowError):
    status_code = 409
    code = "duplicate_user"


class SanctionedNotFound(QueryWorkflowError):
    status_code = 404
    code = "sanctioned_not_found"


class DuplicateSanctioned(QueryWorkflowError):
    status_code = 409
    code = "duplicate_sanctioned"
