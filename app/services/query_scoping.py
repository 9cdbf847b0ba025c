from __future__ import annotations

from typing import Iterable

from sqlalchemy import func, or_
from sqlalchemy.sql import Select

from app.models.query_record import QueryRecord, SubQuery
from app.schemas.common import MarkedForTeam, Team
from app.services.query_errors import QueryNotFound


# Legacy request-* statuses still show up in resolved views.
LEGACY_RESOLVED_STATUSES = frozenset({"request-approved", "request-deferral", "request-otc"})

RESOLVED_VIEW_STATUSES = frozenset({"approved", "deferred", "otc", "waived", "resolved", "completed"}) | LEGACY_RESOLVED_STATUSES

REPORT_VIEW_STATUSES = RESOLVED_VIEW_STATUSES | {"waiting for approval"}

_TEAM_TOKENS = {Team.SALES: "sales", Team.CREDIT: "credit"}


def compute_visible_to(marked_for_team: str | MarkedForTeam) -> list[str]:
    marked = MarkedForTeam(marked_for_team)
    if marked is MarkedForTeam.BOTH:
        return ["sales", "credit"]
    return [marked.value]


def legacy_visible_to(
    marked_for_team: str | None,
    team: str | None = None,
    send_to_sales: bool = False,
    send_to_credit: bool = False,
) -> list[str]:
    """Union of every historical way a record was routed to sales or credit."""
    visible: set[str] = set()
    marked = (marked_for_team or "").strip().lower()
    if marked in {"sales", "both"}:
        visible.add("sales")
    if marked in {"credit", "both"}:
        visible.add("credit")
    legacy_team = (team or "").strip().lower()
    if legacy_team in {"sales", "credit"}:
        visible.add(legacy_team)
    if send_to_sales:
        visible.add("sales")
    if send_to_credit:
        visible.add("credit")
    return sorted(visible)


def team_token(team: Team) -> str | None:
    return _TEAM_TOKENS.get(team)


def is_visible_to(record: QueryRecord, team: Team) -> bool:
    token = team_token(team)
    if token is None:
        return True
    return token in (record.visible_to or [])


def branch_scope(user) -> list[str] | None:
    """Lowercased branch codes ``user`` may see; ``None`` means every branch.

    An empty list means nothing is visible and callers must not query at all.
    """
    if (user.role or "").lower() == "admin":
        return None
    assigned = [str(b).strip() for b in (user.assigned_branches or []) if str(b).strip()]
    if any(b.lower() == "multiple" for b in assigned):
        return None
    return sorted({b.lower() for b in assigned})


def record_in_scope(record: QueryRecord, scope: Iterable[str] | None) -> bool:
    if scope is None:
        return True
    wanted = set(scope)
    candidates = (record.branch_code, record.branch, record.assigned_to_branch)
    return any(c and c.strip().lower() in wanted for c in candidates)


def apply_branch_filter(stmt: Select, scope: list[str] | None) -> Select:
    if scope is None:
        return stmt
    return stmt.where(
        or_(
            func.lower(QueryRecord.branch_code).in_(scope),
            func.lower(QueryRecord.branch).in_(scope),
            func.lower(QueryRecord.assigned_to_branch).in_(scope),
        )
    )


def apply_team_filter(stmt: Select, team: Team | None) -> Select:
    token = team_token(team) if team is not None else None
    if token is None:
        return stmt
    return stmt.where(QueryRecord.visible_to.contains([token]))


def ensure_accessible(record: QueryRecord, team: Team, scope: list[str] | None) -> None:
    """Raise ``QueryNotFound`` unless ``team`` sees the record and it sits inside ``scope``.

    Hidden records answer 404, the same as ids that do not exist.
    """
    if not is_visible_to(record, team) or not record_in_scope(record, scope):
        raise QueryNotFound("Query not found", details={"id": str(record.id)})


def apply_status_filter(stmt: Select, statuses: Iterable[str] | None) -> Select:
    """Match records whose own status or any sub-query status is in ``statuses``."""
    status_list = sorted(set(statuses or []))
    if not status_list:
        return stmt
    return stmt.where(
        or_(
            QueryRecord.status.in_(status_list),
            QueryRecord.sub_queries.any(SubQuery.status.in_(status_list)),
        )
    )
