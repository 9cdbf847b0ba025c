from __future__ import annotations

import logging
import uuid
from datetime import datetime, timezone
from typing import Iterable

from sqlalchemy import delete, select
from sqlalchemy.ext.asyncio import AsyncSession

from app.models.query_record import QueryRecord, SubQuery
from app.schemas.common import Team
from app.schemas.queries import QueryRecordCreate
from app.services import query_scoping, update_log
from app.services.action_policy import TERMINAL_STATUSES
from app.services.audit import record_audit_event
from app.services.query_errors import QueryNotFound

logger = logging.getLogger(__name__)


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


def parse_uuid(value) -> uuid.UUID | None:
    if isinstance(value, uuid.UUID):
        return value
    try:
        return uuid.UUID(str(value).strip())
    except (TypeError, ValueError, AttributeError):
        return None


def derive_record_status(sub_queries: Iterable[SubQuery]) -> str:
    statuses = [sq.status for sq in sub_queries]
    if statuses and all(s in TERMINAL_STATUSES for s in statuses):
        return "resolved"
    if any(s == "waiting for approval" for s in statuses):
        return "waiting for approval"
    return "pending"


async def get_record(db: AsyncSession, record_id) -> QueryRecord:
    parsed = parse_uuid(record_id)
    if parsed is None:
        raise QueryNotFound("Query not found", details={"id": str(record_id)})
    result = await db.execute(select(QueryRecord).where(QueryRecord.id == parsed))
    record = result.scalars().first()
    if record is None:
        raise QueryNotFound("Query not found", details={"id": str(record_id)})
    return record


async def get_sub_query(db: AsyncSession, sub_query_id) -> tuple[SubQuery, QueryRecord]:
    """Exact lookup by canonical id; no numeric or substring matching."""
    parsed = parse_uuid(sub_query_id)
    if parsed is None:
        raise QueryNotFound("Query not found", details={"queryId": str(sub_query_id)})
    result = await db.execute(select(SubQuery).where(SubQuery.id == parsed))
    sub_query = result.scalars().first()
    if sub_query is None:
        raise QueryNotFound("Query not found", details={"queryId": str(sub_query_id)})
    record = await get_record(db, sub_query.record_id)
    return sub_query, record


async def create_record(db: AsyncSession, payload: QueryRecordCreate, *, submitted_by: str | None) -> QueryRecord:
    now = utcnow()
    record = QueryRecord(
        id=uuid.uuid4(),
        app_no=payload.app_no,
        customer_name=payload.customer_name,
        title=payload.title,
        priority=payload.priority,
        branch=payload.branch,
        branch_code=payload.branch_code,
        marked_for_team=payload.marked_for_team.value,
        visible_to=query_scoping.compute_visible_to(payload.marked_for_team),
        status="pending",
        submitted_by=submitted_by,
        created_at=now,
        updated_at=now,
    )
    record.sub_queries = [
        SubQuery(
            id=uuid.uuid4(),
            record_id=record.id,
            position=index,
            text=item.text,
            status="pending",
            is_resolved=False,
            created_at=now,
            updated_at=now,
        )
        for index, item in enumerate(payload.queries)
    ]
    record.remarks = []
    db.add(record)
    update_log.record_update(db, record, query_id=str(record.id), action="created", team=None)
    await db.commit()
    record_audit_event(
        actor=submitted_by,
        action="query_record.created",
        resource_type="query_record",
        resource_id=str(record.id),
        new_value={"app_no": record.app_no, "marked_for_team": record.marked_for_team},
    )
    logger.info("Query record created app_no=%s sub_queries=%s", record.app_no, len(record.sub_queries))
    return record


async def list_records(
    db: AsyncSession,
    user,
    *,
    team: Team | None = None,
    statuses: Iterable[str] | None = None,
    app_no: str | None = None,
) -> list[QueryRecord]:
    scope = query_scoping.branch_scope(user)
    if scope is not None and not scope:
        # Fail closed: no branches assigned means nothing is visible.
        return []
    stmt = select(QueryRecord).order_by(QueryRecord.created_at.desc())
    stmt = query_scoping.apply_branch_filter(stmt, scope)
    stmt = query_scoping.apply_team_filter(stmt, team)
    stmt = query_scoping.apply_status_filter(stmt, statuses)
    if app_no:
        stmt = stmt.where(QueryRecord.app_no == app_no.strip())
    result = await db.execute(stmt)
    return list(result.scalars().all())


async def list_by_app_no(db: AsyncSession, app_no: str) -> list[QueryRecord]:
    result = await db.execute(select(QueryRecord).where(QueryRecord.app_no == app_no))
    return list(result.scalars().all())


async def clear_records(db: AsyncSession) -> int:
    result = await db.execute(delete(QueryRecord))
    await db.commit()
    return result.rowcount or 0


async def delete_record(db: AsyncSession, record_id, *, actor: str | None = None) -> QueryRecord:
    record = await get_record(db, record_id)
    await db.delete(record)
    await db.commit()
    record_audit_event(
        actor=actor,
        action="query_record.deleted",
        resource_type="query_record",
        resource_id=str(record.id),
        old_value={"app_no": record.app_no, "status": record.status},
    )
    return record


async def get_chat_target(db: AsyncSession, query_id) -> QueryRecord:
    """Record a chat thread belongs to; ``query_id`` is a sub-query id or a record id."""
    parsed = parse_uuid(query_id)
    if parsed is None:
        raise QueryNotFound("Query not found", details={"queryId": str(query_id)})
    result = await db.execute(select(SubQuery).where(SubQuery.id == parsed))
    sub_query = result.scalars().first()
    if sub_query is not None:
        return await get_record(db, sub_query.record_id)
    return await get_record(db, parsed)
