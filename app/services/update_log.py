from __future__ import annotations

import uuid
from datetime import datetime, timedelta, timezone

from sqlalchemy import delete, select
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.settings import settings
from app.models.query_record import QueryRecord
from app.models.query_update import QueryUpdate


def record_update(db: AsyncSession, record: QueryRecord, *, query_id: str, action: str, team: str | None) -> QueryUpdate:
    entry = QueryUpdate(
        id=uuid.uuid4(),
        query_id=query_id,
        app_no=record.app_no,
        customer_name=record.customer_name,
        branch=record.branch,
        status=record.status,
        action=action,
        team=team,
        marked_for_team=record.marked_for_team,
        timestamp=datetime.now(timezone.utc),
    )
    db.add(entry)
    return entry


async def list_updates_since(db: AsyncSession, since: datetime, *, limit: int | None = None) -> list[QueryUpdate]:
    page = min(limit or settings.updates_page_limit, settings.updates_page_limit)
    stmt = (
        select(QueryUpdate)
        .where(QueryUpdate.timestamp > since)
        .order_by(QueryUpdate.timestamp.desc())
        .limit(page)
    )
    result = await db.execute(stmt)
    return list(result.scalars().all())


async def prune_updates(db: AsyncSession, *, now: datetime | None = None) -> int:
    cutoff = (now or datetime.now(timezone.utc)) - timedelta(hours=settings.update_log_retention_hours)
    result = await db.execute(delete(QueryUpdate).where(QueryUpdate.timestamp < cutoff))
    await db.commit()
    return result.rowcount or 0
