from __future__ import annotations

import logging
from typing import Iterable

from sqlalchemy import delete, func, select
from sqlalchemy.ext.asyncio import AsyncSession

from app.models.query_record import QueryRecord
from app.models.sanctioned_application import SanctionedApplication
from app.schemas.sanctioned import SANCTIONED_STATUSES, SanctionedApplicationCreate
from app.services import query_records
from app.services.audit import record_audit_event
from app.services.query_errors import DuplicateSanctioned, SanctionedNotFound

logger = logging.getLogger(__name__)

SANCTION_CLEARING_STATUSES = frozenset({"approved", "deferred", "otc", "waived", "resolved"})


def all_queries_resolved(records: Iterable[QueryRecord]) -> bool:
    records = list(records)
    if not records:
        return False
    for record in records:
        if record.sub_queries:
            if any(sq.status not in SANCTION_CLEARING_STATUSES for sq in record.sub_queries):
                return False
        elif record.status not in SANCTION_CLEARING_STATUSES:
            return False
    return True


async def list_sanctioned(
    db: AsyncSession,
    *,
    status: str | None = None,
    branch_scope: list[str] | None = None,
) -> list[SanctionedApplication]:
    if branch_scope is not None and not branch_scope:
        return []
    stmt = select(SanctionedApplication).order_by(SanctionedApplication.created_at.desc())
    if status:
        stmt = stmt.where(SanctionedApplication.status == status.strip().lower())
    if branch_scope is not None:
        stmt = stmt.where(func.lower(SanctionedApplication.branch_code).in_(branch_scope))
    result = await db.execute(stmt)
    return list(result.scalars().all())


async def get_sanctioned(db: AsyncSession, app_no: str) -> SanctionedApplication:
    result = await db.execute(select(SanctionedApplication).where(SanctionedApplication.app_no == app_no.strip()))
    application = result.scalars().first()
    if application is None:
        raise SanctionedNotFound("Sanctioned application not found", details={"appNo": app_no})
    return application


async def create_sanctioned(
    db: AsyncSession, payload: SanctionedApplicationCreate, *, actor: str | None = None
) -> SanctionedApplication:
    existing = await db.execute(select(SanctionedApplication).where(SanctionedApplication.app_no == payload.app_no))
    if existing.scalars().first() is not None:
        raise DuplicateSanctioned("Application already sanctioned", details={"appNo": payload.app_no})
    application = SanctionedApplication(
        app_no=payload.app_no,
        customer_name=payload.customer_name,
        branch_code=payload.branch_code,
        sanctioned_amount=payload.sanctioned_amount,
        status=payload.status,
        sanctioned_at=payload.sanctioned_at or query_records.utcnow(),
        created_at=query_records.utcnow(),
    )
    db.add(application)
    await db.commit()
    record_audit_event(
        actor=actor,
        action="sanctioned_case.created",
        resource_type="sanctioned_application",
        resource_id=application.app_no,
        new_value={"status": application.status, "branch_code": application.branch_code},
    )
    logger.info("Sanctioned case added app_no=%s", application.app_no)
    return application


async def delete_sanctioned(db: AsyncSession, app_no: str, *, actor: str | None = None) -> SanctionedApplication:
    application = await get_sanctioned(db, app_no)
    await db.delete(application)
    await db.commit()
    record_audit_event(
        actor=actor,
        action="sanctioned_case.deleted",
        resource_type="sanctioned_application",
        resource_id=application.app_no,
    )
    logger.info("Sanctioned case deleted app_no=%s", application.app_no)
    return application


async def sanctioned_stats(db: AsyncSession) -> dict:
    """Counts per status; every known status is present even at zero."""
    result = await db.execute(
        select(SanctionedApplication.status, func.count()).group_by(SanctionedApplication.status)
    )
    by_status = {s: 0 for s in SANCTIONED_STATUSES}
    for status, count in result.all():
        by_status[status] = by_status.get(status, 0) + count
    return {"total": sum(by_status.values()), "by_status": by_status}


async def remove_if_fully_resolved(db: AsyncSession, app_no: str) -> bool:
    """Drop ``app_no`` from the sanctioned list once every query on it is resolved."""
    records = await query_records.list_by_app_no(db, app_no)
    if not all_queries_resolved(records):
        return False
    result = await db.execute(delete(SanctionedApplication).where(SanctionedApplication.app_no == app_no))
    await db.commit()
    removed = bool(result.rowcount)
    if removed:
        logger.info("Sanctioned case removed app_no=%s", app_no)
        record_audit_event(
            actor="system",
            action="sanctioned_case.removed",
            resource_type="sanctioned_application",
            resource_id=app_no,
        )
    return removed


async def clear_sanctioned(db: AsyncSession) -> int:
    result = await db.execute(delete(SanctionedApplication))
    await db.commit()
    return result.rowcount or 0
