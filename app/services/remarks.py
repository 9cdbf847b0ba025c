from __future__ import annotations

import uuid

from sqlalchemy.ext.asyncio import AsyncSession

from app.models.query_record import QueryRecord, QueryRemark
from app.services import query_records
from app.services.audit import record_audit_event
from app.services.query_errors import RemarkNotFound


def append_remark(
    record: QueryRecord,
    *,
    text: str,
    author: str,
    author_role: str,
    author_team: str,
    is_system: bool = False,
) -> QueryRemark:
    """Attach a remark to an already loaded record without committing."""
    remark = QueryRemark(
        id=uuid.uuid4(),
        record_id=record.id,
        text=text,
        author=author,
        author_role=author_role,
        author_team=author_team,
        is_system=is_system,
        is_edited=False,
        created_at=query_records.utcnow(),
    )
    record.remarks.append(remark)
    return remark


async def list_remarks(db: AsyncSession, record_id) -> list[QueryRemark]:
    record = await query_records.get_record(db, record_id)
    return list(record.remarks)


async def add_remark(
    db: AsyncSession,
    record_id,
    *,
    text: str,
    author: str,
    author_role: str,
    author_team: str,
) -> tuple[QueryRecord, QueryRemark]:
    record = await query_records.get_record(db, record_id)
    remark = append_remark(
        record,
        text=text,
        author=author,
        author_role=author_role,
        author_team=author_team,
    )
    db.add(remark)
    await db.commit()
    record_audit_event(
        actor=author,
        team=author_team,
        action="query_remark.added",
        resource_type="query_record",
        resource_id=str(record.id),
        new_value={"remark_id": str(remark.id)},
    )
    return record, remark


def _find_remark(record: QueryRecord, remark_id) -> QueryRemark:
    wanted = query_records.parse_uuid(remark_id)
    for remark in record.remarks:
        if wanted is not None and remark.id == wanted:
            return remark
    raise RemarkNotFound("Remark not found", details={"remarkId": str(remark_id)})


async def edit_remark(db: AsyncSession, record_id, remark_id, *, text: str, actor: str | None = None) -> QueryRemark:
    record = await query_records.get_record(db, record_id)
    remark = _find_remark(record, remark_id)
    old_text = remark.text
    remark.text = text
    remark.is_edited = True
    remark.edited_at = query_records.utcnow()
    db.add(remark)
    await db.commit()
    record_audit_event(
        actor=actor,
        action="query_remark.edited",
        resource_type="query_remark",
        resource_id=str(remark.id),
        old_value={"text": old_text},
        new_value={"text": text},
    )
    return remark


async def delete_remark(db: AsyncSession, record_id, remark_id, *, actor: str | None = None) -> QueryRemark:
    record = await query_records.get_record(db, record_id)
    remark = _find_remark(record, remark_id)
    record.remarks.remove(remark)
    await db.delete(remark)
    await db.commit()
    record_audit_event(
        actor=actor,
        action="query_remark.deleted",
        resource_type="query_remark",
        resource_id=str(remark.id),
    )
    return remark
