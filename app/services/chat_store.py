from __future__ import annotations

import logging
import uuid
from collections import defaultdict
from datetime import datetime, timedelta
from typing import Any, Iterable

from sqlalchemy import delete, func, select
from sqlalchemy.ext.asyncio import AsyncSession

from app.models.chat_message import ChatMessage
from app.services.query_errors import InvalidAction
from app.services.query_records import utcnow

logger = logging.getLogger(__name__)


def normalize_query_id(query_id: Any) -> str:
    value = str(query_id if query_id is not None else "").strip()
    if not value:
        raise InvalidAction("queryId is required")
    return value


def duplicate_key(message: ChatMessage) -> tuple[str, str, int]:
    ts = message.timestamp
    return (message.message, message.sender, int(ts.timestamp()) if ts else 0)


def dedupe_messages(messages: Iterable[ChatMessage]) -> list[ChatMessage]:
    """Collapse same text from the same sender within one second, keeping the earliest."""
    ordered = sorted(messages, key=lambda m: (m.timestamp is None, m.timestamp))
    seen: set[tuple[str, str, int]] = set()
    kept: list[ChatMessage] = []
    for message in ordered:
        key = duplicate_key(message)
        if key in seen:
            continue
        seen.add(key)
        kept.append(message)
    return kept


def find_duplicate_ids(messages: Iterable[ChatMessage]) -> list[uuid.UUID]:
    by_query: dict[str, list[ChatMessage]] = defaultdict(list)
    for message in messages:
        by_query[message.query_id].append(message)
    duplicates: list[uuid.UUID] = []
    for group in by_query.values():
        kept = {id(m) for m in dedupe_messages(group)}
        duplicates.extend(m.id for m in group if id(m) not in kept)
    return duplicates


async def get_messages(db: AsyncSession, query_id: Any) -> list[ChatMessage]:
    key = normalize_query_id(query_id)
    stmt = select(ChatMessage).where(ChatMessage.query_id == key).order_by(ChatMessage.timestamp.asc())
    result = await db.execute(stmt)
    # Exact string equality only; "1" never matches "10" or "query-1".
    rows = [m for m in result.scalars().all() if m.query_id == key]
    return dedupe_messages(rows)


async def add_message(
    db: AsyncSession,
    *,
    query_id: Any,
    message: str,
    sender: str,
    sender_role: str,
    team: str,
    action_type: str = "message",
    is_system_message: bool = False,
    details: dict | None = None,
    timestamp: datetime | None = None,
) -> tuple[ChatMessage, bool]:
    """Store a chat line. Returns ``(message, created)``.

    A line matching an existing one (same text and sender in the same second)
    is not stored again.
    """
    key = normalize_query_id(query_id)
    text = (message or "").strip()
    if not text:
        raise InvalidAction("Message cannot be empty")
    ts = timestamp or utcnow()
    window_start = ts.replace(microsecond=0)
    existing_stmt = select(ChatMessage).where(
        ChatMessage.query_id == key,
        ChatMessage.message == text,
        ChatMessage.sender == sender,
        ChatMessage.timestamp >= window_start,
        ChatMessage.timestamp < window_start + timedelta(seconds=1),
    )
    existing = (await db.execute(existing_stmt)).scalars().first()
    if existing is not None:
        logger.info("Duplicate chat message suppressed query_id=%s sender=%s", key, sender)
        return existing, False
    entry = ChatMessage(
        id=uuid.uuid4(),
        query_id=key,
        message=text,
        sender=sender,
        sender_role=sender_role,
        team=team,
        action_type=action_type,
        is_system_message=is_system_message,
        details=details or {},
        timestamp=ts,
        created_at=utcnow(),
    )
    db.add(entry)
    await db.commit()
    return entry, True


async def count_messages(db: AsyncSession) -> int:
    result = await db.execute(select(func.count(ChatMessage.id)))
    return int(result.scalar() or 0)


async def cleanup_duplicate_messages(db: AsyncSession) -> dict[str, int]:
    result = await db.execute(select(ChatMessage))
    messages = list(result.scalars().all())
    before = len(messages)
    duplicate_ids = find_duplicate_ids(messages)
    if duplicate_ids:
        await db.execute(delete(ChatMessage).where(ChatMessage.id.in_(duplicate_ids)))
        await db.commit()
    logger.info("Chat duplicate cleanup removed=%s before=%s", len(duplicate_ids), before)
    return {"before": before, "duplicates_removed": len(duplicate_ids), "after": before - len(duplicate_ids)}


async def clear_messages(db: AsyncSession) -> int:
    result = await db.execute(delete(ChatMessage))
    await db.commit()
    return result.rowcount or 0
