from __future__ import annotations

import logging
import uuid

from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession

from app.models.branch import Branch

logger = logging.getLogger(__name__)

DEFAULT_BRANCHES: tuple[dict[str, str], ...] = (
    {"code": "BR001", "name": "Mumbai Central", "region": "West", "state": "Maharashtra", "city": "Mumbai"},
    {"code": "BR002", "name": "Pune Camp", "region": "West", "state": "Maharashtra", "city": "Pune"},
    {"code": "BR003", "name": "Ahmedabad CG Road", "region": "West", "state": "Gujarat", "city": "Ahmedabad"},
    {"code": "BR004", "name": "Delhi Connaught Place", "region": "North", "state": "Delhi", "city": "New Delhi"},
    {"code": "BR005", "name": "Jaipur MI Road", "region": "North", "state": "Rajasthan", "city": "Jaipur"},
    {"code": "BR006", "name": "Bengaluru MG Road", "region": "South", "state": "Karnataka", "city": "Bengaluru"},
    {"code": "BR007", "name": "Chennai T Nagar", "region": "South", "state": "Tamil Nadu", "city": "Chennai"},
    {"code": "BR008", "name": "Hyderabad Banjara Hills", "region": "South", "state": "Telangana", "city": "Hyderabad"},
    {"code": "BR009", "name": "Kolkata Park Street", "region": "East", "state": "West Bengal", "city": "Kolkata"},
    {"code": "BR010", "name": "Lucknow Hazratganj", "region": "North", "state": "Uttar Pradesh", "city": "Lucknow"},
)


async def list_branches(db: AsyncSession, *, include_inactive: bool = False) -> list[Branch]:
    stmt = select(Branch).order_by(Branch.code.asc())
    if not include_inactive:
        stmt = stmt.where(Branch.is_active.is_(True))
    result = await db.execute(stmt)
    return list(result.scalars().all())


async def seed_branches(db: AsyncSession, branches: tuple[dict[str, str], ...] = DEFAULT_BRANCHES) -> int:
    existing = await db.execute(select(func.count(Branch.id)))
    if int(existing.scalar() or 0) > 0:
        return 0
    for data in branches:
        db.add(Branch(id=uuid.uuid4(), is_active=True, **data))
    await db.commit()
    logger.info("Seeded %s branches", len(branches))
    return len(branches)
