from __future__ import annotations

import logging
import uuid

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.security import constant_time_verify, get_password_hash
from app.models.user import User
from app.schemas.users import UserAccessUpdate, UserCreate
from app.services.audit import model_snapshot, record_audit_event
from app.services.query_errors import DuplicateUser, UserNotFound
from app.services.query_records import parse_uuid, utcnow

logger = logging.getLogger(__name__)

_ACCESS_FIELDS = ("role", "assigned_branches", "permissions", "is_active")


async def get_by_employee_id(db: AsyncSession, employee_id: str) -> User | None:
    result = await db.execute(select(User).where(User.employee_id == employee_id.strip()))
    return result.scalars().first()


async def get_by_id(db: AsyncSession, user_id) -> User | None:
    parsed = parse_uuid(user_id)
    if parsed is None:
        return None
    result = await db.execute(select(User).where(User.id == parsed))
    return result.scalars().first()


async def authenticate(db: AsyncSession, employee_id: str, password: str) -> User | None:
    user = await get_by_employee_id(db, employee_id)
    hashed = user.hashed_password if user else None
    if not constant_time_verify(hashed, password):
        return None
    if not user.is_active:
        return None
    user.last_login = utcnow()
    db.add(user)
    await db.commit()
    return user


async def list_users(db: AsyncSession) -> list[User]:
    result = await db.execute(select(User).order_by(User.employee_id.asc()))
    return list(result.scalars().all())


async def create_user(db: AsyncSession, payload: UserCreate, *, actor: str | None = None) -> User:
    if await get_by_employee_id(db, payload.employee_id):
        raise DuplicateUser(
            "Employee id already registered",
            details={"employeeId": payload.employee_id},
        )
    now = utcnow()
    user = User(
        id=uuid.uuid4(),
        employee_id=payload.employee_id,
        full_name=payload.full_name,
        email=payload.email,
        role=payload.role.value,
        branch=payload.branch,
        assigned_branches=list(payload.assigned_branches),
        permissions=list(payload.permissions),
        hashed_password=get_password_hash(payload.password),
        is_active=True,
        created_at=now,
        updated_at=now,
    )
    db.add(user)
    await db.commit()
    record_audit_event(
        actor=actor,
        action="user.created",
        resource_type="user",
        resource_id=str(user.id),
        new_value=model_snapshot(user, include=_ACCESS_FIELDS),
    )
    return user


async def update_access(db: AsyncSession, user_id, payload: UserAccessUpdate, *, actor: str | None = None) -> User:
    user = await get_by_id(db, user_id)
    if user is None:
        raise UserNotFound("User not found", details={"id": str(user_id)})
    before = model_snapshot(user, include=_ACCESS_FIELDS)
    changes = payload.model_dump(exclude_none=True)
    if "role" in changes:
        changes["role"] = payload.role.value
    for field, value in changes.items():
        setattr(user, field, value)
    user.updated_at = utcnow()
    db.add(user)
    await db.commit()
    record_audit_event(
        actor=actor,
        action="user.access_updated",
        resource_type="user",
        resource_id=str(user.id),
        old_value=before,
        new_value=model_snapshot(user, include=_ACCESS_FIELDS),
    )
    return user


async def ensure_admin(db: AsyncSession, employee_id: str | None, password: str | None) -> User | None:
    if not employee_id or not password:
        return None
    existing = await get_by_employee_id(db, employee_id)
    if existing is not None:
        return existing
    user = await create_user(
        db,
        UserCreate(
            employee_id=employee_id,
            full_name="Administrator",
            role="admin",
            assigned_branches=["Multiple"],
            password=password,
        ),
        actor="system",
    )
    logger.info("Seeded admin user employee_id=%s", employee_id)
    return user
