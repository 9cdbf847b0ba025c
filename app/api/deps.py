from typing import Optional

from fastapi import Depends, HTTPException, Query, status
from fastapi.security import OAuth2PasswordBearer
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.context import set_actor
from app.core.security import decode_token
from app.db.session import get_db
from app.models import QueryRecord, User
from app.schemas.common import Team, team_for_role
from app.services import query_records, query_scoping, users as user_service
from app.services.query_errors import QueryWorkflowError


oauth2_scheme = OAuth2PasswordBearer(tokenUrl="/api/auth/login", auto_error=False)


async def get_db_session(db: AsyncSession = Depends(get_db)) -> AsyncSession:
    return db


async def _resolve_user(token: Optional[str], db: AsyncSession) -> User:
    if not token:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Not authenticated",
            headers={"WWW-Authenticate": "Bearer"},
        )
    try:
        payload = decode_token(token, expected_type="access")
    except ValueError as exc:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail=str(exc),
        ) from exc
    user_sub = payload.get("sub")
    if not user_sub:
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Invalid token")

    user = await user_service.get_by_id(db, user_sub)
    if not user:
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="User not found")
    if not user.is_active:
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Inactive user")
    set_actor(user.employee_id, team_of(user).value)
    return user


async def get_current_user(
    token: Optional[str] = Depends(oauth2_scheme),
    db: AsyncSession = Depends(get_db_session),
) -> User:
    return await _resolve_user(token, db)


async def get_stream_user(
    token: Optional[str] = Depends(oauth2_scheme),
    access_token: Optional[str] = Query(default=None),
    db: AsyncSession = Depends(get_db_session),
) -> User:
    """EventSource clients cannot set headers, so streams also accept ``?access_token=``."""
    return await _resolve_user(token or access_token, db)


async def require_authenticated_user(current_user: User = Depends(get_current_user)) -> User:
    """Simple guard to require an authenticated user (no role checks)."""
    return current_user


def require_roles(*roles: str):
    allowed = {r.lower() for r in roles}

    async def dependency(current_user: User = Depends(require_authenticated_user)) -> User:
        if (current_user.role or "").lower() not in allowed:
            raise HTTPException(
                status_code=status.HTTP_403_FORBIDDEN,
                detail=f"Requires role: {', '.join(sorted(allowed))}",
            )
        return current_user

    return dependency


require_admin = require_roles("admin")


def team_of(user: User) -> Team:
    try:
        return team_for_role(user.role)
    except ValueError as exc:
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail={"code": "unknown_role", "message": str(exc)},
        ) from exc


def workflow_http_error(exc: QueryWorkflowError) -> HTTPException:
    return HTTPException(
        status_code=exc.status_code,
        detail={"code": exc.code, "message": exc.message, "details": exc.details},
    )


def branch_scope(user: User) -> Optional[list[str]]:
    return query_scoping.branch_scope(user)


async def accessible_record(db: AsyncSession, record_id, user: User, team: Optional[Team] = None) -> QueryRecord:
    """Load a record the user's team can see inside their branches, else 404."""
    try:
        record = await query_records.get_record(db, record_id)
        query_scoping.ensure_accessible(record, team or team_of(user), branch_scope(user))
    except QueryWorkflowError as exc:
        raise workflow_http_error(exc) from exc
    return record


async def accessible_chat_record(db: AsyncSession, query_id, user: User, team: Optional[Team] = None) -> QueryRecord:
    """Same guard for chat threads, which are keyed by sub-query or record id."""
    try:
        record = await query_records.get_chat_target(db, query_id)
        query_scoping.ensure_accessible(record, team or team_of(user), branch_scope(user))
    except QueryWorkflowError as exc:
        raise workflow_http_error(exc) from exc
    return record
