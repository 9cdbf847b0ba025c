import logging

from fastapi import APIRouter, Depends, HTTPException, Query, status
from sqlalchemy.ext.asyncio import AsyncSession

from app.api import deps
from app.models import User
from app.schemas.chat import DuplicateCleanupOut
from app.services import chat_store, query_records, sanctioned
from app.services.audit import record_audit_event

router = APIRouter(tags=["admin"])
logger = logging.getLogger(__name__)


def _require_confirm(confirm: bool) -> None:
    if not confirm:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail={"code": "confirmation_required", "message": "Add ?confirm=true to proceed"},
        )


def _audit_clear(user: User, resource_type: str, deleted: int) -> dict:
    record_audit_event(
        actor=user.employee_id,
        action=f"{resource_type}.cleared",
        resource_type=resource_type,
        resource_id="*",
        new_value={"deleted": deleted},
    )
    logger.warning("Bulk delete resource=%s deleted=%s by=%s", resource_type, deleted, user.employee_id)
    return {"deleted": deleted}


@router.delete("/clear-queries")
async def clear_queries(
    confirm: bool = Query(default=False),
    db: AsyncSession = Depends(deps.get_db_session),
    current_user: User = Depends(deps.require_admin),
) -> dict:
    _require_confirm(confirm)
    return _audit_clear(current_user, "query_record", await query_records.clear_records(db))


@router.delete("/clear-messages")
async def clear_messages(
    confirm: bool = Query(default=False),
    db: AsyncSession = Depends(deps.get_db_session),
    current_user: User = Depends(deps.require_admin),
) -> dict:
    _require_confirm(confirm)
    return _audit_clear(current_user, "chat_message", await chat_store.clear_messages(db))


@router.delete("/clear-sanctioned")
async def clear_sanctioned(
    confirm: bool = Query(default=False),
    db: AsyncSession = Depends(deps.get_db_session),
    current_user: User = Depends(deps.require_admin),
) -> dict:
    _require_confirm(confirm)
    return _audit_clear(current_user, "sanctioned_application", await sanctioned.clear_sanctioned(db))


@router.post("/cleanup-duplicate-messages", response_model=DuplicateCleanupOut)
async def cleanup_duplicate_messages(
    db: AsyncSession = Depends(deps.get_db_session),
    _: User = Depends(deps.require_admin),
) -> DuplicateCleanupOut:
    return DuplicateCleanupOut(**await chat_store.cleanup_duplicate_messages(db))
