from fastapi import APIRouter, Depends, Query
from sqlalchemy.ext.asyncio import AsyncSession

from app.api import deps
from app.models import User
from app.schemas.branches import BranchOut
from app.services import branches as branch_service

router = APIRouter(prefix="/branches", tags=["branches"])


@router.get("", response_model=list[BranchOut])
async def list_branches(
    active: bool = Query(default=False),
    db: AsyncSession = Depends(deps.get_db_session),
    _: User = Depends(deps.require_authenticated_user),
) -> list[BranchOut]:
    items = await branch_service.list_branches(db, include_inactive=not active)
    return [BranchOut.model_validate(b) for b in items]
