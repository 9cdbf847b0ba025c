from fastapi import APIRouter, Depends, HTTPException, status
from sqlalchemy.ext.asyncio import AsyncSession

from app.api import deps
from app.models import User
from app.schemas.auth import UserOut
from app.schemas.users import UserAccessUpdate, UserCreate, UserListOut
from app.services import users as user_service
from app.services.query_errors import QueryWorkflowError

router = APIRouter(prefix="/users", tags=["users"])


@router.get("", response_model=list[UserListOut])
async def list_users(
    db: AsyncSession = Depends(deps.get_db_session),
    _: User = Depends(deps.require_admin),
) -> list[UserListOut]:
    return [UserListOut.model_validate(u) for u in await user_service.list_users(db)]


@router.post("", response_model=UserOut, status_code=status.HTTP_201_CREATED)
async def create_user(
    payload: UserCreate,
    db: AsyncSession = Depends(deps.get_db_session),
    current_user: User = Depends(deps.require_admin),
) -> UserOut:
    try:
        user = await user_service.create_user(db, payload, actor=current_user.employee_id)
    except QueryWorkflowError as exc:
        raise deps.workflow_http_error(exc) from exc
    except ValueError as exc:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail={"code": "weak_password", "message": str(exc)},
        ) from exc
    return UserOut.model_validate(user)


@router.patch("/{user_id}/access", response_model=UserOut)
async def update_user_access(
    user_id: str,
    payload: UserAccessUpdate,
    db: AsyncSession = Depends(deps.get_db_session),
    current_user: User = Depends(deps.require_admin),
) -> UserOut:
    try:
        user = await user_service.update_access(db, user_id, payload, actor=current_user.employee_id)
    except QueryWorkflowError as exc:
        raise deps.workflow_http_error(exc) from exc
    return UserOut.model_validate(user)
