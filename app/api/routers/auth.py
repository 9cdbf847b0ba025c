import logging

from fastapi import APIRouter, Depends, HTTPException, Request, status
from sqlalchemy.ext.asyncio import AsyncSession

from app.api import deps
from app.core.limiter import limiter
from app.core.security import create_access_token
from app.core.settings import settings
from app.models import User
from app.schemas.auth import LoginRequest, LoginResponse, UserOut
from app.services import users as user_service
from app.utils.rate_limit import check_login_lockout, register_login_attempt

router = APIRouter(prefix="/auth", tags=["auth"])
logger = logging.getLogger(__name__)


@router.post("/login", response_model=LoginResponse)
@limiter.limit(lambda: f"{settings.rate_limit_per_minute}/minute")
async def login(
    credentials: LoginRequest,
    request: Request,
    db: AsyncSession = Depends(deps.get_db_session),
) -> LoginResponse:
    check_login_lockout(credentials.employee_id)
    user = await user_service.authenticate(db, credentials.employee_id, credentials.password)
    register_login_attempt(credentials.employee_id, user is not None)
    if user is None:
        logger.info("Login failed employee_id=%s", credentials.employee_id)
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail={"code": "invalid_credentials", "message": "Invalid employee id or password"},
        )
    token = create_access_token(str(user.id), role=user.role)
    logger.info("Login succeeded employee_id=%s", user.employee_id)
    return LoginResponse(
        access_token=token,
        expires_in=settings.access_token_expire_minutes * 60,
        user=UserOut.model_validate(user),
    )


@router.get("/me", response_model=UserOut)
async def read_current_user(current_user: User = Depends(deps.require_authenticated_user)) -> UserOut:
    return UserOut.model_validate(current_user)
