from typing import Optional

from fastapi import APIRouter, Depends, Query, status
from sqlalchemy.ext.asyncio import AsyncSession

from app.api import deps
from app.models import User
from app.schemas.sanctioned import SanctionedApplicationCreate, SanctionedApplicationOut, SanctionedStatsOut
from app.services import query_scoping, query_stream, sanctioned
from app.services.query_errors import QueryWorkflowError, SanctionedNotFound

router = APIRouter(prefix="/sanctioned-applications", tags=["sanctioned"])


@router.get("", response_model=list[SanctionedApplicationOut])
async def list_sanctioned_applications(
    status_filter: Optional[str] = Query(default=None, alias="status"),
    db: AsyncSession = Depends(deps.get_db_session),
    current_user: User = Depends(deps.require_authenticated_user),
) -> list[SanctionedApplicationOut]:
    items = await sanctioned.list_sanctioned(
        db, status=status_filter, branch_scope=query_scoping.branch_scope(current_user)
    )
    return [SanctionedApplicationOut.model_validate(a) for a in items]


@router.post("", response_model=SanctionedApplicationOut, status_code=status.HTTP_201_CREATED)
async def create_sanctioned_application(
    payload: SanctionedApplicationCreate,
    db: AsyncSession = Depends(deps.get_db_session),
    current_user: User = Depends(deps.require_roles("operations", "admin")),
) -> SanctionedApplicationOut:
    try:
        application = await sanctioned.create_sanctioned(db, payload, actor=current_user.employee_id)
    except QueryWorkflowError as exc:
        raise deps.workflow_http_error(exc) from exc
    return SanctionedApplicationOut.model_validate(application)


@router.get("/stats", response_model=SanctionedStatsOut)
async def sanctioned_application_stats(
    db: AsyncSession = Depends(deps.get_db_session),
    _: User = Depends(deps.require_roles("operations", "admin")),
) -> SanctionedStatsOut:
    return SanctionedStatsOut(**await sanctioned.sanctioned_stats(db))


@router.get("/{app_no}", response_model=SanctionedApplicationOut)
async def get_sanctioned_application(
    app_no: str,
    db: AsyncSession = Depends(deps.get_db_session),
    current_user: User = Depends(deps.require_authenticated_user),
) -> SanctionedApplicationOut:
    try:
        application = await sanctioned.get_sanctioned(db, app_no)
        scope = query_scoping.branch_scope(current_user)
        if scope is not None and (application.branch_code or "").strip().lower() not in scope:
            raise SanctionedNotFound("Sanctioned application not found", details={"appNo": app_no})
    except QueryWorkflowError as exc:
        raise deps.workflow_http_error(exc) from exc
    return SanctionedApplicationOut.model_validate(application)


@router.delete("/{app_no}")
async def delete_sanctioned_application(
    app_no: str,
    db: AsyncSession = Depends(deps.get_db_session),
    current_user: User = Depends(deps.require_admin),
) -> dict:
    try:
        application = await sanctioned.delete_sanctioned(db, app_no, actor=current_user.employee_id)
    except QueryWorkflowError as exc:
        raise deps.workflow_http_error(exc) from exc
    await query_stream.broadcast_update({"appNo": application.app_no, "action": "sanctioned_case_removed"})
    return {"deleted": True, "appNo": application.app_no}
