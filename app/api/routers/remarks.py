from fastapi import APIRouter, Depends, Query, status
from sqlalchemy.ext.asyncio import AsyncSession

from app.api import deps
from app.models import User
from app.schemas.queries import RemarkCreate, RemarkOut, RemarkUpdate
from app.services import query_stream, remarks as remark_service
from app.services.query_errors import QueryWorkflowError

router = APIRouter(prefix="/queries/{record_id}/remarks", tags=["remarks"])


@router.get("", response_model=list[RemarkOut])
async def list_remarks(
    record_id: str,
    db: AsyncSession = Depends(deps.get_db_session),
    current_user: User = Depends(deps.require_authenticated_user),
) -> list[RemarkOut]:
    await deps.accessible_record(db, record_id, current_user)
    try:
        items = await remark_service.list_remarks(db, record_id)
    except QueryWorkflowError as exc:
        raise deps.workflow_http_error(exc) from exc
    return [RemarkOut.model_validate(r) for r in items]


@router.post("", response_model=RemarkOut, status_code=status.HTTP_201_CREATED)
async def add_remark(
    record_id: str,
    payload: RemarkCreate,
    db: AsyncSession = Depends(deps.get_db_session),
    current_user: User = Depends(deps.require_authenticated_user),
) -> RemarkOut:
    await deps.accessible_record(db, record_id, current_user)
    try:
        record, remark = await remark_service.add_remark(
            db,
            record_id,
            text=payload.text,
            author=payload.author,
            author_role=payload.author_role,
            author_team=payload.author_team,
        )
    except QueryWorkflowError as exc:
        raise deps.workflow_http_error(exc) from exc
    out = RemarkOut.model_validate(remark)
    await query_stream.broadcast_update(
        {
            "id": str(record.id),
            "queryId": str(record.id),
            "appNo": record.app_no,
            "markedForTeam": record.marked_for_team,
            "action": "message_added",
            "newMessage": out.model_dump(mode="json", by_alias=True),
        }
    )
    return out


@router.put("", response_model=RemarkOut)
async def edit_remark(
    record_id: str,
    payload: RemarkUpdate,
    db: AsyncSession = Depends(deps.get_db_session),
    current_user: User = Depends(deps.require_authenticated_user),
) -> RemarkOut:
    await deps.accessible_record(db, record_id, current_user)
    try:
        remark = await remark_service.edit_remark(
            db, record_id, payload.remark_id, text=payload.text, actor=current_user.employee_id
        )
    except QueryWorkflowError as exc:
        raise deps.workflow_http_error(exc) from exc
    return RemarkOut.model_validate(remark)


@router.delete("")
async def delete_remark(
    record_id: str,
    remark_id: str = Query(alias="remarkId"),
    db: AsyncSession = Depends(deps.get_db_session),
    current_user: User = Depends(deps.require_authenticated_user),
) -> dict:
    await deps.accessible_record(db, record_id, current_user)
    try:
        remark = await remark_service.delete_remark(db, record_id, remark_id, actor=current_user.employee_id)
    except QueryWorkflowError as exc:
        raise deps.workflow_http_error(exc) from exc
    return {"deleted": True, "remarkId": str(remark.id)}
