import logging
from datetime import datetime, timezone
from typing import Literal, Optional

from fastapi import APIRouter, Depends, HTTPException, Query, Request, status
from fastapi.responses import StreamingResponse
from sqlalchemy.ext.asyncio import AsyncSession

from app.api import deps
from app.models import User
from app.schemas.common import MarkedForTeam, Team
from app.schemas.queries import (
    ActionResultOut,
    QueryRecordCreate,
    QueryRecordOut,
    QueryUpdateOut,
    RoleQueryActionRequest,
)
from app.services import query_records, query_scoping, query_stream, update_log
from app.services.broadcast import hub
from app.services.query_actions import ActionCommand, apply_action
from app.services.query_errors import QueryNotFound, QueryWorkflowError

router = APIRouter(prefix="/queries", tags=["queries"])
logger = logging.getLogger(__name__)

SSE_HEADERS = {"Cache-Control": "no-cache", "Connection": "keep-alive", "X-Accel-Buffering": "no"}

ViewName = Literal["all", "resolved", "reports"]

_VIEW_STATUSES = {
    "all": None,
    "resolved": query_scoping.RESOLVED_VIEW_STATUSES,
    "reports": query_scoping.REPORT_VIEW_STATUSES,
}


def _view_team(user: User, requested: Optional[Team]) -> Optional[Team]:
    own = deps.team_of(user)
    if own in (Team.SALES, Team.CREDIT):
        return own
    return requested


def _statuses(view: str, status_filter: Optional[str]) -> Optional[set[str]]:
    if status_filter and status_filter != "all":
        return {status_filter}
    base = _VIEW_STATUSES[view]
    return set(base) if base else None


def _parse_since(raw: Optional[str]) -> datetime:
    if not raw:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail={"code": "missing_since", "message": "since parameter is required"},
        )
    value = raw.strip()
    if value.endswith("Z"):
        value = value[:-1] + "+00:00"
    try:
        parsed = datetime.fromisoformat(value)
    except ValueError as exc:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail={"code": "invalid_since", "message": "since must be an ISO-8601 timestamp"},
        ) from exc
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=timezone.utc)
    return parsed


@router.get("", response_model=list[QueryRecordOut])
async def list_queries(
    view: ViewName = Query(default="all"),
    status_filter: Optional[str] = Query(default=None, alias="status"),
    app_no: Optional[str] = Query(default=None, alias="appNo"),
    team: Optional[Team] = Query(default=None),
    db: AsyncSession = Depends(deps.get_db_session),
    current_user: User = Depends(deps.require_authenticated_user),
) -> list[QueryRecordOut]:
    records = await query_records.list_records(
        db,
        current_user,
        team=_view_team(current_user, team),
        statuses=_statuses(view, status_filter),
        app_no=app_no,
    )
    return [QueryRecordOut.model_validate(r) for r in records]


@router.post("", response_model=QueryRecordOut, status_code=status.HTTP_201_CREATED)
async def create_query(
    payload: QueryRecordCreate,
    db: AsyncSession = Depends(deps.get_db_session),
    current_user: User = Depends(deps.require_roles("operations", "admin")),
) -> QueryRecordOut:
    record = await query_records.create_record(db, payload, submitted_by=current_user.full_name)
    await query_stream.broadcast_update(
        {
            "id": str(record.id),
            "appNo": record.app_no,
            "customerName": record.customer_name,
            "branch": record.branch,
            "markedForTeam": record.marked_for_team,
            "action": "created",
            "status": record.status,
        }
    )
    return QueryRecordOut.model_validate(record)


@router.get("/updates", response_model=list[QueryUpdateOut])
async def list_updates(
    since: Optional[str] = Query(default=None),
    db: AsyncSession = Depends(deps.get_db_session),
    _: User = Depends(deps.require_authenticated_user),
) -> list[QueryUpdateOut]:
    rows = await update_log.list_updates_since(db, _parse_since(since))
    return [QueryUpdateOut.model_validate(r) for r in rows]


@router.get("/events", summary="Stream query updates (SSE)")
async def stream_query_events(
    request: Request,
    _: User = Depends(deps.get_stream_user),
):
    connection = hub.open()
    return StreamingResponse(
        query_stream.event_stream(connection, is_disconnected=request.is_disconnected),
        media_type="text/event-stream",
        headers=SSE_HEADERS,
    )


def _register_team_routes(team: Team) -> None:
    path = f"/{team.value.lower()}"

    @router.get(path, response_model=list[QueryRecordOut], name=f"list_{team.value.lower()}_queries")
    async def list_team_queries(
        status_filter: str = Query(default="pending", alias="status"),
        db: AsyncSession = Depends(deps.get_db_session),
        current_user: User = Depends(deps.require_roles(team.value.lower(), "operations", "admin")),
    ) -> list[QueryRecordOut]:
        statuses = None if status_filter == "all" else {status_filter}
        records = await query_records.list_records(db, current_user, team=team, statuses=statuses)
        return [QueryRecordOut.model_validate(r) for r in records]

    @router.post(
        path,
        response_model=QueryRecordOut,
        status_code=status.HTTP_201_CREATED,
        name=f"create_{team.value.lower()}_query",
    )
    async def create_team_query(
        payload: QueryRecordCreate,
        db: AsyncSession = Depends(deps.get_db_session),
        current_user: User = Depends(deps.require_roles("operations", "admin")),
    ) -> QueryRecordOut:
        if payload.marked_for_team is not MarkedForTeam.BOTH:
            payload = payload.model_copy(update={"marked_for_team": MarkedForTeam(team.value.lower())})
        return await create_query(payload, db=db, current_user=current_user)

    @router.patch(path, response_model=ActionResultOut, name=f"act_on_{team.value.lower()}_query")
    async def act_on_team_query(
        payload: RoleQueryActionRequest,
        db: AsyncSession = Depends(deps.get_db_session),
        current_user: User = Depends(deps.require_roles(team.value.lower(), "admin")),
    ) -> ActionResultOut:
        command = ActionCommand(
            query_id=payload.query_id,
            action=payload.action,
            actor=payload.team_member or current_user.full_name,
            team=team,
            remarks=payload.remarks,
            assigned_to_branch=payload.assigned_to_branch,
            response_text=payload.response_text,
            connection_id=payload.connection_id,
            scope=deps.branch_scope(current_user),
        )
        try:
            outcome = await apply_action(db, command)
        except QueryWorkflowError as exc:
            raise deps.workflow_http_error(exc) from exc
        return action_result(outcome)

    @router.delete(path, name=f"delete_{team.value.lower()}_query")
    async def delete_team_query(
        record_id: str = Query(alias="id"),
        db: AsyncSession = Depends(deps.get_db_session),
        current_user: User = Depends(deps.require_admin),
    ) -> dict:
        try:
            record = await query_records.get_record(db, record_id)
            if not query_scoping.is_visible_to(record, team):
                raise QueryNotFound("Query not found", details={"id": record_id})
            await query_records.delete_record(db, record.id, actor=current_user.employee_id)
        except QueryWorkflowError as exc:
            raise deps.workflow_http_error(exc) from exc
        return {"deleted": 1, "id": str(record.id)}


def action_result(outcome) -> ActionResultOut:
    return ActionResultOut(
        query_id=outcome.sub_query.id,
        record_id=outcome.record.id,
        action=outcome.action,
        mode=outcome.mode.value,
        previous_status=outcome.previous_status,
        status=outcome.sub_query.status,
        record_status=outcome.record.status,
        proposed_action=outcome.sub_query.proposed_action,
        message=outcome.message,
        remark=outcome.remark,
        sub_query=outcome.sub_query,
    )


for _team in (Team.SALES, Team.CREDIT):
    _register_team_routes(_team)


@router.get("/{record_id}", response_model=QueryRecordOut)
async def get_query(
    record_id: str,
    db: AsyncSession = Depends(deps.get_db_session),
    current_user: User = Depends(deps.require_authenticated_user),
) -> QueryRecordOut:
    record = await deps.accessible_record(db, record_id, current_user)
    return QueryRecordOut.model_validate(record)
