import logging

from fastapi import APIRouter, Depends, HTTPException, status
from sqlalchemy.ext.asyncio import AsyncSession

from app.api import deps
from app.api.routers.chat import post_chat_message
from app.api.routers.queries import action_result
from app.models import User
from app.schemas.common import Team
from app.schemas.queries import QueryActionRequest
from app.services.query_actions import ActionCommand, ConfirmCommand, apply_action, confirm_action
from app.services.query_errors import QueryWorkflowError

router = APIRouter(tags=["query-actions"])
logger = logging.getLogger(__name__)


def _bad_request(message: str) -> HTTPException:
    return HTTPException(
        status_code=status.HTTP_400_BAD_REQUEST,
        detail={"code": "bad_request", "message": message},
    )


def _acting_team(payload: QueryActionRequest, user: User) -> Team:
    own = deps.team_of(user)
    # Only admins may act on behalf of another team.
    if own is Team.ADMIN and payload.team is not None:
        return payload.team
    return own


@router.post("/query-actions")
async def post_query_action(
    payload: QueryActionRequest,
    db: AsyncSession = Depends(deps.get_db_session),
    current_user: User = Depends(deps.require_authenticated_user),
):
    if not payload.query_id:
        raise _bad_request("queryId is required")
    kind = payload.type or "action"
    team = _acting_team(payload, current_user)
    scope = deps.branch_scope(current_user)
    actor = payload.team_member() or current_user.full_name

    if kind == "message":
        if not (payload.message or "").strip():
            raise _bad_request("message is required")
        await deps.accessible_chat_record(db, payload.query_id, current_user, team)
        return await post_chat_message(
            db,
            query_id=payload.query_id,
            message=payload.message,
            sender=actor,
            team=team.value,
            connection_id=payload.connection_id,
        )

    try:
        if kind == "approval":
            if payload.decision is None:
                raise _bad_request("decision is required")
            outcome = await confirm_action(
                db,
                ConfirmCommand(
                    query_id=payload.query_id,
                    decision=payload.decision,
                    approver=actor,
                    team=team,
                    remarks=payload.remarks,
                    connection_id=payload.connection_id,
                    scope=scope,
                ),
            )
        else:
            action = "revert" if kind == "revert" else payload.action
            if not action:
                raise _bad_request("action is required")
            outcome = await apply_action(
                db,
                ActionCommand(
                    query_id=payload.query_id,
                    action=action,
                    actor=actor,
                    team=team,
                    remarks=payload.remarks,
                    assigned_to_branch=payload.assigned_to_branch,
                    response_text=payload.response_text,
                    connection_id=payload.connection_id,
                    scope=scope,
                ),
            )
    except QueryWorkflowError as exc:
        logger.info("Query action rejected query_id=%s code=%s", payload.query_id, exc.code)
        raise deps.workflow_http_error(exc) from exc
    return action_result(outcome).model_dump(mode="json", by_alias=True)
