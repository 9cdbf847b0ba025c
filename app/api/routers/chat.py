from fastapi import APIRouter, Depends, Request, status
from fastapi.responses import StreamingResponse
from sqlalchemy.ext.asyncio import AsyncSession

from app.api import deps
from app.api.routers.queries import SSE_HEADERS
from app.models import User
from app.schemas.chat import ChatMessageCreate, ChatMessageOut
from app.services import chat_store, query_stream
from app.services.broadcast import hub
from app.services.query_errors import QueryWorkflowError

router = APIRouter(prefix="/queries/{query_id}/chat", tags=["chat"])


@router.get("", response_model=list[ChatMessageOut])
async def list_chat_messages(
    query_id: str,
    db: AsyncSession = Depends(deps.get_db_session),
    current_user: User = Depends(deps.require_authenticated_user),
) -> list[ChatMessageOut]:
    await deps.accessible_chat_record(db, query_id, current_user)
    try:
        messages = await chat_store.get_messages(db, query_id)
    except QueryWorkflowError as exc:
        raise deps.workflow_http_error(exc) from exc
    return [ChatMessageOut.model_validate(m) for m in messages]


async def post_chat_message(
    db: AsyncSession,
    *,
    query_id: str,
    message: str,
    sender: str,
    team: str,
    connection_id: str | None = None,
) -> ChatMessageOut:
    try:
        entry, created = await chat_store.add_message(
            db,
            query_id=query_id,
            message=message,
            sender=sender,
            sender_role=team.lower(),
            team=team,
        )
    except QueryWorkflowError as exc:
        raise deps.workflow_http_error(exc) from exc
    out = ChatMessageOut.model_validate(entry)
    if created:
        await query_stream.broadcast_update(
            {
                "queryId": entry.query_id,
                "action": "message_added",
                "team": team,
                "newMessage": out.model_dump(mode="json", by_alias=True),
            },
            exclude_connection_id=connection_id,
        )
    return out


@router.post("", response_model=ChatMessageOut, status_code=status.HTTP_201_CREATED)
async def add_chat_message(
    query_id: str,
    payload: ChatMessageCreate,
    db: AsyncSession = Depends(deps.get_db_session),
    current_user: User = Depends(deps.require_authenticated_user),
) -> ChatMessageOut:
    await deps.accessible_chat_record(db, query_id, current_user)
    return await post_chat_message(
        db,
        query_id=query_id,
        message=payload.message,
        sender=payload.sender or current_user.full_name,
        team=payload.team.value,
    )


@router.get("/events", summary="Stream chat events for one query (SSE)")
async def stream_chat_events(
    query_id: str,
    request: Request,
    db: AsyncSession = Depends(deps.get_db_session),
    current_user: User = Depends(deps.get_stream_user),
):
    await deps.accessible_chat_record(db, query_id, current_user)
    connection = hub.open(scope=query_id.strip())
    return StreamingResponse(
        query_stream.event_stream(connection, is_disconnected=request.is_disconnected),
        media_type="text/event-stream",
        headers=SSE_HEADERS,
    )
