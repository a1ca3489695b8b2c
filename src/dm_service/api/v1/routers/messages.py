from __future__ import annotations

from uuid import UUID

from fastapi import APIRouter, Query, Response

from dm_service.api.deps import CurrentPrincipal, UoWDep
from dm_service.api.v1.schemas.message import MessageResponse, SendMessageRequest
from dm_service.application.dto.message import SendMessageDTO
from dm_service.infrastructure.db.repositories._cursor import encode_cursor
from dm_service.services import message_service

router = APIRouter(prefix="/api/v1/dm/conversations", tags=["messages"])

NEXT_CURSOR_HEADER = "X-Next-Cursor"


@router.get("/{conversation_id}/messages", response_model=list[MessageResponse])
async def list_messages(
    conversation_id: UUID,
    principal: CurrentPrincipal,
    uow: UoWDep,
    response: Response,
    cursor: str | None = Query(None),
    limit: int | None = Query(None, ge=1, le=500),
) -> list[MessageResponse]:
    messages = await message_service.list_messages(
        conversation_id, principal, cursor, limit, uow,
    )
    if limit is not None and len(messages) == limit:
        last = messages[-1]
        if last.seq is not None:
            response.headers[NEXT_CURSOR_HEADER] = encode_cursor(last.created_at, last.seq)
    return [MessageResponse.model_validate(m, from_attributes=True) for m in messages]


@router.post("/{conversation_id}/messages", response_model=MessageResponse, status_code=201)
async def send_message(
    conversation_id: UUID,
    body: SendMessageRequest,
    principal: CurrentPrincipal,
    uow: UoWDep,
) -> MessageResponse:
    msg, _created = await message_service.send_message(
        SendMessageDTO(
            conversation_id=conversation_id,
            client_msg_id=body.client_msg_id,
            content=body.content,
        ),
        principal,
        uow,
    )
    return MessageResponse.model_validate(msg, from_attributes=True)
