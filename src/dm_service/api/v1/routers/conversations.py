from __future__ import annotations

from uuid import UUID

from fastapi import APIRouter, Query, Response, status

from dm_service.api.deps import CurrentPrincipal, UoWDep, UoWFactoryDep
from dm_service.api.v1.schemas.conversation import (
    ConversationResponse,
    ConversationViewResponse,
    CreateConversationRequest,
    UnreadCountResponse,
)
from dm_service.config import settings
from dm_service.services import conversation_service, inbox_service, read_state_service

router = APIRouter(prefix="/api/v1/dm/conversations", tags=["conversations"])


@router.post("", response_model=ConversationResponse)
async def find_or_create_conversation(
    body: CreateConversationRequest,
    principal: CurrentPrincipal,
    uow: UoWDep,
) -> ConversationResponse:
    conv = await conversation_service.find_or_create_for_principal(
        principal, body.other_participant_id, body.context_ref, uow,
    )
    return ConversationResponse.model_validate(conv, from_attributes=True)


@router.get("", response_model=list[ConversationViewResponse])
async def list_conversations(
    principal: CurrentPrincipal,
    uow: UoWDep,
    uow_factory: UoWFactoryDep,
    search: str | None = Query(None, max_length=200),
) -> list[ConversationViewResponse]:
    views = await inbox_service.list_for_participant(
        principal.participant_id,
        uow,
        uow_factory,
        search=search,
        concurrency=settings.INBOX_ENRICH_CONCURRENCY,
        timeout=settings.INBOX_ENRICH_TIMEOUT_SECONDS,
    )
    return [ConversationViewResponse.from_view(v) for v in views]


@router.get("/{conversation_id}", response_model=ConversationResponse)
async def get_conversation(
    conversation_id: UUID,
    principal: CurrentPrincipal,
    uow: UoWDep,
) -> ConversationResponse:
    conv = await conversation_service.get_conversation(conversation_id, principal, uow)
    return ConversationResponse.model_validate(conv, from_attributes=True)


@router.post("/{conversation_id}/read", status_code=status.HTTP_204_NO_CONTENT)
async def mark_read(
    conversation_id: UUID,
    principal: CurrentPrincipal,
    uow: UoWDep,
) -> Response:
    await read_state_service.mark_read(conversation_id, principal.participant_id, uow)
    return Response(status_code=status.HTTP_204_NO_CONTENT)


@router.get("/{conversation_id}/unread", response_model=UnreadCountResponse)
async def get_unread_count(
    conversation_id: UUID,
    principal: CurrentPrincipal,
    uow: UoWDep,
) -> UnreadCountResponse:
    count = await read_state_service.unread_count(
        conversation_id, principal.participant_id, uow,
    )
    return UnreadCountResponse(conversation_id=conversation_id, unread_count=count)
