from __future__ import annotations

from datetime import datetime
from uuid import UUID

from pydantic import BaseModel, Field

from dm_service.application.dto.conversation import ConversationView
from dm_service.domain.entities.profile import ParticipantProfile


class CreateConversationRequest(BaseModel):
    other_participant_id: str = Field(min_length=1, max_length=128)
    context_ref: str | None = Field(default=None, max_length=128)


class ConversationResponse(BaseModel):
    id: UUID
    participant_low: str
    participant_high: str
    context_ref: str | None
    last_activity_at: datetime
    created_at: datetime

    model_config = {"from_attributes": True}


class ProfileSummaryResponse(BaseModel):
    participant_id: str
    display_name: str
    email: str | None
    avatar_url: str | None
    is_verified: bool
    role: str | None

    @classmethod
    def from_profile(cls, profile: ParticipantProfile) -> ProfileSummaryResponse:
        return cls(
            participant_id=profile.participant_id,
            display_name=profile.display_name,
            email=profile.email,
            avatar_url=profile.avatar_url,
            is_verified=profile.is_verified,
            role=profile.role.value if profile.role else None,
        )


class LastMessageResponse(BaseModel):
    content: str
    sender_id: str
    created_at: datetime

    model_config = {"from_attributes": True}


class ConversationViewResponse(BaseModel):
    id: UUID
    other_participant_id: str
    context_ref: str | None
    last_activity_at: datetime
    other_participant: ProfileSummaryResponse | None = None
    context_title: str | None = None
    last_message: LastMessageResponse | None = None
    unread_count: int = 0

    @classmethod
    def from_view(cls, view: ConversationView) -> ConversationViewResponse:
        return cls(
            id=view.id,
            other_participant_id=view.other_participant_id,
            context_ref=view.conversation.context_ref,
            last_activity_at=view.conversation.last_activity_at,
            other_participant=(
                ProfileSummaryResponse.from_profile(view.other_participant)
                if view.other_participant is not None
                else None
            ),
            context_title=view.context_title,
            last_message=(
                LastMessageResponse.model_validate(view.last_message, from_attributes=True)
                if view.last_message is not None
                else None
            ),
            unread_count=view.unread_count,
        )


class UnreadCountResponse(BaseModel):
    conversation_id: UUID
    unread_count: int
