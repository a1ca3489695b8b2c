from __future__ import annotations

from dm_service.application.exceptions import NotAParticipantError, NotFoundError
from dm_service.domain.entities.conversation import Conversation


def assert_conversation_access(
    participant_id: str,
    conversation: Conversation | None,
) -> Conversation:
    """Raise if conversation doesn't exist or the caller is not one of its two participants."""
    if conversation is None:
        raise NotFoundError("Conversation not found")

    if not conversation.has_participant(participant_id):
        raise NotAParticipantError("Not a participant of this conversation")

    return conversation
