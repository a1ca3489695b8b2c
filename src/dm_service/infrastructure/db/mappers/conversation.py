from __future__ import annotations

from dm_service.domain.entities.conversation import Conversation
from dm_service.infrastructure.db.models.conversation import ConversationModel


def model_to_entity(model: ConversationModel) -> Conversation:
    return Conversation(
        id=model.id,
        participant_low=model.participant_low,
        participant_high=model.participant_high,
        context_ref=model.context_ref,
        last_activity_at=model.last_activity_at,
        created_at=model.created_at,
    )


def entity_to_values(entity: Conversation) -> dict:
    return {
        "id": entity.id,
        "participant_low": entity.participant_low,
        "participant_high": entity.participant_high,
        "context_ref": entity.context_ref,
        "last_activity_at": entity.last_activity_at,
        "created_at": entity.created_at,
    }
