from __future__ import annotations

from dm_service.domain.entities.profile import ContextSummary, ParticipantProfile
from dm_service.domain.value_objects.enums import ParticipantRole
from dm_service.infrastructure.db.models.directory import ContextTitleModel, ParticipantProfileModel


def profile_to_entity(model: ParticipantProfileModel) -> ParticipantProfile:
    role = model.role if model.role in ParticipantRole.__members__.values() else None
    return ParticipantProfile(
        participant_id=model.participant_id,
        email=model.email,
        full_name=model.full_name,
        organization_name=model.organization_name,
        avatar_url=model.avatar_url,
        is_verified=model.is_verified,
        role=ParticipantRole(role) if role else None,
    )


def profile_to_values(entity: ParticipantProfile) -> dict:
    return {
        "participant_id": entity.participant_id,
        "email": entity.email,
        "full_name": entity.full_name,
        "organization_name": entity.organization_name,
        "avatar_url": entity.avatar_url,
        "is_verified": entity.is_verified,
        "role": entity.role.value if entity.role else None,
    }


def context_to_entity(model: ContextTitleModel) -> ContextSummary:
    return ContextSummary(context_ref=model.context_ref, title=model.title)
