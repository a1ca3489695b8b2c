from __future__ import annotations

from typing import Any

from dm_service.application.dto.principal import Principal
from dm_service.domain.value_objects.enums import ParticipantRole


def principal_from_claims(payload: dict[str, Any]) -> Principal:
    subject = payload.get("sub")
    if not subject:
        raise ValueError("Token has no subject")
    role_raw = payload.get("role", payload.get("user_type"))
    role = ParticipantRole(role_raw) if role_raw in ParticipantRole.__members__.values() else None
    return Principal(participant_id=str(subject), role=role)
