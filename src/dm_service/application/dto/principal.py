from __future__ import annotations

from dataclasses import dataclass

from dm_service.domain.value_objects.enums import ParticipantRole


@dataclass(frozen=True, slots=True)
class Principal:
    """Authenticated caller identity extracted from JWT."""

    participant_id: str
    role: ParticipantRole | None = None
