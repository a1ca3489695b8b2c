from __future__ import annotations

from dataclasses import dataclass

from dm_service.domain.value_objects.enums import ParticipantRole


@dataclass(frozen=True, slots=True)
class ParticipantProfile:
    """Profile summary mirrored from the identity system."""

    participant_id: str
    email: str | None = None
    full_name: str | None = None
    organization_name: str | None = None
    avatar_url: str | None = None
    is_verified: bool = False
    role: ParticipantRole | None = None

    @property
    def display_name(self) -> str:
        if self.role == ParticipantRole.REQUESTER and self.organization_name:
            return self.organization_name
        if self.full_name:
            return self.full_name
        if self.email:
            return self.email.split("@", 1)[0]
        return self.participant_id

    def matches(self, needle: str) -> bool:
        """Case-insensitive substring match on name, e-mail and organisation."""
        needle = needle.lower()
        return any(
            value and needle in value.lower()
            for value in (self.full_name, self.email, self.organization_name)
        )


@dataclass(frozen=True, slots=True)
class ContextSummary:
    context_ref: str
    title: str
