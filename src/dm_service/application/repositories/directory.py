from __future__ import annotations

from typing import Protocol

from dm_service.domain.entities.profile import ContextSummary, ParticipantProfile


class DirectoryReader(Protocol):
    """Identity provider and context catalogue. Missing entries yield ``None``."""

    async def get_profile(self, participant_id: str) -> ParticipantProfile | None: ...

    async def get_context(self, context_ref: str) -> ContextSummary | None: ...


class DirectoryWriter(Protocol):
    async def upsert_profile(self, profile: ParticipantProfile) -> None: ...

    async def upsert_context(self, context: ContextSummary) -> None: ...
