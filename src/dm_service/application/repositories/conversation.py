from __future__ import annotations

from datetime import datetime
from typing import Protocol
from uuid import UUID

from dm_service.domain.entities.conversation import Conversation


class ConversationReader(Protocol):
    async def get_by_id(self, conversation_id: UUID) -> Conversation | None: ...

    async def get_by_pair(
        self, participant_low: str, participant_high: str,
    ) -> Conversation | None:
        """Find the conversation for an already canonicalized pair."""
        ...

    async def list_for_participant(self, participant_id: str) -> list[Conversation]:
        """All conversations of the participant, most recent activity first."""
        ...


class ConversationWriter(Protocol):
    async def create_if_not_exists(
        self, conversation: Conversation,
    ) -> tuple[Conversation, bool]:
        """Insert guarded by the pair constraint. On conflict return the stored row."""
        ...

    async def touch_last_activity_at(
        self, conversation_id: UUID, ts: datetime,
    ) -> None:
        """Move ``last_activity_at`` forward to ``ts``; never backwards."""
        ...
