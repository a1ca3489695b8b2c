from __future__ import annotations

from datetime import datetime
from typing import Protocol
from uuid import UUID

from dm_service.domain.entities.read_state import ReadState


class ReadStateReader(Protocol):
    async def get(self, conversation_id: UUID, participant_id: str) -> ReadState | None: ...


class ReadStateWriter(Protocol):
    async def ensure(self, conversation_id: UUID, participant_id: str) -> None:
        """Create a zeroed counter row if none exists."""
        ...

    async def increment_unread(self, conversation_id: UUID, participant_id: str) -> None: ...

    async def apply_read(
        self,
        conversation_id: UUID,
        participant_id: str,
        marked: int,
        as_of: datetime,
    ) -> None:
        """Decrement the counter by ``marked`` (clamped at zero) and stamp ``last_read_at``."""
        ...
