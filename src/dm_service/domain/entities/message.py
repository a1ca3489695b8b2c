from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime
from uuid import UUID


@dataclass(frozen=True, slots=True)
class Message:
    id: UUID
    conversation_id: UUID
    sender_id: str
    content: str
    client_msg_id: UUID
    created_at: datetime
    read_at: datetime | None = None
    # Store-assigned tiebreaker; None until persisted.
    seq: int | None = None

    @property
    def is_read(self) -> bool:
        return self.read_at is not None
