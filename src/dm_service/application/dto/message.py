from __future__ import annotations

from dataclasses import dataclass
from uuid import UUID


@dataclass(frozen=True, slots=True)
class SendMessageDTO:
    conversation_id: UUID
    client_msg_id: UUID
    content: str
