from __future__ import annotations

from dataclasses import dataclass
from typing import Any
from uuid import UUID

from dm_service.domain.entities.message import Message


@dataclass(frozen=True, slots=True)
class MessageCreated:
    message_id: UUID
    conversation_id: UUID
    sender_id: str
    recipient_id: str
    content: str
    created_at: str

    @classmethod
    def from_message(cls, message: Message, recipient_id: str) -> MessageCreated:
        return cls(
            message_id=message.id,
            conversation_id=message.conversation_id,
            sender_id=message.sender_id,
            recipient_id=recipient_id,
            content=message.content,
            created_at=message.created_at.isoformat(),
        )

    def to_payload(self) -> dict[str, Any]:
        return {
            "message_id": str(self.message_id),
            "conversation_id": str(self.conversation_id),
            "sender_id": self.sender_id,
            "recipient_id": self.recipient_id,
            "content": self.content,
            "created_at": self.created_at,
        }

    @classmethod
    def from_payload(cls, payload: dict[str, Any]) -> MessageCreated:
        return cls(
            message_id=UUID(payload["message_id"]),
            conversation_id=UUID(payload["conversation_id"]),
            sender_id=payload["sender_id"],
            recipient_id=payload["recipient_id"],
            content=payload["content"],
            created_at=payload["created_at"],
        )
