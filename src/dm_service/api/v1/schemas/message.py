from __future__ import annotations

from datetime import datetime
from uuid import UUID

from pydantic import BaseModel, Field


class SendMessageRequest(BaseModel):
    client_msg_id: UUID
    # Emptiness after trimming is checked by the service.
    content: str = Field(max_length=10_000)


class MessageResponse(BaseModel):
    id: UUID
    conversation_id: UUID
    sender_id: str
    content: str
    client_msg_id: UUID
    created_at: datetime
    # Store-assigned tiebreak for messages sharing a created_at.
    seq: int
    read_at: datetime | None

    model_config = {"from_attributes": True}
