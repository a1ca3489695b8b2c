"""Optimistic send staging for client-rendered threads.

A staged entry is shown immediately and keyed by a temporary id that is also
sent as the message's ``client_msg_id``. It is replaced by the server's
message on success, or removed and recorded as a failure otherwise. Retrying
a failure re-uses the same id, so the server never stores a duplicate.
"""
from __future__ import annotations

import uuid
from dataclasses import dataclass, field
from datetime import datetime, timezone
from uuid import UUID

from dm_service.api.v1.schemas.message import MessageResponse


@dataclass(frozen=True, slots=True)
class StagedMessage:
    temp_id: UUID
    conversation_id: UUID
    content: str
    staged_at: datetime

    @property
    def client_msg_id(self) -> UUID:
        return self.temp_id


@dataclass(frozen=True, slots=True)
class SendFailure:
    temp_id: UUID
    conversation_id: UUID
    content: str
    error: str


@dataclass
class SendStaging:
    conversation_id: UUID
    _confirmed: list[MessageResponse] = field(default_factory=list)
    _staged: dict[UUID, StagedMessage] = field(default_factory=dict)
    failures: list[SendFailure] = field(default_factory=list)

    def stage(self, content: str, *, temp_id: UUID | None = None) -> StagedMessage:
        staged = StagedMessage(
            temp_id=temp_id or uuid.uuid4(),
            conversation_id=self.conversation_id,
            content=content,
            staged_at=datetime.now(timezone.utc),
        )
        self._staged[staged.temp_id] = staged
        return staged

    def confirm(self, temp_id: UUID, message: MessageResponse) -> MessageResponse:
        """Swap the staged entry for the server-confirmed message."""
        self._staged.pop(temp_id, None)
        self._merge(message)
        return message

    def fail(self, temp_id: UUID, error: str) -> SendFailure:
        staged = self._staged.pop(temp_id, None)
        if staged is None:
            raise KeyError(f"No staged message {temp_id}")
        failure = SendFailure(
            temp_id=staged.temp_id,
            conversation_id=staged.conversation_id,
            content=staged.content,
            error=error,
        )
        self.failures.append(failure)
        return failure

    def restage(self, failure: SendFailure) -> StagedMessage:
        """Put a failed send back on screen under its original id for a retry."""
        self.failures = [f for f in self.failures if f.temp_id != failure.temp_id]
        return self.stage(failure.content, temp_id=failure.temp_id)

    def replace_history(self, messages: list[MessageResponse]) -> None:
        """Adopt a fresh server listing; staged sends it already contains are settled."""
        self._confirmed = list(messages)
        delivered = {m.client_msg_id for m in messages}
        for temp_id in list(self._staged):
            if temp_id in delivered:
                del self._staged[temp_id]

    @property
    def pending(self) -> list[StagedMessage]:
        return list(self._staged.values())

    def visible(self) -> list[MessageResponse | StagedMessage]:
        """Confirmed messages in ``(created_at, seq)`` order, followed by sends still in flight."""
        return [*self._confirmed, *self._staged.values()]

    def _merge(self, message: MessageResponse) -> None:
        for i, existing in enumerate(self._confirmed):
            if existing.id == message.id:
                self._confirmed[i] = message
                return
        self._confirmed.append(message)
        self._confirmed.sort(key=lambda m: (m.created_at, m.seq))
