from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime
from uuid import UUID

from dm_service.domain.entities.conversation import Conversation
from dm_service.domain.entities.profile import ParticipantProfile


@dataclass(frozen=True, slots=True)
class LastMessagePreview:
    content: str
    sender_id: str
    created_at: datetime


@dataclass(frozen=True, slots=True)
class ConversationView:
    """Inbox row: a conversation plus read-side enrichment for one participant.

    Enrichment fields are ``None`` (or ``0`` for the unread count) when the
    corresponding lookup found nothing or failed.
    """

    conversation: Conversation
    other_participant_id: str
    other_participant: ParticipantProfile | None = None
    context_title: str | None = None
    last_message: LastMessagePreview | None = None
    unread_count: int = 0

    @property
    def id(self) -> UUID:
        return self.conversation.id

    def matches(self, needle: str) -> bool:
        if self.other_participant is not None and self.other_participant.matches(needle):
            return True
        return bool(self.context_title and needle.lower() in self.context_title.lower())
