from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime
from uuid import UUID


@dataclass(frozen=True, slots=True)
class Conversation:
    id: UUID
    participant_low: str
    participant_high: str
    context_ref: str | None
    last_activity_at: datetime
    created_at: datetime

    @property
    def participants(self) -> tuple[str, str]:
        return self.participant_low, self.participant_high

    def has_participant(self, participant_id: str) -> bool:
        return participant_id in (self.participant_low, self.participant_high)

    def other_participant(self, participant_id: str) -> str:
        if participant_id == self.participant_low:
            return self.participant_high
        if participant_id == self.participant_high:
            return self.participant_low
        raise ValueError(f"{participant_id!r} is not a participant of {self.id}")
