from __future__ import annotations

from enum import StrEnum


class ParticipantRole(StrEnum):
    REQUESTER = "requester"
    PROVIDER = "provider"


class OutboxStatus(StrEnum):
    PENDING = "pending"
    PROCESSING = "processing"
    SENT = "sent"
    FAILED = "failed"
    DEAD = "dead"


class EventType(StrEnum):
    MESSAGE_CREATED = "dm.message_created"
