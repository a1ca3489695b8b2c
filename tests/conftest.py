"""Shared test fixtures."""
from __future__ import annotations

import asyncio
import dataclasses
import itertools
import uuid
from dataclasses import dataclass, field
from datetime import datetime, timedelta, timezone
from typing import Any
from uuid import UUID

import pytest

from dm_service.application.dto.principal import Principal
from dm_service.application.exceptions import NotificationDeliveryError, PersistenceError
from dm_service.application.repositories.outbox import OutboxRecord
from dm_service.domain.entities.conversation import Conversation
from dm_service.domain.entities.message import Message
from dm_service.domain.entities.profile import ContextSummary, ParticipantProfile
from dm_service.domain.entities.read_state import ReadState
from dm_service.domain.value_objects.enums import ParticipantRole
from dm_service.domain.value_objects.ids import canonical_pair
from dm_service.infrastructure.db.repositories._cursor import decode_cursor

T0 = datetime(2024, 5, 1, 12, 0, tzinfo=timezone.utc)


@pytest.fixture
def alice() -> Principal:
    return Principal(participant_id="alice", role=ParticipantRole.REQUESTER)


@pytest.fixture
def bob() -> Principal:
    return Principal(participant_id="bob", role=ParticipantRole.PROVIDER)


@pytest.fixture
def carol() -> Principal:
    return Principal(participant_id="carol", role=ParticipantRole.PROVIDER)


class FakeClock:
    def __init__(self, start: datetime = T0) -> None:
        self._now = start

    def now(self) -> datetime:
        return self._now

    def advance(self, seconds: float = 1.0) -> None:
        self._now += timedelta(seconds=seconds)

    def set(self, when: datetime) -> None:
        self._now = when


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()


def make_conversation(
    a: str = "alice",
    b: str = "bob",
    *,
    conversation_id: UUID | None = None,
    context_ref: str | None = None,
    last_activity_at: datetime = T0,
) -> Conversation:
    low, high = canonical_pair(a, b)
    return Conversation(
        id=conversation_id or uuid.uuid4(),
        participant_low=low,
        participant_high=high,
        context_ref=context_ref,
        last_activity_at=last_activity_at,
        created_at=last_activity_at,
    )


def make_message(
    conversation_id: UUID,
    *,
    sender_id: str = "alice",
    content: str = "hello",
    created_at: datetime = T0,
    read_at: datetime | None = None,
) -> Message:
    return Message(
        id=uuid.uuid4(),
        conversation_id=conversation_id,
        sender_id=sender_id,
        content=content,
        client_msg_id=uuid.uuid4(),
        created_at=created_at,
        read_at=read_at,
    )


@dataclass
class FakeStore:
    """Rows shared by every FakeUoW built from the same store."""

    conversations: dict[UUID, Conversation] = field(default_factory=dict)
    messages: list[Message] = field(default_factory=list)
    read_states: dict[tuple[UUID, str], ReadState] = field(default_factory=dict)
    profiles: dict[str, ParticipantProfile] = field(default_factory=dict)
    contexts: dict[str, ContextSummary] = field(default_factory=dict)
    outbox: list[dict[str, Any]] = field(default_factory=list)
    _seq: itertools.count = field(default_factory=lambda: itertools.count(1))

    def next_seq(self) -> int:
        return next(self._seq)

    def add_conversation(self, conversation: Conversation) -> Conversation:
        self.conversations[conversation.id] = conversation
        for participant in conversation.participants:
            self.read_states.setdefault(
                (conversation.id, participant),
                ReadState(conversation.id, participant, 0, None),
            )
        return conversation


@dataclass
class FakeConversationRepo:
    _store: FakeStore

    async def get_by_id(self, conversation_id: UUID) -> Conversation | None:
        return self._store.conversations.get(conversation_id)

    def _find_pair(self, participant_low: str, participant_high: str) -> Conversation | None:
        for c in self._store.conversations.values():
            if c.participant_low == participant_low and c.participant_high == participant_high:
                return c
        return None

    async def get_by_pair(self, participant_low: str, participant_high: str) -> Conversation | None:
        return self._find_pair(participant_low, participant_high)

    async def list_for_participant(self, participant_id: str) -> list[Conversation]:
        convs = [c for c in self._store.conversations.values() if c.has_participant(participant_id)]
        return sorted(convs, key=lambda c: c.last_activity_at, reverse=True)

    async def create_if_not_exists(self, conversation: Conversation) -> tuple[Conversation, bool]:
        existing = self._find_pair(conversation.participant_low, conversation.participant_high)
        if existing is not None:
            return existing, False
        self._store.conversations[conversation.id] = conversation
        return conversation, True

    async def touch_last_activity_at(self, conversation_id: UUID, ts: datetime) -> None:
        conv = self._store.conversations[conversation_id]
        if ts > conv.last_activity_at:
            self._store.conversations[conversation_id] = dataclasses.replace(conv, last_activity_at=ts)


@dataclass
class FakeMessageRepo:
    _store: FakeStore

    def _ordered(self, conversation_id: UUID) -> list[Message]:
        msgs = [m for m in self._store.messages if m.conversation_id == conversation_id]
        return sorted(msgs, key=lambda m: (m.created_at, m.seq or 0))

    async def list_messages(
        self,
        conversation_id: UUID,
        *,
        cursor: str | None = None,
        limit: int | None = None,
    ) -> list[Message]:
        msgs = self._ordered(conversation_id)
        if cursor:
            ts, seq = decode_cursor(cursor)
            msgs = [m for m in msgs if (m.created_at, m.seq or 0) > (ts, seq)]
        return msgs[:limit] if limit is not None else msgs

    async def get_latest(self, conversation_id: UUID) -> Message | None:
        msgs = self._ordered(conversation_id)
        return msgs[-1] if msgs else None

    async def count_unread(self, conversation_id: UUID, participant_id: str) -> int:
        return sum(
            1
            for m in self._store.messages
            if m.conversation_id == conversation_id
            and m.sender_id != participant_id
            and m.read_at is None
        )

    async def create_if_not_exists(self, message: Message) -> tuple[Message, bool]:
        existing = await self.get_by_client_msg_id(
            message.conversation_id, message.sender_id, message.client_msg_id,
        )
        if existing is not None:
            return existing, False
        stored = dataclasses.replace(message, seq=self._store.next_seq())
        self._store.messages.append(stored)
        return stored, True

    async def get_by_client_msg_id(
        self,
        conversation_id: UUID,
        sender_id: str,
        client_msg_id: UUID,
    ) -> Message | None:
        for m in self._store.messages:
            if (
                m.conversation_id == conversation_id
                and m.sender_id == sender_id
                and m.client_msg_id == client_msg_id
            ):
                return m
        return None

    async def mark_read(self, conversation_id: UUID, reader_id: str, as_of: datetime) -> int:
        marked = 0
        for i, m in enumerate(self._store.messages):
            if m.conversation_id == conversation_id and m.sender_id != reader_id and m.read_at is None:
                self._store.messages[i] = dataclasses.replace(m, read_at=as_of)
                marked += 1
        return marked


@dataclass
class FakeReadStateRepo:
    _store: FakeStore

    async def get(self, conversation_id: UUID, participant_id: str) -> ReadState | None:
        return self._store.read_states.get((conversation_id, participant_id))

    async def ensure(self, conversation_id: UUID, participant_id: str) -> None:
        self._store.read_states.setdefault(
            (conversation_id, participant_id),
            ReadState(conversation_id, participant_id, 0, None),
        )

    async def increment_unread(self, conversation_id: UUID, participant_id: str) -> None:
        await self.ensure(conversation_id, participant_id)
        state = self._store.read_states[(conversation_id, participant_id)]
        self._store.read_states[(conversation_id, participant_id)] = dataclasses.replace(
            state, unread_count=state.unread_count + 1,
        )

    async def apply_read(
        self,
        conversation_id: UUID,
        participant_id: str,
        marked: int,
        as_of: datetime,
    ) -> None:
        await self.ensure(conversation_id, participant_id)
        state = self._store.read_states[(conversation_id, participant_id)]
        self._store.read_states[(conversation_id, participant_id)] = dataclasses.replace(
            state, unread_count=max(state.unread_count - marked, 0), last_read_at=as_of,
        )


@dataclass
class FakeDirectoryRepo:
    _store: FakeStore
    failing: set[str] = field(default_factory=set)
    delay: float = 0.0

    async def get_profile(self, participant_id: str) -> ParticipantProfile | None:
        if self.delay:
            await asyncio.sleep(self.delay)
        if participant_id in self.failing:
            raise PersistenceError("directory unavailable")
        return self._store.profiles.get(participant_id)

    async def get_context(self, context_ref: str) -> ContextSummary | None:
        if context_ref in self.failing:
            raise PersistenceError("directory unavailable")
        return self._store.contexts.get(context_ref)

    async def upsert_profile(self, profile: ParticipantProfile) -> None:
        self._store.profiles[profile.participant_id] = profile

    async def upsert_context(self, context: ContextSummary) -> None:
        self._store.contexts[context.context_ref] = context


@dataclass
class FakeOutbox:
    _store: FakeStore
    sent: list[int] = field(default_factory=list)
    failed: list[tuple[int, datetime]] = field(default_factory=list)
    dead: list[int] = field(default_factory=list)

    @property
    def _records(self) -> list[dict[str, Any]]:
        return self._store.outbox

    async def add(
        self,
        event_type: str,
        payload: dict[str, Any],
        *,
        dedup_key: str | None = None,
    ) -> None:
        if dedup_key is not None and any(r["dedup_key"] == dedup_key for r in self._store.outbox):
            return
        self._store.outbox.append(
            {
                "id": len(self._store.outbox) + 1,
                "event_type": event_type,
                "payload": payload,
                "dedup_key": dedup_key,
                "attempts": 0,
                "status": "pending",
                "next_retry_at": None,
            }
        )

    async def fetch_pending(
        self,
        batch_size: int,
        now: datetime,
        *,
        claim_until: datetime,
    ) -> list[OutboxRecord]:
        due = [
            r for r in self._store.outbox
            if (r["status"] in ("pending", "failed") and (r["next_retry_at"] is None or r["next_retry_at"] <= now))
            or (r["status"] == "processing" and r["next_retry_at"] <= now)
        ][:batch_size]
        for r in due:
            if r["status"] == "processing":
                r["attempts"] += 1
            r["status"] = "processing"
            r["next_retry_at"] = claim_until
        return [
            OutboxRecord(id=r["id"], event_type=r["event_type"], payload=r["payload"], attempts=r["attempts"])
            for r in due
        ]

    def _record(self, record_id: int) -> dict[str, Any]:
        return next(r for r in self._store.outbox if r["id"] == record_id)

    async def mark_sent(self, ids: list[int]) -> None:
        for record_id in ids:
            self._record(record_id)["status"] = "sent"
        self.sent.extend(ids)

    async def mark_failed(self, record_id: int, next_retry_at: datetime) -> None:
        record = self._record(record_id)
        record.update(status="failed", attempts=record["attempts"] + 1, next_retry_at=next_retry_at)
        self.failed.append((record_id, next_retry_at))

    async def mark_dead(self, record_id: int) -> None:
        self._record(record_id)["status"] = "dead"
        self.dead.append(record_id)


class FakeUoW:
    """In-memory UoW for unit tests."""

    def __init__(self, store: FakeStore | None = None) -> None:
        self.store = store or FakeStore()
        self.conversations = self.conversations_w = FakeConversationRepo(self.store)
        self.messages = self.messages_w = FakeMessageRepo(self.store)
        self.read_state = self.read_state_w = FakeReadStateRepo(self.store)
        self.directory = self.directory_w = FakeDirectoryRepo(self.store)
        self.outbox = FakeOutbox(self.store)
        self._committed = False
        self.commits = 0
        self.rollbacks = 0

    async def flush(self) -> None:
        pass

    async def commit(self) -> None:
        self._committed = True
        self.commits += 1

    async def rollback(self) -> None:
        self.rollbacks += 1

    async def __aenter__(self) -> FakeUoW:
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb) -> None:
        if exc_type is not None:
            await self.rollback()


class FakeUoWFactory:
    """Hands out FakeUoWs over one shared store and remembers them."""

    def __init__(self, store: FakeStore) -> None:
        self.store = store
        self.created: list[FakeUoW] = []
        self.directory_failing: set[str] = set()
        self.directory_delay = 0.0

    def __call__(self) -> FakeUoW:
        uow = FakeUoW(self.store)
        uow.directory.failing = self.directory_failing
        uow.directory.delay = self.directory_delay
        self.created.append(uow)
        return uow


@pytest.fixture
def uow() -> FakeUoW:
    return FakeUoW()


@pytest.fixture
def uow_factory(uow: FakeUoW) -> FakeUoWFactory:
    return FakeUoWFactory(uow.store)


class FakePresence:
    def __init__(self, online: set[str] | None = None, *, broken: bool = False) -> None:
        self.online = online or set()
        self.broken = broken
        self.touched: list[str] = []

    async def touch(self, participant_id: str) -> None:
        self.touched.append(participant_id)
        self.online.add(participant_id)

    async def is_online(self, participant_id: str) -> bool:
        if self.broken:
            raise ConnectionError("redis down")
        return participant_id in self.online


class FakeTransport:
    """Records sends; the first ``failures`` calls raise, each call may stall ``delay`` seconds."""

    def __init__(self, *, failures: int = 0, delay: float = 0.0) -> None:
        self.failures = failures
        self.delay = delay
        self.calls = 0
        self.sent: list[tuple[str, str, str]] = []

    async def send(self, recipient_contact: str, subject: str, body: str) -> None:
        self.calls += 1
        if self.delay:
            await asyncio.sleep(self.delay)
        if self.calls <= self.failures:
            raise NotificationDeliveryError("mailbox unavailable")
        self.sent.append((recipient_contact, subject, body))
