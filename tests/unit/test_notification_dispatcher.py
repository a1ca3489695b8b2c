from __future__ import annotations

import asyncio
import logging
import time

import pytest

from dm_service.domain.entities.profile import ContextSummary, ParticipantProfile
from dm_service.domain.events.message_created import MessageCreated
from dm_service.domain.value_objects.enums import ParticipantRole
from dm_service.services.notification_dispatcher import (
    NotificationDispatcher,
    compose_new_message_email,
    handle_message_created,
)
from tests.conftest import FakePresence, FakeTransport, make_conversation, make_message


def _dispatcher(transport, **overrides) -> NotificationDispatcher:
    options = dict(
        timeout=1.0,
        max_attempts=3,
        retry_delay=0,
        app_name="Marketplace",
        app_base_url="https://app.example.com/",
    )
    options.update(overrides)
    return NotificationDispatcher(transport, **options)


def test_compose_email_with_context():
    subject, body = compose_new_message_email(
        "Are you available?",
        sender_name="Smith Dental",
        context_title="Locum dentist, June",
        app_name="Marketplace",
        app_base_url="https://app.example.com/",
    )

    assert subject == "New message from Smith Dental"
    assert '"Are you available?"' in body
    assert "Regarding: Locum dentist, June" in body
    assert "https://app.example.com/messages" in body


def test_compose_email_without_context():
    _, body = compose_new_message_email(
        "hi", sender_name="Bob", context_title=None, app_name="Marketplace", app_base_url="http://x",
    )

    assert "Regarding" not in body


@pytest.mark.asyncio
async def test_notify_delivers_once():
    transport = FakeTransport()
    msg = make_message(make_conversation().id, content="hello")

    await _dispatcher(transport).notify_new_message(msg, "bob@example.com", sender_name="Alice")

    assert len(transport.sent) == 1
    recipient, subject, _ = transport.sent[0]
    assert recipient == "bob@example.com"
    assert subject == "New message from Alice"


@pytest.mark.asyncio
async def test_notify_retries_then_succeeds():
    transport = FakeTransport(failures=2)
    msg = make_message(make_conversation().id)

    await _dispatcher(transport).notify_new_message(msg, "bob@example.com", sender_name="Alice")

    assert transport.calls == 3
    assert len(transport.sent) == 1


@pytest.mark.asyncio
async def test_notify_gives_up_without_raising(caplog):
    transport = FakeTransport(failures=10)
    msg = make_message(make_conversation().id)

    with caplog.at_level(logging.ERROR):
        await _dispatcher(transport).notify_new_message(msg, "bob@example.com", sender_name="Alice")

    assert transport.calls == 3
    assert transport.sent == []
    assert any("Giving up" in r.message for r in caplog.records)


@pytest.mark.asyncio
async def test_notify_attempt_is_bounded_by_timeout():
    transport = FakeTransport(delay=0.5)
    msg = make_message(make_conversation().id)

    await _dispatcher(transport, timeout=0.01, max_attempts=2).notify_new_message(
        msg, "bob@example.com", sender_name="Alice",
    )

    assert transport.calls == 1
    assert transport.sent == []


class BlockingThreadTransport:
    """Sends from a worker thread that keeps running after the caller stops waiting."""

    def __init__(self, block: float) -> None:
        self.block = block
        self.calls = 0
        self.delivered: list[str] = []

    def _send_blocking(self, recipient_contact: str) -> None:
        time.sleep(self.block)
        self.delivered.append(recipient_contact)

    async def send(self, recipient_contact: str, subject: str, body: str) -> None:
        self.calls += 1
        await asyncio.to_thread(self._send_blocking, recipient_contact)


@pytest.mark.asyncio
async def test_timed_out_send_is_not_repeated(caplog):
    transport = BlockingThreadTransport(block=0.2)
    msg = make_message(make_conversation().id)

    with caplog.at_level(logging.WARNING):
        await _dispatcher(transport, timeout=0.05, max_attempts=3).notify_new_message(
            msg, "bob@example.com", sender_name="Alice",
        )
    await asyncio.sleep(0.4)

    assert transport.calls == 1
    assert transport.delivered == ["bob@example.com"]
    assert any("outcome unknown" in r.message for r in caplog.records)
    assert not any("Giving up" in r.message for r in caplog.records)


@pytest.mark.asyncio
async def test_dispatch_runs_in_background():
    transport = FakeTransport(delay=0.01)
    dispatcher = _dispatcher(transport)
    msg = make_message(make_conversation().id)

    task = dispatcher.dispatch(msg, "bob@example.com", sender_name="Alice")
    assert transport.sent == []

    await asyncio.wait_for(task, timeout=1)
    assert len(transport.sent) == 1


@pytest.mark.asyncio
async def test_aclose_waits_for_pending_deliveries():
    transport = FakeTransport(delay=0.01)
    dispatcher = _dispatcher(transport)
    msg = make_message(make_conversation().id)

    dispatcher.dispatch(msg, "bob@example.com", sender_name="Alice")
    await dispatcher.aclose(timeout=1)

    assert len(transport.sent) == 1


@pytest.fixture
def event(uow):
    conv = uow.store.add_conversation(make_conversation(context_ref="job-42"))
    uow.store.profiles["alice"] = ParticipantProfile(
        participant_id="alice",
        full_name="Alice Jones",
        organization_name="Jones Clinic",
        role=ParticipantRole.REQUESTER,
    )
    uow.store.profiles["bob"] = ParticipantProfile(participant_id="bob", email="bob@example.com")
    uow.store.contexts["job-42"] = ContextSummary(context_ref="job-42", title="Locum dentist, June")
    msg = make_message(conv.id, sender_id="alice", content="Are you available?")
    return MessageCreated.from_message(msg, "bob")


@pytest.mark.asyncio
async def test_offline_recipient_is_emailed(uow, event):
    transport = FakeTransport()

    await handle_message_created(event.to_payload(), uow, FakePresence(), _dispatcher(transport))

    assert len(transport.sent) == 1
    recipient, subject, body = transport.sent[0]
    assert recipient == "bob@example.com"
    assert subject == "New message from Jones Clinic"
    assert "Regarding: Locum dentist, June" in body


@pytest.mark.asyncio
async def test_online_recipient_is_not_emailed(uow, event):
    transport = FakeTransport()

    await handle_message_created(
        event.to_payload(), uow, FakePresence(online={"bob"}), _dispatcher(transport),
    )

    assert transport.calls == 0


@pytest.mark.asyncio
async def test_unknown_presence_counts_as_offline(uow, event):
    transport = FakeTransport()

    await handle_message_created(
        event.to_payload(), uow, FakePresence(broken=True), _dispatcher(transport),
    )

    assert len(transport.sent) == 1


@pytest.mark.asyncio
async def test_recipient_without_email_is_skipped(uow, event):
    uow.store.profiles["bob"] = ParticipantProfile(participant_id="bob")
    transport = FakeTransport()

    await handle_message_created(event.to_payload(), uow, FakePresence(), _dispatcher(transport))

    assert transport.calls == 0


@pytest.mark.asyncio
async def test_unknown_sender_falls_back_to_id(uow, event):
    del uow.store.profiles["alice"]
    transport = FakeTransport()

    await handle_message_created(event.to_payload(), uow, FakePresence(), _dispatcher(transport))

    assert transport.sent[0][1] == "New message from alice"
