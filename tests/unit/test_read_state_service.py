from __future__ import annotations

import uuid

import pytest

from dm_service.application.exceptions import NotAParticipantError, NotFoundError
from dm_service.services import message_service, read_state_service
from tests.conftest import make_conversation, make_message


@pytest.fixture
def conv(uow):
    return uow.store.add_conversation(make_conversation(context_ref="job-42"))


async def _unread(uow, conv, participant):
    return await read_state_service.unread_count(conv.id, participant, uow)


@pytest.mark.asyncio
async def test_marketplace_thread_scenario(uow, conv, clock):
    await message_service.append(conv.id, "alice", "Are you available?", uow, clock=clock)
    clock.advance()
    await message_service.append(conv.id, "bob", "Yes, next week.", uow, clock=clock)

    assert await _unread(uow, conv, "alice") == 1

    await read_state_service.mark_read(conv.id, "alice", uow, clock=clock)

    assert await _unread(uow, conv, "alice") == 0
    assert await _unread(uow, conv, "bob") == 1


@pytest.mark.asyncio
async def test_mark_read_stamps_incoming_messages_only(uow, conv, clock):
    mine, _ = await message_service.append(conv.id, "alice", "mine", uow, clock=clock)
    theirs, _ = await message_service.append(conv.id, "bob", "theirs", uow, clock=clock)
    clock.advance(60)

    marked = await read_state_service.mark_read(conv.id, "alice", uow, clock=clock)

    by_id = {m.id: m for m in uow.store.messages}
    assert marked == 1
    assert by_id[theirs.id].read_at == clock.now()
    assert not by_id[mine.id].is_read


@pytest.mark.asyncio
async def test_mark_read_is_idempotent(uow, conv, clock):
    await message_service.append(conv.id, "bob", "hi", uow, clock=clock)

    first = await read_state_service.mark_read(conv.id, "alice", uow, clock=clock)
    stamped = [m.read_at for m in uow.store.messages]
    uow._committed = False
    clock.advance(10)
    second = await read_state_service.mark_read(conv.id, "alice", uow, clock=clock)

    assert (first, second) == (1, 0)
    assert [m.read_at for m in uow.store.messages] == stamped
    assert uow._committed is False
    assert await _unread(uow, conv, "alice") == 0


@pytest.mark.asyncio
async def test_mark_read_uses_explicit_as_of(uow, conv, clock):
    await message_service.append(conv.id, "bob", "hi", uow, clock=clock)
    as_of = clock.now()
    clock.advance(3600)

    await read_state_service.mark_read(conv.id, "alice", uow, as_of=as_of, clock=clock)

    assert uow.store.messages[0].read_at == as_of
    assert (await uow.read_state.get(conv.id, "alice")).last_read_at == as_of


@pytest.mark.asyncio
async def test_unread_counts_each_new_message_after_read(uow, conv, clock):
    await message_service.append(conv.id, "bob", "one", uow, clock=clock)
    await read_state_service.mark_read(conv.id, "alice", uow, clock=clock)

    for expected in (1, 2, 3):
        await message_service.append(conv.id, "bob", f"msg {expected}", uow, clock=clock)
        assert await _unread(uow, conv, "alice") == expected


@pytest.mark.asyncio
async def test_message_arriving_during_read_stays_counted(uow, conv, clock):
    await message_service.append(conv.id, "bob", "first", uow, clock=clock)

    original_mark = uow.messages_w.mark_read

    async def _mark_then_receive(conversation_id, reader_id, as_of):
        marked = await original_mark(conversation_id, reader_id, as_of)
        # A message lands after the stamp but before the counter update.
        await message_service.append(conversation_id, "bob", "second", uow, clock=clock)
        return marked

    uow.messages_w.mark_read = _mark_then_receive

    await read_state_service.mark_read(conv.id, "alice", uow, clock=clock)

    assert await _unread(uow, conv, "alice") == 1
    assert await uow.messages.count_unread(conv.id, "alice") == 1


@pytest.mark.asyncio
async def test_unread_recounts_without_counter_row(uow, conv):
    uow.store.read_states.clear()
    uow.store.messages.extend(
        [
            make_message(conv.id, sender_id="bob"),
            make_message(conv.id, sender_id="bob"),
            make_message(conv.id, sender_id="alice"),
        ]
    )

    assert await _unread(uow, conv, "alice") == 2
    assert await _unread(uow, conv, "bob") == 1


@pytest.mark.asyncio
async def test_mark_read_unknown_conversation(uow):
    with pytest.raises(NotFoundError):
        await read_state_service.mark_read(uuid.uuid4(), "alice", uow)


@pytest.mark.asyncio
async def test_mark_read_by_outsider(uow, conv):
    with pytest.raises(NotAParticipantError):
        await read_state_service.mark_read(conv.id, "carol", uow)


@pytest.mark.asyncio
async def test_mark_read_with_nothing_unread_is_noop(uow, conv):
    assert await read_state_service.mark_read(conv.id, "alice", uow) == 0
    assert uow._committed is False
