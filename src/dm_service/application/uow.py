from __future__ import annotations

from typing import Protocol, Self

from dm_service.application.repositories.conversation import (
    ConversationReader,
    ConversationWriter,
)
from dm_service.application.repositories.directory import DirectoryReader, DirectoryWriter
from dm_service.application.repositories.message import MessageReader, MessageWriter
from dm_service.application.repositories.outbox import OutboxWriter
from dm_service.application.repositories.read_state import ReadStateReader, ReadStateWriter


class UnitOfWork(Protocol):
    conversations: ConversationReader
    conversations_w: ConversationWriter
    messages: MessageReader
    messages_w: MessageWriter
    read_state: ReadStateReader
    read_state_w: ReadStateWriter
    directory: DirectoryReader
    directory_w: DirectoryWriter
    outbox: OutboxWriter

    async def commit(self) -> None: ...
    async def rollback(self) -> None: ...
    async def flush(self) -> None: ...

    async def __aenter__(self) -> Self: ...
    async def __aexit__(self, exc_type, exc_val, exc_tb) -> None: ...
