from __future__ import annotations

from datetime import datetime
from uuid import UUID

from sqlalchemy import func, select, update
from sqlalchemy.dialects.postgresql import insert as pg_insert
from sqlalchemy.ext.asyncio import AsyncSession

from dm_service.domain.entities.read_state import ReadState
from dm_service.infrastructure.db.errors import db_errors
from dm_service.infrastructure.db.models.read_state import ReadStateModel


class ReadStateReaderRepo:
    def __init__(self, session: AsyncSession) -> None:
        self._session = session

    @db_errors
    async def get(self, conversation_id: UUID, participant_id: str) -> ReadState | None:
        stmt = select(ReadStateModel).where(
            ReadStateModel.conversation_id == conversation_id,
            ReadStateModel.participant_id == participant_id,
        )
        result = await self._session.execute(stmt)
        model = result.scalar_one_or_none()
        if model is None:
            return None
        return ReadState(
            conversation_id=model.conversation_id,
            participant_id=model.participant_id,
            unread_count=model.unread_count,
            last_read_at=model.last_read_at,
        )


class ReadStateWriterRepo:
    def __init__(self, session: AsyncSession) -> None:
        self._session = session

    @db_errors
    async def ensure(self, conversation_id: UUID, participant_id: str) -> None:
        stmt = (
            pg_insert(ReadStateModel)
            .values(conversation_id=conversation_id, participant_id=participant_id)
            .on_conflict_do_nothing(constraint="uq_read_state_member")
        )
        await self._session.execute(stmt)

    @db_errors
    async def increment_unread(self, conversation_id: UUID, participant_id: str) -> None:
        stmt = (
            pg_insert(ReadStateModel)
            .values(
                conversation_id=conversation_id,
                participant_id=participant_id,
                unread_count=1,
            )
            .on_conflict_do_update(
                constraint="uq_read_state_member",
                set_={"unread_count": ReadStateModel.unread_count + 1},
            )
        )
        await self._session.execute(stmt)

    @db_errors
    async def apply_read(
        self,
        conversation_id: UUID,
        participant_id: str,
        marked: int,
        as_of: datetime,
    ) -> None:
        stmt = (
            update(ReadStateModel)
            .where(
                ReadStateModel.conversation_id == conversation_id,
                ReadStateModel.participant_id == participant_id,
            )
            .values(
                unread_count=func.greatest(ReadStateModel.unread_count - marked, 0),
                last_read_at=as_of,
            )
        )
        await self._session.execute(stmt)
