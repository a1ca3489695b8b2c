from __future__ import annotations

from datetime import datetime
from uuid import UUID

from sqlalchemy import func, or_, select, update
from sqlalchemy.dialects.postgresql import insert as pg_insert
from sqlalchemy.ext.asyncio import AsyncSession

from dm_service.domain.entities.conversation import Conversation
from dm_service.infrastructure.db.errors import db_errors
from dm_service.infrastructure.db.mappers import conversation as mapper
from dm_service.infrastructure.db.models.conversation import ConversationModel


class ConversationReaderRepo:
    def __init__(self, session: AsyncSession) -> None:
        self._session = session

    @db_errors
    async def get_by_id(self, conversation_id: UUID) -> Conversation | None:
        result = await self._session.get(ConversationModel, conversation_id, populate_existing=True)
        return mapper.model_to_entity(result) if result else None

    @db_errors
    async def get_by_pair(
        self,
        participant_low: str,
        participant_high: str,
    ) -> Conversation | None:
        stmt = select(ConversationModel).where(
            ConversationModel.participant_low == participant_low,
            ConversationModel.participant_high == participant_high,
        )
        result = await self._session.execute(stmt)
        model = result.scalar_one_or_none()
        return mapper.model_to_entity(model) if model else None

    @db_errors
    async def list_for_participant(self, participant_id: str) -> list[Conversation]:
        stmt = (
            select(ConversationModel)
            .where(
                or_(
                    ConversationModel.participant_low == participant_id,
                    ConversationModel.participant_high == participant_id,
                )
            )
            .order_by(ConversationModel.last_activity_at.desc(), ConversationModel.id)
        )
        result = await self._session.execute(stmt)
        return [mapper.model_to_entity(m) for m in result.scalars().all()]


class ConversationWriterRepo:
    def __init__(self, session: AsyncSession) -> None:
        self._session = session

    @db_errors
    async def create_if_not_exists(self, conversation: Conversation) -> tuple[Conversation, bool]:
        """Insert guarded by ``uq_conversation_pair``. Returns (conversation, created_flag)."""
        stmt = (
            pg_insert(ConversationModel)
            .values(**mapper.entity_to_values(conversation))
            .on_conflict_do_nothing(constraint="uq_conversation_pair")
            .returning(ConversationModel)
        )
        result = await self._session.execute(stmt)
        row = result.scalar_one_or_none()
        if row is not None:
            return mapper.model_to_entity(row), True

        # Conflict: the concurrent winner is committed by now
        existing = await self._session.execute(
            select(ConversationModel).where(
                ConversationModel.participant_low == conversation.participant_low,
                ConversationModel.participant_high == conversation.participant_high,
            )
        )
        return mapper.model_to_entity(existing.scalar_one()), False

    @db_errors
    async def touch_last_activity_at(
        self,
        conversation_id: UUID,
        ts: datetime,
    ) -> None:
        stmt = (
            update(ConversationModel)
            .where(ConversationModel.id == conversation_id)
            .values(last_activity_at=func.greatest(ConversationModel.last_activity_at, ts))
        )
        await self._session.execute(stmt)
