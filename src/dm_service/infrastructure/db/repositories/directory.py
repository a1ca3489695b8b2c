from __future__ import annotations

from sqlalchemy.dialects.postgresql import insert as pg_insert
from sqlalchemy.ext.asyncio import AsyncSession

from dm_service.domain.entities.profile import ContextSummary, ParticipantProfile
from dm_service.infrastructure.db.errors import db_errors
from dm_service.infrastructure.db.mappers import directory as mapper
from dm_service.infrastructure.db.models.directory import ContextTitleModel, ParticipantProfileModel


class DirectoryReaderRepo:
    def __init__(self, session: AsyncSession) -> None:
        self._session = session

    @db_errors
    async def get_profile(self, participant_id: str) -> ParticipantProfile | None:
        model = await self._session.get(ParticipantProfileModel, participant_id)
        return mapper.profile_to_entity(model) if model else None

    @db_errors
    async def get_context(self, context_ref: str) -> ContextSummary | None:
        model = await self._session.get(ContextTitleModel, context_ref)
        return mapper.context_to_entity(model) if model else None


class DirectoryWriterRepo:
    def __init__(self, session: AsyncSession) -> None:
        self._session = session

    @db_errors
    async def upsert_profile(self, profile: ParticipantProfile) -> None:
        values = mapper.profile_to_values(profile)
        stmt = (
            pg_insert(ParticipantProfileModel)
            .values(**values)
            .on_conflict_do_update(
                index_elements=[ParticipantProfileModel.participant_id],
                set_={k: v for k, v in values.items() if k != "participant_id"},
            )
        )
        await self._session.execute(stmt)

    @db_errors
    async def upsert_context(self, context: ContextSummary) -> None:
        stmt = (
            pg_insert(ContextTitleModel)
            .values(context_ref=context.context_ref, title=context.title)
            .on_conflict_do_update(
                index_elements=[ContextTitleModel.context_ref],
                set_={"title": context.title},
            )
        )
        await self._session.execute(stmt)
