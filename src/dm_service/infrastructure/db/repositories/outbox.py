from __future__ import annotations

from datetime import datetime
from typing import Any

from sqlalchemy import and_, case, or_, select, update
from sqlalchemy.dialects.postgresql import insert as pg_insert
from sqlalchemy.ext.asyncio import AsyncSession

from dm_service.application.repositories.outbox import OutboxRecord
from dm_service.domain.value_objects.enums import OutboxStatus
from dm_service.infrastructure.db.errors import db_errors
from dm_service.infrastructure.db.models.outbox import OutboxMessageModel as Outbox


class OutboxWriterRepo:
    def __init__(self, session: AsyncSession) -> None:
        self._session = session

    @db_errors
    async def add(
        self,
        event_type: str,
        payload: dict[str, Any],
        *,
        dedup_key: str | None = None,
    ) -> None:
        stmt = pg_insert(Outbox).values(
            event_type=str(event_type),
            payload=payload,
            dedup_key=dedup_key,
        )
        if dedup_key is not None:
            stmt = stmt.on_conflict_do_nothing(index_elements=[Outbox.dedup_key])
        await self._session.execute(stmt)

    @db_errors
    async def fetch_pending(
        self,
        batch_size: int,
        now: datetime,
        *,
        claim_until: datetime,
    ) -> list[OutboxRecord]:
        """Claim up to ``batch_size`` due records as PROCESSING until ``claim_until``.

        Rows locked by another worker are skipped. A PROCESSING claim whose
        deadline has passed belongs to a worker that died and is due again.
        """
        due = (
            select(Outbox.id)
            .where(
                or_(
                    and_(
                        Outbox.status.in_([OutboxStatus.PENDING, OutboxStatus.FAILED]),
                        Outbox.next_retry_at.is_(None) | (Outbox.next_retry_at <= now),
                    ),
                    and_(
                        Outbox.status == OutboxStatus.PROCESSING,
                        Outbox.next_retry_at <= now,
                    ),
                )
            )
            .order_by(Outbox.id)
            .limit(batch_size)
            .with_for_update(skip_locked=True)
        )
        stmt = (
            update(Outbox)
            .where(Outbox.id.in_(due))
            .values(
                status=OutboxStatus.PROCESSING,
                next_retry_at=claim_until,
                # An abandoned claim counts as a spent attempt.
                attempts=case(
                    (Outbox.status == OutboxStatus.PROCESSING, Outbox.attempts + 1),
                    else_=Outbox.attempts,
                ),
            )
            .returning(Outbox.id, Outbox.event_type, Outbox.payload, Outbox.attempts)
        )
        result = await self._session.execute(stmt)
        return sorted(
            (OutboxRecord(id=r.id, event_type=r.event_type, payload=r.payload, attempts=r.attempts)
             for r in result),
            key=lambda r: r.id,
        )

    @db_errors
    async def mark_sent(self, ids: list[int]) -> None:
        if ids:
            await self._set_status(ids, OutboxStatus.SENT)

    @db_errors
    async def mark_failed(self, record_id: int, next_retry_at: datetime) -> None:
        await self._set_status(
            [record_id],
            OutboxStatus.FAILED,
            attempts=Outbox.attempts + 1,
            next_retry_at=next_retry_at,
        )

    @db_errors
    async def mark_dead(self, record_id: int) -> None:
        await self._set_status([record_id], OutboxStatus.DEAD)

    async def _set_status(self, ids: list[int], status: OutboxStatus, **values: Any) -> None:
        await self._session.execute(
            update(Outbox).where(Outbox.id.in_(ids)).values(status=status, **values)
        )
