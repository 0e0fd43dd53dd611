"""Persistence of verified batches."""

from __future__ import annotations

import asyncio
import uuid

import structlog
from sqlalchemy.ext.asyncio import AsyncSession

from ...core.config import settings
from ...core.errors import PersistenceError
from ...models.items import AssembledBatch
from ..models import GeneratedBatch

logger = structlog.get_logger()


class BatchRepository:
    """Stores assembled batches in ``generated_batches``.

    Example:
        >>> repo = BatchRepository(db=session)
        >>> batch_id = await repo.save_batch(batch)
    """

    def __init__(self, db: AsyncSession, timeout: float | None = None) -> None:
        self.db = db
        self.timeout = timeout if timeout is not None else settings.IO_TIMEOUT_SECONDS

    async def save_batch(self, batch: AssembledBatch, kind: str = "topic") -> uuid.UUID:
        """Persist a batch and return its id.

        Raises:
            PersistenceError: If the insert or commit fails
        """
        row = GeneratedBatch(
            id=batch.id,
            topic_id=batch.topic_id,
            requester_id=batch.requester_id,
            kind=kind,
            prompt_version=batch.prompt_version,
            items=[item.model_dump(mode="json") for item in batch.items],
            created_at=batch.created_at.replace(tzinfo=None),
        )

        try:
            self.db.add(row)
            await asyncio.wait_for(self.db.commit(), timeout=self.timeout)
        except Exception as e:
            await self.db.rollback()
            logger.error("batch_persist_failed", batch_id=str(batch.id), error=str(e))
            raise PersistenceError(f"Failed to store batch {batch.id}: {e}") from e

        logger.info("batch_persisted", batch_id=str(batch.id), items=len(batch.items))
        return row.id
