"""Final assembly and hand-over of verified batches."""

from __future__ import annotations

import uuid
from typing import Protocol

import structlog

from ..core.config import settings
from ..models.items import AssembledBatch, GeneratedItem

logger = structlog.get_logger()


class BatchSink(Protocol):
    """Persistence collaborator receiving finished batches."""

    async def save_batch(self, batch: AssembledBatch, kind: str = "topic") -> uuid.UUID: ...


class ResultAssembler:
    """Trims verified items to the requested count and persists the batch.

    Persistence failures are not retried; they surface as PersistenceError.

    Example:
        >>> assembler = ResultAssembler(BatchRepository(session))
        >>> batch = await assembler.deliver(items, topic_id, 10, requester_id="user-1")
    """

    def __init__(self, sink: BatchSink, prompt_version: str | None = None) -> None:
        self.sink = sink
        self.prompt_version = prompt_version or settings.PROMPT_VERSION

    def assemble(
        self,
        items: list[GeneratedItem],
        topic_id: uuid.UUID,
        target_count: int,
        requester_id: str | None = None,
    ) -> AssembledBatch:
        """Build the batch record, keeping at most ``target_count`` items."""
        return AssembledBatch(
            topic_id=topic_id,
            requester_id=requester_id,
            prompt_version=self.prompt_version,
            items=list(items[:target_count]),
        )

    async def deliver(
        self,
        items: list[GeneratedItem],
        topic_id: uuid.UUID,
        target_count: int,
        requester_id: str | None = None,
    ) -> AssembledBatch:
        """Assemble and persist a batch.

        Raises:
            PersistenceError: If the sink fails to store the batch
        """
        batch = self.assemble(items, topic_id, target_count, requester_id)
        await self.sink.save_batch(batch)
        logger.info(
            "batch_delivered",
            batch_id=str(batch.id),
            topic_id=str(topic_id),
            items=len(batch.items),
            prompt_version=batch.prompt_version,
        )
        return batch
