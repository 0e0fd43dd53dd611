"""Persistence of trap exercises and their grades."""

from __future__ import annotations

import asyncio
import uuid
from datetime import datetime, timezone

import structlog
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from ...core.config import settings
from ...core.errors import CorpusUnavailableError, PersistenceError
from ...models.trap import Detection, InjectedError, TrapExercise
from ..models import TrapSession

logger = structlog.get_logger()


class StoredTrap(TrapExercise):
    """A trap exercise as read back from the store."""

    completed: bool = False


class TrapRepository:
    """Stores trap exercises in ``trap_sessions``.

    Example:
        >>> repo = TrapRepository(db=session)
        >>> exercise_id = await repo.save_exercise(exercise)
        >>> stored = await repo.get_exercise(exercise_id)
    """

    def __init__(self, db: AsyncSession, timeout: float | None = None) -> None:
        self.db = db
        self.timeout = timeout if timeout is not None else settings.IO_TIMEOUT_SECONDS

    async def _commit(self, operation: str, exercise_id: uuid.UUID) -> None:
        try:
            await asyncio.wait_for(self.db.commit(), timeout=self.timeout)
        except Exception as e:
            await self.db.rollback()
            logger.error("trap_persist_failed", operation=operation, trap_id=str(exercise_id), error=str(e))
            raise PersistenceError(f"Failed to {operation} trap exercise {exercise_id}: {e}") from e

    async def save_exercise(self, exercise: TrapExercise) -> uuid.UUID:
        """Persist a new exercise and return its id.

        Raises:
            PersistenceError: If the insert or commit fails
        """
        self.db.add(
            TrapSession(
                id=exercise.id,
                article_id=exercise.article_id,
                requester_id=exercise.requester_id,
                law_name=exercise.law_name,
                article_number=exercise.article_number,
                chapter_heading=exercise.chapter_heading,
                trap_text=exercise.trap_text,
                injected_errors=[error.model_dump(mode="json") for error in exercise.errors],
            )
        )
        await self._commit("store", exercise.id)
        logger.info("trap_persisted", trap_id=str(exercise.id), errors=exercise.error_count)
        return exercise.id

    async def get_exercise(self, exercise_id: uuid.UUID) -> StoredTrap | None:
        """Load an exercise, injected errors included.

        Raises:
            CorpusUnavailableError: If the store cannot be read
        """
        try:
            result = await asyncio.wait_for(
                self.db.execute(select(TrapSession).where(TrapSession.id == exercise_id)),
                timeout=self.timeout,
            )
        except Exception as e:
            logger.warning("trap_lookup_failed", trap_id=str(exercise_id), error=str(e))
            raise CorpusUnavailableError(f"Failed to load trap exercise {exercise_id}: {e}") from e

        row = result.scalars().first()
        if row is None:
            return None
        return StoredTrap(
            id=row.id,
            article_id=row.article_id,
            requester_id=row.requester_id,
            law_name=row.law_name,
            article_number=row.article_number,
            chapter_heading=row.chapter_heading or "",
            trap_text=row.trap_text,
            errors=[InjectedError.model_validate(error) for error in row.injected_errors],
            completed=row.completed_at is not None,
        )

    async def complete_exercise(
        self, exercise_id: uuid.UUID, detections: list[Detection], score: float
    ) -> None:
        """Record the submitted detections and the grade.

        Raises:
            PersistenceError: If the update or commit fails
        """
        try:
            result = await asyncio.wait_for(
                self.db.execute(select(TrapSession).where(TrapSession.id == exercise_id)),
                timeout=self.timeout,
            )
            row = result.scalars().one()
        except Exception as e:
            logger.error("trap_persist_failed", operation="grade", trap_id=str(exercise_id), error=str(e))
            raise PersistenceError(f"Failed to grade trap exercise {exercise_id}: {e}") from e

        row.detections = [detection.model_dump(mode="json") for detection in detections]
        row.score = score
        row.completed_at = datetime.now(timezone.utc).replace(tzinfo=None)
        await self._commit("grade", exercise_id)
        logger.info("trap_graded", trap_id=str(exercise_id), score=score)
