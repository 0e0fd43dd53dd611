"""Trap exercises: injected errors checked against the article, graded without a model.

    pick article -> [complete -> literal checks] x (max_retries + 1) -> store
    load -> compare detections with injected errors -> store grade
"""

from __future__ import annotations

import random
import time
import uuid
from typing import Any

import structlog

from ..core.config import settings
from ..core.errors import (
    CorpusUnavailableError,
    InvalidInputError,
    ProviderResponseError,
    TrapSessionCompletedError,
    TrapSessionForbiddenError,
    TrapSessionNotFoundError,
)
from ..database.repositories.corpus_repository import CorpusRepository, CorpusStoreError
from ..database.repositories.trap_repository import TrapRepository
from ..models.article import ArticleRecord
from ..models.trap import (
    Detection,
    DetectionOutcome,
    InjectedError,
    RawTrapExercise,
    TrapExercise,
    TrapGrade,
)
from ..services.llm.json_completion import JsonCompletion
from ..services.llm.prompts import SYSTEM_TRAP_EXERCISE, build_trap_prompt
from ..services.llm.schemas import LLMClientError, MalformedOutputError

logger = structlog.get_logger()

MAX_TRAP_ERRORS = 3


def injection_failures(exercise: RawTrapExercise, article_text: str) -> list[str]:
    """Values that break the literal-substitution contract.

    An injected error is valid when its original value occurs verbatim in the
    article, its trap value occurs in the trap text and the two differ.
    """
    failures: list[str] = []
    for error in exercise.errors:
        if error.original_value not in article_text:
            failures.append(f"original:{error.original_value}")
        elif error.trap_value not in exercise.trap_text:
            failures.append(f"trap:{error.trap_value}")
        elif error.trap_value == error.original_value:
            failures.append(f"unchanged:{error.original_value}")
    return failures


def _normalize(value: str) -> str:
    return value.strip().lower()


def grade_detections(errors: list[InjectedError], detections: list[Detection]) -> TrapGrade:
    """Compare detections with the injected errors.

    An error counts as found when some detection names its trap value
    (case-insensitive, trimmed). The proposed correction is reported per error
    but does not change the score.
    """
    outcomes: list[DetectionOutcome] = []
    for error in errors:
        detection = next(
            (d for d in detections if _normalize(d.detected_value) == _normalize(error.trap_value)),
            None,
        )
        outcomes.append(
            DetectionOutcome(
                error=error,
                detected=detection is not None,
                correction_right=detection is not None
                and _normalize(detection.proposed_original) == _normalize(error.original_value),
                detection=detection,
            )
        )

    hits = sum(1 for outcome in outcomes if outcome.detected)
    score = round(hits / len(errors) * 100, 2) if errors else 0.0
    return TrapGrade(score=score, hits=hits, total=len(errors), outcomes=outcomes)


class TrapExerciseService:
    """Creates and grades trap exercises.

    Attributes:
        corpus: Source of candidate articles
        traps: Storage of exercises and grades
        completion: Provider access through the breaker with JSON validation
        max_retries: Extra provider attempts after failed literal checks
    """

    def __init__(
        self,
        corpus: CorpusRepository,
        traps: TrapRepository,
        completion: JsonCompletion,
        max_retries: int | None = None,
        rng: random.Random | None = None,
    ) -> None:
        self.corpus = corpus
        self.traps = traps
        self.completion = completion
        self.max_retries = settings.TRAP_MAX_RETRIES if max_retries is None else max_retries
        self.rng = rng or random.Random()

    async def create(
        self,
        topic_id: uuid.UUID | None = None,
        error_count: int = MAX_TRAP_ERRORS,
        requester_id: str | None = None,
        request_id: str | None = None,
    ) -> TrapExercise:
        """Build, check and store one exercise.

        Raises:
            InvalidInputError: Bad error count, or no article long enough
            CorpusUnavailableError: Corpus store unreachable
            ProviderUnavailableError: Provider circuit open
            ProviderResponseError: No attempt produced verifiable errors
            PersistenceError: The exercise could not be stored
        """
        if not 1 <= error_count <= MAX_TRAP_ERRORS:
            raise InvalidInputError(f"error_count must be between 1 and {MAX_TRAP_ERRORS}")

        log = logger.bind(request_id=request_id or str(uuid.uuid4()))
        start = time.perf_counter()
        article = await self._pick_article(topic_id)
        log = log.bind(law=article.law_code, article=article.article_number)

        raw = await self._inject(article, error_count, log)
        exercise = TrapExercise(
            article_id=article.id,
            law_name=article.law_name,
            article_number=article.article_number,
            chapter_heading=article.chapter_heading,
            trap_text=raw.trap_text,
            errors=raw.errors,
            requester_id=requester_id,
        )
        await self.traps.save_exercise(exercise)

        log.info(
            "trap_created",
            trap_id=str(exercise.id),
            errors=exercise.error_count,
            duration_ms=round((time.perf_counter() - start) * 1000),
        )
        return exercise

    async def _pick_article(self, topic_id: uuid.UUID | None) -> ArticleRecord:
        try:
            candidates = await self.corpus.trap_candidates(
                min_chars=settings.TRAP_MIN_ARTICLE_CHARS,
                limit=settings.TRAP_CANDIDATE_POOL,
                topic_id=topic_id,
            )
        except CorpusStoreError as e:
            raise CorpusUnavailableError(f"Could not load trap candidates: {e}") from e

        candidates = [a for a in candidates if len(a.full_text) >= settings.TRAP_MIN_ARTICLE_CHARS]
        if not candidates:
            raise InvalidInputError("No active article is long enough for a trap exercise")
        return self.rng.choice(candidates)

    async def _inject(self, article: ArticleRecord, error_count: int, log: Any) -> RawTrapExercise:
        user_prompt = build_trap_prompt(
            article_text=article.full_text,
            law_name=article.law_name,
            article_number=article.article_number,
            error_count=error_count,
        )
        attempts = self.max_retries + 1
        for attempt in range(1, attempts + 1):
            try:
                raw = await self.completion.complete(SYSTEM_TRAP_EXERCISE, user_prompt, RawTrapExercise)
            except (LLMClientError, MalformedOutputError) as e:
                log.warning("trap_attempt_failed", attempt=attempt, error_type=type(e).__name__)
                continue

            failures = injection_failures(raw, article.full_text)
            if failures:
                log.warning("trap_injection_rejected", attempt=attempt, failures=failures[:5])
                continue
            return raw

        log.error("trap_exhausted", attempts=attempts)
        raise ProviderResponseError(f"No verifiable trap exercise after {attempts} attempts")

    async def grade(
        self,
        exercise_id: uuid.UUID,
        detections: list[Detection],
        requester_id: str | None = None,
    ) -> tuple[TrapExercise, TrapGrade]:
        """Grade a submission and close the exercise.

        Raises:
            TrapSessionNotFoundError: Unknown exercise id
            TrapSessionForbiddenError: Exercise belongs to another requester
            TrapSessionCompletedError: Exercise was already graded
            CorpusUnavailableError: Store unreachable
            PersistenceError: The grade could not be stored
        """
        stored = await self.traps.get_exercise(exercise_id)
        if stored is None:
            raise TrapSessionNotFoundError(f"Trap exercise {exercise_id} not found")
        if stored.requester_id is not None and stored.requester_id != requester_id:
            raise TrapSessionForbiddenError(f"Trap exercise {exercise_id} belongs to another requester")
        if stored.completed:
            raise TrapSessionCompletedError(f"Trap exercise {exercise_id} was already graded")

        result = grade_detections(stored.errors, detections)
        await self.traps.complete_exercise(exercise_id, detections, result.score)
        logger.info(
            "trap_grade_complete",
            trap_id=str(exercise_id),
            hits=result.hits,
            total=result.total,
            score=result.score,
        )
        return stored, result
