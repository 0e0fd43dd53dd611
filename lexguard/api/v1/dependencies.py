"""FastAPI dependency providers wiring the pipeline per request."""

from __future__ import annotations

from functools import lru_cache

from fastapi import Depends
from sqlalchemy.ext.asyncio import AsyncSession

from ...agents.answer_corrector import AnswerCorrector
from ...agents.batch_generator import VerifiedBatchGenerator
from ...agents.trap_exercises import TrapExerciseService
from ...database.repositories.batch_repository import BatchRepository
from ...database.repositories.corpus_repository import CorpusRepository
from ...database.repositories.trap_repository import TrapRepository
from ...database.session import get_db
from ...rag.retrieval_engine import RetrievalEngine
from ...services.embedding.embedding_service import EmbeddingService
from ...services.llm.json_completion import JsonCompletion
from ...services.llm.llm_factory import get_correction_llm, get_generation_llm
from ...services.result_assembler import ResultAssembler
from ...utils.citation_verifier import CitationVerifier


@lru_cache(maxsize=1)
def get_embedding_service() -> EmbeddingService:
    """Process-wide embedding service (the model loads once, lazily)."""
    return EmbeddingService()


def _retrieval(db: AsyncSession) -> tuple[RetrievalEngine, CitationVerifier]:
    repository = CorpusRepository(db=db)
    return RetrievalEngine(repository, get_embedding_service()), CitationVerifier(repository)


async def get_batch_generator(db: AsyncSession = Depends(get_db)) -> VerifiedBatchGenerator:
    engine, verifier = _retrieval(db)
    client, breaker = get_generation_llm()
    return VerifiedBatchGenerator(engine, verifier, JsonCompletion(client, breaker))


async def get_answer_corrector(db: AsyncSession = Depends(get_db)) -> AnswerCorrector:
    engine, verifier = _retrieval(db)
    client, breaker = get_correction_llm()
    return AnswerCorrector(engine, verifier, JsonCompletion(client, breaker))


async def get_result_assembler(db: AsyncSession = Depends(get_db)) -> ResultAssembler:
    return ResultAssembler(BatchRepository(db=db))


async def get_trap_service(db: AsyncSession = Depends(get_db)) -> TrapExerciseService:
    client, breaker = get_generation_llm()
    return TrapExerciseService(CorpusRepository(db=db), TrapRepository(db=db), JsonCompletion(client, breaker))
