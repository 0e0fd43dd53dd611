"""Tests for batch assembly and hand-over."""

from __future__ import annotations

import uuid
from unittest.mock import AsyncMock, MagicMock

import pytest

from lexguard.core.errors import PersistenceError
from lexguard.database.repositories.batch_repository import BatchRepository
from lexguard.models.items import CitationRef, Difficulty, LegalItem, TechnicalItem
from lexguard.services.result_assembler import ResultAssembler


def legal_item(n: int = 0) -> LegalItem:
    return LegalItem(
        question=f"Pregunta número {n} sobre el procedimiento",
        options=("A", "B", "C", "D"),
        correct=0,
        explanation="Explicación suficientemente larga.",
        difficulty=Difficulty.MEDIUM,
        citation=CitationRef(law="LPAC", article="21", quote="tres meses"),
    )


@pytest.fixture
def sink() -> MagicMock:
    sink = MagicMock()
    sink.save_batch = AsyncMock(side_effect=lambda batch, kind="topic": batch.id)
    return sink


@pytest.mark.unit
class TestResultAssembler:
    def test_assemble_trims_to_target(self, sink):
        topic_id = uuid.uuid4()

        batch = ResultAssembler(sink, prompt_version="9.9.9").assemble(
            [legal_item(i) for i in range(6)], topic_id, 4, requester_id="user-1"
        )

        assert len(batch.items) == 4
        assert batch.prompt_version == "9.9.9"
        assert batch.requester_id == "user-1"
        assert batch.created_at.tzinfo is not None

    @pytest.mark.asyncio
    async def test_deliver_persists_batch(self, sink):
        items = [legal_item(), TechnicalItem(
            question="¿Qué pestaña contiene Tabla de contenido?",
            options=("Referencias", "Inicio", "Vista", "Diseño"),
            correct=0,
            explanation="Está en la pestaña Referencias.",
            difficulty=Difficulty.EASY,
        )]

        batch = await ResultAssembler(sink).deliver(items, uuid.uuid4(), 2)

        sink.save_batch.assert_awaited_once_with(batch)
        assert [item.domain for item in batch.items] == ["legal", "technical"]

    @pytest.mark.asyncio
    async def test_persistence_error_propagates(self, sink):
        sink.save_batch = AsyncMock(side_effect=PersistenceError("disk full"))

        with pytest.raises(PersistenceError):
            await ResultAssembler(sink).deliver([legal_item()], uuid.uuid4(), 1)


@pytest.mark.unit
class TestBatchRepository:
    """BatchRepository.save_batch against a mocked session."""

    @pytest.fixture
    def session(self) -> MagicMock:
        session = MagicMock()
        session.add = MagicMock()
        session.commit = AsyncMock()
        session.rollback = AsyncMock()
        return session

    @pytest.mark.asyncio
    async def test_items_are_stored_as_json(self, session, sink):
        batch = ResultAssembler(sink).assemble([legal_item()], uuid.uuid4(), 1)

        batch_id = await BatchRepository(db=session).save_batch(batch)

        assert batch_id == batch.id
        row = session.add.call_args.args[0]
        assert row.items[0]["citation"]["law"] == "LPAC"
        assert row.items[0]["domain"] == "legal"
        assert row.created_at.tzinfo is None
        session.commit.assert_awaited_once()

    @pytest.mark.asyncio
    async def test_commit_failure_rolls_back(self, session, sink):
        session.commit = AsyncMock(side_effect=RuntimeError("connection reset"))
        batch = ResultAssembler(sink).assemble([legal_item()], uuid.uuid4(), 1)

        with pytest.raises(PersistenceError):
            await BatchRepository(db=session).save_batch(batch)

        session.rollback.assert_awaited_once()
