"""Generated item contracts: provider output, accepted items and batches."""

from __future__ import annotations

import uuid
from datetime import datetime, timezone
from enum import Enum
from typing import Annotated, Literal, Union

from pydantic import BaseModel, Field, field_validator

from ..core.config import settings


class Difficulty(str, Enum):
    """Requested question difficulty."""

    EASY = "easy"
    MEDIUM = "medium"
    HARD = "hard"


class CitationRef(BaseModel):
    """Structured citation attached to a legal item by the provider."""

    law: str = Field(..., min_length=1, description="Law name or code, e.g. 'LPAC' or 'Ley 39/2015'")
    article: str = Field(..., min_length=1, description="Article number, e.g. '21' or '9 bis'")
    section: str | None = Field(default=None, description="Apartado, e.g. '3'")
    quote: str = Field(..., min_length=1, description="Literal fragment of the cited article")

    @field_validator("article", mode="before")
    @classmethod
    def _coerce_article(cls, value: object) -> object:
        # Providers sometimes emit the number as an integer
        return str(value) if isinstance(value, int) else value

    @field_validator("section", mode="before")
    @classmethod
    def _coerce_section(cls, value: object) -> object:
        if isinstance(value, int):
            return str(value)
        if isinstance(value, str) and not value.strip():
            return None
        return value

    def as_text(self) -> str:
        """Render the citation the way it would appear in prose."""
        section = f".{self.section}" if self.section else ""
        return f"artículo {self.article}{section} {self.law}"


class RawQuestion(BaseModel):
    """One question as returned by the provider, before verification."""

    question: str = Field(..., min_length=10)
    options: tuple[str, str, str, str]
    correct: int = Field(..., ge=0, le=3)
    explanation: str = Field(..., min_length=10)
    difficulty: Difficulty | None = None
    citation: CitationRef | None = None

    @property
    def correct_option(self) -> str:
        return self.options[self.correct]

    @property
    def claim_text(self) -> str:
        """Text whose legal claims must hold: stem, correct answer and explanation."""
        return f"{self.question}\n{self.correct_option}\n{self.explanation}"

    @property
    def all_text(self) -> str:
        """Every piece of text the provider produced for this question."""
        return "\n".join([self.question, *self.options, self.explanation])


class RawQuestionBatch(BaseModel):
    """Top-level provider JSON for a generation call."""

    questions: list[RawQuestion] = Field(..., min_length=1, max_length=30)


class _ItemBase(BaseModel):
    question: str
    options: tuple[str, str, str, str]
    correct: int = Field(..., ge=0, le=3)
    explanation: str
    difficulty: Difficulty

    model_config = {"frozen": True}


class LegalItem(_ItemBase):
    """Accepted legal item: every citation in it was verified."""

    domain: Literal["legal"] = "legal"
    citation: CitationRef


class TechnicalItem(_ItemBase):
    """Accepted technical item: grounded in the retrieved context."""

    domain: Literal["technical"] = "technical"


GeneratedItem = Annotated[Union[LegalItem, TechnicalItem], Field(discriminator="domain")]


class BatchRequest(BaseModel):
    """Validated input of the generation loop."""

    topic_id: uuid.UUID
    target_count: int = Field(..., ge=1)
    difficulty: Difficulty = Difficulty.MEDIUM

    @field_validator("target_count")
    @classmethod
    def _check_max(cls, value: int) -> int:
        if value > settings.MAX_BATCH_SIZE:
            raise ValueError(f"target_count must be <= {settings.MAX_BATCH_SIZE}")
        return value


class AssembledBatch(BaseModel):
    """Batch handed to the persistence collaborator."""

    id: uuid.UUID = Field(default_factory=uuid.uuid4)
    topic_id: uuid.UUID
    requester_id: str | None = None
    prompt_version: str
    items: list[GeneratedItem]
    created_at: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))
