"""Written-answer correction contracts."""

from __future__ import annotations

import uuid

from pydantic import BaseModel, Field

from .citation import VerificationVerdict
from .items import CitationRef


class CorrectionRequest(BaseModel):
    """A candidate's written answer to one exam question."""

    topic_id: uuid.UUID
    question: str = Field(..., min_length=10, max_length=2000)
    answer: str = Field(..., min_length=50, max_length=20000)


class CorrectionDimensions(BaseModel):
    """Partial scores, each 0-10."""

    legal_content: float = Field(..., ge=0, le=10)
    argumentation: float = Field(..., ge=0, le=10)
    structure: float = Field(..., ge=0, le=10)


class RawCorrection(BaseModel):
    """Provider JSON for a correction call."""

    score: float = Field(..., ge=0, le=10)
    feedback: str = Field(..., min_length=20)
    improvements: list[str] = Field(..., min_length=1, max_length=5)
    cited_references: list[CitationRef] = Field(default_factory=list)
    dimensions: CorrectionDimensions


class CorrectionResult(BaseModel):
    """Correction plus the verification of every citation in its feedback."""

    topic_id: uuid.UUID
    correction: RawCorrection
    verdicts: list[VerificationVerdict] = Field(default_factory=list)
    verification_score: float = Field(..., ge=0, le=1)
    prompt_version: str
