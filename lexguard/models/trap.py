"""Trap exercises: an article with subtle injected errors to spot and fix."""

from __future__ import annotations

import uuid
from enum import Enum

from pydantic import BaseModel, Field


class TrapKind(str, Enum):
    DEADLINE = "deadline"
    PERCENTAGE = "percentage"
    SUBJECT = "subject"
    VERB = "verb"
    FIGURE = "figure"
    OTHER = "other"


class InjectedError(BaseModel):
    """One substitution made in the article text.

    ``original_value`` is a literal substring of the article and
    ``trap_value`` replaces it in the trap text.
    """

    kind: TrapKind = TrapKind.OTHER
    original_value: str = Field(..., min_length=1)
    trap_value: str = Field(..., min_length=1)
    explanation: str = Field(..., min_length=5)

    model_config = {"frozen": True}


class RawTrapExercise(BaseModel):
    """Provider JSON for a trap exercise."""

    trap_text: str = Field(..., min_length=20)
    errors: list[InjectedError] = Field(..., min_length=1, max_length=5)


class TrapExercise(BaseModel):
    """Stored exercise. ``errors`` never leaves the service before grading."""

    id: uuid.UUID = Field(default_factory=uuid.uuid4)
    article_id: uuid.UUID
    law_name: str
    article_number: str
    chapter_heading: str = ""
    trap_text: str
    errors: list[InjectedError]
    requester_id: str | None = None

    @property
    def error_count(self) -> int:
        return len(self.errors)


class Detection(BaseModel):
    """What the candidate marked as wrong and the correction they propose."""

    detected_value: str = Field(..., min_length=1, max_length=500)
    proposed_original: str = Field(..., min_length=1, max_length=500)


class DetectionOutcome(BaseModel):
    error: InjectedError
    detected: bool
    correction_right: bool
    detection: Detection | None = None


class TrapGrade(BaseModel):
    """Deterministic grade of one submission."""

    score: float = Field(..., ge=0, le=100)
    hits: int
    total: int
    outcomes: list[DetectionOutcome]
