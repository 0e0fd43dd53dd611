"""Generation-verification loop and written-answer correction."""

from .answer_corrector import AnswerCorrector
from .batch_generator import VerifiedBatchGenerator, validate_batch_request

__all__ = [
    "AnswerCorrector",
    "VerifiedBatchGenerator",
    "validate_batch_request",
]
