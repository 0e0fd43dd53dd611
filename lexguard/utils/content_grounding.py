"""Grounding check for technical-domain items.

Technical items carry no citation, so they are accepted only when some of
their content literally appears in the retrieved context.
"""

from __future__ import annotations

import structlog

from ..core.config import settings
from ..models.items import RawQuestion
from .text_normalizer import extract_words, fold_text

logger = structlog.get_logger()

STOP_WORDS = frozenset({"para", "este", "esta", "como", "desde", "hasta", "formato", "texto"})

MIN_CORRECT_OPTION_CHARS = 4
FRAGMENT_MIN_OPTION_CHARS = 15
FRAGMENT_CHARS = 20
MIN_EXPLANATION_WORD_CHARS = 8
MAX_EXPLANATION_WORDS = 5
MIN_ANY_OPTION_CHARS = 6


def is_grounded(
    item: RawQuestion,
    context_text: str,
    min_context_chars: int | None = None,
) -> bool:
    """Decide whether a technical item is backed by the context.

    Accepts the item if any of these appear in the (folded) context:
      1. the correct option, when it has at least 4 characters
      2. its first 20 characters, when it has at least 15
      3. one of the first five explanation words of 8+ letters
      4. any option of at least 6 characters

    A context shorter than ``min_context_chars`` accepts everything.

    Args:
        item: Provider question to check
        context_text: Rendered retrieval context
        min_context_chars: Lenient threshold (defaults to settings)
    """
    threshold = settings.GROUNDING_MIN_CONTEXT_CHARS if min_context_chars is None else min_context_chars
    context = fold_text(context_text)

    if len(context) < threshold:
        logger.debug("grounding_lenient", context_chars=len(context), question=item.question[:50])
        return True

    correct = fold_text(item.correct_option)
    if len(correct) >= MIN_CORRECT_OPTION_CHARS and correct in context:
        return True

    if len(correct) >= FRAGMENT_MIN_OPTION_CHARS and correct[:FRAGMENT_CHARS] in context:
        return True

    terms = [
        word
        for word in extract_words(item.explanation, min_length=MIN_EXPLANATION_WORD_CHARS)
        if word not in STOP_WORDS
    ]
    if any(term in context for term in terms[:MAX_EXPLANATION_WORDS]):
        return True

    for option in item.options:
        folded = fold_text(option)
        if len(folded) >= MIN_ANY_OPTION_CHARS and folded in context:
            return True

    logger.debug("grounding_rejected", question=item.question[:80])
    return False
