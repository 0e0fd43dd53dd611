"""Text normalization shared by citation resolution and content checks.

All comparisons between generated text and corpus text go through
``fold_text`` so that case, accents and spacing never decide a verdict.
"""

from __future__ import annotations

import re
import unicodedata


def strip_accents(text: str) -> str:
    """Remove combining marks ('Constitución' -> 'Constitucion', 'años' -> 'anos').

    Example:
        >>> strip_accents("Órgano de Gobierno")
        "Organo de Gobierno"
    """
    decomposed = unicodedata.normalize("NFKD", text)
    return "".join(ch for ch in decomposed if not unicodedata.combining(ch))


def fold_text(text: str) -> str:
    """Lowercase, strip accents and collapse whitespace.

    Example:
        >>> fold_text("  El  PLAZO máximo\\n será de TRES meses ")
        "el plazo maximo sera de tres meses"
    """
    if not text:
        return ""
    return " ".join(strip_accents(text).lower().split())


def extract_words(text: str, min_length: int = 1) -> list[str]:
    """Split folded text into purely alphabetic words of at least ``min_length``.

    Example:
        >>> extract_words("Pestaña Inicio > Fuente", min_length=6)
        ["pestana", "inicio", "fuente"]
    """
    return [word for word in re.findall(r"[a-z]+", fold_text(text)) if len(word) >= min_length]
