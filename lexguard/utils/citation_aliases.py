"""Static alias table mapping law references to canonical law codes.

Keys are written in lowercase and folded with the same normalization applied
to looked-up references, so accents and case never matter.
"""

from __future__ import annotations

import re

from .text_normalizer import fold_text

_ALIASES: dict[str, str] = {
    # Constitución Española de 1978
    "ce": "CE",
    "constitución": "CE",
    "constitución española": "CE",
    "carta magna": "CE",
    # Ley 39/2015, del Procedimiento Administrativo Común
    "lpac": "LPAC",
    "ley 39/2015": "LPAC",
    "procedimiento administrativo": "LPAC",
    "ley de procedimiento administrativo": "LPAC",
    "procedimiento administrativo común": "LPAC",
    # Ley 40/2015, de Régimen Jurídico del Sector Público
    "lrjsp": "LRJSP",
    "ley 40/2015": "LRJSP",
    "régimen jurídico": "LRJSP",
    "régimen jurídico del sector público": "LRJSP",
    "sector público": "LRJSP",
    # Real Decreto Legislativo 5/2015, Estatuto Básico del Empleado Público
    "trebep": "TREBEP",
    "ebep": "TREBEP",
    "estatuto básico": "TREBEP",
    "estatuto básico del empleado público": "TREBEP",
    "rdl 5/2015": "TREBEP",
    # Ley Orgánica 3/2018, de Protección de Datos y garantía de los derechos digitales
    "lopdgdd": "LOPDGDD",
    "lopd": "LOPDGDD",
    "rgpd": "LOPDGDD",
    "lo 3/2018": "LOPDGDD",
    "protección de datos": "LOPDGDD",
    "derechos digitales": "LOPDGDD",
    # Ley Orgánica 3/2007, para la igualdad efectiva de mujeres y hombres
    "loigualdad": "LOIGUALDAD",
    "lo 3/2007": "LOIGUALDAD",
    "ley de igualdad": "LOIGUALDAD",
    # Ley Orgánica 1/2004, de violencia de género
    "lovigen": "LOVIGEN",
    "lo 1/2004": "LOVIGEN",
    "violencia de género": "LOVIGEN",
    # Ley 4/2023, para la igualdad de las personas trans y LGTBI
    "lgtbi": "LGTBI",
    "ley 4/2023": "LGTBI",
    "ley trans": "LGTBI",
    # Ley Orgánica 2/1979, del Tribunal Constitucional
    "lotc": "LOTC",
    "lo 2/1979": "LOTC",
    "tribunal constitucional": "LOTC",
    # Ley Orgánica 6/1985, del Poder Judicial
    "lopj": "LOPJ",
    "lo 6/1985": "LOPJ",
    "poder judicial": "LOPJ",
    # Ley 47/2003, General Presupuestaria
    "lgp": "LGP",
    "ley 47/2003": "LGP",
    "ley general presupuestaria": "LGP",
    # Ley 50/1997, del Gobierno
    "lgob": "LGOB",
    "ley 50/1997": "LGOB",
    "ley del gobierno": "LGOB",
    # Ley 19/2013, de transparencia y buen gobierno
    "transparencia": "TRANSPARENCIA",
    "ley 19/2013": "TRANSPARENCIA",
    "ley de transparencia": "TRANSPARENCIA",
    "buen gobierno": "TRANSPARENCIA",
    "acceso a la información": "TRANSPARENCIA",
    # Ley 9/2017, de Contratos del Sector Público
    "lcsp": "LCSP",
    "ley 9/2017": "LCSP",
    "contratos del sector público": "LCSP",
    "contratación pública": "LCSP",
}

_LEADING_ARTICLE_RE = re.compile(r"^(?:la|el|los|las)\s+")
_SPANISH_SUFFIX_RE = re.compile(r"\s+espanola$")
_ORGANIC_LAW_RE = re.compile(r"^ley\s+organica\s+")
_LEGISLATIVE_DECREE_RE = re.compile(r"^real\s+decreto\s+legislativo\s+")


def normalize_law_reference(raw: str) -> str:
    """Fold a law reference into alias-table key form.

    Example:
        >>> normalize_law_reference("la Ley Orgánica 3/2018")
        "lo 3/2018"
    """
    key = fold_text(raw)
    key = _LEADING_ARTICLE_RE.sub("", key)
    key = _ORGANIC_LAW_RE.sub("lo ", key)
    key = _LEGISLATIVE_DECREE_RE.sub("rdl ", key)
    return _SPANISH_SUFFIX_RE.sub("", key)


ALIAS_TABLE: dict[str, str] = {normalize_law_reference(alias): code for alias, code in _ALIASES.items()}
KNOWN_LAW_CODES: frozenset[str] = frozenset(ALIAS_TABLE.values())


def resolve_law_code(raw: str) -> str | None:
    """Resolve a raw law reference to its canonical code.

    Returns:
        Canonical code (e.g. 'LPAC'), or None if the reference is unknown

    Example:
        >>> resolve_law_code("Ley 39/2015")
        "LPAC"
        >>> resolve_law_code("Constitución Española")
        "CE"
        >>> resolve_law_code("Ley 1/1900") is None
        True
    """
    if not raw or not raw.strip():
        return None
    return ALIAS_TABLE.get(normalize_law_reference(raw))
