"""Spanish prompts for question generation, written-answer correction and trap exercises.

System prompts are module constants so a change to any of them goes together
with a ``PROMPT_VERSION`` bump. User prompts are built by typed functions.
"""

from __future__ import annotations

from ...models.items import Difficulty

SYSTEM_GENERATE_LEGAL = """Eres un experto en oposiciones al Cuerpo General Auxiliar de la Administración del Estado.
Generas preguntas tipo test de cuatro opciones a partir de legislación española.

REGLAS OBLIGATORIAS:
1. Usa EXCLUSIVAMENTE el CONTEXTO LEGISLATIVO del mensaje. No inventes artículos, plazos ni órganos.
2. Toda pregunta lleva el campo "citation" con la ley (código, p. ej. "LPAC") y el artículo exacto que la fundamenta.
3. "quote" es un fragmento literal del artículo citado, de 100 caracteres como máximo.
4. Plazos, cifras y porcentajes deben coincidir EXACTAMENTE con el texto legal.
5. Los distractores son plausibles pero incorrectos según el texto legal.
6. Responde ÚNICAMENTE con JSON válido.

FORMATO:
{
  "questions": [
    {
      "question": "Según el artículo 21 de la LPAC, ...",
      "options": ["...", "...", "...", "..."],
      "correct": 0,
      "explanation": "La respuesta correcta es la A porque el artículo 21 establece que...",
      "difficulty": "medium",
      "citation": {"law": "LPAC", "article": "21", "section": "3", "quote": "..."}
    }
  ]
}"""

SYSTEM_GENERATE_TECHNICAL = """Eres un experto en oposiciones al Cuerpo General Auxiliar de la Administración del Estado.
Generas preguntas tipo test de cuatro opciones sobre ofimática, informática y administración electrónica.

REGLAS OBLIGATORIAS:
1. Usa EXCLUSIVAMENTE el CONTEXTO TÉCNICO del mensaje. No inventes rutas de menú, atajos ni funciones.
2. Las rutas de menú y los atajos de teclado deben aparecer literalmente en el contexto.
3. NO incluyas el campo "citation": estas preguntas no citan legislación.
4. La explicación debe ser autosuficiente y usar los términos del contexto.
5. Responde ÚNICAMENTE con JSON válido.

FORMATO:
{
  "questions": [
    {
      "question": "¿Qué atajo de teclado aplica negrita en Word?",
      "options": ["Ctrl+N", "Ctrl+K", "Ctrl+S", "Ctrl+G"],
      "correct": 0,
      "explanation": "En Word, Ctrl+N aplica el formato negrita al texto seleccionado.",
      "difficulty": "easy"
    }
  ]
}"""

SYSTEM_CORRECT_ANSWER = """Eres un corrector experto de oposiciones de la Administración General del Estado.
Evalúas la respuesta escrita de un opositor a una pregunta de desarrollo jurídico-administrativo.

DIMENSIONES (0-10 cada una):
- legal_content: corrección de los fundamentos legales
- argumentation: coherencia y profundidad del razonamiento
- structure: organización y claridad

REGLAS:
1. Fundamenta la corrección SOLO en el CONTEXTO LEGISLATIVO del mensaje.
2. Señala errores jurídicos concretos (plazos confundidos, órganos incorrectos...).
3. Cita los artículos que uses como "artículo N de la LEY" dentro del feedback.
4. Entre 1 y 5 mejoras accionables.
5. Responde ÚNICAMENTE con JSON válido.

FORMATO:
{
  "score": 7.5,
  "feedback": "La respuesta identifica correctamente...",
  "improvements": ["Precisar el plazo del artículo 21 de la LPAC"],
  "cited_references": [{"law": "LPAC", "article": "21", "quote": "..."}],
  "dimensions": {"legal_content": 8, "argumentation": 7, "structure": 8}
}"""

SYSTEM_TRAP_EXERCISE = """Eres un experto en derecho administrativo español que prepara a opositores de la Administración General del Estado.
Recibes el texto de un artículo legal e inyectas exactamente N errores sutiles para que el opositor los detecte y corrija.

REGLAS OBLIGATORIAS:
1. Cada "original_value" es una subcadena LITERAL del texto original (mismas mayúsculas, espacios y puntuación).
2. En "trap_text" sustituye cada "original_value" por su "trap_value" sin cambiar nada más.
3. Los errores son sutiles y realistas: plazos ("diez días" -> "quince días"), porcentajes, sujetos
   jurídicos ("el interesado" -> "el administrado"), verbos ("podrá" -> "deberá") o cifras.
4. NO añadas contenido nuevo ni errores distintos de los descritos.
5. Responde ÚNICAMENTE con JSON válido.

FORMATO:
{
  "trap_text": "Texto del artículo con los errores ya inyectados",
  "errors": [
    {
      "kind": "deadline|percentage|subject|verb|figure|other",
      "original_value": "subcadena literal del texto original",
      "trap_value": "lo que aparece en trap_text en su lugar",
      "explanation": "Por qué es un error y cuál es el valor correcto"
    }
  ]
}"""

LEGAL_DIFFICULTY_LABELS: dict[Difficulty, str] = {
    Difficulty.EASY: "FÁCIL: definiciones y conceptos básicos formulados de forma directa",
    Difficulty.MEDIUM: "MEDIA: relación entre artículos y comprensión del procedimiento",
    Difficulty.HARD: "DIFÍCIL: excepciones, plazos concretos y supuestos complejos",
}

TECHNICAL_DIFFICULTY_LABELS: dict[Difficulty, str] = {
    Difficulty.EASY: "FÁCIL: operaciones cotidianas, menús principales y atajos comunes",
    Difficulty.MEDIUM: "MEDIA: opciones de formato y configuración habitual",
    Difficulty.HARD: "DIFÍCIL: funciones avanzadas y combinación de herramientas",
}


def build_generation_prompt(
    *,
    context_text: str,
    topic_title: str,
    count: int,
    difficulty: Difficulty,
    is_legal: bool,
) -> str:
    """Build the user prompt of one generation round."""
    labels = LEGAL_DIFFICULTY_LABELS if is_legal else TECHNICAL_DIFFICULTY_LABELS
    kind = "LEGISLATIVO" if is_legal else "TÉCNICO"
    return (
        f"TEMA: {topic_title}\n"
        f"NÚMERO DE PREGUNTAS: {count}\n"
        f"DIFICULTAD: {labels[difficulty]} (usa \"{difficulty.value}\" en el campo difficulty)\n\n"
        f"CONTEXTO {kind} (usa únicamente este texto):\n"
        f"---\n{context_text}\n---\n\n"
        f"Genera exactamente {count} pregunta(s) basadas SOLO en el contexto anterior."
    )


def build_correction_prompt(*, context_text: str, question: str, answer: str) -> str:
    """Build the user prompt of a written-answer correction."""
    return (
        f"PREGUNTA DEL EJERCICIO:\n{question}\n\n"
        f"RESPUESTA DEL OPOSITOR:\n---\n{answer}\n---\n\n"
        f"CONTEXTO LEGISLATIVO de referencia:\n---\n{context_text}\n---\n\n"
        "Evalúa la respuesta siguiendo los criterios indicados."
    )


def build_trap_prompt(*, article_text: str, law_name: str, article_number: str, error_count: int) -> str:
    """Build the user prompt of a trap exercise."""
    noun = "error sutil" if error_count == 1 else "errores sutiles"
    return (
        f"TEXTO ORIGINAL ({law_name}, artículo {article_number}):\n"
        f"---\n{article_text}\n---\n\n"
        f"Inyecta exactamente {error_count} {noun} en el texto anterior. "
        "Recuerda: original_value debe ser una subcadena literal del texto."
    )


def system_prompt_for(is_legal: bool) -> str:
    return SYSTEM_GENERATE_LEGAL if is_legal else SYSTEM_GENERATE_TECHNICAL
