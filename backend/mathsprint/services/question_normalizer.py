"""
Question normalizer — coerces loosely-typed candidates into Question models.

Candidates arrive from the generative collaborator (or any other producer) as
plain dicts. normalize_candidate() enforces the Question invariants and either
returns a valid Question or None. It never raises.

Type resolution and degrade chain:

  numeric     exact missing, 2-number range present  → free_text
  free_text   range missing/invalid, exact present    → numeric
  multi_part  no numeric parts                        → free_text, then numeric
  anything    no recoverable answer representation    → rejected (None)

Field conventions understood:
  prompt  → c["prompt"] | c["question"] | c["question_text"] | c["text"]
  hints   → c["hints"] (list or single string) | c["hint"]
"""
from __future__ import annotations

import logging
import math
import re
from dataclasses import dataclass, field
from typing import Any, Optional

from pydantic import ValidationError

from mathsprint.models.practice import (
    ExactAnswer,
    PartsAnswer,
    Question,
    RangeAnswer,
)
from mathsprint.utils.answer_computer import format_number

logger = logging.getLogger("mathsprint.question_normalizer")

KNOWN_TYPES = ("numeric", "free_text", "multi_part")
DEFAULT_CONCEPT = "mixed practice"
GENERIC_HINTS = ["Take it step by step.", "Double-check your work."]
MAX_HINTS = 3


@dataclass
class NormalizationContext:
    topic_plan: list[str] = field(default_factory=list)
    difficulty: str = "same"
    id_prefix: str = "llm"


# ---------------------------------------------------------------------------
# Coercion helpers
# ---------------------------------------------------------------------------

def as_number(value: Any) -> Optional[int | float]:
    """Finite int/float, or a numeric string. Booleans are not numbers here."""
    if isinstance(value, bool):
        return None
    if isinstance(value, (int, float)):
        return value if math.isfinite(value) else None
    if isinstance(value, str):
        text = value.strip().replace(",", "")
        try:
            parsed = float(text)
        except ValueError:
            return None
        if not math.isfinite(parsed):
            return None
        return int(parsed) if parsed.is_integer() and "." not in text else parsed
    return None


def _as_range(value: Any) -> Optional[tuple]:
    if not isinstance(value, (list, tuple)) or len(value) != 2:
        return None
    low, high = as_number(value[0]), as_number(value[1])
    if low is None or high is None:
        return None
    return (low, high)


def _as_parts(value: Any) -> dict:
    if not isinstance(value, dict):
        return {}
    parts = {}
    for key, raw in value.items():
        number = as_number(raw)
        if number is not None:
            parts[str(key)] = number
    return parts


def _prompt_text(c: dict) -> str:
    for key in ("prompt", "question", "question_text", "text"):
        value = c.get(key)
        if isinstance(value, str) and value.strip():
            return value.strip()
    return ""


def resolve_answer(declared_type: str, answer: dict):
    """Return (type, answer_model) after the degrade chain, or None."""
    exact = as_number(answer.get("exact"))
    bounds = _as_range(answer.get("range"))
    parts = _as_parts(answer.get("parts"))

    qtype = declared_type if declared_type in KNOWN_TYPES else "numeric"

    if qtype == "multi_part":
        if parts:
            return "multi_part", PartsAnswer(parts=parts)
        qtype = "free_text"

    if qtype == "numeric":
        if exact is not None:
            return "numeric", ExactAnswer(exact=exact)
        if bounds is not None:
            return "free_text", RangeAnswer(range=bounds)
        return None

    # free_text
    if bounds is not None:
        return "free_text", RangeAnswer(range=bounds)
    if exact is not None:
        return "numeric", ExactAnswer(exact=exact)
    return None


# ---------------------------------------------------------------------------
# Hint screening
# ---------------------------------------------------------------------------

def answer_values(answer) -> list:
    """Exact and part values a hint must not spell out."""
    if isinstance(answer, ExactAnswer):
        return [answer.exact]
    if isinstance(answer, PartsAnswer):
        return list(answer.parts.values())
    return []


def hint_reveals_answer(hint: str, answer) -> bool:
    """Best-effort: does the hint contain a key value as a standalone number?"""
    for value in answer_values(answer):
        literal = re.escape(format_number(value))
        if re.search(rf"(?<![\d.]){literal}(?![\d]|\.\d)", hint):
            return True
    return False


def clean_hints(raw: Any, answer) -> list[str]:
    """Trim, drop empties and revealing hints, cap at 3; generic hints if none survive."""
    if isinstance(raw, str):
        raw = [raw]
    if not isinstance(raw, (list, tuple)):
        raw = []
    hints = []
    for item in raw:
        if not isinstance(item, str):
            continue
        text = item.strip()
        if not text:
            continue
        if hint_reveals_answer(text, answer):
            logger.info("Dropping hint that reveals the answer: %r", text[:80])
            continue
        hints.append(text)
        if len(hints) == MAX_HINTS:
            break
    return hints or list(GENERIC_HINTS)


# ---------------------------------------------------------------------------
# Public API
# ---------------------------------------------------------------------------

def normalize_candidate(
    candidate: Any, index: int, context: NormalizationContext
) -> Optional[Question]:
    """Coerce one raw candidate into a Question, or None if it cannot be saved."""
    if not isinstance(candidate, dict):
        return None

    prompt = _prompt_text(candidate)
    if not prompt:
        return None

    raw_type = candidate.get("type")
    declared = raw_type.strip().lower() if isinstance(raw_type, str) else ""
    answer = candidate.get("answer")
    resolved = resolve_answer(declared, answer if isinstance(answer, dict) else {})
    if resolved is None:
        logger.debug("Rejecting candidate %d: no usable answer (%r)", index, answer)
        return None
    qtype, answer_model = resolved

    hints = clean_hints(candidate.get("hints", candidate.get("hint")), answer_model)

    concept = candidate.get("concept")
    concept = concept.strip() if isinstance(concept, str) else ""
    if not concept:
        plan = context.topic_plan
        if 0 <= index < len(plan):
            concept = plan[index]
        elif plan:
            concept = plan[0]
        else:
            concept = DEFAULT_CONCEPT

    try:
        return Question(
            id=f"{context.id_prefix}-{index + 1}",
            concept=concept,
            difficulty=context.difficulty,
            type=qtype,
            prompt=prompt,
            answer=answer_model,
            hints=hints,
        )
    except ValidationError as exc:
        logger.warning("Rejecting candidate %d: %s", index, exc)
        return None
