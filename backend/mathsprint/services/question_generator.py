"""
Augmented question generator — asks the LLM collaborator for a batch.

Pipeline:
  1. build_prompt_sections() -> topic plan + system/user instructions
  2. AIService.complete_json() -> raw JSON text
  3. normalize_candidate()   -> Question or dropped
  4. zero survivors          -> one retry with the worksheet analysis dropped

Result variants (never None vs []):
  Unavailable          collaborator missing or nothing usable after the retry;
                       the caller falls back to the seeded question bank
  Generated(questions) at least one normalized question
"""
from __future__ import annotations

import json
import logging
from dataclasses import dataclass, field
from typing import Optional

from mathsprint.models.practice import BatchRequest, Question, WorksheetAnalysis
from mathsprint.services.question_normalizer import (
    DEFAULT_CONCEPT,
    NormalizationContext,
    normalize_candidate,
)

logger = logging.getLogger("mathsprint.question_generator")

DEFAULT_MAX_COUNT = 45
HISTORY_LIMIT = 10

_DIFFICULTY_NOTES: dict[str, str] = {
    "less": (
        "Make each problem slightly easier than the worksheet: smaller numbers, "
        "single-step thinking."
    ),
    "same": "Match the worksheet difficulty: similar numbers and complexity.",
    "more": (
        "Make each problem a notch harder than the worksheet: push multi-step reasoning "
        "or larger numbers, but stay appropriate for the grade."
    ),
}

# Authoring reminders keyed by concept keyword (first match wins per concept).
_CONCEPT_REMINDERS: list[tuple[tuple[str, ...], str]] = [
    (("fraction",), "Fractions: use denominators that split the whole evenly; answers stay whole numbers."),
    (("estimat", "round"), "Estimation/rounding: estimates use free_text with answer.range; "
                           "two-place rounding uses multi_part with named parts."),
    (("geometry", "area", "perimeter", "volume"), "Geometry: state units (cm, m) and give every dimension needed."),
    (("multiplication", "times", "product"), "Multiplication: keep factors within the grade's times tables unless told harder."),
    (("division", "quotient"), "Division: choose dividends that divide evenly; no remainders."),
    (("word", "story"), "Word problems: one clear question, no distracting extra numbers for easier tiers."),
    (("place value",), "Place value: ask about digits in named places or rounding to a named place."),
    (("addition", "subtraction", "sum", "difference"), "Addition/subtraction: mix regrouping and non-regrouping problems."),
]


@dataclass
class Unavailable:
    reason: str = "unavailable"


@dataclass
class Generated:
    questions: list[Question] = field(default_factory=list)


GenerationOutcome = Unavailable | Generated


# ---------------------------------------------------------------------------
# Prompt building
# ---------------------------------------------------------------------------

def clamp_text(value: Optional[str], limit: int = 800) -> str:
    if not value:
        return ""
    return value if len(value) <= limit else f"{value[:limit]}…"


def build_topic_plan(concepts: list[str], count: int) -> list[str]:
    """Rotate through the concepts so each shows up fairly."""
    if not concepts:
        return [DEFAULT_CONCEPT] * count
    return [concepts[i % len(concepts)] for i in range(count)]


def recent_history(history: list[str], limit: int = HISTORY_LIMIT) -> list[str]:
    """Most recent unique prompts, oldest first, at most `limit`."""
    seen: set[str] = set()
    unique: list[str] = []
    for prompt in reversed(history or []):
        if not isinstance(prompt, str):
            continue
        text = prompt.strip()
        if not text or text in seen:
            continue
        seen.add(text)
        unique.append(text)
        if len(unique) == limit:
            break
    return list(reversed(unique))


def concept_reminders(concepts: list[str]) -> list[str]:
    reminders: list[str] = []
    for concept in concepts:
        lower = concept.lower()
        for keywords, reminder in _CONCEPT_REMINDERS:
            if any(k in lower for k in keywords):
                if reminder not in reminders:
                    reminders.append(reminder)
                break
    return reminders


def build_analysis_block(analysis: Optional[WorksheetAnalysis]) -> str:
    if analysis is None:
        return "No worksheet details were provided."

    snippets: list[str] = []
    if analysis.difficulty_notes:
        snippets.append(f"Worksheet difficulty notes: {analysis.difficulty_notes}")
    numbers = analysis.number_range
    if numbers and (numbers.min is not None or numbers.max is not None):
        low = numbers.min if numbers.min is not None else "unknown"
        high = numbers.max if numbers.max is not None else "unknown"
        snippets.append(f"Typical number range spotted: min {low}, max {high}.")
    if analysis.question_styles:
        snippets.append(f"Question styles: {', '.join(analysis.question_styles[:4])}")
    if analysis.observations:
        snippets.append(f"Worksheet observation: {clamp_text(analysis.observations[0], 200)}")
    if analysis.text_preview:
        snippets.append(f"Extracted text sample: {clamp_text(analysis.text_preview, 280)}")

    return "\n".join(snippets) if snippets else "No worksheet details were provided."


def build_prompt_sections(
    concepts: list[str],
    difficulty: str,
    count: int,
    grade: str = "",
    analysis: Optional[WorksheetAnalysis] = None,
    history: Optional[list[str]] = None,
    seed: Optional[str] = None,
) -> tuple[str, str, list[str]]:
    """Return (system_prompt, user_prompt, topic_plan)."""
    topic_plan = build_topic_plan(concepts, count)
    plan_lines = "\n".join(f"{i + 1}. {topic}" for i, topic in enumerate(topic_plan))

    grade_line = (
        f"These questions are for a student in grade {grade}."
        if grade else "Grade level is unknown. Assume late elementary math."
    )
    difficulty_note = _DIFFICULTY_NOTES.get(difficulty, _DIFFICULTY_NOTES["same"])

    reminders = concept_reminders(list(dict.fromkeys(topic_plan)))
    reminder_block = "\n".join(f"- {r}" for r in reminders) or "- Keep each question focused on its topic."

    recent = recent_history(history or [])
    history_block = (
        "\n".join(f"- {p}" for p in recent) if recent else "- (none yet)"
    )

    system_prompt = f"""You are a math tutor creating kid-friendly practice questions.
{grade_line}
Difficulty guidance: {difficulty_note}
Generate exactly {count} questions using the topic order below. Rotate through the list so each concept shows up fairly.

Topic plan:
{plan_lines}

Rules:
- Vary the wording to keep questions fun but brief (1-2 sentences).
- Keep numbers reasonable for the grade. Use whole numbers unless estimation specifically calls for ranges.
- Include 1-2 friendly hints focused on strategy. Hints must NOT reveal the exact answer.
- Use the following keys for every question: prompt, type, answer, hints, concept.
- Stick to JSON only; do not add extra fields beyond those keys.
- For estimation questions, set type to "free_text" with answer.range [min, max].
- For rounding questions with two parts, use type "multi_part" and provide named parts like {{ "nearest_ten": 130, "nearest_hundred": 100 }}.
- For standard calculation questions, use type "numeric" with answer.exact.
- Prefer "numeric" or "free_text" types. Use "multi_part" only when you supply named numeric parts.
- Concepts should mirror the assigned topic for each question.

Topic reminders:
{reminder_block}

Variation seed: {seed or "none"} (use it to vary numbers and story contexts).
Do not repeat or lightly reword these recent questions:
{history_block}"""

    user_prompt = (
        f"Worksheet summary:\n{build_analysis_block(analysis)}\n"
        'Return JSON only in the form { "questions": [...] }.'
    )
    return system_prompt, user_prompt, topic_plan


def parse_candidates(content: str) -> list:
    """Pull the questions array out of the collaborator's JSON text."""
    if not content:
        raise ValueError("Empty LLM response for questions")
    parsed = json.loads(content)
    if isinstance(parsed, list):
        items = parsed
    elif isinstance(parsed, dict):
        items = parsed.get("questions")
    else:
        items = None
    if not isinstance(items, list) or not items:
        raise ValueError("LLM response missing questions array")
    return items


# ---------------------------------------------------------------------------
# Generator
# ---------------------------------------------------------------------------

class AugmentedQuestionGenerator:
    def __init__(self, ai_service, model: str = "gpt-4o-mini", max_count: int = DEFAULT_MAX_COUNT):
        self.ai_service = ai_service
        self.model = model
        self.max_count = max_count

    def clamp_count(self, count) -> int:
        try:
            value = int(count)
        except (TypeError, ValueError):
            value = 5
        return max(1, min(value or 5, self.max_count))

    async def generate(self, request: BatchRequest) -> GenerationOutcome:
        if self.ai_service is None:
            return Unavailable("no collaborator configured")

        count = self.clamp_count(request.count)
        concepts = [c for c in request.concepts if c and c.strip()] or [DEFAULT_CONCEPT]

        attempts = [request.analysis]
        # Degrade, not abandon: the retry drops the worksheet analysis.
        attempts.append(None)

        for attempt, analysis in enumerate(attempts, 1):
            questions = await self._attempt(request, concepts, count, analysis, attempt)
            if questions:
                logger.info(
                    "Augmented batch: %d/%d question(s) on attempt %d", len(questions), count, attempt,
                )
                return Generated(questions)

        logger.warning("Augmented generation produced nothing usable after %d attempts", len(attempts))
        return Unavailable("no usable candidates")

    async def _attempt(
        self, request: BatchRequest, concepts: list[str], count: int,
        analysis: Optional[WorksheetAnalysis], attempt: int,
    ) -> list[Question]:
        system_prompt, user_prompt, topic_plan = build_prompt_sections(
            concepts, request.difficulty, count,
            grade=request.grade, analysis=analysis,
            history=request.history, seed=request.seed,
        )
        try:
            content = await self.ai_service.complete_json(
                user_prompt,
                system_prompt=system_prompt,
                model=self.model,
                temperature=0.8,
            )
            candidates = parse_candidates(content)
        except Exception as exc:
            logger.error("Augmented attempt %d failed: %s", attempt, exc)
            return []

        context = NormalizationContext(
            topic_plan=topic_plan,
            difficulty=request.difficulty,
            id_prefix=f"llm-{request.seed}" if request.seed else "llm",
        )
        questions = []
        for index, item in enumerate(candidates[:count]):
            q = normalize_candidate(item, index, context)
            if q is not None:
                questions.append(q)
        dropped = min(len(candidates), count) - len(questions)
        if dropped:
            logger.info("Augmented attempt %d: dropped %d malformed candidate(s)", attempt, dropped)
        return questions
