"""
Seeded question bank — deterministic practice questions with no collaborator.

generate_question_set() is a pure function of its arguments: the same concepts,
difficulty, count and seed always give the same questions. It is the floor of
the generation fallback chain and must never fail for well-formed input.

Per slot i:
  concept  = concepts[i % len(concepts)]
  families = every keyword family matching the concept (table order), or the
             defaults (addition, estimation, rounding)
  family   = one draw from families on the shared LCG stream. A draw is
             consumed even when only one family matches, so multi-match and
             single-match concepts advance the stream identically.
"""
import logging
import math

from mathsprint.families.registry import families_for
from mathsprint.models.practice import Question
from mathsprint.utils.randomness import LcgRandom, request_seed

logger = logging.getLogger("mathsprint.question_bank")

DEFAULT_CONCEPTS = ["mixed practice"]
DEFAULT_COUNT = 10
MIN_COUNT = 1
MAX_COUNT = 20
_DIFFICULTIES = ("less", "same", "more")


def clamp_count(count) -> int:
    try:
        value = math.floor(float(count))
    except (TypeError, ValueError, OverflowError):
        value = 0
    if not value:
        value = DEFAULT_COUNT
    return max(MIN_COUNT, min(value, MAX_COUNT))


def generate_question_set(
    concepts: list[str] | None = None,
    difficulty: str = "same",
    count: int = DEFAULT_COUNT,
    seed: str | None = None,
) -> list[Question]:
    safe_count = clamp_count(count)
    concept_list = [c for c in (concepts or []) if isinstance(c, str) and c.strip()]
    if not concept_list:
        concept_list = list(DEFAULT_CONCEPTS)
    if difficulty not in _DIFFICULTIES:
        difficulty = "same"

    rng = LcgRandom(seed or request_seed(concept_list, difficulty, safe_count))

    questions: list[Question] = []
    for i in range(safe_count):
        concept = concept_list[i % len(concept_list)]
        family = rng.choice(families_for(concept))
        questions.append(family.build(rng, concept, difficulty, i))

    logger.debug(
        "Seeded batch: %d question(s) for %s (%s)", len(questions), concept_list, difficulty,
    )
    return questions
