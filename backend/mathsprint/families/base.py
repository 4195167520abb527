"""Base contract for seeded question families.

Every concept family (e.g. Fractions, Geometry) subclasses QuestionFamily and
overrides build(). Families compute the answer key with answer_computer and
never guess; hints are screened so they do not spell out key values.
"""

from mathsprint.models.practice import (
    ExactAnswer,
    PartsAnswer,
    Question,
    RangeAnswer,
)
from mathsprint.services.question_normalizer import clean_hints
from mathsprint.utils.randomness import LcgRandom


def scaled(difficulty: str, less: int, same: int, more: int) -> int:
    """Pick a bound by difficulty tier: less shrinks, more widens."""
    if difficulty == "more":
        return more
    if difficulty == "same":
        return same
    return less


class QuestionFamily:
    family_tag: str = ""
    keywords: tuple[str, ...] = ()

    def matches(self, concept: str) -> bool:
        lower = concept.lower()
        return any(keyword in lower for keyword in self.keywords)

    def build(self, rng: LcgRandom, concept: str, difficulty: str, index: int) -> Question:
        raise NotImplementedError

    # ── helpers shared by families ──

    def numeric(self, qid, concept, difficulty, prompt, exact, hints) -> Question:
        answer = ExactAnswer(exact=exact)
        return Question(
            id=qid, concept=concept, difficulty=difficulty, type="numeric",
            prompt=prompt, answer=answer, hints=clean_hints(hints, answer),
        )

    def ranged(self, qid, concept, difficulty, prompt, low, high, hints) -> Question:
        answer = RangeAnswer(range=(low, high))
        return Question(
            id=qid, concept=concept, difficulty=difficulty, type="free_text",
            prompt=prompt, answer=answer, hints=clean_hints(hints, answer),
        )

    def multi_part(self, qid, concept, difficulty, prompt, parts, hints) -> Question:
        answer = PartsAnswer(parts=parts)
        return Question(
            id=qid, concept=concept, difficulty=difficulty, type="multi_part",
            prompt=prompt, answer=answer, hints=clean_hints(hints, answer),
        )
