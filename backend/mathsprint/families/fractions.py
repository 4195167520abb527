"""Fraction of a set — "What is 3/4 of 24 shapes?"."""

from .base import QuestionFamily
from mathsprint.utils.answer_computer import fraction_of

_DENOMINATORS = (2, 3, 4, 5, 8)


class FractionFamily(QuestionFamily):
    family_tag = "fractions"
    keywords = ("fraction",)

    def build(self, rng, concept, difficulty, index):
        denominator = _DENOMINATORS[rng.randint(0, len(_DENOMINATORS) - 1)]
        # Easier tiers keep the numerator at 1 or 2 so the unit fraction stays visible.
        top = denominator - 1 if difficulty == "more" else min(denominator - 1, 2)
        numerator = min(max(rng.randint(1, top), 1), denominator - 1)
        groups = rng.randint(2, 12 if difficulty == "more" else 8)
        whole = groups * denominator

        return self.numeric(
            f"q-frac-{index}", concept, difficulty,
            f"A sheet has {whole} shapes. What is {numerator}/{denominator} of them?",
            fraction_of(whole, numerator, denominator),
            [
                f"Find {numerator} out of every {denominator} shapes.",
                f"There are {groups} groups of {denominator}. Multiply {groups} × {numerator}.",
            ],
        )
