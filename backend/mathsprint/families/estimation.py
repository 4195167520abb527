"""Estimation (range answers) and rounding / place value (two-part answers)."""

from .base import QuestionFamily
from mathsprint.utils.answer_computer import add, round_to_nearest

# Accepted slack either side of the rounded estimate.
ESTIMATE_TOLERANCE = 100


class EstimationFamily(QuestionFamily):
    family_tag = "estimation"
    keywords = ("estimate", "estimation", "round")

    def build(self, rng, concept, difficulty, index):
        a = rng.randint(120, 980)
        b = rng.randint(120, 980)
        rounded_a = round_to_nearest(a, 100)
        rounded_b = round_to_nearest(b, 100)
        estimate = add(rounded_a, rounded_b)

        return self.ranged(
            f"q-est-{index}", concept, difficulty,
            f"Estimate {a} + {b}. Round each number to the nearest hundred before you add.",
            estimate - ESTIMATE_TOLERANCE, estimate + ESTIMATE_TOLERANCE,
            [
                f"Round {a} to {rounded_a} and {b} to {rounded_b}.",
                "Now add the rounded numbers to estimate the sum.",
            ],
        )


class RoundingFamily(QuestionFamily):
    family_tag = "rounding"
    keywords = ("place value",)

    def build(self, rng, concept, difficulty, index):
        number = rng.randint(120, 999)
        return self.multi_part(
            f"q-round-{index}", concept, difficulty,
            f"Round {number} to the nearest ten and the nearest hundred.",
            {"ten": round_to_nearest(number, 10), "hundred": round_to_nearest(number, 100)},
            [
                "Look at the digit to the right of the place you are rounding.",
                "If it is 5 or more, bump the place up. If it is 4 or less, keep it the same.",
            ],
        )
