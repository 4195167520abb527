"""Whole-number operations — addition/subtraction, multiplication, division."""

from .base import QuestionFamily, scaled
from mathsprint.utils.answer_computer import add, divide_exact, multiply, subtract


class AdditionFamily(QuestionFamily):
    family_tag = "addition"
    keywords = ("addition", "subtraction", "sum", "difference", "algebra", "equation")

    def build(self, rng, concept, difficulty, index):
        max_base = scaled(difficulty, 199, 499, 999)
        a = rng.randint(12, max_base)
        b = rng.randint(8, max_base)
        is_subtraction = rng.random() > 0.5

        if is_subtraction:
            top, bottom = max(a, b), min(a, b)
            prompt = f"What is {top} - {bottom}?"
            exact = subtract(top, bottom)
            strategy = "Borrow if the top digit is smaller, then subtract each place value."
        else:
            prompt = f"What is {a} + {b}?"
            exact = add(a, b)
            strategy = "Add ones, then tens, then hundreds. Carry if needed."

        return self.numeric(
            f"q-add-{index}", concept, difficulty, prompt, exact,
            ["Stack the numbers so the ones place lines up.", strategy],
        )


class MultiplicationFamily(QuestionFamily):
    family_tag = "multiplication"
    keywords = ("multiplication", "times", "product")

    def build(self, rng, concept, difficulty, index):
        max_factor = scaled(difficulty, 9, 12, 19)
        a = rng.randint(3, max_factor)
        b = rng.randint(10 if difficulty == "more" else 3, max_factor)
        return self.numeric(
            f"q-mult-{index}", concept, difficulty, f"Compute {a} × {b}.", multiply(a, b),
            [
                "Use a strategy you like: skip count, or break a factor into tens and ones.",
                f"Try {a} × {b - 1} first, then add one more group of {a}.",
            ],
        )


class DivisionFamily(QuestionFamily):
    family_tag = "division"
    keywords = ("division", "quotient")

    def build(self, rng, concept, difficulty, index):
        divisor = rng.randint(2, 12 if difficulty == "more" else 9)
        quotient = rng.randint(2, 25 if difficulty == "more" else 12)
        dividend = multiply(divisor, quotient)
        return self.numeric(
            f"q-div-{index}", concept, difficulty, f"What is {dividend} ÷ {divisor}?",
            divide_exact(dividend, divisor),
            [
                "Think \"how many groups\" or \"how many in each group.\"",
                f"You can skip count by {divisor} until you reach {dividend}.",
            ],
        )
