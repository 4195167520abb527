"""Equal-groups story problems."""

from .base import QuestionFamily
from mathsprint.utils.answer_computer import multiply


class WordProblemFamily(QuestionFamily):
    family_tag = "word_problem"
    keywords = ("word", "story")

    def build(self, rng, concept, difficulty, index):
        bags = rng.randint(3, 8)
        per_bag = rng.randint(4, 9)
        return self.numeric(
            f"q-word-{index}", concept, difficulty,
            f"A class is making snack bags with {per_bag} chips each. "
            f"They fill {bags} bags. How many chips do they need in all?",
            multiply(bags, per_bag),
            [
                "Each bag has the same number of chips, so think multiplication.",
                f"Multiply {bags} × {per_bag} to find the total chips.",
            ],
        )
