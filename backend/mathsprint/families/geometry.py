"""Rectangle area, and box volume at the harder tier."""

from .base import QuestionFamily
from mathsprint.utils.answer_computer import multiply


class GeometryFamily(QuestionFamily):
    family_tag = "geometry"
    keywords = ("geometry", "area", "perimeter", "volume")

    def build(self, rng, concept, difficulty, index):
        length = rng.randint(4, 18 if difficulty == "more" else 12)
        width = rng.randint(3, 16 if difficulty == "more" else 10)
        height = rng.randint(3, 10)
        use_volume = difficulty == "more" and rng.random() > 0.5

        if use_volume:
            return self.numeric(
                f"q-geom-vol-{index}", concept, difficulty,
                f"A box is {length} cm long, {width} cm wide, and {height} cm tall. "
                "What is its volume?",
                multiply(length, width, height),
                [
                    "Volume of a rectangular prism is length × width × height.",
                    f"Multiply {length} × {width} first, then multiply by {height}.",
                ],
            )

        return self.numeric(
            f"q-geom-{index}", concept, difficulty,
            f"What is the area of a rectangle with length {length} cm and width {width} cm?",
            multiply(length, width),
            [
                "Area of a rectangle is length × width.",
                f"Count how many groups of {width} fit into {length} rows.",
            ],
        )
