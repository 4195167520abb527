"""Core practice data model: questions, submissions, verdicts, analysis context.

Questions are immutable once built. The answer key is a tagged union whose
shape must agree with the question type:

    numeric    → {"exact": number}
    free_text  → {"range": [low, high]}
    multi_part → {"parts": {label: number}}
"""
from __future__ import annotations

import math
from typing import Literal, Optional, Union

from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator

Difficulty = Literal["less", "same", "more"]
QuestionType = Literal["numeric", "free_text", "multi_part"]
VerdictSource = Literal["deterministic", "cache", "generative", "heuristic", "error"]

Number = Union[int, float]


class ExactAnswer(BaseModel):
    model_config = ConfigDict(frozen=True, extra="forbid")

    exact: Number


class RangeAnswer(BaseModel):
    model_config = ConfigDict(frozen=True, extra="forbid")

    range: tuple[Number, Number]

    @field_validator("range")
    @classmethod
    def _ordered(cls, value):
        low, high = value
        return (low, high) if low <= high else (high, low)


class PartsAnswer(BaseModel):
    model_config = ConfigDict(frozen=True, extra="forbid")

    parts: dict[str, Number]

    @field_validator("parts")
    @classmethod
    def _non_empty(cls, value):
        if not value:
            raise ValueError("parts answer needs at least one named part")
        return value


AnswerKey = Union[ExactAnswer, RangeAnswer, PartsAnswer]

_ANSWER_FOR_TYPE: dict[str, type] = {
    "numeric": ExactAnswer,
    "free_text": RangeAnswer,
    "multi_part": PartsAnswer,
}


class Question(BaseModel):
    model_config = ConfigDict(frozen=True)

    id: str
    concept: str
    difficulty: Difficulty = "same"
    type: QuestionType
    prompt: str
    answer: AnswerKey
    hints: list[str] = Field(min_length=1, max_length=3)

    @model_validator(mode="after")
    def _answer_matches_type(self):
        expected = _ANSWER_FOR_TYPE[self.type]
        if not isinstance(self.answer, expected):
            raise ValueError(
                f"{self.type} question needs a {expected.__name__}, got {type(self.answer).__name__}"
            )
        return self


class Submission(BaseModel):
    """Learner input after normalization."""

    raw: str = ""
    text: str = ""
    numeric: Optional[float] = None
    parts: dict[str, float] = {}

    @field_validator("numeric")
    @classmethod
    def _finite(cls, value):
        if value is not None and not math.isfinite(value):
            return None
        return value


class Verdict(BaseModel):
    model_config = ConfigDict(frozen=True)

    correct: bool
    source: VerdictSource
    feedback: str


class NumberRange(BaseModel):
    min: Optional[float] = None
    max: Optional[float] = None


class WorksheetAnalysis(BaseModel):
    """Opaque worksheet summary produced upstream; passed through to prompts."""

    concepts: list[str] = []
    difficulty_notes: Optional[str] = None
    number_range: Optional[NumberRange] = None
    observations: list[str] = []
    question_styles: list[str] = []
    text_preview: Optional[str] = None


class BatchRequest(BaseModel):
    concepts: list[str] = []
    difficulty: Difficulty = "same"
    count: int = 10
    grade: str = ""
    analysis: Optional[WorksheetAnalysis] = None
    history: list[str] = []
    seed: Optional[str] = None
