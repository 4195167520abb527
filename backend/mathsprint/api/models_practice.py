from pydantic import BaseModel, Field
from typing import Any, Optional

from mathsprint.models.practice import Difficulty, Question, QuestionType, Verdict, WorksheetAnalysis


# ──────────────────────────────────────────────
# Request schemas
# ──────────────────────────────────────────────

class FeedbackRequest(BaseModel):
    question: dict
    submission: Any = None


class SessionCreateRequest(BaseModel):
    concepts: list[str] = []
    difficulty: Difficulty = "same"
    duration_minutes: Optional[int] = Field(default=None, ge=1, le=60)
    grade: str = ""
    analysis: Optional[WorksheetAnalysis] = None


class AnswerRequest(BaseModel):
    raw: str = ""
    text: Optional[str] = None
    numeric: Optional[float] = None
    parts: dict[str, Any] = {}


# ──────────────────────────────────────────────
# Response schemas
# ──────────────────────────────────────────────

class QuestionsResponse(BaseModel):
    questions: list[Question]
    generation_time_ms: int


class LearnerQuestion(BaseModel):
    """A question as the learner sees it: no answer key."""
    id: str
    concept: str
    difficulty: Difficulty
    type: QuestionType
    prompt: str
    hints: list[str]
    part_labels: list[str] = []

    @classmethod
    def from_question(cls, question: Question) -> "LearnerQuestion":
        labels = list(getattr(question.answer, "parts", {}) or {})
        return cls(
            id=question.id,
            concept=question.concept,
            difficulty=question.difficulty,
            type=question.type,
            prompt=question.prompt,
            hints=list(question.hints),
            part_labels=labels,
        )


class SessionSummary(BaseModel):
    score: int
    total: int


class SessionResponse(BaseModel):
    session_id: str
    phase: str
    cursor: int
    score: int
    total: int
    time_remaining: int
    buffered: int
    awaiting_ack: bool = False
    buffer_error: Optional[str] = None
    question: Optional[LearnerQuestion] = None
    summary: Optional[SessionSummary] = None


class AnswerResponse(BaseModel):
    verdict: Verdict
    session: SessionResponse


class TelemetryResponse(BaseModel):
    counters: dict[str, dict[str, int]]
