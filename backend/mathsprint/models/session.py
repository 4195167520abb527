"""Session state and the events that move it.

SessionState is immutable; the runtime replaces it wholesale through
transition(state, event). questions and responses only ever grow, and nothing
changes once phase is "ended".
"""
from __future__ import annotations

from dataclasses import dataclass, field
from typing import Literal, Optional, Union

from mathsprint.models.practice import Question, Submission, Verdict

Phase = Literal["running", "waiting_for_more", "ended"]

NO_FRESH_QUESTIONS = "No fresh questions available right now."
REFILL_FAILED = "Could not load more questions."


@dataclass(frozen=True)
class ResponseRecord:
    question_id: str
    submission: Submission
    verdict: Verdict


@dataclass(frozen=True)
class SessionState:
    duration: int
    time_remaining: int
    questions: tuple[Question, ...] = ()
    used_ids: frozenset[str] = frozenset()
    cursor: int = 0
    score: int = 0
    responses: tuple[ResponseRecord, ...] = ()
    phase: Phase = "running"
    awaiting_ack: bool = False
    refill_in_flight: bool = False
    exhausted: bool = False
    last_refill_at: Optional[float] = None
    refill_count: int = 0
    buffer_error: Optional[str] = None

    @property
    def current_question(self) -> Optional[Question]:
        if self.phase == "ended" or not self.questions:
            return None
        return self.questions[self.cursor]

    @property
    def remaining(self) -> int:
        """Questions queued after the current one."""
        return len(self.questions) - self.cursor - 1

    @property
    def total(self) -> int:
        return len(self.responses)

    def summary(self) -> dict:
        return {"score": self.score, "total": self.total}


# ── Events ───────────────────────────────────────────────────────────────────

@dataclass(frozen=True)
class Tick:
    pass


@dataclass(frozen=True)
class AnswerRecorded:
    question_id: str
    submission: Submission
    verdict: Verdict


@dataclass(frozen=True)
class Dismiss:
    pass


@dataclass(frozen=True)
class RefillStarted:
    at: float


@dataclass(frozen=True)
class RefillCompleted:
    batch: tuple[Question, ...] = field(default_factory=tuple)


@dataclass(frozen=True)
class RefillFailed:
    message: str = REFILL_FAILED


@dataclass(frozen=True)
class End:
    pass


SessionEvent = Union[Tick, AnswerRecorded, Dismiss, RefillStarted, RefillCompleted, RefillFailed, End]
