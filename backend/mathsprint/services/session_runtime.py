"""
Session runtime — timed practice over a growing question buffer.

Two layers:

  transition(state, event) -> state
      Pure reducer. Every phase change, score update and buffer merge happens
      here, so each rule can be unit-tested without timers or I/O.

  SessionRuntime
      Async driver. Owns the 1-second tick task and the refill task, calls
      the question source and the evaluation pipeline, and applies events to
      the single state container under an asyncio.Lock so completions never
      interleave mid-update.

Phases:
  running           accepting answers for questions[cursor]
  waiting_for_more  an advance ran off the end of the buffer; the increment is
                    deferred until a refill lands
  ended             terminal; every later event is a no-op
"""
from __future__ import annotations

import asyncio
import logging
import math
import time
import uuid
from dataclasses import replace
from typing import Callable, Optional

from mathsprint.models.practice import BatchRequest, Question, Verdict, WorksheetAnalysis
from mathsprint.models.session import (
    NO_FRESH_QUESTIONS,
    AnswerRecorded,
    Dismiss,
    End,
    RefillCompleted,
    RefillFailed,
    RefillStarted,
    ResponseRecord,
    SessionEvent,
    SessionState,
    Tick,
)
from mathsprint.services.answer_evaluator import normalize_submission

logger = logging.getLogger("mathsprint.session_runtime")

DEFAULT_REFILL_THRESHOLD = 3
DEFAULT_REFILL_COOLDOWN = 4.0
DEFAULT_REFILL_BATCH = 10
HISTORY_LIMIT = 10


class SubmissionRejected(Exception):
    """Raised when an answer arrives while the session cannot take one."""


# ---------------------------------------------------------------------------
# Reducer
# ---------------------------------------------------------------------------

def _unique(questions) -> list[Question]:
    seen: set[str] = set()
    out = []
    for q in questions:
        if q.id in seen:
            continue
        seen.add(q.id)
        out.append(q)
    return out


def new_session(duration_seconds: int, questions) -> SessionState:
    batch = tuple(_unique(questions))
    return SessionState(
        duration=duration_seconds,
        time_remaining=duration_seconds,
        questions=batch,
        used_ids=frozenset(q.id for q in batch),
        phase="running" if batch and duration_seconds > 0 else "ended",
    )


def _advance(state: SessionState) -> SessionState:
    if state.cursor + 1 < len(state.questions):
        return replace(state, cursor=state.cursor + 1, phase="running")
    if state.exhausted:
        return replace(state, phase="ended")
    return replace(state, phase="waiting_for_more")


def _retag(question: Question, refill_count: int, idx: int) -> Question:
    return question.model_copy(update={"id": f"{question.id}-r{refill_count}-{idx}"})


def _merge_batch(state: SessionState, batch) -> SessionState:
    refill_count = state.refill_count + 1
    prompts = {q.id: q.prompt for q in state.questions}
    fresh = []
    for idx, q in enumerate(_unique(batch)):
        if q.id not in state.used_ids:
            fresh.append(q)
        elif prompts.get(q.id) != q.prompt:
            # Reused id on a different question (seeded ids restart per batch).
            fresh.append(_retag(q, refill_count, idx))

    if not fresh and batch:
        # Everything was a repeat; keep the batch under new ids so the session moves on.
        fresh = [_retag(q, refill_count, idx) for idx, q in enumerate(batch)]
    fresh = [q for q in _unique(fresh) if q.id not in state.used_ids]

    if not fresh:
        exhausted = replace(
            state,
            refill_in_flight=False,
            refill_count=refill_count,
            exhausted=True,
            buffer_error=NO_FRESH_QUESTIONS,
        )
        if state.phase == "waiting_for_more":
            return replace(exhausted, phase="ended")
        return exhausted

    grown = replace(
        state,
        questions=state.questions + tuple(fresh),
        used_ids=state.used_ids | {q.id for q in fresh},
        refill_in_flight=False,
        refill_count=refill_count,
        exhausted=False,
        buffer_error=None,
    )
    if grown.phase == "waiting_for_more":
        return _advance(grown)
    return grown


def transition(state: SessionState, event: SessionEvent) -> SessionState:
    if state.phase == "ended":
        return state

    if isinstance(event, Tick):
        remaining = max(0, state.time_remaining - 1)
        if remaining == 0:
            return replace(state, time_remaining=0, phase="ended")
        return replace(state, time_remaining=remaining)

    if isinstance(event, AnswerRecorded):
        current = state.current_question
        if (
            state.phase != "running"
            or state.awaiting_ack
            or current is None
            or current.id != event.question_id
        ):
            return state
        recorded = replace(
            state,
            responses=state.responses + (
                ResponseRecord(event.question_id, event.submission, event.verdict),
            ),
            score=state.score + (1 if event.verdict.correct else 0),
        )
        if event.verdict.correct:
            return _advance(recorded)
        return replace(recorded, awaiting_ack=True)

    if isinstance(event, Dismiss):
        if not state.awaiting_ack:
            return state
        return _advance(replace(state, awaiting_ack=False))

    if isinstance(event, RefillStarted):
        return replace(state, refill_in_flight=True, last_refill_at=event.at, buffer_error=None)

    if isinstance(event, RefillCompleted):
        return _merge_batch(state, event.batch)

    if isinstance(event, RefillFailed):
        # Transient: the source is not known-exhausted, so the tick loop retries.
        return replace(state, refill_in_flight=False, buffer_error=event.message)

    if isinstance(event, End):
        return replace(state, phase="ended")

    raise TypeError(f"Unknown session event: {event!r}")


def should_refill(
    state: SessionState,
    now: float,
    threshold: int = DEFAULT_REFILL_THRESHOLD,
    cooldown: float = DEFAULT_REFILL_COOLDOWN,
) -> bool:
    if state.phase == "ended" or state.refill_in_flight or state.exhausted:
        return False
    if state.phase != "waiting_for_more" and state.remaining > threshold:
        return False
    return state.last_refill_at is None or now - state.last_refill_at >= cooldown


def refill_size(duration_seconds: int, batch_min: int = DEFAULT_REFILL_BATCH) -> int:
    """Two questions per minute of session, never fewer than batch_min."""
    return max(batch_min, math.ceil(duration_seconds / 60 * 2))


# ---------------------------------------------------------------------------
# Async driver
# ---------------------------------------------------------------------------

def _random_seed() -> str:
    return uuid.uuid4().hex[:10]


class SessionRuntime:
    def __init__(
        self,
        source,
        pipeline,
        *,
        duration_seconds: int = 300,
        concepts: Optional[list[str]] = None,
        difficulty: str = "same",
        grade: str = "",
        analysis: Optional[WorksheetAnalysis] = None,
        initial_batch_size: int = DEFAULT_REFILL_BATCH,
        refill_threshold: int = DEFAULT_REFILL_THRESHOLD,
        refill_cooldown: float = DEFAULT_REFILL_COOLDOWN,
        refill_batch_min: int = DEFAULT_REFILL_BATCH,
        clock: Callable[[], float] = time.monotonic,
        tick_interval: float = 1.0,
        seed_factory: Callable[[], str] = _random_seed,
        session_id: Optional[str] = None,
    ):
        self.source = source
        self.pipeline = pipeline
        self.session_id = session_id or str(uuid.uuid4())
        self.duration_seconds = duration_seconds
        self.concepts = list(concepts or [])
        self.difficulty = difficulty
        self.grade = grade
        self.analysis = analysis
        self.initial_batch_size = initial_batch_size
        self.refill_threshold = refill_threshold
        self.refill_cooldown = refill_cooldown
        self.refill_batch_min = refill_batch_min
        self.clock = clock
        self.tick_interval = tick_interval
        self.seed_factory = seed_factory

        self.state = SessionState(duration=duration_seconds, time_remaining=duration_seconds)
        self.summary: Optional[dict] = None
        self._lock = asyncio.Lock()
        self._ended = asyncio.Event()
        self._evaluating = False
        self._tick_task: Optional[asyncio.Task] = None
        self._refill_task: Optional[asyncio.Task] = None
        self._started = False
        self._end_callbacks: list[Callable[[SessionRuntime], None]] = []

    # ── lifecycle ───────────────────────────────────────────────────────────

    async def start(self) -> SessionState:
        if self._started:
            return self.state
        self._started = True

        batch = await self.source.request_batch(self._batch_request(self.initial_batch_size))
        async with self._lock:
            self.state = new_session(self.duration_seconds, batch)
            if self.state.phase == "ended":
                logger.warning("Session %s: initial batch was empty, ending", self.session_id)
                self._on_ended()
                return self.state

        logger.info(
            "Session %s started: %d question(s), %ds", self.session_id,
            len(self.state.questions), self.duration_seconds,
        )
        self._tick_task = asyncio.create_task(self._run_ticks())
        await self._maybe_refill()
        return self.state

    async def stop(self) -> SessionState:
        return await self._apply(End())

    async def wait_until_ended(self) -> dict:
        await self._ended.wait()
        return self.summary

    @property
    def ended(self) -> bool:
        return self.state.phase == "ended"

    def on_end(self, callback: Callable[[SessionRuntime], None]) -> None:
        """Call callback(runtime) once the session ends (immediately if it already has)."""
        if self._ended.is_set():
            callback(self)
        else:
            self._end_callbacks.append(callback)

    # ── learner actions ─────────────────────────────────────────────────────

    async def submit(self, submission) -> Verdict:
        async with self._lock:
            state = self.state
            if state.phase != "running" or state.time_remaining <= 0:
                raise SubmissionRejected(f"session is {state.phase}")
            if not self._started or state.current_question is None:
                raise SubmissionRejected("session has no question to answer yet")
            if state.awaiting_ack:
                raise SubmissionRejected("dismiss the last feedback before answering")
            if self._evaluating:
                raise SubmissionRejected("an answer is already being evaluated")
            self._evaluating = True
            question = state.current_question

        try:
            verdict = await self.pipeline.evaluate(question, submission)
            # Dropped by the reducer if the session ended while we waited.
            await self._apply(AnswerRecorded(question.id, normalize_submission(submission), verdict))
        finally:
            self._evaluating = False

        await self._maybe_refill()
        return verdict

    async def dismiss(self) -> SessionState:
        state = await self._apply(Dismiss())
        await self._maybe_refill()
        return state

    # ── internals ───────────────────────────────────────────────────────────

    async def _apply(self, event: SessionEvent) -> SessionState:
        async with self._lock:
            before = self.state
            self.state = transition(before, event)
            if self.state.phase == "ended" and before.phase != "ended":
                self._on_ended()
            return self.state

    def _on_ended(self) -> None:
        """Runs once, on the first transition into ended."""
        self.summary = self.state.summary()
        current = asyncio.current_task()
        for task in (self._tick_task, self._refill_task):
            if task is not None and task is not current and not task.done():
                task.cancel()
        self._tick_task = self._refill_task = None
        self._ended.set()
        callbacks, self._end_callbacks = self._end_callbacks, []
        for callback in callbacks:
            try:
                callback(self)
            except Exception:
                logger.exception("Session %s: end callback failed", self.session_id)
        logger.info(
            "Session %s ended: score %d/%d", self.session_id,
            self.summary["score"], self.summary["total"],
        )

    async def _run_ticks(self) -> None:
        while True:
            await asyncio.sleep(self.tick_interval)
            state = await self._apply(Tick())
            if state.phase == "ended":
                return
            # Refills held back by the cooldown get another chance every tick.
            await self._maybe_refill()

    async def _maybe_refill(self) -> None:
        now = self.clock()
        async with self._lock:
            if not should_refill(self.state, now, self.refill_threshold, self.refill_cooldown):
                return
            self.state = transition(self.state, RefillStarted(at=now))
            request = self._batch_request(
                refill_size(self.duration_seconds, self.refill_batch_min),
                history=[q.prompt for q in self.state.questions[-HISTORY_LIMIT:]],
            )
        logger.debug("Session %s: refill requested (%d)", self.session_id, request.count)
        self._refill_task = asyncio.create_task(self._refill(request))

    async def _refill(self, request: BatchRequest) -> None:
        try:
            batch = await self.source.request_batch(request)
        except Exception as exc:
            logger.error("Session %s: refill failed: %s", self.session_id, exc)
            await self._apply(RefillFailed())
            return
        state = await self._apply(RefillCompleted(tuple(batch)))
        if state.buffer_error:
            logger.info("Session %s: %s", self.session_id, state.buffer_error)

    def _batch_request(self, count: int, history: Optional[list[str]] = None) -> BatchRequest:
        return BatchRequest(
            concepts=self.concepts,
            difficulty=self.difficulty if self.difficulty in ("less", "same", "more") else "same",
            count=count,
            grade=self.grade,
            analysis=self.analysis,
            history=history or [],
            seed=self.seed_factory(),
        )

    def snapshot(self) -> dict:
        state = self.state
        question = state.current_question
        return {
            "session_id": self.session_id,
            "phase": state.phase,
            "cursor": state.cursor,
            "score": state.score,
            "total": state.total,
            "time_remaining": state.time_remaining,
            "buffered": len(state.questions),
            "awaiting_ack": state.awaiting_ack,
            "buffer_error": state.buffer_error,
            "question": question,
            "summary": self.summary,
        }
