"""
Answer evaluation pipeline — four tiers, first answer wins.

  STAGE 1 — Deterministic
    Normalize the submission and compare against the answer key:
      numeric     equality with answer.exact
      free_text   inclusive membership of answer.range
      multi_part  every named part equal
      other       case-insensitive trimmed text equality with a string exact
    A correct result here is authoritative and returns immediately.

  STAGE 2 — Judgment cache
    Keyed by question identity + normalized submission. A hit returns the
    stored verdict with source="cache".

  STAGE 3 — Generative judge
    Given the deterministic result as a hint only. Failures count as "no
    judgment". Successful judgments are cached before returning.

  STAGE 4 — Heuristic
    One of the question's own hints, or a type-specific coaching message.

Any unexpected error becomes a source="error" verdict; evaluate() never raises.
"""
from __future__ import annotations

import logging
import math
import random
import re
from dataclasses import dataclass
from typing import Any, Optional

from mathsprint.models.practice import Question, Submission, Verdict
from mathsprint.services.judgment_cache import JudgmentCache, cache_key
from mathsprint.services.telemetry import MetricsSink, NullMetrics

logger = logging.getLogger("mathsprint.answer_evaluator")

_NUMBER_RE = re.compile(r"-?\d+(?:\.\d+)?")

POSITIVE_PHRASES = [
    "Great job!",
    "Nice work, that's right!",
    "Spot on!",
    "You got it!",
    "Excellent thinking!",
]

APOLOGY = "Sorry, we couldn't check that answer right now. Let's keep going!"
DEFAULT_TIP = "Keep trying! Take another look at the question."


@dataclass(frozen=True)
class DeterministicResult:
    correct: bool
    normalized: Submission


def _is_finite_number(value: Any) -> bool:
    return (
        isinstance(value, (int, float))
        and not isinstance(value, bool)
        and math.isfinite(value)
    )


def normalize_submission(submission: Any) -> Submission:
    """Coerce free-form input into a Submission. Strings are treated as raw text."""
    if isinstance(submission, Submission):
        submission = submission.model_dump()
    elif isinstance(submission, str):
        submission = {"raw": submission}
    if not isinstance(submission, dict):
        return Submission()

    raw = submission.get("raw") if isinstance(submission.get("raw"), str) else ""
    text = submission.get("text") if isinstance(submission.get("text"), str) else raw

    numeric = submission.get("numeric")
    if not _is_finite_number(numeric):
        match = _NUMBER_RE.search(raw)
        numeric = float(match.group(0)) if match else None

    parts = {}
    raw_parts = submission.get("parts")
    if isinstance(raw_parts, dict):
        for key, value in raw_parts.items():
            if _is_finite_number(value):
                parts[str(key)] = value

    return Submission(raw=raw, text=text, numeric=numeric, parts=parts)


def question_view(question: Any) -> dict:
    """Plain-dict view of a Question model or a loosely-typed question payload."""
    if isinstance(question, Question):
        return question.model_dump()
    if isinstance(question, dict):
        return question
    return {}


def evaluate_deterministic(question: Any, submission: Any) -> DeterministicResult:
    normalized = normalize_submission(submission)
    q = question_view(question)
    if not q:
        return DeterministicResult(False, normalized)

    qtype = q.get("type") or "text"
    answer = q.get("answer") or {}
    correct = False

    if qtype == "numeric":
        exact = answer.get("exact")
        if _is_finite_number(exact) and normalized.numeric is not None:
            correct = normalized.numeric == exact
    elif qtype == "free_text":
        bounds = answer.get("range")
        if (
            isinstance(bounds, (list, tuple))
            and len(bounds) == 2
            and all(_is_finite_number(v) for v in bounds)
            and normalized.numeric is not None
        ):
            low, high = bounds
            correct = low <= normalized.numeric <= high
    elif qtype == "multi_part":
        expected = answer.get("parts") or {}
        if expected:
            correct = all(normalized.parts.get(k) == v for k, v in expected.items())
    elif isinstance(answer.get("exact"), str):
        correct = normalized.text.strip().lower() == answer["exact"].strip().lower()

    return DeterministicResult(correct, normalized)


def heuristic_feedback(question: Any, normalized: Submission, rng: random.Random) -> str:
    q = question_view(question)
    hints = [h for h in (q.get("hints") or []) if isinstance(h, str) and h.strip()]
    if hints:
        return rng.choice(hints)

    qtype = q.get("type")
    if qtype == "numeric":
        return "Check your place values: line up the ones, tens, and hundreds, then try again."
    if qtype == "free_text":
        return "Round each number first, then estimate. Your answer should land near the rounded total."
    if qtype == "multi_part":
        expected = (q.get("answer") or {}).get("parts") or {}
        missing = [k for k in expected if k not in normalized.parts]
        if missing:
            return f"Make sure you answer every part: {', '.join(missing)}."
        return "Compare each part with the place you are rounding to, and check them one at a time."
    return "Break the problem into smaller steps and try again."


class EvaluationPipeline:
    def __init__(
        self,
        judge=None,
        cache: Optional[JudgmentCache] = None,
        metrics: Optional[MetricsSink] = None,
        rng: Optional[random.Random] = None,
    ):
        self.judge = judge
        self.cache = cache if cache is not None else JudgmentCache()
        self.metrics = metrics or NullMetrics()
        self.rng = rng or random.Random()

    async def evaluate(self, question: Question | dict, submission: Any) -> Verdict:
        try:
            return await self._evaluate(question, submission)
        except Exception:
            logger.exception("Evaluation failed; returning apology verdict")
            self.metrics.increment("judge", "error")
            return Verdict(correct=False, source="error", feedback=APOLOGY)

    async def _evaluate(self, question, submission) -> Verdict:
        # Stage 1
        deterministic = evaluate_deterministic(question, submission)
        normalized = deterministic.normalized
        if deterministic.correct:
            self.metrics.increment("judge", "deterministic")
            return Verdict(
                correct=True, source="deterministic", feedback=self.rng.choice(POSITIVE_PHRASES),
            )

        # Stage 2
        q = question_view(question)
        key = cache_key(str(q.get("id") or q.get("prompt") or ""), normalized)
        cached = self.cache.get(key)
        if cached is not None:
            self.metrics.increment("judge", "cache")
            return cached.model_copy(update={"source": "cache"})

        # Stage 3
        if self.judge is not None:
            result = await self._judge(q, normalized, deterministic.correct)
            if result is not None:
                feedback = result.tip or (
                    self.rng.choice(POSITIVE_PHRASES) if result.correct else DEFAULT_TIP
                )
                verdict = Verdict(correct=result.correct, source="generative", feedback=feedback)
                self.cache.put(key, verdict)
                self.metrics.increment("judge", "generative")
                return verdict

        # Stage 4
        self.metrics.increment("judge", "heuristic")
        return Verdict(
            correct=False, source="heuristic",
            feedback=heuristic_feedback(q, normalized, self.rng),
        )

    async def _judge(self, q: dict, normalized: Submission, hint: bool):
        try:
            return await self.judge.judge(q, normalized, hint)
        except Exception as exc:
            logger.warning("Judge raised instead of returning None: %s", exc)
            return None
