"""
Practice question source — the one place sessions and the API ask for questions.

Order of preference:
  1. AugmentedQuestionGenerator (when a collaborator is configured)
  2. Seeded question bank (always available)

request_batch() never raises: on total failure it returns [] and the session
runtime's exhaustion logic takes over. Every batch goes through the quality
gate in log-only mode.
"""
import logging
from typing import Optional

from mathsprint.models.practice import BatchRequest, Question
from mathsprint.services.question_bank import generate_question_set
from mathsprint.services.question_generator import Generated
from mathsprint.services.telemetry import MetricsSink, NullMetrics
from mathsprint.utils.quality_gate import run_question_checks

logger = logging.getLogger("mathsprint.question_source")


class PracticeQuestionSource:
    def __init__(self, generator=None, metrics: Optional[MetricsSink] = None):
        self.generator = generator
        self.metrics = metrics or NullMetrics()

    async def request_batch(self, request: BatchRequest) -> list[Question]:
        try:
            questions = await self._augmented(request)
            if questions is None:
                questions = self._seeded(request)
        except Exception:
            logger.exception("Question source failed for %s", request.concepts)
            self.metrics.increment("question", "error")
            return []

        passed, failures = run_question_checks(questions)
        if not passed:
            for failure in failures:
                logger.warning("[quality_gate] %s", failure)
        return questions

    async def _augmented(self, request: BatchRequest) -> Optional[list[Question]]:
        """Generated questions, or None when the seeded bank should take over."""
        if self.generator is None:
            return None
        try:
            outcome = await self.generator.generate(request)
        except Exception as exc:
            logger.error("Augmented generator raised: %s", exc, exc_info=True)
            return None
        if isinstance(outcome, Generated):
            # An empty Generated batch means "nothing new", not "fall back".
            if outcome.questions:
                self.metrics.increment("question", "llm")
            return outcome.questions
        logger.info("Augmented generation unavailable; using seeded bank")
        return None

    def _seeded(self, request: BatchRequest) -> list[Question]:
        questions = generate_question_set(
            request.concepts, request.difficulty, request.count, request.seed,
        )
        self.metrics.increment("question", "heuristic")
        return questions
