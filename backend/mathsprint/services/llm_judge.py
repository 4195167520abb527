"""LLM judge — asks the collaborator for a verdict plus a coaching tip.

The deterministic result goes into the prompt as a hint only: the judge may
override it when the learner's reasoning is sound (explain-your-thinking
questions have no exact numeric match). Every failure returns None.
"""
from __future__ import annotations

import json
import logging
from dataclasses import dataclass
from typing import Optional, Protocol

from mathsprint.models.practice import Submission

logger = logging.getLogger("mathsprint.llm_judge")


@dataclass(frozen=True)
class JudgeResult:
    correct: bool
    tip: Optional[str] = None


class Judge(Protocol):
    async def judge(
        self, question: dict, submission: Submission, deterministic_hint: bool
    ) -> Optional[JudgeResult]:
        ...


def build_judge_prompt(question: dict, submission: Submission, deterministic_hint: bool) -> str:
    answer = question.get("answer") or {}
    details = []
    if answer.get("exact") is not None:
        details.append(f"Exact answer: {answer['exact']}")
    bounds = answer.get("range")
    if isinstance(bounds, (list, tuple)) and len(bounds) == 2:
        details.append(f"Acceptable range: [{bounds[0]}, {bounds[1]}]")
    parts = answer.get("parts")
    if isinstance(parts, dict) and parts:
        listed = ", ".join(f"{k}:{v}" for k, v in parts.items())
        details.append(f"Required parts (name:value): {listed}")

    concept_line = f"Concept focus: {question['concept']}." if question.get("concept") else ""
    difficulty_line = (
        f"Target difficulty: {question['difficulty']}." if question.get("difficulty") else ""
    )
    numeric = submission.numeric if submission.numeric is not None else "none"
    expected = "\n".join(details) if details else "No structured answer provided."
    hint_word = "CORRECT" if deterministic_hint else "INCORRECT"

    return f"""You are grading a student's short math answer.
{concept_line} {difficulty_line}
Question type: {question.get("type", "text")}.
Question prompt:
\"\"\"
{question.get("prompt", "")}
\"\"\"

Expected answer data:
{expected}

Student submission:
\"\"\"
{submission.raw or submission.text}
\"\"\"
Parsed numeric value (if available): {numeric}
Parsed parts: {json.dumps(submission.parts, sort_keys=True)}
A rule-based check says the answer is {hint_word}. Treat this as a hint only:
you may override it when the student's reasoning is mathematically sound.

Return strict JSON with:
- correct: boolean
- tip: string (do NOT reveal the exact answer; give strategy advice)
"""


def parse_judgment(content: str) -> JudgeResult:
    if not content:
        raise ValueError("Empty judge response")
    parsed = json.loads(content)
    if not isinstance(parsed, dict) or not isinstance(parsed.get("correct"), bool):
        raise ValueError("Judge response missing boolean correct")
    tip = parsed.get("tip")
    tip = tip.strip() if isinstance(tip, str) and tip.strip() else None
    return JudgeResult(correct=parsed["correct"], tip=tip)


class LLMJudge:
    def __init__(self, ai_service, model: str = "gpt-4o-mini"):
        self.ai_service = ai_service
        self.model = model

    async def judge(
        self, question: dict, submission: Submission, deterministic_hint: bool
    ) -> Optional[JudgeResult]:
        if self.ai_service is None:
            return None
        try:
            prompt = build_judge_prompt(question, submission, deterministic_hint)
            content = await self.ai_service.complete_json(
                "Grade the submission described in the instructions.",
                system_prompt=prompt,
                model=self.model,
                temperature=0.2,
                max_tokens=300,
            )
            return parse_judgment(content)
        except Exception as exc:
            logger.error("LLM judgment failed: %s", exc, exc_info=True)
            return None
