#!/usr/bin/env python3
"""
MathSprint — question generation smoke test.

Pulls one small batch through the practice question source (LLM when a key
is configured, seeded bank otherwise) and validates every question:
  errors   — missing prompt/concept/hints, unknown type, answer shape mismatch
  warnings — quality gate findings (revealing hints, duplicates, arithmetic)

Exits 1 on any error. Warnings never fail the run.

Usage:
    cd backend && python scripts/smoke_validate_questions.py
"""

import asyncio
import sys
from pathlib import Path

# ── Path setup ────────────────────────────────────────────────────────────────
SCRIPT_DIR = Path(__file__).parent
BACKEND_DIR = SCRIPT_DIR.parent
sys.path.insert(0, str(BACKEND_DIR))

from mathsprint.core.config import get_settings
from mathsprint.core.deps import build_engine, get_llm_client
from mathsprint.models.practice import BatchRequest, ExactAnswer, PartsAnswer, RangeAnswer, WorksheetAnalysis
from mathsprint.utils.quality_gate import run_question_checks

SHAPES = {"numeric": ExactAnswer, "free_text": RangeAnswer, "multi_part": PartsAnswer}

REQUEST = BatchRequest(
    concepts=["estimation strategies", "rounding"],
    difficulty="same",
    count=4,
    grade="4",
    analysis=WorksheetAnalysis(
        text_preview="Worksheet mixes estimation and rounding with numbers up to 800.",
    ),
)


def validate(questions) -> list[str]:
    errors = []
    for idx, q in enumerate(questions):
        if not q.prompt.strip():
            errors.append(f"Question {idx} missing prompt")
        if not q.concept.strip():
            errors.append(f"Question {idx} missing concept")
        if not q.hints:
            errors.append(f"Question {idx} missing hints")
        expected = SHAPES.get(q.type)
        if expected is None:
            errors.append(f"Question {idx} has invalid type {q.type}")
        elif not isinstance(q.answer, expected):
            errors.append(f"Question {idx} {q.type} type has {type(q.answer).__name__} answer")
    return errors


async def main() -> int:
    settings = get_settings()
    client = get_llm_client(settings)
    if client is None:
        print("WARN: no LLM key configured, smoke-testing the seeded generator only")

    engine = build_engine(settings, client)
    questions = await engine.question_source.request_batch(REQUEST)
    if not questions:
        print("FAIL: question source returned nothing")
        return 1

    errors = validate(questions)
    _, warnings = run_question_checks(questions)

    if errors:
        print("FAIL: question validation failed")
        for e in errors:
            print(f"  ✗ {e}")
        return 1

    for w in warnings:
        print(f"  ⚠ {w}")

    used = "LLM" if engine.metrics.snapshot()["question"]["llm"] else "seeded"
    print(f"PASS: question smoke test passed using {used} generator")
    print(f"Concept coverage: {', '.join(sorted({q.concept for q in questions}))}")
    for q in questions:
        print(f"  - [{q.id}] {q.prompt}")
    return 0


if __name__ == "__main__":
    sys.exit(asyncio.run(main()))
