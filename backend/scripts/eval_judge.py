#!/usr/bin/env python3
"""
MathSprint — LLM judge evaluation harness.

Runs a fixed set of graded cases through the LLM judge and compares its
verdict with the expected correctness. Mismatches are printed as WARN and the
run exits 1; a missing API key exits 0 without calling anything.

Usage:
    cd backend && python scripts/eval_judge.py
"""

import asyncio
import sys
from pathlib import Path

# ── Path setup ────────────────────────────────────────────────────────────────
SCRIPT_DIR = Path(__file__).parent
BACKEND_DIR = SCRIPT_DIR.parent
sys.path.insert(0, str(BACKEND_DIR))

from mathsprint.core.config import get_settings
from mathsprint.core.deps import get_llm_client
from mathsprint.services.ai import AIService
from mathsprint.services.answer_evaluator import evaluate_deterministic
from mathsprint.services.llm_judge import LLMJudge

CASES = [
    {
        "name": "Exact numeric – correct",
        "question": {
            "id": "case-1", "concept": "multi-digit multiplication", "difficulty": "same",
            "type": "numeric", "prompt": "Compute 24 × 6.", "answer": {"exact": 144},
            "hints": ["Break 24 into 20 + 4 to multiply more easily."],
        },
        "submission": {"raw": "144"},
        "expected": True,
    },
    {
        "name": "Exact numeric – incorrect",
        "question": {
            "id": "case-2", "concept": "fractions", "difficulty": "less",
            "type": "numeric", "prompt": "What is 3/4 of 16?", "answer": {"exact": 12},
            "hints": ["Think about how many quarters fit into 16."],
        },
        "submission": {"raw": "10"},
        "expected": False,
    },
    {
        "name": "Range answer – inside bounds",
        "question": {
            "id": "case-3", "concept": "estimation strategies", "difficulty": "same",
            "type": "free_text", "prompt": "Estimate 287 + 299 to the nearest ten.",
            "answer": {"range": [570, 600]},
            "hints": ["Round each number to a friendly ten before adding."],
        },
        "submission": {"raw": "590"},
        "expected": True,
    },
    {
        "name": "Range answer – outside bounds",
        "question": {
            "id": "case-4", "concept": "estimation strategies", "difficulty": "same",
            "type": "free_text", "prompt": "Estimate 432 + 189 to the nearest hundred.",
            "answer": {"range": [600, 700]},
            "hints": ["Round to the nearest hundred first then add."],
        },
        "submission": {"raw": "800"},
        "expected": False,
    },
    {
        "name": "Multi-part – partially correct",
        "question": {
            "id": "case-5", "concept": "rounding", "difficulty": "same",
            "type": "multi_part",
            "prompt": "Round 684 to the nearest ten and to the nearest hundred.",
            "answer": {"parts": {"nearest_ten": 680, "nearest_hundred": 700}},
            "hints": ["Look at the digit one place to the right before rounding."],
        },
        "submission": {"raw": "680, 600", "parts": {"nearest_ten": 680, "nearest_hundred": 600}},
        "expected": False,
    },
    {
        "name": "Free response explanation – correct reasoning",
        "question": {
            "id": "case-6", "concept": "word problems", "difficulty": "more",
            "type": "free_text",
            "prompt": "Explain how you would check if 48 is divisible by 6 without long division.",
            "answer": {"range": [0, 0]},
            "hints": ["Think about multiples of 6 or using factor pairs."],
        },
        "submission": {
            "raw": "Since 4 + 8 = 12 and 12 is divisible by 3, the number is divisible by 3, "
                   "and it is even so divisible by 6.",
        },
        "expected": True,
    },
]


async def main() -> int:
    settings = get_settings()
    client = get_llm_client(settings)
    if client is None:
        print("WARN: no LLM key configured; the judge cannot run")
        return 0

    judge = LLMJudge(AIService(client), model=settings.judge_model)
    mismatches = 0

    for case in CASES:
        deterministic = evaluate_deterministic(case["question"], case["submission"])
        result = await judge.judge(case["question"], deterministic.normalized, deterministic.correct)

        if result is None:
            mismatches += 1
            print(f"\n[WARN] {case['name']}")
            print("  detail: judge returned no result")
            continue

        ok = result.correct == case["expected"]
        if not ok:
            mismatches += 1
        print(f"\n[{'PASS' if ok else 'WARN'}] {case['name']}")
        print(f"  deterministic: {deterministic.correct}")
        print(f"  llm:           {result.correct}")
        print(f"  expected:      {case['expected']}")
        print(f"  tip:           {result.tip or '(none returned)'}")

    if mismatches:
        print(f"\nCompleted with {mismatches} mismatch(es).")
        return 1
    print("\nAll judge checks passed.")
    return 0


if __name__ == "__main__":
    sys.exit(asyncio.run(main()))
