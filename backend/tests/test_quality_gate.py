"""Tests for quality_gate.run_question_checks() and its helpers."""
import pytest
from mathsprint.models.practice import ExactAnswer, PartsAnswer, Question, RangeAnswer
from mathsprint.services.question_bank import generate_question_set
from mathsprint.utils.quality_gate import (
    extract_simple_arithmetic, jaccard, run_question_checks, safe_eval,
)


# ── Helper builders ───────────────────────────────────────────────────────────

def _numeric(qid: str, prompt: str, exact, hints=None) -> Question:
    return Question(
        id=qid, concept="addition", type="numeric", prompt=prompt,
        answer=ExactAnswer(exact=exact), hints=hints or ["Line up the place values."],
    )


# ── Safe arithmetic ───────────────────────────────────────────────────────────

class TestSafeEval:
    def test_basic_ops(self):
        assert safe_eval("3 + 4") == 7.0
        assert safe_eval("10 - 4 * 2") == 2.0

    def test_division_by_zero_is_none(self):
        assert safe_eval("4 / 0") is None

    @pytest.mark.parametrize("expr", ["__import__('os')", "2 ** 8", "abc", "1 +"])
    def test_rejects_anything_else(self, expr):
        assert safe_eval(expr) is None


class TestExtractSimpleArithmetic:
    def test_unicode_times(self):
        assert extract_simple_arithmetic("Compute 12 × 3.") == ("12 * 3", 36.0)

    def test_divide_sign(self):
        assert extract_simple_arithmetic("What is 56 ÷ 7?") == ("56 / 7", 8.0)

    def test_fraction_of_skipped(self):
        assert extract_simple_arithmetic("What is 3/4 of 24?") is None

    def test_no_expression(self):
        assert extract_simple_arithmetic("What is the area of the rectangle?") is None


class TestJaccard:
    def test_identical(self):
        assert jaccard("a b c", "A B C") == 1.0

    def test_empty(self):
        assert jaccard("", "a") == 0.0


# ── Batch checks ──────────────────────────────────────────────────────────────

class TestRunQuestionChecks:
    def test_clean_batch_passes(self):
        qs = [
            _numeric("q1", "What is 12 + 3?", 15),
            Question(
                id="q2", concept="estimation", type="free_text",
                prompt="Estimate 287 + 299 by rounding to hundreds.",
                answer=RangeAnswer(range=(500, 700)), hints=["Round first."],
            ),
            Question(
                id="q3", concept="place value", type="multi_part",
                prompt="Round 684 to the nearest ten and hundred.",
                answer=PartsAnswer(parts={"ten": 680, "hundred": 700}), hints=["Look right."],
            ),
        ]
        passed, failures = run_question_checks(qs)
        assert passed is True, failures
        assert failures == []

    def test_wrong_arithmetic_flagged(self):
        passed, failures = run_question_checks([_numeric("q1", "What is 12 + 3?", 16)])
        assert passed is False
        assert any(f.startswith("ARITHMETIC: q1") for f in failures)

    def test_estimate_prompt_not_checked(self):
        passed, _ = run_question_checks([_numeric("q1", "Estimate 12 + 3 to the nearest ten.", 20)])
        assert passed is True

    def test_revealing_hint_flagged(self):
        q = _numeric("q1", "What is 12 + 3?", 15, hints=["It comes to 15."])
        _, failures = run_question_checks([q])
        assert any(f.startswith("HINT_REVEALS: q1") for f in failures)

    def test_identical_prompts_flagged(self):
        qs = [_numeric("q1", "What is 12 + 3?", 15), _numeric("q2", "what is 12 + 3?", 15)]
        _, failures = run_question_checks(qs)
        assert any(f.startswith("DUPLICATE: q1 and q2") for f in failures)

    def test_near_duplicate_flagged(self):
        qs = [_numeric("q1", "What is 12 + 3?", 15), _numeric("q2", "So what is 12 + 3?", 15)]
        _, failures = run_question_checks(qs)
        assert any(f.startswith("NEAR_DUPLICATE: q1 and q2") for f in failures)

    def test_templated_prompts_with_new_numbers_not_flagged(self):
        qs = [
            _numeric("q1", "Estimate 287 + 299 by rounding each to the nearest ten.", 590),
            _numeric("q2", "Estimate 412 + 158 by rounding each to the nearest ten.", 570),
            _numeric("q3", "What is 12 + 3?", 15),
            _numeric("q4", "What is 12 + 4?", 16),
        ]
        _, failures = run_question_checks(qs)
        assert not any("DUPLICATE" in f for f in failures)

    def test_seeded_batch_has_no_duplicate_noise(self):
        qs = generate_question_set(["estimation"], "same", 10, "abc")
        _, failures = run_question_checks(qs)
        assert not any(f.startswith("NEAR_DUPLICATE") for f in failures)
