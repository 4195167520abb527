"""quality_gate.py — post-generation batch quality checks.

Runs after a question batch is produced and before it reaches a session.
Operates in log-only mode: failures are recorded but never block a batch.

Checks:
  1. Answer shape agrees with question type
  2. Hints do not spell out exact / part values
  3. Duplicate prompts (word-Jaccard > 0.50 with the same numbers; templated
     prompts that only change their numbers are not duplicates)
  4. Simple "A op B" prompts: stated exact answer equals recomputed arithmetic
"""
import ast
import operator
import re
from typing import List, Optional, Tuple

from mathsprint.models.practice import ExactAnswer, PartsAnswer, Question, RangeAnswer
from mathsprint.services.question_normalizer import hint_reveals_answer

_SHAPES = {
    "numeric": ExactAnswer,
    "free_text": RangeAnswer,
    "multi_part": PartsAnswer,
}

# ---------------------------------------------------------------------------
# Safe arithmetic evaluator
# ---------------------------------------------------------------------------

# Allowlisted binary operators only
_SAFE_OPS: dict = {
    ast.Add: operator.add,
    ast.Sub: operator.sub,
    ast.Mult: operator.mul,
    ast.Div: operator.truediv,
}


def _eval_node(node: ast.AST) -> Optional[float]:
    """Recursively evaluate an AST node. Returns None for unsupported nodes."""
    if isinstance(node, ast.Constant) and isinstance(node.value, (int, float)):
        return float(node.value)
    if isinstance(node, ast.UnaryOp) and isinstance(node.op, ast.USub):
        operand = _eval_node(node.operand)
        return -operand if operand is not None else None
    if isinstance(node, ast.BinOp) and type(node.op) in _SAFE_OPS:
        left = _eval_node(node.left)
        right = _eval_node(node.right)
        if left is None or right is None:
            return None
        if isinstance(node.op, ast.Div) and right == 0:
            return None
        return _SAFE_OPS[type(node.op)](left, right)
    return None


def safe_eval(expr: str) -> Optional[float]:
    """Evaluate numeric literals joined by + - * /; None for anything else."""
    try:
        tree = ast.parse(expr.strip(), mode="eval")
        return _eval_node(tree.body)
    except (SyntaxError, ValueError):
        return None


# Normalise Unicode operators to Python equivalents before parsing
_OP_NORMALISE = str.maketrans({"×": "*", "÷": "/", "–": "-", "−": "-"})

# Exactly two non-negative integers separated by a basic operator
_SIMPLE_EXPR_RE = re.compile(r"(?<![\d/])(\d+)\s*([+\-*/])\s*(\d+)(?![\d/])")


def extract_simple_arithmetic(prompt: str) -> Optional[tuple[str, float]]:
    """
    Find an "A op B" expression in a prompt and compute it.
    Returns (expr, result) or None. Fractions like "3/4 of" are skipped.
    """
    normalised = prompt.translate(_OP_NORMALISE)
    m = _SIMPLE_EXPR_RE.search(normalised)
    if not m:
        return None
    a, op_sym, b = m.group(1), m.group(2), m.group(3)
    if op_sym == "/" and re.search(rf"{a}/{b}\s+of\b", normalised):
        return None
    expr = f"{a} {op_sym} {b}"
    result = safe_eval(expr)
    return (expr, result) if result is not None else None


def jaccard(a: str, b: str) -> float:
    a_words = set(a.lower().split())
    b_words = set(b.lower().split())
    if not a_words or not b_words:
        return 0.0
    return len(a_words & b_words) / len(a_words | b_words)


_NUMBER_RE = re.compile(r"\d+(?:\.\d+)?")


def prompt_numbers(text: str) -> set:
    return set(_NUMBER_RE.findall(text))


def run_question_checks(questions: List[Question]) -> Tuple[bool, List[str]]:
    """Run all checks on a batch.

    Returns (passed: bool, failures: list[str]).
    Always returns both values; callers decide whether to block or log.
    """
    failures: list[str] = []

    for q in questions:
        # ── Check 1: shape ────────────────────────────────────────────────
        expected = _SHAPES.get(q.type)
        if expected is None or not isinstance(q.answer, expected):
            failures.append(f"SHAPE: {q.id} type={q.type} answer={type(q.answer).__name__}")

        # ── Check 2: revealing hints ──────────────────────────────────────
        for hint in q.hints:
            if hint_reveals_answer(hint, q.answer):
                failures.append(f"HINT_REVEALS: {q.id} '{hint[:60]}'")

        # ── Check 4: arithmetic ───────────────────────────────────────────
        if isinstance(q.answer, ExactAnswer) and "estimate" not in q.prompt.lower():
            found = extract_simple_arithmetic(q.prompt)
            if found and abs(found[1] - q.answer.exact) > 0.01:
                failures.append(
                    f"ARITHMETIC: {q.id} '{found[0]}' = {found[1]:g}, key says {q.answer.exact}"
                )

    # ── Check 3: duplicates ───────────────────────────────────────────────
    for i, q1 in enumerate(questions):
        for q2 in questions[i + 1:]:
            sim = jaccard(q1.prompt, q2.prompt)
            if sim > 0.50 and q1.prompt.strip().lower() == q2.prompt.strip().lower():
                failures.append(f"DUPLICATE: {q1.id} and {q2.id} (identical prompt)")
            elif sim > 0.50 and prompt_numbers(q1.prompt) == prompt_numbers(q2.prompt):
                failures.append(f"NEAR_DUPLICATE: {q1.id} and {q2.id} ({int(sim * 100)}% overlap)")

    return (len(failures) == 0, failures)
