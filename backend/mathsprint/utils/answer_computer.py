"""
answer_computer.py — deterministic arithmetic for generated questions.

Python computes every answer key. Question wording may come from anywhere,
the numbers in the key never do.
"""
import math


def add(a: int, b: int) -> int:
    return a + b


def subtract(a: int, b: int) -> int:
    return a - b


def multiply(*factors: int) -> int:
    return math.prod(factors)


def divide_exact(dividend: int, divisor: int) -> int:
    """Whole-number quotient; the generator only builds dividends that divide evenly."""
    if divisor == 0 or dividend % divisor:
        raise ValueError(f"{dividend} is not a multiple of {divisor}")
    return dividend // divisor


def round_to_nearest(value: int, place: int) -> int:
    """
    Round half up to the nearest multiple of place.
    Examples:
        round_to_nearest(125, 10)  → 130   (not banker's 120)
        round_to_nearest(650, 100) → 700
        round_to_nearest(649, 100) → 600
    """
    return math.floor(value / place + 0.5) * place


def fraction_of(whole: int, numerator: int, denominator: int) -> int:
    """numerator/denominator of whole, for wholes that split evenly."""
    return divide_exact(whole, denominator) * numerator


def format_number(value) -> str:
    """Render 12.0 as "12" and 2.50 as "2.5" so keys read like prompt text."""
    if isinstance(value, float) and value.is_integer():
        return str(int(value))
    return str(value)
