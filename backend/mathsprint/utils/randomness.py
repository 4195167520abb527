"""Seed-reproducible randomness for the question bank.

A 32-bit linear congruential generator seeded from a SHA-256 digest. The same
seed string always yields the same draw sequence, across processes and
platforms, which random.Random(str) does not promise across Python versions.
"""
from __future__ import annotations

import hashlib
import json
from typing import Sequence, TypeVar

T = TypeVar("T")

_MULTIPLIER = 1664525
_INCREMENT = 1013904223
_MODULUS = 2 ** 32


def seed_to_state(seed: str) -> int:
    """First four digest bytes, little-endian, as the initial 32-bit state."""
    digest = hashlib.sha256(seed.encode("utf-8")).digest()
    return int.from_bytes(digest[:4], "little")


def request_seed(concepts: list[str], difficulty: str, count: int) -> str:
    """Stand-in seed when the caller gives none: identical requests repeat."""
    return json.dumps(
        {"concepts": concepts, "difficulty": difficulty, "count": count},
        separators=(",", ":"),
    )


class LcgRandom:
    def __init__(self, seed: str):
        self.state = seed_to_state(seed)

    def random(self) -> float:
        """Next draw in [0, 1)."""
        self.state = (self.state * _MULTIPLIER + _INCREMENT) % _MODULUS
        return self.state / _MODULUS

    def randint(self, low: int, high: int) -> int:
        """Inclusive on both ends."""
        return int(self.random() * (high - low + 1)) + low

    def choice(self, items: Sequence[T]) -> T:
        return items[int(self.random() * len(items))]
