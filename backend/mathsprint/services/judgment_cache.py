"""Bounded verdict cache with strict FIFO eviction.

Shared process-wide across sessions. Only the generative stage of the
evaluation pipeline writes to it. Reads never refresh an entry's position:
the oldest-inserted entry is always the next to go.
"""
from __future__ import annotations

import json
import threading
import time
from collections import OrderedDict
from dataclasses import dataclass
from typing import Optional

from mathsprint.models.practice import Submission, Verdict

DEFAULT_CAPACITY = 200


@dataclass(frozen=True)
class CacheEntry:
    key: str
    verdict: Verdict
    cached_at: float


def cache_key(question_identity: str, submission: Submission) -> str:
    """Exact-match key: question identity plus a stable dump of the submission."""
    payload = json.dumps(submission.model_dump(), sort_keys=True, separators=(",", ":"))
    return f"{question_identity}::{payload}"


class JudgmentCache:
    def __init__(self, capacity: int = DEFAULT_CAPACITY):
        if capacity < 1:
            raise ValueError("capacity must be at least 1")
        self.capacity = capacity
        self._entries: OrderedDict[str, CacheEntry] = OrderedDict()
        self._lock = threading.Lock()

    def get(self, key: str) -> Optional[Verdict]:
        with self._lock:
            entry = self._entries.get(key)
        return entry.verdict if entry else None

    def put(self, key: str, verdict: Verdict) -> None:
        with self._lock:
            if key in self._entries:
                # Overwrite in place; insertion order (and eviction turn) is unchanged.
                self._entries[key] = CacheEntry(key, verdict, self._entries[key].cached_at)
                return
            if len(self._entries) >= self.capacity:
                self._entries.popitem(last=False)
            self._entries[key] = CacheEntry(key, verdict, time.time())

    def __contains__(self, key: str) -> bool:
        with self._lock:
            return key in self._entries

    def __len__(self) -> int:
        with self._lock:
            return len(self._entries)

    def keys(self) -> list[str]:
        with self._lock:
            return list(self._entries)
