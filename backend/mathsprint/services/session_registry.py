"""
In-memory session registry. Sessions live for the process only.

Ended sessions stay readable (summary, last state) for `retain_ended`
seconds, then get pruned on the next add() or prune() call.
"""
import logging
import threading
import time
from typing import Callable, Optional

from mathsprint.services.session_runtime import SessionRuntime

logger = logging.getLogger("mathsprint.session_registry")


class SessionRegistry:
    def __init__(self, retain_ended: float = 600.0, clock: Callable[[], float] = time.monotonic):
        self.retain_ended = retain_ended
        self.clock = clock
        self._sessions: dict[str, SessionRuntime] = {}
        self._ended_at: dict[str, float] = {}
        self._lock = threading.Lock()

    def add(self, runtime: SessionRuntime) -> SessionRuntime:
        self.prune()
        with self._lock:
            self._sessions[runtime.session_id] = runtime
        runtime.on_end(self._mark_ended)
        return runtime

    def get(self, session_id: str) -> Optional[SessionRuntime]:
        with self._lock:
            return self._sessions.get(session_id)

    def remove(self, session_id: str) -> Optional[SessionRuntime]:
        with self._lock:
            self._ended_at.pop(session_id, None)
            return self._sessions.pop(session_id, None)

    def prune(self) -> int:
        """Drop sessions that ended more than retain_ended seconds ago."""
        now = self.clock()
        with self._lock:
            expired = [
                sid for sid, ended_at in self._ended_at.items()
                if now - ended_at >= self.retain_ended
            ]
            for sid in expired:
                del self._ended_at[sid]
                self._sessions.pop(sid, None)
        if expired:
            logger.debug("Pruned %d ended session(s)", len(expired))
        return len(expired)

    def _mark_ended(self, runtime: SessionRuntime) -> None:
        with self._lock:
            if runtime.session_id in self._sessions:
                self._ended_at.setdefault(runtime.session_id, self.clock())

    def __len__(self) -> int:
        with self._lock:
            return len(self._sessions)
