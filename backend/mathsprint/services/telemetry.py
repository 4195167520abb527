import time
import json
import logging
import asyncio
import threading
from typing import Optional, Protocol
from functools import wraps

logger = logging.getLogger("mathsprint.telemetry")

# Sources each counter category knows about; anything else is counted as "error".
COUNTER_SOURCES: dict[str, tuple[str, ...]] = {
    "question": ("llm", "heuristic", "error"),
    "judge": ("deterministic", "cache", "generative", "heuristic", "error"),
}


def emit_event(event: str, *, route: Optional[str] = None, version: Optional[str] = None,
               category: Optional[str] = None, source: Optional[str] = None,
               session_id: Optional[str] = None, error_type: Optional[str] = None,
               latency_ms: Optional[int] = None, ok: Optional[bool] = None):
    payload = {
        "event": event,
        "route": route,
        "version": version,
        "category": category,
        "source": source,
        "session_id": session_id,
        "error_type": error_type,
        "latency_ms": latency_ms,
        "ok": ok,
        "ts": time.time(),
    }
    # log as single-line JSON for easy parsing in prod
    logger.info("telemetry=%s", json.dumps(payload, separators=(",", ":")))


class MetricsSink(Protocol):
    def increment(self, category: str, source: Optional[str]) -> None:
        ...


class InMemoryMetrics:
    """Process-wide counters; created once at startup, never reset afterwards."""

    def __init__(self):
        self._lock = threading.Lock()
        self._counters = {
            category: {source: 0 for source in sources}
            for category, sources in COUNTER_SOURCES.items()
        }

    def increment(self, category: str, source: Optional[str]) -> None:
        bucket = self._counters.get(category)
        if bucket is None:
            logger.warning("Unknown telemetry category %r", category)
            return
        key = source if source in bucket else "error"
        with self._lock:
            bucket[key] += 1
        emit_event("counter", category=category, source=key)

    def snapshot(self) -> dict[str, dict[str, int]]:
        with self._lock:
            return {category: dict(bucket) for category, bucket in self._counters.items()}


class NullMetrics:
    def increment(self, category: str, source: Optional[str]) -> None:
        return None


def instrument(route: str, version: str):
    def deco(fn):
        if asyncio.iscoroutinefunction(fn):
            @wraps(fn)
            async def wrapped_async(*args, **kwargs):
                t0 = time.time()
                ok = True
                err = None
                try:
                    out = await fn(*args, **kwargs)
                    return out
                except Exception as e:
                    ok = False
                    err = str(e.__class__.__name__)
                    raise
                finally:
                    dt = int((time.time() - t0) * 1000)
                    emit_event("api_call", route=route, version=version, latency_ms=dt, ok=ok,
                               error_type=err)
            return wrapped_async
        else:
            @wraps(fn)
            def wrapped(*args, **kwargs):
                t0 = time.time()
                ok = True
                err = None
                try:
                    out = fn(*args, **kwargs)
                    return out
                except Exception as e:
                    ok = False
                    err = str(e.__class__.__name__)
                    raise
                finally:
                    dt = int((time.time() - t0) * 1000)
                    emit_event("api_call", route=route, version=version, latency_ms=dt, ok=ok,
                               error_type=err)
            return wrapped
    return deco
