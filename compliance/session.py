"""Debounced, cached validation for a diagram that is being edited."""

import functools
import hashlib
import json
import logging
import threading
from dataclasses import asdict
from enum import Enum
from typing import Callable, Dict, List, Optional, Tuple

from core.components import Diagram
from core.config import DEFAULT_CONFIG, EngineConfig
from core.models import ComplianceResult, LoadContext
from core.timing import MonotonicClock, ThreadingScheduler, TimerHandle

logger = logging.getLogger(__name__)

Subscriber = Callable[[ComplianceResult], None]


class SessionState(Enum):
    IDLE = "idle"
    DEBOUNCING = "debouncing"


def diagram_fingerprint(diagram: Diagram, loads: Optional[LoadContext] = None) -> str:
    """SHA-256 of the canonical JSON form of everything validation reads."""
    payload = {
        "id": diagram.id,
        "components": [
            {"id": c.id, "type": c.type, "name": c.name, "specifications": dict(c.specifications)}
            for c in diagram.components
        ],
        "connections": [
            {"id": c.id, "type": c.type, "from": c.from_id, "to": c.to_id,
             "voltage": c.voltage, "current": c.current, "specifications": dict(c.specifications)}
            for c in diagram.connections
        ],
        "loads": asdict(loads) if loads is not None else None,
    }
    canonical = json.dumps(payload, sort_keys=True, separators=(",", ":"), default=str)
    return hashlib.sha256(canonical.encode("utf-8")).hexdigest()


class ValidationSession:
    """Evaluates the latest snapshot once edits settle.

    on_diagram_changed() (re)arms a single debounce timer; when it fires the
    most recent snapshot is evaluated and every subscriber is notified.
    validate() is the immediate path. Both share the result cache.
    """

    def __init__(self, evaluator, scheduler=None, clock=None, config: EngineConfig = DEFAULT_CONFIG):
        self.evaluator = evaluator
        self.scheduler = scheduler or ThreadingScheduler()
        self.clock = clock or MonotonicClock()
        self.config = config

        self._lock = threading.RLock()
        self._state = SessionState.IDLE
        self._timer: Optional[TimerHandle] = None
        self._generation = 0
        self._pending: Optional[Tuple[Diagram, Optional[LoadContext]]] = None
        self._subscribers: List[Subscriber] = []
        self._cache: Dict[str, Tuple[float, ComplianceResult]] = {}
        self._cache_diagram_id: Optional[str] = None
        self._last_result: Optional[ComplianceResult] = None

    # ------------------------------------------------------------------
    # State
    # ------------------------------------------------------------------
    @property
    def state(self) -> SessionState:
        return self._state

    @property
    def last_result(self) -> Optional[ComplianceResult]:
        return self._last_result

    @property
    def cache_size(self) -> int:
        return len(self._cache)

    # ------------------------------------------------------------------
    # Subscribers
    # ------------------------------------------------------------------
    def subscribe(self, callback: Subscriber) -> Callable[[], None]:
        with self._lock:
            self._subscribers.append(callback)

        def unsubscribe():
            with self._lock:
                if callback in self._subscribers:
                    self._subscribers.remove(callback)
        return unsubscribe

    def _notify(self, result: ComplianceResult):
        with self._lock:
            subscribers = list(self._subscribers)
        for callback in subscribers:
            try:
                callback(result)
            except Exception:
                logger.exception("Validation subscriber %r failed", callback)

    # ------------------------------------------------------------------
    # Debounce
    # ------------------------------------------------------------------
    def on_diagram_changed(self, diagram: Diagram, loads: Optional[LoadContext] = None) -> None:
        with self._lock:
            generation = self._disarm()
            self._pending = (diagram, loads)
            self._state = SessionState.DEBOUNCING
            self._timer = self.scheduler.call_later(self.config.debounce_seconds,
                                                    functools.partial(self._on_timer, generation))
        logger.debug("Diagram %s changed, validation in %.2fs", diagram.id, self.config.debounce_seconds)

    def _disarm(self) -> int:
        # A callback that already started cannot be cancelled; it sees a newer generation and returns
        if self._timer is not None:
            self._timer.cancel()
            self._timer = None
        self._generation += 1
        return self._generation

    def _on_timer(self, generation: int) -> None:
        with self._lock:
            if generation != self._generation:
                logger.debug("Ignoring superseded debounce timer")
                return
            pending = self._take_pending()
        if pending is not None:
            self._run(*pending)

    def _take_pending(self) -> Optional[Tuple[Diagram, Optional[LoadContext]]]:
        pending = self._pending
        self._pending = None
        self._timer = None
        self._state = SessionState.IDLE
        return pending

    def flush(self) -> Optional[ComplianceResult]:
        """Runs a pending debounced evaluation now, e.g. before saving."""
        with self._lock:
            self._disarm()
            pending = self._take_pending()
        if pending is None:
            return None
        return self._run(*pending)

    def _run(self, diagram: Diagram, loads: Optional[LoadContext]) -> ComplianceResult:
        result = self.validate(diagram, loads)
        self._notify(result)
        return result

    # ------------------------------------------------------------------
    # Immediate path + cache
    # ------------------------------------------------------------------
    def validate(self, diagram: Diagram, loads: Optional[LoadContext] = None) -> ComplianceResult:
        key = diagram_fingerprint(diagram, loads)
        now = self.clock.monotonic()

        with self._lock:
            if self._cache_diagram_id != diagram.id:
                self._cache.clear()
                self._cache_diagram_id = diagram.id
            self._prune(now)
            cached = self._cache.get(key)
            if cached is not None:
                logger.debug("Validation cache hit for %s", diagram.id)
                self._last_result = cached[1]
                return cached[1]

        logger.debug("Validation cache miss for %s", diagram.id)
        result = self.evaluator.evaluate(diagram, loads)

        with self._lock:
            if self._cache_diagram_id == diagram.id:
                self._cache[key] = (now, result)
            self._last_result = result
        return result

    def _prune(self, now: float) -> None:
        ttl = self.config.cache_ttl_seconds
        for key in [k for k, (stored_at, _) in self._cache.items() if now - stored_at >= ttl]:
            del self._cache[key]

    def clear_cache(self) -> None:
        with self._lock:
            self._cache.clear()

    def close(self) -> None:
        with self._lock:
            self._disarm()
            self._pending = None
            self._state = SessionState.IDLE
            self._cache.clear()
            self._subscribers.clear()

    def __enter__(self):
        return self

    def __exit__(self, exc_type, exc, tb):
        self.close()

    def __repr__(self) -> str:
        return f"<ValidationSession state={self._state.value} cached={len(self._cache)}>"
