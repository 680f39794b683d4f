"""Per-search telemetry traces: stage timings, counters and annotations."""

from __future__ import annotations

import logging
import threading
import time
from contextlib import contextmanager
from copy import deepcopy
from typing import Any, Callable, Dict, Iterable, Iterator, List, Optional

from .observability import StructuredLoggerAdapter, get_logger

TelemetryListener = Callable[[str, Dict[str, Any]], None]


class SearchTelemetry:
    """Collects the stages of the most recent search trace.

    Each ``start_trace`` call discards the previous trace.  Listeners receive
    every event as ``(event_type, payload)``; a failing listener is skipped so
    instrumentation can never break a search.
    """

    def __init__(
        self,
        time_fn: Optional[Callable[[], float]] = None,
        *,
        listeners: Optional[Iterable[TelemetryListener]] = None,
    ) -> None:
        self._time_fn = time_fn or time.perf_counter
        self._lock = threading.RLock()
        self._listeners: List[TelemetryListener] = list(listeners or [])
        self._trace_id = 0
        self._trace_name: Optional[str] = None
        self._stages: Dict[str, float] = {}
        self._counters: Dict[str, float] = {}
        self._metadata: Dict[str, Any] = {}

    def _emit(self, event_type: str, payload: Dict[str, Any]) -> None:
        with self._lock:
            listeners = tuple(self._listeners)
        for listener in listeners:
            try:
                listener(event_type, dict(payload))
            except Exception:
                continue

    def start_trace(self, name: str) -> int:
        with self._lock:
            self._trace_id += 1
            self._trace_name = name
            self._stages = {}
            self._counters = {}
            self._metadata = {}
            trace_id = self._trace_id
        self._emit("trace_started", {"trace_id": trace_id, "name": name})
        return trace_id

    @contextmanager
    def stage(self, name: str) -> Iterator[None]:
        """Time the enclosed block and accumulate it under ``name``."""

        start = self._time_fn()
        try:
            yield
        finally:
            duration = max(0.0, float(self._time_fn() - start))
            with self._lock:
                self._stages[name] = self._stages.get(name, 0.0) + duration
            self._emit("stage", {"name": name, "duration": duration})

    def increment(self, name: str, amount: float = 1.0) -> None:
        with self._lock:
            value = self._counters.get(name, 0.0) + float(amount)
            self._counters[name] = value
        self._emit("counter", {"name": name, "value": value})

    def annotate(self, key: str, value: Any) -> None:
        with self._lock:
            self._metadata[key] = value
        self._emit("metadata", {"key": key, "value": value})

    def snapshot(self) -> Dict[str, Any]:
        with self._lock:
            return deepcopy(
                {
                    "trace_id": self._trace_id,
                    "name": self._trace_name,
                    "stages": self._stages,
                    "counters": self._counters,
                    "metadata": self._metadata,
                }
            )

    def add_listener(self, listener: TelemetryListener) -> None:
        with self._lock:
            self._listeners.append(listener)

    def remove_listener(self, listener: TelemetryListener) -> None:
        with self._lock:
            self._listeners = [entry for entry in self._listeners if entry is not listener]


class TelemetryLogger:
    """Listener that writes telemetry events to the project logger."""

    def __init__(
        self,
        *,
        logger: Optional[StructuredLoggerAdapter] = None,
        level: int = logging.DEBUG,
    ) -> None:
        self._logger = logger or get_logger(__name__).bind(component="telemetry")
        self._level = level

    def __call__(self, event_type: str, payload: Dict[str, Any]) -> None:
        if not self._logger.isEnabledFor(self._level):
            return
        label = payload.get("name") or payload.get("key") or "event"
        context = {"telemetry.event": event_type}
        context.update({str(key): value for key, value in payload.items()})
        self._logger.log(self._level, f"Telemetry {event_type}: {label}", context=context)


__all__ = ["SearchTelemetry", "TelemetryLogger", "TelemetryListener"]
