from __future__ import annotations

from collections import Counter, deque
from datetime import datetime, timezone
import math
from threading import Lock
import time
from typing import Callable


class RequestMetrics:
    def __init__(
        self,
        *,
        max_latency_samples: int = 2048,
        max_audit_events: int = 256,
        time_fn: Callable[[], float] | None = None,
    ) -> None:
        if max_latency_samples < 1:
            raise ValueError("max_latency_samples must be >= 1")
        if max_audit_events < 1:
            raise ValueError("max_audit_events must be >= 1")
        self._time_fn = time_fn or time.monotonic
        self._started_at = self._time_fn()
        self._lock = Lock()
        self._requests = 0
        self._errors = 0
        self._operation_outcomes: dict[str, Counter[str]] = {}
        self._error_codes: Counter[str] = Counter()
        self._audit_events: deque[dict[str, object]] = deque(maxlen=max_audit_events)
        self._latencies_ms: deque[float] = deque(maxlen=max_latency_samples)

    def record_response(self, *, status_code: int, duration_seconds: float) -> None:
        latency_ms = max(duration_seconds * 1000.0, 0.0)
        with self._lock:
            self._requests += 1
            if status_code >= 400:
                self._errors += 1
            self._latencies_ms.append(latency_ms)

    def record_operation(
        self,
        *,
        trace_id: str,
        operation: str,
        outcome: str,
        error_code: str | None = None,
    ) -> None:
        event: dict[str, object] = {
            "timestamp_utc": datetime.now(timezone.utc)
            .replace(microsecond=0)
            .isoformat()
            .replace("+00:00", "Z"),
            "trace_id": trace_id,
            "operation": operation,
            "outcome": outcome,
        }
        if error_code:
            event["error_code"] = error_code
        with self._lock:
            self._operation_outcomes.setdefault(operation, Counter())[outcome] += 1
            if error_code:
                self._error_codes[error_code] += 1
            self._audit_events.append(event)

    def snapshot(self) -> dict[str, object]:
        with self._lock:
            elapsed_seconds = max(self._time_fn() - self._started_at, 1e-9)
            requests = self._requests
            errors = self._errors
            operations = {
                operation: dict(counter)
                for operation, counter in self._operation_outcomes.items()
            }
            error_codes = dict(self._error_codes)
            audit_events = list(self._audit_events)
            latencies = list(self._latencies_ms)

        return {
            "window_seconds": elapsed_seconds,
            "requests": {
                "total": requests,
                "rate_per_minute": (requests / elapsed_seconds) * 60.0,
            },
            "errors": {
                "total": errors,
                "rate": (errors / requests) if requests else 0.0,
                "codes": error_codes,
            },
            "operations": operations,
            "audit_recent": audit_events,
            "latency_ms": {
                "sample_count": len(latencies),
                "p50": self._percentile(latencies, 50.0),
                "p95": self._percentile(latencies, 95.0),
                "p99": self._percentile(latencies, 99.0),
            },
        }

    @staticmethod
    def _percentile(values: list[float], percentile: float) -> float:
        if not values:
            return 0.0
        if len(values) == 1:
            return float(values[0])

        ordered = sorted(values)
        rank = (len(ordered) - 1) * (percentile / 100.0)
        lower_index = int(math.floor(rank))
        upper_index = int(math.ceil(rank))
        lower_value = ordered[lower_index]
        upper_value = ordered[upper_index]
        if lower_index == upper_index:
            return float(lower_value)
        blend = rank - lower_index
        return float(lower_value + (upper_value - lower_value) * blend)
