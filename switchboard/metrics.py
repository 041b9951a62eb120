# Copyright (c) 2026 Alessandro Orrù
# Licensed under MIT

import logging
import time
from collections import Counter
from contextlib import contextmanager
from dataclasses import dataclass

logger = logging.getLogger("[ METRICS ]")


# Latency samples of one dispatch phase (resolve, compile, compile_group, callback)
@dataclass
class PhaseMetric:
    name: str
    total_ms: float = 0.0
    count: int = 0
    min_ms: float | None = None
    max_ms: float = 0.0


    @property
    def avg_ms(self) -> float:
        return self.total_ms / self.count if self.count else 0.0


    def record(self, duration_ms: float) -> None:
        self.total_ms += duration_ms
        self.count += 1
        self.min_ms = duration_ms if self.min_ms is None else min(self.min_ms, duration_ms)
        self.max_ms = max(self.max_ms, duration_ms)


    # Rounded view used by summaries and log lines
    def summary(self) -> dict[str, float | int]:
        return {
            "avg_ms": round(self.avg_ms, 2),
            "min_ms": round(self.min_ms or 0.0, 2),
            "max_ms": round(self.max_ms, 2),
            "count": self.count,
        }


# Latency of resolve/compile/callback phases plus event counters
# (unsafe patterns, compile failures, lazy compiles)
class DispatchMetrics:

    def __init__(self, slow_resolve_ms: float = 50.0) -> None:
        self._phases: dict[str, PhaseMetric] = {}
        self._counters: Counter[str] = Counter()
        self._slow_resolve_ms = slow_resolve_ms


    # Context manager to measure a phase duration
    @contextmanager
    def measure(self, phase_name: str):
        start = time.monotonic()
        try:
            yield
        finally:
            duration_ms = (time.monotonic() - start) * 1000
            if phase_name not in self._phases:
                self._phases[phase_name] = PhaseMetric(name=phase_name)
            self._phases[phase_name].record(duration_ms)
            if phase_name == "resolve" and duration_ms > self._slow_resolve_ms:
                logger.warning("[PERF] slow resolve: %.0fms", duration_ms)
            else:
                logger.debug("[PERF] %s: %.1fms", phase_name, duration_ms)


    def increment(self, counter: str, amount: int = 1) -> None:
        self._counters[counter] += amount


    def count(self, counter: str) -> int:
        return self._counters[counter]


    # Phases and counters as plain dicts, latencies rounded to 2 decimals
    def get_summary(self) -> dict[str, dict]:
        return {
            "phases": {name: m.summary() for name, m in self._phases.items()},
            "counters": dict(self._counters),
        }


    def log_summary(self) -> None:
        if not self._phases and not self._counters:
            return
        logger.info("[PERF] Dispatch Summary")
        for name, m in sorted(self._phases.items()):
            logger.info("[PERF]   %s: %s", name, ", ".join(f"{k}={v}" for k, v in m.summary().items()))
        for name, value in sorted(self._counters.items()):
            logger.info("[PERF]   %s=%d", name, value)


    def reset(self) -> None:
        self._phases.clear()
        self._counters.clear()
