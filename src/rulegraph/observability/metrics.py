"""Metrics collection for rule evaluation runs."""

from abc import ABC, abstractmethod
from collections import Counter, defaultdict
from typing import Any

import structlog

logger = structlog.get_logger(__name__)

RULE_EVALUATION_TOTAL = "rule_evaluation_total"
RULE_EVALUATION_DURATION_MS = "rule_evaluation_duration_ms"
RUN_TARGETS = "run_targets"
RUN_RULES = "run_rules"


class MetricsBackend(ABC):
    """Sink for counters, gauges and timings."""

    @abstractmethod
    def increment(self, name: str, value: int = 1, tags: dict[str, str] | None = None) -> None:
        pass

    @abstractmethod
    def gauge(self, name: str, value: float, tags: dict[str, str] | None = None) -> None:
        pass

    @abstractmethod
    def timing(self, name: str, value: float, tags: dict[str, str] | None = None) -> None:
        pass


class LoggerBackend(MetricsBackend):
    """
    In-memory backend; aggregates values so they can be logged or reported
    at the end of a run.
    """

    def __init__(self) -> None:
        self.counters: Counter[str] = Counter()
        self.gauges: dict[str, float] = {}
        self.timings: dict[str, list[float]] = defaultdict(list)

    def increment(self, name: str, value: int = 1, tags: dict[str, str] | None = None) -> None:
        self.counters[self._format_key(name, tags)] += value

    def gauge(self, name: str, value: float, tags: dict[str, str] | None = None) -> None:
        # Last write wins
        self.gauges[self._format_key(name, tags)] = value

    def timing(self, name: str, value: float, tags: dict[str, str] | None = None) -> None:
        self.timings[self._format_key(name, tags)].append(value)

    def _format_key(self, name: str, tags: dict[str, str] | None) -> str:
        if not tags:
            return name
        tag_str = ",".join(f"{k}={v}" for k, v in sorted(tags.items()))
        return f"{name}[{tag_str}]"

    def get_summary(self) -> dict[str, Any]:
        """
        Summarize everything recorded so far.

        Returns:
            Dict with ``counters``, ``gauges`` and ``timings`` (count/avg/min/max per key)
        """
        timings: dict[str, dict[str, float]] = {}
        for key, values in self.timings.items():
            if values:
                timings[key] = {
                    "count": len(values),
                    "avg": sum(values) / len(values),
                    "min": min(values),
                    "max": max(values),
                }

        return {
            "counters": dict(self.counters),
            "gauges": dict(self.gauges),
            "timings": timings,
        }


class MetricsCollector:
    """
    Records rule outcomes and evaluation latency.
    """

    def __init__(self, backend: str = "logger") -> None:
        """
        Initialize Metrics Collector.

        Args:
            backend: Backend type. Only "logger" is available; unknown names
                fall back to it with a warning.
        """
        self.backend: MetricsBackend
        self.outcomes: Counter[str] = Counter()

        if backend != "logger":
            logger.warning("Unknown metrics backend, defaulting to logger", backend=backend)
        self.backend = LoggerBackend()

    def count_rule(self, rule_id: str, outcome: str) -> None:
        """Record one rule outcome."""
        self.outcomes[outcome] += 1
        self.backend.increment(RULE_EVALUATION_TOTAL, tags={"rule": rule_id, "outcome": outcome})

    def record_latency(self, rule_id: str, duration_ms: float) -> None:
        """Record time spent in a rule body."""
        self.backend.timing(RULE_EVALUATION_DURATION_MS, duration_ms, tags={"rule": rule_id})

    def record_run(self, target_count: int, rule_count: int) -> None:
        self.backend.gauge(RUN_TARGETS, float(target_count))
        self.backend.gauge(RUN_RULES, float(rule_count))

    def outcome_totals(self) -> dict[str, int]:
        """
        Sum rule outcome counts across rules.

        Returns:
            Mapping of outcome name to count
        """
        return dict(self.outcomes)

    def get_summary(self) -> dict[str, Any]:
        if hasattr(self.backend, "get_summary"):
            return self.backend.get_summary()  # type: ignore[no-any-return]
        return {}


_GLOBAL_COLLECTOR: MetricsCollector | None = None


def get_global_collector() -> MetricsCollector:
    """Get or create the process-wide metrics collector."""
    global _GLOBAL_COLLECTOR
    if _GLOBAL_COLLECTOR is None:
        _GLOBAL_COLLECTOR = MetricsCollector()
    return _GLOBAL_COLLECTOR
