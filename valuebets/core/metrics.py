# valuebets/core/metrics.py
from __future__ import annotations

from collections import Counter
from typing import Dict, Protocol


class MetricsCollector(Protocol):
    def incr(self, name: str, value: int = 1) -> None: ...


class NullMetrics:
    """Default collector; drops everything."""

    def incr(self, name: str, value: int = 1) -> None:
        return None


class InMemoryMetrics:
    """Best-effort process-local counters. Not consistency-critical."""

    def __init__(self) -> None:
        self._counts: Counter[str] = Counter()

    def incr(self, name: str, value: int = 1) -> None:
        self._counts[name] += value

    def snapshot(self) -> Dict[str, int]:
        return dict(self._counts)

    def reset(self) -> None:
        self._counts.clear()
