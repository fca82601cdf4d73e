"""In-memory telemetry backend for tests and the CLI diagnostics view."""

from __future__ import annotations

from collections import Counter, defaultdict
from dataclasses import dataclass, field


@dataclass
class InMemoryTelemetry:
    """Stores counters in memory for inspection during tests."""

    counters: dict[str, Counter] = field(default_factory=lambda: defaultdict(Counter))

    def incr(self, name: str, value: int = 1, labels: tuple[tuple[str, str], ...] = ()) -> None:
        """Increase a named counter."""
        key = self._make_key(name, labels)
        self.counters[key][name] += value

    def _make_key(self, name: str, labels: tuple[tuple[str, str], ...] | None) -> str:
        if not labels:
            return name
        label_str = ",".join(f"{k}={v}" for k, v in labels)
        return f"{name}{{{label_str}}}"

    # ── Test helpers ─────────────────────────────────────────────────────

    def get_counter(self, name: str, labels: tuple[tuple[str, str], ...] = ()) -> int:
        """Get counter value for testing."""
        key = self._make_key(name, labels)
        return int(self.counters[key][name])

    def total(self, name: str) -> int:
        """Sum a counter across all label sets."""
        return sum(int(c[name]) for c in self.counters.values())

    def reset(self) -> None:
        self.counters.clear()
