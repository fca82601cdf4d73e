"""Default telemetry sink."""

from __future__ import annotations

from loguru import logger


class NoopTelemetry:
    """Telemetry sink that only writes counters to the debug log."""

    def incr(self, name: str, value: int = 1, labels: tuple[tuple[str, str], ...] = ()) -> None:
        logger.debug("metric {} +{} {}", name, value, dict(labels))
