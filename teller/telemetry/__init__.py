"""Telemetry backends."""

from teller.telemetry.base import NoopTelemetry
from teller.telemetry.inmemory import InMemoryTelemetry

__all__ = ["InMemoryTelemetry", "NoopTelemetry"]
