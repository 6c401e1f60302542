"""No-op observability backend."""

from __future__ import annotations

from .base import RunObservation


class NoopObservability(RunObservation):
    """
    Observability backend that records nothing externally.

    Used when no telemetry backend is configured. It still enforces the
    full run state contract, so code that works against it works against
    any real backend.
    """

    name = "noop"
