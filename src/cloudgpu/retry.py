"""Backoff helpers for readiness polling."""

from __future__ import annotations

from collections.abc import Iterator
from dataclasses import dataclass


@dataclass(frozen=True)
class PollPolicy:
    initial_interval_seconds: float = 1.0
    multiplier: float = 1.5
    max_interval_seconds: float = 10.0
    timeout_seconds: float = 600.0

    def __post_init__(self) -> None:
        if self.initial_interval_seconds <= 0:
            raise ValueError("initial_interval_seconds must be positive")
        if self.multiplier < 1.0:
            raise ValueError("multiplier must be >= 1.0")
        if self.max_interval_seconds < self.initial_interval_seconds:
            raise ValueError("max_interval_seconds must be >= initial_interval_seconds")
        if self.timeout_seconds <= 0:
            raise ValueError("timeout_seconds must be positive")


def backoff_intervals(policy: PollPolicy) -> Iterator[float]:
    """Yield sleep intervals forever, growing until capped."""
    interval = policy.initial_interval_seconds
    while True:
        yield interval
        interval = min(interval * policy.multiplier, policy.max_interval_seconds)
