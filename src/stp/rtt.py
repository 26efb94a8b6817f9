from __future__ import annotations

from .constants import DEFAULT_DEV_RTT_MS, DEFAULT_ESTIMATED_RTT_MS, MAX_TIMEOUT_MS, MIN_TIMEOUT_MS


class RttEstimator:
    """EWMA round-trip estimate with a gamma-scaled deviation margin (ms)."""

    ALPHA = 0.125
    BETA = 0.25

    def __init__(
        self,
        gamma: float,
        estimated_ms: float = DEFAULT_ESTIMATED_RTT_MS,
        dev_ms: float = DEFAULT_DEV_RTT_MS,
    ):
        self.gamma = gamma
        self.estimated_ms = estimated_ms
        self.dev_ms = dev_ms
        self.samples = 0

    @property
    def timeout_ms(self) -> float:
        raw = self.estimated_ms + self.gamma * self.dev_ms
        return min(MAX_TIMEOUT_MS, max(MIN_TIMEOUT_MS, raw))

    @property
    def timeout_s(self) -> float:
        return self.timeout_ms / 1000.0

    def sample(self, sample_ms: float) -> float:
        self.estimated_ms = (1 - self.ALPHA) * self.estimated_ms + self.ALPHA * sample_ms
        self.dev_ms = (1 - self.BETA) * self.dev_ms + self.BETA * abs(sample_ms - self.estimated_ms)
        self.samples += 1
        return self.timeout_ms
