from __future__ import annotations

import pytest

from stp.constants import MIN_TIMEOUT_MS
from stp.rtt import RttEstimator


def test_initial_timeout():
    r = RttEstimator(gamma=4)
    assert r.timeout_ms == pytest.approx(500 + 4 * 250)
    assert r.timeout_s == pytest.approx(1.5)


def test_sample_updates_estimates():
    r = RttEstimator(gamma=4)
    r.sample(100.0)
    est = 0.875 * 500 + 0.125 * 100
    dev = 0.75 * 250 + 0.25 * abs(100 - est)
    assert r.estimated_ms == pytest.approx(est)
    assert r.dev_ms == pytest.approx(dev)
    assert r.timeout_ms == pytest.approx(est + 4 * dev)
    assert r.samples == 1


def test_timeout_has_floor():
    r = RttEstimator(gamma=0, estimated_ms=1.0, dev_ms=0.0)
    for _ in range(50):
        r.sample(0.0)
    assert r.timeout_ms == MIN_TIMEOUT_MS
