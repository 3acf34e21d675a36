"""
Unit tests for the cadence estimator.
Validates chatter rejection, EMA smoothing and the staleness timeout.
"""
import pytest

from cadence_coach.features import CadenceEstimator, instant_rate, smooth_cadence


def test_first_step_sets_instant_rate():
    """The first accepted step after reset is taken as-is."""
    est = CadenceEstimator()
    est.reset(0)
    assert est.on_step(400)
    assert est.smoothed_cadence == pytest.approx(150.0)
    assert est.last_step_ms == 400


def test_subsequent_steps_use_fixed_ema():
    est = CadenceEstimator()
    est.reset(0)
    est.on_step(400)            # 150 SPM
    est.on_step(700)            # 200 SPM instant
    assert est.smoothed_cadence == pytest.approx(0.6 * 150.0 + 0.4 * 200.0)
    est.on_step(1075)           # 160 SPM instant
    assert est.smoothed_cadence == pytest.approx(0.6 * 170.0 + 0.4 * 160.0)


def test_chatter_is_rejected():
    """Events < 200 ms after the last accepted step change nothing."""
    est = CadenceEstimator()
    est.reset(0)
    est.on_step(375)
    before = (est.smoothed_cadence, est.last_step_ms)
    assert not est.on_step(375 + 199)
    assert not est.on_step(375 + 50)
    assert (est.smoothed_cadence, est.last_step_ms) == before
    assert est.rejected == 2
    assert est.on_step(375 + 200)
    assert est.accepted == 2


def test_step_too_soon_after_reset_is_rejected():
    est = CadenceEstimator()
    est.reset(1000)
    assert not est.on_step(1100)
    assert est.smoothed_cadence == 0.0
    assert est.current_cadence(1100) == 0


def test_non_monotonic_timestamp_is_ignored():
    est = CadenceEstimator()
    est.reset(0)
    est.on_step(500)
    assert not est.on_step(300)
    assert est.smoothed_cadence == pytest.approx(120.0)


def test_current_cadence_floors_estimate():
    est = CadenceEstimator()
    est.reset(0)
    est.on_step(350)            # 171.43 SPM
    assert est.current_cadence(350) == 171


def test_current_cadence_is_zero_when_stale():
    est = CadenceEstimator()
    est.reset(0)
    est.on_step(375)
    assert est.current_cadence(375 + 2500) == 160
    assert est.current_cadence(375 + 2501) == 0


def test_reset_clears_estimate():
    est = CadenceEstimator()
    est.reset(0)
    est.on_step(375)
    est.reset(10_000)
    assert est.smoothed_cadence == 0.0
    assert est.last_step_ms == 10_000
    # First step after reset is again taken as-is
    est.on_step(10_500)
    assert est.smoothed_cadence == pytest.approx(120.0)


def test_steady_stream_converges():
    est = CadenceEstimator()
    est.reset(0)
    t = 0
    for _ in range(5):
        t += 400
        est.on_step(t)
    for _ in range(30):
        t += 300
        est.on_step(t)
    assert est.current_cadence(t) in (199, 200)


def test_helpers():
    assert instant_rate(375) == pytest.approx(160.0)
    assert instant_rate(0) == pytest.approx(60_000.0)
    assert smooth_cadence(100.0, 200.0) == pytest.approx(140.0)
