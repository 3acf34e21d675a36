"""
Unit tests for the baseline calibrator.
"""
from cadence_coach.baseline import Baseline, BaselineCalibrator


def test_starts_uncalculated():
    cal = BaselineCalibrator()
    assert not cal.is_calculated()
    assert cal.baseline == Baseline(0, False)
    assert cal.due_at is None


def test_due_thirty_seconds_after_start():
    cal = BaselineCalibrator()
    cal.start(5_000)
    assert cal.due_at == 35_000


def test_sample_freezes_once():
    cal = BaselineCalibrator()
    cal.start(0)
    b = cal.sample(158)
    assert b == Baseline(158, True)
    assert cal.is_calculated()
    assert cal.sample(170).value == 158


def test_reset_returns_to_uncalculated():
    cal = BaselineCalibrator()
    cal.start(0)
    cal.sample(158)
    cal.reset()
    assert not cal.is_calculated()
    assert cal.baseline.value == 0
    assert cal.due_at is None


def test_negative_sample_clamped():
    cal = BaselineCalibrator()
    cal.start(0)
    assert cal.sample(-3).value == 0
