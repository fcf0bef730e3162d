import pytest
from fakes import ManualClock

from riskwise.services.drop_detector import DropDetector


def test_six_percent_drop_inside_window_fires_once():
    clock = ManualClock()
    detector = DropDetector(threshold_pct=5.0, window_seconds=900, clock=clock)

    assert detector.observe("u1", "AAPL", 100.0) is None
    clock.advance(300)
    change = detector.observe("u1", "AAPL", 94.0)
    clock.advance(1)
    again = detector.observe("u1", "AAPL", 94.0)

    assert change == pytest.approx(-0.06)
    assert again is None


def test_drop_measured_from_window_high():
    clock = ManualClock()
    detector = DropDetector(threshold_pct=5.0, window_seconds=900, clock=clock)
    detector.observe("u1", "AAPL", 100.0)
    clock.advance(60)
    detector.observe("u1", "AAPL", 104.0)
    clock.advance(60)

    assert detector.observe("u1", "AAPL", 98.5) == pytest.approx(98.5 / 104.0 - 1)


def test_old_samples_leave_the_window():
    clock = ManualClock()
    detector = DropDetector(threshold_pct=5.0, window_seconds=900, clock=clock)
    detector.observe("u1", "AAPL", 100.0)
    clock.advance(901)

    assert detector.observe("u1", "AAPL", 94.0) is None


def test_small_moves_do_not_fire():
    detector = DropDetector(threshold_pct=5.0, window_seconds=900, clock=ManualClock())
    detector.observe("u1", "AAPL", 100.0)

    assert detector.observe("u1", "AAPL", 96.0) is None
