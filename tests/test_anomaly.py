"""Tests for the rate-change and overdue detectors."""

from anomaly import OverdueDetector, RateChangeDetector
from frequency import IntervalHistory
from switch_state import SwitchState


def _primary(**overrides) -> SwitchState:
    fields = {"switch_id": 0, "pin": 14, "bounce": 5}
    fields.update(overrides)
    return SwitchState(**fields)


class TestRateChange:
    def test_no_baseline_during_warm_up(self) -> None:
        sw = _primary(history=IntervalHistory(values=[100, 100, 100]))
        detector = RateChangeDetector(threshold_pct=20)
        assert detector.evaluate(sw, 100) is False
        assert sw.last_reported_frequency == 0

    def test_baseline_established_without_firing(self) -> None:
        sw = _primary(history=IntervalHistory(values=[100, 100, 100, 100]))
        detector = RateChangeDetector(threshold_pct=20)
        assert detector.evaluate(sw, 100) is False
        assert sw.last_reported_frequency == 100

    def test_small_change_is_ignored(self) -> None:
        sw = _primary(
            history=IntervalHistory(values=[100, 100, 100, 110]),
            last_reported_frequency=100,
        )
        detector = RateChangeDetector(threshold_pct=20)
        assert detector.evaluate(sw, 110) is False
        assert sw.last_reported_frequency == 100

    def test_faster_cycle_fires_and_moves_baseline(self) -> None:
        sw = _primary(
            history=IntervalHistory(values=[100, 100, 60, 60]),
            last_reported_frequency=100,
        )
        detector = RateChangeDetector(threshold_pct=20)
        assert detector.evaluate(sw, 80) is True
        assert sw.last_reported_frequency == 80
        assert detector.evaluate(sw, 80) is False

    def test_slower_cycle_fires(self) -> None:
        sw = _primary(last_reported_frequency=100)
        detector = RateChangeDetector(threshold_pct=20)
        assert detector.evaluate(sw, 130) is True
        assert sw.last_reported_frequency == 130

    def test_zero_frequency_is_not_evaluated(self) -> None:
        sw = _primary(last_reported_frequency=100)
        assert RateChangeDetector(threshold_pct=20).evaluate(sw, 0) is False
        assert sw.last_reported_frequency == 100


class TestOverdue:
    def _stuck_on(self) -> SwitchState:
        return _primary(
            state=True,
            last_off_at=1000.0,
            history=IntervalHistory(values=[100]),
        )

    def test_fires_once_per_episode(self) -> None:
        sw = self._stuck_on()
        detector = OverdueDetector(threshold_seconds=20)
        assert detector.evaluate(sw, 1119.0) is False
        assert detector.evaluate(sw, 1120.0) is True
        assert detector.evaluate(sw, 1150.0) is False
        assert detector.evaluate(sw, 1200.0) is False

    def test_can_fire_again_after_off_and_on(self) -> None:
        sw = self._stuck_on()
        detector = OverdueDetector(threshold_seconds=20)
        assert detector.evaluate(sw, 1120.0) is True

        sw.apply_sample(False, 1210.0)
        detector.reset()
        sw.apply_sample(True, 1220.0)

        assert detector.evaluate(sw, 1329.0) is False
        assert detector.evaluate(sw, 1330.0) is True

    def test_not_evaluated_while_off(self) -> None:
        sw = self._stuck_on()
        sw.state = False
        assert OverdueDetector(threshold_seconds=20).evaluate(sw, 5000.0) is False

    def test_no_history_never_fires(self) -> None:
        sw = _primary(state=True, last_off_at=1000.0)
        assert OverdueDetector(threshold_seconds=20).evaluate(sw, 99999.0) is False
