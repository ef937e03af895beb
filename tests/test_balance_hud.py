"""Tests for the BalanceHud widget."""

import pytest

# Skip entire module if Qt is not available
pytest.importorskip("PySide6")

try:
    import PySide6.QtGui  # noqa: F401
except ImportError:
    pytest.skip("PySide6 not usable", allow_module_level=True)

from cogboard.display import DisplayBridge
from cogboard.display.balance_hud import BalanceHud, HudSink


@pytest.fixture
def hud(qtbot):
    """Create a BalanceHud with a short window for testing."""
    widget = BalanceHud(sample_rate=10.0, window_seconds=1.0)
    qtbot.addWidget(widget)
    return widget


class TestBalanceHudInitialization:
    def test_history_window_from_rate(self, hud):
        """History holds window_seconds * sample_rate points."""
        assert hud.max_points == 10

    def test_starts_empty(self, hud):
        assert hud.history == ([], [])

    def test_rejects_bad_rate(self, qtbot):
        with pytest.raises(ValueError):
            BalanceHud(sample_rate=0.0)


class TestBalanceHudUpdates:
    def test_update_point_appends(self, hud):
        hud.update_point((1.0, -2.0))
        hud.update_point((1.5, -2.5))
        assert hud.history == ([1.0, 1.5], [-2.0, -2.5])

    def test_history_is_bounded(self, hud):
        for i in range(25):
            hud.update_point((i, i))
        xs, ys = hud.history
        assert len(xs) == 10
        assert xs[0] == 15.0

    def test_refresh_draws_latest_point(self, hud):
        hud.update_point((3.0, 4.0))
        hud.refresh()
        x, y = hud._balance_point.getData()
        assert list(x) == [3.0]
        assert list(y) == [4.0]

    def test_request_clear_applies_on_refresh(self, hud):
        hud.update_point((3.0, 4.0))
        hud.request_clear()
        assert hud.history != ([], [])
        hud.refresh()
        assert hud.history == ([], [])


class TestHudSink:
    def test_bridge_delivers_to_hud(self, hud, qtbot):
        """Points sent from the bridge thread reach the HUD history."""
        bridge = DisplayBridge(HudSink(hud))
        bridge.start()
        bridge.update((0.5, 0.25))
        bridge.stop()
        qtbot.waitUntil(lambda: hud.history == ([0.5], [0.25]), timeout=1000)

    def test_bring_to_front_shows_window(self, hud):
        HudSink(hud).bring_to_front()
        assert hud.isVisible()
