"""Real-time balance display using pyqtgraph.

Shows the current centre of gravity as a point on the board plane, plus COGx
and COGy traces over a fixed time window. Points arrive through ``update``
(from any thread) and are appended to bounded deques; a QTimer redraws at
30fps on the GUI thread.
"""

from collections import deque
from typing import Optional

import numpy as np
import pyqtgraph as pg
from PySide6.QtCore import QTimer
from PySide6.QtWidgets import QVBoxLayout, QWidget


class BalanceHud(QWidget):
    """Balance board heads-up display.

    Example:
        >>> hud = BalanceHud(sample_rate=44.0, window_seconds=10.0)
        >>> hud.show()
        >>> hud.update_point((1.5, -0.5))
        >>> bridge = DisplayBridge(HudSink(hud))
    """

    AXIS_LIMIT = 10.0
    TARGET_FPS = 30

    def __init__(
        self,
        sample_rate: float = 44.0,
        window_seconds: float = 10.0,
        parent: Optional[QWidget] = None,
    ) -> None:
        """Initialize the display.

        Args:
            sample_rate: Expected sampling rate in Hz, used for the time axis.
            window_seconds: Length of the visible history.
            parent: Parent widget.
        """
        super().__init__(parent)
        if sample_rate <= 0:
            raise ValueError(f"sample_rate must be positive, got {sample_rate}")
        self._sample_rate = sample_rate
        self._window_seconds = window_seconds
        self._max_points = max(1, int(window_seconds * sample_rate))

        self._x_history: deque[float] = deque(maxlen=self._max_points)
        self._y_history: deque[float] = deque(maxlen=self._max_points)
        self._total_points = 0
        self._dirty = False
        self._clear_requested = False

        self.setWindowTitle("Balance board")
        self.resize(425, 625)
        self._setup_ui()
        self._setup_timer()

    @property
    def max_points(self) -> int:
        """Number of points kept in the history window."""
        return self._max_points

    @property
    def history(self) -> tuple[list[float], list[float]]:
        """Copies of the COGx and COGy histories, oldest first."""
        return list(self._x_history), list(self._y_history)

    def _setup_ui(self) -> None:
        layout = QVBoxLayout(self)
        layout.setContentsMargins(0, 0, 0, 0)

        pg.setConfigOptions(antialias=False, useOpenGL=False)
        self._layout_widget = pg.GraphicsLayoutWidget()
        self._layout_widget.setBackground("w")
        layout.addWidget(self._layout_widget)

        limit = self.AXIS_LIMIT
        self._balance_plot = self._layout_widget.addPlot(row=0, col=0)
        self._balance_plot.setLabel("bottom", "x")
        self._balance_plot.setLabel("left", "y")
        self._balance_plot.setXRange(-limit, limit, padding=0)
        self._balance_plot.setYRange(-limit, limit, padding=0)
        self._balance_plot.showGrid(x=True, y=True, alpha=0.3)
        self._balance_plot.setAspectLocked(True)
        self._balance_point = self._balance_plot.plot(
            [], [], pen=None, symbol="o", symbolBrush="#2196F3"
        )

        self._x_plot = self._layout_widget.addPlot(row=1, col=0)
        self._x_plot.setLabel("bottom", "Time", units="s")
        self._x_plot.setLabel("left", "COG x")
        self._x_plot.setYRange(-limit, limit, padding=0)
        self._x_plot.setXRange(0, self._window_seconds, padding=0)
        self._x_line = self._x_plot.plot(pen=pg.mkPen(color="#F44336", width=1.5))

        self._y_plot = self._layout_widget.addPlot(row=2, col=0)
        self._y_plot.setLabel("bottom", "Time", units="s")
        self._y_plot.setLabel("left", "COG y")
        self._y_plot.setYRange(-limit, limit, padding=0)
        self._y_plot.setXRange(0, self._window_seconds, padding=0)
        self._y_line = self._y_plot.plot(pen=pg.mkPen(color="#4CAF50", width=1.5))

    def _setup_timer(self) -> None:
        self._timer = QTimer(self)
        self._timer.timeout.connect(self.refresh)
        self._timer.start(int(1000 / self.TARGET_FPS))

    def update_point(self, xy: tuple[float, float]) -> None:
        """Append a point to the history. Safe to call from any thread."""
        self._x_history.append(float(xy[0]))
        self._y_history.append(float(xy[1]))
        self._total_points += 1
        self._dirty = True

    def request_clear(self) -> None:
        """Ask for a clear on the next redraw. Safe to call from any thread."""
        self._clear_requested = True

    def clear(self) -> None:
        """Drop the history and blank all plots."""
        self._x_history.clear()
        self._y_history.clear()
        self._total_points = 0
        self._dirty = False
        self._clear_requested = False
        self._balance_point.setData([], [])
        self._x_line.setData([], [])
        self._y_line.setData([], [])

    def bring_to_front(self) -> None:
        """Show the window and give it focus."""
        self.show()
        self.raise_()
        self.activateWindow()

    def refresh(self) -> None:
        """Redraw from the current history (runs on the GUI thread)."""
        if self._clear_requested:
            self._clear_requested = False
            self.clear()
            return
        if not self._dirty:
            return
        self._dirty = False

        xs = np.fromiter(self._x_history, dtype=np.float64)
        ys = np.fromiter(self._y_history, dtype=np.float64)
        n = min(xs.size, ys.size)
        if n == 0:
            return
        xs, ys = xs[-n:], ys[-n:]

        first = self._total_points - n
        t = np.arange(first, first + n, dtype=np.float64) / self._sample_rate

        self._balance_point.setData([xs[-1]], [ys[-1]])
        self._x_line.setData(t, xs)
        self._y_line.setData(t, ys)

        t_end = max(t[-1], self._window_seconds)
        for plot in (self._x_plot, self._y_plot):
            plot.setXRange(max(0.0, t_end - self._window_seconds), t_end, padding=0)

    def closeEvent(self, event) -> None:  # noqa: N802
        self._timer.stop()
        super().closeEvent(event)


class HudSink:
    """Adapts a BalanceHud to the DisplaySink interface.

    ``update`` and ``clear`` only touch thread-safe state, so the adapter can
    be driven by a DisplayBridge thread while the HUD redraws on the GUI
    thread.
    """

    def __init__(self, hud: BalanceHud) -> None:
        self._hud = hud

    @property
    def hud(self) -> BalanceHud:
        return self._hud

    def update(self, xy: tuple[float, float]) -> None:
        self._hud.update_point(xy)

    def clear(self) -> None:
        self._hud.request_clear()

    def bring_to_front(self) -> None:
        self._hud.bring_to_front()
