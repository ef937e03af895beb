"""Display sink interface and a headless implementation."""

import threading
from collections import deque
from typing import Protocol


class DisplaySink(Protocol):
    """Receiver of live COG points.

    A sink keeps its own bounded history. ``update`` may be called from a
    non-GUI thread and must return quickly.
    """

    def update(self, xy: tuple[float, float]) -> None: ...

    def clear(self) -> None: ...

    def bring_to_front(self) -> None: ...


class RecordingSink:
    """Headless sink that keeps the most recent points in memory.

    Example:
        >>> sink = RecordingSink(max_points=440)  # 10 s at 44 Hz
        >>> sink.update((0.5, -1.0))
        >>> sink.points
        [(0.5, -1.0)]
    """

    def __init__(self, max_points: int = 440) -> None:
        if max_points <= 0:
            raise ValueError(f"max_points must be positive, got {max_points}")
        self._history: deque[tuple[float, float]] = deque(maxlen=max_points)
        self._lock = threading.Lock()
        self.updates = 0
        self.clears = 0
        self.raised = 0

    @property
    def points(self) -> list[tuple[float, float]]:
        """Points currently in the history window, oldest first."""
        with self._lock:
            return list(self._history)

    @property
    def max_points(self) -> int:
        return self._history.maxlen or 0

    def update(self, xy: tuple[float, float]) -> None:
        with self._lock:
            self._history.append((float(xy[0]), float(xy[1])))
            self.updates += 1

    def clear(self) -> None:
        with self._lock:
            self._history.clear()
            self.clears += 1

    def bring_to_front(self) -> None:
        self.raised += 1
