"""Non-blocking handoff from the acquisition loop to a display sink.

The loop must never wait on the display. Points are queued with
``put_nowait`` and delivered by a dedicated thread; when the queue is full the
oldest pending point is dropped to make room, so the display always catches
up to the most recent position. Sink failures are logged and counted, never
raised into the loop.
"""

import logging
import queue
import threading
from dataclasses import dataclass
from enum import Enum, auto
from typing import Optional

from cogboard.display.sink import DisplaySink

logger = logging.getLogger(__name__)


class _Command(Enum):
    UPDATE = auto()
    CLEAR = auto()
    STOP = auto()


@dataclass(frozen=True, slots=True)
class DisplayBridgeStats:
    """Statistics for the display handoff."""

    delivered: int
    dropped: int
    errors: int
    queue_size: int
    queue_capacity: int


class DisplayBridge:
    """Deliver COG points to a sink from a background thread.

    The bridge is itself a DisplaySink, so the acquisition loop can be given
    either a sink or a bridge wrapping one.

    Thread model:
    - Acquisition thread: calls update(), never blocks
    - Display thread: dequeues points and calls sink.update()

    Example:
        >>> bridge = DisplayBridge(RecordingSink())
        >>> bridge.start()
        >>> bridge.update((0.1, 0.2))
        >>> bridge.stop()
    """

    DEFAULT_QUEUE_SIZE = 256

    def __init__(self, sink: DisplaySink, maxsize: int = DEFAULT_QUEUE_SIZE) -> None:
        if maxsize <= 0:
            raise ValueError(f"maxsize must be positive, got {maxsize}")
        self._sink = sink
        self._maxsize = maxsize
        self._queue: queue.Queue[tuple[_Command, Optional[tuple[float, float]]]] = queue.Queue(
            maxsize=maxsize
        )
        self._thread: Optional[threading.Thread] = None
        self._stats_lock = threading.Lock()
        self._delivered = 0
        self._dropped = 0
        self._errors = 0

    @property
    def sink(self) -> DisplaySink:
        return self._sink

    @property
    def is_running(self) -> bool:
        return self._thread is not None and self._thread.is_alive()

    def start(self) -> None:
        """Start the delivery thread.

        Raises:
            RuntimeError: If already running.
        """
        if self.is_running:
            raise RuntimeError("Display bridge already running")
        self._thread = threading.Thread(
            target=self._dispatch_loop,
            name="DisplayBridge",
            daemon=True,
        )
        self._thread.start()

    def stop(self, timeout: float = 1.0) -> None:
        """Deliver what is queued, then stop the delivery thread."""
        if self._thread is None:
            return
        self._enqueue(_Command.STOP, None)
        self._thread.join(timeout=timeout)
        self._thread = None

    def update(self, xy: tuple[float, float]) -> None:
        """Queue a point for display (never blocks)."""
        self._enqueue(_Command.UPDATE, (float(xy[0]), float(xy[1])))

    def clear(self) -> None:
        """Queue a clear of the sink's history."""
        self._enqueue(_Command.CLEAR, None)

    def bring_to_front(self) -> None:
        """Raise the sink window. Called from the GUI thread."""
        self._sink.bring_to_front()

    def stats(self) -> DisplayBridgeStats:
        with self._stats_lock:
            return DisplayBridgeStats(
                delivered=self._delivered,
                dropped=self._dropped,
                errors=self._errors,
                queue_size=self._queue.qsize(),
                queue_capacity=self._maxsize,
            )

    def _enqueue(self, command: _Command, xy: Optional[tuple[float, float]]) -> None:
        while True:
            try:
                self._queue.put_nowait((command, xy))
                return
            except queue.Full:
                try:
                    dropped, _ = self._queue.get_nowait()
                except queue.Empty:
                    continue
                if dropped is _Command.UPDATE:
                    with self._stats_lock:
                        self._dropped += 1
                elif dropped is _Command.STOP:
                    # Keep the stop request; discard the new item instead
                    self._queue.put_nowait((dropped, None))
                    return

    def _dispatch_loop(self) -> None:
        while True:
            command, xy = self._queue.get()
            if command is _Command.STOP:
                break
            try:
                if command is _Command.UPDATE and xy is not None:
                    self._sink.update(xy)
                    with self._stats_lock:
                        self._delivered += 1
                elif command is _Command.CLEAR:
                    self._sink.clear()
            except Exception:
                with self._stats_lock:
                    self._errors += 1
                logger.warning("Display sink failed; acquisition continues", exc_info=True)
