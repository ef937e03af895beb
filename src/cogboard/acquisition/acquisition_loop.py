"""Fixed-rate polling loop for the balance board.

The loop polls the board at a target rate ``fs``. Each cycle reads COG,
corner loads and battery, timestamps the reading at read time, rejects it if
it repeats the last stored reading, stores it in both buffers and forwards the
COG pair to the display.

Rate control subtracts each cycle's processing time from the period before
sleeping, so the achieved rate converges on ``fs`` even when processing cost
varies. A cycle that takes longer than the period is followed immediately by
the next one; the loop never sleeps a negative amount.

State machine::

    IDLE -> POLLING -> STOPPED
                    -> FAULTED   (device read failed; call reset())

A failed device read ends the loop: later reads could return stale data that
is indistinguishable from a duplicate, so acquisition is not resumed
silently. Stop requests are honoured between cycles only.
"""

import logging
import threading
import time
import warnings
from dataclasses import dataclass
from enum import Enum, auto
from typing import Callable, Optional

import numpy as np

from cogboard.acquisition.dual_buffer import DualBufferStore
from cogboard.acquisition.duplicate_guard import is_duplicate
from cogboard.device.board import BalanceBoard, BoardHandle
from cogboard.display.sink import DisplaySink
from cogboard.errors import DuplicateSampleWarning, ReadFailure
from cogboard.models import SENSOR_COLUMNS, TIMESTAMP_COLUMN, Sample

logger = logging.getLogger(__name__)


class LoopState(Enum):
    """State of the acquisition loop."""

    IDLE = auto()
    POLLING = auto()
    STOPPED = auto()
    FAULTED = auto()


@dataclass(frozen=True, slots=True)
class AcquisitionStats:
    """Statistics for the acquisition loop."""

    state: LoopState
    cycles: int
    accepted: int
    duplicates: int
    overruns: int
    display_errors: int
    cumulative_drift_s: float
    elapsed_s: float

    @property
    def effective_rate_hz(self) -> float:
        """Achieved polling rate over the time spent in ``run``."""
        return self.cycles / self.elapsed_s if self.elapsed_s > 0 else 0.0

    @property
    def duplicate_ratio(self) -> float:
        """Fraction of reads rejected as duplicates (0.0 to 1.0)."""
        total = self.accepted + self.duplicates
        return self.duplicates / total if total > 0 else 0.0


# Callback types for loop events
SampleCallback = Callable[[Sample], None]
StateCallback = Callable[[LoopState, Optional[BaseException]], None]


class AcquisitionLoop:
    """Polls a connected balance board at a fixed rate.

    Example:
        >>> with open_board(board) as handle:
        ...     loop = AcquisitionLoop(board, handle, DualBufferStore(), sample_rate_hz=44.0)
        ...     loop.run(duration=2.0)
        >>> loop.stats().accepted
        88
    """

    DEFAULT_SAMPLE_RATE_HZ = 44.0

    def __init__(
        self,
        board: BalanceBoard,
        handle: BoardHandle,
        store: DualBufferStore,
        sample_rate_hz: float = DEFAULT_SAMPLE_RATE_HZ,
        display: Optional[DisplaySink] = None,
        warn_on_duplicate: bool = True,
        clock: Callable[[], float] = time.monotonic,
        sleep: Callable[[float], None] = time.sleep,
    ) -> None:
        """Initialize the loop.

        Args:
            board: Board driver.
            handle: Connected handle owned by this loop.
            store: Buffers receiving accepted samples.
            sample_rate_hz: Target polling rate.
            display: Receiver of COG pairs. Pass a DisplayBridge to keep a
                slow display from stalling the loop.
            warn_on_duplicate: Issue DuplicateSampleWarning for repeated reads.
            clock: Monotonic clock in seconds.
            sleep: Sleep function in seconds.

        Raises:
            ValueError: If sample_rate_hz is not positive.
        """
        if sample_rate_hz <= 0:
            raise ValueError(f"sample_rate_hz must be positive, got {sample_rate_hz}")

        self._board = board
        self._handle = handle
        self._store = store
        self._sample_rate_hz = float(sample_rate_hz)
        self._period = 1.0 / self._sample_rate_hz
        self._display = display
        self._warn_on_duplicate = warn_on_duplicate
        self._clock = clock
        self._sleep = sleep

        # State management
        self._state = LoopState.IDLE
        self._state_lock = threading.Lock()
        self._stop_event = threading.Event()
        self._error: Optional[BaseException] = None

        # Timing
        self._last_cycle_start: Optional[float] = None
        self._last_timestamp: Optional[float] = None
        self._cumulative_drift = 0.0
        self._elapsed = 0.0

        # Statistics
        self._cycles = 0
        self._accepted = 0
        self._duplicates = 0
        self._overruns = 0
        self._display_errors = 0
        self._stats_lock = threading.Lock()

        self._sample_listeners: list[SampleCallback] = []
        self._state_listeners: list[StateCallback] = []

    @property
    def state(self) -> LoopState:
        """Current loop state."""
        with self._state_lock:
            return self._state

    @property
    def is_polling(self) -> bool:
        return self.state == LoopState.POLLING

    @property
    def sample_rate_hz(self) -> float:
        """Target polling rate."""
        return self._sample_rate_hz

    @property
    def period(self) -> float:
        """Target cycle period in seconds."""
        return self._period

    @property
    def last_cycle_start(self) -> Optional[float]:
        """Clock reading at the start of the most recent cycle."""
        return self._last_cycle_start

    @property
    def error(self) -> Optional[BaseException]:
        """The error that faulted the loop, if any."""
        return self._error

    @property
    def store(self) -> DualBufferStore:
        return self._store

    @property
    def warn_on_duplicate(self) -> bool:
        return self._warn_on_duplicate

    @warn_on_duplicate.setter
    def warn_on_duplicate(self, value: bool) -> None:
        self._warn_on_duplicate = value

    def add_sample_listener(self, callback: SampleCallback) -> None:
        """Call ``callback`` with every accepted sample (on the loop thread)."""
        self._sample_listeners.append(callback)

    def add_state_listener(self, callback: StateCallback) -> None:
        """Call ``callback(state, error)`` on every state change."""
        self._state_listeners.append(callback)

    def stop(self) -> None:
        """Ask ``run`` to return after the current cycle. Thread-safe."""
        self._stop_event.set()

    def reset(self) -> None:
        """Return to IDLE after a stop or fault. Buffers are kept.

        Raises:
            RuntimeError: If the loop is polling.
        """
        with self._state_lock:
            if self._state == LoopState.POLLING:
                raise RuntimeError("Cannot reset while polling")
        self._error = None
        self._set_state(LoopState.IDLE)

    def run(self, duration: Optional[float] = None, max_cycles: Optional[int] = None) -> AcquisitionStats:
        """Poll until stopped, ``duration`` seconds pass or ``max_cycles`` complete.

        With neither limit the loop runs until ``stop()`` is called.

        Returns:
            Statistics at the end of the run.

        Raises:
            RuntimeError: If already polling or faulted.
            ReadFailure: If a device read fails. The loop is FAULTED.
            DuplicateSampleWarning: Only when warnings are escalated to errors.
                The loop ends STOPPED, not FAULTED, and can be run again.
        """
        with self._state_lock:
            if self._state == LoopState.POLLING:
                raise RuntimeError("Acquisition loop already polling")
            if self._state == LoopState.FAULTED:
                raise RuntimeError("Acquisition loop faulted, call reset() first")
            self._stop_event.clear()
            self._state = LoopState.POLLING
        self._notify_state(LoopState.POLLING)

        run_start = self._clock()
        completed = 0
        try:
            while not self._stop_event.is_set():
                if duration is not None and self._clock() - run_start >= duration:
                    break
                if max_cycles is not None and completed >= max_cycles:
                    break

                cycle_start = self._clock()
                self._last_cycle_start = cycle_start
                self._poll()
                completed += 1

                elapsed = self._clock() - cycle_start
                remaining = self._period - elapsed
                if remaining > 0:
                    self._sleep(remaining)
                else:
                    self._note_overrun(elapsed)

                with self._stats_lock:
                    self._cumulative_drift += (self._clock() - cycle_start) - self._period
        except BaseException as e:
            duplicate = isinstance(e, DuplicateSampleWarning)
            if isinstance(e, Exception) and not duplicate and self.state != LoopState.FAULTED:
                self._fault(e)
            raise
        finally:
            with self._stats_lock:
                self._elapsed += self._clock() - run_start
            if self.state == LoopState.POLLING:
                self._set_state(LoopState.STOPPED)

        return self.stats()

    def poll_once(self, warn_if_duplicate: Optional[bool] = None) -> Optional[Sample]:
        """Run a single acquisition cycle without rate control.

        Args:
            warn_if_duplicate: Override the duplicate warning setting for
                this cycle.

        Returns:
            The accepted sample, or None if the reading was a duplicate.

        Raises:
            RuntimeError: If the loop is faulted.
            ReadFailure: If a device read fails. The loop is FAULTED.
        """
        if self.state == LoopState.FAULTED:
            raise RuntimeError("Acquisition loop faulted, call reset() first")
        return self._poll(warn_if_duplicate)

    def stats(self) -> AcquisitionStats:
        """Get current loop statistics."""
        with self._stats_lock:
            return AcquisitionStats(
                state=self.state,
                cycles=self._cycles,
                accepted=self._accepted,
                duplicates=self._duplicates,
                overruns=self._overruns,
                display_errors=self._display_errors,
                cumulative_drift_s=self._cumulative_drift,
                elapsed_s=self._elapsed,
            )

    def _poll(self, warn_if_duplicate: Optional[bool] = None) -> Optional[Sample]:
        with self._stats_lock:
            self._cycles += 1
            cycle = self._cycles

        try:
            sample = self._read_sample(cycle)
        except ReadFailure as e:
            logger.error("%s", e)
            self._fault(e)
            raise

        if is_duplicate(sample, self._store.last_row(SENSOR_COLUMNS)):
            with self._stats_lock:
                self._duplicates += 1
            warn = self._warn_on_duplicate if warn_if_duplicate is None else warn_if_duplicate
            logger.debug("Duplicate reading on cycle %d ignored", cycle)
            if warn:
                warnings.warn(
                    "Duplicate data detected. Ignoring. Querying too fast?",
                    DuplicateSampleWarning,
                    stacklevel=3,
                )
            return None

        self._store.accept(sample)
        self._last_timestamp = sample.timestamp
        with self._stats_lock:
            self._accepted += 1

        for callback in self._sample_listeners:
            try:
                callback(sample)
            except Exception:
                logger.warning("Sample listener failed", exc_info=True)

        self._show(sample.cog)
        return sample

    def _read_sample(self, cycle: int) -> Sample:
        """Read one sample from the board, raising ReadFailure on any error."""
        operation = "read_cog_state"
        try:
            cog = self._board.read_cog_state(self._handle)
            operation = "read_sensor_state"
            sensors = self._board.read_sensor_state(self._handle)
            operation = "read_battery_state"
            battery = self._board.read_battery_state(self._handle)
            timestamp = self._clock()
            sample = Sample(
                cog_x=float(cog[0]),
                cog_y=float(cog[1]),
                sensors=tuple(float(s) for s in sensors),  # type: ignore[arg-type]
                battery=float(battery),
                timestamp=self._next_timestamp(timestamp),
            )
        except Exception as e:
            raise ReadFailure(operation, cycle, str(e)) from e
        return sample

    def _next_timestamp(self, timestamp: float) -> float:
        """Keep stored timestamps strictly increasing on coarse clocks."""
        last = self._last_timestamp
        if last is None:
            last_row = self._store.last_row((TIMESTAMP_COLUMN,))
            last = float(last_row[0]) if last_row is not None else None
        if last is not None and timestamp <= last:
            return float(np.nextafter(last, np.inf))
        return timestamp

    def _show(self, xy: tuple[float, float]) -> None:
        if self._display is None:
            return
        try:
            self._display.update(xy)
        except Exception:
            with self._stats_lock:
                self._display_errors += 1
            logger.warning("Display update failed; acquisition continues", exc_info=True)

    def _note_overrun(self, elapsed: float) -> None:
        with self._stats_lock:
            self._overruns += 1
            overruns = self._overruns
        # First overrun, then roughly once per second of overruns
        if overruns == 1 or overruns % max(1, int(self._sample_rate_hz)) == 0:
            logger.warning(
                "Cycle took %.1f ms, longer than the %.1f ms period: %.1f Hz is not attainable (%d overruns)",
                elapsed * 1000,
                self._period * 1000,
                self._sample_rate_hz,
                overruns,
            )

    def _fault(self, error: BaseException) -> None:
        self._error = error
        self._set_state(LoopState.FAULTED, error)

    def _set_state(self, state: LoopState, error: Optional[BaseException] = None) -> None:
        with self._state_lock:
            self._state = state
        self._notify_state(state, error)

    def _notify_state(self, state: LoopState, error: Optional[BaseException] = None) -> None:
        for callback in self._state_listeners:
            try:
                callback(state, error)
            except Exception:
                logger.warning("State listener failed", exc_info=True)
