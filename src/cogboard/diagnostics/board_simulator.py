"""Balance board simulator for running without hardware.

Implements the ``BalanceBoard`` protocol with:
- A swaying centre of gravity and matching corner loads
- A slowly draining battery
- An internal refresh rate: polling faster than it returns repeated readings
- Fault injection for connection and read failures

Used by the CLI ``record`` command and throughout the test suite.
"""

import itertools
import math
import threading
import time
from dataclasses import dataclass, field
from typing import Callable, Optional

import numpy as np

# Physical size of the board surface in cm (sensor to sensor)
BOARD_WIDTH_CM = 43.3
BOARD_LENGTH_CM = 23.8


@dataclass
class FaultConfig:
    """Configuration for fault injection in the simulator."""

    # Number of connect() calls that raise before one succeeds
    connect_failures: int = 0

    # Number of connect() calls that return an unconnected handle
    unconnected_handles: int = 0

    # 1-based read number on which read_cog_state() raises
    fail_read_at: Optional[int] = None

    # Button polls answered "not pressed" before the button reads as pressed
    button_press_after: int = 0


@dataclass
class SimulatorConfig:
    """Configuration for the balance board simulator."""

    # Internal refresh rate of the board; faster polling yields repeats
    refresh_rate_hz: float = 100.0
    seed: Optional[int] = None

    # Signal generation
    body_mass_kg: float = 70.0
    sway_amplitude_cm: float = 3.0
    sway_frequency_hz: float = 0.4
    noise_stddev_cm: float = 0.05

    # Battery
    battery_start: float = 0.9
    battery_drain_per_second: float = 1e-5

    faults: FaultConfig = field(default_factory=FaultConfig)


@dataclass
class SimulatedHandle:
    """Connection handle returned by the simulator."""

    handle_id: int
    connected: bool = True


def corner_loads(cog_x: float, cog_y: float, mass_kg: float) -> tuple[float, float, float, float]:
    """Split ``mass_kg`` over the four corners for a given centre of gravity.

    Returns:
        Loads (top-right, bottom-right, top-left, bottom-left) in kg.
    """
    right = min(max(0.5 + cog_x / BOARD_WIDTH_CM, 0.0), 1.0)
    top = min(max(0.5 + cog_y / BOARD_LENGTH_CM, 0.0), 1.0)
    return (
        mass_kg * right * top,
        mass_kg * right * (1.0 - top),
        mass_kg * (1.0 - right) * top,
        mass_kg * (1.0 - right) * (1.0 - top),
    )


class SimulatedBalanceBoard:
    """Simulated balance board.

    Example:
        >>> board = SimulatedBalanceBoard(SimulatorConfig(seed=42))
        >>> handle = board.connect()
        >>> board.read_cog_state(handle)
        (0.01..., -0.02...)
        >>> board.disconnect_all()
    """

    def __init__(
        self,
        config: Optional[SimulatorConfig] = None,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        """Initialize the simulator.

        Args:
            config: Simulator configuration. Uses defaults if not provided.
            clock: Monotonic clock used for refreshes and the sway signal.
        """
        self.config = config or SimulatorConfig()
        self._clock = clock
        self._rng = np.random.default_rng(self.config.seed)
        self._lock = threading.Lock()
        self._handle_ids = itertools.count(1)
        self._handles: list[SimulatedHandle] = []

        self._start_time = clock()
        self._last_refresh: Optional[float] = None
        self._cog = (0.0, 0.0)
        self._sensors = (0.0, 0.0, 0.0, 0.0)

        self.connect_calls = 0
        self.disconnect_calls = 0
        self.reads = 0
        self.button_polls = 0

    @property
    def handles(self) -> list[SimulatedHandle]:
        """All handles handed out so far."""
        return list(self._handles)

    def connect(self) -> SimulatedHandle:
        """Pair with the simulated board.

        Raises:
            OSError: While injected connect failures remain.
        """
        with self._lock:
            self.connect_calls += 1
            faults = self.config.faults
            if faults.connect_failures > 0:
                faults.connect_failures -= 1
                raise OSError("simulated pairing failure")
            connected = True
            if faults.unconnected_handles > 0:
                faults.unconnected_handles -= 1
                connected = False
            handle = SimulatedHandle(next(self._handle_ids), connected)
            self._handles.append(handle)
            return handle

    def is_connected(self, handle: SimulatedHandle) -> bool:
        return handle.connected

    def disconnect_all(self) -> None:
        with self._lock:
            self.disconnect_calls += 1
            for handle in self._handles:
                handle.connected = False

    def read_cog_state(self, handle: SimulatedHandle) -> tuple[float, float]:
        """Return the current (x, y) centre of gravity in cm.

        Raises:
            OSError: On the injected failing read, or if the handle is closed.
        """
        with self._lock:
            self._check_handle(handle)
            self.reads += 1
            if self.config.faults.fail_read_at == self.reads:
                raise OSError(f"simulated read failure on read {self.reads}")
            self._refresh()
            return self._cog

    def read_sensor_state(self, handle: SimulatedHandle) -> tuple[float, float, float, float]:
        with self._lock:
            self._check_handle(handle)
            return self._sensors

    def read_battery_state(self, handle: SimulatedHandle) -> float:
        with self._lock:
            self._check_handle(handle)
            elapsed = self._clock() - self._start_time
            level = self.config.battery_start - self.config.battery_drain_per_second * elapsed
            return round(max(level, 0.0), 4)

    def is_button_pressed(self, handle: SimulatedHandle, button_id: str) -> bool:
        with self._lock:
            self._check_handle(handle)
            self.button_polls += 1
            return self.button_polls > self.config.faults.button_press_after

    def _check_handle(self, handle: SimulatedHandle) -> None:
        if not handle.connected:
            raise OSError(f"handle {handle.handle_id} is not connected")

    def _refresh(self) -> None:
        """Take a new internal reading if the refresh period has passed."""
        now = self._clock()
        period = 1.0 / self.config.refresh_rate_hz
        if self._last_refresh is not None and now - self._last_refresh < period:
            return
        self._last_refresh = now

        cfg = self.config
        t = now - self._start_time
        phase = 2 * math.pi * cfg.sway_frequency_hz * t
        noise = self._rng.normal(0.0, cfg.noise_stddev_cm, 2)
        cog_x = cfg.sway_amplitude_cm * math.sin(phase) + noise[0]
        cog_y = 0.5 * cfg.sway_amplitude_cm * math.sin(2 * phase) + noise[1]
        self._cog = (float(cog_x), float(cog_y))
        self._sensors = corner_loads(self._cog[0], self._cog[1], cfg.body_mass_kg)
