"""Test doubles shared across the cogboard test suite."""

from dataclasses import dataclass, field
from typing import Optional

from cogboard.models import Sample


class VirtualClock:
    """Deterministic monotonic clock with a matching sleep function.

    ``sleep`` advances time by exactly the requested amount and records it,
    so rate control can be checked without real waiting.
    """

    def __init__(self, start: float = 1000.0) -> None:
        self.now = start
        self.sleeps: list[float] = []

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds

    def sleep(self, seconds: float) -> None:
        if seconds < 0:
            raise ValueError(f"negative sleep: {seconds}")
        self.sleeps.append(seconds)
        self.now += seconds


@dataclass
class ScriptedHandle:
    connected: bool = True


@dataclass
class ScriptedBoard:
    """Board double whose readings and read costs are scripted per read.

    By default every read returns a distinct reading. ``readings`` overrides
    the (cog, sensors) sequence; ``costs`` is the clock time each read takes;
    ``fail_at`` makes the Nth cog read (1-based) raise. ``button_error`` is raised
    by every button poll.
    """

    clock: Optional[VirtualClock] = None
    readings: Optional[list[tuple[tuple[float, float], tuple[float, float, float, float]]]] = None
    costs: dict[int, float] = field(default_factory=dict)
    fail_at: Optional[int] = None
    battery: float = 0.8
    connect_error: Optional[Exception] = None
    button_presses_after: int = 0
    button_error: Optional[Exception] = None

    reads: int = 0
    connects: int = 0
    disconnects: int = 0
    button_polls: int = 0
    handle: Optional[ScriptedHandle] = None

    def connect(self) -> ScriptedHandle:
        self.connects += 1
        if self.connect_error is not None:
            raise self.connect_error
        self.handle = ScriptedHandle()
        return self.handle

    def is_connected(self, handle: ScriptedHandle) -> bool:
        return handle.connected

    def disconnect_all(self) -> None:
        self.disconnects += 1
        if self.handle is not None:
            self.handle.connected = False

    def read_cog_state(self, handle: ScriptedHandle) -> tuple[float, float]:
        self.reads += 1
        if self.fail_at is not None and self.reads == self.fail_at:
            raise OSError("bluetooth link lost")
        if self.clock is not None:
            self.clock.advance(self.costs.get(self.reads, 0.0))
        return self._reading()[0]

    def read_sensor_state(self, handle: ScriptedHandle) -> tuple[float, float, float, float]:
        return self._reading()[1]

    def read_battery_state(self, handle: ScriptedHandle) -> float:
        return self.battery

    def is_button_pressed(self, handle: ScriptedHandle, button_id: str) -> bool:
        self.button_polls += 1
        if self.button_error is not None:
            raise self.button_error
        return self.button_polls > self.button_presses_after

    def _reading(self) -> tuple[tuple[float, float], tuple[float, float, float, float]]:
        if self.readings is not None:
            return self.readings[(self.reads - 1) % len(self.readings)]
        i = float(self.reads)
        return (i, -i), (i, i + 1, i + 2, i + 3)


def make_sample(i: float, timestamp: Optional[float] = None) -> Sample:
    """Build a distinct sample whose fields derive from ``i``."""
    return Sample(
        cog_x=i,
        cog_y=-i,
        sensors=(i, i + 1, i + 2, i + 3),
        battery=0.8,
        timestamp=float(i) if timestamp is None else timestamp,
    )


