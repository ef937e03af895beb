"""Core data model for balance board samples."""

from dataclasses import dataclass
from typing import Final, Sequence

import numpy as np
from numpy.typing import NDArray

# Column order of every stored row and every exported artifact.
HEADERS: Final[tuple[str, ...]] = (
    "COGx",
    "COGy",
    "Sensor1State",
    "Sensor2State",
    "Sensor3State",
    "Sensor4State",
    "BatteryState",
    "Timestamp",
)

N_COLUMNS: Final[int] = len(HEADERS)

COG_COLUMNS: Final[tuple[int, ...]] = (0, 1)

# Fields compared when rejecting repeated readings (battery and time excluded).
SENSOR_COLUMNS: Final[tuple[int, ...]] = (0, 1, 2, 3, 4, 5)

TIMESTAMP_COLUMN: Final[int] = HEADERS.index("Timestamp")


@dataclass(frozen=True, slots=True)
class Sample:
    """A single reading from the balance board.

    Attributes:
        cog_x: Board-reported centre-of-gravity x offset.
        cog_y: Board-reported centre-of-gravity y offset.
        sensors: Raw corner load readings [Sensor1..Sensor4].
        battery: Battery state reported by the board.
        timestamp: Monotonic seconds at read time.
    """

    cog_x: float
    cog_y: float
    sensors: tuple[float, float, float, float]
    battery: float
    timestamp: float

    def __post_init__(self) -> None:
        if len(self.sensors) != 4:
            raise ValueError(f"sensors must have exactly 4 elements, got {len(self.sensors)}")

    @property
    def cog(self) -> tuple[float, float]:
        """The (x, y) centre-of-gravity pair sent to the display."""
        return (self.cog_x, self.cog_y)

    def as_row(self) -> NDArray[np.float64]:
        """Return the sample as a row in ``HEADERS`` order."""
        return np.array(
            [self.cog_x, self.cog_y, *self.sensors, self.battery, self.timestamp],
            dtype=np.float64,
        )

    @classmethod
    def from_row(cls, row: Sequence[float] | NDArray[np.float64]) -> "Sample":
        """Build a sample from a row in ``HEADERS`` order."""
        if len(row) != N_COLUMNS:
            raise ValueError(f"row must have exactly {N_COLUMNS} elements, got {len(row)}")
        values = [float(v) for v in row]
        return cls(
            cog_x=values[0],
            cog_y=values[1],
            sensors=(values[2], values[3], values[4], values[5]),
            battery=values[6],
            timestamp=values[7],
        )
