"""Detection of repeated board readings.

The board can be polled faster than it refreshes internally. Such reads come
back identical apart from the timestamp we attach, so they are recognised on
the sensor payload (COG and corner loads) rather than on time.
"""

from typing import Optional, Sequence

import numpy as np
from numpy.typing import NDArray

from cogboard.models import SENSOR_COLUMNS, Sample

RowLike = Sample | Sequence[float] | NDArray[np.float64]


def sensor_payload(sample: RowLike, columns: Sequence[int] = SENSOR_COLUMNS) -> NDArray[np.float64]:
    """Return the fields of a full-width sample that identify a reading."""
    row = sample.as_row() if isinstance(sample, Sample) else np.asarray(sample, dtype=np.float64).reshape(-1)
    return row[list(columns)]


def is_duplicate(
    candidate: RowLike,
    last_stored: Optional[Sequence[float] | NDArray[np.float64]],
    columns: Sequence[int] = SENSOR_COLUMNS,
) -> bool:
    """Check whether ``candidate`` repeats the most recently stored reading.

    Args:
        candidate: Full-width sample that was just read.
        last_stored: Payload of the last stored sample, already restricted to
            ``columns`` (as returned by ``get_last_n(1, columns)``), or None
            when nothing has been stored yet.
        columns: Indices of the compared fields within a full-width row.

    Returns:
        True if every compared field is exactly equal.
    """
    if last_stored is None:
        return False
    previous = np.asarray(last_stored, dtype=np.float64).reshape(-1)
    if previous.size == 0:
        return False
    payload = sensor_payload(candidate, columns)
    if previous.shape != payload.shape:
        raise ValueError(
            f"last_stored has {previous.shape[0]} fields, expected {payload.shape[0]}"
        )
    return bool(np.array_equal(payload, previous))
