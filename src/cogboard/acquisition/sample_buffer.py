"""Growable sample buffer for session and trial recordings.

Rows are stored in a pre-allocated numpy matrix. Unlike a ring buffer nothing
is ever overwritten: when the matrix is full it is reallocated at (at least)
double the size and the existing rows are copied across, so appends cost O(1)
on average. The logical row count is tracked separately from the allocated
capacity, and clearing only resets the count so the next trial reuses the
same storage.
"""

import logging
import threading
from dataclasses import dataclass
from typing import Optional, Sequence

import numpy as np
from numpy.typing import NDArray

from cogboard.errors import BufferAllocationError, BufferRangeError
from cogboard.models import N_COLUMNS, Sample

logger = logging.getLogger(__name__)


@dataclass(frozen=True, slots=True)
class SampleBufferStats:
    """Statistics for sample buffer state."""

    capacity: int
    nrows: int
    total_written: int
    growths: int

    @property
    def fill_ratio(self) -> float:
        """Fraction of allocated rows in use (0.0 to 1.0)."""
        return self.nrows / self.capacity if self.capacity > 0 else 0.0


class GrowableSampleBuffer:
    """Thread-safe, append-only store of fixed-width sample rows.

    Example:
        >>> buffer = GrowableSampleBuffer(capacity=1000)
        >>> buffer.put(sample)
        >>> buffer.nrows
        1
        >>> buffer.get_last_n(1, columns=(0, 1))  # latest COG pair
    """

    # Smallest capacity used when growing a very small buffer
    MIN_GROWTH_ROWS = 4

    def __init__(self, capacity: int, n_columns: int = N_COLUMNS) -> None:
        """Initialize an empty buffer.

        Args:
            capacity: Initial number of rows to allocate (a size hint, not a limit).
            n_columns: Width of each row.

        Raises:
            ValueError: If capacity or n_columns is not positive.
        """
        if capacity <= 0:
            raise ValueError(f"capacity must be positive, got {capacity}")
        if n_columns <= 0:
            raise ValueError(f"n_columns must be positive, got {n_columns}")

        self._n_columns = n_columns
        self._lock = threading.Lock()
        self._data = np.zeros((capacity, n_columns), dtype=np.float64)

        self._nrows = 0
        self._total_written = 0
        self._growths = 0

    @property
    def capacity(self) -> int:
        """Number of rows currently allocated."""
        with self._lock:
            return self._data.shape[0]

    @property
    def n_columns(self) -> int:
        """Width of each row."""
        return self._n_columns

    @property
    def nrows(self) -> int:
        """Number of rows stored."""
        with self._lock:
            return self._nrows

    def __len__(self) -> int:
        return self.nrows

    def put(self, sample: Sample | Sequence[float] | NDArray[np.float64]) -> None:
        """Append one row, growing the storage if it is full.

        Args:
            sample: A Sample or a sequence of ``n_columns`` numbers.

        Raises:
            ValueError: If the row has the wrong width.
            BufferAllocationError: If growth could not allocate memory. The
                buffer is left exactly as it was.
        """
        row = self._coerce_row(sample)
        with self._lock:
            if self._nrows == self._data.shape[0]:
                self._grow()
            self._data[self._nrows, :] = row
            self._nrows += 1
            self._total_written += 1

    def get(self) -> NDArray[np.float64]:
        """Return a copy of all stored rows in insertion order.

        Returns:
            Array of shape (nrows, n_columns). Unused capacity is never included.
        """
        with self._lock:
            return self._data[: self._nrows].copy()

    def get_last_n(self, n: int, columns: Optional[Sequence[int]] = None) -> NDArray[np.float64]:
        """Return the ``n`` most recent rows, oldest first.

        Args:
            n: Number of rows to return.
            columns: Column indices to keep. Defaults to all columns.

        Returns:
            Array of shape (n, len(columns)).

        Raises:
            BufferRangeError: If ``n`` is negative or exceeds the stored rows.
        """
        with self._lock:
            if n < 0 or n > self._nrows:
                raise BufferRangeError(requested=n, available=self._nrows)
            rows = self._data[self._nrows - n : self._nrows]
            if columns is None:
                return rows.copy()
            return rows[:, list(columns)]

    def clear(self) -> None:
        """Forget all rows. Allocated storage is kept for reuse."""
        with self._lock:
            self._nrows = 0
            # Rows are not zeroed; nrows tracks validity

    def drop_last(self) -> None:
        """Undo the most recent ``put``. No-op on an empty buffer."""
        with self._lock:
            if self._nrows > 0:
                self._nrows -= 1
                self._total_written -= 1

    def stats(self) -> SampleBufferStats:
        """Get current buffer statistics."""
        with self._lock:
            return SampleBufferStats(
                capacity=self._data.shape[0],
                nrows=self._nrows,
                total_written=self._total_written,
                growths=self._growths,
            )

    def _coerce_row(self, sample: Sample | Sequence[float] | NDArray[np.float64]) -> NDArray[np.float64]:
        if isinstance(sample, Sample):
            row = sample.as_row()
        else:
            row = np.asarray(sample, dtype=np.float64).reshape(-1)
        if row.shape[0] != self._n_columns:
            raise ValueError(f"row must have exactly {self._n_columns} values, got {row.shape[0]}")
        return row

    def _grow(self) -> None:
        """Double the allocation (called with lock held)."""
        capacity = self._data.shape[0]
        new_capacity = max(2 * capacity, self.MIN_GROWTH_ROWS)
        try:
            data = np.empty((new_capacity, self._n_columns), dtype=np.float64)
        except MemoryError as e:
            raise BufferAllocationError(capacity, new_capacity, str(e)) from e
        data[:capacity] = self._data
        self._data = data
        self._growths += 1
        logger.debug("Sample buffer grown from %d to %d rows", capacity, new_capacity)
