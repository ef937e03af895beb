"""Snapshots of buffered samples for export.

A snapshot exposes the same data in two shapes: a matrix whose columns follow
the header order, and a mapping from header name to column. Taking a snapshot
never modifies the buffer; clearing is left to the owner of the buffer.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import TYPE_CHECKING, Any, Sequence

import numpy as np
from numpy.typing import NDArray

from cogboard.models import HEADERS

if TYPE_CHECKING:
    from cogboard.acquisition.sample_buffer import GrowableSampleBuffer


@dataclass(frozen=True, slots=True)
class SessionSnapshot:
    """Immutable view of a buffer's contents at export time.

    Attributes:
        matrix: Rows are samples, columns follow ``headers``.
        headers: Column labels.
        fields: One 1-D array per header, viewing ``matrix``.
    """

    matrix: NDArray[np.float64]
    headers: tuple[str, ...]
    fields: dict[str, NDArray[np.float64]]

    def __post_init__(self) -> None:
        if self.matrix.ndim != 2 or self.matrix.shape[1] != len(self.headers):
            raise ValueError(
                f"matrix shape {self.matrix.shape} does not match {len(self.headers)} headers"
            )

    @property
    def nrows(self) -> int:
        """Number of samples in the snapshot."""
        return self.matrix.shape[0]

    def as_dict(self) -> dict[str, Any]:
        """Return the nested ``{"matrix": ..., "struct": ...}`` layout."""
        return {
            "matrix": {"x": self.matrix, "headers": list(self.headers)},
            "struct": dict(self.fields),
        }


def snapshot_matrix(matrix: NDArray[np.float64], headers: Sequence[str] = HEADERS) -> SessionSnapshot:
    """Build a snapshot from an already-copied matrix."""
    headers = tuple(headers)
    matrix.setflags(write=False)
    fields = {name: matrix[:, i] for i, name in enumerate(headers)}
    return SessionSnapshot(matrix=matrix, headers=headers, fields=fields)


def snapshot(buffer: GrowableSampleBuffer, headers: Sequence[str] = HEADERS) -> SessionSnapshot:
    """Capture the current contents of ``buffer``.

    Args:
        buffer: Buffer to read. It is not cleared.
        headers: Column labels, one per buffer column.

    Returns:
        SessionSnapshot holding a copy of the buffered rows.
    """
    return snapshot_matrix(buffer.get(), headers)
