"""Session and trial buffers fed by the acquisition loop.

Every accepted sample goes into two buffers at once:

- ``all``: the whole session, kept until it is exported.
- ``trial``: the current trial, cleared whenever a trial is exported.

The two only diverge through clears, so under the default policy the trial
buffer is always a suffix of the session buffer. Exporting or clearing the
session buffer also clears the trial buffer by default: a full save marks the
start of a new trial. This is an explicit policy (``ExportPolicy``) rather
than a side effect, and can be turned off for callers that export trials and
sessions on independent schedules (the suffix relation then no longer holds).

Export and clear happen under the same lock that ``accept`` takes, so an
export run from another thread can never lose a sample appended between the
snapshot and the clear.
"""

import logging
import threading
from dataclasses import dataclass
from pathlib import Path
from typing import Optional, Sequence

import numpy as np
from numpy.typing import NDArray

from cogboard.acquisition.sample_buffer import GrowableSampleBuffer, SampleBufferStats
from cogboard.export.filename import ArtifactKind, default_artifact_name
from cogboard.export.snapshot import SessionSnapshot, snapshot
from cogboard.export.writers import ArtifactWriter
from cogboard.models import HEADERS, N_COLUMNS, Sample

logger = logging.getLogger(__name__)


@dataclass(frozen=True, slots=True)
class ExportPolicy:
    """How exports interact with the buffers.

    Attributes:
        clear_trial_on_all_export: Exporting ``all`` also clears ``trial``.
    """

    clear_trial_on_all_export: bool = True


@dataclass(frozen=True, slots=True)
class ExportResult:
    """Outcome of an export-and-clear.

    Attributes:
        snapshot: The exported data.
        path: Where the writer stored it, or None if no writer was given.
    """

    snapshot: SessionSnapshot
    path: Optional[Path] = None


@dataclass(frozen=True, slots=True)
class DualBufferStats:
    """Statistics for both buffers."""

    all: SampleBufferStats
    trial: SampleBufferStats


class DualBufferStore:
    """Owner of the session (``all``) and trial buffers.

    Example:
        >>> store = DualBufferStore()
        >>> store.accept(sample)
        >>> result = store.export_and_clear_trial(writer)
        >>> result.snapshot.nrows
        1
    """

    DEFAULT_ALL_CAPACITY = 10_000
    DEFAULT_TRIAL_CAPACITY = 1_000

    def __init__(
        self,
        all_capacity: int = DEFAULT_ALL_CAPACITY,
        trial_capacity: int = DEFAULT_TRIAL_CAPACITY,
        headers: Sequence[str] = HEADERS,
        policy: Optional[ExportPolicy] = None,
    ) -> None:
        """Create both buffers empty.

        Args:
            all_capacity: Initial row allocation for the session buffer.
            trial_capacity: Initial row allocation for the trial buffer.
            headers: Column labels used for exports.
            policy: Export policy. Defaults to ExportPolicy().

        Raises:
            ValueError: If a capacity is not positive.
        """
        self._headers = tuple(headers)
        if len(self._headers) != N_COLUMNS:
            raise ValueError(f"expected {N_COLUMNS} headers, got {len(self._headers)}")
        self._all = GrowableSampleBuffer(all_capacity, N_COLUMNS)
        self._trial = GrowableSampleBuffer(trial_capacity, N_COLUMNS)
        self._policy = policy or ExportPolicy()
        self._lock = threading.RLock()

    @property
    def all(self) -> GrowableSampleBuffer:
        """Session buffer."""
        return self._all

    @property
    def trial(self) -> GrowableSampleBuffer:
        """Trial buffer."""
        return self._trial

    @property
    def headers(self) -> tuple[str, ...]:
        """Column labels for exports."""
        return self._headers

    @property
    def policy(self) -> ExportPolicy:
        """Current export policy."""
        return self._policy

    def accept(self, sample: Sample | Sequence[float] | NDArray[np.float64]) -> None:
        """Append a sample to both buffers.

        Duplicate filtering is the caller's job. If the session append fails
        (e.g. growth cannot allocate) the trial buffer is not touched; if the
        trial append fails the session append is rolled back.
        """
        with self._lock:
            self._all.put(sample)
            try:
                self._trial.put(sample)
            except Exception:
                self._all.drop_last()
                raise

    def last_row(self, columns: Optional[Sequence[int]] = None) -> Optional[NDArray[np.float64]]:
        """Return the last accepted row, restricted to ``columns``.

        Returns:
            1-D array, or None when no sample has been accepted since the last
            session clear.
        """
        with self._lock:
            if self._all.nrows == 0:
                return None
            return self._all.get_last_n(1, columns)[0]

    def export_and_clear_all(
        self,
        writer: Optional[ArtifactWriter] = None,
        name: Optional[str] = None,
    ) -> ExportResult:
        """Export the session buffer, then clear it.

        Also clears the trial buffer unless the policy says otherwise. If the
        writer raises, nothing is cleared and the error propagates.
        """
        with self._lock:
            result = self._export(self._all, ArtifactKind.ALL, writer, name)
            self._all.clear()
            if self._policy.clear_trial_on_all_export:
                self._trial.clear()
        return result

    def export_and_clear_trial(
        self,
        writer: Optional[ArtifactWriter] = None,
        name: Optional[str] = None,
    ) -> ExportResult:
        """Export the trial buffer, then clear it. The session buffer is untouched."""
        with self._lock:
            result = self._export(self._trial, ArtifactKind.TRIAL, writer, name)
            self._trial.clear()
        return result

    def clear_all(self) -> None:
        """Discard the session buffer without exporting it.

        Follows the same policy as ``export_and_clear_all``: the trial buffer
        is cleared too unless ``clear_trial_on_all_export`` is off.
        """
        with self._lock:
            self._all.clear()
            if self._policy.clear_trial_on_all_export:
                self._trial.clear()

    def clear_trial(self) -> None:
        """Discard the trial buffer without exporting it."""
        with self._lock:
            self._trial.clear()

    def stats(self) -> DualBufferStats:
        """Get statistics for both buffers."""
        with self._lock:
            return DualBufferStats(all=self._all.stats(), trial=self._trial.stats())

    def _export(
        self,
        buffer: GrowableSampleBuffer,
        kind: ArtifactKind,
        writer: Optional[ArtifactWriter],
        name: Optional[str],
    ) -> ExportResult:
        data = snapshot(buffer, self._headers)
        path = None
        if writer is not None:
            path = writer.write_artifact(name or default_artifact_name(kind), data)
        logger.info("Exported %s buffer (%d samples)", kind.value.lower(), data.nrows)
        return ExportResult(snapshot=data, path=path)
