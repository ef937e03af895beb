"""Data acquisition loop and sample buffering."""

from cogboard.acquisition.sample_buffer import GrowableSampleBuffer, SampleBufferStats
from cogboard.acquisition.duplicate_guard import is_duplicate
from cogboard.acquisition.dual_buffer import (
    DualBufferStats,
    DualBufferStore,
    ExportPolicy,
    ExportResult,
)
from cogboard.acquisition.acquisition_loop import (
    AcquisitionLoop,
    AcquisitionStats,
    LoopState,
    SampleCallback,
    StateCallback,
)

__all__ = [
    "AcquisitionLoop",
    "AcquisitionStats",
    "DualBufferStats",
    "DualBufferStore",
    "ExportPolicy",
    "ExportResult",
    "GrowableSampleBuffer",
    "LoopState",
    "SampleBufferStats",
    "SampleCallback",
    "StateCallback",
    "is_duplicate",
]
