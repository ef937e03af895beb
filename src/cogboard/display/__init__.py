"""Live display of centre-of-gravity samples."""

from cogboard.display.bridge import DisplayBridge, DisplayBridgeStats
from cogboard.display.sink import DisplaySink, RecordingSink

__all__ = [
    "DisplayBridge",
    "DisplayBridgeStats",
    "DisplaySink",
    "RecordingSink",
]
