"""Error types and recovery strategies for cogboard.

Error taxonomy:
- DEV: Balance board errors (pairing/handshake failures, failed reads)
- BUF: Sample buffer errors (out-of-range requests, failed growth)
- IO: Artifact export errors (disk full, permission denied)

Duplicate readings are not errors; they are reported with
``DuplicateSampleWarning`` through the ``warnings`` machinery so callers can
silence or escalate them with the usual filters.
"""

from dataclasses import dataclass
from enum import Enum
from typing import Optional


class ErrorCategory(Enum):
    """Error category for classification and routing."""

    DEV = "DEV"
    BUF = "BUF"
    IO = "IO"


class RecoveryAction(Enum):
    """Suggested recovery action for the user."""

    RETRY = "retry"
    RECONNECT = "reconnect"
    CHOOSE_DIRECTORY = "choose_directory"
    MANUAL = "manual"


@dataclass(frozen=True, slots=True)
class ErrorContext:
    """Additional context for an error.

    Attributes:
        path: File path involved.
        operation: Device or buffer operation that failed.
        rows: Number of rows requested or involved.
        capacity: Buffer capacity involved.
        original_error: The underlying exception message.
    """

    path: Optional[str] = None
    operation: Optional[str] = None
    rows: Optional[int] = None
    capacity: Optional[int] = None
    original_error: Optional[str] = None


class CogboardError(Exception):
    """Base exception for all cogboard errors.

    Attributes:
        category: Error category for classification.
        code: Short error code (e.g., "DEV-001").
        message: User-friendly error message.
        recovery: Suggested recovery action.
        context: Additional error context.
    """

    def __init__(
        self,
        category: ErrorCategory,
        code: str,
        message: str,
        recovery: RecoveryAction,
        context: Optional[ErrorContext] = None,
    ) -> None:
        super().__init__(message)
        self.category = category
        self.code = code
        self.message = message
        self.recovery = recovery
        self.context = context or ErrorContext()

    def __str__(self) -> str:
        return f"[{self.code}] {self.message}"

    def user_message(self) -> str:
        """Return a user-friendly message suitable for display."""
        return self.message


class DeviceError(CogboardError):
    """Balance board errors."""

    def __init__(
        self,
        code: str,
        message: str,
        recovery: RecoveryAction = RecoveryAction.RECONNECT,
        context: Optional[ErrorContext] = None,
    ) -> None:
        super().__init__(ErrorCategory.DEV, code, message, recovery, context)


class BoardConnectionError(DeviceError):
    """Pairing or handshake with the board failed.

    Raised before acquisition starts. Callers may retry after an explicit
    disconnect-all.
    """

    def __init__(self, reason: str, original_error: Optional[str] = None) -> None:
        context = ErrorContext(operation="connect", original_error=original_error)
        super().__init__(
            code="DEV-001",
            message=f"Could not connect to the balance board: {reason}. "
            "Check that the board is paired and powered on.",
            recovery=RecoveryAction.RECONNECT,
            context=context,
        )


class ReadFailure(DeviceError):
    """A device read primitive failed while polling."""

    def __init__(self, operation: str, cycle: int, original_error: Optional[str] = None) -> None:
        context = ErrorContext(operation=operation, original_error=original_error)
        super().__init__(
            code="DEV-002",
            message=f"Balance board read '{operation}' failed on cycle {cycle}: "
            f"{original_error or 'unknown error'}. Acquisition stopped.",
            recovery=RecoveryAction.RECONNECT,
            context=context,
        )
        self.operation = operation
        self.cycle = cycle


class DuplicateSampleWarning(UserWarning):
    """The board returned the same reading as the last stored sample."""


class SampleBufferError(CogboardError):
    """Sample buffer errors."""

    def __init__(
        self,
        code: str,
        message: str,
        recovery: RecoveryAction = RecoveryAction.MANUAL,
        context: Optional[ErrorContext] = None,
    ) -> None:
        super().__init__(ErrorCategory.BUF, code, message, recovery, context)


class BufferRangeError(SampleBufferError):
    """More rows were requested than the buffer holds."""

    def __init__(self, requested: int, available: int) -> None:
        context = ErrorContext(operation="get_last_n", rows=requested)
        super().__init__(
            code="BUF-001",
            message=f"Requested {requested} rows but the buffer holds {available}.",
            recovery=RecoveryAction.MANUAL,
            context=context,
        )
        self.requested = requested
        self.available = available


class BufferAllocationError(SampleBufferError):
    """Buffer growth could not obtain memory."""

    def __init__(self, capacity: int, requested_capacity: int, original_error: Optional[str] = None) -> None:
        context = ErrorContext(
            operation="grow",
            rows=requested_capacity,
            capacity=capacity,
            original_error=original_error,
        )
        super().__init__(
            code="BUF-002",
            message=f"Could not grow sample buffer from {capacity} to {requested_capacity} rows.",
            recovery=RecoveryAction.MANUAL,
            context=context,
        )


class IoError(CogboardError):
    """Artifact export errors."""

    def __init__(
        self,
        code: str,
        message: str,
        recovery: RecoveryAction = RecoveryAction.CHOOSE_DIRECTORY,
        context: Optional[ErrorContext] = None,
    ) -> None:
        super().__init__(ErrorCategory.IO, code, message, recovery, context)


class ArtifactWriteError(IoError):
    """Writing an exported artifact failed. The source buffer is kept."""

    def __init__(self, path: str, reason: str) -> None:
        context = ErrorContext(path=path, operation="write_artifact", original_error=reason)
        super().__init__(
            code="IO-001",
            message=f"Error writing '{path}': {reason}. Buffered data was kept.",
            recovery=RecoveryAction.CHOOSE_DIRECTORY,
            context=context,
        )


class DiskFullError(IoError):
    """Disk is full, cannot write the artifact."""

    def __init__(self, path: str) -> None:
        context = ErrorContext(path=path, operation="write_artifact")
        super().__init__(
            code="IO-002",
            message=f"Disk full while writing '{path}'. Buffered data was kept.",
            recovery=RecoveryAction.CHOOSE_DIRECTORY,
            context=context,
        )
