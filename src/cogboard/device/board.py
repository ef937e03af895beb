"""Balance board driver interface and connection lifecycle.

The vendor driver is consumed through the ``BalanceBoard`` protocol. The
connection is a scoped resource: ``open_board`` yields a connected handle and
always disconnects on the way out, including when acquisition faults.
"""

from __future__ import annotations

import logging
import time
from contextlib import contextmanager
from typing import Any, Callable, Iterator, Optional, Protocol

from cogboard.errors import BoardConnectionError

logger = logging.getLogger(__name__)

BoardHandle = Any


class BalanceBoard(Protocol):
    """Primitives exposed by a balance board driver."""

    def connect(self) -> BoardHandle: ...

    def is_connected(self, handle: BoardHandle) -> bool: ...

    def disconnect_all(self) -> None: ...

    def read_cog_state(self, handle: BoardHandle) -> tuple[float, float]: ...

    def read_sensor_state(self, handle: BoardHandle) -> tuple[float, float, float, float]: ...

    def read_battery_state(self, handle: BoardHandle) -> float: ...

    def is_button_pressed(self, handle: BoardHandle, button_id: str) -> bool: ...


def _safe_disconnect_all(board: BalanceBoard) -> None:
    try:
        board.disconnect_all()
    except Exception as e:
        logger.warning("Failed to disconnect balance board: %s", e)


def connect_board(board: BalanceBoard, retry: bool = True) -> BoardHandle:
    """Connect to the board and return a live handle.

    Boards left connected by an earlier run are released first. If the new
    handle reports it is not connected (the board is still held elsewhere),
    everything is disconnected and the connection is tried once more.

    Raises:
        BoardConnectionError: If no connected handle could be obtained.
    """
    # In case a previous session did not shut down properly
    _safe_disconnect_all(board)

    attempts = 2 if retry else 1
    last_error: Optional[Exception] = None
    for attempt in range(1, attempts + 1):
        try:
            handle = board.connect()
        except Exception as e:
            last_error = e
            logger.warning("Balance board connect attempt %d failed: %s", attempt, e)
        else:
            if board.is_connected(handle):
                logger.info("Balance board connected")
                return handle
            logger.warning("Balance board handle not connected on attempt %d", attempt)
        if attempt < attempts:
            logger.info("Removing all connected boards and retrying")
            _safe_disconnect_all(board)

    if last_error is not None:
        raise BoardConnectionError("handshake failed", str(last_error)) from last_error
    raise BoardConnectionError("board is held by another connection")


@contextmanager
def open_board(board: BalanceBoard, retry: bool = True) -> Iterator[BoardHandle]:
    """Context manager yielding a connected handle.

    ``disconnect_all`` runs on every exit path. A failure to disconnect is
    logged and never masks an exception raised inside the block.
    """
    handle = connect_board(board, retry=retry)
    try:
        yield handle
    finally:
        _safe_disconnect_all(board)
        logger.info("Balance board disconnected")


def wait_for_button(
    board: BalanceBoard,
    handle: BoardHandle,
    button_id: str = "A",
    poll_interval: float = 0.001,
    timeout: Optional[float] = None,
    clock: Callable[[], float] = time.monotonic,
    sleep: Callable[[float], None] = time.sleep,
) -> None:
    """Block until ``button_id`` is pressed on the board.

    Used as a "ready" gate before recording starts.

    Raises:
        BoardConnectionError: If ``timeout`` seconds pass without a press.
    """
    start = clock()
    while not board.is_button_pressed(handle, button_id):
        if timeout is not None and clock() - start >= timeout:
            raise BoardConnectionError(f"button {button_id} not pressed within {timeout:.1f}s")
        sleep(poll_interval)
