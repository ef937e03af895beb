"""Balance board driver interface."""

from cogboard.device.board import (
    BalanceBoard,
    BoardHandle,
    connect_board,
    open_board,
    wait_for_button,
)

__all__ = [
    "BalanceBoard",
    "BoardHandle",
    "connect_board",
    "open_board",
    "wait_for_button",
]
