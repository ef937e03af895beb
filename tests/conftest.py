"""Pytest configuration for cogboard tests."""

import os

import pytest

os.environ.setdefault("QT_QPA_PLATFORM", "offscreen")

from helpers import ScriptedBoard, VirtualClock


def _qt_is_available() -> bool:
    """Check if Qt is fully available (Python bindings and native libraries)."""
    try:
        import pyqtgraph  # noqa: F401
        from PySide6 import QtCore  # noqa: F401
        from PySide6 import QtGui  # noqa: F401
        from PySide6 import QtWidgets  # noqa: F401

        return True
    except (ImportError, OSError, Exception):
        return False


def pytest_configure(config):
    """Disable pytest-qt if Qt is not available."""
    if not _qt_is_available():
        try:
            config.pluginmanager.set_blocked("pytest-qt")
            config.pluginmanager.set_blocked("pytestqt")
            config.pluginmanager.set_blocked("pytest_qt")
        except Exception:
            pass


# Disable Qt test modules if Qt is not available
collect_ignore = []
if not _qt_is_available():
    collect_ignore.append("test_balance_hud.py")


@pytest.fixture
def virtual_clock() -> VirtualClock:
    """Deterministic clock; its ``sleep`` advances time instantly."""
    return VirtualClock()


@pytest.fixture
def scripted_board(virtual_clock: VirtualClock) -> ScriptedBoard:
    """Board double driven by the virtual clock."""
    return ScriptedBoard(clock=virtual_clock)
