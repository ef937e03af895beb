"""Tests for BalanceSession, the end-to-end recording facade."""

from pathlib import Path

import numpy as np
import pytest

from cogboard.acquisition import LoopState
from cogboard.config.settings import EngineSettings
from cogboard.display import RecordingSink
from cogboard.errors import BoardConnectionError, ReadFailure
from cogboard.export import load_npz_artifact
from cogboard.session import BalanceSession, ConnectionState

from helpers import ScriptedBoard, VirtualClock


def make_session(
    board: ScriptedBoard,
    clock: VirtualClock,
    tmp_path: Path,
    display: RecordingSink | None = None,
    **overrides: object,
) -> BalanceSession:
    settings = EngineSettings(output_directory=str(tmp_path), **overrides)  # type: ignore[arg-type]
    return BalanceSession(board, settings, display=display, clock=clock, sleep=clock.sleep)


class TestOpenClose:
    """Tests for the connection lifecycle."""

    def test_open_and_close(self, scripted_board: ScriptedBoard, virtual_clock: VirtualClock, tmp_path: Path) -> None:
        session = make_session(scripted_board, virtual_clock, tmp_path)
        states: list[str] = []
        session.add_connection_listener(lambda state, message: states.append(state))

        session.open()
        assert session.is_open
        assert scripted_board.handle is not None and scripted_board.handle.connected

        session.close()
        assert not scripted_board.handle.connected
        assert states == [
            ConnectionState.CONNECTING,
            ConnectionState.CONNECTED,
            ConnectionState.DISCONNECTING,
            ConnectionState.DISCONNECTED,
        ]

    def test_close_twice_is_safe(self, scripted_board: ScriptedBoard, virtual_clock: VirtualClock, tmp_path: Path) -> None:
        session = make_session(scripted_board, virtual_clock, tmp_path)
        session.open()
        session.close()
        session.close()
        assert session.state == ConnectionState.DISCONNECTED

    def test_open_twice_raises(self, scripted_board: ScriptedBoard, virtual_clock: VirtualClock, tmp_path: Path) -> None:
        with make_session(scripted_board, virtual_clock, tmp_path) as session:
            with pytest.raises(RuntimeError, match="already open"):
                session.open()

    def test_waits_for_ready_button(self, virtual_clock: VirtualClock, tmp_path: Path) -> None:
        board = ScriptedBoard(button_presses_after=5)
        with make_session(board, virtual_clock, tmp_path):
            assert board.button_polls == 6

    def test_button_timeout_disconnects(self, virtual_clock: VirtualClock, tmp_path: Path) -> None:
        board = ScriptedBoard(button_presses_after=1_000_000)
        session = make_session(board, virtual_clock, tmp_path, ready_timeout_seconds=0.05)
        with pytest.raises(BoardConnectionError):
            session.open()
        assert session.state == ConnectionState.ERROR
        assert board.handle is not None and not board.handle.connected

    def test_driver_error_while_waiting_disconnects(self, virtual_clock: VirtualClock, tmp_path: Path) -> None:
        """A raw driver error during the ready wait still closes the board."""
        board = ScriptedBoard(button_error=OSError("HID read failed"))
        session = make_session(board, virtual_clock, tmp_path)
        states: list[str] = []
        session.add_connection_listener(lambda state, message: states.append(state))

        with pytest.raises(OSError, match="HID read failed"):
            session.open()

        assert session.state == ConnectionState.ERROR
        assert states[-1] == ConnectionState.ERROR
        assert board.handle is not None and not board.handle.connected

        board.button_error = None
        session.open()
        assert session.is_open
        session.close()

    def test_connect_failure_can_be_retried(self, virtual_clock: VirtualClock, tmp_path: Path) -> None:
        board = ScriptedBoard(connect_error=OSError("pairing refused"))
        session = make_session(board, virtual_clock, tmp_path)
        with pytest.raises(BoardConnectionError):
            session.open()
        assert session.state == ConnectionState.ERROR

        board.connect_error = None
        session.open()
        assert session.is_open
        session.close()

    def test_operations_require_open_session(self, scripted_board: ScriptedBoard, virtual_clock: VirtualClock, tmp_path: Path) -> None:
        session = make_session(scripted_board, virtual_clock, tmp_path)
        with pytest.raises(RuntimeError, match="not open"):
            session.update()
        with pytest.raises(RuntimeError, match="not open"):
            session.record(max_cycles=1)
        with pytest.raises(RuntimeError, match="not open"):
            session.loop


class TestRecording:
    def test_record_fills_both_buffers(self, scripted_board: ScriptedBoard, virtual_clock: VirtualClock, tmp_path: Path) -> None:
        with make_session(scripted_board, virtual_clock, tmp_path) as session:
            stats = session.record(seconds=1.0)
            assert stats.accepted == session.store.all.nrows
            assert session.store.trial.nrows == session.store.all.nrows
            assert stats.accepted >= 44

    def test_update_polls_once(self, scripted_board: ScriptedBoard, virtual_clock: VirtualClock, tmp_path: Path) -> None:
        with make_session(scripted_board, virtual_clock, tmp_path) as session:
            sample = session.update()
            assert sample is not None
            assert sample.cog == (1.0, -1.0)
            assert session.store.all.nrows == 1

    def test_record_again_after_stop(self, scripted_board: ScriptedBoard, virtual_clock: VirtualClock, tmp_path: Path) -> None:
        with make_session(scripted_board, virtual_clock, tmp_path) as session:
            session.record(max_cycles=3)
            session.record(max_cycles=3)
            assert session.store.all.nrows == 6

    def test_display_receives_points(self, scripted_board: ScriptedBoard, virtual_clock: VirtualClock, tmp_path: Path) -> None:
        sink = RecordingSink()
        session = make_session(scripted_board, virtual_clock, tmp_path, display=sink)
        with session:
            session.record(max_cycles=5)
        # Bridge is flushed on close
        assert sink.points == [(float(i), float(-i)) for i in range(1, 6)]
        assert sink.raised == 1
        assert sink.clears == 1

    def test_display_ignored_without_gui(self, scripted_board: ScriptedBoard, virtual_clock: VirtualClock, tmp_path: Path) -> None:
        sink = RecordingSink()
        with make_session(scripted_board, virtual_clock, tmp_path, display=sink, use_gui=False) as session:
            session.record(max_cycles=3)
        assert sink.updates == 0
        assert sink.raised == 0

    def test_read_failure_marks_session_error(self, virtual_clock: VirtualClock, tmp_path: Path) -> None:
        board = ScriptedBoard(fail_at=4)
        session = make_session(board, virtual_clock, tmp_path)
        session.open()
        with pytest.raises(ReadFailure):
            session.record()
        assert session.loop.state == LoopState.FAULTED
        assert session.state == ConnectionState.ERROR
        assert session.store.all.nrows == 3
        session.close()
        assert board.handle is not None and not board.handle.connected


class TestSaving:
    def test_save_trial_then_all(self, scripted_board: ScriptedBoard, virtual_clock: VirtualClock, tmp_path: Path) -> None:
        """A trial save keeps the session; a session save clears both."""
        with make_session(scripted_board, virtual_clock, tmp_path) as session:
            session.record(max_cycles=4)
            trial = session.save_and_clear_trial_data("trial1")
            session.record(max_cycles=2)
            everything = session.save_and_clear_all_data("session1")

            assert session.store.all.nrows == 0
            assert session.store.trial.nrows == 0

        assert trial.path == tmp_path / "trial1.npz"
        assert everything.path == tmp_path / "session1.npz"
        np.testing.assert_array_equal(load_npz_artifact(trial.path).matrix[:, 0], [1, 2, 3, 4])
        assert load_npz_artifact(everything.path).nrows == 6

    def test_default_names(self, scripted_board: ScriptedBoard, virtual_clock: VirtualClock, tmp_path: Path) -> None:
        with make_session(scripted_board, virtual_clock, tmp_path, export_format="csv") as session:
            session.record(max_cycles=1)
            result = session.save_and_clear_all_data()
        assert result.path is not None
        assert result.path.name.startswith("BalanceBoard_AllData-")
        assert result.path.suffix == ".csv"

    def test_keep_trial_on_all_export(self, scripted_board: ScriptedBoard, virtual_clock: VirtualClock, tmp_path: Path) -> None:
        with make_session(
            scripted_board, virtual_clock, tmp_path, clear_trial_on_all_export=False
        ) as session:
            session.record(max_cycles=2)
            session.save_and_clear_all_data("s")
            assert session.store.trial.nrows == 2
