"""Balance board recording session.

Ties the pieces together the way an experiment uses them: connect to the
board, wait for the user to press the ready button, poll at the configured
rate while showing the live COG, and save the trial or the whole session on
demand.
"""

import contextlib
import logging
import time
from typing import Callable, Optional

from cogboard.acquisition.acquisition_loop import AcquisitionLoop, AcquisitionStats, LoopState
from cogboard.acquisition.dual_buffer import DualBufferStore, ExportPolicy, ExportResult
from cogboard.config.settings import EngineSettings
from cogboard.device.board import BalanceBoard, open_board, wait_for_button
from cogboard.display.bridge import DisplayBridge
from cogboard.display.sink import DisplaySink
from cogboard.export.writers import ArtifactWriter, create_writer
from cogboard.models import Sample

logger = logging.getLogger(__name__)


class ConnectionState:
    """Connection state constants."""

    DISCONNECTED = "disconnected"
    CONNECTING = "connecting"
    CONNECTED = "connected"
    DISCONNECTING = "disconnecting"
    ERROR = "error"


# Callback type for connection state changes: (state, message)
ConnectionCallback = Callable[[str, str], None]


class BalanceSession:
    """A recording session on one balance board.

    Example:
        >>> with BalanceSession(board, settings, display=RecordingSink()) as session:
        ...     session.record(seconds=2.0)
        ...     session.save_and_clear_trial_data()
        ...     session.save_and_clear_all_data()
    """

    def __init__(
        self,
        board: BalanceBoard,
        settings: Optional[EngineSettings] = None,
        display: Optional[DisplaySink] = None,
        writer: Optional[ArtifactWriter] = None,
        clock: Callable[[], float] = time.monotonic,
        sleep: Callable[[float], None] = time.sleep,
    ) -> None:
        """Create a session. Buffers are allocated now; the board is opened by ``open``.

        Args:
            board: Board driver.
            settings: Engine settings. Defaults to EngineSettings().
            display: Live display. Ignored unless ``settings.use_gui``.
            writer: Artifact writer for saves. Defaults to the writer for
                ``settings.export_format`` in ``settings.output_directory``.
            clock: Monotonic clock in seconds.
            sleep: Sleep function in seconds.

        Raises:
            ValueError: If the settings are invalid.
        """
        self._settings = settings or EngineSettings()
        self._settings.validate()
        self._board = board
        self._display = display if self._settings.use_gui else None
        self._writer = writer or create_writer(
            self._settings.export_format,
            self._settings.output_directory or ".",
        )
        self._clock = clock
        self._sleep = sleep

        self._store = DualBufferStore(
            all_capacity=self._settings.all_capacity_hint,
            trial_capacity=self._settings.trial_capacity_hint,
            policy=ExportPolicy(clear_trial_on_all_export=self._settings.clear_trial_on_all_export),
        )
        self._loop: Optional[AcquisitionLoop] = None
        self._bridge: Optional[DisplayBridge] = None
        self._resources: Optional[contextlib.ExitStack] = None
        self._state = ConnectionState.DISCONNECTED
        self._listeners: list[ConnectionCallback] = []

    @property
    def state(self) -> str:
        """Current connection state."""
        return self._state

    @property
    def is_open(self) -> bool:
        return self._state == ConnectionState.CONNECTED

    @property
    def settings(self) -> EngineSettings:
        return self._settings

    @property
    def store(self) -> DualBufferStore:
        """Session and trial buffers."""
        return self._store

    @property
    def writer(self) -> ArtifactWriter:
        return self._writer

    @property
    def loop(self) -> AcquisitionLoop:
        """The acquisition loop of the open session.

        Raises:
            RuntimeError: If the session has never been opened.
        """
        if self._loop is None:
            raise RuntimeError("Session not open")
        return self._loop

    def add_connection_listener(self, callback: ConnectionCallback) -> None:
        """Call ``callback(state, message)`` on every connection state change."""
        self._listeners.append(callback)

    def open(self) -> "BalanceSession":
        """Connect, wait for the ready button and start the display.

        Raises:
            RuntimeError: If already open (call close() first, also after a fault).
            BoardConnectionError: If the board could not be connected or the
                ready button was not pressed in time.

        Any failure before the board is ready (including raw driver errors)
        disconnects the board, sets the ERROR state and is re-raised.
        """
        if self._resources is not None:
            raise RuntimeError("Session already open")

        self._set_state(ConnectionState.CONNECTING, "Initialising balance board")
        resources = contextlib.ExitStack()
        try:
            handle = resources.enter_context(open_board(self._board))
            logger.info("Press %s on balance board", self._settings.ready_button)
            wait_for_button(
                self._board,
                handle,
                self._settings.ready_button,
                timeout=self._settings.ready_timeout_seconds,
                clock=self._clock,
                sleep=self._sleep,
            )
        except BaseException as e:
            resources.close()
            self._set_state(ConnectionState.ERROR, str(e))
            raise

        display: Optional[DisplaySink] = None
        if self._display is not None:
            self._bridge = DisplayBridge(self._display, self._settings.display_queue_size)
            self._bridge.start()
            resources.callback(self._bridge.stop)
            self._bridge.clear()
            try:
                self._bridge.bring_to_front()
            except Exception:
                logger.warning("Could not raise the display window", exc_info=True)
            display = self._bridge

        self._loop = AcquisitionLoop(
            self._board,
            handle,
            self._store,
            sample_rate_hz=self._settings.sample_rate_hz,
            display=display,
            warn_on_duplicate=self._settings.warn_on_duplicate,
            clock=self._clock,
            sleep=self._sleep,
        )
        self._loop.add_state_listener(self._on_loop_state)
        self._resources = resources
        self._set_state(ConnectionState.CONNECTED, "Balance board ready")
        return self

    def close(self) -> None:
        """Stop acquisition, stop the display and disconnect. Safe to call twice."""
        if self._resources is None:
            return
        self._set_state(ConnectionState.DISCONNECTING, "Disconnecting")
        if self._loop is not None:
            self._loop.stop()
        resources, self._resources = self._resources, None
        self._bridge = None
        try:
            resources.close()
        finally:
            self._set_state(ConnectionState.DISCONNECTED, "Disconnected")

    def update(self, warn_if_duplicate: Optional[bool] = None) -> Optional[Sample]:
        """Query the board once and store the reading if it is new.

        Returns:
            The stored sample, or None if the reading was a duplicate.

        Raises:
            RuntimeError: If the session is not open.
            ReadFailure: If the board read failed.
        """
        return self._require_loop().poll_once(warn_if_duplicate)

    def record(self, seconds: Optional[float] = None, max_cycles: Optional[int] = None) -> AcquisitionStats:
        """Poll at the configured rate for ``seconds`` (or until ``stop``).

        Raises:
            RuntimeError: If the session is not open.
            ReadFailure: If the board read failed.
        """
        loop = self._require_loop()
        if loop.state == LoopState.STOPPED:
            loop.reset()
        return loop.run(duration=seconds, max_cycles=max_cycles)

    def stop(self) -> None:
        """Ask a running ``record`` to return after the current cycle."""
        if self._loop is not None:
            self._loop.stop()

    def save_and_clear_all_data(self, name: Optional[str] = None) -> ExportResult:
        """Save the whole session, then clear it (and the trial buffer).

        Args:
            name: Artifact name, optionally with a directory part. Defaults
                to a timestamped ``BalanceBoard_AllData-...`` name.

        Raises:
            ArtifactWriteError: If saving failed. Nothing is cleared.
        """
        return self._store.export_and_clear_all(self._writer, name)

    def save_and_clear_trial_data(self, name: Optional[str] = None) -> ExportResult:
        """Save the current trial, then clear the trial buffer.

        Raises:
            ArtifactWriteError: If saving failed. Nothing is cleared.
        """
        return self._store.export_and_clear_trial(self._writer, name)

    def _require_loop(self) -> AcquisitionLoop:
        if self._state != ConnectionState.CONNECTED or self._loop is None:
            raise RuntimeError("Session not open")
        return self._loop

    def _on_loop_state(self, state: LoopState, error: Optional[BaseException]) -> None:
        if state == LoopState.FAULTED and self._state == ConnectionState.CONNECTED:
            self._set_state(ConnectionState.ERROR, str(error) if error else "Acquisition faulted")

    def _set_state(self, state: str, message: str = "") -> None:
        self._state = state
        logger.debug("Session state: %s (%s)", state, message)
        for callback in self._listeners:
            try:
                callback(state, message)
            except Exception:
                logger.warning("Connection listener failed", exc_info=True)

    def __enter__(self) -> "BalanceSession":
        return self.open()

    def __exit__(self, exc_type: object, exc_val: object, exc_tb: object) -> None:
        self.close()
