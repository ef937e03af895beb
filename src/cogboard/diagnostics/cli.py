"""Command-line interface for recording and settings management.

This module provides CLI commands for:
- Recording a session from the simulated balance board and saving it
- Showing or resetting the stored engine settings
"""

import argparse
import json
import sys
import threading
from dataclasses import asdict
from pathlib import Path
from typing import Optional

from cogboard.acquisition.acquisition_loop import AcquisitionStats
from cogboard.acquisition.dual_buffer import ExportResult
from cogboard.config.settings import EngineSettings, ExportFormat, SettingsStore
from cogboard.diagnostics.board_simulator import SimulatedBalanceBoard, SimulatorConfig
from cogboard.errors import CogboardError
from cogboard.log_setup import setup_logging
from cogboard.session import BalanceSession


def _settings_from_args(args: argparse.Namespace, settings: EngineSettings) -> EngineSettings:
    """Apply command-line overrides on top of stored settings."""
    if args.rate is not None:
        settings.sample_rate_hz = args.rate
    if args.format is not None:
        settings.export_format = args.format
    if args.quiet_duplicates:
        settings.warn_on_duplicate = False
    settings.use_gui = args.gui
    settings.output_directory = str(args.out)
    return settings


def _print_summary(stats: AcquisitionStats, trial: ExportResult, session: ExportResult) -> None:
    print()
    print("Recording complete.")
    print(f"  Cycles: {stats.cycles}")
    print(f"  Samples stored: {stats.accepted}")
    print(f"  Duplicates ignored: {stats.duplicates}")
    print(f"  Duration: {stats.elapsed_s:.2f}s")
    print(f"  Polling rate: {stats.effective_rate_hz:.1f} Hz")
    print(f"  Overruns: {stats.overruns}")
    print(f"  Trial data: {trial.path} ({trial.snapshot.nrows} samples)")
    print(f"  All data: {session.path} ({session.snapshot.nrows} samples)")


def _record_headless(session: BalanceSession, seconds: float) -> AcquisitionStats:
    return session.record(seconds)


def _record_with_gui(session: BalanceSession, seconds: float) -> AcquisitionStats:
    """Record on a worker thread while the Qt event loop drives the HUD."""
    from PySide6.QtCore import QMetaObject, Qt
    from PySide6.QtWidgets import QApplication

    app = QApplication.instance() or QApplication(sys.argv)
    outcome: dict[str, object] = {}

    def worker() -> None:
        try:
            outcome["stats"] = session.record(seconds)
        except CogboardError as e:
            outcome["error"] = e
        finally:
            QMetaObject.invokeMethod(app, "quit", Qt.ConnectionType.QueuedConnection)

    thread = threading.Thread(target=worker, name="Acquisition", daemon=True)
    thread.start()
    app.exec()
    session.stop()
    thread.join(timeout=2.0)

    if "error" in outcome:
        raise outcome["error"]  # type: ignore[misc]
    return outcome["stats"]  # type: ignore[return-value]


def cmd_record(args: argparse.Namespace) -> int:
    """Record from the simulated board and save trial and session data."""
    output_dir = Path(args.out)
    if not output_dir.exists():
        print(f"Error: Output directory does not exist: {output_dir}", file=sys.stderr)
        return 1
    if not output_dir.is_dir():
        print(f"Error: Not a directory: {output_dir}", file=sys.stderr)
        return 1

    settings = _settings_from_args(args, SettingsStore().load())
    try:
        settings.validate()
    except ValueError as e:
        print(f"Error: {e}", file=sys.stderr)
        return 1
    setup_logging(args.log_level or settings.log_level)

    board = SimulatedBalanceBoard(SimulatorConfig(seed=args.seed))

    display = None
    if settings.use_gui:
        from PySide6.QtWidgets import QApplication

        from cogboard.display.balance_hud import BalanceHud, HudSink

        QApplication.instance() or QApplication(sys.argv)
        hud = BalanceHud(settings.sample_rate_hz, settings.display_window_seconds)
        display = HudSink(hud)

    print(f"Recording {args.seconds:.1f}s at {settings.sample_rate_hz:.1f} Hz...")
    try:
        with BalanceSession(board, settings, display=display) as session:
            if settings.use_gui:
                stats = _record_with_gui(session, args.seconds)
            else:
                stats = _record_headless(session, args.seconds)
            trial = session.save_and_clear_trial_data()
            all_data = session.save_and_clear_all_data()
    except CogboardError as e:
        print(f"Error: {e}", file=sys.stderr)
        return 1

    _print_summary(stats, trial, all_data)
    return 0


def cmd_settings(args: argparse.Namespace) -> int:
    """Show or reset the stored settings."""
    store = SettingsStore(Path(args.path) if args.path else None)
    if args.reset:
        settings = store.reset()
        print(f"Settings reset: {store.path}")
    else:
        settings = store.load()
    print(json.dumps(asdict(settings), indent=2))
    return 0


def build_parser() -> argparse.ArgumentParser:
    """Build the argument parser for all subcommands."""
    parser = argparse.ArgumentParser(
        description="cogboard - balance board COG recorder",
        formatter_class=argparse.RawDescriptionHelpFormatter,
    )
    subparsers = parser.add_subparsers(dest="command", help="Available commands")

    # record command
    record_parser = subparsers.add_parser(
        "record",
        help="Record from the simulated balance board",
        formatter_class=argparse.ArgumentDefaultsHelpFormatter,
    )
    record_parser.add_argument(
        "--seconds",
        type=float,
        default=2.0,
        help="Recording duration in seconds",
    )
    record_parser.add_argument(
        "--out",
        required=True,
        help="Output directory",
    )
    record_parser.add_argument(
        "--rate",
        type=float,
        default=None,
        help="Sampling rate in Hz (default: stored setting)",
    )
    record_parser.add_argument(
        "--format",
        choices=[f.value for f in ExportFormat],
        default=None,
        help="Export format (default: stored setting)",
    )
    record_parser.add_argument(
        "--quiet-duplicates",
        action="store_true",
        help="Do not warn about duplicate readings",
    )
    record_parser.add_argument(
        "--gui",
        action="store_true",
        help="Show the live balance display",
    )
    record_parser.add_argument(
        "--seed",
        type=int,
        default=None,
        help="Random seed for the simulated board",
    )
    record_parser.add_argument(
        "--log-level",
        default=None,
        help="Logging level (default: stored setting)",
    )
    record_parser.set_defaults(func=cmd_record)

    # settings command
    settings_parser = subparsers.add_parser(
        "settings",
        help="Show or reset stored settings",
        formatter_class=argparse.ArgumentDefaultsHelpFormatter,
    )
    settings_parser.add_argument(
        "--reset",
        action="store_true",
        help="Restore default settings",
    )
    settings_parser.add_argument(
        "--path",
        default=None,
        help="Settings file (default: user config directory)",
    )
    settings_parser.set_defaults(func=cmd_settings)

    return parser


def main(argv: Optional[list[str]] = None) -> int:
    """Main CLI entry point."""
    parser = build_parser()
    args = parser.parse_args(argv)

    if args.command is None:
        parser.print_help()
        return 0

    return args.func(args)


if __name__ == "__main__":
    sys.exit(main())
