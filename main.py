#!/usr/bin/env python3
"""
Timely - Main Entry Point
Repeating countdown timers with in-cycle reminders

Usage:
    python main.py run                          # Run timers and fire reminders
    python main.py status                       # Print every timer's state once
    python main.py add "Focus" --every 25 minutes --mode aligned --align-to hours
    python main.py remind <timer-id> 0.5 "Halfway there"
    python main.py toggle <timer-id>
    python main.py remove <timer-id>
    python main.py export timers-backup.json
    python main.py import timers-backup.json [--replace]
"""

import sys
import json
import signal
import threading
import argparse
from datetime import datetime
from pathlib import Path

# Ensure we can import from project root
sys.path.insert(0, str(Path(__file__).parent))

from rich.console import Console
from rich.live import Live

import config
from core.logger import (
    setup_logging,
    set_console_output,
    log_startup_banner,
    log_section,
    log_subsection,
    log_config,
    log_success,
    log_warning,
    log_error,
)
from engine import (
    Duration,
    StartMode,
    TimelyError,
    init_timer_scheduler,
)
from engine.scheduler import wall_clock_ms
from interface.notifier import ConsoleNotifier
from interface.status_view import build_status_table
from store.timer_store import init_timer_store, get_timer_store


# Global shutdown event
_shutdown_event = threading.Event()

console = Console()


def signal_handler(signum, frame):
    """Handle shutdown signals gracefully."""
    _shutdown_event.set()


def initialize_system(timers_path: Path = None, quiet: bool = False) -> bool:
    """
    Set up logging and load the timer store.

    Returns:
        True if successful, False otherwise
    """
    setup_logging(
        log_file_path=config.DIAGNOSTIC_LOG_PATH,
        level=config.LOG_LEVEL,
        log_to_file=config.LOG_TO_FILE,
        log_to_console=config.LOG_TO_CONSOLE and not quiet
    )

    try:
        init_timer_store(timers_path)
    except OSError as e:
        log_error(f"Failed to open timer store: {e}")
        return False
    return True


def print_configuration() -> None:
    """Print configuration summary."""
    store = get_timer_store()
    settings = store.settings

    log_section("Configuration", "📡")
    log_subsection(f"Timers: {store.path}")
    log_subsection(f"Diagnostic Log: {config.DIAGNOSTIC_LOG_PATH}")
    log_config("Tick Interval", f"{config.TICK_INTERVAL_MS}ms", indent=1)
    log_subsection(f"Notifications: {'ENABLED' if settings.notifications_enabled else 'DISABLED'}")
    log_subsection(f"Sound: {'ENABLED' if settings.sound_enabled else 'DISABLED'}")
    log_config("Start of Week", str(settings.start_of_week), indent=1)


def run_timers() -> int:
    """Run the scheduler until interrupted, showing a live status table."""
    signal.signal(signal.SIGINT, signal_handler)
    signal.signal(signal.SIGTERM, signal_handler)

    store = get_timer_store()
    notifier = ConsoleNotifier(console=console, settings_provider=lambda: store.settings)
    scheduler = init_timer_scheduler(
        tick_interval_ms=config.TICK_INTERVAL_MS,
        notifications_enabled=notifier.notifications_enabled,
        start_of_week=lambda: store.settings.start_of_week
    )

    log_startup_banner(config.VERSION, config.PROJECT_NAME)
    print_configuration()

    log_section("Starting Services", "🔧")
    scheduler.start(
        configs=store.list_timers,
        notifier=notifier,
        on_fired=store.mark_reminder_triggered
    )

    def render():
        settings = store.settings
        return build_status_table(
            store.list_timers(),
            wall_clock_ms(),
            start_of_week=settings.start_of_week,
            compact=settings.compact_mode
        )

    try:
        with Live(render(), console=console, refresh_per_second=4) as live:
            while not _shutdown_event.wait(config.STATUS_REFRESH_SECONDS):
                live.update(render())
    finally:
        log_section("Stopping Services", "🛑")
        scheduler.stop()

    log_success(f"{config.PROJECT_NAME} shutdown complete")
    return 0


def show_status() -> int:
    store = get_timer_store()
    settings = store.settings
    console.print(build_status_table(
        store.list_timers(),
        wall_clock_ms(),
        start_of_week=settings.start_of_week,
        compact=settings.compact_mode
    ))
    for timer in store.list_timers():
        console.print(f"[dim]{timer.id}[/dim]  {timer.name}", highlight=False)
    return 0


def add_timer(args: argparse.Namespace) -> int:
    store = get_timer_store()
    value, unit = args.every
    fixed_start = None
    if args.start:
        fixed_start = datetime.fromisoformat(args.start).timestamp() * 1000
    timer_id = store.add_timer(
        name=args.name,
        duration=Duration(float(value), unit),
        start_mode=StartMode.parse(args.mode),
        align_to=args.align_to,
        fixed_start_time=fixed_start
    )
    console.print(timer_id)
    return 0


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        description=f"{config.PROJECT_NAME} - Repeating timers with in-cycle reminders",
        formatter_class=argparse.RawDescriptionHelpFormatter
    )
    parser.add_argument(
        "--timers", "-t",
        type=Path,
        default=None,
        help=f"Timer store file (default: {config.TIMERS_PATH})"
    )
    subparsers = parser.add_subparsers(dest="command")

    subparsers.add_parser("run", help="Run timers and fire reminders (default)")
    subparsers.add_parser("status", help="Show every timer's current state")

    add = subparsers.add_parser("add", help="Create a timer")
    add.add_argument("name")
    add.add_argument(
        "--every",
        nargs=2,
        metavar=("VALUE", "UNIT"),
        required=True,
        help="Cycle length, e.g. --every 25 minutes"
    )
    add.add_argument("--mode", choices=[m.value for m in StartMode], default=config.DEFAULT_START_MODE)
    add.add_argument("--align-to", default=config.DEFAULT_ALIGN_TO, help="Calendar unit for aligned mode")
    add.add_argument("--start", help="ISO start time for fixed mode, e.g. 2026-01-05T09:00")

    remind = subparsers.add_parser("remind", help="Add a reminder to a timer")
    remind.add_argument("timer_id")
    remind.add_argument("position", type=float, help="Fraction of the cycle, 0-1")
    remind.add_argument("message")

    toggle = subparsers.add_parser("toggle", help="Enable or disable a timer")
    toggle.add_argument("timer_id")

    remove = subparsers.add_parser("remove", help="Delete a timer")
    remove.add_argument("timer_id")

    export = subparsers.add_parser("export", help="Write timers and settings to a file")
    export.add_argument("path", type=Path)

    import_ = subparsers.add_parser("import", help="Load timers from an export file")
    import_.add_argument("path", type=Path)
    import_.add_argument("--replace", action="store_true", help="Replace instead of merging")

    return parser


def main(argv=None) -> int:
    """
    Main entry point.

    Returns:
        Exit code (0 for success, non-zero for error)
    """
    parser = build_parser()
    args = parser.parse_args(argv)
    command = args.command or "run"

    if not initialize_system(args.timers, quiet=(command != "run")):
        return 1

    store = get_timer_store()
    try:
        if command == "run":
            return run_timers()
        if command == "status":
            return show_status()
        if command == "add":
            return add_timer(args)
        if command == "remind":
            console.print(store.add_reminder(args.timer_id, position=args.position, message=args.message))
            return 0
        if command == "toggle":
            enabled = store.toggle_timer(args.timer_id)
            console.print("enabled" if enabled else "disabled")
            return 0
        if command == "remove":
            store.delete_timer(args.timer_id)
            return 0
        if command == "export":
            args.path.write_text(json.dumps(store.export_data(), indent=2), encoding="utf-8")
            return 0
        if command == "import":
            data = json.loads(args.path.read_text(encoding="utf-8"))
            console.print(f"{store.import_data(data, merge=not args.replace)} timer(s)")
            return 0
    except (TimelyError, ValueError) as e:
        set_console_output(True)
        log_error(str(e))
        return 1
    except OSError as e:
        set_console_output(True)
        log_error(f"File error: {e}")
        return 1
    except KeyboardInterrupt:
        log_warning("Interrupted")
        return 130

    parser.print_help()
    return 2


if __name__ == "__main__":
    sys.exit(main())
