"""
Timely - Logging System
Timestamped console output with rich formatting + file logging
"""

import logging
from datetime import datetime
from pathlib import Path
from typing import Optional

from rich.console import Console
from rich.markup import escape
from rich.theme import Theme

# Custom theme for console output
THEME = Theme({
    "info": "cyan",
    "warning": "yellow",
    "error": "bold red",
    "success": "bold green",
    "debug": "dim",
    "timestamp": "dim white",
    "header": "bold magenta",
    "config": "dim cyan",
})

# Global console instance
console = Console(theme=THEME)

# Module-level logger instance
_logger: Optional[logging.Logger] = None
_log_file_path: Optional[Path] = None
_console_enabled: bool = True
_console_level: int = logging.INFO


def setup_logging(
    log_file_path: Path,
    level: str = "INFO",
    log_to_file: bool = True,
    log_to_console: bool = True
) -> logging.Logger:
    """
    Initialize the logging system.

    Args:
        log_file_path: Path to the diagnostic log file
        level: Logging level (DEBUG, INFO, WARNING, ERROR)
        log_to_file: Whether to write logs to file
        log_to_console: Whether to write logs to console (via rich)

    Returns:
        Configured logger instance
    """
    global _logger, _log_file_path, _console_enabled, _console_level

    _console_enabled = log_to_console
    _console_level = getattr(logging, level.upper(), logging.INFO)

    # Create logger
    _logger = logging.getLogger("timely")
    _logger.setLevel(_console_level)
    _logger.handlers.clear()

    # File handler
    if log_to_file:
        log_file_path.parent.mkdir(parents=True, exist_ok=True)
        _log_file_path = log_file_path
        file_handler = logging.FileHandler(log_file_path, encoding="utf-8")
        file_handler.setLevel(logging.DEBUG)  # File gets everything
        file_formatter = logging.Formatter(
            "[%(asctime)s] %(levelname)s - %(message)s",
            datefmt="%Y-%m-%d %H:%M:%S"
        )
        file_handler.setFormatter(file_formatter)
        _logger.addHandler(file_handler)

    return _logger


def set_console_output(enabled: bool) -> None:
    """Turn console echo of log lines on or off (file logging is unaffected)."""
    global _console_enabled
    _console_enabled = enabled


def get_timestamp() -> str:
    """Get formatted timestamp for console output."""
    return datetime.now().strftime("%H:%M:%S")


def _echo(text: str, **kwargs) -> None:
    """Print a markup line to the console when console output is on."""
    if _console_enabled:
        console.print(text, **kwargs)


def _stamp() -> str:
    return f"[timestamp][{get_timestamp()}][/timestamp]"


def log(message: str, level: str = "info", prefix: str = "") -> None:
    """
    Log a message to both console and file.

    Args:
        message: The message to log
        level: Log level (debug, info, warning, error, success)
        prefix: Optional emoji/prefix for console output
    """
    prefix_str = f"{prefix} " if prefix else ""
    log_level = getattr(logging, level.upper(), logging.INFO)

    if log_level >= _console_level:
        style = level if level in ("debug", "info", "warning", "error", "success") else "info"
        _echo(f"{_stamp()} {escape(prefix_str + message)}", style=style, highlight=False)

    if _logger:
        _logger.log(log_level, f"{prefix_str}{message}")


def log_debug(message: str, prefix: str = "") -> None:
    """Log a debug message."""
    log(message, "debug", prefix)


def log_info(message: str, prefix: str = "") -> None:
    """Log an info message."""
    log(message, "info", prefix)


def log_success(message: str, prefix: str = "") -> None:
    """Log a success message."""
    log(message, "info", prefix or "✅")


def log_warning(message: str, prefix: str = "") -> None:
    """Log a warning message."""
    log(message, "warning", prefix or "⚠️")


def log_error(message: str, prefix: str = "") -> None:
    """Log an error message."""
    log(message, "error", prefix or "❌")


def log_config(key: str, value: str, indent: int = 0) -> None:
    """Print a configuration value."""
    line = f"{'   ' * indent}{key}: {value}"
    _echo(f"{_stamp()} [config]{escape(line)}[/config]")
    if _logger:
        _logger.info(line)


def log_startup_banner(version: str, project_name: str) -> None:
    """Print the startup banner."""
    separator = "=" * 60
    title = f"{project_name} - v{version} - Repeating Timers"

    _echo("")
    for text in (separator, f"⏳ {title}", separator):
        _echo(f"{_stamp()} [header]{escape(text)}[/header]")

    if _logger:
        for text in (separator, title, separator):
            _logger.info(text)


def log_section(title: str, emoji: str = "📋") -> None:
    """Print a section title."""
    _echo(f"\n{_stamp()} [header]{emoji} {escape(title)}:[/header]")
    if _logger:
        _logger.info(f"{title}:")


def log_subsection(message: str, emoji: str = "", indent: int = 1) -> None:
    """Print a subsection item."""
    line = f"{'   ' * indent}{emoji + ' ' if emoji else ''}{message}"
    _echo(f"{_stamp()} [config]{escape(line)}[/config]")
    if _logger:
        _logger.info(line)
