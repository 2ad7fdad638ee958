"""
Timely - Engine Error Types
Typed errors raised by the scheduling engine and the timer store
"""

from enum import Enum
from typing import Optional


class ErrorKind(Enum):
    """
    Categories of engine errors.

    Callers can branch on the kind instead of the concrete class.
    """
    INVALID_UNIT = "invalid_unit"          # Unrecognized duration/alignment unit
    INVALID_CONFIG = "invalid_config"      # Malformed timer configuration
    MISSING_STATE = "missing_state"        # No computed state for a timer
    SCHEDULER_STATE = "scheduler_state"    # Illegal scheduler transition
    NOT_FOUND = "not_found"                # Unknown timer/reminder/marker id


class TimelyError(Exception):
    """Base class for all Timely errors."""

    kind: ErrorKind = ErrorKind.INVALID_CONFIG

    def __init__(self, message: str, detail: Optional[str] = None):
        super().__init__(message)
        self.message = message
        self.detail = detail

    def __str__(self) -> str:
        if self.detail:
            return f"{self.message} ({self.detail})"
        return self.message


class InvalidUnitError(TimelyError, ValueError):
    """Raised for a duration or alignment unit outside the known set."""

    kind = ErrorKind.INVALID_UNIT

    def __init__(self, unit: object):
        super().__init__(f"Invalid time unit: {unit!r}")
        self.unit = unit


class InvalidConfigError(TimelyError, ValueError):
    """Raised when a timer configuration cannot be interpreted."""

    kind = ErrorKind.INVALID_CONFIG


class MissingStateError(TimelyError, LookupError):
    """Raised when a computed state is required but none exists."""

    kind = ErrorKind.MISSING_STATE

    def __init__(self, config_id: str):
        super().__init__(f"No computed state for timer {config_id}")
        self.config_id = config_id


class SchedulerStateError(TimelyError, RuntimeError):
    """Raised on an illegal scheduler status transition."""

    kind = ErrorKind.SCHEDULER_STATE


class TimerNotFoundError(TimelyError, KeyError):
    """Raised when a timer, reminder or marker id is unknown."""

    kind = ErrorKind.NOT_FOUND

    def __str__(self) -> str:
        # KeyError would otherwise wrap the message in quotes
        return TimelyError.__str__(self)
