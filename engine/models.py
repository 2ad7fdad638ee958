"""
Timely - Timer Models
Configuration and derived-state types for repeating timers
"""

from dataclasses import dataclass, field
from enum import Enum
from typing import Optional, List, Dict, Any, Union

from engine.errors import InvalidUnitError, InvalidConfigError


class TimeUnit(Enum):
    """Units a duration or an alignment can be expressed in."""
    MILLISECONDS = "milliseconds"
    SECONDS = "seconds"
    MINUTES = "minutes"
    HOURS = "hours"
    DAYS = "days"
    WEEKS = "weeks"
    MONTHS = "months"   # Approximate: 30.44 days
    YEARS = "years"     # Approximate: 365.25 days

    @classmethod
    def parse(cls, value: Union["TimeUnit", str]) -> "TimeUnit":
        """
        Coerce a unit or its string name into a TimeUnit.

        Raises:
            InvalidUnitError: If the value is not a known unit
        """
        if isinstance(value, cls):
            return value
        try:
            return cls(str(value).lower())
        except ValueError:
            raise InvalidUnitError(value) from None


class StartMode(Enum):
    """Where a timer's first cycle begins."""
    NOW = "now"            # First observed instant (or fixed_start_time if stored)
    FIXED = "fixed"        # An explicit timestamp
    ALIGNED = "aligned"    # A calendar boundary (start of hour, day, ...)

    @classmethod
    def parse(cls, value: Union["StartMode", str]) -> "StartMode":
        if isinstance(value, cls):
            return value
        try:
            return cls(str(value).lower())
        except ValueError:
            raise InvalidConfigError(f"Invalid start mode: {value!r}") from None


def _clamp_position(value: Any) -> float:
    try:
        position = float(value)
    except (TypeError, ValueError):
        raise InvalidConfigError(f"Invalid position: {value!r}") from None
    return min(1.0, max(0.0, position))


@dataclass(frozen=True)
class Duration:
    """
    Length of one timer cycle.

    Attributes:
        value: Amount of the unit (may be fractional, e.g. 3.5 hours)
        unit: TimeUnit the value is expressed in
    """
    value: float
    unit: TimeUnit

    def __post_init__(self):
        # Frozen dataclass: normalise through object.__setattr__
        object.__setattr__(self, "unit", TimeUnit.parse(self.unit))

    def to_dict(self) -> Dict[str, Any]:
        return {"value": self.value, "unit": self.unit.value}

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "Duration":
        try:
            value = float(data["value"])
        except (KeyError, TypeError, ValueError):
            raise InvalidConfigError(f"Invalid duration: {data!r}") from None
        return cls(value=value, unit=TimeUnit.parse(data.get("unit", "")))


@dataclass
class Reminder:
    """
    A notification fired at a fixed position within every cycle.

    Attributes:
        id: Unique reminder id
        position: Fraction of the cycle (0-1) at which the reminder is due
        message: Text shown in the notification
        enabled: Disabled reminders are never due
        sound: Play a sound when fired (if sound is enabled globally)
        vibrate: Vibrate when fired (where supported)
        last_triggered: Epoch ms of the last dispatch, written by the scheduler
    """
    id: str
    position: float
    message: str
    enabled: bool = True
    sound: bool = True
    vibrate: bool = True
    last_triggered: Optional[float] = None

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "position": self.position,
            "message": self.message,
            "enabled": self.enabled,
            "sound": self.sound,
            "vibrate": self.vibrate,
            "last_triggered": self.last_triggered,
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "Reminder":
        last = data.get("last_triggered")
        return cls(
            id=str(data["id"]),
            position=_clamp_position(data.get("position", 0.5)),
            message=data.get("message", ""),
            enabled=bool(data.get("enabled", True)),
            sound=bool(data.get("sound", True)),
            vibrate=bool(data.get("vibrate", True)),
            last_triggered=float(last) if last is not None else None,
        )


@dataclass
class Marker:
    """A display-only tick on a timer's visualizer."""
    id: str
    position: float
    label: Optional[str] = None
    color: Optional[str] = None
    show_label: bool = False

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "position": self.position,
            "label": self.label,
            "color": self.color,
            "show_label": self.show_label,
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "Marker":
        return cls(
            id=str(data["id"]),
            position=_clamp_position(data.get("position", 0.5)),
            label=data.get("label"),
            color=data.get("color"),
            show_label=bool(data.get("show_label", False)),
        )


@dataclass
class TimerConfig:
    """
    Declarative configuration of one repeating timer.

    Attributes:
        id: Unique timer id
        name: Display name
        duration: Length of one cycle
        start_mode: now, fixed or aligned
        fixed_start_time: Epoch ms epoch for now/fixed modes
        align_to: Calendar unit for aligned mode (defaults to hours)
        enabled: Disabled timers are frozen at progress 0
        reminders: Ordered reminders fired within each cycle
        markers: Ordered display markers
        order: Position in the timer list
        visualizer: Opaque rendering options, passed through untouched
    """
    id: str
    name: str
    duration: Duration
    start_mode: StartMode = StartMode.ALIGNED
    fixed_start_time: Optional[float] = None
    align_to: Optional[TimeUnit] = None
    enabled: bool = True
    reminders: List[Reminder] = field(default_factory=list)
    markers: List[Marker] = field(default_factory=list)
    order: int = 0
    visualizer: Dict[str, Any] = field(default_factory=dict)

    def __post_init__(self):
        self.start_mode = StartMode.parse(self.start_mode)
        if self.align_to is not None:
            self.align_to = TimeUnit.parse(self.align_to)

    def find_reminder(self, reminder_id: str) -> Optional[Reminder]:
        """Get a reminder by id, or None."""
        for reminder in self.reminders:
            if reminder.id == reminder_id:
                return reminder
        return None

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "name": self.name,
            "duration": self.duration.to_dict(),
            "start_mode": self.start_mode.value,
            "fixed_start_time": self.fixed_start_time,
            "align_to": self.align_to.value if self.align_to else None,
            "enabled": self.enabled,
            "reminders": [r.to_dict() for r in self.reminders],
            "markers": [m.to_dict() for m in self.markers],
            "order": self.order,
            "visualizer": dict(self.visualizer),
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "TimerConfig":
        """
        Build a config from its stored form.

        Raises:
            InvalidUnitError: For an unknown duration or alignment unit
            InvalidConfigError: For a missing id/duration or bad start mode
        """
        if "id" not in data or "duration" not in data:
            raise InvalidConfigError("Timer entry is missing 'id' or 'duration'")

        fixed = data.get("fixed_start_time")
        align_to = data.get("align_to")
        return cls(
            id=str(data["id"]),
            name=data.get("name", ""),
            duration=Duration.from_dict(data["duration"]),
            start_mode=StartMode.parse(data.get("start_mode", StartMode.ALIGNED.value)),
            fixed_start_time=float(fixed) if fixed is not None else None,
            align_to=TimeUnit.parse(align_to) if align_to else None,
            enabled=bool(data.get("enabled", True)),
            reminders=[Reminder.from_dict(r) for r in data.get("reminders", [])],
            markers=[Marker.from_dict(m) for m in data.get("markers", [])],
            order=int(data.get("order", 0)),
            visualizer=dict(data.get("visualizer") or {}),
        )


@dataclass(frozen=True)
class TimerState:
    """
    Derived position of a timer at one instant. Never persisted.

    Invariants: elapsed + remaining == duration in ms, and
    progress == clamp(elapsed / duration, 0, 1).
    """
    config_id: str
    progress: float
    elapsed: float
    remaining: float
    cycle_count: int
    current_cycle_start: float
    is_active: bool


@dataclass(frozen=True)
class FiredReminder:
    """One reminder dispatched by the scheduler during a tick."""
    config_id: str
    reminder_id: str
    cycle_count: int
    fired_at: float
