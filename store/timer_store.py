"""
Timely - Timer Store

Persists timer configurations and app settings to a JSON file.
The scheduling engine never touches storage; it reads configs through
list_timers() and writes reminder triggers back through
mark_reminder_triggered().
"""

import copy
import json
import threading
import time
import uuid
from dataclasses import dataclass, asdict, fields
from pathlib import Path
from typing import Any, Dict, List, Optional

import config
from core.logger import log_info, log_warning, log_error
from engine.errors import TimelyError, InvalidConfigError, TimerNotFoundError
from engine.models import (
    Duration,
    Marker,
    Reminder,
    StartMode,
    TimerConfig,
    TimeUnit,
)


VALID_START_OF_WEEK = (0, 1, 6)
VALID_CLOCK_FORMATS = ("12h", "24h")

# Stored timer fields that update_timer() may change
EDITABLE_TIMER_FIELDS = (
    "name", "duration", "start_mode", "fixed_start_time", "align_to",
    "enabled", "visualizer",
)


def _now_ms() -> float:
    return time.time() * 1000


def _new_id() -> str:
    return str(uuid.uuid4())


@dataclass
class AppSettings:
    """All user-configurable settings."""
    notifications_enabled: bool = config.NOTIFICATIONS_ENABLED
    sound_enabled: bool = config.SOUND_ENABLED
    vibrate_enabled: bool = config.VIBRATE_ENABLED
    compact_mode: bool = False
    clock_format: str = config.DEFAULT_CLOCK_FORMAT
    start_of_week: int = config.DEFAULT_START_OF_WEEK

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "AppSettings":
        known = {f.name for f in fields(cls)}
        settings = cls(**{k: v for k, v in data.items() if k in known})
        settings.validate()
        return settings

    def validate(self) -> None:
        """
        Raises:
            InvalidConfigError: For an unsupported start of week or clock format
        """
        if self.start_of_week not in VALID_START_OF_WEEK:
            raise InvalidConfigError(f"Invalid start of week: {self.start_of_week!r}")
        if self.clock_format not in VALID_CLOCK_FORMATS:
            raise InvalidConfigError(f"Invalid clock format: {self.clock_format!r}")


def default_timers() -> List[TimerConfig]:
    """Example timers used to seed a new store."""
    marker_color = "#22d3ee"
    return [
        TimerConfig(
            id=_new_id(),
            name="Focus Timer",
            duration=Duration(3.5, TimeUnit.HOURS),
            start_mode=StartMode.ALIGNED,
            align_to=TimeUnit.HOURS,
            markers=[
                Marker(_new_id(), position, label, marker_color, show_label=(label == "25m"))
                for position, label in (
                    (0.119, "25m"), (0.238, "50m"), (0.357, "75m"), (0.476, "100m"),
                    (0.595, "125m"), (0.714, "150m"), (0.833, "175m"),
                )
            ],
            reminders=[
                Reminder(_new_id(), 0.119, "Time for a water break!"),
                Reminder(_new_id(), 0.357, "Stand up and stretch!"),
                Reminder(_new_id(), 0.595, "Water break!"),
                Reminder(_new_id(), 0.833, "Almost done! Keep going!"),
            ],
            order=0,
            visualizer={"type": "radial", "show_time_remaining": True, "size": "large"},
        ),
        TimerConfig(
            id=_new_id(),
            name="Daily Cycle",
            duration=Duration(24, TimeUnit.HOURS),
            start_mode=StartMode.ALIGNED,
            align_to=TimeUnit.DAYS,
            order=1,
            visualizer={"type": "color", "show_time_remaining": True, "size": "medium"},
        ),
    ]


def merge_timers(local: List[TimerConfig], remote: List[TimerConfig]) -> List[TimerConfig]:
    """
    Merge two timer lists by id.

    Local timers win on conflicts; timers only present remotely are appended.
    """
    merged: Dict[str, TimerConfig] = {timer.id: timer for timer in local}
    for timer in remote:
        if timer.id not in merged:
            merged[timer.id] = timer
    return list(merged.values())


class TimerStore:
    """
    Manages loading, saving, and editing timers and settings.

    Thread-safe: the scheduler thread writes reminder triggers while the
    CLI edits timers. Readers always get copies.
    """

    def __init__(self, path: Optional[Path] = None):
        self._path: Path = Path(path) if path else config.TIMERS_PATH
        self._timers: List[TimerConfig] = []
        self._settings: AppSettings = AppSettings()
        self._lock = threading.RLock()

        self._load()

    @property
    def path(self) -> Path:
        return self._path

    # =========================================================================
    # PERSISTENCE
    # =========================================================================

    def _load(self) -> None:
        """Load timers and settings from disk, seeding defaults for a new file."""
        if not self._path.exists():
            self._timers = default_timers()
            self._settings = AppSettings()
            self._save()
            log_info(f"Created timer store with example timers at {self._path}", prefix="💾")
            return

        try:
            with open(self._path, "r", encoding="utf-8") as f:
                data = json.load(f)

            self._timers = [TimerConfig.from_dict(t) for t in data.get("timers", [])]
            self._settings = AppSettings.from_dict(data.get("settings", {}))
            self._sort()
            log_info(f"Loaded {len(self._timers)} timer(s)", prefix="💾")
        except json.JSONDecodeError as e:
            log_warning(f"Invalid timer file, using defaults: {e}")
            self._timers = default_timers()
            self._settings = AppSettings()
        except (TimelyError, KeyError, TypeError, ValueError) as e:
            log_error(f"Failed to load timers, using defaults: {e}")
            self._timers = default_timers()
            self._settings = AppSettings()

    def _save(self) -> None:
        """Save timers and settings to disk."""
        with self._lock:
            data = {
                "timers": [t.to_dict() for t in self._timers],
                "settings": asdict(self._settings),
            }
            try:
                self._path.parent.mkdir(parents=True, exist_ok=True)
                tmp_path = self._path.with_suffix(self._path.suffix + ".tmp")
                with open(tmp_path, "w", encoding="utf-8") as f:
                    json.dump(data, f, indent=2)
                tmp_path.replace(self._path)
            except OSError as e:
                log_error(f"Failed to save timers: {e}")

    def reload(self) -> None:
        """Re-read the file, discarding in-memory changes."""
        with self._lock:
            self._load()

    def _sort(self) -> None:
        self._timers.sort(key=lambda t: t.order)

    def _renumber(self) -> None:
        for index, timer in enumerate(self._timers):
            timer.order = index

    # =========================================================================
    # TIMERS
    # =========================================================================

    def _find(self, timer_id: str) -> TimerConfig:
        for timer in self._timers:
            if timer.id == timer_id:
                return timer
        raise TimerNotFoundError(f"Unknown timer: {timer_id}")

    def list_timers(self) -> List[TimerConfig]:
        """Get copies of all timers, in display order."""
        with self._lock:
            return copy.deepcopy(self._timers)

    def get_timer(self, timer_id: str) -> TimerConfig:
        """
        Get a copy of one timer.

        Raises:
            TimerNotFoundError: If the id is unknown
        """
        with self._lock:
            return copy.deepcopy(self._find(timer_id))

    def add_timer(
        self,
        name: str = config.DEFAULT_TIMER_NAME,
        duration: Optional[Duration] = None,
        start_mode: Any = config.DEFAULT_START_MODE,
        align_to: Any = config.DEFAULT_ALIGN_TO,
        fixed_start_time: Optional[float] = None,
        enabled: bool = True,
        reminders: Optional[List[Reminder]] = None,
        markers: Optional[List[Marker]] = None,
        visualizer: Optional[Dict[str, Any]] = None
    ) -> str:
        """
        Create a timer.

        A missing fixed_start_time is set to the current time, so 'now' and
        'fixed' timers count from their creation.

        Returns:
            The new timer id
        """
        with self._lock:
            timer = TimerConfig(
                id=_new_id(),
                name=name,
                duration=duration or Duration(config.DEFAULT_DURATION_VALUE, config.DEFAULT_DURATION_UNIT),
                start_mode=start_mode,
                fixed_start_time=fixed_start_time if fixed_start_time is not None else _now_ms(),
                align_to=align_to,
                enabled=enabled,
                reminders=list(reminders or []),
                markers=list(markers or []),
                order=len(self._timers),
                visualizer=dict(visualizer or {"type": "radial", "show_time_remaining": True, "size": "medium"}),
            )
            self._timers.append(timer)
            self._save()
            log_info(f"Timer added: {timer.name}", prefix="➕")
            return timer.id

    def update_timer(self, timer_id: str, **updates: Any) -> None:
        """
        Change fields of a timer.

        Raises:
            TimerNotFoundError: If the id is unknown
            InvalidConfigError: For a field that cannot be edited
        """
        unknown = set(updates) - set(EDITABLE_TIMER_FIELDS)
        if unknown:
            raise InvalidConfigError(f"Cannot update timer field(s): {', '.join(sorted(unknown))}")

        with self._lock:
            timer = self._find(timer_id)
            if "duration" in updates and not isinstance(updates["duration"], Duration):
                updates["duration"] = Duration.from_dict(updates["duration"])
            if "start_mode" in updates:
                updates["start_mode"] = StartMode.parse(updates["start_mode"])
            if updates.get("align_to") is not None:
                updates["align_to"] = TimeUnit.parse(updates["align_to"])
            for key, value in updates.items():
                setattr(timer, key, value)
            self._save()

    def delete_timer(self, timer_id: str) -> None:
        """Remove a timer."""
        with self._lock:
            timer = self._find(timer_id)
            self._timers.remove(timer)
            self._renumber()
            self._save()
            log_info(f"Timer removed: {timer.name}", prefix="➖")

    def toggle_timer(self, timer_id: str) -> bool:
        """
        Flip a timer's enabled flag.

        Returns:
            The new enabled state
        """
        with self._lock:
            timer = self._find(timer_id)
            timer.enabled = not timer.enabled
            self._save()
            return timer.enabled

    def reorder_timers(self, from_index: int, to_index: int) -> None:
        """Move the timer at from_index to to_index."""
        with self._lock:
            if not 0 <= from_index < len(self._timers):
                raise IndexError(f"No timer at position {from_index}")
            moved = self._timers.pop(from_index)
            self._timers.insert(max(0, min(to_index, len(self._timers))), moved)
            self._renumber()
            self._save()

    # =========================================================================
    # REMINDERS
    # =========================================================================

    def _find_reminder(self, timer: TimerConfig, reminder_id: str) -> Reminder:
        reminder = timer.find_reminder(reminder_id)
        if reminder is None:
            raise TimerNotFoundError(f"Unknown reminder: {reminder_id}")
        return reminder

    def add_reminder(
        self,
        timer_id: str,
        position: float = config.DEFAULT_REMINDER_POSITION,
        message: str = config.DEFAULT_REMINDER_MESSAGE,
        sound: bool = True,
        vibrate: bool = True,
        enabled: bool = True
    ) -> str:
        """
        Add a reminder to a timer.

        Returns:
            The new reminder id
        """
        with self._lock:
            timer = self._find(timer_id)
            reminder = Reminder(
                id=_new_id(),
                position=min(1.0, max(0.0, float(position))),
                message=message,
                enabled=enabled,
                sound=sound,
                vibrate=vibrate,
            )
            timer.reminders.append(reminder)
            self._save()
            return reminder.id

    def update_reminder(self, timer_id: str, reminder_id: str, **updates: Any) -> None:
        """Change fields of a reminder."""
        with self._lock:
            reminder = self._find_reminder(self._find(timer_id), reminder_id)
            for key, value in updates.items():
                if key == "id" or not hasattr(reminder, key):
                    raise InvalidConfigError(f"Cannot update reminder field: {key}")
                if key == "position":
                    value = min(1.0, max(0.0, float(value)))
                setattr(reminder, key, value)
            self._save()

    def delete_reminder(self, timer_id: str, reminder_id: str) -> None:
        """Remove a reminder from a timer."""
        with self._lock:
            timer = self._find(timer_id)
            timer.reminders.remove(self._find_reminder(timer, reminder_id))
            self._save()

    def mark_reminder_triggered(self, timer_id: str, reminder_id: str, at: Optional[float] = None) -> None:
        """
        Record that a reminder fired (write-through from the scheduler).

        Args:
            timer_id: Timer owning the reminder
            reminder_id: Reminder that fired
            at: Epoch ms of the dispatch (defaults to now)
        """
        with self._lock:
            reminder = self._find_reminder(self._find(timer_id), reminder_id)
            reminder.last_triggered = at if at is not None else _now_ms()
            self._save()

    # =========================================================================
    # MARKERS
    # =========================================================================

    def _find_marker(self, timer: TimerConfig, marker_id: str) -> Marker:
        for marker in timer.markers:
            if marker.id == marker_id:
                return marker
        raise TimerNotFoundError(f"Unknown marker: {marker_id}")

    def add_marker(
        self,
        timer_id: str,
        position: float = 0.5,
        label: Optional[str] = None,
        color: str = config.DEFAULT_MARKER_COLOR,
        show_label: bool = False
    ) -> str:
        """Add a display marker to a timer and return its id."""
        with self._lock:
            timer = self._find(timer_id)
            marker = Marker(
                id=_new_id(),
                position=min(1.0, max(0.0, float(position))),
                label=label,
                color=color,
                show_label=show_label,
            )
            timer.markers.append(marker)
            self._save()
            return marker.id

    def update_marker(self, timer_id: str, marker_id: str, **updates: Any) -> None:
        """Change fields of a marker."""
        with self._lock:
            marker = self._find_marker(self._find(timer_id), marker_id)
            for key, value in updates.items():
                if key == "id" or not hasattr(marker, key):
                    raise InvalidConfigError(f"Cannot update marker field: {key}")
                setattr(marker, key, value)
            self._save()

    def delete_marker(self, timer_id: str, marker_id: str) -> None:
        """Remove a marker from a timer."""
        with self._lock:
            timer = self._find(timer_id)
            timer.markers.remove(self._find_marker(timer, marker_id))
            self._save()

    # =========================================================================
    # SETTINGS
    # =========================================================================

    @property
    def settings(self) -> AppSettings:
        """Get a copy of all settings."""
        with self._lock:
            return copy.copy(self._settings)

    def update_settings(self, **updates: Any) -> AppSettings:
        """
        Change settings.

        Raises:
            InvalidConfigError: For an unknown setting or invalid value
        """
        with self._lock:
            known = {f.name for f in fields(AppSettings)}
            unknown = set(updates) - known
            if unknown:
                raise InvalidConfigError(f"Unknown setting(s): {', '.join(sorted(unknown))}")

            candidate = AppSettings(**{**asdict(self._settings), **updates})
            candidate.validate()
            self._settings = candidate
            self._save()
            return copy.copy(candidate)

    # =========================================================================
    # EXPORT / IMPORT
    # =========================================================================

    def export_data(self) -> Dict[str, Any]:
        """Get a JSON-serializable snapshot of timers and settings."""
        with self._lock:
            return {
                "timers": [t.to_dict() for t in self._timers],
                "settings": asdict(self._settings),
                "exported_at": _now_ms(),
            }

    def import_data(self, data: Dict[str, Any], merge: bool = True) -> int:
        """
        Load timers (and settings) from an export.

        Args:
            data: Output of export_data()
            merge: Keep local timers and add new ones; False replaces everything

        Returns:
            Number of timers after the import

        Raises:
            InvalidUnitError / InvalidConfigError: If the data is malformed
        """
        remote = [TimerConfig.from_dict(t) for t in data.get("timers", [])]

        with self._lock:
            if merge:
                self._timers = merge_timers(self._timers, remote)
            else:
                self._timers = remote
                if "settings" in data:
                    self._settings = AppSettings.from_dict(data["settings"])
            self._renumber()
            self._save()
            log_info(f"Imported {len(remote)} timer(s) ({'merged' if merge else 'replaced'})", prefix="💾")
            return len(self._timers)


# Module-level convenience functions
_store: Optional[TimerStore] = None


def get_timer_store() -> TimerStore:
    """Get the global timer store."""
    global _store
    if _store is None:
        _store = TimerStore()
    return _store


def init_timer_store(path: Optional[Path] = None) -> TimerStore:
    """Initialize the global timer store."""
    global _store
    _store = TimerStore(path)
    return _store
