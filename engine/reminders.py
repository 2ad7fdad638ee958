"""
Timely - Reminder Due-Detector
Decides which reminders of a timer are due at a given state
"""

import math
from typing import List, Optional

from core.logger import log_debug
from engine.durations import to_milliseconds
from engine.models import TimerConfig, TimerState, Reminder


def fired_in_current_cycle(reminder: Reminder, state: TimerState, duration_ms: float) -> bool:
    """
    Check the reminder's persisted last_triggered against the current cycle.

    This is the restart safety net; the scheduler's in-memory cache is the
    authoritative record during a session.
    """
    if reminder.last_triggered is None:
        return False

    now = state.current_cycle_start + state.elapsed
    last_trigger_cycle = math.floor((reminder.last_triggered - state.current_cycle_start) / duration_ms)
    current_cycle = math.floor((now - state.current_cycle_start) / duration_ms)
    return last_trigger_cycle == current_cycle


def reminder_due(
    reminder: Reminder,
    state: TimerState,
    duration_ms: float,
    tolerance_ms: float
) -> bool:
    """
    Check whether one reminder is due.

    Due when enabled, the state's elapsed time is within `tolerance_ms` of the
    reminder's position, and it has not already fired this cycle.
    """
    if not reminder.enabled:
        return False

    target_elapsed = reminder.position * duration_ms
    if abs(state.elapsed - target_elapsed) > tolerance_ms:
        return False

    return not fired_in_current_cycle(reminder, state, duration_ms)


def due_reminders(
    config: TimerConfig,
    state: Optional[TimerState],
    tolerance_ms: float
) -> List[str]:
    """
    Get the ids of all reminders of `config` that are due at `state`.

    A missing state (or one computed for another timer) means nothing is due.

    Args:
        config: Timer configuration
        state: State computed for this config, or None
        tolerance_ms: Half-width of the window around each reminder's position

    Returns:
        Reminder ids in configuration order
    """
    if tolerance_ms < 0:
        raise ValueError(f"tolerance_ms must be >= 0, got {tolerance_ms}")

    if state is None or state.config_id != config.id:
        log_debug(f"No state for timer {config.id}; skipping reminders")
        return []

    if not state.is_active:
        return []

    duration_ms = to_milliseconds(config.duration)
    return [
        reminder.id
        for reminder in config.reminders
        if reminder_due(reminder, state, duration_ms, tolerance_ms)
    ]
