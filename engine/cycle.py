"""
Timely - Cycle State Calculator
Derives where a repeating timer is within its current cycle
"""

import math

from engine.durations import to_milliseconds, aligned_start
from engine.errors import InvalidConfigError
from engine.models import TimerConfig, TimerState, StartMode, TimeUnit


def get_base_start(config: TimerConfig, now: float, start_of_week: int = 0) -> float:
    """
    Get the instant the timer's cycles are counted from.

    now/fixed modes use the stored start time, falling back to `now`.
    Aligned mode snaps `now` to the start of its calendar period.
    """
    if config.start_mode == StartMode.ALIGNED:
        return aligned_start(now, config.align_to or TimeUnit.HOURS, start_of_week)
    if config.fixed_start_time is not None:
        return config.fixed_start_time
    return now


def compute_state(config: TimerConfig, now: float, start_of_week: int = 0) -> TimerState:
    """
    Calculate the full state of a timer at `now`.

    The state is recomputed from scratch on every call, so configuration
    edits, clock adjustments and missed ticks need no special handling.

    Args:
        config: Timer configuration
        now: Epoch milliseconds
        start_of_week: First day of the week for week alignment

    Returns:
        TimerState snapshot

    Raises:
        InvalidUnitError: If the duration or alignment unit is unknown
        InvalidConfigError: If the duration is not positive
    """
    duration_ms = to_milliseconds(config.duration)
    if duration_ms <= 0:
        raise InvalidConfigError(
            "Timer duration must be positive",
            detail=f"{config.name or config.id}: {config.duration.value} {config.duration.unit.value}"
        )

    if not config.enabled:
        return TimerState(
            config_id=config.id,
            progress=0.0,
            elapsed=0.0,
            remaining=duration_ms,
            cycle_count=0,
            current_cycle_start=now,
            is_active=False,
        )

    base_start = get_base_start(config, now, start_of_week)

    if now < base_start:
        # Not started yet: hold in cycle 0 and count down to the start
        elapsed = now - base_start
        return TimerState(
            config_id=config.id,
            progress=0.0,
            elapsed=elapsed,
            remaining=duration_ms - elapsed,
            cycle_count=0,
            current_cycle_start=base_start,
            is_active=True,
        )

    complete_cycles = math.floor((now - base_start) / duration_ms)
    cycle_start = base_start + complete_cycles * duration_ms
    elapsed = now - cycle_start

    return TimerState(
        config_id=config.id,
        progress=min(1.0, max(0.0, elapsed / duration_ms)),
        elapsed=elapsed,
        remaining=duration_ms - elapsed,
        cycle_count=complete_cycles,
        current_cycle_start=cycle_start,
        is_active=True,
    )
