"""
Timely - Status View
Rich table showing every timer's progress through its current cycle
"""

from typing import List, Optional, Tuple

from rich.markup import escape
from rich.progress_bar import ProgressBar
from rich.table import Table

from engine.cycle import compute_state
from engine.durations import format_duration, format_time_remaining, to_milliseconds
from engine.errors import TimelyError
from engine.models import TimerConfig, TimerState, Reminder, StartMode, TimeUnit


def describe_schedule(timer: TimerConfig) -> str:
    """Short description of how a timer's cycles are laid out."""
    every = f"every {timer.duration.value:g} {timer.duration.unit.value}"
    if timer.start_mode == StartMode.ALIGNED:
        return f"{every}, aligned to {(timer.align_to or TimeUnit.HOURS).value}"
    return f"{every}, {timer.start_mode.value}"


def next_reminder(timer: TimerConfig, state: TimerState) -> Optional[Tuple[Reminder, float]]:
    """
    Find the next enabled reminder still ahead in the current cycle.

    Returns:
        (reminder, milliseconds until due), or None
    """
    if not state.is_active:
        return None

    duration_ms = to_milliseconds(timer.duration)
    upcoming = [
        (r, r.position * duration_ms - state.elapsed)
        for r in timer.reminders
        if r.enabled and r.position * duration_ms > state.elapsed
    ]
    if not upcoming:
        return None
    return min(upcoming, key=lambda item: item[1])


def build_status_table(
    timers: List[TimerConfig],
    now: float,
    start_of_week: int = 0,
    compact: bool = False
) -> Table:
    """
    Build a table row per timer.

    Args:
        timers: Timer configs in display order
        now: Epoch ms to compute states at
        start_of_week: First day of week for week alignment
        compact: Use compact duration formatting
    """
    table = Table(title="Timely", expand=False)
    table.add_column("Timer", style="bold")
    table.add_column("Schedule", style="dim")
    table.add_column("Progress")
    table.add_column("Remaining", justify="right")
    table.add_column("Cycle", justify="right")
    table.add_column("Next reminder")

    for timer in timers:
        try:
            state = compute_state(timer, now, start_of_week)
        except TimelyError as e:
            table.add_row(escape(timer.name), describe_schedule(timer), f"[red]{escape(str(e))}[/red]", "", "", "")
            continue

        if not state.is_active:
            table.add_row(escape(timer.name), describe_schedule(timer), "[dim]paused[/dim]", "", "", "")
            continue

        upcoming = next_reminder(timer, state)
        reminder_text = ""
        if upcoming:
            reminder, until = upcoming
            reminder_text = f"{escape(reminder.message)} (in {format_duration(until, compact=True)})"

        progress = ProgressBar(total=1.0, completed=state.progress, width=24)
        remaining = format_duration(state.remaining, compact=True) if compact else format_time_remaining(state.remaining)

        table.add_row(
            escape(timer.name),
            describe_schedule(timer),
            progress,
            remaining,
            str(state.cycle_count),
            reminder_text,
        )

    return table
