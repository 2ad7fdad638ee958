"""
Timely - Scheduling Engine
Turns repeating timer configurations into live cycle state and reminders

The engine gives the application the ability to:
- Convert durations to milliseconds and snap instants to calendar boundaries
- Compute a timer's progress, remaining time and cycle at any instant
- Decide which reminders are due, at most once per cycle
- Drive all timers from a single polling loop

State is always derived from configuration + the current time; nothing the
engine computes is persisted.
"""

from engine.errors import (
    ErrorKind,
    TimelyError,
    InvalidUnitError,
    InvalidConfigError,
    MissingStateError,
    SchedulerStateError,
    TimerNotFoundError,
)

from engine.models import (
    TimeUnit,
    StartMode,
    Duration,
    Reminder,
    Marker,
    TimerConfig,
    TimerState,
    FiredReminder,
)

from engine.durations import (
    to_milliseconds,
    aligned_start,
    format_duration,
    format_time_remaining,
)

from engine.cycle import (
    compute_state,
    get_base_start,
)

from engine.reminders import (
    due_reminders,
    reminder_due,
    fired_in_current_cycle,
)

from engine.scheduler import (
    TimerScheduler,
    SchedulerStatus,
    get_timer_scheduler,
    init_timer_scheduler,
)


__all__ = [
    # Errors
    'ErrorKind',
    'TimelyError',
    'InvalidUnitError',
    'InvalidConfigError',
    'MissingStateError',
    'SchedulerStateError',
    'TimerNotFoundError',

    # Models
    'TimeUnit',
    'StartMode',
    'Duration',
    'Reminder',
    'Marker',
    'TimerConfig',
    'TimerState',
    'FiredReminder',

    # Durations
    'to_milliseconds',
    'aligned_start',
    'format_duration',
    'format_time_remaining',

    # Cycle state
    'compute_state',
    'get_base_start',

    # Reminders
    'due_reminders',
    'reminder_due',
    'fired_in_current_cycle',

    # Scheduler
    'TimerScheduler',
    'SchedulerStatus',
    'get_timer_scheduler',
    'init_timer_scheduler',
]
