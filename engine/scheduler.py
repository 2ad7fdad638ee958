"""
Timely - Timer Scheduler
Background polling loop that recomputes timer states and fires due reminders
"""

import threading
import time
from enum import Enum
from typing import Optional, Callable, List, Dict, Set, Tuple, Union
from dataclasses import replace

import config
from core.logger import log_info, log_warning, log_error, log_debug
from engine.cycle import compute_state
from engine.errors import TimelyError, SchedulerStateError, MissingStateError
from engine.models import TimerConfig, TimerState, Reminder, FiredReminder, StartMode
from engine.reminders import due_reminders


ConfigsProvider = Callable[[], List[TimerConfig]]
Notifier = Callable[[Reminder, TimerConfig], None]
FiredCallback = Callable[[str, str], None]

# (config_id, current_cycle_start, reminder_id)
# cycle_count restarts at every calendar boundary for aligned timers
DedupKey = Tuple[str, float, str]


def wall_clock_ms() -> float:
    """Current wall-clock time in epoch milliseconds."""
    return time.time() * 1000


class SchedulerStatus(Enum):
    """Lifecycle of a scheduler: IDLE -> RUNNING -> STOPPED."""
    IDLE = "idle"
    RUNNING = "running"
    STOPPED = "stopped"


class TimerScheduler:
    """
    Polling loop that drives every timer.

    Each tick polls the configs provider, replaces the state snapshot of every
    enabled timer, and dispatches reminders that are due and not yet fired in
    the current cycle.

    Features:
    - Runs as a daemon thread, one tick at a time (ticks never overlap)
    - An overdue tick runs once immediately; missed ticks are not queued
    - Per-reminder dispatch isolation: a failing notifier is retried next tick
    - In-memory dedup cache keyed by (timer, cycle start, reminder)
    """

    def __init__(
        self,
        tick_interval_ms: float = config.TICK_INTERVAL_MS,
        clock: Optional[Callable[[], float]] = None,
        notifications_enabled: Optional[Callable[[], bool]] = None,
        start_of_week: Union[int, Callable[[], int]] = 0
    ):
        """
        Initialize the scheduler.

        Args:
            tick_interval_ms: Milliseconds between ticks (default 100)
            clock: Wall-clock source in epoch ms (default time.time() * 1000)
            notifications_enabled: Returns False to skip reminder evaluation
            start_of_week: First day of week for week alignment, or a callable
        """
        if tick_interval_ms <= 0:
            raise ValueError(f"tick_interval_ms must be positive, got {tick_interval_ms}")

        self.tick_interval_ms = tick_interval_ms
        self._clock = clock or wall_clock_ms
        self._notifications_enabled = notifications_enabled or (lambda: True)
        self._start_of_week = start_of_week

        self._configs: Optional[ConfigsProvider] = None
        self._notifier: Optional[Notifier] = None
        self._on_fired: Optional[FiredCallback] = None

        self._status = SchedulerStatus.IDLE
        self._thread: Optional[threading.Thread] = None
        self._stop_event = threading.Event()
        self._tick_lock = threading.Lock()

        self._states: Dict[str, TimerState] = {}
        self._fired: Dict[DedupKey, float] = {}
        self._first_seen: Dict[str, float] = {}
        self._last_now: Optional[float] = None

    @property
    def tolerance_ms(self) -> float:
        """Window around each reminder position in which it counts as due."""
        return max(2 * self.tick_interval_ms, config.MIN_REMINDER_TOLERANCE_MS)

    @property
    def status(self) -> SchedulerStatus:
        return self._status

    @property
    def states(self) -> Dict[str, TimerState]:
        """Copy of the latest state snapshot, keyed by timer id."""
        return dict(self._states)

    def get_state(self, config_id: str) -> Optional[TimerState]:
        """Get the latest computed state for one timer."""
        return self._states.get(config_id)

    def require_state(self, config_id: str) -> TimerState:
        """
        Get the latest computed state for one timer.

        Raises:
            MissingStateError: If no tick has computed a state for it
        """
        state = self._states.get(config_id)
        if state is None:
            raise MissingStateError(config_id)
        return state

    def is_running(self) -> bool:
        """Check if the scheduler loop is running."""
        return self._status == SchedulerStatus.RUNNING

    def attach(
        self,
        configs: ConfigsProvider,
        notifier: Notifier,
        on_fired: Optional[FiredCallback] = None
    ) -> None:
        """
        Wire the configs provider and callbacks without starting the thread.

        start() calls this; it is also enough for driving tick() by hand.

        Raises:
            SchedulerStateError: If the scheduler was already stopped
        """
        if self._status == SchedulerStatus.STOPPED:
            raise SchedulerStateError("Scheduler has been stopped and cannot be restarted")

        self._configs = configs
        self._notifier = notifier
        self._on_fired = on_fired

    def start(
        self,
        configs: ConfigsProvider,
        notifier: Notifier,
        on_fired: Optional[FiredCallback] = None
    ) -> None:
        """
        Start the polling loop.

        Runs one tick immediately, then ticks every `tick_interval_ms` on a
        daemon thread.

        Args:
            configs: Returns the current timer configs (polled every tick)
            notifier: Called with (reminder, config) for each due reminder
            on_fired: Called with (config_id, reminder_id) after a dispatch,
                to persist Reminder.last_triggered

        Raises:
            SchedulerStateError: If the scheduler was already stopped
        """
        if self._status == SchedulerStatus.RUNNING:
            return

        self.attach(configs, notifier, on_fired)
        self._stop_event.clear()
        self._status = SchedulerStatus.RUNNING

        self._safe_tick()

        self._thread = threading.Thread(
            target=self._scheduler_loop,
            daemon=True,
            name="TimerScheduler"
        )
        self._thread.start()
        log_info(f"Timer scheduler started (tick every {self.tick_interval_ms}ms)", prefix="⏰")

    def stop(self) -> None:
        """
        Stop the polling loop.

        No new dispatch begins after this returns. A dispatch already in
        progress is allowed to finish.
        """
        if self._status == SchedulerStatus.STOPPED:
            return

        self._status = SchedulerStatus.STOPPED
        self._stop_event.set()

        thread = self._thread
        if thread is not None and thread is not threading.current_thread():
            thread.join(timeout=config.SCHEDULER_JOIN_TIMEOUT)
        self._thread = None

        self._fired.clear()
        log_info("Timer scheduler stopped", prefix="⏰")

    def _scheduler_loop(self) -> None:
        """Main loop - ticks until stop is requested."""
        interval = self.tick_interval_ms / 1000
        next_tick = time.monotonic() + interval

        while not self._stop_event.wait(max(0.0, next_tick - time.monotonic())):
            self._safe_tick()

            # Overran: run the next tick right away, but only one
            next_tick += interval
            now = time.monotonic()
            if next_tick < now:
                next_tick = now

    def _safe_tick(self) -> None:
        try:
            self.tick()
        except Exception as e:
            log_error(f"Timer scheduler error: {e}")

    def tick(self, now: Optional[float] = None) -> List[FiredReminder]:
        """
        Run one scheduling pass.

        Args:
            now: Epoch ms to evaluate at (defaults to the scheduler's clock)

        Returns:
            Reminders dispatched during this tick
        """
        if self._configs is None or self._status == SchedulerStatus.STOPPED:
            return []

        with self._tick_lock:
            if now is None:
                now = self._clock()

            if self._last_now is not None and now < self._last_now:
                log_warning(f"Clock moved backwards by {self._last_now - now:.0f}ms; recomputing timers")
            self._last_now = now

            start_of_week = self._resolve_start_of_week()
            polled = self._configs()
            self._forget_removed({c.id for c in polled})
            configs = [self._with_epoch(c, now) for c in polled if c.enabled]

            states: Dict[str, TimerState] = {}
            for timer in configs:
                try:
                    states[timer.id] = compute_state(timer, now, start_of_week)
                except TimelyError as e:
                    log_error(f"Cannot compute state for timer '{timer.name}': {e}")
            self._states = states

            if not self._notifications_available():
                return []

            fired: List[FiredReminder] = []
            for timer in configs:
                state = states.get(timer.id)
                if state is None:
                    continue
                self._prune_fired(timer.id, state.current_cycle_start)
                fired.extend(self._dispatch_due(timer, state, now))

            return fired

    def _dispatch_due(self, timer: TimerConfig, state: TimerState, now: float) -> List[FiredReminder]:
        """Dispatch every due reminder of one timer that has not fired this cycle."""
        fired = []
        for reminder_id in due_reminders(timer, state, self.tolerance_ms):
            if self._stop_event.is_set():
                break

            key = (timer.id, state.current_cycle_start, reminder_id)
            if key in self._fired:
                continue

            reminder = timer.find_reminder(reminder_id)
            if reminder is None:
                continue

            try:
                self._notifier(reminder, timer)
            except Exception as e:
                log_error(f"Reminder '{reminder.message}' for '{timer.name}' failed to dispatch: {e}")
                continue

            self._fired[key] = now
            fired.append(FiredReminder(
                config_id=timer.id,
                reminder_id=reminder_id,
                cycle_count=state.cycle_count,
                fired_at=now,
            ))
            log_debug(f"Reminder fired: {timer.name} / {reminder.message} (cycle {state.cycle_count})")

            if self._on_fired:
                try:
                    self._on_fired(timer.id, reminder_id)
                except Exception as e:
                    log_error(f"Failed to record reminder trigger: {e}")

        return fired

    def _prune_fired(self, config_id: str, cycle_start: float) -> None:
        """Forget dedup entries recorded in any cycle other than the current one."""
        stale = [k for k in self._fired if k[0] == config_id and k[1] != cycle_start]
        for key in stale:
            del self._fired[key]

    def _forget_removed(self, config_ids: Set[str]) -> None:
        """Drop epochs and dedup entries of timers no longer configured."""
        for config_id in [i for i in self._first_seen if i not in config_ids]:
            del self._first_seen[config_id]
        for key in [k for k in self._fired if k[0] not in config_ids]:
            del self._fired[key]

    def _with_epoch(self, timer: TimerConfig, now: float) -> TimerConfig:
        """
        Pin a 'now'-mode timer without a stored start to its first-observed instant.
        """
        if timer.start_mode != StartMode.NOW or timer.fixed_start_time is not None:
            return timer
        epoch = self._first_seen.setdefault(timer.id, now)
        return replace(timer, fixed_start_time=epoch)

    def _resolve_start_of_week(self) -> int:
        if callable(self._start_of_week):
            return self._start_of_week()
        return self._start_of_week

    def _notifications_available(self) -> bool:
        try:
            return bool(self._notifications_enabled())
        except Exception as e:
            log_warning(f"Notification availability check failed: {e}")
            return False


# Global scheduler instance
_timer_scheduler: Optional[TimerScheduler] = None


def get_timer_scheduler() -> TimerScheduler:
    """Get the global timer scheduler instance."""
    global _timer_scheduler
    if _timer_scheduler is None:
        _timer_scheduler = TimerScheduler()
    return _timer_scheduler


def init_timer_scheduler(
    tick_interval_ms: float = config.TICK_INTERVAL_MS,
    clock: Optional[Callable[[], float]] = None,
    notifications_enabled: Optional[Callable[[], bool]] = None,
    start_of_week: Union[int, Callable[[], int]] = 0
) -> TimerScheduler:
    """
    Initialize the global timer scheduler.

    Returns:
        The initialized TimerScheduler instance
    """
    global _timer_scheduler
    _timer_scheduler = TimerScheduler(
        tick_interval_ms=tick_interval_ms,
        clock=clock,
        notifications_enabled=notifications_enabled,
        start_of_week=start_of_week
    )
    return _timer_scheduler
