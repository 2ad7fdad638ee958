"""
Tests for the timer scheduler.

Most tests drive tick() by hand against an attached scheduler so no
background thread is involved.
"""

import unittest
from datetime import datetime
from unittest.mock import MagicMock, patch

from engine.errors import MissingStateError, SchedulerStateError
from engine.models import Duration, Reminder, StartMode, TimeUnit, TimerConfig
from engine.scheduler import (
    SchedulerStatus,
    TimerScheduler,
    get_timer_scheduler,
    init_timer_scheduler,
)


HOUR = 3_600_000
BASE = datetime(2026, 1, 14, 9, 0).timestamp() * 1000


def make_timer(timer_id="t1", reminders=None, **overrides) -> TimerConfig:
    values = dict(
        id=timer_id,
        name=f"Timer {timer_id}",
        duration=Duration(1, TimeUnit.HOURS),
        start_mode=StartMode.FIXED,
        fixed_start_time=BASE,
        reminders=reminders if reminders is not None else [Reminder(id="half", position=0.5, message="Halfway")],
    )
    values.update(overrides)
    return TimerConfig(**values)


class SchedulerTestCase(unittest.TestCase):
    """Attached scheduler with a mock notifier and quiet logging."""

    def setUp(self):
        patcher = patch("core.logger._console_enabled", False)
        patcher.start()
        self.addCleanup(patcher.stop)

        self.timers = [make_timer()]
        self.notifier = MagicMock()
        self.on_fired = MagicMock()
        self.scheduler = TimerScheduler(tick_interval_ms=100)
        self.scheduler.attach(lambda: self.timers, self.notifier, self.on_fired)


class TestDispatch(SchedulerTestCase):

    def test_fires_once_per_cycle(self):
        first = self.scheduler.tick(BASE + 1_800_000)
        self.scheduler.tick(BASE + 1_800_100)
        self.scheduler.tick(BASE + 1_800_200)

        self.assertEqual(len(first), 1)
        self.assertEqual(first[0].config_id, "t1")
        self.assertEqual(first[0].reminder_id, "half")
        self.assertEqual(first[0].cycle_count, 0)
        self.assertEqual(first[0].fired_at, BASE + 1_800_000)
        self.assertEqual(self.notifier.call_count, 1)
        reminder, timer = self.notifier.call_args[0]
        self.assertEqual(reminder.id, "half")
        self.assertEqual(timer.id, "t1")
        self.on_fired.assert_called_once_with("t1", "half")

    def test_nothing_due_outside_window(self):
        self.assertEqual(self.scheduler.tick(BASE + 600_000), [])
        self.notifier.assert_not_called()

    def test_clock_regression_does_not_refire(self):
        self.scheduler.tick(BASE + 1_800_200)
        self.scheduler.tick(BASE + 1_799_900)

        self.assertEqual(self.notifier.call_count, 1)
        self.assertAlmostEqual(self.scheduler.get_state("t1").elapsed, 1_799_900)

    def test_fires_again_next_cycle(self):
        self.scheduler.tick(BASE + 1_800_000)
        fired = self.scheduler.tick(BASE + HOUR + 1_800_000)

        self.assertEqual(self.notifier.call_count, 2)
        self.assertEqual(fired[0].cycle_count, 1)

    def test_boundary_reminders(self):
        self.timers = [make_timer(reminders=[
            Reminder(id="start", position=0.0, message="Start"),
            Reminder(id="end", position=1.0, message="End"),
        ])]

        near_end = self.scheduler.tick(BASE + HOUR - 200)
        just_after = self.scheduler.tick(BASE + HOUR + 100)

        self.assertEqual([f.reminder_id for f in near_end], ["end"])
        self.assertEqual([(f.reminder_id, f.cycle_count) for f in just_after], [("start", 1)])

    def test_failing_notifier_is_retried(self):
        self.notifier.side_effect = [RuntimeError("display unavailable"), None]

        self.assertEqual(self.scheduler.tick(BASE + 1_800_000), [])
        self.on_fired.assert_not_called()

        fired = self.scheduler.tick(BASE + 1_800_100)
        self.assertEqual(len(fired), 1)
        self.assertEqual(self.notifier.call_count, 2)
        self.on_fired.assert_called_once_with("t1", "half")

    def test_failure_isolated_between_reminders(self):
        self.timers = [make_timer(reminders=[
            Reminder(id="bad", position=0.5, message="Bad"),
            Reminder(id="good", position=0.5, message="Good"),
        ])]

        def notify(reminder, timer):
            if reminder.id == "bad":
                raise RuntimeError("boom")

        self.notifier.side_effect = notify
        fired = self.scheduler.tick(BASE + 1_800_000)

        self.assertEqual([f.reminder_id for f in fired], ["good"])

    def test_on_fired_failure_keeps_dispatch(self):
        self.on_fired.side_effect = OSError("disk full")

        fired = self.scheduler.tick(BASE + 1_800_000)
        self.scheduler.tick(BASE + 1_800_100)

        self.assertEqual(len(fired), 1)
        self.assertEqual(self.notifier.call_count, 1)

    def test_notifications_disabled(self):
        scheduler = TimerScheduler(tick_interval_ms=100, notifications_enabled=lambda: False)
        scheduler.attach(lambda: self.timers, self.notifier)

        self.assertEqual(scheduler.tick(BASE + 1_800_000), [])
        self.notifier.assert_not_called()
        self.assertIsNotNone(scheduler.get_state("t1"))

    def test_last_triggered_survives_restart(self):
        self.timers[0].reminders[0].last_triggered = BASE + 1_799_950

        fresh = TimerScheduler(tick_interval_ms=100)
        fresh.attach(lambda: self.timers, self.notifier)

        self.assertEqual(fresh.tick(BASE + 1_800_100), [])
        self.notifier.assert_not_called()

    def test_stop_inside_notifier_halts_dispatch(self):
        self.timers = [make_timer(reminders=[
            Reminder(id="a", position=0.5, message="A"),
            Reminder(id="b", position=0.5, message="B"),
        ])]
        self.notifier.side_effect = lambda reminder, timer: self.scheduler.stop()

        fired = self.scheduler.tick(BASE + 1_800_000)

        self.assertEqual([f.reminder_id for f in fired], ["a"])
        self.assertEqual(self.notifier.call_count, 1)
        self.assertEqual(self.scheduler.tick(BASE + 1_800_100), [])


class TestAlignedDispatch(SchedulerTestCase):
    """Aligned timers restart their cycle count at each calendar boundary."""

    def at(self, hour, minute, second=0) -> float:
        return datetime(2026, 1, 14, hour, minute, second).timestamp() * 1000

    def test_hour_aligned_fires_every_hour(self):
        self.timers = [make_timer(start_mode=StartMode.ALIGNED, align_to=TimeUnit.HOURS, fixed_start_time=None)]

        fired = []
        for hour in (10, 11, 12):
            fired.extend(self.scheduler.tick(self.at(hour, 30)))
            self.scheduler.tick(self.at(hour, 30) + 200)

        self.assertEqual(self.notifier.call_count, 3)
        self.assertEqual([f.cycle_count for f in fired], [0, 0, 0])
        self.assertEqual(self.on_fired.call_count, 3)

    def test_short_cycles_fire_in_every_period(self):
        self.timers = [make_timer(
            duration=Duration(25, TimeUnit.MINUTES),
            start_mode=StartMode.ALIGNED,
            align_to=TimeUnit.HOURS,
            fixed_start_time=None,
        )]

        fired = []
        for hour, minute in ((10, 12), (10, 37), (11, 12), (11, 37)):
            fired.extend(self.scheduler.tick(self.at(hour, minute, 30)))

        self.assertEqual(self.notifier.call_count, 4)
        self.assertEqual([f.cycle_count for f in fired], [0, 1, 0, 1])


class TestStates(SchedulerTestCase):

    def test_states_replaced_each_tick(self):
        self.timers = [make_timer("a"), make_timer("b")]
        self.scheduler.tick(BASE + 60_000)
        self.assertEqual(set(self.scheduler.states), {"a", "b"})

        self.timers = [make_timer("b")]
        self.scheduler.tick(BASE + 120_000)
        self.assertEqual(set(self.scheduler.states), {"b"})

    def test_disabled_timers_excluded(self):
        self.timers = [make_timer("a"), make_timer("b", enabled=False)]
        self.scheduler.tick(BASE + 1_800_000)

        self.assertEqual(set(self.scheduler.states), {"a"})
        self.assertEqual(self.notifier.call_count, 1)

    def test_invalid_timer_does_not_block_others(self):
        self.timers = [make_timer("broken", duration=Duration(0, TimeUnit.HOURS)), make_timer("ok")]
        fired = self.scheduler.tick(BASE + 1_800_000)

        self.assertEqual(set(self.scheduler.states), {"ok"})
        self.assertEqual([f.config_id for f in fired], ["ok"])

    def test_now_mode_counts_from_first_tick(self):
        self.timers = [make_timer("n", start_mode=StartMode.NOW, fixed_start_time=None)]

        self.scheduler.tick(BASE)
        self.assertEqual(self.scheduler.get_state("n").elapsed, 0)

        fired = self.scheduler.tick(BASE + 1_800_000)
        self.assertAlmostEqual(self.scheduler.get_state("n").elapsed, 1_800_000)
        self.assertEqual([f.reminder_id for f in fired], ["half"])

    def test_removed_now_mode_timer_gets_new_epoch(self):
        self.timers = [make_timer("n", start_mode=StartMode.NOW, fixed_start_time=None)]
        self.scheduler.tick(BASE)

        self.timers = []
        self.scheduler.tick(BASE + 60_000)

        self.timers = [make_timer("n", start_mode=StartMode.NOW, fixed_start_time=None)]
        self.scheduler.tick(BASE + 600_000)
        self.assertEqual(self.scheduler.get_state("n").elapsed, 0)
        self.assertEqual(self.scheduler.get_state("n").current_cycle_start, BASE + 600_000)

    def test_paused_now_mode_timer_keeps_epoch(self):
        self.timers = [make_timer("n", start_mode=StartMode.NOW, fixed_start_time=None)]
        self.scheduler.tick(BASE)

        self.timers = [make_timer("n", start_mode=StartMode.NOW, fixed_start_time=None, enabled=False)]
        self.scheduler.tick(BASE + 60_000)

        self.timers = [make_timer("n", start_mode=StartMode.NOW, fixed_start_time=None)]
        self.scheduler.tick(BASE + 600_000)
        self.assertAlmostEqual(self.scheduler.get_state("n").elapsed, 600_000)

    def test_require_state(self):
        with self.assertRaises(MissingStateError):
            self.scheduler.require_state("t1")
        self.scheduler.tick(BASE + 10)
        self.assertEqual(self.scheduler.require_state("t1").config_id, "t1")

    def test_start_of_week_callable(self):
        weekly = make_timer(
            "w",
            duration=Duration(1, TimeUnit.WEEKS),
            start_mode=StartMode.ALIGNED,
            align_to=TimeUnit.WEEKS,
            reminders=[],
        )
        scheduler = TimerScheduler(tick_interval_ms=100, start_of_week=lambda: 1)
        scheduler.attach(lambda: [weekly], self.notifier)
        scheduler.tick(BASE)

        monday = datetime(2026, 1, 12).timestamp() * 1000
        self.assertEqual(scheduler.get_state("w").current_cycle_start, monday)

    def test_tick_before_attach(self):
        self.assertEqual(TimerScheduler().tick(BASE), [])


class TestConfiguration(unittest.TestCase):

    def test_tolerance(self):
        self.assertEqual(TimerScheduler(tick_interval_ms=100).tolerance_ms, 500)
        self.assertEqual(TimerScheduler(tick_interval_ms=1000).tolerance_ms, 2000)

    def test_non_positive_interval_rejected(self):
        with self.assertRaises(ValueError):
            TimerScheduler(tick_interval_ms=0)

    def test_global_instance(self):
        scheduler = init_timer_scheduler(tick_interval_ms=250)
        self.assertIs(get_timer_scheduler(), scheduler)
        self.assertEqual(scheduler.tick_interval_ms, 250)


class TestLifecycle(unittest.TestCase):

    def setUp(self):
        patcher = patch("core.logger._console_enabled", False)
        patcher.start()
        self.addCleanup(patcher.stop)

        self.notifier = MagicMock()
        self.scheduler = TimerScheduler(tick_interval_ms=10_000, clock=lambda: BASE + 1_800_000)
        self.addCleanup(self.scheduler.stop)

    def test_status_transitions(self):
        self.assertEqual(self.scheduler.status, SchedulerStatus.IDLE)
        self.assertFalse(self.scheduler.is_running())

        self.scheduler.start(lambda: [make_timer()], self.notifier)
        self.assertEqual(self.scheduler.status, SchedulerStatus.RUNNING)
        self.assertTrue(self.scheduler.is_running())

        self.scheduler.stop()
        self.assertEqual(self.scheduler.status, SchedulerStatus.STOPPED)
        self.assertFalse(self.scheduler.is_running())

    def test_start_runs_first_tick_immediately(self):
        self.scheduler.start(lambda: [make_timer()], self.notifier)

        self.assertEqual(self.notifier.call_count, 1)
        self.assertIsNotNone(self.scheduler.get_state("t1"))

    def test_start_twice_is_noop(self):
        self.scheduler.start(lambda: [make_timer()], self.notifier)
        self.scheduler.start(lambda: [make_timer()], self.notifier)

        self.assertEqual(self.notifier.call_count, 1)

    def test_restart_after_stop_rejected(self):
        self.scheduler.start(lambda: [make_timer()], self.notifier)
        self.scheduler.stop()

        with self.assertRaises(SchedulerStateError):
            self.scheduler.start(lambda: [make_timer()], self.notifier)

    def test_stop_is_idempotent(self):
        self.scheduler.stop()
        self.scheduler.stop()
        self.assertEqual(self.scheduler.status, SchedulerStatus.STOPPED)

    def test_no_dispatch_after_stop(self):
        self.scheduler.start(lambda: [make_timer()], self.notifier)
        self.scheduler.stop()

        self.assertEqual(self.scheduler.tick(BASE + HOUR + 1_800_000), [])
        self.assertEqual(self.notifier.call_count, 1)


if __name__ == '__main__':
    unittest.main()
