"""
Tests for the command-line entry point (one-shot commands only).
"""

import io
import json
import tempfile
import unittest
from pathlib import Path
from unittest.mock import patch

from rich.console import Console

import main
from engine.models import StartMode, TimeUnit
from store.timer_store import TimerStore


class TestCommands(unittest.TestCase):

    def setUp(self):
        for target, value in (
            ("config.LOG_TO_FILE", False),
            ("core.logger._console_enabled", False),
            ("main.console", Console(file=io.StringIO(), width=200, color_system=None)),
        ):
            patcher = patch(target, value)
            patcher.start()
            self.addCleanup(patcher.stop)

        tmp = tempfile.TemporaryDirectory()
        self.addCleanup(tmp.cleanup)
        self.dir = Path(tmp.name)
        self.timers = self.dir / "timers.json"

    def run_main(self, *args) -> int:
        return main.main(["--timers", str(self.timers), *args])

    def output(self) -> str:
        return main.console.file.getvalue()

    def test_add_timer(self):
        code = self.run_main("add", "Pomodoro", "--every", "25", "minutes", "--mode", "fixed",
                             "--start", "2026-01-14T09:00")
        self.assertEqual(code, 0)

        timer = TimerStore(self.timers).list_timers()[-1]
        self.assertEqual(timer.name, "Pomodoro")
        self.assertEqual(timer.duration.value, 25)
        self.assertEqual(timer.duration.unit, TimeUnit.MINUTES)
        self.assertEqual(timer.start_mode, StartMode.FIXED)
        self.assertIn(timer.id, self.output())

    def test_add_rejects_unknown_unit(self):
        self.assertEqual(self.run_main("add", "Odd", "--every", "2", "fortnights"), 1)

    def test_remind_toggle_remove(self):
        self.run_main("status")
        timer_id = TimerStore(self.timers).list_timers()[0].id

        self.assertEqual(self.run_main("remind", timer_id, "0.4", "Look away"), 0)
        self.assertEqual(self.run_main("toggle", timer_id), 0)
        self.assertIn("disabled", self.output())

        timer = TimerStore(self.timers).get_timer(timer_id)
        self.assertFalse(timer.enabled)
        self.assertEqual(timer.reminders[-1].message, "Look away")

        self.assertEqual(self.run_main("remove", timer_id), 0)
        self.assertNotIn(timer_id, [t.id for t in TimerStore(self.timers).list_timers()])

    def test_unknown_timer_fails(self):
        self.assertEqual(self.run_main("toggle", "missing"), 1)

    def test_export_then_import_replace(self):
        backup = self.dir / "backup.json"
        self.assertEqual(self.run_main("export", str(backup)), 0)
        data = json.loads(backup.read_text(encoding="utf-8"))
        self.assertEqual(len(data["timers"]), 2)

        data["timers"] = data["timers"][:1]
        backup.write_text(json.dumps(data), encoding="utf-8")
        self.assertEqual(self.run_main("import", str(backup), "--replace"), 0)
        self.assertEqual(len(TimerStore(self.timers).list_timers()), 1)

    def test_import_missing_file(self):
        self.assertEqual(self.run_main("import", str(self.dir / "nope.json")), 1)

    def test_parser_defaults(self):
        args = main.build_parser().parse_args([])
        self.assertIsNone(args.command)
        self.assertIsNone(args.timers)


if __name__ == '__main__':
    unittest.main()
