"""
Timely - Console Notifier
Shows fired reminders as rich panels in the terminal
"""

from typing import Optional, Callable

from rich.console import Console
from rich.markup import escape
from rich.panel import Panel

import config
from core.logger import log_info
from engine.models import Reminder, TimerConfig
from store.timer_store import AppSettings


def can_show_notifications(console: Console) -> bool:
    """Check whether notifications have somewhere to go (an interactive terminal)."""
    return console.is_terminal


def notification_title(timer: TimerConfig) -> str:
    return f"{config.NOTIFICATION_TITLE_PREFIX}: {timer.name}"


class ConsoleNotifier:
    """
    Notifier for the scheduler that prints reminders to the console.

    Called with (reminder, timer). Rings the terminal bell when sound is
    enabled both globally and on the reminder.
    """

    def __init__(
        self,
        console: Optional[Console] = None,
        settings_provider: Optional[Callable[[], AppSettings]] = None
    ):
        self.console = console or Console()
        self._settings_provider = settings_provider or AppSettings

    def notifications_enabled(self) -> bool:
        """Global guard passed to the scheduler."""
        settings = self._settings_provider()
        return settings.notifications_enabled and can_show_notifications(self.console)

    def __call__(self, reminder: Reminder, timer: TimerConfig) -> None:
        settings = self._settings_provider()
        if not settings.notifications_enabled:
            return

        self.console.print(Panel(
            escape(reminder.message),
            title=f"⏰ {escape(notification_title(timer))}",
            border_style="cyan",
            expand=False,
        ))

        if settings.sound_enabled and reminder.sound:
            self.console.bell()

        log_info(f"Reminder: {timer.name} - {reminder.message}", prefix="🔔")
