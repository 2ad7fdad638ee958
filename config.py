"""
Timely - Configuration
Feature flags, constants, and intervals
"""

import os
from pathlib import Path
from dotenv import load_dotenv

# Load environment variables
load_dotenv()

# =============================================================================
# PATHS
# =============================================================================
PROJECT_ROOT = Path(__file__).parent
DATA_DIR = Path(os.getenv("TIMELY_DATA_DIR", str(PROJECT_ROOT / "data")))
LOGS_DIR = Path(os.getenv("TIMELY_LOGS_DIR", str(PROJECT_ROOT / "logs")))
TIMERS_PATH = Path(os.getenv("TIMELY_TIMERS_PATH", str(DATA_DIR / "timers.json")))
DIAGNOSTIC_LOG_PATH = LOGS_DIR / "diagnostic.log"

# =============================================================================
# VERSION
# =============================================================================
VERSION = "0.1.0"
PROJECT_NAME = "Timely"

# =============================================================================
# SCHEDULER CONFIGURATION
# =============================================================================
# The polling loop recomputes every timer on each tick. Reminders are matched
# against a tolerance window of max(2 * tick, MIN_REMINDER_TOLERANCE_MS) so a
# single delayed or dropped tick never loses a reminder.
TICK_INTERVAL_MS = int(os.getenv("TIMELY_TICK_INTERVAL_MS", "100"))
MIN_REMINDER_TOLERANCE_MS = 500
SCHEDULER_JOIN_TIMEOUT = 5.0        # Seconds to wait for the loop thread on stop

# Live status table refresh (run command)
STATUS_REFRESH_SECONDS = float(os.getenv("TIMELY_STATUS_REFRESH_SECONDS", "1.0"))

# =============================================================================
# TIMER DEFAULTS
# =============================================================================
# Used when a timer is created without explicit values.
DEFAULT_TIMER_NAME = "New Timer"
DEFAULT_DURATION_VALUE = 1
DEFAULT_DURATION_UNIT = "hours"
DEFAULT_START_MODE = "aligned"
DEFAULT_ALIGN_TO = "hours"
DEFAULT_REMINDER_MESSAGE = "Reminder!"
DEFAULT_REMINDER_POSITION = 0.5
DEFAULT_MARKER_COLOR = "#ffffff"

# =============================================================================
# SETTINGS DEFAULTS
# =============================================================================
# start_of_week: 0=Sunday, 1=Monday, 6=Saturday
DEFAULT_START_OF_WEEK = int(os.getenv("TIMELY_START_OF_WEEK", "0"))
NOTIFICATIONS_ENABLED = os.getenv("TIMELY_NOTIFICATIONS_ENABLED", "true").lower() == "true"
SOUND_ENABLED = os.getenv("TIMELY_SOUND_ENABLED", "true").lower() == "true"
VIBRATE_ENABLED = True
DEFAULT_CLOCK_FORMAT = "12h"

# =============================================================================
# NOTIFICATIONS
# =============================================================================
NOTIFICATION_TITLE_PREFIX = "Timely"

# =============================================================================
# LOGGING
# =============================================================================
LOG_LEVEL = os.getenv("LOG_LEVEL", "INFO")
LOG_TO_FILE = os.getenv("TIMELY_LOG_TO_FILE", "true").lower() == "true"
LOG_TO_CONSOLE = True
