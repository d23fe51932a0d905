"""Application configuration constants.

Central location for all configurable values used throughout the application.
"""

import os

# =============================================================================
# Deployment
# =============================================================================

DB_PATH = os.environ.get("AGENDABOT_DB_PATH", "agendabot.db")
LOG_DIR = os.environ.get("AGENDABOT_LOG_DIR")  # None -> package parent directory
DEFAULT_PORT = 8000

# Sender identity used for every message the bot posts into a room
BOT_ACTOR_ID = "agenda_bot"

# =============================================================================
# Agenda Defaults
# =============================================================================

DEFAULT_DURATION_MINUTES = 10  # Used when a command carries no duration
DEFAULT_LANGUAGE = "en"

# =============================================================================
# Time Monitoring
# =============================================================================
# Ratio = elapsed minutes / planned minutes.
# - approaching:        ratio >= warning threshold (room configurable)
# - overtime:           ratio >= 1.0 (never configurable)
# - overtime_critical:  ratio >= overtime threshold (room configurable)

DEFAULT_MONITORING_ENABLED = True
DEFAULT_WARNING_THRESHOLD = 0.8    # 80%
DEFAULT_OVERTIME_THRESHOLD = 1.2   # 120%
FIXED_TIME_REACHED_THRESHOLD = 1.0

# Legal ranges, applied at write time
WARNING_THRESHOLD_MIN = 0.10
WARNING_THRESHOLD_MAX = 0.95
OVERTIME_THRESHOLD_MIN = 1.05
OVERTIME_THRESHOLD_MAX = 3.00

# Global default keys in the settings table
SETTING_MONITORING_ENABLED = "time-monitoring-enabled"
SETTING_WARNING_THRESHOLD = "warning-threshold"
SETTING_OVERTIME_THRESHOLD = "overtime-warning-threshold"

# Sweep interval (seconds)
FIXED_CHECK_INTERVAL = 300  # 5 minutes
MIN_CHECK_INTERVAL = 30
CHECK_INTERVAL = int(os.environ.get("AGENDABOT_CHECK_INTERVAL", FIXED_CHECK_INTERVAL))

# =============================================================================
# Room Configuration Sections
# =============================================================================

SECTION_TIME_MONITORING = "time_monitoring"
SECTION_RESPONSE = "response_settings"
SECTION_AGENDA_LIMITS = "agenda_limits"
SECTION_AUTO_BEHAVIORS = "auto_behaviors"
SECTION_EMOJIS = "custom_emojis"

CONFIG_SECTIONS = [
    SECTION_TIME_MONITORING,
    SECTION_RESPONSE,
    SECTION_AGENDA_LIMITS,
    SECTION_AUTO_BEHAVIORS,
    SECTION_EMOJIS,
]

# Document fields that do not count as overrides when deciding whether a
# room document is empty
BOOKKEEPING_FIELDS = [
    "configured_by",
    "configured_at",
    "language",
    "language_updated_at",
    "last_summary_message_id",
    "last_summary_timestamp",
]

RESPONSE_MODES = ["normal", "minimal"]
DEFAULT_RESPONSE_CONFIG = {
    "response_mode": "normal",
}

DEFAULT_AGENDA_LIMITS = {
    "max_items": 50,
    "max_bulk_items": 20,
    "default_duration": DEFAULT_DURATION_MINUTES,
}

# (min, max) per agenda limit
AGENDA_LIMIT_RANGES = {
    "max_items": (5, 100),
    "max_bulk_items": (3, 50),
    "default_duration": (1, 120),
}

DEFAULT_AUTO_BEHAVIORS = {
    "start_agenda": True,
    "cleanup": False,
    "summary": True,
}

DEFAULT_EMOJIS = {
    "current_item": "🗣️",
    "completed": "✅",
    "pending": "📝",
    "on_time": "👍",
    "time_warning": "⏰",
}
MAX_EMOJI_LENGTH = 10

# =============================================================================
# Participant Types (pre-resolved by the chat platform)
# =============================================================================

PARTICIPANT_OWNER = 1
PARTICIPANT_MODERATOR = 2
PARTICIPANT_USER = 3
PARTICIPANT_GUEST = 4
PARTICIPANT_USER_FOLLOWING_LINK = 5
PARTICIPANT_GUEST_MODERATOR = 6

MODERATOR_PARTICIPANT_TYPES = [PARTICIPANT_OWNER, PARTICIPANT_MODERATOR, PARTICIPANT_GUEST_MODERATOR]
ADD_ITEM_PARTICIPANT_TYPES = [
    PARTICIPANT_OWNER, PARTICIPANT_MODERATOR, PARTICIPANT_USER, PARTICIPANT_GUEST_MODERATOR
]

# =============================================================================
# Logging
# =============================================================================

LOG_FILE_NAME = "agendabot.log"
LOG_MAX_BYTES = 10 * 1024 * 1024  # 10MB per log file
LOG_BACKUP_COUNT = 5  # Number of backup files to keep
