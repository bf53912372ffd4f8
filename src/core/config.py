"""
Configuration constants and environment setup.
"""

import os
from pathlib import Path

from dotenv import load_dotenv

load_dotenv()

# =============================================================================
# PATHS
# =============================================================================

PROJECT_ROOT = Path(__file__).parent.parent.parent
DB_PATH = Path(os.environ.get("CREW_CALENDAR_DB_PATH", PROJECT_ROOT / "data" / "db" / "crew-calendar.db"))

# =============================================================================
# AVAILABILITY CONFIGURATION
# =============================================================================

WORKING_HOURS_START = os.environ.get("WORKING_HOURS_START", "09:00")
WORKING_HOURS_END = os.environ.get("WORKING_HOURS_END", "17:00")
SLOT_GRANULARITY_MINUTES = 30
DEFAULT_DURATION = "1h"

# =============================================================================
# EXTERNAL SCHEDULING SYSTEM (from environment)
# =============================================================================

SCHEDULING_BASE_URL = os.environ.get("SCHEDULING_BASE_URL", "")
SCHEDULING_AUTH_HEADER = os.environ.get("SCHEDULING_AUTH_HEADER", "")
SCHEDULING_TIMEOUT_SECONDS = float(os.environ.get("SCHEDULING_TIMEOUT_SECONDS", "30"))

# Task listing has no reliable server-side date filter, so scans are paged and capped
EXTERNAL_TASK_PAGE_SIZE = int(os.environ.get("EXTERNAL_TASK_PAGE_SIZE", "500"))
EXTERNAL_TASK_MAX_PAGES = int(os.environ.get("EXTERNAL_TASK_MAX_PAGES", "20"))

# Team listing moved between API versions; tried in order
EXTERNAL_TEAM_PATHS = [
    "admin/config/scheduling-teams",
    "admin/scheduling/teams",
    "admin/config/scheduling/teams",
]

EXTERNAL_DIRECTORY_TTL_SECONDS = int(os.environ.get("EXTERNAL_DIRECTORY_TTL_SECONDS", "900"))

# =============================================================================
# EVENT DISPLAY
# =============================================================================

EVENT_COLORS = {
    "external_task": "#3B82F6",
    "work_item": "#8B5CF6",
    "leave": "#22C55E",
    "public_holiday": "#10B981",
    "block": "#F97316",
}

DEFAULT_TASK_START_TIME = "09:00"
DEFAULT_TASK_DURATION_MINUTES = 60

# =============================================================================
# API CONFIGURATION
# =============================================================================

CREW_CALENDAR_API_KEY = os.environ.get("CREW_CALENDAR_API_KEY", "")
API_HOST = os.environ.get("API_HOST", "0.0.0.0")
API_PORT = int(os.environ.get("API_PORT", "8000"))
API_DEBUG = os.environ.get("API_DEBUG", "false").lower() == "true"
API_VERSION = "1.0.0"

LOG_LEVEL = os.environ.get("LOG_LEVEL", "INFO").upper()
