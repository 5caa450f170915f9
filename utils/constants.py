import os

from dotenv import load_dotenv

load_dotenv(".env.local")

# Backend configuration
API_BASE_URL = os.getenv("API_BASE_URL", "http://localhost:4001")
REQUEST_TIMEOUT_SECONDS = float(os.getenv("REQUEST_TIMEOUT_SECONDS", "10"))


# Accepted-proposal event materialization
EVENT_MATERIALIZE_MAX_ATTEMPTS = int(os.getenv("EVENT_MATERIALIZE_MAX_ATTEMPTS", "3"))
EVENT_MATERIALIZE_BACKOFF_SECONDS = float(
    os.getenv("EVENT_MATERIALIZE_BACKOFF_SECONDS", "0.5")
)


# Calendar display defaults
DEFAULT_EVENT_COLOR = os.getenv("DEFAULT_EVENT_COLOR", "#18181B")
DEFAULT_EVENT_TEXT_COLOR = os.getenv("DEFAULT_EVENT_TEXT_COLOR", "#ffffff")
DEFAULT_EVENT_DURATION_MINUTES = int(os.getenv("DEFAULT_EVENT_DURATION_MINUTES", "60"))
DRAFT_START_HOUR = int(os.getenv("DRAFT_START_HOUR", "11"))
DRAFT_END_HOUR = int(os.getenv("DRAFT_END_HOUR", "12"))


# Availability
AVAILABILITY_SEARCH_DAYS = int(os.getenv("AVAILABILITY_SEARCH_DAYS", "14"))


# Logging
LOG_LEVEL = os.getenv("LOG_LEVEL", "INFO")
