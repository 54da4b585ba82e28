import os
from pathlib import Path

from dotenv import load_dotenv

# Load .env from project root
env_path = Path(__file__).resolve().parent.parent / ".env"
load_dotenv(dotenv_path=env_path)

DATABASE_URL = os.getenv("DATABASE_URL", "sqlite:///./eventops.db")

# Scheduling engine
# Aware timestamps arriving at the API are converted into this zone and made naive
SCHEDULING_TIMEZONE = os.getenv("SCHEDULING_TIMEZONE", "America/Sao_Paulo")
# How far in the past a new or moved window may start (minutes)
PAST_GRACE_MINUTES = int(os.getenv("PAST_GRACE_MINUTES", "15"))
# Max wait for the per-resource critical section before giving up
RESOURCE_LOCK_TIMEOUT_SECONDS = float(os.getenv("RESOURCE_LOCK_TIMEOUT_SECONDS", "10"))

# Free slot suggestions
DEFAULT_SLOT_MINUTES = int(os.getenv("DEFAULT_SLOT_MINUTES", "60"))
SLOT_STEP_MINUTES = int(os.getenv("SLOT_STEP_MINUTES", "30"))
MAX_SUGGESTED_SLOTS = int(os.getenv("MAX_SUGGESTED_SLOTS", "20"))

# Temporary holds lapse on their own after this many hours unless extended
DEFAULT_HOLD_HOURS = int(os.getenv("DEFAULT_HOLD_HOURS", "48"))
# Horizon of the double-booking audit sweep (days from today)
CONFLICT_AUDIT_DAYS = int(os.getenv("CONFLICT_AUDIT_DAYS", "30"))

# Notification collaborator (log-only when no webhook is configured)
NOTIFICATION_WEBHOOK_URL = os.getenv("NOTIFICATION_WEBHOOK_URL")
NOTIFICATION_TIMEOUT_SECONDS = float(os.getenv("NOTIFICATION_TIMEOUT_SECONDS", "5"))

# Identity collaborator
IDENTITY_SERVICE_URL = os.getenv("IDENTITY_SERVICE_URL")
IDENTITY_TIMEOUT_SECONDS = float(os.getenv("IDENTITY_TIMEOUT_SECONDS", "5"))

# CORS
ALLOWED_ORIGINS = os.getenv(
    "ALLOWED_ORIGINS",
    "http://localhost:3000,http://localhost:5173",
).split(",")
