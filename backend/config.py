"""
Application Configuration File

This file centralizes all configuration variables so that:
- deployment changes do not require code changes
- the same code runs against a local SQLite file or a test database
- evaluation thresholds can be tuned without touching business logic

Every value below can be overridden with an environment variable of the same name.
"""

import os
from pathlib import Path

# -------------------------------------------------
# BASE DIRECTORY
# -------------------------------------------------
BASE_DIR = Path(__file__).resolve().parent

# -------------------------------------------------
# DATABASE CONFIGURATION
# -------------------------------------------------
DATABASE_NAME = "internships.db"
DATABASE_PATH = BASE_DIR / DATABASE_NAME

DATABASE_URL = os.getenv("DATABASE_URL", f"sqlite:///{DATABASE_PATH}")

# -------------------------------------------------
# APPLICATION SETTINGS
# -------------------------------------------------
APP_NAME = "Internship Tracker"
APP_VERSION = "1.0"
DEBUG = os.getenv("DEBUG", "true").lower() == "true"

# -------------------------------------------------
# LOGGING
# -------------------------------------------------
LOG_DIR = Path(os.getenv("LOG_DIR", str(BASE_DIR / "logs")))
LOG_FILE = LOG_DIR / "app.log"
LOG_MAX_BYTES = 10 * 1024 * 1024
LOG_BACKUP_COUNT = 5

# -------------------------------------------------
# SESSION SETTINGS
# -------------------------------------------------
SESSION_TIMEOUT_MINUTES = int(os.getenv("SESSION_TIMEOUT_MINUTES", "480"))  # 8 hours
SESSION_TOKEN_LENGTH = 32
SESSION_HEADER = "X-Session-Token"

# -------------------------------------------------
# NETWORK SETTINGS
# -------------------------------------------------
DEFAULT_HOST = "0.0.0.0"
DEFAULT_PORT = 8000

# -------------------------------------------------
# ROLE DEFINITIONS
# -------------------------------------------------
ROLE_INTERN = "INTERN"
ROLE_ADMIN = "ADMIN"
ROLE_SUPER_ADMIN = "SUPER_ADMIN"

ROLES = (ROLE_INTERN, ROLE_ADMIN, ROLE_SUPER_ADMIN)
ADMIN_ROLES = (ROLE_ADMIN, ROLE_SUPER_ADMIN)

# -------------------------------------------------
# APPLICATION STATUS
# -------------------------------------------------
APPLICATION_PENDING = "PENDING"
APPLICATION_ACCEPTED = "ACCEPTED"
APPLICATION_REJECTED = "REJECTED"

APPLICATION_STATUSES = (APPLICATION_PENDING, APPLICATION_ACCEPTED, APPLICATION_REJECTED)

# -------------------------------------------------
# SUBMISSION STATUS
# -------------------------------------------------
SUBMISSION_PENDING = "PENDING"
SUBMISSION_APPROVED = "APPROVED"
SUBMISSION_REJECTED = "REJECTED"
SUBMISSION_REQUIRES_CHANGES = "REQUIRES_CHANGES"

SUBMISSION_STATUSES = (
    SUBMISSION_PENDING,
    SUBMISSION_APPROVED,
    SUBMISSION_REJECTED,
    SUBMISSION_REQUIRES_CHANGES,
)

# -------------------------------------------------
# PROGRESS / RISK POLICY
# -------------------------------------------------
# An intern is "at-risk" when progress is below the threshold AND the share of
# internship time already elapsed exceeds progress by more than the margin.
AT_RISK_PROGRESS_THRESHOLD = int(os.getenv("AT_RISK_PROGRESS_THRESHOLD", "70"))
AT_RISK_ELAPSED_MARGIN = int(os.getenv("AT_RISK_ELAPSED_MARGIN", "20"))
