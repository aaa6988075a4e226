"""
RUNTIME CONFIGURATION

All knobs are read once from the environment at import time.
Never hardcode credentials or endpoints elsewhere; import from here.
"""

import os

# Authoritative store
PATRA_API_URL = os.getenv("PATRA_API_URL", "http://localhost:5000").rstrip("/")
API_TIMEOUT = float(os.getenv("PATRA_API_TIMEOUT", "10"))  # seconds

# Polling (seconds)
VERIFY_POLL_INTERVAL = float(os.getenv("PATRA_VERIFY_INTERVAL", "30"))
LETTER_POLL_INTERVAL = float(os.getenv("PATRA_LETTER_POLL_INTERVAL", "15"))

# Session
SESSION_MAX_AGE_SECONDS = int(os.getenv("PATRA_SESSION_MAX_AGE", str(24 * 60 * 60)))
REAUTH_BUFFER_SECONDS = int(os.getenv("PATRA_REAUTH_BUFFER", "300"))
SESSION_FILE = os.getenv("PATRA_SESSION_FILE", os.path.join("data", "session.json"))
# "memory" keeps the credential per browser session; "file" survives restarts
SESSION_BACKEND = os.getenv("PATRA_SESSION_BACKEND", "memory").lower()

# Attachments
MAX_REPORT_BYTES = int(os.getenv("PATRA_MAX_REPORT_BYTES", str(10 * 1024 * 1024)))

# Storage
AUDIT_LOG_FILE = os.getenv(
    "PATRA_AUDIT_LOG", os.path.join("data", "logs", "patra_events.jsonl")
)

LOG_LEVEL = os.getenv("PATRA_LOG_LEVEL", "INFO").upper()
