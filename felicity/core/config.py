import os

# Redis configuration
REDIS_URL = os.getenv("REDIS_URL", "redis://localhost:6379/0")

# Database configuration
DATABASE_URL = os.getenv("DATABASE_URL", "sqlite:///./felicity.db")

# Per-key locks guarding capacity and registration state changes
LOCK_TIMEOUT = int(os.getenv("LOCK_TIMEOUT", "10"))
LOCK_BLOCKING_TIMEOUT = int(os.getenv("LOCK_BLOCKING_TIMEOUT", "5"))

# Tickets
TICKET_PREFIX = os.getenv("TICKET_PREFIX", "FEL")
TICKET_SIGNING_SECRET = os.getenv("TICKET_SIGNING_SECRET", "change-me")
TICKET_ID_MAX_ATTEMPTS = int(os.getenv("TICKET_ID_MAX_ATTEMPTS", "5"))

# Payment review
REJECTION_REASON_MIN_LENGTH = int(os.getenv("REJECTION_REASON_MIN_LENGTH", "5"))

# Email delivery (Resend); empty key disables sending
RESEND_API_KEY = os.getenv("RESEND_API_KEY", "")
EMAIL_FROM = os.getenv("EMAIL_FROM", "Felicity <tickets@felicity.example>")

LOG_LEVEL = os.getenv("LOG_LEVEL", "INFO")

CELERY_TASK_ALWAYS_EAGER = os.getenv("CELERY_TASK_ALWAYS_EAGER", "false").lower() == "true"


def get_redis_url():
    return REDIS_URL


def get_database_url():
    return DATABASE_URL
