import logging

from felicity.core.celery_config import celery_app
from felicity.database.db import SessionLocal
from felicity.services.mailer import send_ticket_email
from felicity.services.reports import refresh_trending_counters

logger = logging.getLogger(__name__)


@celery_app.task(bind=True, ignore_result=True)
def send_ticket_email_task(self, payload: dict):
    """Send the ticket email. Failures are logged and never retried."""
    try:
        send_ticket_email(payload)
    except Exception:
        logger.exception("Ticket email for %s failed", payload.get("ticketId"))


@celery_app.task(bind=True)
def refresh_trending_counters_task(self):
    """Recompute every event's registrations in the last 24 hours."""
    db = SessionLocal()
    try:
        return refresh_trending_counters(db)
    finally:
        db.close()
