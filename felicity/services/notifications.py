import logging

from felicity.core.timeutils import as_utc
from felicity.models.events import Event
from felicity.models.registrations import Registration
from felicity.models.users import User
from felicity.tasks import send_ticket_email_task

logger = logging.getLogger(__name__)


def ticket_issued_payload(registration: Registration, participant: User, event: Event) -> dict:
    event_date = as_utc(event.event_start_date)
    return {
        "ticketId": registration.ticket_id,
        "participant": {
            "id": participant.id,
            "name": participant.full_name,
            "email": participant.email,
        },
        "event": {
            "id": event.id,
            "name": event.name,
            "date": event_date.isoformat() if event_date else None,
        },
        "qrPayload": registration.ticket_token,
    }


def dispatch_ticket_issued(registration: Registration, participant: User, event: Event) -> None:
    """
    Hand the ticket to the email worker. Called after the registration is
    committed; failures are logged and never reach the caller.
    """
    payload = ticket_issued_payload(registration, participant, event)
    try:
        send_ticket_email_task.delay(payload)
    except Exception:
        logger.exception("Could not dispatch ticket email for %s", registration.ticket_id)
