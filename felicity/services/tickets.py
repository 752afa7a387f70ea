"""
Ticket issuance.

Ticket ids look like ``FEL-2026-A3F9B``: prefix, year, and five uppercase hex
characters taken from a random UUID. The ticket token is a signed JWT holding
the ticket, participant and event identity; it is what the QR code encodes
and what the scanner hands back for verification.
"""

import base64
import io
import logging
import uuid
from dataclasses import dataclass
from datetime import datetime
from typing import Callable

import jwt
import qrcode

from felicity.core.config import TICKET_ID_MAX_ATTEMPTS, TICKET_PREFIX, TICKET_SIGNING_SECRET
from felicity.core.timeutils import as_utc, utcnow
from felicity.models.events import Event
from felicity.models.users import User
from felicity.services.errors import InvalidTicketError, TicketIssuanceError

logger = logging.getLogger(__name__)

TOKEN_ALGORITHM = "HS256"
TICKET_CODE_LENGTH = 5


@dataclass(frozen=True)
class Ticket:
    ticket_id: str
    token: str


def generate_ticket_id(now: datetime | None = None) -> str:
    year = (now or utcnow()).year
    code = uuid.uuid4().hex[:TICKET_CODE_LENGTH].upper()
    return f"{TICKET_PREFIX}-{year}-{code}"


def encode_ticket_token(ticket_id: str, participant: User, event: Event) -> str:
    event_date = as_utc(event.event_start_date)
    payload = {
        "ticketId": ticket_id,
        "participantId": str(participant.id),
        "participantName": participant.full_name,
        "eventId": str(event.id),
        "eventName": event.name,
        "eventDate": event_date.isoformat() if event_date else None,
    }
    return jwt.encode(payload, TICKET_SIGNING_SECRET, algorithm=TOKEN_ALGORITHM)


def decode_ticket_token(token: str) -> dict:
    try:
        return jwt.decode(token.strip(), TICKET_SIGNING_SECRET, algorithms=[TOKEN_ALGORITHM])
    except jwt.InvalidTokenError:
        raise InvalidTicketError()


def render_qr_data_url(token: str) -> str:
    """PNG data URL of a QR code carrying the ticket token."""
    qr = qrcode.QRCode(
        version=None,
        error_correction=qrcode.constants.ERROR_CORRECT_H,
        box_size=10,
        border=1,
    )
    qr.add_data(token)
    qr.make(fit=True)

    img = qr.make_image(fill_color="black", back_color="white")
    buffer = io.BytesIO()
    img.save(buffer, format="PNG")
    return "data:image/png;base64," + base64.b64encode(buffer.getvalue()).decode()


class TicketIssuer:
    def __init__(self, exists: Callable[[str], bool], max_attempts: int = TICKET_ID_MAX_ATTEMPTS) -> None:
        self.exists = exists
        self.max_attempts = max_attempts

    def issue(self, participant: User, event: Event, now: datetime | None = None) -> Ticket:
        for attempt in range(1, self.max_attempts + 1):
            ticket_id = generate_ticket_id(now)
            if not self.exists(ticket_id):
                return Ticket(ticket_id=ticket_id, token=encode_ticket_token(ticket_id, participant, event))
            logger.warning("Ticket id %s already taken (attempt %s)", ticket_id, attempt)
        raise TicketIssuanceError(self.max_attempts)
