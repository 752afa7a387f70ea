"""Ticket scanning at the venue."""

import logging
from dataclasses import dataclass
from datetime import datetime

from sqlalchemy import select, update
from sqlalchemy.orm import Session

from felicity.core.timeutils import utcnow
from felicity.database.db import atomic
from felicity.models.registrations import Registration, RegistrationStatus
from felicity.services.errors import (
    AlreadyScannedError,
    InvalidRequestError,
    InvalidStateError,
    NotFoundError,
    UnauthorizedError,
)
from felicity.services.locking import hold_lock, registration_lock_name
from felicity.services.registrations import bump_event_counters, get_event, get_registration, get_user
from felicity.services.tickets import decode_ticket_token

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class Verification:
    ticket_id: str
    participant_name: str
    participant_email: str
    event_name: str
    event_date: datetime
    status: str
    payment_status: str
    verified_at: datetime


def verify_ticket(
    db: Session,
    *,
    organizer_id: int,
    ticket_id: str | None = None,
    qr_payload: str | None = None,
    now: datetime | None = None,
    redis_client=None,
) -> Verification:
    """
    Mark the ticket's holder as attended.

    Accepts the bare ticket id or the scanned QR payload. A ticket can be
    scanned once; later scans raise ``AlreadyScannedError`` with the time of
    the first one, so clients can retry safely.
    """
    now = now or utcnow()
    if qr_payload:
        ticket_id = decode_ticket_token(qr_payload).get("ticketId")
    ticket_id = (ticket_id or "").strip()
    if not ticket_id:
        raise InvalidRequestError("Ticket ID is required")

    registration_id = db.scalar(select(Registration.id).where(Registration.ticket_id == ticket_id))
    if registration_id is None:
        logger.info("Scan of unknown ticket %s", ticket_id)
        raise NotFoundError("Registration")

    with hold_lock(registration_lock_name(registration_id), redis_client):
        with atomic(db):
            registration = get_registration(db, registration_id)
            event = get_event(db, registration.event_id)
            if event.organizer_id != organizer_id:
                raise UnauthorizedError("This ticket belongs to another organizer's event")
            if registration.attended:
                raise AlreadyScannedError(ticket_id, registration.attended_at)
            if registration.status != RegistrationStatus.CONFIRMED.value:
                raise InvalidStateError(
                    f"Cannot verify - Registration status is {registration.status}",
                    status=registration.status,
                    payment_status=registration.payment_status,
                )

            # Check and set in one statement
            res = db.execute(
                update(Registration)
                .where(
                    Registration.id == registration_id,
                    Registration.attended.is_(False),
                    Registration.status == RegistrationStatus.CONFIRMED.value,
                )
                .values(attended=True, attended_at=now, marked_by=organizer_id)
                .execution_options(synchronize_session=False)
            )
            if res.rowcount != 1:  # type: ignore
                registration = get_registration(db, registration_id)
                raise AlreadyScannedError(ticket_id, registration.attended_at)

            bump_event_counters(db, event.id, total_attendance=1)
            db.refresh(registration)
            participant = get_user(db, registration.participant_id)

    logger.info("Ticket %s verified by organizer %s", ticket_id, organizer_id)
    return Verification(
        ticket_id=ticket_id,
        participant_name=participant.full_name,
        participant_email=participant.email,
        event_name=event.name,
        event_date=event.event_start_date,
        status=registration.status,
        payment_status=registration.payment_status,
        verified_at=now,
    )
