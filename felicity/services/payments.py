"""
Payment review for merchandise purchases.

    PENDING_APPROVAL -> PAID      (approve: ticket issued, stock taken)
    PENDING_APPROVAL -> UNPAID    (reject: proof cleared, reason kept)
    UNPAID -> PENDING_APPROVAL    (participant uploads a new proof)

All three run under the registration lock, so approve, reject, resubmit and
cancel on one registration never interleave.
"""

import logging
from datetime import datetime

from sqlalchemy.orm import Session

from felicity.core.config import REJECTION_REASON_MIN_LENGTH
from felicity.core.timeutils import utcnow
from felicity.database.db import atomic
from felicity.models.events import Event
from felicity.models.registrations import PaymentStatus, Registration, RegistrationStatus
from felicity.services.capacity import CapacityLedger
from felicity.services.errors import (
    CapacityFullError,
    InsufficientStockError,
    InvalidRequestError,
    InvalidStateError,
    OutOfStockError,
    UnauthorizedError,
)
from felicity.services.locking import hold_lock, registration_lock_name
from felicity.services.notifications import dispatch_ticket_issued
from felicity.services.registrations import (
    bump_event_counters,
    get_event,
    get_registration,
    get_user,
    ticket_issuer,
)
from felicity.services.stock import resolve_stock

logger = logging.getLogger(__name__)


def _pending_review(db: Session, registration_id: int, organizer_id: int) -> tuple[Registration, Event]:
    registration = get_registration(db, registration_id)
    event = get_event(db, registration.event_id)
    if event.organizer_id != organizer_id:
        raise UnauthorizedError()
    if (
        registration.status != RegistrationStatus.PENDING.value
        or registration.payment_status != PaymentStatus.PENDING_APPROVAL.value
    ):
        raise InvalidStateError(
            "Payment not pending approval",
            status=registration.status,
            payment_status=registration.payment_status,
        )
    return registration, event


def approve_payment(
    db: Session,
    *,
    registration_id: int,
    organizer_id: int,
    now: datetime | None = None,
    redis_client=None,
) -> Registration:
    """
    Approve a pending merchandise payment.

    Takes the purchased units from the variant's pool, issues the ticket,
    confirms the registration and books the revenue in one transaction; if
    any step fails nothing is kept.
    """
    now = now or utcnow()

    with hold_lock(registration_lock_name(registration_id), redis_client):
        registration, event = _pending_review(db, registration_id, organizer_id)
        resolved = resolve_stock(event, registration.merchandise_size, registration.merchandise_color)
        ledger = CapacityLedger(db, redis_client)
        key = resolved.capacity_key(event.id)
        quantity = registration.merchandise_quantity

        with ledger.hold(key):
            with atomic(db):
                ledger.open(key, resolved.stock)
                try:
                    ledger.try_reserve(key, quantity)
                except CapacityFullError:
                    available = ledger.available(key) or 0
                    if available <= 0:
                        raise OutOfStockError(resolved.label)
                    raise InsufficientStockError(resolved.label, available, quantity)

                participant = get_user(db, registration.participant_id)
                ticket = ticket_issuer(db).issue(participant, event, now)

                registration.ticket_id = ticket.ticket_id
                registration.ticket_token = ticket.token
                registration.status = RegistrationStatus.CONFIRMED.value
                registration.payment_status = PaymentStatus.PAID.value
                registration.payment_approved_by = organizer_id
                registration.payment_approved_at = now
                registration.payment_rejection_reason = None

                bump_event_counters(db, event.id, total_revenue=registration.amount_paid)
                db.flush()

    logger.info(
        "Payment for registration %s approved by %s; ticket %s",
        registration.id,
        organizer_id,
        registration.ticket_id,
    )
    dispatch_ticket_issued(registration, participant, event)
    return registration


def reject_payment(
    db: Session,
    *,
    registration_id: int,
    organizer_id: int,
    reason: str | None,
    now: datetime | None = None,
    redis_client=None,
) -> Registration:
    """Reject a pending payment. The participant keeps the reason and may upload a new proof."""
    reason = (reason or "").strip()
    if len(reason) < REJECTION_REASON_MIN_LENGTH:
        raise InvalidRequestError(
            f"Please provide a rejection reason (minimum {REJECTION_REASON_MIN_LENGTH} characters)"
        )

    with hold_lock(registration_lock_name(registration_id), redis_client):
        with atomic(db):
            registration, _ = _pending_review(db, registration_id, organizer_id)
            registration.status = RegistrationStatus.REJECTED.value
            registration.payment_status = PaymentStatus.UNPAID.value
            registration.payment_rejection_reason = reason
            registration.payment_proof = None
            registration.payment_proof_uploaded_at = None
            db.flush()

    logger.info("Payment for registration %s rejected by %s", registration_id, organizer_id)
    return registration


def submit_payment_proof(
    db: Session,
    *,
    registration_id: int,
    participant_id: int,
    payment_proof: str,
    now: datetime | None = None,
    redis_client=None,
) -> Registration:
    """Attach (or replace) the payment proof and put the purchase back in review."""
    now = now or utcnow()
    if not payment_proof:
        raise InvalidRequestError("Payment proof is required")

    with hold_lock(registration_lock_name(registration_id), redis_client):
        with atomic(db):
            registration = get_registration(db, registration_id)
            if registration.participant_id != participant_id:
                raise UnauthorizedError()
            if registration.payment_status == PaymentStatus.PAID.value:
                raise InvalidStateError("Payment already approved")
            if registration.status not in (RegistrationStatus.PENDING.value, RegistrationStatus.REJECTED.value):
                raise InvalidStateError(
                    "Payment proof cannot be uploaded for this registration",
                    status=registration.status,
                )

            registration.payment_proof = payment_proof
            registration.payment_proof_uploaded_at = now
            registration.payment_status = PaymentStatus.PENDING_APPROVAL.value
            registration.status = RegistrationStatus.PENDING.value
            registration.payment_rejection_reason = None
            db.flush()

    logger.info("Payment proof uploaded for registration %s", registration_id)
    return registration
