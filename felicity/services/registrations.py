"""
Registration lifecycle: register for a normal event, buy merchandise, cancel.

    REQUESTED -> PENDING -> CONFIRMED | REJECTED -> CANCELLED | COMPLETED
    REJECTED -> PENDING  (payment proof resubmitted)

Normal registrations are confirmed on the spot and hold one seat. Merchandise
purchases wait in PENDING until an organizer approves the payment (see
``felicity.services.payments``); stock is only taken at approval.
"""

import logging
from datetime import datetime
from decimal import Decimal

from sqlalchemy import or_, select, update
from sqlalchemy.orm import Session
from sqlalchemy.orm.util import identity_key

from felicity.core.timeutils import as_utc, utcnow
from felicity.database.db import atomic
from felicity.models.events import Event, EventStatus, EventType
from felicity.models.registrations import (
    PaymentStatus,
    Registration,
    RegistrationStatus,
    RegistrationType,
)
from felicity.models.users import User
from felicity.services.capacity import CapacityKey, CapacityLedger
from felicity.services.eligibility import is_eligible
from felicity.services.errors import (
    AlreadyRegisteredError,
    DeadlinePassedError,
    IneligibleError,
    InvalidRequestError,
    InvalidStateError,
    NotFoundError,
    UnauthorizedError,
)
from felicity.services.forms import missing_required_fields
from felicity.services.locking import hold_lock, purchase_lock_name, registration_lock_name
from felicity.services.notifications import dispatch_ticket_issued
from felicity.services.stock import VariantStockResolver, resolve_stock
from felicity.services.tickets import TicketIssuer

logger = logging.getLogger(__name__)


def get_event(db: Session, event_id: int) -> Event:
    event = db.get(Event, event_id, populate_existing=True)
    if not event:
        raise NotFoundError("Event")
    return event


def get_user(db: Session, user_id: int) -> User:
    user = db.get(User, user_id)
    if not user:
        raise NotFoundError("User")
    return user


def get_registration(db: Session, registration_id: int) -> Registration:
    """Load a registration, always re-reading it from the database."""
    registration = db.get(Registration, registration_id, populate_existing=True)
    if not registration:
        raise NotFoundError("Registration")
    return registration


def ticket_exists(db: Session, ticket_id: str) -> bool:
    return db.scalar(select(Registration.id).where(Registration.ticket_id == ticket_id)) is not None


def ticket_issuer(db: Session) -> TicketIssuer:
    return TicketIssuer(exists=lambda ticket_id: ticket_exists(db, ticket_id))


def find_active_registration(db: Session, event_id: int, participant_id: int) -> Registration | None:
    return db.scalar(
        select(Registration).where(
            Registration.event_id == event_id,
            Registration.participant_id == participant_id,
            Registration.status != RegistrationStatus.CANCELLED.value,
        )
    )


def bump_event_counters(db: Session, event_id: int, **increments) -> None:
    """Add to event counters in SQL so parallel writers never lose an update."""
    values = {name: getattr(Event, name) + amount for name, amount in increments.items()}
    db.execute(
        update(Event).where(Event.id == event_id).values(**values).execution_options(synchronize_session=False)
    )
    event = db.identity_map.get(identity_key(Event, event_id))
    if event is not None:
        db.expire(event, list(increments))


def stock_key_for(event: Event, registration: Registration) -> CapacityKey:
    """Pool holding a purchase's units, keyed by the variant record it matched."""
    return resolve_stock(event, registration.merchandise_size, registration.merchandise_color).capacity_key(event.id)


def register_for_event(
    db: Session,
    *,
    event_id: int,
    participant_id: int,
    form_response: dict | None = None,
    now: datetime | None = None,
    redis_client=None,
) -> Registration:
    """
    Register a participant for a normal event.

    Preconditions are checked in order and the first failure is raised:
    event exists, is a normal event, is published, participant has no live
    registration, is eligible, the deadline has not passed, the form is
    complete, and a seat can be reserved. The seat-pool lock is held for the
    whole unit so the reservation and the registration commit together.
    """
    now = now or utcnow()
    ledger = CapacityLedger(db, redis_client)
    key = CapacityKey.seats(event_id)

    with ledger.hold(key):
        with atomic(db):
            event = get_event(db, event_id)
            participant = get_user(db, participant_id)

            if event.event_type != EventType.NORMAL.value:
                raise InvalidStateError("Use the purchase flow for merchandise events")
            if event.status != EventStatus.PUBLISHED.value:
                raise InvalidStateError("Event is not open for registration", status=event.status)
            if find_active_registration(db, event.id, participant.id):
                raise AlreadyRegisteredError()
            if not is_eligible(event.eligibility, participant.participant_type):
                raise IneligibleError(event.eligibility)
            if now >= as_utc(event.registration_deadline):
                raise DeadlinePassedError()
            missing = missing_required_fields(event.custom_form, form_response)
            if missing:
                raise InvalidRequestError(f"Missing required fields: {', '.join(missing)}")

            ledger.open(key, event.registration_limit)
            ledger.try_reserve(key)

            ticket = ticket_issuer(db).issue(participant, event, now)
            fee = event.registration_fee or Decimal("0")
            registration = Registration(
                event_id=event.id,
                participant_id=participant.id,
                ticket_id=ticket.ticket_id,
                ticket_token=ticket.token,
                registration_type=RegistrationType.NORMAL.value,
                status=RegistrationStatus.CONFIRMED.value,
                payment_status=PaymentStatus.PAID.value if fee == 0 else PaymentStatus.UNPAID.value,
                amount_paid=Decimal("0"),
                form_response=form_response,
                created_at=now,
            )
            db.add(registration)

            bump_event_counters(db, event.id, registrations_last_24h=1)
            # Form structure is frozen once anyone has answered it
            if not event.form_locked:
                event.form_locked = True
            db.flush()

    logger.info(
        "Participant %s registered for event %s with ticket %s",
        participant.id,
        event.id,
        registration.ticket_id,
    )
    dispatch_ticket_issued(registration, participant, event)
    return registration


def purchase_merchandise(
    db: Session,
    *,
    event_id: int,
    participant_id: int,
    size: str | None = None,
    color: str | None = None,
    quantity: int = 1,
    payment_proof: str | None = None,
    now: datetime | None = None,
    redis_client=None,
) -> Registration:
    """
    Start a merchandise purchase. The registration waits in PENDING with
    payment PENDING_APPROVAL; no ticket is issued and no stock is taken
    until an organizer approves the payment.
    """
    now = now or utcnow()
    if quantity < 1:
        raise InvalidRequestError("Quantity must be at least 1")

    with hold_lock(purchase_lock_name(event_id, participant_id), redis_client):
        with atomic(db):
            event = get_event(db, event_id)
            participant = get_user(db, participant_id)

            if event.event_type != EventType.MERCHANDISE.value:
                raise InvalidStateError("This is not a merchandise event")
            if event.status != EventStatus.PUBLISHED.value:
                raise InvalidStateError("Merchandise sale is not open", status=event.status)
            if find_active_registration(db, event.id, participant.id):
                raise AlreadyRegisteredError()

            resolver = VariantStockResolver(CapacityLedger(db, redis_client))
            resolved = resolver.check(event, size, color, quantity)
            logger.debug(
                "Purchase of %s x %s for event %s: %s of %s available",
                quantity,
                resolved.label,
                event.id,
                resolved.available,
                resolved.stock,
            )

            fee = event.registration_fee or Decimal("0")
            registration = Registration(
                event_id=event.id,
                participant_id=participant.id,
                registration_type=RegistrationType.MERCHANDISE.value,
                status=RegistrationStatus.PENDING.value,
                payment_status=PaymentStatus.PENDING_APPROVAL.value,
                amount_paid=fee * quantity,
                merchandise_size=size,
                merchandise_color=color,
                merchandise_quantity=quantity,
                created_at=now,
            )
            if payment_proof:
                registration.payment_proof = payment_proof
                registration.payment_proof_uploaded_at = now
            db.add(registration)
            db.flush()

    logger.info("Participant %s started purchase %s for event %s", participant.id, registration.id, event.id)
    return registration


def cancel_registration(
    db: Session,
    *,
    registration_id: int,
    participant_id: int,
    now: datetime | None = None,
    redis_client=None,
) -> Registration:
    """
    Cancel a registration before the event starts, giving back whatever it
    holds: a seat for a normal registration, the purchased units for an
    approved merchandise purchase.
    """
    now = now or utcnow()

    with hold_lock(registration_lock_name(registration_id), redis_client):
        with atomic(db):
            registration = get_registration(db, registration_id)
            if registration.participant_id != participant_id:
                raise UnauthorizedError()
            if registration.status == RegistrationStatus.CANCELLED.value:
                raise InvalidStateError("Registration already cancelled")
            if registration.status == RegistrationStatus.COMPLETED.value:
                raise InvalidStateError("Registration is already completed")

            event = get_event(db, registration.event_id)
            if now >= as_utc(event.event_start_date):
                raise InvalidStateError("Cannot cancel after event has started")

            if registration.status == RegistrationStatus.CONFIRMED.value:
                ledger = CapacityLedger(db, redis_client)
                if registration.registration_type == RegistrationType.NORMAL.value:
                    ledger.release(CapacityKey.seats(event.id))
                else:
                    ledger.release(stock_key_for(event, registration), registration.merchandise_quantity)

            if registration.payment_status == PaymentStatus.PAID.value and registration.amount_paid:
                registration.payment_status = PaymentStatus.REFUNDED.value
                bump_event_counters(db, event.id, total_revenue=-registration.amount_paid)

            registration.status = RegistrationStatus.CANCELLED.value
            registration.cancelled_at = now
            db.flush()

    logger.info("Registration %s cancelled by participant %s", registration_id, participant_id)
    return registration


def list_participant_registrations(db: Session, participant_id: int) -> list[Registration]:
    return list(
        db.scalars(
            select(Registration)
            .where(Registration.participant_id == participant_id)
            .order_by(Registration.created_at.desc())
        )
    )


def get_participant_registration(db: Session, registration_id: int, participant_id: int) -> Registration:
    registration = get_registration(db, registration_id)
    if registration.participant_id != participant_id:
        raise NotFoundError("Ticket")
    return registration


def list_event_registrations(
    db: Session,
    event_id: int,
    organizer_id: int,
    status: str | None = None,
    search: str | None = None,
) -> list[Registration]:
    """
    Registrations of an event for its organizer, newest first.

    ``status`` narrows to one registration status; ``search`` matches the
    participant's full name or email, case-insensitively.
    """
    event = get_event(db, event_id)
    if event.organizer_id != organizer_id:
        raise UnauthorizedError()

    stmt = (
        select(Registration)
        .join(User, Registration.participant_id == User.id)
        .where(Registration.event_id == event_id)
        .order_by(Registration.created_at.desc(), Registration.id.desc())
    )
    if status:
        try:
            stmt = stmt.where(Registration.status == RegistrationStatus(status.upper()).value)
        except ValueError:
            raise InvalidRequestError(f"Unknown registration status: {status}") from None
    term = (search or "").strip()
    if term:
        pattern = f"%{term}%"
        stmt = stmt.where(
            or_(
                (User.first_name + " " + User.last_name).ilike(pattern),
                User.email.ilike(pattern),
            )
        )
    return list(db.scalars(stmt))
