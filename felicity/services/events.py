import logging
from datetime import datetime

from sqlalchemy import select
from sqlalchemy.orm import Session

from felicity.core.timeutils import as_utc, utcnow
from felicity.database.db import atomic
from felicity.models.events import Event, EventStatus, EventType, MerchandiseVariant
from felicity.models.users import UserRole
from felicity.schemas.events import EventCreate, EventUpdate
from felicity.services.capacity import CapacityKey, CapacityLedger
from felicity.services.errors import InvalidRequestError, InvalidStateError, UnauthorizedError
from felicity.services.forms import normalize_custom_form
from felicity.services.registrations import get_event, get_user
from felicity.services.stock import effective_stock, variant_capacity_key

logger = logging.getLogger(__name__)


def validate_event_dates(start: datetime, end: datetime, deadline: datetime, now: datetime) -> None:
    start, end, deadline = as_utc(start), as_utc(end), as_utc(deadline)
    if start < now:
        raise InvalidRequestError("Event start date cannot be in the past")
    if end < start:
        raise InvalidRequestError("Event end date must be after start date")
    if deadline > start:
        raise InvalidRequestError("Registration deadline must be before event start")
    if deadline < now:
        raise InvalidRequestError("Registration deadline cannot be in the past")


# Allowed status moves; nothing goes back to DRAFT or reopens once closed
STATUS_TRANSITIONS = {
    EventStatus.DRAFT.value: {EventStatus.PUBLISHED.value},
    EventStatus.PUBLISHED.value: {
        EventStatus.ONGOING.value,
        EventStatus.CLOSED.value,
        EventStatus.COMPLETED.value,
    },
    EventStatus.ONGOING.value: {EventStatus.CLOSED.value, EventStatus.COMPLETED.value},
    EventStatus.CLOSED.value: {EventStatus.COMPLETED.value},
    EventStatus.COMPLETED.value: set(),
}
EDITABLE_STATUSES = (EventStatus.DRAFT.value, EventStatus.PUBLISHED.value)
# Edits where an explicit null means something: no form, no limit
NULLABLE_EDITS = ("custom_form", "registration_limit")


def get_owned_event(db: Session, event_id: int, organizer_id: int) -> Event:
    event = get_event(db, event_id)
    if event.organizer_id != organizer_id:
        raise UnauthorizedError()
    return event


def change_status(event: Event, target: EventStatus) -> None:
    if target.value not in STATUS_TRANSITIONS[event.status]:
        raise InvalidStateError(
            f"Cannot move event from {event.status} to {target.value}",
            status=event.status,
            target=target.value,
        )
    event.status = target.value


def _open_pools(ledger: CapacityLedger, event: Event) -> None:
    if event.event_type == EventType.NORMAL.value:
        ledger.open(CapacityKey.seats(event.id), event.registration_limit)
        return
    if not event.variants:
        ledger.open(CapacityKey.stock(event.id), event.stock_quantity or 0)
        return
    for index, variant in enumerate(event.variants):
        key = variant_capacity_key(event.id, variant)
        if key is not None:
            ledger.open(key, effective_stock(event, index))


def create_event(
    db: Session,
    *,
    organizer_id: int,
    payload: EventCreate,
    now: datetime | None = None,
    redis_client=None,
) -> Event:
    now = now or utcnow()

    with atomic(db):
        organizer = get_user(db, organizer_id)
        if organizer.role != UserRole.ORGANIZER.value:
            raise UnauthorizedError("Only organizers can create events")

        validate_event_dates(payload.event_start_date, payload.event_end_date, payload.registration_deadline, now)
        if payload.variants and payload.event_type != EventType.MERCHANDISE:
            raise InvalidRequestError("Only merchandise events have variants")

        custom_form = None
        if payload.custom_form is not None:
            custom_form = normalize_custom_form([field.model_dump() for field in payload.custom_form])

        event = Event(
            organizer_id=organizer.id,
            name=payload.name,
            description=payload.description,
            event_type=payload.event_type.value,
            eligibility=payload.eligibility.value,
            status=EventStatus.DRAFT.value,
            registration_limit=payload.registration_limit,
            current_registrations=0,
            registration_deadline=payload.registration_deadline,
            event_start_date=payload.event_start_date,
            event_end_date=payload.event_end_date,
            registration_fee=payload.registration_fee,
            custom_form=custom_form,
            stock_quantity=payload.stock_quantity,
            purchase_limit=payload.purchase_limit,
            variants=[
                MerchandiseVariant(
                    position=position,
                    name=variant.name or (f"{variant.size} - {variant.color}" if variant.size and variant.color else None),
                    size=variant.size,
                    color=variant.color,
                    price=variant.price,
                    stock=variant.stock,
                )
                for position, variant in enumerate(payload.variants)
            ],
        )
        db.add(event)
        db.flush()
        _open_pools(CapacityLedger(db, redis_client), event)

    logger.info("Organizer %s created %s event %s", organizer_id, event.event_type, event.id)
    return event


def publish_event(db: Session, *, event_id: int, organizer_id: int) -> Event:
    with atomic(db):
        event = get_owned_event(db, event_id, organizer_id)
        if event.status != EventStatus.DRAFT.value:
            raise InvalidStateError("Only draft events can be published", status=event.status)
        change_status(event, EventStatus.PUBLISHED)
    logger.info("Event %s published", event_id)
    return event


def _move_event(db: Session, event_id: int, organizer_id: int, target: EventStatus) -> Event:
    with atomic(db):
        event = get_owned_event(db, event_id, organizer_id)
        change_status(event, target)
    logger.info("Event %s moved to %s", event_id, target.value)
    return event


def close_event(db: Session, *, event_id: int, organizer_id: int) -> Event:
    """Stop taking registrations; existing ones stay as they are."""
    return _move_event(db, event_id, organizer_id, EventStatus.CLOSED)


def complete_event(db: Session, *, event_id: int, organizer_id: int) -> Event:
    return _move_event(db, event_id, organizer_id, EventStatus.COMPLETED)


def _check_new_deadline(event: Event, deadline: datetime, now: datetime) -> None:
    deadline = as_utc(deadline)
    if deadline > as_utc(event.event_start_date):
        raise InvalidRequestError("Registration deadline must be before event start")
    if deadline < now:
        raise InvalidRequestError("Registration deadline cannot be in the past")
    if event.status == EventStatus.PUBLISHED.value and deadline < as_utc(event.registration_deadline):
        raise InvalidRequestError("Can only extend registration deadline")


def update_event(
    db: Session,
    *,
    event_id: int,
    organizer_id: int,
    payload: EventUpdate,
    now: datetime | None = None,
    redis_client=None,
) -> Event:
    """
    Edit an event the organizer owns.

    Draft and published events take field edits; anything later only takes a
    status move. Status follows ``STATUS_TRANSITIONS``.
    """
    now = now or utcnow()
    changes = payload.model_dump(exclude_unset=True)
    status = changes.pop("status", None)
    ledger = CapacityLedger(db, redis_client)

    # Limit changes go through the seat pool under its lock
    with ledger.hold(CapacityKey.seats(event_id)):
        with atomic(db):
            event = get_owned_event(db, event_id, organizer_id)
            edits = {
                field: value for field, value in changes.items() if value is not None or field in NULLABLE_EDITS
            }
            if edits and event.status not in EDITABLE_STATUSES:
                raise InvalidStateError("Cannot edit event in current status", status=event.status)

            if "custom_form" in edits:
                if event.form_locked:
                    raise InvalidStateError("Registration form is locked after the first registration")
                event.custom_form = normalize_custom_form(edits.pop("custom_form"))

            if "registration_deadline" in edits:
                _check_new_deadline(event, edits["registration_deadline"], now)

            if "registration_limit" in edits:
                limit = edits.pop("registration_limit")
                if event.event_type == EventType.NORMAL.value:
                    ledger.set_limit(CapacityKey.seats(event.id), limit)
                event.registration_limit = limit

            for field, value in edits.items():
                setattr(event, field, value)

            if status is not None and status.value != event.status:
                change_status(event, status)
            db.flush()

    logger.info("Event %s updated", event_id)
    return event


def list_events(db: Session, *, status: EventStatus | None = EventStatus.PUBLISHED) -> list[Event]:
    stmt = select(Event).order_by(Event.event_start_date)
    if status is not None:
        stmt = stmt.where(Event.status == status.value)
    return list(db.scalars(stmt))
