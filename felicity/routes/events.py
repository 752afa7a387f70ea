from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session

from felicity.database.db import get_db
from felicity.models.users import User
from felicity.routes.deps import get_current_organizer, get_current_user
from felicity.schemas.events import EventCreate, EventOut, EventStatsOut, EventUpdate
from felicity.schemas.registrations import PurchaseRequest, RegisterRequest, RegistrationOut
from felicity.services.events import (
    close_event,
    complete_event,
    create_event,
    get_owned_event,
    list_events,
    publish_event,
    update_event,
)
from felicity.services.registrations import get_event, purchase_merchandise, register_for_event
from felicity.services.reports import get_event_stats

router = APIRouter(prefix="/events", tags=["events"])


@router.post("", response_model=EventOut, status_code=201)
def create(payload: EventCreate, db: Session = Depends(get_db), organizer: User = Depends(get_current_organizer)):
    return create_event(db, organizer_id=organizer.id, payload=payload)


@router.get("", response_model=list[EventOut])
def browse(db: Session = Depends(get_db)):
    return list_events(db)


@router.get("/{event_id}", response_model=EventOut)
def detail(event_id: int, db: Session = Depends(get_db)):
    return get_event(db, event_id)


@router.patch("/{event_id}", response_model=EventOut)
def edit(
    event_id: int,
    payload: EventUpdate,
    db: Session = Depends(get_db),
    organizer: User = Depends(get_current_organizer),
):
    return update_event(db, event_id=event_id, organizer_id=organizer.id, payload=payload)


@router.post("/{event_id}/publish", response_model=EventOut)
def publish(event_id: int, db: Session = Depends(get_db), organizer: User = Depends(get_current_organizer)):
    return publish_event(db, event_id=event_id, organizer_id=organizer.id)


@router.post("/{event_id}/close", response_model=EventOut)
def close(event_id: int, db: Session = Depends(get_db), organizer: User = Depends(get_current_organizer)):
    return close_event(db, event_id=event_id, organizer_id=organizer.id)


@router.post("/{event_id}/complete", response_model=EventOut)
def complete(event_id: int, db: Session = Depends(get_db), organizer: User = Depends(get_current_organizer)):
    return complete_event(db, event_id=event_id, organizer_id=organizer.id)


@router.get("/{event_id}/stats", response_model=EventStatsOut)
def event_stats(event_id: int, db: Session = Depends(get_db), organizer: User = Depends(get_current_organizer)):
    get_owned_event(db, event_id, organizer.id)
    return get_event_stats(db, event_id)


@router.post("/{event_id}/register", response_model=RegistrationOut, status_code=201)
def register(
    event_id: int,
    payload: RegisterRequest,
    db: Session = Depends(get_db),
    user: User = Depends(get_current_user),
):
    return register_for_event(db, event_id=event_id, participant_id=user.id, form_response=payload.form_response)


@router.post("/{event_id}/purchase", response_model=RegistrationOut, status_code=201)
def purchase(
    event_id: int,
    payload: PurchaseRequest,
    db: Session = Depends(get_db),
    user: User = Depends(get_current_user),
):
    return purchase_merchandise(
        db,
        event_id=event_id,
        participant_id=user.id,
        size=payload.size,
        color=payload.color,
        quantity=payload.quantity,
        payment_proof=payload.payment_proof,
    )
