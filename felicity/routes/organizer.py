from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session

from felicity.database.db import get_db
from felicity.models.users import User
from felicity.routes.deps import get_current_organizer
from felicity.schemas.registrations import (
    EventRegistrationOut,
    RegistrationOut,
    RejectPaymentRequest,
    VerificationOut,
    VerifyTicketRequest,
)
from felicity.services.attendance import verify_ticket
from felicity.services.payments import approve_payment, reject_payment
from felicity.services.registrations import list_event_registrations

router = APIRouter(prefix="/organizer", tags=["organizer"])


@router.post("/registrations/{registration_id}/approve", response_model=RegistrationOut)
def approve(registration_id: int, db: Session = Depends(get_db), organizer: User = Depends(get_current_organizer)):
    return approve_payment(db, registration_id=registration_id, organizer_id=organizer.id)


@router.post("/registrations/{registration_id}/reject", response_model=RegistrationOut)
def reject(
    registration_id: int,
    payload: RejectPaymentRequest,
    db: Session = Depends(get_db),
    organizer: User = Depends(get_current_organizer),
):
    return reject_payment(db, registration_id=registration_id, organizer_id=organizer.id, reason=payload.reason)


@router.post("/verify-ticket", response_model=VerificationOut)
def verify(payload: VerifyTicketRequest, db: Session = Depends(get_db), organizer: User = Depends(get_current_organizer)):
    return verify_ticket(
        db,
        organizer_id=organizer.id,
        ticket_id=payload.ticket_id,
        qr_payload=payload.qr_payload,
    )


@router.get("/events/{event_id}/registrations", response_model=list[EventRegistrationOut])
def event_registrations(
    event_id: int,
    status: str | None = None,
    search: str | None = None,
    db: Session = Depends(get_db),
    organizer: User = Depends(get_current_organizer),
):
    return list_event_registrations(db, event_id, organizer.id, status=status, search=search)
