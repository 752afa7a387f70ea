from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session

from felicity.database.db import get_db
from felicity.models.users import User
from felicity.routes.deps import get_current_user
from felicity.schemas.registrations import PaymentProofIn, RegistrationOut
from felicity.services.payments import submit_payment_proof
from felicity.services.registrations import (
    cancel_registration,
    get_participant_registration,
    list_participant_registrations,
)

router = APIRouter(prefix="/registrations", tags=["registrations"])


@router.get("/me", response_model=list[RegistrationOut])
def my_registrations(db: Session = Depends(get_db), user: User = Depends(get_current_user)):
    return list_participant_registrations(db, user.id)


@router.get("/{registration_id}", response_model=RegistrationOut)
def ticket_details(registration_id: int, db: Session = Depends(get_db), user: User = Depends(get_current_user)):
    return get_participant_registration(db, registration_id, user.id)


@router.post("/{registration_id}/payment-proof", response_model=RegistrationOut)
def upload_payment_proof(
    registration_id: int,
    payload: PaymentProofIn,
    db: Session = Depends(get_db),
    user: User = Depends(get_current_user),
):
    return submit_payment_proof(
        db,
        registration_id=registration_id,
        participant_id=user.id,
        payment_proof=payload.payment_proof,
    )


@router.delete("/{registration_id}", response_model=RegistrationOut)
def cancel(registration_id: int, db: Session = Depends(get_db), user: User = Depends(get_current_user)):
    return cancel_registration(db, registration_id=registration_id, participant_id=user.id)
