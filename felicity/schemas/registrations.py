from datetime import datetime
from decimal import Decimal
from typing import Any

from pydantic import BaseModel, Field


class RegisterRequest(BaseModel):
    form_response: dict[str, Any] | None = None


class PurchaseRequest(BaseModel):
    size: str | None = None
    color: str | None = None
    quantity: int = Field(default=1, ge=1)
    payment_proof: str | None = None


class PaymentProofIn(BaseModel):
    payment_proof: str = Field(min_length=1)


class RejectPaymentRequest(BaseModel):
    reason: str = Field(min_length=1)


class VerifyTicketRequest(BaseModel):
    ticket_id: str | None = None
    qr_payload: str | None = None


class RegistrationOut(BaseModel):
    id: int
    event_id: int
    participant_id: int
    ticket_id: str | None
    ticket_token: str | None
    registration_type: str
    status: str
    payment_status: str
    amount_paid: Decimal
    payment_proof_uploaded_at: datetime | None
    payment_rejection_reason: str | None
    payment_approved_at: datetime | None
    merchandise_size: str | None
    merchandise_color: str | None
    merchandise_quantity: int
    form_response: dict[str, Any] | None
    attended: bool
    attended_at: datetime | None
    created_at: datetime
    cancelled_at: datetime | None

    class Config:
        from_attributes = True


class ParticipantOut(BaseModel):
    id: int
    first_name: str
    last_name: str
    email: str
    participant_type: str | None

    class Config:
        from_attributes = True


class EventRegistrationOut(RegistrationOut):
    participant: ParticipantOut


class VerificationOut(BaseModel):
    ticket_id: str
    participant_name: str
    participant_email: str
    event_name: str
    event_date: datetime
    status: str
    payment_status: str
    verified_at: datetime

    class Config:
        from_attributes = True
