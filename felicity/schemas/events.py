from datetime import datetime
from decimal import Decimal

from pydantic import BaseModel, Field

from felicity.models.events import EventEligibility, EventStatus, EventType


# ---------- Merchandise ----------
class VariantIn(BaseModel):
    name: str | None = Field(default=None, max_length=100)
    size: str | None = Field(default=None, max_length=32)
    color: str | None = Field(default=None, max_length=32)
    price: Decimal | None = Field(default=None, ge=0)
    stock: int = Field(default=0, ge=0)


class VariantOut(BaseModel):
    id: int
    position: int
    name: str | None
    size: str | None
    color: str | None
    price: Decimal | None
    stock: int

    class Config:
        from_attributes = True


class FormFieldIn(BaseModel):
    fieldName: str
    fieldType: str
    options: list[str] | str | None = None
    required: bool = False
    order: int | None = None


# ---------- Event ----------
class EventCreate(BaseModel):
    name: str = Field(min_length=1, max_length=200)
    description: str = ""
    event_type: EventType = EventType.NORMAL
    eligibility: EventEligibility = EventEligibility.ALL
    registration_limit: int | None = Field(default=None, ge=1)
    registration_deadline: datetime
    event_start_date: datetime
    event_end_date: datetime
    registration_fee: Decimal = Field(default=Decimal("0"), ge=0)
    custom_form: list[FormFieldIn] | None = None
    variants: list[VariantIn] = []
    stock_quantity: int | None = Field(default=None, ge=0)
    purchase_limit: int = Field(default=1, ge=1)


class EventUpdate(BaseModel):
    name: str | None = Field(default=None, min_length=1, max_length=200)
    description: str | None = None
    registration_limit: int | None = Field(default=None, ge=1)
    registration_deadline: datetime | None = None
    custom_form: list[FormFieldIn] | None = None
    status: EventStatus | None = None


class EventOut(BaseModel):
    id: int
    organizer_id: int
    name: str
    description: str
    event_type: str
    eligibility: str
    status: str
    registration_limit: int | None
    current_registrations: int
    registration_deadline: datetime
    event_start_date: datetime
    event_end_date: datetime
    registration_fee: Decimal
    custom_form: list[dict] | None
    form_locked: bool
    stock_quantity: int | None
    purchase_limit: int
    variants: list[VariantOut] = []

    class Config:
        from_attributes = True


class EventStatsOut(BaseModel):
    event_id: int
    registration_limit: int | None
    current_registrations: int
    confirmed_count: int
    pending_count: int
    registrations_last_24h: int
    total_revenue: Decimal
    total_attendance: int
    attendance_rate: float
