import enum
from datetime import datetime
from decimal import Decimal

from sqlalchemy import JSON, Boolean, DateTime, ForeignKey, Integer, Numeric, String, Text
from sqlalchemy.orm import Mapped, mapped_column, relationship

from felicity.core.timeutils import utcnow
from felicity.database.db import Base


class RegistrationType(str, enum.Enum):
    NORMAL = "NORMAL"
    MERCHANDISE = "MERCHANDISE"


class RegistrationStatus(str, enum.Enum):
    PENDING = "PENDING"
    CONFIRMED = "CONFIRMED"
    CANCELLED = "CANCELLED"
    REJECTED = "REJECTED"
    COMPLETED = "COMPLETED"


class PaymentStatus(str, enum.Enum):
    UNPAID = "UNPAID"
    PAID = "PAID"
    PENDING_APPROVAL = "PENDING_APPROVAL"
    REFUNDED = "REFUNDED"


class Registration(Base):
    __tablename__ = "registrations"

    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    event_id: Mapped[int] = mapped_column(ForeignKey("events.id"), nullable=False, index=True)
    participant_id: Mapped[int] = mapped_column(ForeignKey("users.id"), nullable=False, index=True)

    # Merchandise purchases get their ticket when payment is approved
    ticket_id: Mapped[str | None] = mapped_column(String(32), nullable=True, unique=True, index=True)
    ticket_token: Mapped[str | None] = mapped_column(Text, nullable=True)

    registration_type: Mapped[str] = mapped_column(String(16), nullable=False, default=RegistrationType.NORMAL.value)
    status: Mapped[str] = mapped_column(String(16), nullable=False, default=RegistrationStatus.CONFIRMED.value)
    payment_status: Mapped[str] = mapped_column(String(20), nullable=False, default=PaymentStatus.UNPAID.value)
    amount_paid: Mapped[Decimal] = mapped_column(Numeric(10, 2), nullable=False, default=Decimal("0"))

    payment_proof: Mapped[str | None] = mapped_column(Text, nullable=True)
    payment_proof_uploaded_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)
    payment_rejection_reason: Mapped[str | None] = mapped_column(Text, nullable=True)
    payment_approved_by: Mapped[int | None] = mapped_column(ForeignKey("users.id"), nullable=True)
    payment_approved_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)

    merchandise_size: Mapped[str | None] = mapped_column(String(32), nullable=True)
    merchandise_color: Mapped[str | None] = mapped_column(String(32), nullable=True)
    merchandise_quantity: Mapped[int] = mapped_column(Integer, nullable=False, default=1)

    form_response: Mapped[dict | None] = mapped_column(JSON, nullable=True)

    attended: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    attended_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)
    marked_by: Mapped[int | None] = mapped_column(ForeignKey("users.id"), nullable=True)

    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=utcnow, index=True)
    cancelled_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)

    event: Mapped["Event"] = relationship(back_populates="registrations")
    participant: Mapped["User"] = relationship(foreign_keys=[participant_id])
