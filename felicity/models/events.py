import enum
from datetime import datetime
from decimal import Decimal

from sqlalchemy import JSON, Boolean, DateTime, ForeignKey, Integer, Numeric, String, Text
from sqlalchemy.orm import Mapped, mapped_column, relationship

from felicity.core.timeutils import utcnow
from felicity.database.db import Base


class EventType(str, enum.Enum):
    NORMAL = "NORMAL"
    MERCHANDISE = "MERCHANDISE"


class EventEligibility(str, enum.Enum):
    IIIT_ONLY = "IIIT_ONLY"
    NON_IIIT_ONLY = "NON_IIIT_ONLY"
    ALL = "ALL"


class EventStatus(str, enum.Enum):
    DRAFT = "DRAFT"
    PUBLISHED = "PUBLISHED"
    ONGOING = "ONGOING"
    COMPLETED = "COMPLETED"
    CLOSED = "CLOSED"


class Event(Base):
    __tablename__ = "events"

    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    organizer_id: Mapped[int] = mapped_column(ForeignKey("users.id"), nullable=False, index=True)
    name: Mapped[str] = mapped_column(String(200), nullable=False)
    description: Mapped[str] = mapped_column(Text, nullable=False, default="")
    event_type: Mapped[str] = mapped_column(String(16), nullable=False, default=EventType.NORMAL.value)
    eligibility: Mapped[str] = mapped_column(String(16), nullable=False, default=EventEligibility.ALL.value)
    status: Mapped[str] = mapped_column(String(16), nullable=False, default=EventStatus.DRAFT.value)

    # None means unlimited
    registration_limit: Mapped[int | None] = mapped_column(Integer, nullable=True)
    # Mirror of the seat pool in capacity_entries; written by CapacityLedger only
    current_registrations: Mapped[int] = mapped_column(Integer, nullable=False, default=0)

    registration_deadline: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False)
    event_start_date: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False)
    event_end_date: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False)

    registration_fee: Mapped[Decimal] = mapped_column(Numeric(10, 2), nullable=False, default=Decimal("0"))

    custom_form: Mapped[list | None] = mapped_column(JSON, nullable=True)
    form_locked: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)

    # Merchandise
    stock_quantity: Mapped[int | None] = mapped_column(Integer, nullable=True)
    purchase_limit: Mapped[int] = mapped_column(Integer, nullable=False, default=1)

    registrations_last_24h: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    total_revenue: Mapped[Decimal] = mapped_column(Numeric(12, 2), nullable=False, default=Decimal("0"))
    total_attendance: Mapped[int] = mapped_column(Integer, nullable=False, default=0)

    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=utcnow)

    organizer: Mapped["User"] = relationship()
    variants: Mapped[list["MerchandiseVariant"]] = relationship(
        back_populates="event",
        order_by="MerchandiseVariant.position",
        cascade="all, delete-orphan",
    )
    registrations: Mapped[list["Registration"]] = relationship(back_populates="event")

    @property
    def is_merchandise(self) -> bool:
        return self.event_type == EventType.MERCHANDISE.value


class MerchandiseVariant(Base):
    __tablename__ = "merchandise_variants"

    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    event_id: Mapped[int] = mapped_column(ForeignKey("events.id"), nullable=False, index=True)
    position: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    name: Mapped[str | None] = mapped_column(String(100), nullable=True)
    size: Mapped[str | None] = mapped_column(String(32), nullable=True)
    color: Mapped[str | None] = mapped_column(String(32), nullable=True)
    price: Mapped[Decimal | None] = mapped_column(Numeric(10, 2), nullable=True)
    stock: Mapped[int] = mapped_column(Integer, nullable=False, default=0)

    event: Mapped["Event"] = relationship(back_populates="variants")
