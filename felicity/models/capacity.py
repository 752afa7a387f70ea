from sqlalchemy import ForeignKey, Integer, String, UniqueConstraint
from sqlalchemy.orm import Mapped, mapped_column

from felicity.database.db import Base


class CapacityEntry(Base):
    """Consumed units for one pool of an event: its seats, its aggregate stock, or one variant."""

    __tablename__ = "capacity_entries"
    __table_args__ = (UniqueConstraint("event_id", "pool", name="uq_capacity_event_pool"),)

    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    event_id: Mapped[int] = mapped_column(ForeignKey("events.id"), nullable=False, index=True)
    pool: Mapped[str] = mapped_column(String(100), nullable=False)
    # None means unlimited
    capacity_limit: Mapped[int | None] = mapped_column(Integer, nullable=True)
    consumed: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
