"""Capacity ledger.

Every seat or merchandise unit an event hands out is counted here, per pool:
``seats`` for a normal event, ``stock`` for merchandise sold without
variants, and the variant display name (``"M - Black"``) otherwise.

Reservations are a single conditional UPDATE, so ``consumed`` can never pass
``capacity_limit`` no matter how requests interleave. Callers that need a
reservation and the rows it pays for to land together hold the pool lock
(:meth:`CapacityLedger.hold`) around their whole unit of work.
"""

import logging
from dataclasses import dataclass

from sqlalchemy import or_, select, update
from sqlalchemy.orm import Session
from sqlalchemy.orm.util import identity_key

from felicity.models.capacity import CapacityEntry
from felicity.models.events import Event
from felicity.services.errors import CapacityFullError, InvalidRequestError, InvalidStateError
from felicity.services.locking import event_pool_lock_name, hold_lock

logger = logging.getLogger(__name__)

SEAT_POOL = "seats"
STOCK_POOL = "stock"


@dataclass(frozen=True)
class VariantKey:
    """A merchandise variant identified by size and color."""

    size: str
    color: str

    @property
    def display_name(self) -> str:
        return f"{self.size} - {self.color}"


@dataclass(frozen=True)
class CapacityKey:
    event_id: int
    pool: str = SEAT_POOL

    @classmethod
    def seats(cls, event_id: int) -> "CapacityKey":
        return cls(event_id=event_id, pool=SEAT_POOL)

    @classmethod
    def stock(cls, event_id: int, variant: VariantKey | None = None) -> "CapacityKey":
        return cls(event_id=event_id, pool=variant.display_name if variant else STOCK_POOL)

    @property
    def is_seat_pool(self) -> bool:
        return self.pool == SEAT_POOL


class CapacityLedger:
    def __init__(self, db: Session, redis_client=None) -> None:
        self.db = db
        self.redis_client = redis_client

    def hold(self, key: CapacityKey):
        return hold_lock(event_pool_lock_name(key.event_id, key.pool), self.redis_client)

    def _where(self, key: CapacityKey):
        return (CapacityEntry.event_id == key.event_id, CapacityEntry.pool == key.pool)

    def get_entry(self, key: CapacityKey) -> CapacityEntry | None:
        stmt = select(CapacityEntry).where(*self._where(key)).execution_options(populate_existing=True)
        return self.db.scalar(stmt)

    def open(self, key: CapacityKey, limit: int | None) -> CapacityEntry:
        """Get the entry for a pool, creating it with ``limit`` the first time."""
        entry = self.get_entry(key)
        if entry is None:
            entry = CapacityEntry(event_id=key.event_id, pool=key.pool, capacity_limit=limit, consumed=0)
            self.db.add(entry)
            self.db.flush()
        return entry

    def set_limit(self, key: CapacityKey, limit: int | None) -> CapacityEntry:
        entry = self.open(key, limit)
        stmt = (
            update(CapacityEntry)
            .where(*self._where(key))
            .values(capacity_limit=limit)
            .execution_options(synchronize_session=False)
        )
        if limit is not None:
            stmt = stmt.where(CapacityEntry.consumed <= limit)
        if self.db.execute(stmt).rowcount != 1:  # type: ignore
            raise InvalidStateError(
                "Limit cannot be lower than units already taken",
                consumed=entry.consumed,
                limit=limit,
            )
        return self.get_entry(key)  # type: ignore[return-value]

    def try_reserve(self, key: CapacityKey, qty: int = 1) -> CapacityEntry:
        """Take ``qty`` units from an opened pool or raise ``CapacityFullError``."""
        if qty < 1:
            raise InvalidRequestError("Quantity must be at least 1")

        # Check capacity and increment consumed atomically
        stmt = (
            update(CapacityEntry)
            .where(*self._where(key))
            .where(
                or_(
                    CapacityEntry.capacity_limit.is_(None),
                    CapacityEntry.consumed + qty <= CapacityEntry.capacity_limit,
                )
            )
            .values(consumed=CapacityEntry.consumed + qty)
            .execution_options(synchronize_session=False)
        )
        res = self.db.execute(stmt)
        if res.rowcount != 1:  # type: ignore
            logger.info("Pool %s of event %s rejected reservation of %s", key.pool, key.event_id, qty)
            raise CapacityFullError(key.pool)

        self._after_change(key)
        logger.debug("Reserved %s unit(s) from pool %s of event %s", qty, key.pool, key.event_id)
        return self.get_entry(key)  # type: ignore[return-value]

    def release(self, key: CapacityKey, qty: int = 1) -> None:
        """Give back ``qty`` units. Consumed never drops below zero."""
        stmt = (
            update(CapacityEntry)
            .where(*self._where(key))
            .where(CapacityEntry.consumed >= qty)
            .values(consumed=CapacityEntry.consumed - qty)
            .execution_options(synchronize_session=False)
        )
        if self.db.execute(stmt).rowcount != 1:  # type: ignore
            logger.warning(
                "Release of %s unit(s) from pool %s of event %s exceeds consumed; clamping to zero",
                qty,
                key.pool,
                key.event_id,
            )
            self.db.execute(
                update(CapacityEntry)
                .where(*self._where(key))
                .values(consumed=0)
                .execution_options(synchronize_session=False)
            )
        self._after_change(key)

    def consumed(self, key: CapacityKey) -> int:
        value = self.db.scalar(select(CapacityEntry.consumed).where(*self._where(key)))
        return int(value or 0)

    def available(self, key: CapacityKey) -> int | None:
        """Units left in a pool; ``None`` when the pool is unlimited."""
        entry = self.get_entry(key)
        if entry is None or entry.capacity_limit is None:
            return None
        return max(entry.capacity_limit - entry.consumed, 0)

    def _after_change(self, key: CapacityKey) -> None:
        if not key.is_seat_pool:
            return

        # Keep the event's counter equal to the seat pool
        consumed = (
            select(CapacityEntry.consumed).where(*self._where(key)).scalar_subquery()
        )
        self.db.execute(
            update(Event)
            .where(Event.id == key.event_id)
            .values(current_registrations=consumed)
            .execution_options(synchronize_session=False)
        )
        event = self.db.identity_map.get(identity_key(Event, key.event_id))
        if event is not None:
            self.db.expire(event, ["current_registrations"])
