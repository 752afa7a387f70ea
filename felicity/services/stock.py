"""Merchandise stock resolution.

Variant records are matched by (size, color) and then by their display name.
Older events were created with a single aggregate ``stock_quantity`` and
variant rows holding zero stock; for those the aggregate is split evenly over
the variants in list order, earlier variants taking the remainder.
"""

from dataclasses import dataclass

from felicity.models.events import Event, MerchandiseVariant
from felicity.services.capacity import CapacityKey, CapacityLedger, VariantKey
from felicity.services.errors import (
    InsufficientStockError,
    LimitExceededError,
    OutOfStockError,
    VariantNotFoundError,
)

DEFAULT_PURCHASE_LIMIT = 1


@dataclass(frozen=True)
class ResolvedStock:
    """Stock of one matched variant.

    ``variant`` is the key of the variant record that matched, not the
    size/color the participant typed, so every request for the same record
    lands in the same ledger pool.
    """

    variant: VariantKey | None
    index: int | None
    stock: int
    consumed: int = 0

    @property
    def available(self) -> int:
        return max(self.stock - self.consumed, 0)

    @property
    def label(self) -> str:
        return self.variant.display_name if self.variant else "Merchandise"

    def capacity_key(self, event_id: int) -> CapacityKey:
        return CapacityKey.stock(event_id, self.variant)


def split_stock(total: int, variant_count: int, index: int) -> int:
    """Share of ``total`` for the variant at ``index`` when split evenly."""
    if variant_count <= 0 or total <= 0:
        return 0
    base, remainder = divmod(total, variant_count)
    return base + 1 if index < remainder else base


def find_variant(variants: list[MerchandiseVariant], key: VariantKey) -> int | None:
    for index, variant in enumerate(variants):
        if variant.size == key.size and variant.color == key.color:
            return index
    for index, variant in enumerate(variants):
        if variant.name == key.display_name:
            return index
    return None


def variant_key(variant: MerchandiseVariant) -> VariantKey | None:
    """Ledger identity of a variant record; ``None`` when it has no size/color."""
    if variant.size and variant.color:
        return VariantKey(size=variant.size, color=variant.color)
    return None


def variant_capacity_key(event_id: int, variant: MerchandiseVariant) -> CapacityKey | None:
    key = variant_key(variant)
    if key is not None:
        return CapacityKey.stock(event_id, key)
    if variant.name:
        return CapacityKey(event_id=event_id, pool=variant.name)
    return None


def effective_stock(event: Event, index: int) -> int:
    variants = event.variants
    stock = variants[index].stock or 0
    aggregate = event.stock_quantity or 0
    if stock == 0 and aggregate > 0:
        return split_stock(aggregate, len(variants), index)
    return stock


def resolve_stock(event: Event, size: str | None, color: str | None) -> ResolvedStock:
    """Configured stock for the requested variant, ignoring what has been sold."""
    if not event.variants:
        return ResolvedStock(variant=None, index=None, stock=event.stock_quantity or 0)

    if not size or not color:
        raise VariantNotFoundError(size, color)
    key = VariantKey(size=size, color=color)
    index = find_variant(event.variants, key)
    if index is None:
        raise VariantNotFoundError(size, color)
    # A name-only record matched on display name, so the request key names it
    matched = variant_key(event.variants[index]) or key
    return ResolvedStock(variant=matched, index=index, stock=effective_stock(event, index))


def purchase_limit(event: Event) -> int:
    return event.purchase_limit or DEFAULT_PURCHASE_LIMIT


class VariantStockResolver:
    def __init__(self, ledger: CapacityLedger) -> None:
        self.ledger = ledger

    def resolve(self, event: Event, size: str | None, color: str | None) -> ResolvedStock:
        resolved = resolve_stock(event, size, color)
        consumed = self.ledger.consumed(resolved.capacity_key(event.id))
        return ResolvedStock(
            variant=resolved.variant,
            index=resolved.index,
            stock=resolved.stock,
            consumed=consumed,
        )

    def check(self, event: Event, size: str | None, color: str | None, quantity: int) -> ResolvedStock:
        """Resolve the variant and make sure ``quantity`` units can be bought."""
        resolved = self.resolve(event, size, color)
        ensure_available(resolved, quantity)

        limit = purchase_limit(event)
        if quantity > limit:
            raise LimitExceededError(limit)
        return resolved


def ensure_available(resolved: ResolvedStock, quantity: int) -> None:
    if resolved.available <= 0:
        raise OutOfStockError(resolved.label)
    if quantity > resolved.available:
        raise InsufficientStockError(resolved.label, resolved.available, quantity)
