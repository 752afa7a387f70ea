"""
Test merchandise stock resolution.
"""
import pytest
from sqlalchemy.orm import Session

from felicity.models.events import EventType
from felicity.services.capacity import CapacityLedger
from felicity.services.errors import (
    ErrorKind,
    InsufficientStockError,
    LimitExceededError,
    OutOfStockError,
    VariantNotFoundError,
)
from felicity.services.stock import VariantStockResolver, resolve_stock, split_stock
from felicity.tests.conftest import make_event, stock_key


class TestSplitStock:
    def test_remainder_goes_to_earlier_variants(self):
        assert [split_stock(10, 3, i) for i in range(3)] == [4, 3, 3]
        assert [split_stock(7, 2, i) for i in range(2)] == [4, 3]

    def test_nothing_to_split(self):
        assert split_stock(0, 3, 0) == 0
        assert split_stock(5, 0, 0) == 0


class TestResolveStock:
    def test_explicit_variant_stock(self, tshirt_event):
        resolved = resolve_stock(tshirt_event, "M", "Black")

        assert resolved.stock == 5
        assert resolved.index == 0
        assert resolved.label == "M - Black"

    def test_aggregate_split_when_variants_have_no_stock(self, db_session: Session, organizer):
        event = make_event(
            db_session,
            organizer,
            event_type=EventType.MERCHANDISE,
            stock_quantity=10,
            variants=[
                {"name": "S - Red", "size": "S", "color": "Red", "stock": 0},
                {"name": "M - Red", "size": "M", "color": "Red", "stock": 0},
                {"name": "L - Red", "size": "L", "color": "Red", "stock": 0},
            ],
        )

        assert [resolve_stock(event, size, "Red").stock for size in ("S", "M", "L")] == [4, 3, 3]

    def test_falls_back_to_display_name(self, db_session: Session, organizer):
        event = make_event(
            db_session,
            organizer,
            event_type=EventType.MERCHANDISE,
            variants=[{"name": "XL - Red", "size": "XL", "color": "red", "stock": 2}],
        )

        assert resolve_stock(event, "XL", "Red").stock == 2

    def test_display_name_match_uses_record_size_and_color(self, db_session: Session, organizer):
        event = make_event(
            db_session,
            organizer,
            event_type=EventType.MERCHANDISE,
            variants=[{"name": "M - Black", "size": "Medium", "color": "Black", "stock": 4}],
        )

        by_name = resolve_stock(event, "M", "Black")
        by_size = resolve_stock(event, "Medium", "Black")

        assert by_name.label == by_size.label == "Medium - Black"
        assert by_name.capacity_key(event.id) == by_size.capacity_key(event.id)

    def test_name_only_variant_keeps_its_name(self, db_session: Session, organizer):
        event = make_event(
            db_session,
            organizer,
            event_type=EventType.MERCHANDISE,
            variants=[{"name": "Free - Blue", "stock": 2}],
        )

        resolved = resolve_stock(event, "Free", "Blue")

        assert resolved.capacity_key(event.id).pool == "Free - Blue"
        assert resolved.stock == 2

    def test_unknown_variant(self, tshirt_event):
        with pytest.raises(VariantNotFoundError) as exc:
            resolve_stock(tshirt_event, "XXL", "Pink")
        assert exc.value.kind == ErrorKind.VARIANT_NOT_FOUND

    def test_variant_required_when_event_has_variants(self, tshirt_event):
        with pytest.raises(VariantNotFoundError):
            resolve_stock(tshirt_event, None, None)

    def test_no_variants_uses_aggregate(self, db_session: Session, organizer):
        event = make_event(db_session, organizer, event_type=EventType.MERCHANDISE, stock_quantity=12)

        resolved = resolve_stock(event, None, None)

        assert resolved.variant is None
        assert resolved.stock == 12
        assert resolved.label == "Merchandise"


class TestVariantStockResolver:
    def test_counts_units_already_sold(self, db_session: Session, tshirt_event):
        ledger = CapacityLedger(db_session)
        key = stock_key(tshirt_event, "M", "Black")
        ledger.open(key, 5)
        ledger.try_reserve(key, 2)

        resolved = VariantStockResolver(ledger).resolve(tshirt_event, "M", "Black")

        assert resolved.consumed == 2
        assert resolved.available == 3

    def test_out_of_stock(self, db_session: Session, tshirt_event):
        ledger = CapacityLedger(db_session)
        key = stock_key(tshirt_event, "L", "White")
        ledger.open(key, 1)
        ledger.try_reserve(key)

        with pytest.raises(OutOfStockError) as exc:
            VariantStockResolver(ledger).check(tshirt_event, "L", "White", 1)
        assert exc.value.message == "L - White is out of stock"

    def test_insufficient_stock(self, db_session: Session, tshirt_event):
        with pytest.raises(InsufficientStockError) as exc:
            VariantStockResolver(CapacityLedger(db_session)).check(tshirt_event, "L", "White", 2)
        assert exc.value.details == {"available": 1, "requested": 2}

    def test_stock_checked_before_purchase_limit(self, db_session: Session, tshirt_event):
        resolver = VariantStockResolver(CapacityLedger(db_session))

        with pytest.raises(InsufficientStockError):
            resolver.check(tshirt_event, "M", "Black", 6)
        with pytest.raises(LimitExceededError) as exc:
            resolver.check(tshirt_event, "M", "Black", 4)
        assert exc.value.message == "Maximum 3 items per person"

    def test_within_limits(self, db_session: Session, tshirt_event):
        resolved = VariantStockResolver(CapacityLedger(db_session)).check(tshirt_event, "M", "Black", 3)

        assert resolved.available == 5
