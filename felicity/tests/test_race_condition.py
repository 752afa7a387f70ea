"""
Concurrent registrations, approvals and cancellations.

Each worker thread gets its own session on a file-backed SQLite database and
all locks go through one fake Redis server, the way separate API workers
share one Redis in production.
"""
from concurrent.futures import ThreadPoolExecutor
from decimal import Decimal

import pytest
from sqlalchemy import create_engine, func, select
from sqlalchemy.orm import sessionmaker

from felicity.database.db import Base
from felicity.models.events import Event, EventType
from felicity.models.registrations import Registration, RegistrationStatus
from felicity.services.capacity import CapacityLedger
from felicity.services.errors import CapacityFullError, InvalidStateError, OutOfStockError, RegistrationError
from felicity.services.payments import approve_payment
from felicity.services.registrations import cancel_registration, purchase_merchandise, register_for_event
from felicity.tests.conftest import NOW, make_event, make_user, stock_key


@pytest.fixture
def shared_db(tmp_path):
    engine = create_engine(f"sqlite:///{tmp_path / 'race.db'}", connect_args={"check_same_thread": False, "timeout": 30})
    Base.metadata.create_all(bind=engine)
    factory = sessionmaker(autocommit=False, autoflush=False, expire_on_commit=False, bind=engine)
    yield factory
    Base.metadata.drop_all(bind=engine)
    engine.dispose()


def run_in_threads(factory, fn, args_list):
    """Run ``fn(db, *args)`` for each args tuple, one session per thread."""

    def attempt(args):
        db = factory()
        try:
            return fn(db, *args)
        except RegistrationError as exc:
            return exc
        finally:
            db.close()

    with ThreadPoolExecutor(max_workers=len(args_list)) as executor:
        return list(executor.map(attempt, args_list))


def count_registrations(db, event_id, status=RegistrationStatus.CONFIRMED):
    return db.scalar(
        select(func.count(Registration.id)).where(
            Registration.event_id == event_id,
            Registration.status == status.value,
        )
    )


class TestConcurrentRegistration:
    def test_last_seat_goes_to_one_participant(self, shared_db, redis_client):
        db = shared_db()
        organizer = make_user(db, "organizer@clubs.iiit.ac.in")
        event = make_event(db, organizer, registration_limit=1)
        participants = [make_user(db, f"p{i}@students.iiit.ac.in").id for i in range(2)]
        db.close()

        def register(session, participant_id):
            return register_for_event(session, event_id=event.id, participant_id=participant_id, now=NOW)

        results = run_in_threads(shared_db, register, [(pid,) for pid in participants])

        winners = [r for r in results if isinstance(r, Registration)]
        losers = [r for r in results if isinstance(r, CapacityFullError)]
        assert len(winners) == 1
        assert len(losers) == 1

        db = shared_db()
        assert db.get(Event, event.id).current_registrations == 1
        assert count_registrations(db, event.id) == 1
        db.close()

    def test_limit_never_exceeded(self, shared_db, redis_client):
        limit, attempts = 5, 20
        db = shared_db()
        organizer = make_user(db, "organizer@clubs.iiit.ac.in")
        event = make_event(db, organizer, registration_limit=limit)
        participants = [make_user(db, f"p{i}@students.iiit.ac.in").id for i in range(attempts)]
        db.close()

        def register(session, participant_id):
            return register_for_event(session, event_id=event.id, participant_id=participant_id, now=NOW)

        results = run_in_threads(shared_db, register, [(pid,) for pid in participants])

        successful = [r for r in results if isinstance(r, Registration)]
        assert len(successful) == limit
        assert all(isinstance(r, CapacityFullError) for r in results if not isinstance(r, Registration))
        assert len({r.ticket_id for r in successful}) == limit

        db = shared_db()
        assert db.get(Event, event.id).current_registrations == limit
        assert count_registrations(db, event.id) == limit
        db.close()

    def test_same_participant_registers_once(self, shared_db, redis_client):
        db = shared_db()
        organizer = make_user(db, "organizer@clubs.iiit.ac.in")
        participant = make_user(db, "alice@students.iiit.ac.in")
        event = make_event(db, organizer, registration_limit=10)
        db.close()

        def register(session, participant_id):
            return register_for_event(session, event_id=event.id, participant_id=participant_id, now=NOW)

        results = run_in_threads(shared_db, register, [(participant.id,)] * 5)

        assert len([r for r in results if isinstance(r, Registration)]) == 1

        db = shared_db()
        assert db.get(Event, event.id).current_registrations == 1
        db.close()


class TestConcurrentApproval:
    def test_last_unit_approved_once(self, shared_db, redis_client):
        db = shared_db()
        organizer = make_user(db, "organizer@clubs.iiit.ac.in")
        event = make_event(
            db,
            organizer,
            event_type=EventType.MERCHANDISE,
            registration_fee=Decimal("300"),
            variants=[{"name": "L - White", "size": "L", "color": "White", "stock": 1}],
        )
        purchases = []
        for i in range(4):
            buyer = make_user(db, f"p{i}@students.iiit.ac.in")
            purchase = purchase_merchandise(
                db, event_id=event.id, participant_id=buyer.id, size="L", color="White", now=NOW
            )
            purchases.append(purchase.id)
        db.close()

        def approve(session, registration_id):
            return approve_payment(session, registration_id=registration_id, organizer_id=organizer.id, now=NOW)

        results = run_in_threads(shared_db, approve, [(rid,) for rid in purchases])

        assert len([r for r in results if isinstance(r, Registration)]) == 1
        assert len([r for r in results if isinstance(r, OutOfStockError)]) == 3

        db = shared_db()
        assert CapacityLedger(db).consumed(stock_key(event, "L", "White")) == 1
        assert db.get(Event, event.id).total_revenue == Decimal("300")
        assert count_registrations(db, event.id, RegistrationStatus.PENDING) == 3
        db.close()

    def test_cancel_racing_approve(self, shared_db, redis_client):
        db = shared_db()
        organizer = make_user(db, "organizer@clubs.iiit.ac.in")
        buyer = make_user(db, "alice@students.iiit.ac.in")
        event = make_event(
            db,
            organizer,
            event_type=EventType.MERCHANDISE,
            registration_fee=Decimal("300"),
            variants=[{"name": "M - Black", "size": "M", "color": "Black", "stock": 3}],
        )
        purchase = purchase_merchandise(db, event_id=event.id, participant_id=buyer.id, size="M", color="Black", now=NOW)
        db.close()

        def act(session, action):
            if action == "approve":
                return approve_payment(session, registration_id=purchase.id, organizer_id=organizer.id, now=NOW)
            return cancel_registration(session, registration_id=purchase.id, participant_id=buyer.id, now=NOW)

        results = run_in_threads(shared_db, act, [("approve",), ("cancel",)])

        # Either order is fine; both must leave the books balanced
        assert all(isinstance(r, (Registration, InvalidStateError)) for r in results)
        db = shared_db()
        final = db.get(Registration, purchase.id)
        assert final.status == RegistrationStatus.CANCELLED.value
        assert CapacityLedger(db).consumed(stock_key(event, "M", "Black")) == 0
        assert db.get(Event, event.id).total_revenue == Decimal("0")
        db.close()
