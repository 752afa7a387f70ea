"""
Test database models.
"""
from datetime import timedelta

import pytest
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from felicity.models.capacity import CapacityEntry
from felicity.models.events import Event, EventStatus, EventType
from felicity.models.registrations import PaymentStatus, Registration, RegistrationStatus, RegistrationType
from felicity.tests.conftest import NOW, make_event


class TestEventModel:
    def test_defaults(self, db_session: Session, organizer):
        event = Event(
            organizer_id=organizer.id,
            name="Quiz Night",
            registration_deadline=NOW + timedelta(days=1),
            event_start_date=NOW + timedelta(days=2),
            event_end_date=NOW + timedelta(days=2, hours=3),
        )
        db_session.add(event)
        db_session.commit()
        db_session.refresh(event)

        assert event.status == EventStatus.DRAFT.value
        assert event.event_type == EventType.NORMAL.value
        assert event.current_registrations == 0
        assert event.purchase_limit == 1
        assert event.form_locked is False
        assert not event.is_merchandise

    def test_variants_keep_order(self, db_session: Session, tshirt_event):
        db_session.refresh(tshirt_event)

        assert tshirt_event.is_merchandise
        assert [v.name for v in tshirt_event.variants] == ["M - Black", "L - White"]
        assert tshirt_event.organizer.email == "organizer@clubs.iiit.ac.in"


class TestRegistrationModel:
    def test_relationships(self, db_session: Session, organizer, participant):
        event = make_event(db_session, organizer)
        registration = Registration(event_id=event.id, participant_id=participant.id, ticket_id="FEL-2026-AB12C")
        db_session.add(registration)
        db_session.commit()
        db_session.refresh(event)

        assert registration.registration_type == RegistrationType.NORMAL.value
        assert registration.status == RegistrationStatus.CONFIRMED.value
        assert registration.payment_status == PaymentStatus.UNPAID.value
        assert registration.participant.full_name == "Alice Rao"
        assert event.registrations == [registration]

    def test_ticket_ids_are_unique(self, db_session: Session, organizer, participant, outsider):
        event = make_event(db_session, organizer)
        db_session.add(Registration(event_id=event.id, participant_id=participant.id, ticket_id="FEL-2026-AB12C"))
        db_session.add(Registration(event_id=event.id, participant_id=outsider.id, ticket_id="FEL-2026-AB12C"))

        with pytest.raises(IntegrityError):
            db_session.commit()
        db_session.rollback()


class TestCapacityEntryModel:
    def test_one_entry_per_pool(self, db_session: Session, organizer):
        event = make_event(db_session, organizer, registration_limit=5)
        db_session.add(CapacityEntry(event_id=event.id, pool="seats", capacity_limit=9))

        with pytest.raises(IntegrityError):
            db_session.commit()
        db_session.rollback()
