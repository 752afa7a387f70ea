from datetime import datetime, timedelta
from decimal import Decimal

from sqlalchemy import func, select, update
from sqlalchemy.orm import Session

from felicity.core.timeutils import utcnow
from felicity.models.events import Event
from felicity.models.registrations import Registration, RegistrationStatus

TRENDING_WINDOW = timedelta(hours=24)


def _count(db: Session, *criteria) -> int:
    return int(db.scalar(select(func.count(Registration.id)).where(*criteria)) or 0)


def get_event_stats(db: Session, event_id: int) -> dict:
    event = db.get(Event, event_id, populate_existing=True)
    if not event:
        return {}

    confirmed = _count(
        db,
        Registration.event_id == event_id,
        Registration.status == RegistrationStatus.CONFIRMED.value,
    )
    pending = _count(
        db,
        Registration.event_id == event_id,
        Registration.status == RegistrationStatus.PENDING.value,
    )

    return {
        "event_id": event.id,
        "registration_limit": event.registration_limit,
        "current_registrations": event.current_registrations,
        "confirmed_count": confirmed,
        "pending_count": pending,
        "registrations_last_24h": event.registrations_last_24h,
        "total_revenue": event.total_revenue,
        "total_attendance": event.total_attendance,
        "attendance_rate": round(event.total_attendance / confirmed * 100, 2) if confirmed else 0.0,
    }


def get_overall_report(db: Session, organizer_id: int | None = None) -> dict:
    """Return aggregated totals across all events, or one organizer's events."""
    scope = [Event.organizer_id == organizer_id] if organizer_id is not None else []
    totals = db.execute(
        select(
            func.count(Event.id),
            func.sum(Event.registration_limit),
            func.sum(Event.current_registrations),
            func.sum(Event.total_revenue),
            func.sum(Event.total_attendance),
        ).where(*scope)
    ).one()
    total_events, total_capacity, total_registrations, total_revenue, total_attendance = totals

    confirmed = [Registration.status == RegistrationStatus.CONFIRMED.value]
    if organizer_id is not None:
        confirmed.append(Registration.event_id.in_(select(Event.id).where(*scope)))
    total_confirmed = _count(db, *confirmed)

    return {
        "total_events": int(total_events or 0),
        "total_capacity": int(total_capacity or 0),
        "total_registrations": int(total_registrations or 0),
        "total_confirmed": total_confirmed,
        "total_revenue": Decimal(total_revenue or 0),
        "total_attendance": int(total_attendance or 0),
    }


def refresh_trending_counters(db: Session, now: datetime | None = None) -> int:
    """Recompute ``registrations_last_24h`` for every event; returns how many events changed."""
    since = (now or utcnow()) - TRENDING_WINDOW
    recent = dict(
        db.execute(
            select(Registration.event_id, func.count(Registration.id))
            .where(
                Registration.created_at >= since,
                Registration.status != RegistrationStatus.CANCELLED.value,
            )
            .group_by(Registration.event_id)
        ).all()
    )

    changed = 0
    for event_id, current in db.execute(select(Event.id, Event.registrations_last_24h)).all():
        fresh = int(recent.get(event_id, 0))
        if fresh != current:
            db.execute(
                update(Event)
                .where(Event.id == event_id)
                .values(registrations_last_24h=fresh)
                .execution_options(synchronize_session=False)
            )
            changed += 1
    db.commit()
    return changed
