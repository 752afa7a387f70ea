from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session

from felicity.database.db import get_db
from felicity.models.users import User
from felicity.routes.deps import get_current_organizer
from felicity.schemas.events import EventStatsOut
from felicity.schemas.reports import ReportOut
from felicity.services.events import get_owned_event
from felicity.services.reports import get_event_stats, get_overall_report

router = APIRouter(prefix="/report", tags=["reports"])


@router.get("", response_model=ReportOut)
def overall_report(db: Session = Depends(get_db), organizer: User = Depends(get_current_organizer)):
    """Aggregate report across the organizer's events."""
    return get_overall_report(db, organizer_id=organizer.id)


@router.get("/event/{event_id}", response_model=EventStatsOut)
def event_report(event_id: int, db: Session = Depends(get_db), organizer: User = Depends(get_current_organizer)):
    get_owned_event(db, event_id, organizer.id)
    return get_event_stats(db, event_id)
