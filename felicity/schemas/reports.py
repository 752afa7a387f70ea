from decimal import Decimal

from pydantic import BaseModel


class ReportOut(BaseModel):
    total_events: int
    total_capacity: int
    total_registrations: int
    total_confirmed: int
    total_revenue: Decimal
    total_attendance: int

    class Config:
        from_attributes = True
