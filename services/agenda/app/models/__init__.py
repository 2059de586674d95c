from app.models.business import Business, CompanySettings, DailySchedule, Service
from app.models.client import Client
from app.models.appointment import Appointment, AppointmentEvent, AppointmentStatus

__all__ = [
    "Business",
    "CompanySettings",
    "DailySchedule",
    "Service",
    "Client",
    "Appointment",
    "AppointmentEvent",
    "AppointmentStatus",
]
