from datetime import date
from typing import List, Optional
from uuid import UUID
from pydantic import BaseModel, Field


class AvailabilityOut(BaseModel):
    business_id: UUID
    date: date
    service_id: Optional[UUID] = None
    duration: Optional[int] = Field(default=None, description="Duração considerada, em minutos")
    is_open: bool
    slots: List[str] = Field(description="Horários livres em ordem crescente (HH:MM)", examples=[["09:00", "09:30"]])
    cached: bool = False


class ConflictOut(BaseModel):
    appointment_id: Optional[str] = None
    time: str
    duration: int
    service_name: Optional[str] = None
    client_name: Optional[str] = None


class SlotDetailOut(BaseModel):
    time: str
    available: bool
    reason: Optional[str] = Field(default=None, description="past, lunch, insufficient_time ou occupied")
    conflict: Optional[ConflictOut] = None


class AvailabilityDetailsOut(BaseModel):
    business_id: UUID
    date: date
    is_open: bool
    source: str = Field(description="Origem do expediente: daily_schedule, company_settings ou none")
    open_time: Optional[str] = None
    close_time: Optional[str] = None
    slots: List[SlotDetailOut]


class AvailableDatesOut(BaseModel):
    business_id: UUID
    dates: List[date]


class AvailabilityStatsOut(BaseModel):
    business_id: UUID
    start_date: date
    end_date: date
    total_days: int
    active_days: int
    total_slots: int
    available_slots: int
    occupancy_rate: float = Field(description="Percentual de horários ocupados")
