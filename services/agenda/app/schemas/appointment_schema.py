from datetime import date, datetime, time
from typing import Optional
from uuid import UUID
from pydantic import BaseModel, ConfigDict, Field, computed_field, field_validator
from app.models.appointment import AppointmentStatus
from app.services.phone import format_phone_for_display


class AppointmentCreate(BaseModel):
    """Reserva feita pela página pública. O horário é o civil do estabelecimento."""
    business_id: UUID = Field(description="ID do estabelecimento", examples=["550e8400-e29b-41d4-a716-446655440000"])
    service_id: Optional[UUID] = Field(default=None, description="Serviço escolhido; define a duração")
    appointment_date: date = Field(description="Data do atendimento", examples=["2025-01-10"])
    appointment_time: time = Field(description="Horário de início (HH:MM)", examples=["10:00"])
    duration: Optional[int] = Field(default=None, ge=5, le=720, description="Duração em minutos quando não há serviço")
    client_name: str = Field(min_length=1, description="Nome do cliente", examples=["Maria Souza"])
    client_phone: str = Field(min_length=1, description="Telefone em qualquer formato", examples=["11999998888"])
    client_email: Optional[str] = Field(default=None, examples=["maria@example.com"])
    notes: Optional[str] = Field(default=None, description="Observações do cliente")
    status: str = Field(default=AppointmentStatus.CONFIRMED, description="Status inicial (pendente ou confirmado)")
    idempotency_key: Optional[str] = Field(
        default=None,
        max_length=128,
        description="Chave enviada pelo cliente; repetir a mesma chave devolve o agendamento já criado",
    )

    @field_validator("client_name")
    @classmethod
    def limpar_nome(cls, value: str) -> str:
        value = value.strip()
        if not value:
            raise ValueError("Nome é obrigatório")
        return value

    @field_validator("status")
    @classmethod
    def validar_status(cls, value: str) -> str:
        if value not in AppointmentStatus.ACTIVE:
            raise ValueError("Status inicial deve ser pendente ou confirmado")
        return value


class ClientSummary(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: UUID
    name: str
    phone: str

    @computed_field
    @property
    def phone_display(self) -> str:
        """Telefone no formato (DDD) 99999-9999 para o painel."""
        return format_phone_for_display(self.phone)


class AppointmentOut(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: UUID
    business_id: UUID
    client_id: UUID
    service_id: Optional[UUID]
    appointment_date: date
    appointment_time: time
    duration: int
    status: str = Field(description="pendente, confirmado, cancelado, concluido")
    notes: Optional[str]
    idempotency_key: Optional[str] = None
    cancellation_reason: Optional[str] = None
    cancelled_at: Optional[datetime] = None
    created_at: Optional[datetime] = None
    client: Optional[ClientSummary] = None


class AppointmentStatusUpdate(BaseModel):
    status: str

    @field_validator("status")
    @classmethod
    def validar_status(cls, value: str) -> str:
        if value not in AppointmentStatus.ALL:
            raise ValueError("Status inválido")
        return value


class AppointmentCancelRequest(BaseModel):
    reason: Optional[str] = Field(default=None, description="Motivo do cancelamento")


class LimitCheckOut(BaseModel):
    canBook: bool
    currentCount: int
    limit: int


class BookingLimitsOut(BaseModel):
    canBook: bool
    simultaneousLimit: LimitCheckOut
    monthlyLimit: LimitCheckOut
