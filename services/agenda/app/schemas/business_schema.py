from datetime import datetime, time
from decimal import Decimal
from typing import List, Optional
from uuid import UUID
from zoneinfo import ZoneInfo, ZoneInfoNotFoundError
from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator

_SLUG_PATTERN = r"^[a-z0-9]+(?:-[a-z0-9]+)*$"


class CompanySettingsBase(BaseModel):
    """Configurações de expediente e limites de um estabelecimento."""
    timezone: str = Field(default="America/Sao_Paulo", description="Fuso horário IANA do estabelecimento", examples=["America/Recife"])
    working_days: List[int] = Field(default_factory=lambda: [1, 2, 3, 4, 5], description="Dias de funcionamento padrão (1=Segunda ... 7=Domingo)", examples=[[1, 2, 3, 4, 5]])
    working_hours_start: time = Field(default=time(9, 0), description="Abertura padrão", examples=["09:00"])
    working_hours_end: time = Field(default=time(18, 0), description="Fechamento padrão", examples=["18:00"])
    lunch_break_enabled: bool = Field(default=False, description="Se existe pausa para almoço")
    lunch_start_time: Optional[time] = Field(default=None, description="Início do almoço", examples=["12:00"])
    lunch_end_time: Optional[time] = Field(default=None, description="Fim do almoço", examples=["13:00"])
    appointment_interval: int = Field(default=30, ge=5, le=240, description="Intervalo entre horários, em minutos", examples=[30])
    advance_booking_limit: int = Field(default=30, ge=0, le=365, description="Quantos dias à frente é possível agendar", examples=[30])
    same_day_booking: bool = Field(default=True, description="Permite agendar para o próprio dia")
    max_simultaneous_appointments: int = Field(default=3, ge=0, description="Agendamentos ativos por cliente (0 = sem limite)", examples=[3])
    monthly_appointments_limit: Optional[int] = Field(default=None, ge=0, description="Agendamentos por cliente no mês (vazio = sem limite)")
    theme_color: Optional[str] = Field(default=None, description="Cor principal da página pública", examples=["#25D366"])
    logo_url: Optional[str] = Field(default=None)
    cover_image_url: Optional[str] = Field(default=None)

    @field_validator("timezone")
    @classmethod
    def validar_timezone(cls, value: str) -> str:
        try:
            ZoneInfo(value)
        except (ZoneInfoNotFoundError, ValueError) as exc:
            raise ValueError("Fuso horário inválido") from exc
        return value

    @field_validator("working_days")
    @classmethod
    def validar_dias(cls, value: List[int]) -> List[int]:
        if not all(1 <= day <= 7 for day in value):
            raise ValueError("working_days deve conter valores de 1 a 7")
        return sorted(set(value))

    @model_validator(mode="after")
    def validar_horarios(self):
        if self.working_hours_end <= self.working_hours_start:
            raise ValueError("working_hours_end deve ser maior que working_hours_start")
        if self.lunch_break_enabled:
            if self.lunch_start_time is None or self.lunch_end_time is None:
                raise ValueError("Informe início e fim do almoço")
            if self.lunch_end_time <= self.lunch_start_time:
                raise ValueError("lunch_end_time deve ser maior que lunch_start_time")
        return self


class CompanySettingsUpdate(BaseModel):
    """Atualização parcial das configurações."""
    timezone: Optional[str] = None
    working_days: Optional[List[int]] = None
    working_hours_start: Optional[time] = None
    working_hours_end: Optional[time] = None
    lunch_break_enabled: Optional[bool] = None
    lunch_start_time: Optional[time] = None
    lunch_end_time: Optional[time] = None
    appointment_interval: Optional[int] = Field(default=None, ge=5, le=240)
    advance_booking_limit: Optional[int] = Field(default=None, ge=0, le=365)
    same_day_booking: Optional[bool] = None
    max_simultaneous_appointments: Optional[int] = Field(default=None, ge=0)
    monthly_appointments_limit: Optional[int] = Field(default=None, ge=0)
    theme_color: Optional[str] = None
    logo_url: Optional[str] = None
    cover_image_url: Optional[str] = None

    @field_validator("working_days")
    @classmethod
    def validar_dias(cls, value):
        if value is not None and not all(1 <= day <= 7 for day in value):
            raise ValueError("working_days deve conter valores de 1 a 7")
        return value


class CompanySettingsOut(CompanySettingsBase):
    model_config = ConfigDict(from_attributes=True)

    business_id: UUID


class BusinessCreate(BaseModel):
    """Cadastro de estabelecimento. As configurações são criadas junto."""
    name: str = Field(min_length=1, description="Nome exibido", examples=["Barbearia do Zé"])
    slug: str = Field(pattern=_SLUG_PATTERN, description="Endereço público, único", examples=["barbearia-do-ze"])
    phone: Optional[str] = Field(default=None, description="Telefone de contato", examples=["(11) 99999-1111"])
    is_admin: bool = Field(default=False, description="Estabelecimento sem limites de agendamento")
    settings: CompanySettingsBase = Field(default_factory=CompanySettingsBase)


class BusinessUpdate(BaseModel):
    name: Optional[str] = Field(default=None, min_length=1)
    slug: Optional[str] = Field(default=None, pattern=_SLUG_PATTERN)
    phone: Optional[str] = None
    is_admin: Optional[bool] = None


class BusinessOut(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: UUID
    name: str
    slug: str
    phone: Optional[str]
    is_admin: bool
    created_at: Optional[datetime] = None
    settings: Optional[CompanySettingsOut] = None


class DailyScheduleIn(BaseModel):
    """Horário específico de um dia da semana (sobrepõe o padrão)."""
    start_time: time = Field(examples=["08:00"])
    end_time: time = Field(examples=["12:00"])
    is_active: bool = Field(default=True, description="Inativo = usa o padrão das configurações")
    has_lunch_break: bool = False
    lunch_start: Optional[time] = None
    lunch_end: Optional[time] = None

    @model_validator(mode="after")
    def validar_horarios(self):
        if self.end_time <= self.start_time:
            raise ValueError("end_time deve ser maior que start_time")
        if self.has_lunch_break:
            if self.lunch_start is None or self.lunch_end is None:
                raise ValueError("Informe início e fim do almoço")
            if self.lunch_end <= self.lunch_start:
                raise ValueError("lunch_end deve ser maior que lunch_start")
        return self


class DailyScheduleOut(DailyScheduleIn):
    model_config = ConfigDict(from_attributes=True)

    id: UUID
    business_id: UUID
    day_of_week: int = Field(description="0=Domingo ... 6=Sábado")


class ServiceCreate(BaseModel):
    name: str = Field(min_length=1, examples=["Corte masculino"])
    description: Optional[str] = None
    duration: int = Field(default=60, ge=5, le=720, description="Duração em minutos", examples=[30])
    price: Optional[Decimal] = Field(default=None, ge=0, examples=["45.00"])
    is_active: bool = True


class ServiceUpdate(BaseModel):
    name: Optional[str] = Field(default=None, min_length=1)
    description: Optional[str] = None
    duration: Optional[int] = Field(default=None, ge=5, le=720)
    price: Optional[Decimal] = Field(default=None, ge=0)
    is_active: Optional[bool] = None


class ServiceOut(ServiceCreate):
    model_config = ConfigDict(from_attributes=True)

    id: UUID
    business_id: UUID
