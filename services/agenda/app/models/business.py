import uuid
from sqlalchemy import (
    Boolean,
    Column,
    DateTime,
    ForeignKey,
    Integer,
    JSON,
    Numeric,
    String,
    Text,
    Time,
    UniqueConstraint,
)
from sqlalchemy.dialects.postgresql import UUID, JSONB
from sqlalchemy.orm import relationship
from sqlalchemy.sql import func
from app.core.database import Base


def default_working_days():
    # ISO: 1 = segunda ... 7 = domingo
    return [1, 2, 3, 4, 5]


class Business(Base):
    __tablename__ = "businesses"

    id = Column(UUID(as_uuid=True), primary_key=True, default=uuid.uuid4)
    name = Column(String, nullable=False)
    slug = Column(String, unique=True, nullable=False, index=True)
    phone = Column(String, nullable=True)
    is_admin = Column(Boolean, nullable=False, default=False)
    created_at = Column(DateTime(timezone=True), server_default=func.now())
    updated_at = Column(DateTime(timezone=True), server_default=func.now(), onupdate=func.now())

    settings = relationship(
        "CompanySettings",
        back_populates="business",
        cascade="all, delete-orphan",
        uselist=False,
    )
    daily_schedules = relationship(
        "DailySchedule",
        back_populates="business",
        cascade="all, delete-orphan",
        order_by="DailySchedule.day_of_week",
    )
    services = relationship("Service", back_populates="business", cascade="all, delete-orphan")


class CompanySettings(Base):
    __tablename__ = "company_settings"

    id = Column(UUID(as_uuid=True), primary_key=True, default=uuid.uuid4)
    business_id = Column(
        UUID(as_uuid=True),
        ForeignKey("businesses.id", ondelete="CASCADE"),
        unique=True,
        nullable=False,
    )
    timezone = Column(String, nullable=False, default="America/Sao_Paulo")
    working_days = Column(JSONB().with_variant(JSON, "sqlite"), nullable=False, default=default_working_days)
    working_hours_start = Column(Time, nullable=False)
    working_hours_end = Column(Time, nullable=False)
    lunch_break_enabled = Column(Boolean, nullable=False, default=False)
    lunch_start_time = Column(Time, nullable=True)
    lunch_end_time = Column(Time, nullable=True)
    appointment_interval = Column(Integer, nullable=False, default=30)
    advance_booking_limit = Column(Integer, nullable=False, default=30)
    same_day_booking = Column(Boolean, nullable=False, default=True)
    max_simultaneous_appointments = Column(Integer, nullable=False, default=3)
    monthly_appointments_limit = Column(Integer, nullable=True)
    theme_color = Column(String, nullable=True)
    logo_url = Column(String, nullable=True)
    cover_image_url = Column(String, nullable=True)
    created_at = Column(DateTime(timezone=True), server_default=func.now())
    updated_at = Column(DateTime(timezone=True), server_default=func.now(), onupdate=func.now())

    business = relationship("Business", back_populates="settings")


class DailySchedule(Base):
    """Horário específico de um dia da semana; sobrepõe o padrão de CompanySettings."""

    __tablename__ = "daily_schedules"
    __table_args__ = (
        UniqueConstraint("business_id", "day_of_week", name="uq_daily_schedules_business_day"),
    )

    id = Column(UUID(as_uuid=True), primary_key=True, default=uuid.uuid4)
    business_id = Column(
        UUID(as_uuid=True),
        ForeignKey("businesses.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    day_of_week = Column(Integer, nullable=False)  # 0 = domingo ... 6 = sábado
    start_time = Column(Time, nullable=False)
    end_time = Column(Time, nullable=False)
    is_active = Column(Boolean, nullable=False, default=True)
    has_lunch_break = Column(Boolean, nullable=False, default=False)
    lunch_start = Column(Time, nullable=True)
    lunch_end = Column(Time, nullable=True)
    created_at = Column(DateTime(timezone=True), server_default=func.now())
    updated_at = Column(DateTime(timezone=True), server_default=func.now(), onupdate=func.now())

    business = relationship("Business", back_populates="daily_schedules")


class Service(Base):
    __tablename__ = "services"

    id = Column(UUID(as_uuid=True), primary_key=True, default=uuid.uuid4)
    business_id = Column(
        UUID(as_uuid=True),
        ForeignKey("businesses.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    name = Column(String, nullable=False)
    description = Column(Text, nullable=True)
    duration = Column(Integer, nullable=False, default=60)
    price = Column(Numeric(10, 2), nullable=True)
    is_active = Column(Boolean, nullable=False, default=True)
    created_at = Column(DateTime(timezone=True), server_default=func.now())
    updated_at = Column(DateTime(timezone=True), server_default=func.now(), onupdate=func.now())

    business = relationship("Business", back_populates="services")
