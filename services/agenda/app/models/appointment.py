import uuid
from sqlalchemy import (
    Column,
    Date,
    DateTime,
    ForeignKey,
    Index,
    Integer,
    JSON,
    String,
    Text,
    Time,
    UniqueConstraint,
)
from sqlalchemy.dialects.postgresql import UUID, JSONB
from sqlalchemy.orm import relationship
from sqlalchemy.sql import func
from app.core.database import Base

APPOINTMENT_OVERLAP_CONSTRAINT = "ex_appointments_no_overlap"


class AppointmentStatus:
    PENDING = "pendente"
    CONFIRMED = "confirmado"
    CANCELLED = "cancelado"
    COMPLETED = "concluido"

    ALL = {PENDING, CONFIRMED, CANCELLED, COMPLETED}
    ACTIVE = {PENDING, CONFIRMED}

    TRANSITIONS = {
        PENDING: {CONFIRMED, COMPLETED, CANCELLED},
        CONFIRMED: {COMPLETED, CANCELLED},
        COMPLETED: set(),
        CANCELLED: set(),
    }


class Appointment(Base):
    __tablename__ = "appointments"
    __table_args__ = (
        Index("ix_appointments_business_date", "business_id", "appointment_date"),
        UniqueConstraint("business_id", "idempotency_key", name="uq_appointments_business_idempotency_key"),
    )

    id = Column(UUID(as_uuid=True), primary_key=True, default=uuid.uuid4)
    business_id = Column(
        UUID(as_uuid=True),
        ForeignKey("businesses.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    client_id = Column(UUID(as_uuid=True), ForeignKey("clients.id"), nullable=False, index=True)
    service_id = Column(UUID(as_uuid=True), ForeignKey("services.id"), nullable=True)
    professional_id = Column(UUID(as_uuid=True), nullable=True)
    appointment_date = Column(Date, nullable=False)
    appointment_time = Column(Time, nullable=False)
    duration = Column(Integer, nullable=False, default=60)
    status = Column(String, nullable=False, default=AppointmentStatus.CONFIRMED)
    notes = Column(Text, nullable=True)
    idempotency_key = Column(String, nullable=True)

    cancellation_reason = Column(Text, nullable=True)
    cancelled_at = Column(DateTime(timezone=True), nullable=True)

    created_at = Column(DateTime(timezone=True), server_default=func.now())
    updated_at = Column(DateTime(timezone=True), server_default=func.now(), onupdate=func.now())

    client = relationship("Client")
    service = relationship("Service")


class AppointmentEvent(Base):
    __tablename__ = "appointment_events"

    id = Column(UUID(as_uuid=True), primary_key=True, default=uuid.uuid4)
    appointment_id = Column(
        UUID(as_uuid=True),
        ForeignKey("appointments.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    business_id = Column(UUID(as_uuid=True), nullable=False, index=True)
    event_type = Column(String, nullable=False)
    payload = Column(JSONB().with_variant(JSON, "sqlite"), nullable=False, default=dict)
    created_at = Column(DateTime(timezone=True), server_default=func.now())
