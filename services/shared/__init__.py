"""Shared utilities used across services."""

from .config import BookingPolicyConfig, ServiceConfig, load_booking_policy, load_service_config
from .messaging import EventPublisher, build_envelope
from .event_consumer import EventConsumer, cleanup_consumer, decode_event
from .civil_time import (
    Clock,
    civil_now,
    ensure_timezone,
    minutes_to_label,
    time_to_minutes,
    utc_now,
)
from .startup import wait_for_database

__all__ = [
    "BookingPolicyConfig",
    "ServiceConfig",
    "load_booking_policy",
    "load_service_config",
    "EventPublisher",
    "build_envelope",
    "EventConsumer",
    "cleanup_consumer",
    "decode_event",
    "Clock",
    "civil_now",
    "ensure_timezone",
    "minutes_to_label",
    "time_to_minutes",
    "utc_now",
    "wait_for_database",
]
