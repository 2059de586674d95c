"""Acesso aos colaboradores guardados em ``app.state``."""

from datetime import datetime
from typing import Optional
from fastapi import Request
from app.models.business import Business
from app.services.notifications import AvailabilityNotifier
from shared import EventPublisher
from shared.cache import AvailabilityCache
from shared.civil_time import Clock, civil_now, utc_now
from shared.config import BookingPolicyConfig, load_booking_policy


def resolve_clock(request: Request) -> Clock:
    return getattr(request.app.state, "clock", None) or utc_now


def get_policy(request: Request) -> BookingPolicyConfig:
    config = getattr(request.app.state, "config", None)
    if config is not None:
        return config.booking
    return load_booking_policy()


def get_publisher(request: Request) -> Optional[EventPublisher]:
    return getattr(request.app.state, "event_publisher", None)


def get_cache(request: Request) -> Optional[AvailabilityCache]:
    return getattr(request.app.state, "availability_cache", None)


def get_notifier(request: Request) -> Optional[AvailabilityNotifier]:
    return getattr(request.app.state, "notifier", None)


def business_now(request: Request, business: Business) -> datetime:
    """Agora, no fuso civil do estabelecimento."""
    tz_name = business.settings.timezone if business.settings is not None else get_policy(request).default_timezone
    return civil_now(resolve_clock(request), tz_name)
