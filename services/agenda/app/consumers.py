"""Event consumers for the agenda service - keeps displayed availability fresh."""

import logging
from datetime import date
from typing import Any, Dict, Optional
from uuid import UUID
from app.services.notifications import AvailabilityNotifier
from shared.cache import AvailabilityCache

logger = logging.getLogger(__name__)

APPOINTMENT_EVENTS = (
    "appointment.created",
    "appointment.cancelled",
    "appointment.status_changed",
)


def make_availability_handler(
    cache: Optional[AvailabilityCache],
    notifier: Optional[AvailabilityNotifier],
):
    """
    Handler para eventos appointment.*.
    Invalida o cache do dia e avisa os assinantes daquele (business_id, data).
    """

    async def handle_appointment_changed(event_type: str, payload: Dict[str, Any]) -> None:
        business_id = payload.get("business_id")
        day = payload.get("date")

        if not business_id or not day:
            logger.warning("Evento %s sem business_id/date: %s", event_type, payload)
            return

        try:
            business_id = UUID(str(business_id))
            day = date.fromisoformat(str(day))
        except ValueError:
            logger.warning("Evento %s com business_id/date inválidos: %s", event_type, payload)
            return

        if cache is not None:
            cache.invalidate(business_id, day.isoformat())
        delivered = notifier.notify(business_id, day) if notifier is not None else 0
        logger.info(
            "Evento %s: disponibilidade de business_id=%s em %s invalidada (%d assinante(s))",
            event_type,
            business_id,
            day,
            delivered,
        )

    return handle_appointment_changed
