"""Assinaturas de "a disponibilidade deste dia mudou".

A lista de horários exibida é um cache com contrato de frescor: quem mostra
horários assina ``(business_id, data)`` e é avisado quando um agendamento
daquele dia é criado, cancelado ou muda de status.
"""

from __future__ import annotations

import logging
import threading
from collections import defaultdict
from datetime import date
from typing import Any, Callable, Dict, List, Optional, Tuple, Union
from uuid import UUID

from shared import EventPublisher
from shared.cache import AvailabilityCache

logger = logging.getLogger(__name__)

AvailabilityCallback = Callable[[str, str], None]

_Key = Tuple[str, str]


def _key(business_id: Union[UUID, str], day: Union[date, str]) -> _Key:
    return str(business_id), day.isoformat() if isinstance(day, date) else str(day)


class AvailabilityNotifier:
    def __init__(self) -> None:
        self._subscribers: Dict[_Key, List[AvailabilityCallback]] = defaultdict(list)
        self._lock = threading.Lock()

    def subscribe(
        self,
        business_id: Union[UUID, str],
        day: Union[date, str],
        callback: AvailabilityCallback,
    ) -> Callable[[], None]:
        """Registra ``callback(business_id, data)``; retorna a função que cancela a assinatura."""
        key = _key(business_id, day)
        with self._lock:
            self._subscribers[key].append(callback)

        def unsubscribe() -> None:
            with self._lock:
                callbacks = self._subscribers.get(key, [])
                if callback in callbacks:
                    callbacks.remove(callback)
                if not callbacks:
                    self._subscribers.pop(key, None)

        return unsubscribe

    def subscriber_count(self, business_id: Union[UUID, str], day: Union[date, str]) -> int:
        with self._lock:
            return len(self._subscribers.get(_key(business_id, day), []))

    def notify(self, business_id: Union[UUID, str], day: Union[date, str]) -> int:
        """Chama os assinantes do dia. Erro de um callback não impede os demais."""
        key = _key(business_id, day)
        with self._lock:
            callbacks = list(self._subscribers.get(key, []))

        delivered = 0
        for callback in callbacks:
            try:
                callback(*key)
                delivered += 1
            except Exception:
                logger.exception("Assinante de disponibilidade falhou para %s em %s", *key)
        return delivered


def announce_appointment_change(
    event_type: str,
    payload: Dict[str, Any],
    *,
    business_id: UUID,
    day: date,
    publisher: Optional[EventPublisher] = None,
    cache: Optional[AvailabilityCache] = None,
    notifier: Optional[AvailabilityNotifier] = None,
) -> None:
    """Efeitos depois do commit: invalida o cache do dia e avisa quem observa.

    Com publisher configurado, o aviso aos assinantes sai pelo consumer do
    stream; sem ele, é feito aqui mesmo.
    """
    if cache is not None:
        cache.invalidate(business_id, day.isoformat())

    if publisher is not None:
        publisher.publish(event_type, payload, business_id=business_id)
    elif notifier is not None:
        notifier.notify(business_id, day)
