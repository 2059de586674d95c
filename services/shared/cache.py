"""Cache Redis para disponibilidade de horários.

O cache é um objeto explícito, injetado pelo chamador (``app.state``), com
chave ``(business_id, data, duração)`` e expiração por TTL. Sem Redis
configurado, todas as operações viram no-op.
"""

from __future__ import annotations

import json
import logging
from typing import Any, Dict, List, Optional
from uuid import UUID

import redis

logger = logging.getLogger(__name__)

AVAILABILITY_CACHE_PREFIX = "availability:business:"


def create_redis_cache(redis_url: Optional[str]) -> Optional[redis.Redis]:
    """Cria cliente Redis para cache.

    Args:
        redis_url: URL de conexão Redis (ou None se não configurado)

    Returns:
        Cliente Redis ou None se não disponível
    """
    if not redis_url or not redis_url.strip():
        return None

    try:
        return redis.Redis.from_url(redis_url, decode_responses=True)
    except (redis.RedisError, ValueError):
        logger.warning("URL Redis inválida para cache: %s", redis_url)
        return None


class AvailabilityCache:
    """Memoização com expiração da lista de horários de um dia."""

    def __init__(self, client: Optional[redis.Redis], *, ttl: int = 60) -> None:
        self._client = client
        self._ttl = ttl

    @property
    def enabled(self) -> bool:
        return self._client is not None

    @property
    def ttl(self) -> int:
        return self._ttl

    @staticmethod
    def _day_prefix(business_id: UUID, date_str: str) -> str:
        return f"{AVAILABILITY_CACHE_PREFIX}{business_id}:{date_str}"

    def _key(self, business_id: UUID, date_str: str, duration: Optional[int]) -> str:
        return f"{self._day_prefix(business_id, date_str)}:{duration or 'default'}"

    def get(
        self,
        business_id: UUID,
        date_str: str,
        duration: Optional[int] = None,
    ) -> Optional[Dict[str, Any]]:
        """Recupera a disponibilidade cacheada, ou None em miss/erro."""
        if self._client is None:
            return None

        try:
            cached_data = self._client.get(self._key(business_id, date_str, duration))
        except redis.RedisError:
            logger.warning("Falha ao ler cache de disponibilidade", exc_info=True)
            return None

        if cached_data is None:
            return None
        try:
            return json.loads(cached_data)
        except (TypeError, ValueError):
            return None

    def set(
        self,
        business_id: UUID,
        date_str: str,
        availability: Dict[str, Any],
        duration: Optional[int] = None,
    ) -> bool:
        """Armazena a disponibilidade com TTL. Retorna True se armazenou."""
        if self._client is None:
            return False

        try:
            self._client.set(
                self._key(business_id, date_str, duration),
                json.dumps(availability, default=str),
                ex=self._ttl,
            )
            return True
        except redis.RedisError:
            logger.warning("Falha ao gravar cache de disponibilidade", exc_info=True)
            return False

    def invalidate(self, business_id: UUID, date_str: Optional[str] = None) -> bool:
        """Invalida um dia específico, ou todos os dias do negócio quando ``date_str`` é None."""
        if self._client is None:
            return False

        if date_str:
            pattern = f"{self._day_prefix(business_id, date_str)}:*"
        else:
            pattern = f"{AVAILABILITY_CACHE_PREFIX}{business_id}:*"

        try:
            keys: List[str] = list(self._client.scan_iter(match=pattern))
            if keys:
                self._client.delete(*keys)
            return True
        except redis.RedisError:
            logger.warning("Falha ao invalidar cache de disponibilidade", exc_info=True)
            return False
