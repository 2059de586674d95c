"""Async startup helpers shared by FastAPI services."""

from __future__ import annotations

import asyncio
import logging
from typing import Callable

from sqlalchemy.exc import OperationalError

logger = logging.getLogger(__name__)


async def wait_for_database(
    create_schema: Callable[[], None],
    *,
    service_name: str,
    retries: int = 10,
    wait_seconds: float = 2.0,
) -> None:
    """Run ``create_schema`` in a worker thread, retrying while the database is down.

    The last ``OperationalError`` propagates after ``retries`` attempts.
    """
    for attempt in range(1, retries + 1):
        try:
            await asyncio.to_thread(create_schema)
            return
        except OperationalError as exc:
            if attempt == retries:
                logger.error("[%s] Banco indisponível após %d tentativas, desistindo.", service_name, retries)
                raise
            logger.warning(
                "[%s] Banco indisponível, aguardando %.1fs... tentativa %d: %s",
                service_name,
                wait_seconds,
                attempt,
                exc,
            )
            await asyncio.sleep(wait_seconds)
