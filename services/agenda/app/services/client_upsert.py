"""Cadastro de cliente no momento da reserva, seguro contra corrida.

A constraint única ``(business_id, normalized_phone)`` decide quem ganha:
quem perde a corrida no insert recebe ``IntegrityError``, espera um pouco e
volta a buscar, encontrando a linha gravada pelo concorrente.
"""

from __future__ import annotations

import logging
import time
from dataclasses import dataclass
from typing import Callable, Optional
from uuid import UUID

from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from app.errors import ClientUpsertExhausted, InvalidBookingInput
from app.models.client import CLIENT_PHONE_CONSTRAINT, Client
from app.services.phone import is_usable_key, normalize_phone

logger = logging.getLogger(__name__)


@dataclass
class UpsertResult:
    client: Client
    is_new: bool
    attempts: int = 1


def find_client_by_phone(db: Session, business_id: UUID, normalized_phone: str) -> Optional[Client]:
    return (
        db.query(Client)
        .filter(Client.business_id == business_id)
        .filter(Client.normalized_phone == normalized_phone)
        .first()
    )


def is_phone_unique_violation(exc: IntegrityError) -> bool:
    """True quando a falha é a constraint de telefone (Postgres ou SQLite)."""
    orig = getattr(exc, "orig", None)
    diag = getattr(orig, "diag", None)
    if getattr(diag, "constraint_name", None) == CLIENT_PHONE_CONSTRAINT:
        return True
    message = str(orig if orig is not None else exc)
    if CLIENT_PHONE_CONSTRAINT in message:
        return True
    return "UNIQUE constraint failed" in message and "clients.normalized_phone" in message


def upsert_client(
    db: Session,
    business_id: UUID,
    name: str,
    phone: str,
    *,
    email: Optional[str] = None,
    notes: Optional[str] = None,
    max_attempts: int = 3,
    backoff_seconds: float = 0.2,
    sleep: Callable[[float], None] = time.sleep,
) -> UpsertResult:
    """Busca por telefone normalizado; atualiza se existe, insere se não.

    Faz commit da própria escrita. Email e observações só são sobrescritos
    quando informados.
    """
    normalized = normalize_phone(phone)
    if not is_usable_key(normalized):
        raise InvalidBookingInput("Telefone inválido. Informe DDD e número.", phone=phone)

    last_error: Optional[IntegrityError] = None
    for attempt in range(1, max_attempts + 1):
        existing = find_client_by_phone(db, business_id, normalized)
        if existing is not None:
            existing.name = name
            existing.phone = phone
            existing.normalized_phone = normalized
            if email is not None:
                existing.email = email
            if notes is not None:
                existing.notes = notes
            db.commit()
            db.refresh(existing)
            if attempt > 1:
                logger.info(
                    "Corrida resolvida para business_id=%s na tentativa %d: cliente %s",
                    business_id,
                    attempt,
                    existing.id,
                )
            return UpsertResult(client=existing, is_new=False, attempts=attempt)

        client = Client(
            business_id=business_id,
            name=name,
            phone=phone,
            normalized_phone=normalized,
            email=email,
            notes=notes,
        )
        db.add(client)
        try:
            db.commit()
        except IntegrityError as exc:
            db.rollback()
            if not is_phone_unique_violation(exc):
                raise
            last_error = exc
            logger.warning(
                "Telefone já cadastrado por requisição concorrente (business_id=%s, tentativa %d/%d)",
                business_id,
                attempt,
                max_attempts,
            )
            if attempt < max_attempts:
                sleep(backoff_seconds * attempt)
            continue

        db.refresh(client)
        return UpsertResult(client=client, is_new=True, attempts=attempt)

    logger.error("Upsert de cliente esgotou %d tentativas (business_id=%s)", max_attempts, business_id)
    raise ClientUpsertExhausted(max_attempts) from last_error
