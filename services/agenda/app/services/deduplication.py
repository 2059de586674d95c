"""Consolidação de clientes duplicados por telefone normalizado.

Operação de manutenção, idempotente: rodar duas vezes seguidas encontra zero
duplicados na segunda. Cada grupo é consolidado na sua própria transação.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Dict, Iterable, List, Optional
from uuid import UUID

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from app.models.appointment import Appointment
from app.models.client import Client
from app.services.phone import is_usable_key, normalize_phone
from shared import EventPublisher

logger = logging.getLogger(__name__)

_EPOCH = datetime.min.replace(tzinfo=timezone.utc)


@dataclass
class DeduplicationSummary:
    duplicates_found: int = 0
    duplicates_removed: int = 0
    clients_consolidated: int = 0

    def as_dict(self) -> dict:
        return {
            "duplicatesFound": self.duplicates_found,
            "duplicatesRemoved": self.duplicates_removed,
            "clientsConsolidated": self.clients_consolidated,
        }


@dataclass(frozen=True)
class MergedFields:
    name: str
    email: Optional[str]
    notes: Optional[str]


def _created_key(client: Client):
    created = client.created_at
    if created is None:
        return (_EPOCH, str(client.id))
    if created.tzinfo is None:
        created = created.replace(tzinfo=timezone.utc)
    return (created, str(client.id))


def group_clients_by_phone(clients: Iterable[Client]) -> Dict[str, List[Client]]:
    """Agrupa por telefone normalizado, do mais antigo para o mais novo.

    Telefones que não normalizam para uma chave utilizável ficam de fora.
    """
    groups: Dict[str, List[Client]] = {}
    for client in sorted(clients, key=_created_key):
        key = normalize_phone(client.phone)
        if not is_usable_key(key):
            continue
        groups.setdefault(key, []).append(client)
    return groups


def _first_filled(values: Iterable[Optional[str]]) -> Optional[str]:
    for value in values:
        if value and value.strip():
            return value
    return None


def merge_fields(canonical: Client, duplicates: List[Client]) -> MergedFields:
    members = [canonical, *duplicates]
    # nome mais longo = mais completo; empate fica com o mais antigo
    name = max((member.name or "" for member in members), key=len)
    return MergedFields(
        name=name or canonical.name,
        email=_first_filled(member.email for member in members),
        notes=_first_filled(member.notes for member in members),
    )


def _consolidate_group(db: Session, key: str, canonical: Client, duplicates: List[Client]) -> int:
    duplicate_ids = [dup.id for dup in duplicates]
    merged = merge_fields(canonical, duplicates)

    moved = (
        db.query(Appointment)
        .filter(Appointment.client_id.in_(duplicate_ids))
        .update({Appointment.client_id: canonical.id}, synchronize_session=False)
    )

    for duplicate in duplicates:
        db.delete(duplicate)
    # os duplicados saem antes de a chave canônica ser gravada no sobrevivente
    db.flush()

    canonical.name = merged.name
    canonical.email = merged.email
    canonical.notes = merged.notes
    canonical.normalized_phone = key
    db.commit()

    logger.info(
        "Cliente %s consolidado: %d duplicado(s) removido(s), %d agendamento(s) migrado(s)",
        canonical.id,
        len(duplicates),
        moved,
    )
    return len(duplicates)


def deduplicate_clients(
    db: Session,
    business_id: UUID,
    *,
    publisher: Optional[EventPublisher] = None,
) -> DeduplicationSummary:
    clients = (
        db.query(Client)
        .filter(Client.business_id == business_id)
        .order_by(Client.created_at.asc())
        .all()
    )

    summary = DeduplicationSummary()
    for key, members in group_clients_by_phone(clients).items():
        if len(members) < 2:
            continue
        canonical, duplicates = members[0], members[1:]
        summary.duplicates_found += len(duplicates)
        try:
            summary.duplicates_removed += _consolidate_group(db, key, canonical, duplicates)
        except SQLAlchemyError:
            db.rollback()
            logger.exception("Falha ao consolidar clientes com telefone %s (business_id=%s)", key, business_id)
            raise
        summary.clients_consolidated += 1

    logger.info("Deduplicação de business_id=%s: %s", business_id, summary.as_dict())

    if publisher is not None and summary.duplicates_found:
        publisher.publish(
            "clients.deduplicated",
            summary.as_dict(),
            business_id=business_id,
        )
    return summary


def list_unique_clients(db: Session, business_id: UUID) -> List[Client]:
    """Um cliente por telefone normalizado (o mais recente), ordenado por nome."""
    clients = db.query(Client).filter(Client.business_id == business_id).all()

    latest: Dict[str, Client] = {}
    for client in sorted(clients, key=_created_key):
        key = normalize_phone(client.phone) or str(client.id)
        latest[key] = client

    return sorted(latest.values(), key=lambda client: (client.name or "").casefold())
