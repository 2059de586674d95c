"""Normalização de telefones brasileiros.

A forma canônica é sempre ``55`` + DDD + assinante (10 ou 11 dígitos), usada
como chave de busca e deduplicação de clientes.
"""

from __future__ import annotations

import re
from typing import Optional

COUNTRY_CODE = "55"
MIN_VALID_DIGITS = 10

_NON_DIGITS = re.compile(r"\D")


def normalize_phone(phone: Optional[str]) -> str:
    """Canonicaliza um telefone livre; entradas degeneradas voltam só com os dígitos.

    >>> normalize_phone("(11) 99999-1111")
    '5511999991111'
    >>> normalize_phone("055 11 99999-1111")
    '5511999991111'
    """
    if not phone:
        return ""

    digits = _NON_DIGITS.sub("", phone)

    # prefixos de discagem: 0 de tronco (0 + DDD + número) ou internacional (0 + 55 ...)
    if digits.startswith("0"):
        stripped = digits.lstrip("0")
        if len(stripped) in (10, 11) or (
            len(stripped) in (12, 13) and stripped.startswith(COUNTRY_CODE)
        ):
            digits = stripped

    if len(digits) in (12, 13) and digits.startswith(COUNTRY_CODE):
        digits = digits[len(COUNTRY_CODE):]

    if len(digits) in (10, 11):
        return COUNTRY_CODE + digits

    return digits


def is_usable_key(normalized: str) -> bool:
    return len(normalized) >= MIN_VALID_DIGITS


def _local_part(phone: Optional[str]) -> str:
    normalized = normalize_phone(phone)
    if normalized.startswith(COUNTRY_CODE) and len(normalized) in (12, 13):
        return normalized[len(COUNTRY_CODE):]
    return normalized


def format_phone_for_display(phone: Optional[str]) -> str:
    local = _local_part(phone)
    if len(local) == 10:
        return f"({local[:2]}) {local[2:6]}-{local[6:]}"
    if len(local) == 11:
        return f"({local[:2]}) {local[2:7]}-{local[7:]}"
    return phone or ""
