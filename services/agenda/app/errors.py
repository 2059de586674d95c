"""Falhas tipadas do agendamento.

Cada classe é um ``HTTPException`` com mensagem pronta para o usuário, para
que rotas e serviços levantem o mesmo erro e o FastAPI o serialize.
"""

from __future__ import annotations

from typing import Any, Optional

from fastapi import HTTPException, status


class AgendaError(HTTPException):
    status_code = status.HTTP_400_BAD_REQUEST
    error = "agenda_error"

    def __init__(self, message: str, **extra: Any) -> None:
        self.message = message
        self.extra = extra
        detail = {"error": self.error, "message": message, **extra}
        super().__init__(status_code=self.status_code, detail=detail)


class InvalidBookingInput(AgendaError):
    status_code = status.HTTP_400_BAD_REQUEST
    error = "invalid_input"


class InvalidStatusTransition(AgendaError):
    status_code = status.HTTP_400_BAD_REQUEST
    error = "invalid_status_transition"


class BusinessNotFound(AgendaError):
    status_code = status.HTTP_404_NOT_FOUND
    error = "business_not_found"

    def __init__(self, message: str = "Estabelecimento não encontrado") -> None:
        super().__init__(message)


class ServiceNotFound(AgendaError):
    status_code = status.HTTP_404_NOT_FOUND
    error = "service_not_found"

    def __init__(self, message: str = "Serviço não encontrado ou inativo") -> None:
        super().__init__(message)


class ClientNotFound(AgendaError):
    status_code = status.HTTP_404_NOT_FOUND
    error = "client_not_found"

    def __init__(self, message: str = "Cliente não encontrado") -> None:
        super().__init__(message)


class AppointmentNotFound(AgendaError):
    status_code = status.HTTP_404_NOT_FOUND
    error = "appointment_not_found"

    def __init__(self, message: str = "Agendamento não encontrado") -> None:
        super().__init__(message)


class SlugAlreadyTaken(AgendaError):
    status_code = status.HTTP_409_CONFLICT
    error = "slug_taken"

    def __init__(self, slug: str) -> None:
        super().__init__(f"O endereço '{slug}' já está em uso.", slug=slug)


class BookingLimitExceeded(AgendaError):
    status_code = status.HTTP_422_UNPROCESSABLE_ENTITY
    error = "limit_exceeded"

    def __init__(self, message: str, limits: dict) -> None:
        super().__init__(message, limits=limits)


class SlotConflict(AgendaError):
    status_code = status.HTTP_409_CONFLICT
    error = "conflict"

    def __init__(self, message: str, conflict: Optional[dict] = None) -> None:
        super().__init__(message, conflict=conflict)


class StoreUnavailable(AgendaError):
    status_code = status.HTTP_503_SERVICE_UNAVAILABLE
    error = "store_unavailable"
    retryable = True

    def __init__(self, message: str = "Serviço temporariamente indisponível. Tente novamente.") -> None:
        super().__init__(message, retryable=True)


class ClientUpsertExhausted(StoreUnavailable):
    error = "client_upsert_exhausted"

    def __init__(self, attempts: int) -> None:
        AgendaError.__init__(
            self,
            "Não foi possível registrar o cliente. Tente novamente.",
            retryable=True,
            attempts=attempts,
        )
