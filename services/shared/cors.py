"""CORS por ambiente: tudo liberado em desenvolvimento, lista explícita em produção."""

from __future__ import annotations

import logging
import os
from typing import List

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

logger = logging.getLogger(__name__)


def _environment() -> str:
    return os.getenv("ENVIRONMENT", os.getenv("ENV", "development")).lower()


def get_cors_origins() -> List[str]:
    """Lê ``CORS_ORIGINS`` (separado por vírgula).

    Raises:
        ValueError: em produção sem nenhuma origem configurada
    """
    origins = [origin.strip() for origin in os.getenv("CORS_ORIGINS", "").split(",") if origin.strip()]
    if origins:
        return origins

    if _environment() in ("production", "prod"):
        raise ValueError(
            "CORS_ORIGINS must be set in production, e.g. "
            "CORS_ORIGINS=https://zapagenda.example.com,https://painel.example.com"
        )

    logger.warning("CORS_ORIGINS not set. Using wildcard (*) for development.")
    return ["*"]


def configure_cors(app: FastAPI) -> None:
    origins = get_cors_origins()
    # com "*" o navegador recusa credentials
    allow_credentials = origins != ["*"] and os.getenv("CORS_ALLOW_CREDENTIALS", "false").lower() == "true"

    app.add_middleware(
        CORSMiddleware,
        allow_origins=origins,
        allow_credentials=allow_credentials,
        allow_methods=["GET", "POST", "PUT", "PATCH", "DELETE", "OPTIONS"],
        allow_headers=["*"],
        max_age=int(os.getenv("CORS_MAX_AGE", "600")),
    )
