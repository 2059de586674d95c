"""structlog setup and per-request log context for the agenda HTTP API."""

from __future__ import annotations

import logging
import sys
import time
from typing import Iterable, Optional
from uuid import uuid4

from starlette.middleware.base import BaseHTTPMiddleware
from starlette.requests import Request
from starlette.responses import Response
import structlog


BUSINESS_HEADER = "X-Business-ID"
REQUEST_ID_HEADER = "X-Request-ID"
TRACE_ID_HEADER = "X-Trace-ID"

# health checks de orquestração não geram linha de log
QUIET_PATHS = frozenset({"/health", "/ready"})


def configure_logging(service_name: str, level: int = logging.INFO) -> structlog.stdlib.BoundLogger:
    """JSON logs on stdout, with contextvars (request/business ids) merged in."""

    if not logging.root.handlers:
        logging.basicConfig(format="%(message)s", stream=sys.stdout, level=level)

    structlog.configure(
        processors=[
            structlog.contextvars.merge_contextvars,
            structlog.stdlib.add_logger_name,
            structlog.stdlib.add_log_level,
            structlog.processors.TimeStamper(fmt="iso", utc=True),
            structlog.processors.StackInfoRenderer(),
            structlog.processors.format_exc_info,
            structlog.processors.JSONRenderer(),
        ],
        logger_factory=structlog.stdlib.LoggerFactory(),
        wrapper_class=structlog.stdlib.BoundLogger,
        cache_logger_on_first_use=True,
    )

    return structlog.get_logger().bind(service=service_name)


class RequestContextLogMiddleware(BaseHTTPMiddleware):
    """Bind request, trace and business ids for every log line of a request.

    One ``request_completed`` line is written per request with the status and
    the elapsed time; health checks in ``quiet_paths`` are not logged.
    """

    def __init__(
        self,
        app,
        *,
        logger: Optional[structlog.stdlib.BoundLogger] = None,
        quiet_paths: Iterable[str] = QUIET_PATHS,
    ) -> None:
        super().__init__(app)
        self._logger = logger or structlog.get_logger()
        self._quiet_paths = frozenset(quiet_paths)

    async def dispatch(self, request: Request, call_next) -> Response:
        request_id = request.headers.get(REQUEST_ID_HEADER) or str(uuid4())
        path = request.url.path

        structlog.contextvars.bind_contextvars(
            request_id=request_id,
            trace_id=request.headers.get(TRACE_ID_HEADER) or request_id,
            business_id=request.headers.get(BUSINESS_HEADER) or request.query_params.get("business_id"),
            path=path,
            method=request.method,
        )

        started = time.perf_counter()
        try:
            response = await call_next(request)
        except Exception:
            self._logger.exception("request_failed", duration_ms=_elapsed_ms(started))
            raise
        else:
            if path not in self._quiet_paths:
                self._logger.info(
                    "request_completed",
                    status_code=response.status_code,
                    duration_ms=_elapsed_ms(started),
                )
            response.headers[REQUEST_ID_HEADER] = request_id
            return response
        finally:
            structlog.contextvars.clear_contextvars()


def _elapsed_ms(started: float) -> float:
    return round((time.perf_counter() - started) * 1000, 2)
