import asyncio
import logging
import os
from contextlib import asynccontextmanager

from fastapi import FastAPI
from fastapi.openapi.utils import get_openapi
from app.core.database import Base, engine
from app.consumers import APPOINTMENT_EVENTS, make_availability_handler
from app.routers import availability, bookings, businesses, clients
from app.services.notifications import AvailabilityNotifier
from shared import EventConsumer, EventPublisher, cleanup_consumer, load_service_config, utc_now, wait_for_database
from shared.cache import AvailabilityCache, create_redis_cache
from shared.cors import configure_cors
from shared.health import create_health_router
from shared.logging import RequestContextLogMiddleware, configure_logging

configure_logging("agenda")
logger = logging.getLogger(__name__)

tags_metadata = [
    {"name": "Businesses", "description": "Estabelecimentos, configurações, horários e serviços."},
    {"name": "Availability", "description": "Horários livres por data, datas abertas e ocupação."},
    {"name": "Bookings", "description": "Reservas, limites por cliente, conflitos e cancelamentos."},
    {"name": "Clients", "description": "Cadastro por telefone e consolidação de duplicados."},
]

_CONFIG = load_service_config("agenda")
_ROOT_PATH = os.getenv("APP_ROOT_PATH", "")
_EVENT_PUBLISHER = EventPublisher(_CONFIG.redis.url, _CONFIG.redis.stream) if _CONFIG.redis.url else None
_REDIS_CACHE = create_redis_cache(_CONFIG.redis.url)
_AVAILABILITY_CACHE = AvailabilityCache(_REDIS_CACHE, ttl=_CONFIG.booking.availability_cache_ttl)
_NOTIFIER = AvailabilityNotifier()

_consumer: EventConsumer | None = None
_consumer_task: asyncio.Task | None = None


@asynccontextmanager
async def app_lifespan(app: FastAPI):
    """Banco com retentativas e consumer de eventos de agendamento."""
    global _consumer, _consumer_task

    logger.info("Starting Agenda Service...")
    await wait_for_database(lambda: Base.metadata.create_all(bind=engine), service_name="agenda")

    if _CONFIG.redis.url:
        _consumer = EventConsumer(
            redis_url=_CONFIG.redis.url,
            stream_name=_CONFIG.redis.stream,
            group_name="agenda-availability",
            consumer_name=os.getenv("CONSUMER_NAME", "agenda-worker-1"),
        )
        handler = make_availability_handler(app.state.availability_cache, app.state.notifier)
        for event_type in APPOINTMENT_EVENTS:
            _consumer.register_handler(event_type, handler)

        _consumer_task = asyncio.create_task(_consumer.start())
        logger.info("Appointment event consumer started")

    yield

    await cleanup_consumer(_consumer, _consumer_task, logger)
    logger.info("Agenda Service stopped")


app = FastAPI(
    title="Agenda Service",
    version="0.1.0",
    description="Disponibilidade de horários, reservas sem conflito e cadastro de clientes por telefone.",
    openapi_tags=tags_metadata,
    root_path=_ROOT_PATH,
    lifespan=app_lifespan,
)

configure_cors(app)
app.add_middleware(RequestContextLogMiddleware)

app.state.config = _CONFIG
app.state.event_publisher = _EVENT_PUBLISHER
app.state.availability_cache = _AVAILABILITY_CACHE
app.state.notifier = _NOTIFIER
app.state.clock = utc_now


def custom_openapi_schema():
    if app.openapi_schema:
        return app.openapi_schema
    schema = get_openapi(
        title=app.title,
        version=app.version,
        description=app.description,
        routes=app.routes,
        tags=tags_metadata,
    )
    app.openapi_schema = schema
    return app.openapi_schema


app.openapi = custom_openapi_schema

app.include_router(create_health_router("agenda", database_engine=engine, redis_client=_REDIS_CACHE))
app.include_router(businesses.router)
app.include_router(availability.router)
app.include_router(bookings.router)
app.include_router(clients.router)


@app.get("/")
def root():
    return {
        "service": "agenda",
        "status": "ok",
        "docs_url": "/docs",
        "config": {
            "redis_stream": _CONFIG.redis.stream,
            "cache_enabled": _AVAILABILITY_CACHE.enabled,
        },
    }
