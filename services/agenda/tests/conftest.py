import fnmatch
import os
import sys
from datetime import datetime, time, timezone
from pathlib import Path
import pytest
from fastapi.testclient import TestClient

SERVICE_DIR = Path(__file__).resolve().parents[1]
ROOT_DIR = SERVICE_DIR.parent.parent

service_path = str(SERVICE_DIR)
shared_path = str(ROOT_DIR / "services")
for path in (service_path, shared_path):
    if path in sys.path:
        sys.path.remove(path)
    sys.path.insert(0, path)

for module_name in list(sys.modules):
    if module_name == "app" or module_name.startswith("app."):
        sys.modules.pop(module_name)

os.environ.setdefault("AGENDA_DATABASE_URL", f"sqlite:///{SERVICE_DIR / 'test_agenda.db'}")
os.environ.setdefault("EVENT_STREAM", "test-stream")
# sem Redis: publisher, cache e consumer ficam desligados
os.environ["REDIS_URL"] = ""
os.environ["UPSERT_BACKOFF_SECONDS"] = "0"

from app.main import app  # noqa: E402
from app.core.database import Base, SessionLocal, engine  # noqa: E402
from app.models import Business, CompanySettings  # noqa: E402
from app.services.notifications import AvailabilityNotifier  # noqa: E402
from shared.cache import AvailabilityCache  # noqa: E402

# segunda-feira, 06/01/2025, 12:00 em São Paulo (UTC-3)
FIXED_NOW = datetime(2025, 1, 6, 15, 0, tzinfo=timezone.utc)


@pytest.fixture(autouse=True)
def prepare_database():
    Base.metadata.drop_all(bind=engine)
    Base.metadata.create_all(bind=engine)
    yield
    Base.metadata.drop_all(bind=engine)


@pytest.fixture
def db():
    session = SessionLocal()
    try:
        yield session
    finally:
        session.close()


@pytest.fixture
def notifier():
    return AvailabilityNotifier()


@pytest.fixture
def client(notifier):
    app.state.event_publisher = None
    app.state.notifier = notifier
    app.state.clock = lambda: FIXED_NOW

    with TestClient(app) as test_client:
        yield test_client


@pytest.fixture
def make_business(db):
    """Cria estabelecimento com configurações; sobrescreva campos de CompanySettings por kwargs."""

    def _make(slug="barbearia", is_admin=False, **settings_overrides):
        settings = {
            "timezone": "America/Sao_Paulo",
            "working_days": [1, 2, 3, 4, 5],
            "working_hours_start": time(9, 0),
            "working_hours_end": time(18, 0),
            "lunch_break_enabled": False,
            "appointment_interval": 30,
            "advance_booking_limit": 30,
            "same_day_booking": True,
            "max_simultaneous_appointments": 3,
            "monthly_appointments_limit": None,
        }
        settings.update(settings_overrides)
        business = Business(name=slug.replace("-", " ").title(), slug=slug, is_admin=is_admin)
        business.settings = CompanySettings(**settings)
        db.add(business)
        db.commit()
        db.refresh(business)
        return business

    return _make


class FakeRedis:
    """Subconjunto do cliente Redis usado pelo cache, guardado em memória."""

    def __init__(self):
        self.store = {}

    def get(self, key):
        return self.store.get(key)

    def set(self, key, value, ex=None):
        self.store[key] = value
        return True

    def scan_iter(self, match="*"):
        return [key for key in list(self.store) if fnmatch.fnmatchcase(key, match)]

    def delete(self, *keys):
        removed = 0
        for key in keys:
            removed += self.store.pop(key, None) is not None
        return removed


@pytest.fixture
def redis_cache(client):
    cache = AvailabilityCache(FakeRedis(), ttl=60)
    previous = app.state.availability_cache
    app.state.availability_cache = cache
    try:
        yield cache
    finally:
        app.state.availability_cache = previous


@pytest.fixture
def anyio_backend():
    """The consumer code and these tests are asyncio-based."""
    return "asyncio"
