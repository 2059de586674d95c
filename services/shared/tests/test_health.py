"""Testes para endpoints de health check (/health e /ready)."""

from unittest.mock import MagicMock

import redis
from fastapi import FastAPI, status
from fastapi.testclient import TestClient
from sqlalchemy import create_engine
from sqlalchemy.pool import StaticPool

from shared.health import check_database_health, check_redis_health, create_health_router


def _memory_engine():
    return create_engine(
        "sqlite:///:memory:",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )


def _broken_engine():
    return create_engine("sqlite:////diretorio/que/nao/existe/agenda.db")


def _app(engine, redis_client=None) -> TestClient:
    app = FastAPI()
    app.include_router(create_health_router("agenda", database_engine=engine, redis_client=redis_client))
    return TestClient(app)


class TestDatabaseHealthCheck:
    """Testes para verificação de saúde do banco de dados."""

    def test_check_database_health_success(self):
        assert check_database_health(_memory_engine()) is True

    def test_check_database_health_failure(self):
        """Banco inacessível vira False, sem exceção."""
        assert check_database_health(_broken_engine()) is False

    def test_check_database_health_without_engine(self):
        assert check_database_health(None) is False


class TestRedisHealthCheck:
    """Testes para verificação de saúde do Redis."""

    def test_check_redis_health_success(self):
        mock_redis = MagicMock()
        mock_redis.ping.return_value = True

        assert check_redis_health(mock_redis) is True
        mock_redis.ping.assert_called_once()

    def test_check_redis_health_failure(self):
        mock_redis = MagicMock()
        mock_redis.ping.side_effect = redis.ConnectionError("Connection refused")

        assert check_redis_health(mock_redis) is False

    def test_check_redis_health_not_configured(self):
        """Sem Redis configurado o check não se aplica."""
        assert check_redis_health(None) is None


class TestHealthEndpoints:
    """Testes para os endpoints /health e /ready."""

    def test_health_endpoint_ignores_dependencies(self):
        client = _app(_broken_engine())

        response = client.get("/health")

        assert response.status_code == status.HTTP_200_OK
        assert response.json()["status"] == "ok"
        assert response.json()["service"] == "agenda"
        assert "timestamp" in response.json()

    def test_ready_endpoint_with_database_and_no_redis(self):
        client = _app(_memory_engine())

        response = client.get("/ready")

        assert response.status_code == status.HTTP_200_OK
        assert response.json()["status"] == "ready"
        assert response.json()["checks"] == {"database": True, "redis": None}

    def test_ready_endpoint_database_down(self):
        client = _app(_broken_engine())

        response = client.get("/ready")

        assert response.status_code == status.HTTP_503_SERVICE_UNAVAILABLE
        assert response.json()["status"] == "not_ready"
        assert response.json()["checks"]["database"] is False

    def test_ready_endpoint_redis_down(self):
        mock_redis = MagicMock()
        mock_redis.ping.side_effect = redis.ConnectionError("Connection refused")
        client = _app(_memory_engine(), mock_redis)

        response = client.get("/ready")

        assert response.status_code == status.HTTP_503_SERVICE_UNAVAILABLE
        assert response.json()["checks"] == {"database": True, "redis": False}
