"""Testes para o cache Redis de disponibilidade."""

import json
from unittest.mock import MagicMock
from uuid import uuid4

import pytest
import redis

from shared.cache import AVAILABILITY_CACHE_PREFIX, AvailabilityCache, create_redis_cache


class TestRedisCache:
    """Testes para criação do cliente Redis."""

    def test_create_redis_cache_with_url(self):
        """O cliente é criado sem conectar; a conexão só acontece no primeiro comando."""
        assert create_redis_cache("redis://localhost:6379") is not None

    @pytest.mark.parametrize("url", [None, "", "   "])
    def test_create_redis_cache_without_url(self, url):
        assert create_redis_cache(url) is None


class TestAvailabilityCache:
    @pytest.fixture
    def mock_redis(self):
        return MagicMock()

    @pytest.fixture
    def business_id(self):
        return uuid4()

    def test_disabled_cache_is_a_no_op(self, business_id):
        cache = AvailabilityCache(None)

        assert cache.enabled is False
        assert cache.get(business_id, "2025-01-10") is None
        assert cache.set(business_id, "2025-01-10", {"slots": []}) is False
        assert cache.invalidate(business_id, "2025-01-10") is False

    def test_set_uses_ttl_and_duration_in_key(self, mock_redis, business_id):
        cache = AvailabilityCache(mock_redis, ttl=120)

        stored = cache.set(business_id, "2025-01-10", {"is_open": True, "slots": ["09:00"]}, duration=60)

        assert stored is True
        key, value = mock_redis.set.call_args.args
        assert key == f"{AVAILABILITY_CACHE_PREFIX}{business_id}:2025-01-10:60"
        assert json.loads(value) == {"is_open": True, "slots": ["09:00"]}
        assert mock_redis.set.call_args.kwargs["ex"] == 120

    def test_get_hit_and_miss(self, mock_redis, business_id):
        cache = AvailabilityCache(mock_redis)

        mock_redis.get.return_value = None
        assert cache.get(business_id, "2025-01-10") is None

        mock_redis.get.return_value = json.dumps({"is_open": True, "slots": ["10:00"]})
        assert cache.get(business_id, "2025-01-10") == {"is_open": True, "slots": ["10:00"]}
        mock_redis.get.assert_called_with(f"{AVAILABILITY_CACHE_PREFIX}{business_id}:2025-01-10:default")

    def test_corrupted_entry_is_a_miss(self, mock_redis, business_id):
        mock_redis.get.return_value = "{quebrado"

        assert AvailabilityCache(mock_redis).get(business_id, "2025-01-10") is None

    def test_redis_errors_degrade_to_miss(self, mock_redis, business_id):
        mock_redis.get.side_effect = redis.ConnectionError("down")
        mock_redis.set.side_effect = redis.ConnectionError("down")
        mock_redis.scan_iter.side_effect = redis.ConnectionError("down")
        cache = AvailabilityCache(mock_redis)

        assert cache.get(business_id, "2025-01-10") is None
        assert cache.set(business_id, "2025-01-10", {"slots": []}) is False
        assert cache.invalidate(business_id, "2025-01-10") is False

    def test_invalidate_day_removes_every_duration(self, mock_redis, business_id):
        prefix = f"{AVAILABILITY_CACHE_PREFIX}{business_id}:2025-01-10"
        mock_redis.scan_iter.return_value = iter([f"{prefix}:default", f"{prefix}:60"])

        assert AvailabilityCache(mock_redis).invalidate(business_id, "2025-01-10") is True

        mock_redis.scan_iter.assert_called_once_with(match=f"{prefix}:*")
        mock_redis.delete.assert_called_once_with(f"{prefix}:default", f"{prefix}:60")

    def test_invalidate_whole_business(self, mock_redis, business_id):
        mock_redis.scan_iter.return_value = iter([])

        AvailabilityCache(mock_redis).invalidate(business_id)

        mock_redis.scan_iter.assert_called_once_with(match=f"{AVAILABILITY_CACHE_PREFIX}{business_id}:*")
        mock_redis.delete.assert_not_called()
