import json
import redis
from unittest.mock import MagicMock, patch

from api.cache import cache_key, get_cached, is_cache_healthy, set_cached


def test_cache_key_depends_on_payload_and_namespace():
    key = cache_key('{"pages": []}')
    assert key.startswith("audit:")
    assert key == cache_key('{"pages": []}')
    assert key != cache_key('{"pages": [1]}')
    assert cache_key('{"pages": []}', namespace="crawl-audit").startswith("crawl-audit:")


def test_get_cached_without_redis():
    with patch("api.cache.get_client", return_value=None):
        assert get_cached("audit:x") is None


def test_get_cached_decodes_json():
    client = MagicMock()
    client.get.return_value = json.dumps({"report": {"total_pages": 2}})
    with patch("api.cache.get_client", return_value=client):
        assert get_cached("audit:x") == {"report": {"total_pages": 2}}


def test_get_cached_discards_unreadable_entry():
    client = MagicMock()
    client.get.return_value = "{not json"
    with patch("api.cache.get_client", return_value=client):
        assert get_cached("audit:x") is None


def test_get_cached_survives_redis_errors():
    client = MagicMock()
    client.get.side_effect = redis.ConnectionError("gone")
    with patch("api.cache.get_client", return_value=client):
        assert get_cached("audit:x") is None


def test_set_cached_writes_with_ttl():
    client = MagicMock()
    with patch("api.cache.get_client", return_value=client):
        set_cached("audit:x", {"cached": False}, ttl=60)
    client.setex.assert_called_once_with("audit:x", 60, '{"cached": false}')


def test_set_cached_survives_redis_errors():
    client = MagicMock()
    client.setex.side_effect = redis.TimeoutError("slow")
    with patch("api.cache.get_client", return_value=client):
        set_cached("audit:x", {})


def test_health_reflects_ping():
    client = MagicMock()
    client.ping.side_effect = redis.ConnectionError("gone")
    with patch("api.cache.get_client", return_value=client):
        assert is_cache_healthy() is False
    with patch("api.cache.get_client", return_value=None):
        assert is_cache_healthy() is False
