"""
Redis 列表缓存测试（redis 客户端使用 mock）
"""

import json
from unittest import mock

import redis

from app.core.cache import ResponseCache


def make_cache(client=None):
    cache = ResponseCache()
    cache.key_prefix = "test:"
    cache.redis_client = client
    return cache


def test_disabled_cache_is_noop():
    cache = make_cache()
    assert cache.enabled is False
    assert cache.get_json("games:list") is None
    assert cache.set_json("games:list", {"games": []}) is False
    assert cache.invalidate("games:") == 0


def test_get_and_set_json():
    client = mock.Mock()
    client.get.return_value = json.dumps({"count": 1})
    cache = make_cache(client)

    assert cache.get_json("games:list") == {"count": 1}
    client.get.assert_called_once_with("test:games:list")

    assert cache.set_json("games:list", {"count": 2}, ttl=60) is True
    client.setex.assert_called_once_with("test:games:list", 60, json.dumps({"count": 2}))


def test_corrupt_value_is_ignored():
    client = mock.Mock()
    client.get.return_value = "{broken"
    assert make_cache(client).get_json("games:list") is None


def test_redis_errors_degrade_gracefully():
    client = mock.Mock()
    client.get.side_effect = redis.ConnectionError("down")
    client.setex.side_effect = redis.ConnectionError("down")
    client.scan_iter.side_effect = redis.ConnectionError("down")
    cache = make_cache(client)

    assert cache.get_json("games:list") is None
    assert cache.set_json("games:list", {}) is False
    assert cache.invalidate("games:") == 0


def test_invalidate_prefix():
    client = mock.Mock()
    client.scan_iter.return_value = iter(["test:games:list", "test:games:popular"])
    assert make_cache(client).invalidate("games:") == 2
    client.scan_iter.assert_called_once_with(match="test:games:*")
    client.delete.assert_called_once_with("test:games:list", "test:games:popular")


def test_init_app_survives_unreachable_redis(app):
    app.config["CACHE_ENABLED"] = True
    with mock.patch("app.core.cache.redis.Redis.from_url") as from_url:
        from_url.return_value.ping.side_effect = redis.ConnectionError("refused")
        cache = ResponseCache(app)
    assert cache.enabled is False
