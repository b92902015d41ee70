"""
Redis JSON 缓存扩展

用于缓存公开列表接口（游戏列表等）。Redis不可用时自动降级为直接查库，
缓存读写失败只记录日志，不影响接口返回。
"""

import json
import logging
from typing import Any, Optional

import redis

logger = logging.getLogger(__name__)


class ResponseCache:
    """支持 init_app 模式的缓存扩展"""

    def __init__(self, app=None):
        self.redis_client = None
        self.default_ttl = 300
        self.key_prefix = "calico:"
        if app is not None:
            self.init_app(app)

    def init_app(self, app):
        self.default_ttl = app.config.get("CACHE_DEFAULT_TTL", 300)
        self.key_prefix = app.config.get("CACHE_KEY_PREFIX", "calico:")
        self.redis_client = None

        if app.config.get("CACHE_ENABLED", False):
            try:
                client = redis.Redis.from_url(
                    app.config["REDIS_URL"],
                    decode_responses=True,
                    socket_timeout=0.5,
                    socket_connect_timeout=0.5,
                )
                client.ping()
                self.redis_client = client
                logger.info("列表缓存使用Redis")
            except redis.RedisError as e:
                # 连接失败时应用仍可启动，缓存整体禁用
                logger.warning(f"Redis连接失败，列表缓存已禁用: {e}")

        app.extensions["response_cache"] = self

    @property
    def enabled(self) -> bool:
        return self.redis_client is not None

    def _key(self, key: str) -> str:
        return f"{self.key_prefix}{key}"

    def get_json(self, key: str) -> Optional[Any]:
        if not self.enabled:
            return None
        try:
            raw = self.redis_client.get(self._key(key))
        except redis.RedisError as e:
            logger.warning(f"缓存读取失败 {key}: {e}")
            return None
        if raw is None:
            return None
        try:
            return json.loads(raw)
        except ValueError:
            logger.warning(f"缓存数据损坏，已忽略: {key}")
            return None

    def set_json(self, key: str, value: Any, ttl: int = None) -> bool:
        if not self.enabled:
            return False
        try:
            self.redis_client.setex(
                self._key(key), ttl or self.default_ttl, json.dumps(value)
            )
            return True
        except redis.RedisError as e:
            logger.warning(f"缓存写入失败 {key}: {e}")
            return False

    def invalidate(self, prefix: str) -> int:
        """删除指定前缀下的所有缓存键"""
        if not self.enabled:
            return 0
        try:
            keys = list(self.redis_client.scan_iter(match=f"{self._key(prefix)}*"))
            if keys:
                self.redis_client.delete(*keys)
            logger.debug(f"缓存失效 {prefix}*: {len(keys)} 个键")
            return len(keys)
        except redis.RedisError as e:
            logger.warning(f"缓存失效失败 {prefix}: {e}")
            return 0


cache = ResponseCache()
