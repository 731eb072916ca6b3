import hashlib
import json
import logging
import os
from typing import Optional

import redis

logger = logging.getLogger(__name__)

REDIS_URL = os.getenv("REDIS_URL", "redis://localhost:6379")
CACHE_TTL = int(os.getenv("CACHE_TTL_SECONDS", "3600"))

_client: Optional[redis.Redis] = None


def get_client() -> Optional[redis.Redis]:
    """Shared Redis client, or None when the server cannot be reached."""
    global _client
    if _client is None:
        try:
            client = redis.from_url(REDIS_URL, decode_responses=True, socket_connect_timeout=2)
            client.ping()
        except redis.RedisError as exc:
            logger.warning("Redis unavailable, audit results will not be cached: %s", exc)
            return None
        _client = client
    return _client


def cache_key(payload: str, namespace: str = "audit") -> str:
    """Key for one audit request; identical request bodies share a key."""
    digest = hashlib.sha256(payload.encode("utf-8")).hexdigest()[:32]
    return f"{namespace}:{digest}"


def get_cached(key: str) -> Optional[dict]:
    client = get_client()
    if client is None:
        return None
    try:
        raw = client.get(key)
    except redis.RedisError as exc:
        logger.warning("Cache read failed for %s: %s", key, exc)
        return None
    if not raw:
        return None
    try:
        return json.loads(raw)
    except ValueError:
        logger.warning("Discarding unreadable cache entry %s", key)
        return None


def set_cached(key: str, data: dict, ttl: int = CACHE_TTL) -> None:
    client = get_client()
    if client is None:
        return
    try:
        client.setex(key, ttl, json.dumps(data, default=str))
    except redis.RedisError as exc:
        logger.warning("Cache write failed for %s: %s", key, exc)


def is_cache_healthy() -> bool:
    client = get_client()
    if client is None:
        return False
    try:
        return bool(client.ping())
    except redis.RedisError:
        return False
