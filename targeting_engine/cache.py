"""Redis cache for campaign lookups."""

from __future__ import annotations

import json
import logging
from collections.abc import Iterable
from datetime import timedelta
from typing import Any

import redis

from .metrics import REDIS_CACHE_HITS, REDIS_CACHE_MISSES
from .schema import CampaignResponse

log = logging.getLogger(__name__)

DEFAULT_HOST = "localhost"
DEFAULT_PORT = 6379
CONNECT_TIMEOUT = 5.0


def _decode(raw: Any) -> list[CampaignResponse]:
    data = json.loads(raw)
    if data is None:
        return []
    if not isinstance(data, list):
        raise ValueError("cached value is not a JSON array")
    return [CampaignResponse.from_dict(item) for item in data]


class CampaignCache:
    """Stores campaign lists as JSON under string keys."""

    def __init__(self, client: Any) -> None:
        self.client = client

    def get_campaigns(self, cache_key: str) -> list[CampaignResponse] | None:
        """Return cached campaigns, or None on a miss.

        Redis failures propagate as redis.RedisError, corrupt entries as ValueError.
        """
        try:
            raw = self.client.get(cache_key)
        except redis.RedisError as exc:
            log.warning("Error getting from Redis for key %s: %s", cache_key, exc)
            raise
        if raw is None:
            log.info("Cache miss for key: %s", cache_key)
            REDIS_CACHE_MISSES.inc()
            return None
        try:
            campaigns = _decode(raw)
        except ValueError as exc:
            log.warning("Error decoding cached data for key %s: %s", cache_key, exc)
            raise
        log.info("Cache hit for key: %s", cache_key)
        REDIS_CACHE_HITS.inc()
        return campaigns

    def set_campaigns(
        self,
        cache_key: str,
        campaigns: Iterable[CampaignResponse],
        ttl: timedelta | float,
    ) -> None:
        """Store campaigns with a time to live; failures are logged, not raised."""
        payload = json.dumps([campaign.to_dict() for campaign in campaigns])
        seconds = ttl.total_seconds() if isinstance(ttl, timedelta) else float(ttl)
        expiry: dict[str, int] = {}
        if seconds > 0:
            if seconds == int(seconds):
                expiry["ex"] = int(seconds)
            else:
                expiry["px"] = max(1, int(seconds * 1000))
        try:
            self.client.set(cache_key, payload, **expiry)
        except redis.RedisError as exc:
            log.warning("Error setting data in Redis for key %s: %s", cache_key, exc)
        else:
            log.info("Cached data for key: %s with TTL %ss", cache_key, seconds)


def _split_host(host: str) -> tuple[str, int]:
    if not host:
        return DEFAULT_HOST, DEFAULT_PORT
    name, sep, port = host.rpartition(":")
    if not sep:
        return host, DEFAULT_PORT
    if not port.isdigit() or not 0 < int(port) < 65536:
        raise ValueError(f"invalid Redis address: {host!r}")
    return name or DEFAULT_HOST, int(port)


def connect_redis(host: str) -> CampaignCache:
    """Connect to Redis at ``host:port`` and check it answers a ping."""
    name, port = _split_host(host)
    client = redis.Redis(host=name, port=port, db=0, socket_connect_timeout=CONNECT_TIMEOUT)
    try:
        client.ping()
    except redis.RedisError as exc:
        log.error("Could not connect to Redis: %s", exc)
        raise
    log.info("Successfully connected to Redis!")
    return CampaignCache(client)