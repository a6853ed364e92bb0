"""Campaign lookup for a delivery request."""

from __future__ import annotations

import logging

import redis

from .cache import CampaignCache, connect_redis
from .config import Settings, load_settings
from .metrics import CAMPAIGNS_RETURNED
from .query import query_campaigns
from .schema import CampaignResponse, DeliveryRequest
from .search import SearchError, connect_elasticsearch

log = logging.getLogger(__name__)


class ServiceError(RuntimeError):
    """Campaigns could not be looked up."""


def _open_cache(host: str) -> CampaignCache | None:
    try:
        return connect_redis(host)
    except (redis.RedisError, ValueError) as exc:
        log.warning("Failed to create connection with redis: %s", exc)
        return None


def get_campaigns_list(
    request: DeliveryRequest, settings: Settings | None = None
) -> list[CampaignResponse]:
    """Look up the campaigns a request qualifies for.

    Raises ServiceError when Elasticsearch is unreachable or the search fails.
    A Redis outage only disables the cache.
    """
    settings = load_settings() if settings is None else settings
    try:
        es_client = connect_elasticsearch(settings.elasticsearch_hosts)
    except SearchError as exc:
        log.error("Error while making connection with Elasticsearch: %s", exc)
        raise ServiceError("Internal error occurred") from exc

    cache = _open_cache(settings.redis_host)
    campaigns: list[CampaignResponse] = []
    try:
        campaigns = query_campaigns(
            es_client, cache, request.app_id, request.country, request.os
        )
    except SearchError as exc:
        raise ServiceError(str(exc)) from exc
    finally:
        CAMPAIGNS_RETURNED.set(len(campaigns))
    return campaigns