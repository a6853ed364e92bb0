"""Campaign search queries with a cache in front of Elasticsearch."""

from __future__ import annotations

import logging
import time
from collections.abc import Mapping
from datetime import timedelta
from typing import Any

import redis

from .metrics import ES_QUERY_DURATION
from .schema import ACTIVE, CampaignResponse
from .search import SearchError

log = logging.getLogger(__name__)

CAMPAIGN_INDEX = "campaigns"
MAX_RESULTS = 1000
CACHE_TTL = timedelta(minutes=15)
_RULES_PATH = "targeting_rules"
_DOCUMENT_FIELDS = ("campaign_id", "name", "image_url", "cta", "status")


def _term(field: str, value: str) -> dict[str, Any]:
    return {"term": {field: value}}


def build_include_logic(dimension: str, value: str) -> dict[str, Any]:
    """Match campaigns with no INCLUDE rule for the dimension, or one naming the value."""
    no_include_rule = {
        "bool": {
            "must_not": {
                "nested": {
                    "path": _RULES_PATH,
                    "query": {
                        "bool": {
                            "must": [
                                _term("targeting_rules.dimension", dimension),
                                _term("targeting_rules.type", "INCLUDE"),
                            ]
                        }
                    },
                }
            }
        }
    }
    matching_include_rule = {
        "nested": {
            "path": _RULES_PATH,
            "query": {
                "bool": {
                    "must": [
                        _term("targeting_rules.dimension", dimension),
                        _term("targeting_rules.type", "INCLUDE"),
                        _term("targeting_rules.value", value),
                    ]
                }
            },
        }
    }
    return {
        "bool": {
            "should": [no_include_rule, matching_include_rule],
            "minimum_should_match": 1,
        }
    }


def build_exclude_logic(dimension: str, value: str) -> dict[str, Any]:
    """Match campaigns with an EXCLUDE rule for the dimension naming the value."""
    return {
        "nested": {
            "path": _RULES_PATH,
            "query": {
                "bool": {
                    "must": [
                        _term("targeting_rules.type", "EXCLUDE"),
                        _term("targeting_rules.dimension", dimension),
                        _term("targeting_rules.value", value),
                    ]
                }
            },
        }
    }


def build_campaign_query(app_id: str, country: str, os: str) -> dict[str, Any]:
    """The full search body for active campaigns a request qualifies for."""
    dimensions = (("app_id", app_id), ("country", country), ("os", os))
    return {
        "query": {
            "bool": {
                "filter": [_term("status", ACTIVE)],
                "must": [build_include_logic(dim, value) for dim, value in dimensions],
                "must_not": [build_exclude_logic(dim, value) for dim, value in dimensions],
            }
        },
        "size": MAX_RESULTS,
    }


def cache_key(app_id: str, country: str, os: str) -> str:
    """The cache key for a request's parameters."""
    return f"campaigns:{app_id}:{country}:{os}"


def _campaign_document(hit: Any) -> dict[str, str]:
    if hit is None:
        hit = {}
    if not isinstance(hit, Mapping):
        raise ValueError("search hit is not an object")
    document = {}
    for field in _DOCUMENT_FIELDS:
        value = hit.get(field)
        if value is None:
            value = ""
        if not isinstance(value, str):
            raise ValueError(f"field {field!r} is not a string")
        document[field] = value
    return document


def query_campaigns(
    es_client: Any, cache: Any, app_id: str, country: str, os: str
) -> list[CampaignResponse]:
    """Campaigns matching the request, served from cache when possible.

    ``cache`` may be None to query Elasticsearch directly. Cache failures
    are logged and fall through to Elasticsearch.
    """
    app_id, country, os = app_id.lower(), country.lower(), os.lower()
    key = cache_key(app_id, country, os)

    if cache is not None:
        try:
            cached = cache.get_campaigns(key)
        except (redis.RedisError, ValueError) as exc:
            log.warning("Failed to retrieve from cache for key %s, querying Elasticsearch: %s", key, exc)
        else:
            if cached is not None:
                return cached
            log.info("Cache miss for key: %s, querying Elasticsearch.", key)

    started = time.perf_counter()
    try:
        hits = es_client.search_documents(CAMPAIGN_INDEX, build_campaign_query(app_id, country, os))
    except SearchError as exc:
        raise SearchError(f"error executing campaign search: {exc}") from exc
    finally:
        ES_QUERY_DURATION.observe(time.perf_counter() - started)

    campaigns = []
    for hit in hits:
        try:
            document = _campaign_document(hit)
        except ValueError as exc:
            log.warning("Could not read search hit as a campaign: %s, raw: %r", exc, hit)
            continue
        campaigns.append(
            CampaignResponse(
                cid=document["campaign_id"],
                img=document["image_url"],
                cta=document["cta"],
            )
        )

    if cache is not None:
        cache.set_campaigns(key, campaigns, CACHE_TTL)

    log.info("Campaign search completed. Total matching campaigns parsed: %d", len(campaigns))
    return campaigns