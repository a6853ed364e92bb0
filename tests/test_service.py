import json
import re
from unittest.mock import patch

import pytest
import redis
import responses

from targeting_engine.config import Settings
from targeting_engine.metrics import CAMPAIGNS_RETURNED
from targeting_engine.query import cache_key
from targeting_engine.schema import CampaignResponse, DeliveryRequest
from targeting_engine.service import ServiceError, get_campaigns_list

ES = "http://es.example.com:9200"
SEARCH_URL = re.compile(re.escape(ES) + r"/campaigns/_search.*")
SETTINGS = Settings(elasticsearch_hosts=(ES,), redis_host="cache.example.com:6379")
REQUEST = DeliveryRequest(app_id="com.App", country="US", os="Android")

HITS = {
    "hits": {
        "hits": [
            {"_source": {"campaign_id": "spotify", "image_url": "https://somelink", "cta": "Download"}},
            {"_source": {"campaign_id": "duolingo", "image_url": "https://somelink2", "cta": "Install"}},
        ]
    }
}


@pytest.fixture
def es():
    with responses.RequestsMock(assert_all_requests_are_fired=False) as rsps:
        yield rsps


@pytest.fixture
def store():
    data = {}

    class FakeRedis:
        def __init__(self, **kwargs):
            self.kwargs = kwargs

        def ping(self):
            return True

        def get(self, key):
            return data.get(key)

        def set(self, key, value, ex=None, px=None):
            data[key] = value

    with patch("redis.Redis", FakeRedis):
        yield data


def _healthy(es):
    es.add(responses.GET, ES + "/", json={"cluster_name": "test"})
    es.add(responses.POST, SEARCH_URL, json=HITS)


def test_returns_campaigns_from_search(es, store):
    _healthy(es)
    campaigns = get_campaigns_list(REQUEST, SETTINGS)
    assert campaigns == [
        CampaignResponse(cid="spotify", img="https://somelink", cta="Download"),
        CampaignResponse(cid="duolingo", img="https://somelink2", cta="Install"),
    ]
    assert CAMPAIGNS_RETURNED.value() == len(campaigns)


def test_results_are_cached_under_lowercased_key(es, store):
    _healthy(es)
    campaigns = get_campaigns_list(REQUEST, SETTINGS)
    key = cache_key("com.app", "us", "android")
    assert [CampaignResponse.from_dict(item) for item in json.loads(store[key])] == campaigns


def test_second_call_served_from_cache(es, store):
    _healthy(es)
    first = get_campaigns_list(REQUEST, SETTINGS)
    second = get_campaigns_list(REQUEST, SETTINGS)
    assert first == second
    searches = [call for call in es.calls if "_search" in call.request.url]
    assert len(searches) == 1


def test_unreachable_elasticsearch_raises(es, store):
    with pytest.raises(ServiceError, match="Internal error occurred"):
        get_campaigns_list(REQUEST, SETTINGS)


def test_failing_search_raises(es, store):
    es.add(responses.GET, ES + "/", json={})
    es.add(responses.POST, SEARCH_URL, status=500, json={"error": "boom"})
    with pytest.raises(ServiceError, match="error executing campaign search"):
        get_campaigns_list(REQUEST, SETTINGS)
    assert CAMPAIGNS_RETURNED.value() == 0


def test_redis_outage_falls_back_to_search(es):
    class DownRedis:
        def __init__(self, **kwargs):
            pass

        def ping(self):
            raise redis.ConnectionError("refused")

    _healthy(es)
    with patch("redis.Redis", DownRedis):
        campaigns = get_campaigns_list(REQUEST, SETTINGS)
    assert [c.cid for c in campaigns] == ["spotify", "duolingo"]