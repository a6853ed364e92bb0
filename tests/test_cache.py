import json
from datetime import timedelta
from unittest import mock

import pytest
import redis

from targeting_engine.cache import CampaignCache, connect_redis
from targeting_engine.metrics import REDIS_CACHE_HITS, REDIS_CACHE_MISSES
from targeting_engine.schema import CampaignResponse


class FakeRedis:
    def __init__(self, fail=False):
        self.fail = fail
        self.store = {}
        self.expiries = {}

    def get(self, key):
        if self.fail:
            raise redis.ConnectionError("down")
        return self.store.get(key)

    def set(self, key, value, ex=None, px=None):
        if self.fail:
            raise redis.ConnectionError("down")
        self.store[key] = value.encode() if isinstance(value, str) else value
        self.expiries[key] = (ex, px)
        return True


CAMPAIGNS = [
    CampaignResponse(cid="spotify", img="https://img.example/1", cta="Download"),
    CampaignResponse(cid="duolingo", img="https://img.example/2", cta="Install"),
]


def test_round_trip_and_hit_counter():
    cache = CampaignCache(FakeRedis())
    cache.set_campaigns("k", CAMPAIGNS, 30)
    before = REDIS_CACHE_HITS.value()
    assert cache.get_campaigns("k") == CAMPAIGNS
    assert REDIS_CACHE_HITS.value() == before + 1


def test_stored_json_layout():
    fake = FakeRedis()
    CampaignCache(fake).set_campaigns("k", CAMPAIGNS[:1], 30)
    assert json.loads(fake.store["k"]) == [
        {"cid": "spotify", "img": "https://img.example/1", "cta": "Download"}
    ]
    assert fake.expiries["k"] == (30, None)


def test_timedelta_ttl_matches_seconds():
    fake = FakeRedis()
    cache = CampaignCache(fake)
    cache.set_campaigns("a", CAMPAIGNS, timedelta(seconds=45))
    cache.set_campaigns("b", CAMPAIGNS, 45)
    assert fake.expiries["a"] == fake.expiries["b"]


def test_fractional_ttl_uses_milliseconds():
    fake = FakeRedis()
    CampaignCache(fake).set_campaigns("k", CAMPAIGNS, timedelta(milliseconds=1500))
    assert fake.expiries["k"] == (None, 1500)


def test_zero_ttl_has_no_expiry():
    fake = FakeRedis()
    CampaignCache(fake).set_campaigns("k", CAMPAIGNS, 0)
    assert fake.expiries["k"] == (None, None)


def test_miss_returns_none_and_counts():
    cache = CampaignCache(FakeRedis())
    before = REDIS_CACHE_MISSES.value()
    assert cache.get_campaigns("absent") is None
    assert REDIS_CACHE_MISSES.value() == before + 1


def test_empty_list_round_trip():
    cache = CampaignCache(FakeRedis())
    cache.set_campaigns("k", [], 30)
    assert cache.get_campaigns("k") == []


def test_null_entry_is_empty_list():
    fake = FakeRedis()
    fake.store["k"] = b"null"
    assert CampaignCache(fake).get_campaigns("k") == []


def test_redis_error_propagates():
    with pytest.raises(redis.ConnectionError):
        CampaignCache(FakeRedis(fail=True)).get_campaigns("k")


def test_corrupt_entry_raises_value_error():
    fake = FakeRedis()
    fake.store["k"] = b"{not json"
    with pytest.raises(ValueError):
        CampaignCache(fake).get_campaigns("k")


def test_wrong_shape_raises_value_error():
    fake = FakeRedis()
    fake.store["k"] = b'{"cid": "x"}'
    with pytest.raises(ValueError):
        CampaignCache(fake).get_campaigns("k")


def test_set_failure_is_swallowed():
    fake = FakeRedis(fail=True)
    assert CampaignCache(fake).set_campaigns("k", CAMPAIGNS, 30) is None
    assert fake.store == {}


@mock.patch("redis.Redis")
def test_connect_redis_parses_host(redis_cls):
    cache = connect_redis("cache.example:6380")
    kwargs = redis_cls.call_args.kwargs
    assert (kwargs["host"], kwargs["port"], kwargs["db"]) == ("cache.example", 6380, 0)
    assert cache.client is redis_cls.return_value
    redis_cls.return_value.ping.assert_called_once_with()


@mock.patch("redis.Redis")
def test_connect_redis_default_address(redis_cls):
    cache = connect_redis("")
    kwargs = redis_cls.call_args.kwargs
    assert (kwargs["host"], kwargs["port"]) == ("localhost", 6379)
    assert cache.client is redis_cls.return_value


@mock.patch("redis.Redis")
def test_connect_redis_ping_failure(redis_cls):
    redis_cls.return_value.ping.side_effect = redis.ConnectionError("refused")
    with pytest.raises(redis.ConnectionError):
        connect_redis("cache.example:6379")


def test_connect_redis_invalid_port():
    with pytest.raises(ValueError):
        connect_redis("cache.example:notaport")