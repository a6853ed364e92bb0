# targeting-engine

A small HTTP service that answers one question: which active advertising
campaigns may be shown to a user of a given app, in a given country, on a
given operating system?

Campaigns and their targeting rules live in an Elasticsearch index named
`campaigns`. Results for each combination of app, country and OS are cached
in Redis for 15 minutes. If Redis cannot be reached, the cache is skipped and
every request goes to Elasticsearch.

## Installing

```
pip install .
```

For running the tests:

```
pip install ".[test]"
pytest
```

## Running

```
targeting-engine
```

By default the server listens on all interfaces, port 8080. Use
`--listen` to choose another address:

```
targeting-engine --listen 127.0.0.1:9000
```

Settings are read from the environment by
`targeting_engine.config.load_settings`:

| Variable                    | Meaning                                        | Default   |
|-----------------------------|------------------------------------------------|-----------|
| `TARGETING_SERVER_PORT`     | listen address, `[host]:port`                  | `:8080`   |
| `TARGETING_BASEPATH`        | prefix of the delivery route                   | `/`       |
| `TARGETING_HEALTH_BASEPATH` | prefix of the health check route               | `/health` |
| `ELASTICSEARCH_HOSTS`       | comma-separated node URLs                      | none      |
| `REDIS_HOST`                | Redis address, `host:port`                     | empty     |

With no Elasticsearch hosts set, `http://localhost:9200` is used; nodes are
tried in order. An empty Redis address means `localhost:6379`.

## Endpoints

`GET /v1/delivery?app=<app id>&country=<country>&os=<os>`

All three parameters are required. They are lowercased before the search,
so the values stored in the index are expected in lower case.

- `200` with `{"data": [{"cid": ..., "img": ..., "cta": ...}], "success": true}`
  when campaigns match.
- `204` with an empty body when none match.
- `400` with `{"error": "missing one or more required parameters: app, os, country"}`
  when a parameter is missing.
- `500` with `{"error": ...}` when Elasticsearch cannot be reached or the
  search fails.

`GET /health/v1/check` returns `{"message": "service is up"}`.

`GET /metrics` serves the metrics of `targeting_engine.metrics.REGISTRY` in
the Prometheus text format: `http_requests_total`,
`http_request_duration_seconds`, `redis_cache_hits_total`,
`redis_cache_misses_total`, `elasticsearch_query_duration_seconds` and
`campaigns_returned_count`. The `targeting-engine` command registers them at
start-up through `init_metrics`; an application built with `create_app`
alone serves an empty page until `init_metrics()` has been called.

## Targeting rules

Each campaign document holds a list of `targeting_rules`, each with a
`dimension` (`app_id`, `country` or `os`), a `type` (`INCLUDE` or `EXCLUDE`)
and a `value`. A campaign matches when its `status` is `ACTIVE`, no
`EXCLUDE` rule matches the request, and for every dimension it either has no
`INCLUDE` rules or one of them matches. The search body is built by
`targeting_engine.query.build_campaign_query`; at most 1000 campaigns are
returned.

The same logic is available in memory through
`targeting_engine.matching.match_campaigns`, working on `Campaign` and
`TargetingRule` objects from `targeting_engine.schema`:

```python
from targeting_engine.matching import match_campaigns
from targeting_engine.schema import Campaign, DeliveryRequest, TargetingRule

campaigns = [Campaign(id="spotify", name="Spotify", image_url="https://img.example.com/1", cta="Download")]
rules = {"spotify": TargetingRule(campaign_id="spotify", include_country={"US", "Canada"})}
match_campaigns(DeliveryRequest(app_id="com.example.app", country="US", os="Android"), campaigns, rules)
```

## Using it as a library

```python
from targeting_engine.config import load_settings
from targeting_engine.metrics import init_metrics
from targeting_engine.web import create_app

init_metrics()
app = create_app(load_settings(), None)
app.run(port=8080)
```

`create_app` takes an optional `lookup` callable, given a `DeliveryRequest`
and returning a list of `CampaignResponse`, in place of the default
Elasticsearch-backed `targeting_engine.service.get_campaigns_list`. A lookup
that raises `ServiceError` produces a `500` response.

## What it does not do

The package only reads campaigns. It has no way to create, edit or index
campaign documents, and it does not set up the `campaigns` index or its
mapping; `targeting_rules` must be mapped as a nested field for the search
to work.