"""HTTP routes of the targeting engine."""

from __future__ import annotations

import json
import time
from collections.abc import Callable
from typing import Any

from flask import Flask, Response, request

from . import metrics
from .config import Settings, load_settings
from .metrics import HTTP_REQUEST_DURATION, HTTP_REQUESTS_TOTAL
from .schema import CampaignResponse, DeliveryRequest, ResponseEntity, ValidationError
from .service import ServiceError, get_campaigns_list

Lookup = Callable[[DeliveryRequest], list[CampaignResponse]]

METRICS_CONTENT_TYPE = "text/plain; version=0.0.4; charset=utf-8"


def _join(base: str, relative: str) -> str:
    parts = (part.strip("/") for part in (base, relative))
    return "/" + "/".join(part for part in parts if part)


def _json(status: int, body: Any) -> Response:
    if status == 204:
        return Response(status=204)
    return Response(
        json.dumps(body, indent=4),
        status=status,
        mimetype="application/json",
    )


def _deliver(lookup: Lookup) -> Response:
    params = DeliveryRequest.from_query(request.args)
    try:
        params.validate()
    except ValidationError as exc:
        return _json(400, ResponseEntity(error=str(exc)).to_dict())
    try:
        campaigns = lookup(params)
    except ServiceError as exc:
        return _json(500, ResponseEntity(error=str(exc)).to_dict())
    if not campaigns:
        return _json(204, ResponseEntity().to_dict())
    return _json(200, ResponseEntity(data=list(campaigns), success=True).to_dict())


def create_app(settings: Settings | None = None, lookup: Lookup | None = None) -> Flask:
    """Build the web application with delivery, health and metrics routes."""
    settings = load_settings() if settings is None else settings
    if lookup is None:
        def lookup(params: DeliveryRequest) -> list[CampaignResponse]:
            return get_campaigns_list(params, settings)

    app = Flask(__name__)

    def delivery() -> Response:
        started = time.perf_counter()
        status = 500
        try:
            response = _deliver(lookup)
            status = response.status_code
            return response
        finally:
            HTTP_REQUESTS_TOTAL.labels(request.path, request.method, str(status)).inc()
            HTTP_REQUEST_DURATION.labels(request.path, request.method).observe(
                time.perf_counter() - started
            )

    def health_check() -> Response:
        return _json(200, {"message": "service is up"})

    def metrics_endpoint() -> Response:
        return Response(metrics.REGISTRY.render(), status=200, content_type=METRICS_CONTENT_TYPE)

    app.add_url_rule(
        _join(settings.basepath, "v1/delivery"), "delivery", delivery, methods=["GET"]
    )
    app.add_url_rule(
        _join(settings.health_check_basepath, "v1/check"),
        "health_check",
        health_check,
        methods=["GET"],
    )
    app.add_url_rule("/metrics", "metrics", metrics_endpoint, methods=["GET"])
    return app