"""A small Elasticsearch client over its HTTP API."""

from __future__ import annotations

import json
import logging
from collections.abc import Iterable, Mapping
from typing import Any
from urllib.parse import quote

import requests

log = logging.getLogger(__name__)

DEFAULT_ADDRESS = "http://localhost:9200"


class SearchError(RuntimeError):
    """Elasticsearch could not be reached or rejected a request."""


def _status(response: requests.Response) -> str:
    return f"{response.status_code} {response.reason or ''}".strip()


class ElasticsearchClient:
    """Talks to one or more Elasticsearch nodes, trying them in order."""

    def __init__(
        self,
        addresses: Iterable[str] = (),
        session: requests.Session | None = None,
        timeout: float | None = None,
    ) -> None:
        self.addresses = tuple(address.rstrip("/") for address in addresses) or (DEFAULT_ADDRESS,)
        self.session = session if session is not None else requests.Session()
        self.timeout = timeout

    def _request(self, method: str, path: str, **kwargs: Any) -> requests.Response:
        last_error: requests.ConnectionError | None = None
        for address in self.addresses:
            try:
                return self.session.request(method, address + path, timeout=self.timeout, **kwargs)
            except requests.ConnectionError as exc:
                log.warning("Elasticsearch node %s unreachable: %s", address, exc)
                last_error = exc
        assert last_error is not None
        raise last_error

    def info(self) -> dict[str, Any]:
        """Fetch cluster information, raising SearchError if the cluster is unhealthy."""
        try:
            response = self._request("GET", "/")
        except requests.RequestException as exc:
            raise SearchError(f"error getting Elasticsearch client info: {exc}") from exc
        if not response.ok:
            raise SearchError(f"error connecting to Elasticsearch: {_status(response)}")
        try:
            body = response.json()
        except ValueError:
            body = {}
        return body if isinstance(body, dict) else {}

    def search_documents(
        self, index_name: str, query: Mapping[str, Any]
    ) -> list[dict[str, Any]]:
        """Run a search and return the ``_source`` of every hit."""
        try:
            payload = json.dumps(query)
        except (TypeError, ValueError) as exc:
            raise SearchError(f"error encoding query: {exc}") from exc

        try:
            response = self._request(
                "POST",
                f"/{quote(index_name, safe=',*')}/_search",
                params={"track_total_hits": "true", "pretty": "true"},
                data=payload,
                headers={"Content-Type": "application/json"},
            )
        except requests.RequestException as exc:
            raise SearchError(f"error performing search: {exc}") from exc

        try:
            body = response.json()
        except ValueError as exc:
            raise SearchError(f"error parsing the response body: {exc}") from exc

        if not response.ok:
            detail = body.get("error") if isinstance(body, dict) else None
            raise SearchError(f"error searching documents {_status(response)}: {detail}")

        results = [hit_source for hit_source in _hit_sources(body)]
        log.info("Search successful. Found %d documents.", len(results))
        return results


def _hit_sources(body: Any) -> list[dict[str, Any]]:
    if not isinstance(body, dict):
        raise SearchError("error parsing the response body: expected a JSON object")
    outer = body.get("hits") or {}
    if not isinstance(outer, dict):
        raise SearchError("error parsing the response body: 'hits' is not an object")
    hits = outer.get("hits") or []
    if not isinstance(hits, list):
        raise SearchError("error parsing the response body: 'hits.hits' is not a list")
    sources = []
    for hit in hits:
        if not isinstance(hit, dict):
            raise SearchError("error parsing the response body: hit is not an object")
        source = hit.get("_source")
        if source is None:
            source = {}
        if not isinstance(source, dict):
            raise SearchError("error parsing the response body: '_source' is not an object")
        sources.append(source)
    return sources


def connect_elasticsearch(addresses: Iterable[str]) -> ElasticsearchClient:
    """Create a client and check that the cluster answers."""
    client = ElasticsearchClient(addresses)
    client.info()
    log.info("Successfully connected to Elasticsearch.")
    return client