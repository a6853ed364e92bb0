"""Service metrics in the Prometheus text exposition format."""

from __future__ import annotations

import bisect
import math
import threading
from collections.abc import Iterable, Iterator, Sequence
from typing import Any, Union

DEFAULT_BUCKETS = (0.005, 0.01, 0.025, 0.05, 0.1, 0.25, 0.5, 1.0, 2.5, 5.0, 10.0)

_SampleTuple = tuple[str, dict[str, str], float]


def _format_value(value: float) -> str:
    if math.isnan(value):
        return "NaN"
    if math.isinf(value):
        return "+Inf" if value > 0 else "-Inf"
    return repr(float(value))


def _escape_label(value: str) -> str:
    return value.replace("\\", "\\\\").replace("\n", "\\n").replace('"', '\\"')


def _escape_help(text: str) -> str:
    return text.replace("\\", "\\\\").replace("\n", "\\n")


class _Metric:
    kind = "untyped"

    def __init__(self, name: str, help: str, labelnames: Sequence[str] = ()) -> None:
        self.name = name
        self.help = help
        self.labelnames = tuple(labelnames)
        self._lock = threading.Lock()

    def _key(self, args: Sequence[Any]) -> tuple[str, ...]:
        if len(args) != len(self.labelnames):
            raise ValueError(
                f"{self.name}: expected {len(self.labelnames)} label values, got {len(args)}"
            )
        return tuple(str(arg) for arg in args)

    def _labels(self, key: tuple[str, ...]) -> dict[str, str]:
        return dict(zip(self.labelnames, key))

    def samples(self) -> Iterator[_SampleTuple]:
        raise NotImplementedError


class _CounterChild:
    __slots__ = ("_parent", "_key")

    def __init__(self, parent: Counter, key: tuple[str, ...]) -> None:
        self._parent = parent
        self._key = key

    def inc(self, amount: float = 1.0) -> None:
        self._parent._inc(self._key, amount)


class Counter(_Metric):
    """A monotonically increasing value, optionally split by labels."""

    kind = "counter"

    def __init__(self, name: str, help: str, labelnames: Sequence[str] = ()) -> None:
        super().__init__(name, help, labelnames)
        self._values: dict[tuple[str, ...], float] = {}
        if not self.labelnames:
            self._values[()] = 0.0

    def labels(self, *args: Any) -> _CounterChild:
        key = self._key(args)
        with self._lock:
            self._values.setdefault(key, 0.0)
        return _CounterChild(self, key)

    def inc(self, amount: float = 1.0) -> None:
        self._inc(self._key(()), amount)

    def _inc(self, key: tuple[str, ...], amount: float) -> None:
        if amount < 0:
            raise ValueError("counters can only increase")
        with self._lock:
            self._values[key] = self._values.get(key, 0.0) + amount

    def value(self, *args: Any) -> float:
        key = self._key(args)
        with self._lock:
            return self._values.get(key, 0.0)

    def samples(self) -> Iterator[_SampleTuple]:
        with self._lock:
            items = list(self._values.items())
        for key, value in items:
            yield self.name, self._labels(key), value


class Gauge(_Metric):
    """A single value that can go up and down."""

    kind = "gauge"

    def __init__(self, name: str, help: str) -> None:
        super().__init__(name, help)
        self._value = 0.0

    def set(self, value: float) -> None:
        with self._lock:
            self._value = float(value)

    def value(self) -> float:
        with self._lock:
            return self._value

    def samples(self) -> Iterator[_SampleTuple]:
        yield self.name, {}, self.value()


class _HistogramState:
    __slots__ = ("counts", "total", "count")

    def __init__(self, size: int) -> None:
        self.counts = [0] * size
        self.total = 0.0
        self.count = 0


class _HistogramChild:
    __slots__ = ("_parent", "_key")

    def __init__(self, parent: Histogram, key: tuple[str, ...]) -> None:
        self._parent = parent
        self._key = key

    def observe(self, value: float) -> None:
        self._parent._observe(self._key, value)


class Histogram(_Metric):
    """Observations counted into cumulative buckets."""

    kind = "histogram"

    def __init__(
        self,
        name: str,
        help: str,
        labelnames: Sequence[str] = (),
        buckets: Iterable[float] = DEFAULT_BUCKETS,
    ) -> None:
        super().__init__(name, help, labelnames)
        bounds = sorted(float(b) for b in buckets)
        if not bounds or bounds[-1] != math.inf:
            bounds.append(math.inf)
        self.buckets = tuple(bounds)
        self._states: dict[tuple[str, ...], _HistogramState] = {}
        if not self.labelnames:
            self._states[()] = _HistogramState(len(self.buckets))

    def labels(self, *args: Any) -> _HistogramChild:
        key = self._key(args)
        with self._lock:
            self._states.setdefault(key, _HistogramState(len(self.buckets)))
        return _HistogramChild(self, key)

    def observe(self, value: float) -> None:
        self._observe(self._key(()), value)

    def _observe(self, key: tuple[str, ...], value: float) -> None:
        index = bisect.bisect_left(self.buckets, value)
        with self._lock:
            state = self._states.setdefault(key, _HistogramState(len(self.buckets)))
            if index < len(state.counts):
                state.counts[index] += 1
            state.total += value
            state.count += 1

    def count(self, *args: Any) -> int:
        key = self._key(args)
        with self._lock:
            state = self._states.get(key)
            return state.count if state else 0

    def samples(self) -> Iterator[_SampleTuple]:
        with self._lock:
            snapshot = [
                (key, list(state.counts), state.total, state.count)
                for key, state in self._states.items()
            ]
        for key, counts, total, count in snapshot:
            labels = self._labels(key)
            running = 0
            for bound, bucket_count in zip(self.buckets, counts):
                running += bucket_count
                yield f"{self.name}_bucket", {**labels, "le": _format_value(bound)}, float(running)
            yield f"{self.name}_sum", labels, total
            yield f"{self.name}_count", labels, float(count)


Metric = Union[Counter, Gauge, Histogram]


class Registry:
    """A named collection of metrics that renders to exposition text."""

    def __init__(self) -> None:
        self._metrics: dict[str, Metric] = {}
        self._lock = threading.Lock()

    def register(self, metric: Metric) -> Metric:
        with self._lock:
            if metric.name in self._metrics:
                raise ValueError(f"duplicate metric name: {metric.name}")
            self._metrics[metric.name] = metric
        return metric

    def render(self) -> str:
        with self._lock:
            metrics = list(self._metrics.values())
        lines: list[str] = []
        for metric in metrics:
            lines.append(f"# HELP {metric.name} {_escape_help(metric.help)}")
            lines.append(f"# TYPE {metric.name} {metric.kind}")
            for name, labels, value in metric.samples():
                if labels:
                    rendered = ",".join(f'{k}="{_escape_label(v)}"' for k, v in labels.items())
                    lines.append(f"{name}{{{rendered}}} {_format_value(value)}")
                else:
                    lines.append(f"{name} {_format_value(value)}")
        return "\n".join(lines) + "\n" if lines else ""


HTTP_REQUESTS_TOTAL = Counter(
    "http_requests_total", "Total number of HTTP requests.", ("path", "method", "status")
)
HTTP_REQUEST_DURATION = Histogram(
    "http_request_duration_seconds", "Duration of HTTP requests.", ("path", "method")
)
REDIS_CACHE_HITS = Counter("redis_cache_hits_total", "Total number of Redis cache hits.")
REDIS_CACHE_MISSES = Counter("redis_cache_misses_total", "Total number of Redis cache misses.")
ES_QUERY_DURATION = Histogram(
    "elasticsearch_query_duration_seconds", "Duration of Elasticsearch queries."
)
CAMPAIGNS_RETURNED = Gauge(
    "campaigns_returned_count",
    "Number of campaigns returned in the last successful response.",
)

REGISTRY = Registry()


def init_metrics(registry: Registry | None = None) -> Registry:
    """Register the service metrics; registering twice raises ValueError."""
    target = REGISTRY if registry is None else registry
    for metric in (
        HTTP_REQUESTS_TOTAL,
        HTTP_REQUEST_DURATION,
        REDIS_CACHE_HITS,
        REDIS_CACHE_MISSES,
        ES_QUERY_DURATION,
        CAMPAIGNS_RETURNED,
    ):
        target.register(metric)
    return target