"""Central registry for Prometheus metrics used across the discovery client."""

from __future__ import annotations

from prometheus_client import Counter, Histogram, Summary


REQUEST_COUNTER = Counter(
	"taalmeet_http_requests_total",
	"Total HTTP requests processed",
	["route", "method", "status"],
)

REQUEST_LATENCY = Histogram(
	"taalmeet_http_request_duration_seconds",
	"HTTP request latency in seconds",
	["route", "method"],
	buckets=(0.01, 0.025, 0.05, 0.1, 0.25, 0.5, 1.0, 2.0, 5.0),
)

BACKEND_CALLS = Counter(
	"taalmeet_backend_calls_total",
	"Calls made to the remote backend",
	["operation", "outcome"],
)

BACKEND_RETRIES = Counter(
	"taalmeet_backend_retries_total",
	"Retries issued after transient backend failures",
	["operation"],
)

LOCATION_PUSHES = Counter(
	"taalmeet_location_pushes_total",
	"Location updates pushed to the backend",
	["outcome"],
)

LOCATION_READ_FAILURES = Counter(
	"taalmeet_location_read_failures_total",
	"Device position reads that failed",
	["reason"],
)

NEARBY_FETCHES = Counter(
	"taalmeet_nearby_fetches_total",
	"Nearby candidate fetches by outcome",
	["outcome"],
)

NEARBY_RESULTS = Summary(
	"taalmeet_nearby_results",
	"Nearby fetch result sizes",
)

QUERY_CACHE = Counter(
	"taalmeet_query_cache_total",
	"Request cache lookups",
	["namespace", "result"],
)

STALE_RESPONSES_DISCARDED = Counter(
	"taalmeet_stale_responses_discarded_total",
	"Fetch responses dropped because the requesting context moved on",
)


def observe_request(route: str, method: str, status: int, elapsed_seconds: float) -> None:
	REQUEST_COUNTER.labels(route=route, method=method, status=str(status)).inc()
	REQUEST_LATENCY.labels(route=route, method=method).observe(elapsed_seconds)


def inc_backend_call(operation: str, outcome: str) -> None:
	BACKEND_CALLS.labels(operation=operation, outcome=outcome).inc()


def inc_backend_retry(operation: str) -> None:
	BACKEND_RETRIES.labels(operation=operation).inc()


def inc_location_push(outcome: str) -> None:
	LOCATION_PUSHES.labels(outcome=outcome).inc()


def inc_location_read_failure(reason: str) -> None:
	LOCATION_READ_FAILURES.labels(reason=reason).inc()


def inc_nearby_fetch(outcome: str, count: int = 0) -> None:
	NEARBY_FETCHES.labels(outcome=outcome).inc()
	if outcome == "ok":
		NEARBY_RESULTS.observe(count)


def inc_query_cache(namespace: str, result: str) -> None:
	QUERY_CACHE.labels(namespace=namespace, result=result).inc()


def inc_stale_discarded() -> None:
	STALE_RESPONSES_DISCARDED.inc()
