"""Central registry for Prometheus metrics used across the backend."""

from __future__ import annotations

from prometheus_client import Counter, Gauge, Histogram, Summary


REQUEST_COUNTER = Counter(
	"celestia_http_requests_total",
	"Total HTTP requests processed",
	["route", "method", "status"],
)

REQUEST_LATENCY = Histogram(
	"celestia_http_request_duration_seconds",
	"HTTP request latency in seconds",
	["route", "method"],
	buckets=(0.01, 0.025, 0.05, 0.1, 0.25, 0.5, 1.0, 2.0, 5.0),
)

REDIS_UP = Gauge("celestia_redis_up", "Redis availability (1=up,0=down)")
REDIS_LATENCY = Summary("celestia_redis_latency_seconds", "Redis ping latency (seconds)")

POSTGRES_UP = Gauge("celestia_postgres_up", "Postgres availability (1=up,0=down)")
POSTGRES_LATENCY = Summary("celestia_postgres_latency_seconds", "Postgres ping latency (seconds)")

BACKGROUND_RUNS = Counter(
	"celestia_background_runs_total",
	"Background job executions",
	["job", "result"],
)

MOD_TRANSITIONS_TOTAL = Counter(
	"mod_account_transitions_total",
	"Account lifecycle transitions attempted",
	["action", "outcome"],
)

MOD_ACTION_LATENCY_SECONDS = Histogram(
	"mod_action_latency_seconds",
	"Latency of admin moderation actions including the commit",
	["action"],
	buckets=(0.001, 0.005, 0.01, 0.025, 0.05, 0.1, 0.25, 0.5, 1.0, 2.5),
)

MOD_NOTIFICATIONS_TOTAL = Counter(
	"mod_notifications_total",
	"Lifecycle notifications dispatched",
	["kind", "outcome"],
)

MOD_REPORTS_TOTAL = Counter(
	"mod_reports_total",
	"Moderation reports processed",
	["stage", "resolution"],
)

MOD_APPEALS_TOTAL = Counter(
	"mod_appeals_total",
	"Moderation appeals processed",
	["stage", "outcome"],
)

MOD_QUEUE_EVENTS_TOTAL = Counter(
	"mod_queue_events_total",
	"Moderation queue admissions and removals",
	["event"],
)

MOD_AUDIT_FAILURES_TOTAL = Counter(
	"mod_audit_failures_total",
	"Audit writes that failed after a committed transition",
	["action"],
)

MOD_DASHBOARD_BUILD_MS = Histogram(
	"mod_dashboard_build_ms",
	"Moderation dashboard build latency (milliseconds)",
	buckets=(5.0, 10.0, 25.0, 50.0, 100.0, 250.0, 500.0, 1000.0, 2500.0),
)


def observe_request(route: str, method: str, status: int, elapsed_seconds: float) -> None:
	REQUEST_COUNTER.labels(route=route, method=method, status=str(status)).inc()
	REQUEST_LATENCY.labels(route=route, method=method).observe(elapsed_seconds)


def mark_redis(up: bool, *, latency_seconds: float | None = None) -> None:
	REDIS_UP.set(1 if up else 0)
	if latency_seconds is not None:
		REDIS_LATENCY.observe(latency_seconds)


def mark_postgres(up: bool, *, latency_seconds: float | None = None) -> None:
	POSTGRES_UP.set(1 if up else 0)
	if latency_seconds is not None:
		POSTGRES_LATENCY.observe(latency_seconds)


def inc_background_run(job: str, result: str) -> None:
	BACKGROUND_RUNS.labels(job=job, result=result).inc()


def inc_transition(action: str, outcome: str) -> None:
	MOD_TRANSITIONS_TOTAL.labels(action=action, outcome=outcome).inc()


def inc_notification(kind: str, outcome: str) -> None:
	MOD_NOTIFICATIONS_TOTAL.labels(kind=kind, outcome=outcome).inc()
