"""Central registry for Prometheus metrics used across the backend."""

from __future__ import annotations

from prometheus_client import Counter, Histogram

REQUEST_COUNTER = Counter(
	"beacon_http_requests_total",
	"Total HTTP requests processed",
	["route", "method", "status"],
)

REQUEST_LATENCY = Histogram(
	"beacon_http_request_duration_seconds",
	"HTTP request latency in seconds",
	["route", "method"],
	buckets=(0.01, 0.025, 0.05, 0.1, 0.25, 0.5, 1.0, 2.0, 5.0),
)

DISCOVERY_CANDIDATES = Histogram(
	"beacon_discovery_candidates",
	"Candidates considered per nearby ranking request",
	["mode"],
	buckets=(0, 5, 10, 25, 50, 100, 250, 500, 1000),
)

DISCOVERY_RESULTS = Histogram(
	"beacon_discovery_results",
	"Ranked candidates returned per nearby request",
	["mode"],
	buckets=(0, 5, 10, 25, 50, 100, 200),
)

REPORTS_SUBMITTED = Counter(
	"beacon_reports_submitted_total",
	"User reports accepted",
)

REPORT_REJECTS = Counter(
	"beacon_report_rejects_total",
	"User reports rejected before persistence",
	["reason"],
)

TRUST_DEDUCTION_POINTS = Histogram(
	"beacon_trust_deduction_points",
	"Trust points deducted per accepted report",
	buckets=(2, 10, 20, 50, 100, 198),
)

REPORT_TRANSITIONS = Counter(
	"beacon_report_transitions_total",
	"Report status transitions applied by moderators",
	["status"],
)

MOD_ACTIONS = Counter(
	"beacon_moderation_actions_total",
	"Moderation actions dispatched",
	["action", "outcome"],
)

CONFLICTS = Counter(
	"beacon_write_conflicts_total",
	"Serialized writes that lost a race on the same entity",
	["entity"],
)


def observe_request(route: str, method: str, status: int, duration_seconds: float) -> None:
	REQUEST_COUNTER.labels(route=route, method=method, status=str(status)).inc()
	REQUEST_LATENCY.labels(route=route, method=method).observe(duration_seconds)


def observe_discovery(mode: str, candidates: int, results: int) -> None:
	DISCOVERY_CANDIDATES.labels(mode=mode).observe(candidates)
	DISCOVERY_RESULTS.labels(mode=mode).observe(results)


def inc_report_submitted(deduction: int) -> None:
	REPORTS_SUBMITTED.inc()
	TRUST_DEDUCTION_POINTS.observe(deduction)


def inc_report_reject(reason: str) -> None:
	REPORT_REJECTS.labels(reason=reason).inc()


def inc_transition(status: str) -> None:
	REPORT_TRANSITIONS.labels(status=status).inc()


def inc_mod_action(action: str, outcome: str = "applied") -> None:
	MOD_ACTIONS.labels(action=action, outcome=outcome).inc()


def inc_conflict(entity: str) -> None:
	CONFLICTS.labels(entity=entity).inc()
