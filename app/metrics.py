from prometheus_client import Counter, Histogram

REQUEST_COUNT = Counter(
    "http_requests_total",
    "Total HTTP requests",
    ["method", "path", "status"],
)
REQUEST_LATENCY = Histogram(
    "http_request_duration_seconds",
    "HTTP request latency",
    ["method", "path", "status"],
)
REQUEST_ERRORS = Counter(
    "http_request_errors_total",
    "Total HTTP 5xx responses",
    ["method", "path", "status"],
)

CTO_ASSIGNMENTS = Counter(
    "cto_assignments_total",
    "Customer to CTO assignment attempts",
    ["outcome"],
)
CTO_RESERVATION_CONFLICTS = Counter(
    "cto_reservation_conflicts_total",
    "Port reservations rejected because the CTO was full",
)


def observe_assignment(outcome: str) -> None:
    CTO_ASSIGNMENTS.labels(outcome=outcome).inc()
