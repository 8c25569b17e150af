from prometheus_client import CONTENT_TYPE_LATEST, Counter, Gauge, Histogram, generate_latest

REQUESTS_TOTAL = Counter(
    "greenpay_requests_total",
    "Total assistant API requests",
    ["endpoint", "outcome"],
)
LIMITER_DECISIONS = Counter(
    "greenpay_limiter_decisions_total",
    "Usage limiter verdicts",
    ["outcome"],
)
LIMITER_IDENTITIES = Gauge("greenpay_limiter_identities", "Identities tracked by the usage limiter")
REQUEST_LATENCY = Histogram(
    "greenpay_request_latency_seconds", "Request latency in seconds", ["endpoint"]
)


def render_metrics() -> bytes:
    return generate_latest()


METRICS_CONTENT_TYPE = CONTENT_TYPE_LATEST
