"""Prometheus metrics for the gateway."""

from prometheus_client import CollectorRegistry, Counter

# Registry for isolated metric collection
CUSTOM_REGISTRY = CollectorRegistry()

REQUESTS = Counter("requests_total", "Total HTTP requests", registry=CUSTOM_REGISTRY)
ERRORS = Counter("errors_total", "Total HTTP requests that failed", registry=CUSTOM_REGISTRY)
CHAT_TURNS = Counter(
    "chat_turns_total",
    "Chat turns by provider and outcome",
    ["provider", "outcome"],
    registry=CUSTOM_REGISTRY,
)
CHAT_FRAGMENTS = Counter(
    "chat_fragments_total",
    "Content fragments forwarded to callers",
    ["provider"],
    registry=CUSTOM_REGISTRY,
)
