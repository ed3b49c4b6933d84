"""
In-process Prometheus collectors for the ingestion pipeline.

Registered in the default REGISTRY; nothing here starts an HTTP exporter.
"""

from prometheus_client import Counter, Histogram


MESSAGES_RECEIVED_TOTAL = Counter(
    "mqtt_messages_received_total",
    "Total number of MQTT messages delivered to the store writer",
)

STORE_WRITES_TOTAL = Counter(
    "store_writes_total",
    "Total number of message inserts by outcome",
    ["status"],
)

STORE_WRITE_LATENCY = Histogram(
    "store_write_latency_seconds",
    "Single-row insert latency in seconds",
    buckets=[0.0005, 0.001, 0.0025, 0.005, 0.01, 0.025, 0.05, 0.1, 0.25, 1.0],
)

CONNECT_ATTEMPTS_TOTAL = Counter(
    "mqtt_connect_attempts_total",
    "Broker connect attempts by outcome",
    ["outcome"],
)

DISCONNECTS_TOTAL = Counter(
    "mqtt_disconnects_total",
    "Transport-reported disconnects",
)

REPAIR_RUNS_TOTAL = Counter(
    "repair_runs_total",
    "Network repair trigger outcomes",
    ["outcome"],
)


class MetricsRegistry:
    """Groups the ingester's collectors for callers that want one handle."""

    messages_received_total = MESSAGES_RECEIVED_TOTAL
    store_writes_total = STORE_WRITES_TOTAL
    store_write_latency = STORE_WRITE_LATENCY
    connect_attempts_total = CONNECT_ATTEMPTS_TOTAL
    disconnects_total = DISCONNECTS_TOTAL
    repair_runs_total = REPAIR_RUNS_TOTAL


# Singleton instance
metrics_registry = MetricsRegistry()
