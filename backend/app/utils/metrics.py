"""Prometheus metrics for the retrieval pipeline and protocol endpoint."""

from prometheus_client import Counter, Histogram

embedding_latency_ms = Histogram(
    "embedding_latency_ms",
    "Embedding API latency in milliseconds",
    ["outcome"],
    buckets=[10, 50, 100, 200, 500, 1000, 2000, 4000, 8000],
)

vector_upserts_total = Counter(
    "vector_upserts_total",
    "Total vector index upserts",
    ["kind", "outcome"],
)

rule_generations_total = Counter(
    "rule_generations_total",
    "Total rule generation runs",
    ["source"],
)

mcp_requests_total = Counter(
    "mcp_requests_total",
    "Total protocol endpoint requests",
    ["method", "outcome"],
)


class PrometheusRagMetrics:
    """Prometheus-based RAG pipeline metrics."""

    def record_embedding(self, outcome: str, latency_ms: float) -> None:
        """Record embedding call latency."""
        embedding_latency_ms.labels(outcome=outcome).observe(latency_ms)

    def inc_upsert(self, kind: str, outcome: str) -> None:
        """Increment vector upsert counter."""
        vector_upserts_total.labels(kind=kind, outcome=outcome).inc()

    def inc_generation(self, source: str) -> None:
        """Increment rule generation counter by synthesis source."""
        rule_generations_total.labels(source=source).inc()

    def inc_mcp_request(self, method: str, outcome: str) -> None:
        """Increment protocol request counter."""
        mcp_requests_total.labels(method=method, outcome=outcome).inc()


metrics = PrometheusRagMetrics()
