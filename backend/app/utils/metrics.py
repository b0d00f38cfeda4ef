"""Prometheus metrics for trip generation."""

from prometheus_client import Counter, Histogram

# Generation run metrics
generation_runs_total = Counter(
    "generation_runs_total",
    "Total generation runs by terminal outcome",
    ["outcome"],
)

generation_step_latency_ms = Histogram(
    "generation_step_latency_ms",
    "Generation step latency in milliseconds",
    ["step"],
    buckets=[10, 50, 100, 250, 500, 1000, 2500, 5000, 10000, 30000, 60000],
)

soft_fetch_failures_total = Counter(
    "soft_fetch_failures_total",
    "Weather/event fetch failures absorbed by the pipeline",
    ["source", "reason"],
)

credit_spend_total = Counter(
    "credit_spend_total",
    "Credit debit attempts by result",
    ["result"],
)

status_update_failures_total = Counter(
    "status_update_failures_total",
    "Best-effort trip status updates that failed",
    ["status"],
)


class PrometheusGenerationMetrics:
    """Prometheus-based generation metrics implementation."""

    def record_step_latency(self, step: str, latency_ms: float) -> None:
        """Record time spent in a pipeline step."""
        generation_step_latency_ms.labels(step=step).observe(latency_ms)

    def inc_run(self, outcome: str) -> None:
        """Count a run reaching a terminal outcome."""
        generation_runs_total.labels(outcome=outcome).inc()

    def inc_soft_failure(self, source: str, reason: str) -> None:
        """Count an absorbed weather/event failure."""
        soft_fetch_failures_total.labels(source=source, reason=reason).inc()

    def inc_credit_spend(self, result: str) -> None:
        """Count a credit debit attempt."""
        credit_spend_total.labels(result=result).inc()

    def inc_status_update_failure(self, status: str) -> None:
        """Count a failed best-effort status update."""
        status_update_failures_total.labels(status=status).inc()
