"""Metrics collection for the promotion tooling.

Provides a thin convenience wrapper around ``prometheus_client`` so every
pipeline stage records remote calls, promotion outcomes and poll behaviour
with the same label sets.

Design notes
- Metrics and labels are predeclared to avoid cardinality explosions
- One registry per collector so tests and scripts never share state
- Scripts are short-lived, so metrics are exported through the node-exporter
  textfile collector instead of an HTTP endpoint
"""

from typing import Optional

from prometheus_client import CollectorRegistry, Counter, Histogram, generate_latest, write_to_textfile
import structlog

logger = structlog.get_logger("metrics")


class MetricsCollector:
    """Centralized metrics collection for a pipeline stage.

    Parameters
    - service_name: Logical stage name, kept for log context
    - registry: Optional custom ``CollectorRegistry`` (e.g. for testing)
    """

    def __init__(self, service_name: str, registry: Optional[CollectorRegistry] = None):
        self.service_name = service_name
        self.registry = registry or CollectorRegistry()

        self.remote_requests = Counter(
            'docintel_remote_requests_total',
            'Total Document Intelligence REST requests',
            ['operation', 'status'],
            registry=self.registry
        )

        self.remote_request_duration = Histogram(
            'docintel_remote_request_duration_seconds',
            'Document Intelligence REST request duration',
            ['operation'],
            registry=self.registry
        )

        self.promotions = Counter(
            'docintel_promotions_total',
            'Model promotions partitioned by outcome',
            ['outcome'],
            registry=self.registry
        )

        self.poll_attempts = Histogram(
            'docintel_operation_poll_attempts',
            'Status queries spent per long-running operation',
            ['outcome'],
            buckets=(1, 2, 3, 5, 8, 13, 21, 30, 50),
            registry=self.registry
        )

        self.workflow_duration = Histogram(
            'docintel_workflow_duration_seconds',
            'End-to-end duration of a pipeline stage',
            ['workflow', 'outcome'],
            buckets=(1, 5, 15, 30, 60, 120, 300, 600, 1200),
            registry=self.registry
        )

    def record_remote_request(self, operation: str, status: str, duration: float) -> None:
        """Record a REST call.

        ``status`` is the HTTP status code or ``transport_error``; duration is
        in seconds to match Prometheus histogram units.
        """
        self.remote_requests.labels(operation=operation, status=status).inc()
        self.remote_request_duration.labels(operation=operation).observe(duration)

    def record_promotion(self, outcome: str) -> None:
        """Record a promotion outcome (``succeeded``, ``failed``, ``timeout``, ``aborted``)."""
        self.promotions.labels(outcome=outcome).inc()

    def record_poll(self, outcome: str, attempts: int) -> None:
        """Record the number of status queries a poll loop consumed."""
        self.poll_attempts.labels(outcome=outcome).observe(attempts)

    def record_workflow(self, workflow: str, outcome: str, duration: float) -> None:
        """Record the duration of a whole stage run."""
        self.workflow_duration.labels(workflow=workflow, outcome=outcome).observe(duration)

    def get_metrics(self) -> str:
        """Get metrics in Prometheus exposition format."""
        return generate_latest(self.registry).decode('utf-8')

    def write_textfile(self, path: str) -> None:
        """Write the registry for the node-exporter textfile collector."""
        write_to_textfile(path, self.registry)
        logger.info("Metrics written", path=path, service=self.service_name)
