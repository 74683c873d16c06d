"""Prometheus metrics collection for the console.

This module defines and manages Prometheus metrics for monitoring
request rates, acquisition jobs, the event bus and sandbox denials.
"""

from prometheus_client import Counter, Gauge, Histogram, Info

# Application info
app_info = Info("homedash", "Operator console application information")

# HTTP request metrics
http_requests_total = Counter(
    "http_requests_total",
    "Total HTTP requests",
    ["method", "endpoint", "status"],
)

http_request_duration_seconds = Histogram(
    "http_request_duration_seconds",
    "HTTP request duration in seconds",
    ["method", "endpoint"],
    buckets=[0.01, 0.05, 0.1, 0.25, 0.5, 1.0, 2.0, 5.0, 10.0, 30.0],
)

# Job metrics
jobs_total = Counter(
    "jobs_total",
    "Total acquisition jobs by final status",
    ["status"],
)

job_duration_seconds = Histogram(
    "job_duration_seconds",
    "Acquisition job duration in seconds",
    buckets=[10.0, 30.0, 60.0, 300.0, 900.0, 1800.0, 3600.0, 7200.0],
)

job_running = Gauge(
    "job_running",
    "1 while an acquisition job is running, 0 otherwise",
)

job_rejections_total = Counter(
    "job_rejections_total",
    "Start requests rejected by reason",
    ["reason"],
)

# Event bus metrics
event_bus_subscribers = Gauge(
    "event_bus_subscribers",
    "Number of connected push channel subscribers",
)

events_published_total = Counter(
    "events_published_total",
    "Total events published on the event bus",
    ["event"],
)

event_subscribers_dropped_total = Counter(
    "event_subscribers_dropped_total",
    "Subscribers dropped because their queue overflowed",
)

# Sandbox metrics
sandbox_denials_total = Counter(
    "sandbox_denials_total",
    "Requests denied for escaping a sandbox root",
    ["operation"],
)


class MetricsCollector:
    """Centralized metrics collection and update helper.

    Provides static methods for recording various metrics throughout
    the application in a consistent manner.
    """

    @staticmethod
    def record_request(
        method: str,
        endpoint: str,
        status: int,
        duration: float,
    ) -> None:
        """Record HTTP request metrics.

        Args:
            method: HTTP method (GET, POST, etc.).
            endpoint: Normalized endpoint path.
            status: HTTP response status code.
            duration: Request duration in seconds.
        """
        http_requests_total.labels(
            method=method,
            endpoint=endpoint,
            status=str(status),
        ).inc()
        http_request_duration_seconds.labels(
            method=method,
            endpoint=endpoint,
        ).observe(duration)

    @staticmethod
    def record_job_started() -> None:
        job_running.set(1)

    @staticmethod
    def record_job_finished(status: str, duration: float) -> None:
        """Record a finished acquisition job.

        Args:
            status: Final job state ('succeeded' or 'failed').
            duration: Job duration in seconds.
        """
        job_running.set(0)
        jobs_total.labels(status=status).inc()
        job_duration_seconds.observe(duration)

    @staticmethod
    def record_job_rejected(reason: str) -> None:
        job_rejections_total.labels(reason=reason).inc()

    @staticmethod
    def record_event_published(event: str) -> None:
        events_published_total.labels(event=event).inc()

    @staticmethod
    def update_subscriber_count(count: int) -> None:
        event_bus_subscribers.set(count)

    @staticmethod
    def record_subscriber_dropped() -> None:
        event_subscribers_dropped_total.inc()

    @staticmethod
    def record_sandbox_denial(operation: str) -> None:
        """Record a sandbox escape attempt.

        Args:
            operation: Route family ('browse', 'download' or 'stream').
        """
        sandbox_denials_total.labels(operation=operation).inc()


def initialize_metrics(version: str) -> None:
    """Initialize application metrics with version information.

    Should be called during application startup.

    Args:
        version: Application version string.
    """
    app_info.info({"version": version})
