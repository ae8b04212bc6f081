"""
Prometheus metrics for monitoring.

Counts envelopes built, permits signed and exchange requests adapted.
Collection is off unless enabled; the HTTP exporter is opt-in.
"""

import time
from typing import Optional
from functools import wraps
import logging

from prometheus_client import CollectorRegistry, Counter, Histogram, start_http_server

logger = logging.getLogger(__name__)


class Metrics:
    """
    Prometheus metrics collector.

    Tracks:
    - Envelopes built per action kind
    - Permits signed per signature encoding
    - Signing latency
    - Exchange adapter requests per action and outcome
    """

    def __init__(
        self,
        enabled: bool = False,
        port: int = 9090,
        registry: Optional[CollectorRegistry] = None
    ):
        """
        Initialize metrics.

        Args:
            enabled: Enable metrics collection
            port: Port used by start_server()
            registry: Registry to record into (a private one by default)
        """
        self.enabled = enabled
        self.port = port
        self.registry = registry or CollectorRegistry()

        if not self.enabled:
            return

        self.envelopes_built = Counter(
            'ambient_permit_envelopes_built_total',
            'Total permit envelopes built',
            ['action'],
            registry=self.registry
        )

        self.permits_signed = Counter(
            'ambient_permit_permits_signed_total',
            'Total permits signed',
            ['encoding'],
            registry=self.registry
        )

        self.signing_latency = Histogram(
            'ambient_permit_signing_latency_seconds',
            'Time to encode and sign one permit',
            registry=self.registry
        )

        self.adapter_requests = Counter(
            'ambient_permit_adapter_requests_total',
            'Exchange requests translated to permits',
            ['action', 'status'],
            registry=self.registry
        )

    def start_server(self) -> bool:
        """
        Expose metrics over HTTP.

        Returns:
            True if the server started
        """
        if not self.enabled:
            return False
        try:
            start_http_server(self.port, registry=self.registry)
            logger.info(f"Metrics server started on port {self.port}")
            return True
        except OSError as e:
            logger.error(f"Failed to start metrics server: {e}")
            return False

    def track_envelope(self, action: str) -> None:
        """Record a built envelope."""
        if self.enabled:
            self.envelopes_built.labels(action=action).inc()

    def track_signed(self, encoding: str, count: int = 1) -> None:
        """Record signed permits."""
        if self.enabled:
            self.permits_signed.labels(encoding=encoding).inc(count)

    def track_signing_latency(self, duration: float) -> None:
        """Record signing latency."""
        if self.enabled:
            self.signing_latency.observe(duration)

    def track_adapter_request(self, action: str, status: str) -> None:
        """Record an adapted exchange request."""
        if self.enabled:
            self.adapter_requests.labels(action=action, status=status).inc()


# Global metrics instance
_metrics: Optional[Metrics] = None


def get_metrics(enabled: bool = False, port: int = 9090) -> Metrics:
    """Get or create metrics instance."""
    global _metrics
    if _metrics is None:
        _metrics = Metrics(enabled=enabled, port=port)
    return _metrics


def configure_metrics(enabled: bool, port: int = 9090) -> Metrics:
    """Replace the global metrics instance."""
    global _metrics
    _metrics = Metrics(enabled=enabled, port=port)
    return _metrics


def configure_metrics_from_settings(settings, start_server: bool = False) -> Metrics:
    """
    Install the global instance from PermitSettings.

    The current instance is kept when it already matches enable_metrics and
    metrics_port, so counters survive repeated calls.

    Args:
        settings: PermitSettings (enable_metrics, metrics_port)
        start_server: Also expose the exporter on metrics_port

    Returns:
        The global Metrics instance
    """
    metrics = _metrics
    if (
        metrics is None
        or metrics.enabled != settings.enable_metrics
        or metrics.port != settings.metrics_port
    ):
        metrics = configure_metrics(settings.enable_metrics, settings.metrics_port)
    if start_server:
        metrics.start_server()
    return metrics


def track_signing_time(func):
    """Decorator recording how long func takes in the signing histogram."""
    @wraps(func)
    def wrapper(*args, **kwargs):
        metrics = _metrics
        if not metrics or not metrics.enabled:
            return func(*args, **kwargs)

        start = time.perf_counter()
        try:
            return func(*args, **kwargs)
        finally:
            metrics.track_signing_latency(time.perf_counter() - start)
    return wrapper
