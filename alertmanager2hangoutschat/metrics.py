"""
Prometheus collectors owned by the relay.

Collectors are created per application against the registry that backs
that application's /metrics endpoint, so several apps (tests, embedded
use) can live in one process without duplicate registrations.
"""

from typing import Optional

from prometheus_client import CollectorRegistry, Counter, Histogram


class RelayMetrics:
    """Counters and histograms for notifications and outbound chat requests."""

    def __init__(self, registry: Optional[CollectorRegistry] = None):
        self.registry = registry if registry is not None else CollectorRegistry()

        self.notifications_total = Counter(
            'relay_notifications_total',
            'Alert notifications handled by the relay',
            ['status', 'reason'],  # status: success|fail, reason: error kind or ''
            registry=self.registry,
        )

        self.chat_requests_total = Counter(
            'relay_chat_requests_total',
            'Outbound requests to chat webhooks',
            ['status'],  # success, fail_http, fail_transport
            registry=self.registry,
        )

        self.chat_request_latency = Histogram(
            'relay_chat_request_latency_seconds',
            'Latency of outbound chat webhook requests',
            buckets=[0.05, 0.1, 0.25, 0.5, 1.0, 2.5, 5.0, 10.0],
            registry=self.registry,
        )
