"""
Alert Handler: one inbound notification from decode to delivery.

    1. destination  - ``url`` query parameter, absolute http(s) URL
    2. decode       - request body as an Alertmanager webhook payload
    3. model        - payload + query parameters
    4. render       - configured template
    5. envelope     - {"text": <rendered>}
    6. deliver      - POST to the destination, 200 required

Any failure is logged once and answered with 500 so Alertmanager retries.
"""

import logging
from typing import Any, Mapping
from urllib.parse import urlsplit

from alertmanager2hangoutschat.chat_client import ChatClient, redact_url
from alertmanager2hangoutschat.errors import DestinationError, RelayError
from alertmanager2hangoutschat.metrics import RelayMetrics
from alertmanager2hangoutschat.models import ChatEnvelope, RenderModel, decode_payload
from alertmanager2hangoutschat.template_engine import TemplateEngine

logger = logging.getLogger(__name__)

HTTP_OK = 200
HTTP_INTERNAL_SERVER_ERROR = 500

ALLOWED_SCHEMES = ("http", "https")


def parse_destination(query: Mapping[str, Any]) -> str:
    """
    Extract and validate the destination webhook from the query parameters.

    Raises:
        DestinationError: ``url`` is missing, not absolute, not http(s) or has no host
    """
    raw = query.get("url", "")
    if not raw:
        raise DestinationError("missing 'url' query parameter")

    try:
        parts = urlsplit(raw)
        hostname = parts.hostname
    except ValueError as e:
        raise DestinationError(f"malformed 'url' query parameter: {e}") from e

    if parts.scheme not in ALLOWED_SCHEMES:
        raise DestinationError(f"'url' must be an absolute http(s) URL, got scheme {parts.scheme!r}")
    if not hostname:
        raise DestinationError("'url' query parameter has no host")
    return raw


class AlertHandler:
    """Runs the relay pipeline for a single request."""

    def __init__(
        self,
        template_source: str,
        engine: TemplateEngine,
        chat_client: ChatClient,
        metrics: RelayMetrics,
    ):
        self.template_source = template_source
        self.engine = engine
        self.chat_client = chat_client
        self.metrics = metrics

    def handle(self, query: Mapping[str, Any], body: bytes) -> int:
        """
        Relay one notification.

        Args:
            query: multi-valued query parameters of the inbound request
            body: raw request body

        Returns:
            HTTP status for the inbound caller (200 or 500)
        """
        try:
            destination = parse_destination(query)
            payload = decode_payload(body)
            model = RenderModel.build(payload, query)
            text = self.engine.render(self.template_source, model.context())
            envelope = ChatEnvelope(text=text).to_bytes()
            self.chat_client.deliver(destination, envelope)

        except RelayError as e:
            logger.error(
                f"Failed to relay alert notification ({e.kind}): {e}",
                extra={"error_kind": e.kind},
            )
            self.metrics.notifications_total.labels(status='fail', reason=e.kind).inc()
            return HTTP_INTERNAL_SERVER_ERROR

        logger.info(
            f"Relayed {payload.Status} notification with {len(payload.Alerts)} alert(s) "
            f"to {redact_url(destination)}",
            extra={"group_key": payload.GroupKey, "alert_count": len(payload.Alerts)},
        )
        self.metrics.notifications_total.labels(status='success', reason='').inc()
        return HTTP_OK
