"""
Outbound client for chat incoming-webhooks.

Posts a pre-serialised ``{"text": ...}`` envelope and reports anything but
HTTP 200 as a failure. There is no retry: Alertmanager re-delivers the
notification when the relay answers 5xx.
"""

import logging
import time
from typing import Optional
from urllib.parse import urlsplit

import requests

from alertmanager2hangoutschat.errors import TransportError, UpstreamError
from alertmanager2hangoutschat.metrics import RelayMetrics

logger = logging.getLogger(__name__)

DEFAULT_TIMEOUT = 10
MESSAGE_PREVIEW_LENGTH = 200

HEADERS = {'Content-Type': 'application/json; charset=utf-8'}


def redact_url(url: str) -> str:
    """Drop the query string; chat webhooks carry their key and token there."""
    parts = urlsplit(url)
    return f"{parts.scheme}://{parts.netloc}{parts.path}"


def redact_message(message: str, url: str) -> str:
    """Mask the destination's query string inside a library error message."""
    query = urlsplit(url).query
    if not query:
        return message
    return message.replace(query, "<redacted>")


class ChatClient:
    """Delivers chat envelopes with a bounded timeout."""

    def __init__(self, timeout: float = DEFAULT_TIMEOUT, metrics: Optional[RelayMetrics] = None):
        self.timeout = timeout
        self.metrics = metrics if metrics is not None else RelayMetrics()

    def deliver(self, destination_url: str, envelope: bytes) -> None:
        """
        POST ``envelope`` to ``destination_url``.

        Raises:
            TransportError: the request never produced a response
            UpstreamError: the endpoint answered with a status other than 200
        """
        target = redact_url(destination_url)
        start_time = time.time()

        try:
            response = requests.post(
                destination_url,
                data=envelope,
                headers=HEADERS,
                timeout=self.timeout,
            )
            # Reading the body releases the connection back to the pool
            body = response.text
        except requests.exceptions.Timeout as e:
            self.metrics.chat_requests_total.labels(status='fail_transport').inc()
            raise TransportError(f"request to {target} timed out after {self.timeout}s") from e
        except requests.exceptions.RequestException as e:
            self.metrics.chat_requests_total.labels(status='fail_transport').inc()
            raise TransportError(
                f"request to {target} failed: {redact_message(str(e), destination_url)}"
            ) from e
        finally:
            self.metrics.chat_request_latency.observe(time.time() - start_time)

        if response.status_code != 200:
            self.metrics.chat_requests_total.labels(status='fail_http').inc()
            raise UpstreamError(response.status_code, body[:MESSAGE_PREVIEW_LENGTH])

        self.metrics.chat_requests_total.labels(status='success').inc()
        logger.debug(f"Delivered message to {target} (latency: {time.time() - start_time:.2f}s)")
