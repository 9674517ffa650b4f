"""
Error kinds raised along the ingress -> template -> egress pipeline.

Every failure the relay knows how to describe derives from RelayError and
carries a short ``kind`` used as a log field and as the ``reason`` label
on the notification counter.
"""

from typing import Optional


class RelayError(Exception):
    """Base class for all relay failures."""

    kind = "unknown"


class ConfigError(RelayError):
    """Invalid startup configuration. Fatal."""

    kind = "config"


class DecodeError(RelayError):
    """Inbound body is not a valid Alertmanager webhook payload."""

    kind = "decode"


class DestinationError(RelayError):
    """Missing or malformed ``url`` query parameter."""

    kind = "destination"


class TemplateError(RelayError):
    kind = "template"


class TemplateParseError(TemplateError):
    """Template source could not be compiled."""


class TemplateRenderError(TemplateError):
    """Template compiled but failed while rendering the model."""


class DeliveryError(RelayError):
    """Outbound POST to the chat webhook did not succeed."""

    kind = "delivery"


class TransportError(DeliveryError):
    """Network level failure: DNS, connect, TLS, read or timeout."""

    kind = "transport"


class UpstreamError(DeliveryError):
    """Chat endpoint answered with a status other than 200."""

    kind = "upstream"

    def __init__(self, status_code: int, body: str, message: Optional[str] = None):
        self.status_code = status_code
        self.body = body
        super().__init__(message or f"chat endpoint returned HTTP {status_code}: {body}")
