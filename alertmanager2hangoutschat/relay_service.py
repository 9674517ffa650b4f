"""
=====================================================================
Alertmanager to Hangouts Chat Relay - HTTP Ingress
=====================================================================
Flask application that receives Alertmanager webhook notifications and
relays each one, rendered through a template, to the chat room given in
the ``url`` query parameter.

Endpoints:
    POST <PATH>   - relay a notification (?url=<chat webhook>&env=<label>)
    GET  /health  - liveness, always 200 with an empty body
    GET  /metrics - Prometheus metrics

The application carries no mutable state beyond its immutable Config, the
template cache and its metrics, so requests are served in parallel.
=====================================================================
"""

import logging
import time
import uuid
from typing import Optional

from flask import Flask, g, request
from prometheus_client import CollectorRegistry
from prometheus_flask_exporter import PrometheusMetrics
from werkzeug.exceptions import HTTPException

from alertmanager2hangoutschat import __version__
from alertmanager2hangoutschat.alert_handler import AlertHandler
from alertmanager2hangoutschat.chat_client import ChatClient
from alertmanager2hangoutschat.config import Config
from alertmanager2hangoutschat.metrics import RelayMetrics
from alertmanager2hangoutschat.template_engine import TemplateEngine

logger = logging.getLogger(__name__)

CORRELATION_HEADER = "X-Correlation-ID"
UNLOGGED_PATHS = ("/health", "/metrics")


def create_app(config: Config, registry: Optional[CollectorRegistry] = None) -> Flask:
    """
    Creates and configures the Flask application.

    Args:
        config: validated service configuration
        registry: Prometheus registry backing /metrics (default: a new one)

    Raises:
        TemplateParseError: the configured template does not parse
    """
    app = Flask(__name__)
    app.config["CONFIG"] = config

    engine = TemplateEngine()
    # Fail at startup rather than on the first notification
    engine.parse(config.TEMPLATE_STRING)

    registry = registry if registry is not None else CollectorRegistry()
    relay_metrics = RelayMetrics(registry=registry)
    handler = AlertHandler(
        template_source=config.TEMPLATE_STRING,
        engine=engine,
        chat_client=ChatClient(timeout=config.CHAT_TIMEOUT, metrics=relay_metrics),
        metrics=relay_metrics,
    )
    app.extensions["alert_handler"] = handler

    metrics = PrometheusMetrics(app, registry=registry, group_by="path")
    metrics.info("relay_app_info", "Relay application info", version=__version__)
    logger.info("Prometheus metrics endpoint initialized at /metrics")

    # ================================================================
    # REQUEST HANDLERS
    # ================================================================

    @app.before_request
    def pre_request_handling():
        """Assigns the correlation id and starts the request timer."""
        g.correlation_id = request.headers.get(CORRELATION_HEADER) or str(uuid.uuid4())
        g.request_start = time.time()

    @app.after_request
    def post_request_handling(response):
        """Echoes the correlation id and logs the request."""
        response.headers[CORRELATION_HEADER] = g.get("correlation_id", "")

        if request.path not in UNLOGGED_PATHS:
            duration = time.time() - g.get("request_start", time.time())
            logger.info(
                f"{request.method} {request.path} {response.status_code} ({duration:.3f}s)",
                extra={
                    "method": request.method,
                    "path": request.path,
                    "status": response.status_code,
                    "duration": round(duration, 6),
                    "remote_addr": request.remote_addr,
                },
            )
        return response

    @app.errorhandler(Exception)
    def handle_unexpected_error(e):
        if isinstance(e, HTTPException):
            return e
        logger.error(f"Unhandled error on {request.method} {request.path}: {e}", exc_info=True)
        return "", 500

    @app.route('/health', methods=['GET'])
    def health_check():
        """Liveness endpoint for load balancers and orchestrators."""
        return "", 200

    @app.route(config.PATH, methods=['POST'])
    def relay_notification():
        """Relays one Alertmanager notification to the chat room in ?url=."""
        status = handler.handle(request.args, request.get_data())
        return "", status

    logger.info(f"Relay ready: POST {config.PATH} ({config!r})")
    return app
