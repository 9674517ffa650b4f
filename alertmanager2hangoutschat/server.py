"""
Process shell: flags, logging, then gunicorn.

gunicorn is embedded as a custom application so the relay ships as a single
command. One worker process with a thread pool serves requests in parallel;
on SIGTERM in-flight requests get ``graceful_timeout`` seconds to finish.

Exit codes:
    0 - clean shutdown
    1 - configuration error (flags, log level, template)
    non-zero from gunicorn - bind failure
"""

import logging
import sys
from typing import Any, Dict, List, Optional

from flask import Flask
from gunicorn.app.base import BaseApplication

from alertmanager2hangoutschat import SERVICE_NAME, __version__
from alertmanager2hangoutschat.config import Config, parse_args
from alertmanager2hangoutschat.errors import ConfigError, TemplateParseError
from alertmanager2hangoutschat.logging_utils import setup_logging
from alertmanager2hangoutschat.relay_service import create_app

logger = logging.getLogger(__name__)

WORKER_THREADS = 16

# gunicorn knows fewer level names than the relay accepts
GUNICORN_LOG_LEVELS = {
    "trace": "debug",
    "debug": "debug",
    "info": "info",
    "warn": "warning",
    "warning": "warning",
    "error": "error",
    "fatal": "critical",
    "panic": "critical",
}


class RelayApplication(BaseApplication):
    """gunicorn application serving a pre-built Flask app."""

    def __init__(self, app: Flask, options: Optional[Dict[str, Any]] = None):
        self.options = options or {}
        self.application = app
        super().__init__()

    def load_config(self):
        for key, value in self.options.items():
            if key in self.cfg.settings and value is not None:
                self.cfg.set(key.lower(), value)

    def load(self):
        return self.application


def _on_exit(server):
    logger.info("Relay stopped")


def gunicorn_options(config: Config) -> Dict[str, Any]:
    return {
        "bind": f"0.0.0.0:{config.PORT}",
        "workers": 1,
        "worker_class": "gthread",
        "threads": WORKER_THREADS,
        "graceful_timeout": config.SHUTDOWN_TIMEOUT,
        "accesslog": None,
        "loglevel": GUNICORN_LOG_LEVELS[config.LOG_LEVEL],
        "proc_name": SERVICE_NAME,
        "on_exit": _on_exit,
    }


def main(argv: Optional[List[str]] = None) -> int:
    args = parse_args(argv)

    try:
        config = Config.from_args(args)
    except ConfigError as e:
        print(f"FATAL: Configuration error: {e}", file=sys.stderr)
        return 1

    setup_logging(log_format=config.LOG_FORMAT, log_level=config.LOG_LEVEL)

    try:
        app = create_app(config)
    except TemplateParseError as e:
        logger.critical(f"FATAL: Cannot parse template: {e}")
        return 1

    logger.info("=" * 70)
    logger.info(f"{SERVICE_NAME} v{__version__} listening on 0.0.0.0:{config.PORT}")
    logger.info(f"  POST {config.PATH}?url=<chat webhook>&env=<label>")
    logger.info("=" * 70)

    RelayApplication(app, gunicorn_options(config)).run()
    return 0


def run():
    sys.exit(main())
