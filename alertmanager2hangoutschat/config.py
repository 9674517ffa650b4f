"""
Startup configuration.

Flags are parsed once; each falls back to an environment variable so the
relay can be configured either way in a container. The resulting Config is
frozen: handlers receive it through create_app() and never mutate it.
"""

import argparse
import os
from typing import List, Optional

from alertmanager2hangoutschat import SERVICE_NAME
from alertmanager2hangoutschat.errors import ConfigError
from alertmanager2hangoutschat.logging_utils import LOG_LEVELS, parse_log_level
from alertmanager2hangoutschat.template_engine import DEFAULT_TEMPLATE

DEFAULT_PORT = "8080"
DEFAULT_POST_PATH = "/alertmanager"
DEFAULT_LOG_FORMAT = "json"
DEFAULT_LOG_LEVEL = "info"
DEFAULT_CHAT_TIMEOUT = 10
DEFAULT_SHUTDOWN_TIMEOUT = 5

RESERVED_PATHS = ("/health", "/metrics")


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog=SERVICE_NAME,
        description="Relay Alertmanager webhook notifications to Google Hangouts Chat rooms.",
        allow_abbrev=False,
    )
    parser.add_argument(
        "--port", "-port",
        default=os.environ.get("PORT", DEFAULT_PORT),
        help="Port to listen to (env: PORT)",
    )
    parser.add_argument(
        "--path", "-path",
        default=os.environ.get("POST_PATH", DEFAULT_POST_PATH),
        help="What path to listen to for POST requests (env: POST_PATH)",
    )
    parser.add_argument(
        "--log-format", "-log-format",
        dest="log_format",
        default=os.environ.get("LOG_FORMAT", DEFAULT_LOG_FORMAT),
        help="json for line-delimited JSON logs, anything else for text (env: LOG_FORMAT)",
    )
    parser.add_argument(
        "--log-level", "-log-level",
        dest="log_level",
        default=os.environ.get("LOG_LEVEL", DEFAULT_LOG_LEVEL),
        help=f"Can be one of: {','.join(LOG_LEVELS)} (env: LOG_LEVEL)",
    )
    parser.add_argument(
        "--template-string", "-template-string",
        dest="template_string",
        default=os.environ.get("TEMPLATE_STRING", ""),
        help="Jinja2 template for the messages sent to hangouts chat; "
             "empty uses the built-in template (env: TEMPLATE_STRING)",
    )
    return parser


def parse_args(argv: Optional[List[str]] = None) -> argparse.Namespace:
    return build_parser().parse_args(argv)


class Config:
    """Immutable service configuration."""

    def __init__(
        self,
        port: int = int(DEFAULT_PORT),
        path: str = DEFAULT_POST_PATH,
        log_format: str = DEFAULT_LOG_FORMAT,
        log_level: str = DEFAULT_LOG_LEVEL,
        template_string: str = "",
        chat_timeout: float = DEFAULT_CHAT_TIMEOUT,
        shutdown_timeout: float = DEFAULT_SHUTDOWN_TIMEOUT,
    ):
        self.PORT = port
        self.PATH = path
        self.LOG_FORMAT = log_format
        self.LOG_LEVEL = log_level.strip().lower()
        self.TEMPLATE_STRING = template_string or DEFAULT_TEMPLATE
        self.CHAT_TIMEOUT = chat_timeout
        self.SHUTDOWN_TIMEOUT = shutdown_timeout

        self._validate()
        self._frozen = True

    @classmethod
    def from_args(cls, args: argparse.Namespace) -> "Config":
        """
        Build a Config from parsed flags.

        Raises:
            ConfigError: a flag value is invalid
        """
        try:
            port = int(args.port)
        except (TypeError, ValueError):
            raise ConfigError(f"PORT must be an integer, got: {args.port!r}") from None

        return cls(
            port=port,
            path=args.path,
            log_format=args.log_format,
            log_level=args.log_level,
            template_string=args.template_string,
        )

    def _validate(self) -> None:
        if self.PORT < 1 or self.PORT > 65535:
            raise ConfigError(f"PORT must be between 1-65535, got: {self.PORT}")

        if not self.PATH.startswith("/"):
            raise ConfigError(f"PATH must start with '/', got: {self.PATH!r}")
        if self.PATH in RESERVED_PATHS:
            raise ConfigError(f"PATH {self.PATH!r} collides with a built-in endpoint")

        parse_log_level(self.LOG_LEVEL)

        if self.CHAT_TIMEOUT <= 0:
            raise ConfigError(f"CHAT_TIMEOUT must be positive, got: {self.CHAT_TIMEOUT}")

    def __setattr__(self, name, value):
        if getattr(self, "_frozen", False):
            raise AttributeError(f"Config is immutable, cannot set {name}")
        super().__setattr__(name, value)

    def __repr__(self) -> str:
        return (
            f"Config(PORT={self.PORT}, PATH={self.PATH!r}, LOG_FORMAT={self.LOG_FORMAT!r}, "
            f"LOG_LEVEL={self.LOG_LEVEL!r}, custom_template={self.TEMPLATE_STRING != DEFAULT_TEMPLATE})"
        )
