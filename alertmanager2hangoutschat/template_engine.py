"""
Template engine for chat messages.

Templates are Jinja2, evaluated in an immutable sandbox with strict
undefined handling, so a typo in an attribute name fails the request
instead of silently posting an empty field.

The helper set mirrors the functions Alertmanager exposes to its own
templates. Every helper is registered twice:

- as a global, called with all arguments:  ``join(", ", Alerts.Firing)``
- as a filter, where the piped value becomes the LAST argument:
  ``names | join(", ")`` is ``join(", ", names)`` and
  ``text | reReplaceAll("-", "_")`` is ``reReplaceAll("-", "_", text)``

``reReplaceAll`` uses Python ``re`` syntax; back-references in the
replacement are written ``\\1`` or ``\\g<name>``.
"""

import functools
import logging
import re
import threading
import traceback
from typing import Any, Callable, Dict, Iterable, Mapping, Optional

import jinja2
from jinja2.sandbox import ImmutableSandboxedEnvironment

from alertmanager2hangoutschat.errors import TemplateParseError, TemplateRenderError

logger = logging.getLogger(__name__)

TEMPLATE_NAME = "message"
TEMPLATE_CACHE_SIZE = 32

# Jinja reports template frames under this filename for from_string() sources
_TEMPLATE_FILENAME = "<template>"

DEFAULT_TEMPLATE = """\
{%- macro alert_block(alert) -%}
*{{ alert.Labels.alertname }}*
{% for pair in alert.Annotations.SortedPairs -%}
{{ pair.Name }}: {{ pair.Value }}
{% endfor -%}
Source: <{{ alert.GeneratorURL }}|Show in prometheus>
{% endmacro -%}
<users/all>
*{{ QueryParams.Get("env") | toUpper }} - {{ Status | toUpper }}\
{% if Status == "firing" %}:{{ Alerts.Firing | length }}{% endif %}*
{% for alert in Alerts.Firing -%}
{{ alert_block(alert) }}
{%- endfor -%}
{% for alert in Alerts.Resolved -%}
{{ alert_block(alert) }}
{%- endfor -%}
"""

# =====================================================================
# HELPERS
# =====================================================================


def _require_str(name: str, value: Any) -> str:
    if not isinstance(value, str):
        raise TypeError(f"{name} expects a string, got {type(value).__name__}")
    return value


def to_upper(s: str) -> str:
    return _require_str("toUpper", s).upper()


def to_lower(s: str) -> str:
    return _require_str("toLower", s).lower()


def title(s: str) -> str:
    """Upper-case the first letter of every word, leaving the rest as is."""
    return re.sub(r"\b\w", lambda m: m.group(0).upper(), _require_str("title", s))


def join(sep: str, items: Iterable[str]) -> str:
    _require_str("join", sep)
    if isinstance(items, (str, bytes)) or not hasattr(items, "__iter__"):
        raise TypeError(f"join expects a sequence of strings, got {type(items).__name__}")
    items = list(items)
    for item in items:
        _require_str("join", item)
    return sep.join(items)


def re_replace_all(pattern: str, repl: str, text: str) -> str:
    _require_str("reReplaceAll", pattern)
    _require_str("reReplaceAll", repl)
    _require_str("reReplaceAll", text)
    return re.compile(pattern).sub(repl, text)


HELPERS: Dict[str, Callable[..., str]] = {
    "toUpper": to_upper,
    "toLower": to_lower,
    "title": title,
    "join": join,
    "reReplaceAll": re_replace_all,
}


def _pipeline_stage(func: Callable[..., str]) -> Callable[..., str]:
    """Adapt a helper to Jinja filter calling order (piped value goes last)."""

    @functools.wraps(func)
    def stage(value: Any, *args: Any) -> str:
        return func(*args, value)

    return stage


# =====================================================================
# ENGINE
# =====================================================================


class TemplateEngine:
    """
    Parses and renders message templates.

    The engine holds no per-request state. Compiled templates are cached by
    source string, so repeated renders of the configured template skip the
    parse step.
    """

    def __init__(self, cache_size: int = TEMPLATE_CACHE_SIZE):
        self.environment = ImmutableSandboxedEnvironment(
            undefined=jinja2.StrictUndefined,
            keep_trailing_newline=True,
            autoescape=False,
        )
        for name, func in HELPERS.items():
            self.environment.globals[name] = func
            self.environment.filters[name] = _pipeline_stage(func)

        self._cache: Dict[str, jinja2.Template] = {}
        self._cache_size = cache_size
        self._lock = threading.Lock()

    def parse(self, source: str) -> jinja2.Template:
        """
        Compile a template source, using the cache when possible.

        Raises:
            TemplateParseError: source is not a valid template
        """
        with self._lock:
            template = self._cache.get(source)
        if template is not None:
            return template

        try:
            template = self.environment.from_string(source)
        except jinja2.TemplateSyntaxError as e:
            raise TemplateParseError(
                f"template {TEMPLATE_NAME!r} line {e.lineno}: {e.message}"
            ) from e

        with self._lock:
            if len(self._cache) >= self._cache_size:
                self._cache.clear()
            self._cache[source] = template
        logger.debug(f"Compiled template ({len(source)} bytes)")
        return template

    def render(self, source: str, model: Mapping[str, Any]) -> str:
        """
        Render ``source`` with the top-level names in ``model``.

        Raises:
            TemplateParseError: source is not a valid template
            TemplateRenderError: rendering failed (missing attribute, helper
                called with the wrong arguments, invalid regular expression)
        """
        template = self.parse(source)
        try:
            return template.render(model)
        except (jinja2.TemplateError, TypeError, ValueError, LookupError, re.error) as e:
            raise TemplateRenderError(f"{_location(e)}: {e}") from e


def _location(exc: BaseException) -> str:
    lineno = _template_lineno(exc)
    if lineno is None:
        return f"template {TEMPLATE_NAME!r}"
    return f"template {TEMPLATE_NAME!r} line {lineno}"


def _template_lineno(exc: BaseException) -> Optional[int]:
    for frame in reversed(traceback.extract_tb(exc.__traceback__)):
        if frame.filename == _TEMPLATE_FILENAME:
            return frame.lineno
    return None
