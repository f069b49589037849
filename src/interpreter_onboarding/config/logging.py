"""structlog setup for embedding applications.

Package loggers (structlog and stdlib alike) share one pipeline that ends
in a console or JSON renderer on stderr. Every record passes through
:func:`redact_sensitive` first: tax ids and one-time links must never
reach a log line, and the rejection and completion tokens travel inside
backend URLs.
"""

from __future__ import annotations

import logging
import re
import sys
from collections.abc import MutableMapping
from typing import Any

import structlog

PACKAGE_LOGGER = "interpreter_onboarding"
REDACTED = "***"

# Event keys whose values are always masked.
SENSITIVE_KEYS = frozenset(
    {"ssn", "ein", "token", "rejection_token", "completion_token", "authorization", "api_token"}
)

# Backend paths that end in a one-time token.
_TOKEN_PATH = re.compile(
    r"(/interpreters/rejection/|/profile-completion/(?:validate-token|submit)/)[^/?#\s]+"
)

# HTTP stack loggers that stay at WARNING even on verbose runs.
QUIET_LOGGERS = ("urllib3", "requests", "charset_normalizer")


def _scrub(value: str) -> str:
    return _TOKEN_PATH.sub(rf"\1{REDACTED}", value)


def redact_sensitive(
    _logger: Any, _method: str, event_dict: MutableMapping[str, Any]
) -> MutableMapping[str, Any]:
    """Mask sensitive fields and one-time tokens embedded in URLs."""
    for key, value in event_dict.items():
        if key.startswith("_"):
            continue
        if key in SENSITIVE_KEYS and value:
            event_dict[key] = REDACTED
        elif isinstance(value, str):
            event_dict[key] = _scrub(value)
    return event_dict


def configure_logging(
    *,
    verbose: bool = False,
    log_json: bool = False,
) -> None:
    """Route package logs to stderr.

    Args:
        verbose: Let package DEBUG records through (wizard.op timings,
            plugin registration, backend requests). Otherwise WARNING+.
        log_json: One JSON object per line instead of console output.
    """
    shared: list[structlog.types.Processor] = [
        structlog.contextvars.merge_contextvars,
        structlog.stdlib.add_log_level,
        structlog.stdlib.add_logger_name,
        structlog.processors.TimeStamper(fmt="iso"),
        redact_sensitive,
        structlog.processors.StackInfoRenderer(),
        structlog.processors.UnicodeDecoder(),
    ]
    renderer: structlog.types.Processor = (
        structlog.processors.JSONRenderer()
        if log_json
        else structlog.dev.ConsoleRenderer(colors=sys.stderr.isatty())
    )

    structlog.configure(
        processors=[*shared, structlog.stdlib.ProcessorFormatter.wrap_for_formatter],
        logger_factory=structlog.stdlib.LoggerFactory(),
        wrapper_class=structlog.stdlib.BoundLogger,
        cache_logger_on_first_use=False,
    )

    handler = logging.StreamHandler(sys.stderr)
    handler.setFormatter(
        structlog.stdlib.ProcessorFormatter(
            foreign_pre_chain=shared,
            processors=[structlog.stdlib.ProcessorFormatter.remove_processors_meta, renderer],
        )
    )

    root = logging.getLogger()
    root.handlers.clear()
    root.addHandler(handler)
    root.setLevel(logging.WARNING)

    logging.getLogger(PACKAGE_LOGGER).setLevel(logging.DEBUG if verbose else logging.WARNING)
    for name in QUIET_LOGGERS:
        logging.getLogger(name).setLevel(logging.WARNING)
