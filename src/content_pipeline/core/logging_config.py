"""Structured JSON logging configuration using structlog.

Call ``configure_logging()`` once at process startup (worker boot, CLI
entry point).  All modules can then use either the stdlib logging API or
structlog directly:

Stdlib usage::

    import logging
    logger = logging.getLogger(__name__)
    logger.info("message", extra={"key": "value"})

Structlog usage (richer context binding)::

    import structlog
    logger = structlog.get_logger(__name__)
    logger.info("dedup.resolve.new_primary", platform="rss", creator_id="c-1")

A ``batch_id`` context variable is populated by
:class:`content_pipeline.core.pipeline.IngestionPipeline` for the lifetime of
each ingestion batch and automatically merged into every log record emitted
while that batch is processed.
"""

from __future__ import annotations

import logging
import sys
from contextvars import ContextVar

import structlog
from structlog.types import EventDict, WrappedLogger

# ---------------------------------------------------------------------------
# Context variable: set by the ingestion pipeline, read by the log processor
# ---------------------------------------------------------------------------

batch_id_var: ContextVar[str | None] = ContextVar("batch_id", default=None)
"""Per-batch ID propagated from the ingestion pipeline to log processors.

Usage::

    from content_pipeline.core.logging_config import batch_id_var
    token = batch_id_var.set(uuid.uuid4().hex)
    try:
        ...
    finally:
        batch_id_var.reset(token)
"""


# ---------------------------------------------------------------------------
# Custom processors
# ---------------------------------------------------------------------------


_SECRET_SUBSTRINGS: frozenset[str] = frozenset({
    "api_key",
    "password",
    "secret",
    "token",
    "credential",
    "authorization",
    "database_url",
    "dsn",
})
"""Lower-cased substrings that identify log event-dict keys whose values
must be redacted before the record reaches any renderer."""

_REDACTED = "[REDACTED]"


def _is_secret_key(key: object) -> bool:
    lowered = str(key).lower()
    return any(secret in lowered for secret in _SECRET_SUBSTRINGS)


def _redact_secrets(
    logger: WrappedLogger,  # noqa: ARG001
    method_name: str,  # noqa: ARG001
    event_dict: EventDict,
) -> EventDict:
    """Replace values of secret-bearing keys with a redaction marker.

    Scans both top-level keys and any nested ``dict`` values one level deep.
    Keys are matched case-insensitively against :data:`_SECRET_SUBSTRINGS`.

    Args:
        logger: The wrapped logger instance (unused).
        method_name: The log method name (unused).
        event_dict: Mutable event dictionary being assembled.

    Returns:
        The event dict with sensitive values replaced by ``"[REDACTED]"``.
    """
    for key in list(event_dict):
        if _is_secret_key(key):
            event_dict[key] = _REDACTED
            continue
        val = event_dict[key]
        if isinstance(val, dict):
            for nested_key in [k for k in val if _is_secret_key(k)]:
                val[nested_key] = _REDACTED
    return event_dict


_TEXT_FIELDS: frozenset[str] = frozenset({"title", "description", "content_body", "text"})
_MAX_TEXT_CHARS = 200


def _truncate_text_fields(
    logger: WrappedLogger,  # noqa: ARG001
    method_name: str,  # noqa: ARG001
    event_dict: EventDict,
) -> EventDict:
    """Shorten post bodies and titles that end up in log events.

    Only string values under the keys in :data:`_TEXT_FIELDS` are touched;
    the suffix records how many characters were dropped.
    """
    for key in _TEXT_FIELDS.intersection(event_dict):
        val = event_dict[key]
        if isinstance(val, str) and len(val) > _MAX_TEXT_CHARS:
            dropped = len(val) - _MAX_TEXT_CHARS
            event_dict[key] = f"{val[:_MAX_TEXT_CHARS]}...[+{dropped} chars]"
    return event_dict


def _inject_batch_id(
    logger: WrappedLogger,  # noqa: ARG001
    method_name: str,  # noqa: ARG001
    event_dict: EventDict,
) -> EventDict:
    """Inject the current ingestion batch ID into the log event dict if set.

    Args:
        logger: The wrapped logger instance (unused).
        method_name: The log method name (e.g. ``"info"``). Unused.
        event_dict: Mutable event dictionary being assembled.

    Returns:
        The event dict, possibly with ``batch_id`` added.
    """
    bid = batch_id_var.get()
    if bid is not None and "batch_id" not in event_dict:
        event_dict["batch_id"] = bid
    return event_dict


# ---------------------------------------------------------------------------
# Public configuration entry-point
# ---------------------------------------------------------------------------


def configure_logging(log_level: str = "INFO") -> None:
    """Configure structlog with JSON output for production.

    In production (log_level != ``"DEBUG"``), outputs newline-delimited JSON
    suitable for log aggregators.  In development (log_level == ``"DEBUG"``),
    uses structlog's ``ConsoleRenderer`` for human-readable output.

    Standard fields added to every log record: ``timestamp``, ``level``,
    ``logger``, ``event`` and, inside an ingestion batch, ``batch_id``.

    Calling it more than once is safe; the root handler is replaced each time.

    Args:
        log_level: Logging verbosity string.  One of ``"DEBUG"``, ``"INFO"``,
            ``"WARNING"``, ``"ERROR"``, ``"CRITICAL"``.  Case-insensitive.
    """
    level_upper = log_level.upper()
    numeric_level = getattr(logging, level_upper, logging.INFO)
    is_development = level_upper == "DEBUG"

    shared_processors: list[structlog.types.Processor] = [
        structlog.contextvars.merge_contextvars,
        _inject_batch_id,
        _redact_secrets,
        _truncate_text_fields,
        structlog.stdlib.add_log_level,
        structlog.stdlib.add_logger_name,
        structlog.processors.TimeStamper(fmt="iso"),
        structlog.processors.StackInfoRenderer(),
        structlog.processors.format_exc_info,
    ]

    if is_development:
        final_renderer: structlog.types.Processor = structlog.dev.ConsoleRenderer(
            colors=True,
        )
    else:
        final_renderer = structlog.processors.JSONRenderer()

    # Route ``logging.getLogger(__name__)`` records through the same chain.
    formatter = structlog.stdlib.ProcessorFormatter(
        foreign_pre_chain=shared_processors,
        processors=[
            structlog.stdlib.ProcessorFormatter.remove_processors_meta,
            final_renderer,
        ],
    )

    handler = logging.StreamHandler(sys.stdout)
    handler.setFormatter(formatter)

    root_logger = logging.getLogger()
    root_logger.handlers.clear()
    root_logger.addHandler(handler)
    root_logger.setLevel(numeric_level)

    if not is_development:
        for noisy_logger in ("sqlalchemy.engine", "celery.redirected"):
            logging.getLogger(noisy_logger).setLevel(logging.WARNING)

    structlog.configure(
        processors=shared_processors
        + [
            structlog.stdlib.ProcessorFormatter.wrap_for_formatter,
        ],
        wrapper_class=structlog.stdlib.BoundLogger,
        context_class=dict,
        logger_factory=structlog.stdlib.LoggerFactory(),
        cache_logger_on_first_use=True,
    )
