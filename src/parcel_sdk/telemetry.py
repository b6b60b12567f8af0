"""Structured logs and spans emitted by the Parcel SDK.

Token providers, the HTTP pipeline and downloads log through one shared
structlog logger. Token renewals and API requests each run inside an
OpenTelemetry span. Nothing is configured on import: until
``configure_telemetry`` runs, structlog and OpenTelemetry use whatever the
application set up, or their defaults.
"""

from __future__ import annotations

import logging
from contextlib import contextmanager
from typing import TYPE_CHECKING, Any

import structlog
from opentelemetry import trace
from opentelemetry.trace import Status, StatusCode

if TYPE_CHECKING:
    from collections.abc import Iterator

    from .config import TelemetryConfig

SDK_NAME = "parcel-sdk"

_tracer: trace.Tracer | None = None
_logger: structlog.BoundLogger | None = None


def get_tracer() -> trace.Tracer:
    global _tracer
    if _tracer is None:
        _tracer = trace.get_tracer(SDK_NAME)
    return _tracer


def get_logger() -> structlog.BoundLogger:
    """The logger shared by all SDK modules."""
    global _logger
    if _logger is None:
        _logger = structlog.get_logger(SDK_NAME)
    return _logger


def log_level(name: str) -> int:
    """Map a level name such as ``"warning"`` to its ``logging`` number.

    Unknown names fall back to ``logging.INFO``.
    """
    return logging.getLevelNamesMapping().get(name.upper(), logging.INFO)


def configure_telemetry(config: TelemetryConfig) -> None:
    """Render SDK logs as JSON lines and name the SDK's tracer.

    With ``config.enabled`` false, spans are dropped and logging is left
    as it is.
    """
    global _tracer, _logger

    if not config.enabled:
        _tracer = trace.NoOpTracer()
        return

    structlog.configure(
        processors=[
            structlog.contextvars.merge_contextvars,
            structlog.processors.add_log_level,
            structlog.processors.TimeStamper(fmt="iso", utc=True),
            structlog.processors.format_exc_info,
            structlog.processors.JSONRenderer(),
        ],
        wrapper_class=structlog.make_filtering_bound_logger(log_level(config.log_level)),
        logger_factory=structlog.PrintLoggerFactory(),
        cache_logger_on_first_use=True,
    )
    _tracer = trace.get_tracer(config.service_name)
    _logger = structlog.get_logger(config.service_name)


@contextmanager
def trace_operation(
    name: str, *, attributes: dict[str, Any] | None = None
) -> Iterator[trace.Span]:
    """Run the block inside a span named ``name``.

    An exception escaping the block is recorded on the span before it
    propagates.
    """
    with get_tracer().start_as_current_span(
        name, attributes=attributes, record_exception=False, set_status_on_exception=False
    ) as span:
        try:
            yield span
        except Exception as e:
            span.set_status(Status(StatusCode.ERROR, str(e)))
            span.record_exception(e)
            raise
