"""
Observability module for the Rule Builder core.

Provides:
- Structured logging with JSON format and editing-session correlation IDs
- Editing session ID generation and propagation
- Prometheus metrics collection (tree mutations, validation, serialization, HTTP clients)

Usage:
    from rulebuilder.core.observability import (
        get_session_id,
        set_session_id,
        track_mutation,
        metrics,
    )
"""

import json
import logging
import time
import uuid
from contextlib import contextmanager
from contextvars import ContextVar
from datetime import UTC, datetime
from typing import Any

from prometheus_client import CollectorRegistry, Counter, Histogram, generate_latest

# ============================================================================
# Context Variables for Session Tracking
# ============================================================================

# Session ID - links all logs for one rule-editing session
_session_id_ctx: ContextVar[str] = ContextVar("session_id", default="")

# Rule UUID currently being edited (empty for unsaved rules)
_rule_uuid_ctx: ContextVar[str] = ContextVar("rule_uuid", default="")


def generate_session_id() -> str:
    """
    Generate a unique editing-session ID for correlation.

    Returns:
        String representation of a UUID4
    """
    return str(uuid.uuid4())


def get_session_id() -> str:
    """Get the current session ID from context."""
    return _session_id_ctx.get()


def set_session_id(session_id: str) -> None:
    """Set the session ID for the current context."""
    _session_id_ctx.set(session_id)


def get_rule_uuid() -> str:
    """Get the UUID of the rule being edited from context."""
    return _rule_uuid_ctx.get()


def set_rule_uuid(rule_uuid: str | None) -> None:
    """Set the UUID of the rule being edited for the current context."""
    _rule_uuid_ctx.set(rule_uuid or "")


# ============================================================================
# Structured Logging Configuration
# ============================================================================

_RESERVED_RECORD_KEYS = frozenset(
    {
        "name",
        "msg",
        "args",
        "levelname",
        "levelno",
        "pathname",
        "filename",
        "module",
        "lineno",
        "funcName",
        "created",
        "msecs",
        "relativeCreated",
        "thread",
        "threadName",
        "processName",
        "process",
        "taskName",
        "getMessage",
        "message",
        "asctime",
        "exc_info",
        "exc_text",
        "stack_info",
    }
)


class StructuredFormatter(logging.Formatter):
    """
    JSON formatter for structured logging.

    Outputs logs as JSON with standard fields:
    - timestamp: ISO 8601 format
    - level: Log level (DEBUG, INFO, WARNING, ERROR, CRITICAL)
    - logger: Logger name
    - message: Log message
    - session_id: Editing session correlation ID (if available)
    - rule_uuid: Rule being edited (if available)
    - extra: Any additional context from logging.extra
    """

    def format(self, record: logging.LogRecord) -> str:
        """
        Format log record as JSON.

        Args:
            record: Python logging LogRecord

        Returns:
            JSON-formatted log string
        """
        log_entry: dict[str, Any] = {
            "timestamp": datetime.fromtimestamp(record.created, tz=UTC).isoformat(),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
        }

        session_id = get_session_id()
        if session_id:
            log_entry["session_id"] = session_id

        rule_uuid = get_rule_uuid()
        if rule_uuid:
            log_entry["rule_uuid"] = rule_uuid

        if record.exc_info:
            log_entry["exception"] = {
                "type": record.exc_info[0].__name__ if record.exc_info[0] else None,
                "message": str(record.exc_info[1]) if record.exc_info[1] else None,
            }

        log_entry["file"] = record.pathname
        log_entry["line"] = record.lineno
        log_entry["function"] = record.funcName

        # These come from logger.info("msg", extra={"key": "value"})
        extra_keys = {
            k: v for k, v in record.__dict__.items() if k not in _RESERVED_RECORD_KEYS
        }
        if extra_keys:
            log_entry["extra"] = extra_keys

        return json.dumps(log_entry, default=str)


def configure_structured_logging(level: str = "INFO", structured: bool = True) -> None:
    """
    Configure root logger, with structured JSON formatting by default.

    Args:
        level: Log level (DEBUG, INFO, WARNING, ERROR, CRITICAL)
        structured: Use the JSON formatter; plain text otherwise
    """
    root_logger = logging.getLogger()
    root_logger.handlers.clear()
    root_logger.setLevel(getattr(logging, level.upper(), logging.INFO))

    handler = logging.StreamHandler()
    if structured:
        handler.setFormatter(StructuredFormatter())
    else:
        handler.setFormatter(logging.Formatter("%(asctime)s %(levelname)s %(name)s: %(message)s"))

    root_logger.addHandler(handler)


# ============================================================================
# Prometheus Metrics
# ============================================================================

# Use a custom registry to avoid conflicts with other Prometheus metrics
_registry = CollectorRegistry()


class Metrics:
    """
    Centralized metrics collection for the rule builder.

    Metrics groups:
    - Builder: tree mutations by operation and outcome
    - Validation: local and remote validation outcomes
    - Serialization: persisted rule size
    - HTTP client: calls to the external rule services
    """

    def __init__(self, registry: CollectorRegistry) -> None:
        """Initialize all metrics with proper labels."""
        self.registry = registry

        # -------------------------------------------------------------------
        # Builder Metrics
        # -------------------------------------------------------------------

        self.mutations_total = Counter(
            "rulebuilder_mutations_total",
            "Total AST mutations",
            ["operation", "status"],
            registry=self.registry,
        )

        # -------------------------------------------------------------------
        # Validation Metrics
        # -------------------------------------------------------------------

        self.validations_total = Counter(
            "rulebuilder_validations_total",
            "Total rule validations",
            ["source", "status"],
            registry=self.registry,
        )

        self.validation_errors_count = Histogram(
            "rulebuilder_validation_errors_count",
            "Number of problems reported per failed validation",
            ["source"],
            buckets=(1, 2, 5, 10, 25, 50, 100),
            registry=self.registry,
        )

        # -------------------------------------------------------------------
        # Serialization Metrics
        # -------------------------------------------------------------------

        self.rule_json_bytes = Histogram(
            "rulebuilder_rule_json_bytes",
            "Size of serialized rule definitions in bytes",
            ["structure"],
            buckets=(256, 1024, 4096, 16384, 65536, 262144, 1048576),
            registry=self.registry,
        )

        # -------------------------------------------------------------------
        # HTTP Client Metrics
        # -------------------------------------------------------------------

        self.http_client_requests_total = Counter(
            "rulebuilder_http_client_requests_total",
            "Total requests to external rule services",
            ["method", "endpoint", "status_code"],
            registry=self.registry,
        )

        self.http_client_request_duration_seconds = Histogram(
            "rulebuilder_http_client_request_duration_seconds",
            "External rule service latency in seconds",
            ["method", "endpoint"],
            buckets=(0.005, 0.01, 0.025, 0.05, 0.1, 0.25, 0.5, 1.0, 2.5, 5.0, 10.0),
            registry=self.registry,
        )


# Global metrics instance
metrics = Metrics(_registry)


@contextmanager
def track_mutation(operation: str, metrics_instance: Metrics | None = None):
    """
    Context manager counting a builder mutation and its outcome.

    Usage:
        with track_mutation("append_operand"):
            ...
    """
    m = metrics_instance or metrics
    status = "success"
    try:
        yield
    except Exception:
        status = "error"
        raise
    finally:
        m.mutations_total.labels(operation=operation, status=status).inc()


@contextmanager
def track_http_call(method: str, endpoint: str, metrics_instance: Metrics | None = None):
    """
    Context manager timing an outbound call; the caller sets ``ctx.status_code``.

    Yields:
        Context whose ``status_code`` attribute is recorded on exit
    """
    m = metrics_instance or metrics
    start = time.time()

    class _Context:
        status_code: int | str = "error"

    ctx = _Context()
    try:
        yield ctx
    finally:
        duration = time.time() - start
        m.http_client_request_duration_seconds.labels(method=method, endpoint=endpoint).observe(
            duration
        )
        m.http_client_requests_total.labels(
            method=method, endpoint=endpoint, status_code=str(ctx.status_code)
        ).inc()


def export_metrics() -> bytes:
    """Return all rule builder metrics in Prometheus text format."""
    return generate_latest(_registry)
