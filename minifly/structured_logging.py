"""Structured logging set-up shared by the services and the command line."""

from __future__ import annotations

import contextvars
import dataclasses
import json
import logging
import os
import sys
import uuid
from collections.abc import Mapping
from dataclasses import dataclass
from datetime import datetime, timezone
from enum import Enum
from typing import Any

SERVICE_VERSION = "0.2.2"
CLI_VERSION = "0.1.3"
FILTER_ENV_VAR = "MINIFLY_LOG_FILTER"

TRACE = 5
OFF = logging.CRITICAL + 10
logging.addLevelName(TRACE, "TRACE")

# Standard field names for consistent logging.
CORRELATION_ID = "correlation_id"
REQUEST_ID = "request_id"
USER_ID = "user_id"
SESSION_ID = "session_id"
APP_NAME = "app.name"
MACHINE_ID = "machine.id"
REGION = "region"
IMAGE = "image"
CONTAINER_ID = "container.id"
OPERATION = "operation"
OPERATION_TYPE = "operation.type"
OPERATION_STATUS = "operation.status"
DURATION_MS = "duration_ms"
HTTP_METHOD = "http.method"
HTTP_PATH = "http.path"
HTTP_STATUS = "http.status"
HTTP_USER_AGENT = "http.user_agent"
ERROR_TYPE = "error.type"
ERROR_MESSAGE = "error.message"
ERROR_STACK = "error.stack"
ERROR_ID = "error.id"
LITEFS_MOUNT_PATH = "litefs.mount_path"
LITEFS_IS_PRIMARY = "litefs.is_primary"
LITEFS_CONFIG_PATH = "litefs.config_path"
DOCKER_IMAGE = "docker.image"
DOCKER_CONTAINER_NAME = "docker.container.name"
DOCKER_NETWORK = "docker.network"

logger = logging.getLogger("minifly")

_LEVELS = {
    "off": OFF,
    "error": logging.ERROR,
    "warn": logging.WARNING,
    "warning": logging.WARNING,
    "info": logging.INFO,
    "debug": logging.DEBUG,
    "trace": TRACE,
    "0": OFF,
    "1": logging.ERROR,
    "2": logging.WARNING,
    "3": logging.INFO,
    "4": logging.DEBUG,
    "5": TRACE,
}

_DISPLAY = {
    TRACE: "TRACE",
    logging.DEBUG: "DEBUG",
    logging.INFO: "INFO",
    logging.WARNING: "WARN",
    logging.ERROR: "ERROR",
    logging.CRITICAL: "ERROR",
}


class LogFormat(Enum):
    """How log records are written."""

    HUMAN = "human"
    JSON = "json"


@dataclass(frozen=True)
class LoggingConfig:
    """Logging settings of one service."""

    service_name: str = "minifly"
    service_version: str = SERVICE_VERSION
    environment: str = "development"
    format: LogFormat = LogFormat.HUMAN
    level: str = "info"

    @classmethod
    def new(cls, service_name: str) -> LoggingConfig:
        return cls(service_name=service_name)

    def with_format(self, format: LogFormat) -> LoggingConfig:
        return dataclasses.replace(self, format=format)

    def with_level(self, level: str) -> LoggingConfig:
        return dataclasses.replace(self, level=level)

    def with_environment(self, environment: str) -> LoggingConfig:
        return dataclasses.replace(self, environment=environment)

    @classmethod
    def from_env(cls, service_name: str) -> LoggingConfig:
        """Read MINIFLY_LOG_FORMAT, MINIFLY_LOG_LEVEL and MINIFLY_ENVIRONMENT."""
        env = os.environ
        fmt = LogFormat.JSON if env.get("MINIFLY_LOG_FORMAT") == "json" else LogFormat.HUMAN
        return cls(
            service_name=service_name,
            environment=env.get("MINIFLY_ENVIRONMENT", "development"),
            format=fmt,
            level=env.get("MINIFLY_LOG_LEVEL", "info"),
        )


def parse_level_filter(spec: str) -> dict[str, int]:
    """Parse directives such as "info,my.module=debug".

    Returns a mapping from logger name to level; the key "" holds the
    default, which is ERROR when no bare level is given. Invalid
    directives are ignored.
    """
    result: dict[str, int] = {"": logging.ERROR}
    for raw in spec.split(","):
        directive = raw.strip()
        if not directive or "[" in directive:
            continue
        target, sep, level_text = directive.partition("=")
        if sep:
            level = _LEVELS.get(level_text.strip().lower())
            target = target.strip().replace("::", ".")
            if level is None or not target:
                continue
            result[target] = level
        elif directive.lower() in _LEVELS:
            result[""] = _LEVELS[directive.lower()]
        else:
            result[directive.replace("::", ".")] = TRACE
    return result


_SPANS: contextvars.ContextVar[tuple[dict[str, Any], ...]] = contextvars.ContextVar(
    "minifly_spans", default=()
)


class _Span:
    """A named set of fields attached to records logged while it is entered."""

    def __init__(self, name: str, fields: dict[str, Any]) -> None:
        self.name = name
        self.fields = fields
        self._tokens: list[contextvars.Token[tuple[dict[str, Any], ...]]] = []

    def __enter__(self) -> _Span:
        entry = {"name": self.name, **self.fields}
        self._tokens.append(_SPANS.set(_SPANS.get() + (entry,)))
        return self

    def __exit__(self, *args: object) -> None:
        _SPANS.reset(self._tokens.pop())


class _SpanFilter(logging.Filter):
    def filter(self, record: logging.LogRecord) -> bool:
        record.spans = [dict(span) for span in _SPANS.get()]
        return True


def _record_fields(record: logging.LogRecord) -> dict[str, Any]:
    fields = getattr(record, "fields", None)
    return dict(fields) if isinstance(fields, Mapping) else {}


class _JsonFormatter(logging.Formatter):
    def __init__(self, *, with_target: bool, with_threads: bool) -> None:
        super().__init__()
        self.with_target = with_target
        self.with_threads = with_threads

    def format(self, record: logging.LogRecord) -> str:
        fields = {"message": record.getMessage(), **_record_fields(record)}
        if record.exc_info:
            fields["exception"] = self.formatException(record.exc_info)
        out: dict[str, Any] = {
            "timestamp": datetime.fromtimestamp(record.created, timezone.utc).isoformat(),
            "level": _DISPLAY.get(record.levelno, record.levelname),
            "fields": fields,
        }
        if self.with_target:
            out["target"] = record.name
        spans = getattr(record, "spans", None)
        if spans:
            out["spans"] = spans
        if self.with_threads:
            out["threadName"] = record.threadName
            out["threadId"] = record.thread
        return json.dumps(out, default=str)


class _HumanFormatter(logging.Formatter):
    def __init__(self, *, with_target: bool) -> None:
        super().__init__()
        self.with_target = with_target

    def format(self, record: logging.LogRecord) -> str:
        stamp = datetime.fromtimestamp(record.created, timezone.utc).isoformat()
        level = _DISPLAY.get(record.levelno, record.levelname)
        head = f"{stamp} {level:>5}"
        if self.with_target:
            head += f" {record.name}"
        lines = [f"{head}: {record.getMessage()}"]
        fields = _record_fields(record)
        if fields:
            lines.append(
                "    with " + ", ".join(f"{key}: {value}" for key, value in fields.items())
            )
        for span in reversed(getattr(record, "spans", None) or []):
            extra = {k: v for k, v in span.items() if k != "name"}
            detail = ", ".join(f"{k}: {v}" for k, v in extra.items())
            lines.append(f"    in {span['name']}" + (f" with {detail}" if detail else ""))
        if record.exc_info:
            lines.append(self.formatException(record.exc_info))
        return "\n".join(lines)


_installed: logging.Handler | None = None
_configured_targets: list[str] = []


def _install(
    format: LogFormat, level_spec: str, *, with_target: bool, with_threads: bool
) -> logging.Handler:
    global _installed
    root = logging.getLogger()
    if _installed is not None:
        root.removeHandler(_installed)
    for name in _configured_targets:
        logging.getLogger(name).setLevel(logging.NOTSET)
    _configured_targets.clear()

    spec = os.environ.get(FILTER_ENV_VAR) or level_spec
    levels = parse_level_filter(spec)
    root.setLevel(levels.pop(""))
    for target, level in levels.items():
        logging.getLogger(target).setLevel(level)
        _configured_targets.append(target)

    handler = logging.StreamHandler(sys.stderr)
    if format is LogFormat.JSON:
        handler.setFormatter(_JsonFormatter(with_target=with_target, with_threads=with_threads))
    else:
        handler.setFormatter(_HumanFormatter(with_target=with_target))
    handler.addFilter(_SpanFilter())
    root.addHandler(handler)
    _installed = handler
    return handler


def init_logging(config: LoggingConfig) -> logging.Handler:
    """Send records to standard error in the configured format.

    MINIFLY_LOG_FILTER, when set, takes the place of the configured level.
    Returns the installed handler; a later call replaces it.
    """
    json_format = config.format is LogFormat.JSON
    handler = _install(
        config.format, config.level, with_target=True, with_threads=json_format
    )
    logger.info(
        "Structured logging initialized",
        extra={
            "fields": {
                "service.name": config.service_name,
                "service.version": config.service_version,
                "environment": config.environment,
                "log.format": config.format.value,
                "log.level": config.level,
            }
        },
    )
    return handler


def init_default_logging() -> logging.Handler:
    """Set up logging for the command line from MINIFLY_LOG_JSON and MINIFLY_LOG_LEVEL."""
    fmt = LogFormat.JSON if "MINIFLY_LOG_JSON" in os.environ else LogFormat.HUMAN
    level = os.environ.get("MINIFLY_LOG_LEVEL", "minifly=info")
    handler = _install(fmt, level, with_target=fmt is LogFormat.JSON, with_threads=False)
    logger.info(
        "Minifly CLI logging initialized",
        extra={
            "fields": {
                "service": "minifly-cli",
                "version": CLI_VERSION,
                "log.format": fmt.value,
                "log.level": level,
            }
        },
    )
    return handler


def new_correlation_id() -> str:
    return str(uuid.uuid4())


def new_request_id() -> str:
    return str(uuid.uuid4())


def new_error_id() -> str:
    return str(uuid.uuid4())


def operation_span(operation: str, **kwargs: Any) -> _Span:
    """Return a span for an operation, carrying a fresh correlation id."""
    fields = {OPERATION: operation, CORRELATION_ID: new_correlation_id(), **kwargs}
    return _Span("operation", fields)


def log_operation_result(
    error: BaseException | None, success_msg: str, error_msg: str
) -> None:
    """Log the end of an operation: success when `error` is None, failure otherwise."""
    if error is None:
        logger.info(success_msg, extra={"fields": {OPERATION_STATUS: "success"}})
    else:
        logger.error(
            error_msg,
            extra={"fields": {OPERATION_STATUS: "failed", ERROR_MESSAGE: str(error)}},
        )