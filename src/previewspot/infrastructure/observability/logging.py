"""Structured logging configuration with JSON formatting and correlation IDs."""

import contextvars
import logging
import sys
import traceback
import uuid
from pathlib import Path
from typing import Any

from pythonjsonlogger import jsonlogger

# Hey future me, the correlation ID follows ONE /api/get-track call through every tier, every
# retry and every token exchange. When someone says "the game said no song found", grep for
# their X-Correlation-ID and you see the whole resolution. contextvars is asyncio-safe: each
# request task gets its own value. default="" covers startup logs.
correlation_id_var: contextvars.ContextVar[str] = contextvars.ContextVar(
    "correlation_id", default=""
)


def get_correlation_id() -> str:
    """Get the current correlation ID from context.

    Returns:
        Current correlation ID or empty string if not set
    """
    return correlation_id_var.get()


def set_correlation_id(correlation_id: str | None = None) -> str:
    """Set correlation ID in context.

    Args:
        correlation_id: Correlation ID to set. If None, generates a new UUID

    Returns:
        The correlation ID that was set
    """
    if correlation_id is None:
        correlation_id = str(uuid.uuid4())
    correlation_id_var.set(correlation_id)
    return correlation_id


class CorrelationIdFilter(logging.Filter):
    """Add correlation ID to log records."""

    def filter(self, record: logging.LogRecord) -> bool:
        record.correlation_id = get_correlation_id()
        return True


class CompactExceptionFormatter(logging.Formatter):
    """Text formatter that prints exception chains compactly.

    Only frames from our own package are shown, root cause first:

    ERROR │ previewspot.api.routers.tracks:80 │ Resolution failed
    ╰─► httpx.ConnectTimeout: timed out
        File "request_executor.py", line 97, in _send
          return await self.client.request(
    ╰─► UpstreamServerError: spotify request failed after 3 attempts
    """

    package_marker = "previewspot"

    def formatException(self, ei: Any) -> str:
        _, exc_value, _ = ei
        if exc_value is None:
            return ""

        exceptions: list[BaseException] = []
        current: BaseException | None = exc_value
        while current is not None and current not in exceptions:
            exceptions.append(current)
            current = current.__cause__ or current.__context__
        exceptions.reverse()

        lines: list[str] = []
        for exc in exceptions:
            lines.append(f"╰─► {exc.__class__.__name__}: {exc}")
            if exc.__traceback__ is None:
                continue
            for frame in traceback.extract_tb(exc.__traceback__):
                if "/site-packages/" in frame.filename:
                    continue
                if self.package_marker not in frame.filename:
                    continue
                lines.append(
                    f'    File "{Path(frame.filename).name}", line {frame.lineno}, in {frame.name}'
                )
                if frame.line:
                    lines.append(f"      {frame.line.strip()}")

        return "\n".join(lines)


class CustomJsonFormatter(jsonlogger.JsonFormatter):  # type: ignore[name-defined,misc]
    """JSON formatter with level, logger, location and correlation ID."""

    def add_fields(
        self,
        log_record: dict[str, Any],
        record: logging.LogRecord,
        message_dict: dict[str, Any],
    ) -> None:
        super().add_fields(log_record, record, message_dict)

        log_record["timestamp"] = self.formatTime(record, self.datefmt)
        log_record["level"] = record.levelname
        log_record["logger"] = record.name
        log_record["module"] = record.module
        log_record["function"] = record.funcName
        log_record["line"] = record.lineno

        correlation_id = getattr(record, "correlation_id", "")
        if correlation_id:
            log_record["correlation_id"] = correlation_id

        if record.exc_info:
            log_record["exc_info"] = self.formatException(record.exc_info)
        if record.stack_info:
            log_record["stack_info"] = self.formatStack(record.stack_info)


# Listen future me, call this ONCE at startup (main.create_app does). It rewires the ROOT logger,
# so it removes any handlers that were there before (tests and uvicorn --reload both add some).
# json_format=True for production log shipping, False for humans. httpx logs every request at
# INFO - with retries across 4 tiers that is pure noise, so third-party loggers go to WARNING.
def configure_logging(
    log_level: str = "INFO",
    json_format: bool = False,
    app_name: str = "previewspot",
) -> None:
    """Configure structured logging.

    Args:
        log_level: Logging level (DEBUG, INFO, WARNING, ERROR, CRITICAL)
        json_format: Use JSON format for logs (recommended for production)
        app_name: Application name to include in logs
    """
    root_logger = logging.getLogger()

    for handler in root_logger.handlers[:]:
        root_logger.removeHandler(handler)

    level = getattr(logging, log_level.upper(), logging.INFO)
    root_logger.setLevel(level)

    handler = logging.StreamHandler(sys.stdout)
    handler.setLevel(level)
    handler.addFilter(CorrelationIdFilter())

    if json_format:
        formatter: logging.Formatter = CustomJsonFormatter(
            "%(timestamp)s %(level)s %(name)s %(message)s",
            datefmt="%Y-%m-%d %H:%M:%S",
        )
    else:
        formatter = CompactExceptionFormatter(
            fmt="%(asctime)s │ %(levelname)-7s │ %(name)s:%(lineno)d │ %(message)s",
            datefmt="%H:%M:%S",
        )

    handler.setFormatter(formatter)
    root_logger.addHandler(handler)

    logging.getLogger("httpx").setLevel(logging.WARNING)
    logging.getLogger("httpcore").setLevel(logging.WARNING)
    logging.getLogger("hpack").setLevel(logging.WARNING)
    logging.getLogger("asyncio").setLevel(logging.WARNING)
    # Our middleware already logs every request in a nicer format
    logging.getLogger("uvicorn.access").setLevel(logging.WARNING)

    logging.getLogger(__name__).info(
        "Logging configured",
        extra={
            "app_name": app_name,
            "log_level": log_level,
            "json_format": json_format,
        },
    )
