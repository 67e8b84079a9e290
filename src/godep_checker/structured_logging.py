"""
Structured logging configuration for godep-checker.

Every component logs named events (``manifest_loaded``, ``ancestry_check``,
...) under the ``godep_checker`` logger hierarchy. Nothing is emitted unless
console or file logging is switched on, so the report on stdout stays clean.
"""

import json
import logging
import logging.handlers
import sys
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, Dict, Optional

from .cli_config import LoggingConfig

ROOT_LOGGER_NAME = "godep_checker"

_RESERVED_ATTRS = frozenset(
    [
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
        "exc_info",
        "exc_text",
        "stack_info",
        "message",
        "asctime",
    ]
)


class StructuredFormatter(logging.Formatter):
    """JSON formatter for structured logging."""

    def format(self, record: logging.LogRecord) -> str:
        """Format log record as JSON."""
        log_entry = {
            "timestamp": datetime.now(timezone.utc).isoformat(),
            "level": record.levelname,
            "component": record.name,
            "message": record.getMessage(),
        }

        for key, value in record.__dict__.items():
            if key not in _RESERVED_ATTRS:
                log_entry[key] = value

        if record.exc_info:
            log_entry["exception"] = self.formatException(record.exc_info)

        return json.dumps(log_entry, default=str)


class EventLogger:
    """Logger that records named events with keyword context."""

    def __init__(self, name: str):
        self.logger = logging.getLogger(f"{ROOT_LOGGER_NAME}.{name}")
        self.run_context: Dict[str, Any] = {}

    def set_run_context(self, **context: Any) -> None:
        """Attach context (manifest paths, labels) to every later event."""
        self.run_context = {k: v for k, v in context.items() if v is not None}

    def clear_run_context(self) -> None:
        self.run_context.clear()

    def _log(self, level: int, event_type: str, **kwargs) -> None:
        log_data = {"event_type": event_type, **self.run_context, **kwargs}
        self.logger.log(level, event_type, extra=log_data)

    def info(self, event_type: str, **kwargs) -> None:
        """Log info level event."""
        self._log(logging.INFO, event_type, **kwargs)

    def warning(self, event_type: str, **kwargs) -> None:
        """Log warning level event."""
        self._log(logging.WARNING, event_type, **kwargs)

    def error(self, event_type: str, **kwargs) -> None:
        """Log error level event."""
        self._log(logging.ERROR, event_type, **kwargs)

    def debug(self, event_type: str, **kwargs) -> None:
        """Log debug level event."""
        self._log(logging.DEBUG, event_type, **kwargs)


# Global logger instances
_manifest_logger = EventLogger("manifest")
_scanner_logger = EventLogger("imports")
_ancestry_logger = EventLogger("ancestry")
_reconciler_logger = EventLogger("reconciler")


def get_manifest_logger() -> EventLogger:
    """Get manifest loading logger."""
    return _manifest_logger


def get_scanner_logger() -> EventLogger:
    """Get source import scanner logger."""
    return _scanner_logger


def get_ancestry_logger() -> EventLogger:
    """Get revision ancestry logger."""
    return _ancestry_logger


def get_reconciler_logger() -> EventLogger:
    """Get reconciliation logger."""
    return _reconciler_logger


def set_run_context(**context: Any) -> None:
    """Set run context for all loggers."""
    for logger in [
        _manifest_logger,
        _scanner_logger,
        _ancestry_logger,
        _reconciler_logger,
    ]:
        logger.set_run_context(**context)


def clear_run_context() -> None:
    """Clear run context for all loggers."""
    for logger in [
        _manifest_logger,
        _scanner_logger,
        _ancestry_logger,
        _reconciler_logger,
    ]:
        logger.clear_run_context()


def log_reconcile_start(self_manifest: str, other_manifest: str, source_root: str) -> None:
    """Log the start of a reconciliation run."""
    get_reconciler_logger().info(
        "reconcile_start",
        self_manifest=self_manifest,
        other_manifest=other_manifest,
        source_root=source_root,
    )


def log_reconcile_complete(
    only_in_self: int,
    only_in_other: int,
    mismatches: int,
    unknown: int,
) -> None:
    """Log the outcome of a reconciliation run."""
    get_reconciler_logger().info(
        "reconcile_complete",
        only_in_self=only_in_self,
        only_in_other=only_in_other,
        mismatches=mismatches,
        unknown_ancestry=unknown,
    )


def _build_formatter(config: LoggingConfig) -> logging.Formatter:
    if config.log_format == "json":
        return StructuredFormatter()
    return logging.Formatter(config.log_text_format)


def setup_logging(config: LoggingConfig, stream: Optional[Any] = None) -> logging.Logger:
    """
    Configure the ``godep_checker`` logger hierarchy.

    Existing handlers are replaced on every call so repeated CLI invocations
    in one process do not stack handlers.

    Args:
        config: Logging section of the loaded configuration
        stream: Console stream, defaults to the current ``sys.stderr``

    Returns:
        logging.Logger: The configured root logger of the package
    """
    root = logging.getLogger(ROOT_LOGGER_NAME)
    for handler in list(root.handlers):
        root.removeHandler(handler)
        handler.close()

    root.setLevel(getattr(logging, config.log_level.upper(), logging.WARNING))
    root.propagate = False
    formatter = _build_formatter(config)

    if config.enable_console_logging:
        console_handler = logging.StreamHandler(stream or sys.stderr)
        console_handler.setFormatter(formatter)
        root.addHandler(console_handler)

    if config.enable_file_logging and config.log_file_path:
        log_path = Path(config.log_file_path)
        log_path.parent.mkdir(parents=True, exist_ok=True)
        file_handler = logging.handlers.RotatingFileHandler(
            log_path,
            maxBytes=config.max_log_file_size_mb * 1024 * 1024,
            backupCount=config.log_backup_count,
            encoding="utf-8",
        )
        file_handler.setFormatter(formatter)
        root.addHandler(file_handler)

    if not root.handlers:
        root.addHandler(logging.NullHandler())

    return root
