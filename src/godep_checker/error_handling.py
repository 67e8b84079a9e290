"""
Error taxonomy and centralized error handling for godep-checker.

Fatal conditions (unreadable manifests, unparsable sources) are raised as
exceptions and reported by the CLI; every diagnostic is also funnelled through
the ErrorHandler so it gets logged, counted and passed to any registered
callbacks.
"""

import logging
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Callable, Dict, List, Optional, Sequence


class GodepCheckerError(Exception):
    """Base class for all godep-checker errors."""


class ManifestLoadError(GodepCheckerError, ValueError):
    """A manifest could not be read, decoded or validated."""

    def __init__(self, path: str, reason: str):
        super().__init__(reason)
        self.path = path
        self.reason = reason


class DuplicateImportPathError(ManifestLoadError):
    """The same import path is pinned more than once in one manifest."""

    def __init__(self, path: str, import_path: str):
        super().__init__(path, f'imports "{import_path}" multiple times')
        self.import_path = import_path


class ImportScanError(GodepCheckerError):
    """One or more source files could not be parsed."""

    def __init__(self, errors: Sequence[Any]):
        super().__init__(f"{len(errors)} source file(s) could not be parsed")
        self.errors = list(errors)


class SourceParseError(GodepCheckerError):
    """A source file's package clause or import declarations are malformed."""

    def __init__(self, filename: str, line: int, column: int, message: str):
        super().__init__(message)
        self.filename = filename
        self.line = line
        self.column = column
        self.message = message

    def __str__(self) -> str:
        if self.line:
            return f"{self.filename}:{self.line}:{self.column}: {self.message}"
        return f"{self.filename}: {self.message}"


class AncestryCheckError(GodepCheckerError):
    """The revision history query failed."""


class ConfigurationError(GodepCheckerError, ValueError):
    """Configuration values are missing or invalid."""


class ErrorLevel(Enum):
    """Severity of a recorded diagnostic, valued as a ``logging`` level."""

    WARNING = logging.WARNING
    ERROR = logging.ERROR


class ErrorCategory(Enum):
    """Which stage of a run a diagnostic came from."""

    MANIFEST = "MANIFEST"
    IMPORT_SCAN = "IMPORT_SCAN"
    ANCESTRY = "ANCESTRY"
    CONFIGURATION = "CONFIGURATION"
    FILESYSTEM = "FILESYSTEM"


@dataclass
class ErrorContext:
    """One recorded diagnostic."""

    level: ErrorLevel
    category: ErrorCategory
    message: str
    where: str
    details: Dict[str, Any] = field(default_factory=dict)
    exception: Optional[BaseException] = None

    @property
    def stat_key(self) -> str:
        return f"{self.category.value}_{self.level.name}"

    def to_dict(self) -> Dict[str, Any]:
        return {
            "level": self.level.name,
            "category": self.category.value,
            "message": self.message,
            "where": self.where,
            "details": self.details,
            "exception": repr(self.exception) if self.exception else None,
        }


ErrorCallback = Callable[[ErrorContext], None]


class ErrorHandler:
    """
    Central sink for diagnostics raised during a run.

    Every diagnostic is logged under ``godep_checker.errors``, counted per
    category and level, and handed to the callbacks registered for its
    category (or for all categories).
    """

    def __init__(self, logger_name: str = "godep_checker.errors"):
        self.logger = logging.getLogger(logger_name)
        self.callbacks: Dict[Optional[ErrorCategory], List[ErrorCallback]] = {}
        self.error_stats: Dict[str, int] = {}

    def register_callback(
        self, callback: ErrorCallback, category: Optional[ErrorCategory] = None
    ) -> None:
        """Call ``callback`` for every diagnostic, or only those of ``category``."""
        self.callbacks.setdefault(category, []).append(callback)

    def handle_error(
        self,
        level: ErrorLevel,
        category: ErrorCategory,
        message: str,
        where: str,
        exception: Optional[BaseException] = None,
        details: Optional[Dict[str, Any]] = None,
    ) -> ErrorContext:
        """
        Record a diagnostic.

        Args:
            level: Severity
            category: Stage the diagnostic belongs to
            message: Human readable description
            where: ``module.function`` that reported it
            exception: The exception being reported, if any
            details: Extra context, logged alongside the message

        Returns:
            ErrorContext: The recorded diagnostic
        """
        context = ErrorContext(level, category, message, where, details or {}, exception)
        self.error_stats[context.stat_key] = self.error_stats.get(context.stat_key, 0) + 1

        self.logger.log(level.value, "%s [%s] %s", message, where, context.details)

        for callback in self.callbacks.get(category, []) + self.callbacks.get(None, []):
            try:
                callback(context)
            except Exception:
                # A broken callback must not abort the run
                self.logger.exception("Error callback failed for %s", context.stat_key)

        return context

    def warning(self, category: ErrorCategory, message: str, where: str, **kwargs) -> ErrorContext:
        return self.handle_error(ErrorLevel.WARNING, category, message, where, **kwargs)

    def error(self, category: ErrorCategory, message: str, where: str, **kwargs) -> ErrorContext:
        return self.handle_error(ErrorLevel.ERROR, category, message, where, **kwargs)

    def get_error_stats(self) -> Dict[str, int]:
        """Counts keyed by ``<CATEGORY>_<LEVEL>``."""
        return dict(self.error_stats)

    def reset_stats(self) -> None:
        self.error_stats.clear()


_global_error_handler: Optional[ErrorHandler] = None


def get_error_handler() -> ErrorHandler:
    """Return the process-wide error handler, creating it on first use."""
    global _global_error_handler
    if _global_error_handler is None:
        _global_error_handler = ErrorHandler()
    return _global_error_handler


def reset_error_handler() -> None:
    """Drop the process-wide error handler (useful for testing)."""
    global _global_error_handler
    _global_error_handler = None


def log_parsing_error(error: SourceParseError, where: str) -> ErrorContext:
    """Record a source file that failed to parse; the walk itself goes on."""
    return get_error_handler().warning(
        ErrorCategory.IMPORT_SCAN,
        str(error),
        where,
        exception=error,
        details={"file_path": error.filename, "line_number": error.line},
    )
