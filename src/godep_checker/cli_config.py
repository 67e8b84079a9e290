"""
Configuration management for godep-checker.

Settings come from built-in defaults, an optional config file (JSON, YAML or
TOML), environment variables and finally command-line options, in increasing
order of precedence. ``GOPATH`` is read once here and handed to the
components that need it as an explicit value.
"""

import json
import os
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Dict, List, Mapping, Optional

import toml
import yaml
from rich.console import Console

from .error_handling import ConfigurationError, ErrorCategory, get_error_handler

console = Console(stderr=True)

ENV_PREFIX = "GODEP_CHECKER_"
VALID_LOG_LEVELS = ("DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL")
VALID_OUTPUT_FORMATS = ("console", "json")
VALID_LOG_FORMATS = ("text", "json")


def default_package_root(environ: Optional[Mapping[str, str]] = None) -> Path:
    """
    Resolve the Go package root.

    The first entry of ``GOPATH`` wins when it lists several directories;
    without ``GOPATH`` the Go toolchain default ``~/go`` is used.
    """
    environ = os.environ if environ is None else environ
    gopath = environ.get("GOPATH", "")
    for entry in gopath.split(os.pathsep):
        if entry:
            return Path(entry).expanduser()
    return Path.home() / "go"


@dataclass
class PathsConfig:
    """Where the manifests, the source tree and dependency checkouts live."""

    package_root: Optional[str] = None
    self_import_path: str = "github.com/openshift/origin"
    other_import_path: str = "k8s.io/kubernetes"
    self_manifest: Optional[str] = None
    other_manifest: Optional[str] = None
    manifest_relpath: str = "Godeps/Godeps.json"
    source_root: str = "."
    skip_dirs: List[str] = field(default_factory=lambda: ["Godeps"])
    source_extension: str = ".go"

    def resolved_package_root(self) -> Path:
        if self.package_root:
            return Path(self.package_root).expanduser()
        return default_package_root()

    def checkout_path(self, import_path: str) -> Path:
        """Location of a dependency's own repository checkout."""
        return self.resolved_package_root() / "src" / import_path

    def self_manifest_path(self) -> Path:
        if self.self_manifest:
            return Path(self.self_manifest).expanduser()
        return self.checkout_path(self.self_import_path) / self.manifest_relpath

    def other_manifest_path(self) -> Path:
        if self.other_manifest:
            return Path(self.other_manifest).expanduser()
        return self.checkout_path(self.other_import_path) / self.manifest_relpath


@dataclass
class ReportConfig:
    """Report rendering configuration."""

    self_label: str = "Origin"
    other_label: str = "K8s"
    output_format: str = "console"
    show_self_only: bool = False
    quiet: bool = False


@dataclass
class VCSConfig:
    """Revision history query configuration."""

    git_executable: str = "git"
    timeout_seconds: Optional[float] = None


@dataclass
class LoggingConfig:
    """Logging and error handling configuration."""

    log_level: str = "WARNING"
    log_format: str = "text"
    log_text_format: str = "%(asctime)s - %(name)s - %(levelname)s - %(message)s"
    enable_console_logging: bool = False
    enable_file_logging: bool = False
    log_file_path: Optional[str] = None
    max_log_file_size_mb: int = 10
    log_backup_count: int = 3


@dataclass
class CheckerConfig:
    """Main configuration containing all subsections."""

    paths: PathsConfig = field(default_factory=PathsConfig)
    report: ReportConfig = field(default_factory=ReportConfig)
    vcs: VCSConfig = field(default_factory=VCSConfig)
    logging: LoggingConfig = field(default_factory=LoggingConfig)


# Global configuration instance
_global_config: Optional[CheckerConfig] = None


def _is_int(value: Any) -> bool:
    return isinstance(value, int) and not isinstance(value, bool)


def validate_config_values(config: CheckerConfig) -> List[str]:
    """
    Validate configuration values and return any errors.

    Args:
        config: Configuration to validate

    Returns:
        List[str]: List of validation errors (empty if valid)
    """
    errors = []

    # Validate paths config
    paths = config.paths
    for name in ("self_import_path", "other_import_path", "manifest_relpath", "source_root"):
        value = getattr(paths, name)
        if not isinstance(value, str) or not value:
            errors.append(f"paths.{name} must be a non-empty string")
    for name in ("package_root", "self_manifest", "other_manifest"):
        value = getattr(paths, name)
        if value is not None and not isinstance(value, str):
            errors.append(f"paths.{name} must be a string")
    if not isinstance(paths.skip_dirs, list) or not all(
        isinstance(d, str) and d for d in paths.skip_dirs
    ):
        errors.append("paths.skip_dirs must be a list of directory names")
    if not isinstance(paths.source_extension, str) or not paths.source_extension.startswith("."):
        errors.append("paths.source_extension must start with '.'")

    # Validate report config
    report = config.report
    for name in ("self_label", "other_label"):
        value = getattr(report, name)
        if not isinstance(value, str) or not value.strip():
            errors.append(f"report.{name} must be a non-empty string")
    if not isinstance(report.output_format, str) or report.output_format not in VALID_OUTPUT_FORMATS:
        errors.append(
            f"report.output_format must be one of {', '.join(VALID_OUTPUT_FORMATS)}"
        )
    for name in ("show_self_only", "quiet"):
        if not isinstance(getattr(report, name), bool):
            errors.append(f"report.{name} must be true or false")

    # Validate VCS config
    if not isinstance(config.vcs.git_executable, str) or not config.vcs.git_executable:
        errors.append("vcs.git_executable must be a non-empty string")
    timeout = config.vcs.timeout_seconds
    if timeout is not None and (
        not isinstance(timeout, (int, float)) or isinstance(timeout, bool) or timeout <= 0
    ):
        errors.append("vcs.timeout_seconds must be positive")

    # Validate logging config
    logging_config = config.logging
    if not isinstance(logging_config.log_level, str) or (
        logging_config.log_level.upper() not in VALID_LOG_LEVELS
    ):
        errors.append(f"logging.log_level must be one of {', '.join(VALID_LOG_LEVELS)}")
    if not isinstance(logging_config.log_format, str) or (
        logging_config.log_format not in VALID_LOG_FORMATS
    ):
        errors.append(f"logging.log_format must be one of {', '.join(VALID_LOG_FORMATS)}")
    if not isinstance(logging_config.log_text_format, str):
        errors.append("logging.log_text_format must be a string")
    if logging_config.log_file_path is not None and not isinstance(
        logging_config.log_file_path, str
    ):
        errors.append("logging.log_file_path must be a string")
    for name in ("enable_console_logging", "enable_file_logging"):
        if not isinstance(getattr(logging_config, name), bool):
            errors.append(f"logging.{name} must be true or false")
    if not _is_int(logging_config.max_log_file_size_mb) or logging_config.max_log_file_size_mb <= 0:
        errors.append("logging.max_log_file_size_mb must be a positive integer")
    if not _is_int(logging_config.log_backup_count) or logging_config.log_backup_count < 0:
        errors.append("logging.log_backup_count must be a non-negative integer")

    return errors


def load_config_file(config_path: Path) -> Dict[str, Any]:
    """
    Load config from a JSON, YAML or TOML file.

    Raises:
        ConfigurationError: If the file cannot be read or decoded
    """
    suffix = config_path.suffix.lower()
    try:
        with open(config_path, encoding="utf-8") as f:
            if suffix in (".yaml", ".yml"):
                data = yaml.safe_load(f)
            elif suffix == ".toml":
                data = toml.load(f)
            else:
                data = json.load(f)
    except (OSError, ValueError, yaml.YAMLError) as e:
        raise ConfigurationError(f"Error loading config from {config_path}: {e}")

    if data is None:
        return {}
    if not isinstance(data, dict):
        raise ConfigurationError(f"Config file {config_path} must contain a mapping")
    return data


def find_config_file() -> Optional[Path]:
    """Find config file in standard locations."""
    locations = [
        Path.cwd() / ".godep-checker.json",
        Path.cwd() / ".godep-checker.yaml",
        Path.cwd() / ".godep-checker.yml",
        Path.cwd() / ".godep-checker.toml",
        Path.home() / ".config" / "godep-checker" / "config.json",
        Path.home() / ".config" / "godep-checker" / "config.yaml",
        Path.home() / ".config" / "godep-checker" / "config.toml",
        Path.home() / ".godep-checker.json",
    ]

    for location in locations:
        if location.is_file():
            return location

    return None


def load_environment_overrides(
    config: CheckerConfig, environ: Optional[Mapping[str, str]] = None
) -> None:
    """Apply ``GOPATH`` and ``GODEP_CHECKER_*`` environment overrides."""
    environ = os.environ if environ is None else environ

    def get_env(key: str) -> Optional[str]:
        value = environ.get(ENV_PREFIX + key)
        return value if value else None

    def get_env_float(key: str) -> Optional[float]:
        value = get_env(key)
        if value is None:
            return None
        try:
            return float(value)
        except ValueError:
            console.print(
                f"⚠️  Invalid float value for {ENV_PREFIX}{key}, using default",
                style="yellow",
            )
            return None

    if environ.get("GOPATH"):
        config.paths.package_root = str(default_package_root(environ))

    # Paths overrides
    if self_manifest := get_env("SELF"):
        config.paths.self_manifest = self_manifest
    if other_manifest := get_env("OTHER"):
        config.paths.other_manifest = other_manifest
    if source_root := get_env("SOURCE_ROOT"):
        config.paths.source_root = source_root

    # Report overrides
    if self_label := get_env("SELF_LABEL"):
        config.report.self_label = self_label
    if other_label := get_env("OTHER_LABEL"):
        config.report.other_label = other_label

    # VCS overrides
    if git_executable := get_env("GIT"):
        config.vcs.git_executable = git_executable
    if timeout := get_env_float("GIT_TIMEOUT"):
        config.vcs.timeout_seconds = timeout

    # Logging overrides
    if log_level := get_env("LOG_LEVEL"):
        config.logging.log_level = log_level.upper()
    if log_format := get_env("LOG_FORMAT"):
        config.logging.log_format = log_format.lower()
    if log_file := get_env("LOG_FILE"):
        config.logging.log_file_path = log_file
        config.logging.enable_file_logging = True


def apply_config_section(
    config: Any, section_data: Dict[str, Any], section_name: str
) -> None:
    """Apply configuration from dictionary to config section."""
    if not isinstance(section_data, dict):
        raise ConfigurationError(f"Config section '{section_name}' must be a mapping")
    for key, value in section_data.items():
        if hasattr(config, key):
            if isinstance(getattr(config, key), list) and isinstance(value, str):
                value = [value]
            setattr(config, key, value)
        else:
            console.print(
                f"⚠️  Unknown config key in {section_name}: {key}", style="yellow"
            )


def load_config(config_file: Optional[str] = None) -> CheckerConfig:
    """
    Load configuration from file and environment.

    Args:
        config_file: Explicit config file; standard locations are searched
            when omitted

    Raises:
        ConfigurationError: If the config file is unreadable or values are invalid
    """
    global _global_config

    config = CheckerConfig()

    config_path = Path(config_file) if config_file else find_config_file()
    if config_path:
        file_config = load_config_file(config_path)
        for section_name in ("paths", "report", "vcs", "logging"):
            if section_name in file_config:
                apply_config_section(
                    getattr(config, section_name),
                    file_config[section_name],
                    section_name,
                )
        for key in file_config:
            if key not in ("paths", "report", "vcs", "logging"):
                console.print(f"⚠️  Unknown config section: {key}", style="yellow")

    load_environment_overrides(config)

    validation_errors = validate_config_values(config)
    if validation_errors:
        get_error_handler().error(
            ErrorCategory.CONFIGURATION,
            "Configuration validation failed",
            "cli_config.load_config",
            details={"errors": validation_errors},
        )
        raise ConfigurationError(
            "Configuration validation errors: " + "; ".join(validation_errors)
        )

    _global_config = config
    return config


def get_config() -> CheckerConfig:
    """Get the global configuration instance."""
    global _global_config
    if _global_config is None:
        _global_config = load_config()
    return _global_config


def reset_config() -> None:
    """Reset the global configuration (useful for testing)."""
    global _global_config
    _global_config = None
