"""
Godeps manifest loading.

A manifest is a ``Godeps.json`` document shaped as
``{"Deps": [{"ImportPath": ..., "Comment": ..., "Rev": ...}, ...]}``. It is
materialized as a mapping from import path to :class:`Dependency`, keeping
document order.
"""

import json
from pathlib import Path
from typing import Any, Dict, Mapping, Optional, Union

from .dependency import Dependency
from .error_handling import (
    DuplicateImportPathError,
    ErrorCategory,
    ManifestLoadError,
    get_error_handler,
)
from .structured_logging import get_manifest_logger

PathLike = Union[str, Path]


def _lookup(entry: Mapping[str, Any], name: str) -> Any:
    """Fetch a field, falling back to a case-insensitive match as Godeps does."""
    if name in entry:
        return entry[name]
    lowered = name.lower()
    for key, value in entry.items():
        if isinstance(key, str) and key.lower() == lowered:
            return value
    return None


def _read_manifest(path: Path) -> str:
    try:
        return path.read_text(encoding="utf-8")
    except FileNotFoundError:
        raise ManifestLoadError(str(path), f"open {path}: no such file or directory")
    except IsADirectoryError:
        raise ManifestLoadError(str(path), f"read {path}: is a directory")
    except PermissionError:
        raise ManifestLoadError(str(path), f"open {path}: permission denied")
    except UnicodeDecodeError as e:
        raise ManifestLoadError(str(path), f"{path} is not valid UTF-8: {e}")
    except OSError as e:
        raise ManifestLoadError(str(path), f"read {path}: {e.strerror or e}")


def _parse_entry(path: Path, index: int, entry: Any) -> Dependency:
    if not isinstance(entry, dict):
        raise ManifestLoadError(
            str(path), f"Deps[{index}] must be an object, got {type(entry).__name__}"
        )

    import_path = _lookup(entry, "ImportPath")
    if not isinstance(import_path, str) or not import_path:
        raise ManifestLoadError(
            str(path), f"Deps[{index}] has no ImportPath string"
        )

    fields = {}
    for name in ("Rev", "Comment"):
        value = _lookup(entry, name)
        if value is None:
            value = ""
        if not isinstance(value, str):
            raise ManifestLoadError(
                str(path),
                f"Deps[{index}] ({import_path}): {name} must be a string, "
                f"got {type(value).__name__}",
            )
        fields[name] = value

    return Dependency(
        import_path=import_path, revision=fields["Rev"], comment=fields["Comment"]
    )


def parse_manifest(content: str, source: PathLike = "<manifest>") -> Dict[str, Dependency]:
    """
    Parse manifest text into a mapping keyed by import path.

    Args:
        content: JSON text of the manifest
        source: Path used in error messages

    Returns:
        Dict[str, Dependency]: Dependencies in document order

    Raises:
        ManifestLoadError: On malformed JSON or an unexpected document shape
        DuplicateImportPathError: If an import path is pinned twice
    """
    path = Path(source)
    try:
        data = json.loads(content)
    except json.JSONDecodeError as e:
        raise ManifestLoadError(str(path), f"invalid JSON in {path}: {e}")

    if not isinstance(data, dict):
        raise ManifestLoadError(
            str(path), f"{path} must contain a JSON object, got {type(data).__name__}"
        )

    deps = _lookup(data, "Deps")
    if deps is None:
        deps = []
    if not isinstance(deps, list):
        raise ManifestLoadError(str(path), f"Deps in {path} must be a list")

    depmap: Dict[str, Dependency] = {}
    for index, entry in enumerate(deps):
        dep = _parse_entry(path, index, entry)
        if dep.import_path in depmap:
            raise DuplicateImportPathError(str(path), dep.import_path)
        depmap[dep.import_path] = dep
    return depmap


def load_manifest(file_path: PathLike, label: Optional[str] = None) -> Dict[str, Dependency]:
    """
    Load a Godeps manifest from disk.

    Args:
        file_path: Path to the ``Godeps.json`` document
        label: Optional name of the manifest owner, used for logging

    Returns:
        Dict[str, Dependency]: Mapping from import path to its record

    Raises:
        ManifestLoadError: If the file is unreadable, malformed or contains
            a duplicated import path
    """
    path = Path(file_path)
    error_handler = get_error_handler()

    try:
        depmap = parse_manifest(_read_manifest(path), path)
    except ManifestLoadError as e:
        error_handler.error(
            ErrorCategory.MANIFEST,
            f"Failed to load manifest: {e.reason}",
            "manifest.load_manifest",
            exception=e,
            details={"file_path": str(path), "label": label},
        )
        raise

    get_manifest_logger().info(
        "manifest_loaded",
        manifest=str(path),
        label=label,
        dependencies=len(depmap),
    )
    return depmap
