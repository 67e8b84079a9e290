"""
Reconciliation of two Godeps manifests.

Loads both manifests, validates that the source tree's imports parse, splits
the dependency names into self-only, other-only and shared-but-divergent
groups, and asks git how each divergent pair of revisions relates.
"""

from dataclasses import dataclass, field
from pathlib import Path
from typing import Dict, List, Mapping, Optional, Tuple

from .ancestry import Ancestry, AncestryChecker
from .cli_config import CheckerConfig
from .dependency import Dependency
from .error_handling import ErrorCategory, ImportScanError, get_error_handler
from .imports import ImportScanResult, scan_imports
from .manifest import load_manifest
from .structured_logging import (
    clear_run_context,
    log_reconcile_complete,
    log_reconcile_start,
    set_run_context,
)


@dataclass(frozen=True)
class RevisionMismatch:
    """A dependency pinned by both manifests at different revisions."""

    import_path: str
    self_revision: str
    other_revision: str
    verdict: Ancestry = Ancestry.UNKNOWN
    error: Optional[str] = None

    @property
    def self_status(self) -> Ancestry:
        return self.verdict

    @property
    def other_status(self) -> Ancestry:
        return self.verdict.opposite


@dataclass
class ClassificationResult:
    """Derived comparison of two manifests; every list is sorted by import path."""

    only_in_self: List[str] = field(default_factory=list)
    only_in_other: List[str] = field(default_factory=list)
    mismatches: List[RevisionMismatch] = field(default_factory=list)
    imports_scanned: int = 0

    @property
    def shared_with_different_revision(self) -> List[str]:
        return [mismatch.import_path for mismatch in self.mismatches]

    @property
    def unknown_count(self) -> int:
        return sum(1 for m in self.mismatches if m.verdict is Ancestry.UNKNOWN)


def compare_manifests(
    self_deps: Mapping[str, Dependency],
    other_deps: Mapping[str, Dependency],
) -> Tuple[List[str], List[str], List[str]]:
    """
    Split import paths into self-only, other-only and divergent shared paths.

    Shared paths pinned at the same revision appear in none of the groups.

    Returns:
        Tuple of sorted lists ``(only_in_self, only_in_other, shared_with_different_revision)``
    """
    only_in_self = sorted(k for k in self_deps if k not in other_deps)
    only_in_other = sorted(k for k in other_deps if k not in self_deps)
    divergent = sorted(
        k
        for k in self_deps
        if k in other_deps and self_deps[k].revision != other_deps[k].revision
    )
    return only_in_self, only_in_other, divergent


class Reconciler:
    """Runs one linear reconciliation pass over two manifests."""

    def __init__(
        self,
        config: CheckerConfig,
        checker: Optional[AncestryChecker] = None,
    ):
        self.config = config
        self.checker = checker or AncestryChecker(
            git_executable=config.vcs.git_executable,
            timeout_seconds=config.vcs.timeout_seconds,
        )

    @property
    def self_manifest_path(self) -> Path:
        return self.config.paths.self_manifest_path()

    @property
    def other_manifest_path(self) -> Path:
        return self.config.paths.other_manifest_path()

    def load(self) -> Tuple[Dict[str, Dependency], Dict[str, Dependency]]:
        """Load self's manifest, then the other's; a failure stops before the next read."""
        self_deps = load_manifest(self.self_manifest_path, self.config.report.self_label)
        other_deps = load_manifest(self.other_manifest_path, self.config.report.other_label)
        return self_deps, other_deps

    def scan(self) -> ImportScanResult:
        """
        Parse the imports of the source tree.

        The resulting import set does not influence the report; the scan
        only has to succeed.

        Raises:
            ImportScanError: If any source file failed to parse
        """
        paths = self.config.paths
        result = scan_imports(paths.source_root, paths.skip_dirs, paths.source_extension)
        if not result.ok:
            get_error_handler().error(
                ErrorCategory.IMPORT_SCAN,
                f"{len(result.errors)} source file(s) failed to parse",
                "reconciler.scan",
                details={"source_root": paths.source_root},
            )
            raise ImportScanError(result.errors)
        return result

    def classify(
        self,
        self_deps: Mapping[str, Dependency],
        other_deps: Mapping[str, Dependency],
    ) -> ClassificationResult:
        """Group the dependencies and resolve ancestry for every divergent pair."""
        only_in_self, only_in_other, divergent = compare_manifests(self_deps, other_deps)

        mismatches = []
        for import_path in divergent:
            self_rev = self_deps[import_path].revision
            other_rev = other_deps[import_path].revision
            outcome = self.checker.classify(
                self_rev, other_rev, self.config.paths.checkout_path(import_path)
            )
            mismatches.append(
                RevisionMismatch(
                    import_path=import_path,
                    self_revision=self_rev,
                    other_revision=other_rev,
                    verdict=outcome.verdict,
                    error=outcome.error,
                )
            )

        return ClassificationResult(
            only_in_self=only_in_self,
            only_in_other=only_in_other,
            mismatches=mismatches,
        )

    def run(self) -> ClassificationResult:
        """
        Load, scan and classify.

        Raises:
            ManifestLoadError: If either manifest cannot be loaded
            ImportScanError: If the source tree contains unparsable files
        """
        set_run_context(
            self_label=self.config.report.self_label,
            other_label=self.config.report.other_label,
        )
        log_reconcile_start(
            str(self.self_manifest_path),
            str(self.other_manifest_path),
            self.config.paths.source_root,
        )
        try:
            self_deps, other_deps = self.load()
            scan_result = self.scan()
            result = self.classify(self_deps, other_deps)
            result.imports_scanned = len(scan_result.imports)
            log_reconcile_complete(
                len(result.only_in_self),
                len(result.only_in_other),
                len(result.mismatches),
                result.unknown_count,
            )
            return result
        finally:
            clear_run_context()
