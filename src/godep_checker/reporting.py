"""
Reporting for reconciliation results.

The console report is plain text so it can be diffed and piped; Rich is used
only as the output sink with markup and highlighting switched off.
"""

import json
from typing import Any, Dict, List, Optional

from rich.console import Console

from .reconciler import ClassificationResult, RevisionMismatch


class ReconciliationReporter:
    """Formats and displays reconciliation results."""

    def __init__(
        self,
        console: Optional[Console] = None,
        self_label: str = "Origin",
        other_label: str = "K8s",
    ):
        self.console = console or Console()
        self.self_label = self_label
        self.other_label = other_label

    def _line(self, text: str = "") -> None:
        self.console.print(
            text, markup=False, highlight=False, emoji=False, soft_wrap=True
        )

    def print_preamble(self) -> None:
        """Print the assumptions the report relies on."""
        self._line()
        self._line("  Assumes the following:")
        self._line("  - $GOPATH is set to a single directory (not the godepsified path)")
        self._line(f'  - "godeps save ./..." has not yet been run on {self.self_label.lower()}')
        self._line(f"  - The desired level of {self.other_label.lower()} is checked out")
        self._line()

    def print_report(self, result: ClassificationResult, show_self_only: bool = False) -> None:
        """
        Print the reconciliation report.

        Args:
            result: Classification of the two manifests
            show_self_only: Also list dependencies only the first manifest pins
        """
        self._print_only_in(
            f"{self.other_label.lower()}-only godep imports "
            f"(may need adding to {self.self_label.lower()}):",
            result.only_in_other,
        )
        if show_self_only:
            self._print_only_in(
                f"{self.self_label.lower()}-only godep imports (may be unused):",
                result.only_in_self,
            )
        for mismatch in result.mismatches:
            self._print_mismatch(mismatch)

    def _print_only_in(self, title: str, import_paths: List[str]) -> None:
        if not import_paths:
            return
        self._line(title)
        for import_path in import_paths:
            self._line(import_path)
        for _ in range(3):
            self._line()

    def _print_mismatch(self, mismatch: RevisionMismatch) -> None:
        width = max(len(self.self_label), len(self.other_label)) + 1
        self._line(f"Mismatch on {mismatch.import_path}:")
        self._line(
            f"    {(self.self_label + ':').ljust(width)} "
            f"{mismatch.self_revision} ({mismatch.self_status.value})"
        )
        self._line(
            f"    {(self.other_label + ':').ljust(width)} "
            f"{mismatch.other_revision} ({mismatch.other_status.value})"
        )
        if mismatch.error:
            self._line(f"    {mismatch.error}")

    def to_dict(
        self,
        result: ClassificationResult,
        self_manifest: str,
        other_manifest: str,
    ) -> Dict[str, Any]:
        """Convert a result into JSON-serializable data."""
        return {
            "self": {"label": self.self_label, "manifest": self_manifest},
            "other": {"label": self.other_label, "manifest": other_manifest},
            "only_in_self": list(result.only_in_self),
            "only_in_other": list(result.only_in_other),
            "mismatches": [
                {
                    "import_path": m.import_path,
                    "self_revision": m.self_revision,
                    "other_revision": m.other_revision,
                    "self_status": m.self_status.value,
                    "other_status": m.other_status.value,
                    "error": m.error,
                }
                for m in result.mismatches
            ],
            "imports_scanned": result.imports_scanned,
        }

    def print_json(
        self,
        result: ClassificationResult,
        self_manifest: str,
        other_manifest: str,
    ) -> None:
        """Export results as JSON."""
        self._line(json.dumps(self.to_dict(result, self_manifest, other_manifest), indent=2))
