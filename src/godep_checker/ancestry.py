"""
Revision ancestry checks against a dependency's own git checkout.
"""

import subprocess
from dataclasses import dataclass
from enum import Enum
from pathlib import Path
from typing import List, Optional, Union

from .error_handling import AncestryCheckError, ErrorCategory, get_error_handler
from .structured_logging import get_ancestry_logger

PathLike = Union[str, Path]

# Exit status of `git merge-base --is-ancestor` when the answer is "no"
_NOT_ANCESTOR_STATUS = 1


class Ancestry(Enum):
    """Position of one revision relative to another."""

    OLDER = "older"
    NEWER = "newer"
    UNKNOWN = "unknown"

    @property
    def opposite(self) -> "Ancestry":
        if self is Ancestry.OLDER:
            return Ancestry.NEWER
        if self is Ancestry.NEWER:
            return Ancestry.OLDER
        return Ancestry.UNKNOWN


@dataclass(frozen=True)
class AncestryVerdict:
    """Outcome of comparing two revisions; ``error`` explains an UNKNOWN."""

    verdict: Ancestry
    error: Optional[str] = None


class AncestryChecker:
    """Answers "is revision A an ancestor of revision B?" using git."""

    def __init__(self, git_executable: str = "git", timeout_seconds: Optional[float] = None):
        self.git_executable = git_executable
        self.timeout_seconds = timeout_seconds
        self.error_handler = get_error_handler()

    def _run_git(self, args: List[str], cwd: Path) -> subprocess.CompletedProcess:
        command = [self.git_executable, *args]
        try:
            return subprocess.run(
                command,
                cwd=cwd,
                capture_output=True,
                text=True,
                timeout=self.timeout_seconds,
            )
        except FileNotFoundError:
            raise AncestryCheckError(f"git executable not found: {self.git_executable}")
        except subprocess.TimeoutExpired:
            raise AncestryCheckError(
                f"git {' '.join(args)} timed out after {self.timeout_seconds}s in {cwd}"
            )
        except OSError as e:
            raise AncestryCheckError(f"git {' '.join(args)} failed in {cwd}: {e}")

    def is_ancestor(self, ancestor: str, descendant: str, repo_path: PathLike) -> bool:
        """
        Check whether ``ancestor`` is reachable from ``descendant``.

        Args:
            ancestor: Candidate ancestor revision
            descendant: Candidate descendant revision
            repo_path: Checkout of the dependency's repository

        Returns:
            bool: True if ``ancestor`` precedes (or equals) ``descendant``

        Raises:
            AncestryCheckError: If the path is not a usable repository, a
                revision is unknown, or git itself fails
        """
        path = Path(repo_path)
        if not path.is_dir():
            raise AncestryCheckError(f"{path} is not a directory")
        for revision in (ancestor, descendant):
            if not revision or revision.startswith("-"):
                raise AncestryCheckError(f"{path}: invalid revision {revision!r}")

        result = self._run_git(["merge-base", "--is-ancestor", ancestor, descendant], path)
        if result.returncode == 0:
            return True
        if result.returncode == _NOT_ANCESTOR_STATUS and not result.stderr.strip():
            return False

        message = result.stderr.strip() or f"git merge-base exited with status {result.returncode}"
        raise AncestryCheckError(f"{path}: {message}")

    def classify(self, self_revision: str, other_revision: str, repo_path: PathLike) -> AncestryVerdict:
        """
        Place ``self_revision`` relative to ``other_revision``.

        OLDER when self's revision is an ancestor of the other's, NEWER for
        the reverse, UNKNOWN otherwise. For UNKNOWN the last error raised by
        git (if any) is carried along; a missing checkout is not fatal.
        """
        last_error: Optional[str] = None

        try:
            if self.is_ancestor(self_revision, other_revision, repo_path):
                return self._verdict(Ancestry.OLDER, None, self_revision, other_revision, repo_path)
        except AncestryCheckError as e:
            last_error = str(e)

        try:
            if self.is_ancestor(other_revision, self_revision, repo_path):
                return self._verdict(Ancestry.NEWER, None, self_revision, other_revision, repo_path)
        except AncestryCheckError as e:
            last_error = str(e)

        return self._verdict(Ancestry.UNKNOWN, last_error, self_revision, other_revision, repo_path)

    def _verdict(
        self,
        verdict: Ancestry,
        error: Optional[str],
        self_revision: str,
        other_revision: str,
        repo_path: PathLike,
    ) -> AncestryVerdict:
        get_ancestry_logger().debug(
            "ancestry_check",
            repository=str(repo_path),
            self_revision=self_revision,
            other_revision=other_revision,
            verdict=verdict.value,
            error=error,
        )
        if error:
            self.error_handler.warning(
                ErrorCategory.ANCESTRY,
                f"Could not determine ancestry: {error}",
                "ancestry.classify",
                details={
                    "repository": str(repo_path),
                    "self_revision": self_revision,
                    "other_revision": other_revision,
                },
            )
        return AncestryVerdict(verdict, error)
