"""
Ancestry checker tests with git stubbed out.
"""

import subprocess
from unittest.mock import patch

import pytest

from godep_checker.ancestry import Ancestry, AncestryChecker
from godep_checker.error_handling import AncestryCheckError, get_error_handler


def completed(returncode, stderr=""):
    return subprocess.CompletedProcess(args=[], returncode=returncode, stdout="", stderr=stderr)


class TestIsAncestor:
    """Test mapping of git exit statuses."""

    @patch("godep_checker.ancestry.subprocess.run")
    def test_ancestor(self, mock_run, temp_dir):
        mock_run.return_value = completed(0)

        assert AncestryChecker().is_ancestor("aaa", "bbb", temp_dir) is True
        args, kwargs = mock_run.call_args
        assert args[0] == ["git", "merge-base", "--is-ancestor", "aaa", "bbb"]
        assert kwargs["cwd"] == temp_dir
        assert kwargs["timeout"] is None

    @patch("godep_checker.ancestry.subprocess.run")
    def test_not_ancestor(self, mock_run, temp_dir):
        mock_run.return_value = completed(1)

        assert AncestryChecker().is_ancestor("aaa", "bbb", temp_dir) is False

    @patch("godep_checker.ancestry.subprocess.run")
    def test_git_failure(self, mock_run, temp_dir):
        """Test that any other exit status is an error carrying git's message."""
        mock_run.return_value = completed(128, "fatal: Not a valid commit name aaa\n")

        with pytest.raises(AncestryCheckError, match="Not a valid commit name aaa"):
            AncestryChecker().is_ancestor("aaa", "bbb", temp_dir)

    @patch("godep_checker.ancestry.subprocess.run")
    def test_status_one_with_stderr_is_an_error(self, mock_run, temp_dir):
        mock_run.return_value = completed(1, "error: something odd\n")

        with pytest.raises(AncestryCheckError, match="something odd"):
            AncestryChecker().is_ancestor("aaa", "bbb", temp_dir)

    @patch("godep_checker.ancestry.subprocess.run")
    def test_missing_directory(self, mock_run, temp_dir):
        with pytest.raises(AncestryCheckError, match="is not a directory"):
            AncestryChecker().is_ancestor("aaa", "bbb", temp_dir / "missing")

        mock_run.assert_not_called()

    @patch("godep_checker.ancestry.subprocess.run")
    def test_option_like_revision_never_reaches_git(self, mock_run, temp_dir):
        with pytest.raises(AncestryCheckError, match="invalid revision '--all'"):
            AncestryChecker().is_ancestor("--all", "bbb", temp_dir)

        mock_run.assert_not_called()

    @patch("godep_checker.ancestry.subprocess.run")
    def test_git_not_installed(self, mock_run, temp_dir):
        mock_run.side_effect = FileNotFoundError("git")

        with pytest.raises(AncestryCheckError, match="git executable not found: /opt/git"):
            AncestryChecker(git_executable="/opt/git").is_ancestor("aaa", "bbb", temp_dir)

    @patch("godep_checker.ancestry.subprocess.run")
    def test_timeout(self, mock_run, temp_dir):
        mock_run.side_effect = subprocess.TimeoutExpired(cmd="git", timeout=2.5)

        with pytest.raises(AncestryCheckError, match="timed out after 2.5s"):
            AncestryChecker(timeout_seconds=2.5).is_ancestor("aaa", "bbb", temp_dir)


class TestClassify:
    """Test the two-query classification."""

    @patch("godep_checker.ancestry.subprocess.run")
    def test_older_needs_one_query(self, mock_run, temp_dir):
        mock_run.return_value = completed(0)

        verdict = AncestryChecker().classify("aaa", "bbb", temp_dir)

        assert verdict.verdict is Ancestry.OLDER
        assert mock_run.call_count == 1

    @patch("godep_checker.ancestry.subprocess.run")
    def test_newer(self, mock_run, temp_dir):
        mock_run.side_effect = [completed(1), completed(0)]

        verdict = AncestryChecker().classify("aaa", "bbb", temp_dir)

        assert verdict.verdict is Ancestry.NEWER
        assert mock_run.call_args[0][0][-2:] == ["bbb", "aaa"]

    @patch("godep_checker.ancestry.subprocess.run")
    def test_first_failure_does_not_prevent_second_query(self, mock_run, temp_dir):
        mock_run.side_effect = [completed(128, "fatal: bad object aaa"), completed(0)]

        verdict = AncestryChecker().classify("aaa", "bbb", temp_dir)

        assert verdict.verdict is Ancestry.NEWER
        assert verdict.error is None

    @patch("godep_checker.ancestry.subprocess.run")
    def test_unknown_keeps_last_error(self, mock_run, temp_dir):
        mock_run.side_effect = [
            completed(128, "fatal: bad object aaa"),
            completed(128, "fatal: bad object bbb"),
        ]

        verdict = AncestryChecker().classify("aaa", "bbb", temp_dir)

        assert verdict.verdict is Ancestry.UNKNOWN
        assert verdict.error == f"{temp_dir}: fatal: bad object bbb"
        assert get_error_handler().get_error_stats() == {"ANCESTRY_WARNING": 1}

    @patch("godep_checker.ancestry.subprocess.run")
    def test_unrelated_revisions(self, mock_run, temp_dir):
        mock_run.return_value = completed(1)

        verdict = AncestryChecker().classify("aaa", "bbb", temp_dir)

        assert verdict.verdict is Ancestry.UNKNOWN
        assert verdict.error is None
        assert mock_run.call_count == 2

    @patch("godep_checker.ancestry.subprocess.run")
    def test_option_like_revision_is_unknown(self, mock_run, temp_dir):
        verdict = AncestryChecker().classify("aaa", "-bbb", temp_dir)

        assert verdict.verdict is Ancestry.UNKNOWN
        assert verdict.error == f"{temp_dir}: invalid revision '-bbb'"
        mock_run.assert_not_called()

    def test_opposites(self):
        assert Ancestry.OLDER.opposite is Ancestry.NEWER
        assert Ancestry.NEWER.opposite is Ancestry.OLDER
        assert Ancestry.UNKNOWN.opposite is Ancestry.UNKNOWN
