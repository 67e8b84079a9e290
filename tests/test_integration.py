"""
Integration tests for godep-checker.
Tests ancestry resolution and full runs against real git repositories.
"""

from click.testing import CliRunner

from godep_checker.ancestry import Ancestry, AncestryChecker, AncestryVerdict
from godep_checker.error_handling import get_error_handler
from godep_checker.main import cli


class TestGitAncestry:
    """Test revision ordering against real git histories."""

    def test_older_revision(self, make_git_history):
        history = make_git_history("github.com/golang/glog")

        verdict = AncestryChecker().classify(history.first, history.second, history.path)

        assert verdict == AncestryVerdict(Ancestry.OLDER)

    def test_newer_revision(self, make_git_history):
        history = make_git_history("github.com/golang/glog")

        verdict = AncestryChecker().classify(history.second, history.first, history.path)

        assert verdict == AncestryVerdict(Ancestry.NEWER)

    def test_diverged_revisions(self, make_git_history):
        """Test that revisions on separate branches cannot be ordered."""
        history = make_git_history("github.com/golang/glog")

        verdict = AncestryChecker().classify(history.second, history.side, history.path)

        assert verdict.verdict is Ancestry.UNKNOWN
        assert verdict.error is None
        assert get_error_handler().get_error_stats() == {}

    def test_unknown_revision(self, make_git_history):
        """Test that a revision missing from the history carries git's error."""
        history = make_git_history("github.com/golang/glog")

        verdict = AncestryChecker().classify("0" * 40, history.first, history.path)

        assert verdict.verdict is Ancestry.UNKNOWN
        assert verdict.error.startswith(str(history.path))
        assert get_error_handler().get_error_stats() == {"ANCESTRY_WARNING": 1}

    def test_missing_checkout(self, gopath):
        missing = gopath / "src" / "github.com" / "spf13" / "cobra"

        verdict = AncestryChecker().classify("aaa", "bbb", missing)

        assert verdict.verdict is Ancestry.UNKNOWN
        assert verdict.error == f"{missing} is not a directory"

    def test_ancestry_is_antisymmetric(self, make_git_history):
        history = make_git_history("github.com/golang/glog")
        checker = AncestryChecker()

        for a, b in [(history.first, history.second), (history.first, history.side)]:
            forward = checker.classify(a, b, history.path)
            backward = checker.classify(b, a, history.path)
            assert forward.verdict is backward.verdict.opposite


class TestEndToEnd:
    """Test complete runs using checkouts below a package root."""

    def test_full_run(self, make_git_history, write_manifest, source_tree, gopath):
        glog = make_git_history("github.com/golang/glog")
        cobra = make_git_history("github.com/spf13/cobra")
        a = write_manifest(
            "a.json",
            [
                ("github.com/golang/glog", glog.first),
                ("github.com/spf13/cobra", cobra.side),
                ("github.com/spf13/pflag", "1111111111111111111111111111111111111111"),
                ("only/in/self", "abc"),
            ],
        )
        b = write_manifest(
            "b.json",
            [
                ("github.com/golang/glog", glog.second),
                ("github.com/spf13/cobra", cobra.second),
                ("github.com/spf13/pflag", "2222222222222222222222222222222222222222"),
                ("only/in/other", "def"),
            ],
        )

        result = CliRunner().invoke(
            cli,
            [
                "--self", str(a),
                "--other", str(b),
                "--gopath", str(gopath),
                "--source-root", str(source_tree),
                "--quiet",
            ],
        )

        assert result.exit_code == 0
        lines = result.output.splitlines()
        assert lines[:5] == [
            "k8s-only godep imports (may need adding to origin):",
            "only/in/other",
            "",
            "",
            "",
        ]
        assert lines[5:12] == [
            "Mismatch on github.com/golang/glog:",
            f"    Origin: {glog.first} (older)",
            f"    K8s:    {glog.second} (newer)",
            "Mismatch on github.com/spf13/cobra:",
            f"    Origin: {cobra.side} (unknown)",
            f"    K8s:    {cobra.second} (unknown)",
            "Mismatch on github.com/spf13/pflag:",
        ]
        pflag = gopath / "src" / "github.com" / "spf13" / "pflag"
        assert lines[14] == f"    {pflag} is not a directory"
        assert "only/in/self" not in result.output
