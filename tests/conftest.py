"""
Shared fixtures for godep-checker tests.
"""

import json
import logging
import os
import shutil
import subprocess
from dataclasses import dataclass
from pathlib import Path

import pytest

from godep_checker.cli_config import reset_config
from godep_checker.error_handling import reset_error_handler


@pytest.fixture(autouse=True)
def isolated_environment(tmp_path, monkeypatch):
    """Keep user config, GOPATH and logging state out of every test."""
    home = tmp_path / "home"
    home.mkdir()
    monkeypatch.setenv("HOME", str(home))
    monkeypatch.delenv("GOPATH", raising=False)
    for key in list(os.environ):
        if key.startswith("GODEP_CHECKER_"):
            monkeypatch.delenv(key)
    monkeypatch.chdir(tmp_path)
    reset_config()
    reset_error_handler()

    yield

    reset_config()
    reset_error_handler()
    root = logging.getLogger("godep_checker")
    for handler in list(root.handlers):
        root.removeHandler(handler)
        handler.close()
    root.addHandler(logging.NullHandler())
    root.setLevel(logging.NOTSET)
    root.propagate = True


@pytest.fixture
def temp_dir(tmp_path):
    """Create a temporary directory for test files."""
    work = tmp_path / "work"
    work.mkdir()
    return work


@pytest.fixture
def write_manifest(temp_dir):
    """Write a Godeps.json document from (import_path, rev[, comment]) tuples."""

    def _write(name, deps, root=None):
        path = Path(root or temp_dir) / name
        path.parent.mkdir(parents=True, exist_ok=True)
        entries = []
        for dep in deps:
            entry = {"ImportPath": dep[0], "Rev": dep[1]}
            if len(dep) > 2:
                entry["Comment"] = dep[2]
            entries.append(entry)
        path.write_text(
            json.dumps(
                {"ImportPath": "example.com/project", "GoVersion": "go1.6", "Deps": entries},
                indent="\t",
            )
        )
        return path

    return _write


@pytest.fixture
def source_tree(temp_dir):
    """A small Go source tree with a vendored Godeps directory."""
    root = temp_dir / "src"
    (root / "pkg" / "util").mkdir(parents=True)
    (root / "Godeps" / "_workspace").mkdir(parents=True)

    (root / "main.go").write_text(
        'package main\n\nimport (\n\t"fmt"\n\n\t"github.com/golang/glog"\n)\n\n'
        'func main() { fmt.Println("hi"); glog.Flush() }\n'
    )
    (root / "pkg" / "util" / "util.go").write_text(
        'package util\n\nimport "k8s.io/kubernetes/pkg/api"\n\nvar _ = api.Scheme\n'
    )
    (root / "pkg" / "README.md").write_text("not go\n")
    # Vendored copies are never scanned, even when broken
    (root / "Godeps" / "_workspace" / "broken.go").write_text("this is not go\n")
    return root


@dataclass
class GitHistory:
    """A throwaway repository: first <- second on one line, first <- side on another."""

    path: Path
    first: str
    second: str
    side: str


def run_git(repo: Path, *args: str) -> str:
    result = subprocess.run(
        [
            "git",
            "-c", "user.name=Test User",
            "-c", "user.email=test@example.com",
            "-c", "commit.gpgsign=false",
            "-c", "init.defaultBranch=master",
            *args,
        ],
        cwd=repo,
        check=True,
        capture_output=True,
        text=True,
    )
    return result.stdout.strip()


@pytest.fixture
def gopath(tmp_path):
    root = tmp_path / "gopath"
    (root / "src").mkdir(parents=True)
    return root


@pytest.fixture
def make_git_history(gopath):
    """Create a git checkout for an import path below ``gopath/src``."""
    if shutil.which("git") is None:
        pytest.skip("git is not installed")

    def _make(import_path: str) -> GitHistory:
        repo = gopath / "src" / import_path
        repo.mkdir(parents=True)
        run_git(repo, "init", "-q")
        run_git(repo, "commit", "-q", "--allow-empty", "-m", "first")
        first = run_git(repo, "rev-parse", "HEAD")
        run_git(repo, "commit", "-q", "--allow-empty", "-m", "second")
        second = run_git(repo, "rev-parse", "HEAD")
        run_git(repo, "checkout", "-q", "-b", "side", first)
        run_git(repo, "commit", "-q", "--allow-empty", "-m", "side")
        side = run_git(repo, "rev-parse", "HEAD")
        return GitHistory(repo, first, second, side)

    return _make
