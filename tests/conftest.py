from __future__ import annotations

import os
import subprocess
from collections.abc import Iterable
from pathlib import Path

import pytest

from gitreplay.models import Commit
from gitreplay.repository import NotFoundAtRevision

GIT_AVAILABLE = subprocess.run(["git", "--version"], capture_output=True).returncode == 0


class FakeRepository:
    """In-memory repository keyed by (revision, path)."""

    def __init__(self, commits: Iterable[Commit] = ()) -> None:
        self.commits = list(commits)
        self.contents: dict[tuple[str, str], str] = {}
        self.diffs: dict[tuple[str, str], str | Exception] = {}
        self.fetches: list[tuple[str, str, str]] = []

    def list_commits(self, branch: str) -> list[Commit]:
        return list(self.commits)

    def get_file_content(self, revision: str, path: str) -> str:
        self.fetches.append(("content", revision, path))
        try:
            return self.contents[(revision, path)]
        except KeyError:
            raise NotFoundAtRevision(revision, path) from None

    def get_diff(self, revision: str, path: str) -> str:
        self.fetches.append(("diff", revision, path))
        value = self.diffs.get((revision, path), "")
        if isinstance(value, Exception):
            raise value
        return value

    def list_tree(self, revision: str) -> list[str]:
        return sorted({change.path for commit in self.commits for change in commit.files})

    def list_branches(self) -> list[str]:
        return ["main"]

    def current_branch(self) -> str | None:
        return "main"


@pytest.fixture
def fake_repo() -> FakeRepository:
    return FakeRepository()


def _run(cmd: list[str], cwd: Path, env: dict[str, str] | None = None) -> None:
    subprocess.run(cmd, cwd=str(cwd), check=True, env=env, capture_output=True)


def _commit(repo: Path, message: str, date: str) -> None:
    env = dict(os.environ, GIT_AUTHOR_DATE=date, GIT_COMMITTER_DATE=date)
    _run(["git", "add", "-A"], cwd=repo)
    _run(
        [
            "git",
            "-c",
            "user.name=Test",
            "-c",
            "user.email=test@example.com",
            "-c",
            "commit.gpgsign=false",
            "commit",
            "-q",
            "-m",
            message,
        ],
        cwd=repo,
        env=env,
    )


@pytest.fixture
def git_repo(tmp_path: Path) -> Path:
    """A three-commit repository on ``main``.

    1. Add readme           README.md +2 -0
    2. Add app              README.md +1 -1, src/app.py +3 -0
    3. Update app           src/app.py +1 -1
    """
    if not GIT_AVAILABLE:
        pytest.skip("git missing")
    repo = tmp_path / "repo"
    repo.mkdir()
    _run(["git", "init", "-q"], cwd=repo)
    _run(["git", "symbolic-ref", "HEAD", "refs/heads/main"], cwd=repo)

    (repo / "README.md").write_text("hello\nworld\n")
    _commit(repo, "Add readme", "2024-01-01T10:00:00+00:00")

    (repo / "README.md").write_text("hello\nthere\n")
    (repo / "src").mkdir()
    (repo / "src" / "app.py").write_text("import sys\n\nprint(sys.argv)\n")
    _commit(repo, "Add app\n\nFirst cut of the entry point.", "2024-01-01T11:00:00+00:00")

    (repo / "src" / "app.py").write_text("import sys\n\nprint(sys.argv[1:])\n")
    _commit(repo, "Update app", "2024-01-01T12:00:00+00:00")
    return repo
