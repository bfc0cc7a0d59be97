"""Repository query interface consumed by the playback core."""

from __future__ import annotations

from pathlib import Path
from typing import Protocol

from gitreplay import git_ops
from gitreplay.models import Commit


class NotFoundAtRevision(LookupError):
    """The file does not exist at the requested revision."""

    def __init__(self, revision: str, path: str) -> None:
        self.revision = revision
        self.path = path
        super().__init__(f"{path} not found at {revision}")


class DiffUnavailable(LookupError):
    """No textual diff could be produced for a file."""

    def __init__(self, revision: str, path: str, reason: str = "empty diff") -> None:
        self.revision = revision
        self.path = path
        super().__init__(f"no diff for {path} at {revision}: {reason}")


class Repository(Protocol):
    def list_commits(self, branch: str) -> list[Commit]: ...

    def get_file_content(self, revision: str, path: str) -> str: ...

    def get_diff(self, revision: str, path: str) -> str: ...

    def list_tree(self, revision: str) -> list[str]: ...

    def list_branches(self) -> list[str]: ...

    def current_branch(self) -> str | None: ...


class GitRepository:
    """``Repository`` backed by the git command line."""

    def __init__(self, repo_root: Path) -> None:
        self.repo_root = repo_root

    def list_commits(self, branch: str) -> list[Commit]:
        return git_ops.list_commits(self.repo_root, branch)

    def get_file_content(self, revision: str, path: str) -> str:
        try:
            return git_ops.show_file(self.repo_root, revision, path)
        except git_ops.GitError as exc:
            raise NotFoundAtRevision(revision, path) from exc

    def get_diff(self, revision: str, path: str) -> str:
        try:
            return git_ops.diff_against_parent(self.repo_root, revision, path)
        except git_ops.GitError as exc:
            raise DiffUnavailable(revision, path, exc.stderr or "git diff failed") from exc

    def list_tree(self, revision: str) -> list[str]:
        return git_ops.list_tree(self.repo_root, revision)

    def list_branches(self) -> list[str]:
        return git_ops.list_local_branches(self.repo_root)

    def current_branch(self) -> str | None:
        return git_ops.get_current_branch(self.repo_root)

    def has_revision(self, revision: str) -> bool:
        return git_ops.branch_exists(self.repo_root, revision)
