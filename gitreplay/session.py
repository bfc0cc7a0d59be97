"""A replay session: one branch of one repository, loaded once."""

from __future__ import annotations

import logging
from pathlib import Path

from gitreplay import git_ops
from gitreplay.cache import ContentCache, content_key, diff_key
from gitreplay.models import Commit, CommitGroup, Operation
from gitreplay.repository import DiffUnavailable, GitRepository, NotFoundAtRevision, Repository
from gitreplay.sequencer import group, iter_grouped
from gitreplay.timeline import CommitTimelineIndex

logger = logging.getLogger(__name__)


class SessionError(RuntimeError):
    """The repository or branch cannot be opened."""


class Session:
    """Everything derived from one repository + branch selection.

    The commit list, timeline, operation sequence and fetch cache all belong
    to the session; selecting another repository or branch means building a
    new one.
    """

    def __init__(
        self,
        repository: Repository,
        branch: str,
        cache: ContentCache | None = None,
        repo_root: Path | None = None,
    ) -> None:
        self.repository = repository
        self.branch = branch
        self.repo_root = repo_root
        self.cache = cache if cache is not None else ContentCache()
        try:
            commits = repository.list_commits(branch)
        except git_ops.GitError as exc:
            raise SessionError(f"cannot read history of {branch}: {exc.stderr}") from exc
        self.timeline = CommitTimelineIndex(commits)
        self.groups: list[CommitGroup] = group(self.timeline.commits)
        self.operations: list[Operation] = list(iter_grouped(self.groups))
        logger.info(
            "loaded %d commits, %d operations from %s",
            len(self.timeline),
            len(self.operations),
            branch,
        )

    @classmethod
    def open(cls, cwd: Path, branch: str | None = None) -> Session:
        repo_root = git_ops.get_repo_root(cwd)
        if repo_root is None:
            raise SessionError("Not inside a git repository")
        repository = GitRepository(repo_root)
        if branch is None:
            branch = repository.current_branch()
            if branch is None:
                branch = "HEAD"
        elif not repository.has_revision(branch):
            raise SessionError(f"Unknown branch: {branch}")
        return cls(repository, branch, repo_root=repo_root)

    @property
    def commits(self) -> list[Commit]:
        return self.timeline.commits

    def switch_branch(self, branch: str) -> Session:
        """Start a fresh session on another branch of the same repository."""
        self.close()
        return Session(self.repository, branch, repo_root=self.repo_root)

    def close(self) -> None:
        self.cache.clear()

    def load_content(self, commit_hash: str, path: str) -> str:
        """File content at a commit; empty when the file is absent there."""
        key = content_key(commit_hash, path)
        cached = self.cache.get(key)
        if cached is not None:
            return cached
        try:
            content = self.repository.get_file_content(commit_hash, path)
        except NotFoundAtRevision:
            logger.info("%s absent at %s, using empty content", path, commit_hash[:7])
            content = ""
        return self.cache.put(key, content)

    def load_diff(self, commit_hash: str, path: str) -> str:
        """Diff against the parent; raises ``DiffUnavailable`` if there is none."""
        key = diff_key(commit_hash, path)
        cached = self.cache.get(key)
        if cached is None:
            try:
                cached = self.cache.put(key, self.repository.get_diff(commit_hash, path) or "")
            except DiffUnavailable:
                logger.warning("diff unavailable for %s at %s", path, commit_hash[:7])
                raise
        if not cached.strip():
            raise DiffUnavailable(commit_hash, path)
        return cached

    def load_tree(self, revision: str) -> list[str]:
        return self.repository.list_tree(revision)
