"""Git subprocess operations."""

import logging
import re
import subprocess
from datetime import datetime
from pathlib import Path
from typing import Sequence

from gitreplay.models import ChangeKind, Commit, FileChange

logger = logging.getLogger(__name__)

EMPTY_TREE = "4b825dc642cb6eb9a060e54bf8d69288fbee4904"
RECORD_SEP = "\x1e"
FIELD_SEP = "\x1f"
HEADER_END = "\x1d"
LOG_FORMAT = f"{RECORD_SEP}%H{FIELD_SEP}%an{FIELD_SEP}%ae{FIELD_SEP}%aI{FIELD_SEP}%B{HEADER_END}"
NUMSTAT_LINE = re.compile(r"^(\d+|-)\t(\d+|-)\t")


class GitError(Exception):
    """Git command failed."""

    def __init__(self, cmd: Sequence[str], stderr: str) -> None:
        self.cmd = cmd
        self.stderr = stderr
        super().__init__(f"git {' '.join(cmd)}: {stderr}")


def run(args: Sequence[str], cwd: Path | None = None, strip: bool = True) -> str:
    """Run a git command and return stdout."""
    logger.debug("git %s", " ".join(args))
    result = subprocess.run(
        ["git", *args],
        cwd=cwd,
        check=False,
        stdout=subprocess.PIPE,
        stderr=subprocess.PIPE,
        text=True,
        encoding="utf-8",
        errors="replace",
    )
    if result.returncode != 0:
        raise GitError(args, result.stderr.strip())
    return result.stdout.strip() if strip else result.stdout


def try_run(args: Sequence[str], cwd: Path | None = None, strip: bool = True) -> str | None:
    """Run a git command, returning None on failure."""
    try:
        return run(args, cwd=cwd, strip=strip)
    except GitError:
        return None


def get_repo_root(cwd: Path) -> Path | None:
    """Get the top-level directory of the work tree containing ``cwd``."""
    top = try_run(["rev-parse", "--show-toplevel"], cwd=cwd)
    return Path(top) if top else None


def get_current_branch(repo_root: Path) -> str | None:
    """Get the checked out branch name, or None when detached."""
    ref = try_run(["symbolic-ref", "--quiet", "--short", "HEAD"], cwd=repo_root)
    return ref or None


def list_local_branches(repo_root: Path) -> list[str]:
    """List all local branch names."""
    out = run(["for-each-ref", "--format=%(refname:short)", "refs/heads"], cwd=repo_root)
    return [line.strip() for line in out.splitlines() if line.strip()]


def branch_exists(repo_root: Path, branch: str) -> bool:
    """Check if a revision resolves to a commit."""
    return try_run(["rev-parse", "--verify", "--quiet", f"{branch}^{{commit}}"], cwd=repo_root) is not None


def _change_from_raw(raw: str) -> tuple[ChangeKind, str, str | None]:
    # ":100644 100644 abc1234 def5678 R087\told\tnew"
    meta, _, paths = raw.partition("\t")
    status = meta.split()[-1] if meta.split() else "M"
    parts = paths.split("\t")
    letter = status[:1]
    if letter == "A":
        return ChangeKind.ADDED, parts[-1], None
    if letter == "D":
        return ChangeKind.DELETED, parts[-1], None
    if letter in ("R", "C") and len(parts) >= 2:
        return ChangeKind.RENAMED, parts[1], parts[0]
    return ChangeKind.MODIFIED, parts[-1], None


def _count(value: str) -> int:
    return int(value) if value.isdigit() else 0


def parse_log(output: str) -> list[Commit]:
    """Parse ``git log --raw --numstat`` output produced with ``LOG_FORMAT``."""
    commits: list[Commit] = []
    for record in output.split(RECORD_SEP):
        if not record.strip():
            continue
        header, _, body = record.partition(HEADER_END)
        fields = header.split(FIELD_SEP)
        if len(fields) < 5:
            logger.debug("skipping malformed log record %r", header[:80])
            continue
        commit_hash, author, email, date, message = fields[:5]

        raws: list[str] = []
        stats: list[tuple[int, int]] = []
        for line in body.splitlines():
            if line.startswith(":"):
                raws.append(line)
            elif NUMSTAT_LINE.match(line):
                added, deleted, _ = line.split("\t", 2)
                stats.append((_count(added), _count(deleted)))

        files: list[FileChange] = []
        for idx, raw in enumerate(raws):
            kind, path, from_path = _change_from_raw(raw)
            insertions, deletions = stats[idx] if idx < len(stats) else (0, 0)
            files.append(
                FileChange(
                    path=path,
                    insertions=insertions,
                    deletions=deletions,
                    change_kind=kind,
                    from_path=from_path,
                )
            )

        commits.append(
            Commit(
                hash=commit_hash.strip(),
                author=author,
                email=email,
                date=datetime.fromisoformat(date.strip()),
                message=message.strip(),
                files=tuple(files),
            )
        )
    return commits


def list_commits(repo_root: Path, branch: str) -> list[Commit]:
    """Commits reachable from ``branch``, oldest first."""
    out = run(
        ["log", "--reverse", "-M", "--raw", "--numstat", f"--format={LOG_FORMAT}", branch, "--"],
        cwd=repo_root,
    )
    return parse_log(out)


def show_file(repo_root: Path, revision: str, path: str) -> str:
    """Get the content of ``path`` at ``revision``."""
    return run(["show", f"{revision}:{path}"], cwd=repo_root, strip=False)


def diff_against_parent(repo_root: Path, revision: str, path: str) -> str:
    """Unified diff of ``path`` between ``revision``'s first parent and itself."""
    out = try_run(["diff", "--no-color", f"{revision}~1", revision, "--", path], cwd=repo_root, strip=False)
    if out is not None:
        return out
    # Root commit: compare with the empty tree.
    return run(["diff", "--no-color", EMPTY_TREE, revision, "--", path], cwd=repo_root, strip=False)


def list_tree(repo_root: Path, revision: str) -> list[str]:
    """All file paths at ``revision``."""
    out = run(["ls-tree", "-r", "--name-only", revision], cwd=repo_root)
    return [line for line in out.splitlines() if line]
