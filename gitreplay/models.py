"""Data models for gitreplay."""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum


class ChangeKind(Enum):
    """How a commit touched a file."""

    ADDED = "added"
    DELETED = "deleted"
    MODIFIED = "modified"
    RENAMED = "renamed"


class OperationKind(Enum):
    CREATE = "create"
    MODIFY = "modify"


class LineKind(Enum):
    ADDITION = "addition"
    DELETION = "deletion"
    CONTEXT = "context"


@dataclass(frozen=True)
class FileChange:
    """A single file touched by a commit."""

    path: str
    insertions: int = 0
    deletions: int = 0
    change_kind: ChangeKind = ChangeKind.MODIFIED
    from_path: str | None = None

    def __post_init__(self) -> None:
        if self.insertions < 0 or self.deletions < 0:
            raise ValueError(f"negative line counts for {self.path}")

    @property
    def changed_lines(self) -> int:
        return self.insertions + self.deletions


@dataclass(frozen=True)
class Commit:
    """A recorded snapshot with its metadata and changed files."""

    hash: str
    author: str
    email: str
    date: datetime
    message: str
    files: tuple[FileChange, ...] = ()

    @property
    def timestamp(self) -> float:
        """Commit time as epoch seconds."""
        return self.date.timestamp()

    @property
    def short_hash(self) -> str:
        return self.hash[:7]

    @property
    def subject(self) -> str:
        return self.message.split("\n", 1)[0]


@dataclass(frozen=True)
class Operation:
    """One file's change within one commit."""

    commit: Commit
    file: FileChange
    kind: OperationKind
    sequence_index: int

    @property
    def path(self) -> str:
        return self.file.path


@dataclass(frozen=True)
class CommitGroup:
    """A commit together with its ordered operations."""

    commit: Commit
    operations: tuple[Operation, ...]


@dataclass(frozen=True)
class DiffLine:
    kind: LineKind
    text: str
    old_line_number: int | None = None
    new_line_number: int | None = None


@dataclass(frozen=True)
class Hunk:
    """A contiguous block of a unified diff."""

    old_start: int
    old_line_count: int
    new_start: int
    new_line_count: int
    lines: tuple[DiffLine, ...] = ()
    header: str = ""


@dataclass(frozen=True)
class RevealState:
    """How much of the current content or diff is visible."""

    visible_count: int
    total: int
    complete: bool

    @classmethod
    def empty(cls) -> RevealState:
        return cls(visible_count=0, total=0, complete=False)

    @classmethod
    def full(cls, total: int) -> RevealState:
        return cls(visible_count=total, total=total, complete=True)


@dataclass(frozen=True)
class PlaybackStats:
    """Aggregate counts for a step-mode run."""

    created: int = 0
    modified: int = 0
    failed: int = 0
    total_operations: int = 0

    @property
    def processed(self) -> int:
        return self.created + self.modified


@dataclass
class TreeNode:
    """A node in a file tree; directories own their children by name."""

    name: str
    path: str
    is_dir: bool
    children: dict[str, TreeNode] = field(default_factory=dict)
