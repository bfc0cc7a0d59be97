"""Linearize per-commit file changes into a single operation stream."""

from __future__ import annotations

from collections.abc import Iterable, Iterator, Sequence

from gitreplay.models import (
    Commit,
    CommitGroup,
    FileChange,
    Operation,
    OperationKind,
    PlaybackStats,
)


def classify(change: FileChange) -> OperationKind:
    """Create only when a change adds lines without deleting any."""
    if change.deletions == 0 and change.insertions > 0:
        return OperationKind.CREATE
    return OperationKind.MODIFY


def group(commits: Iterable[Commit]) -> list[CommitGroup]:
    """One entry per commit with files, in commit order then file order."""
    groups: list[CommitGroup] = []
    index = 0
    for commit in commits:
        if not commit.files:
            continue
        operations: list[Operation] = []
        for change in commit.files:
            operations.append(Operation(commit, change, classify(change), index))
            index += 1
        groups.append(CommitGroup(commit, tuple(operations)))
    return groups


def iter_grouped(groups: Iterable[CommitGroup]) -> Iterator[Operation]:
    for entry in groups:
        yield from entry.operations


def sequence(commits: Iterable[Commit]) -> list[Operation]:
    """Flattened operation list; same total order as ``group``."""
    return list(iter_grouped(group(commits)))


def most_significant(commit: Commit) -> FileChange | None:
    """The file with the most changed lines; the earliest file wins ties."""
    best: FileChange | None = None
    for change in commit.files:
        if best is None or change.changed_lines > best.changed_lines:
            best = change
    return best


def operation_for(commit: Commit, change: FileChange, operations: Sequence[Operation]) -> Operation:
    """Find the sequenced operation for a file of a commit."""
    for op in operations:
        if op.commit.hash == commit.hash and op.file == change:
            return op
    return Operation(commit, change, classify(change), -1)


def summarize(operations: Iterable[Operation]) -> PlaybackStats:
    created = 0
    modified = 0
    total = 0
    for op in operations:
        total += 1
        match op.kind:
            case OperationKind.CREATE:
                created += 1
            case OperationKind.MODIFY:
                modified += 1
    return PlaybackStats(created=created, modified=modified, total_operations=total)
