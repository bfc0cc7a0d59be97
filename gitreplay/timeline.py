"""Ascending-time index over a commit set."""

from __future__ import annotations

from collections.abc import Iterable

from gitreplay.models import Commit


class EmptyTimeline(LookupError):
    """No commits are loaded."""

    def __init__(self) -> None:
        super().__init__("timeline has no commits")


def normalize(commits: Iterable[Commit]) -> list[Commit]:
    """Drop duplicate hashes (first wins) and stable-sort by commit time."""
    seen: set[str] = set()
    unique: list[Commit] = []
    for commit in commits:
        if commit.hash in seen:
            continue
        seen.add(commit.hash)
        unique.append(commit)
    return sorted(unique, key=lambda c: c.timestamp)


class CommitTimelineIndex:
    """Answers "which commit is current at time T" for one branch."""

    def __init__(self, commits: Iterable[Commit] = ()) -> None:
        self._entries: list[tuple[float, Commit]] = []
        self.build(commits)

    def build(self, commits: Iterable[Commit]) -> None:
        self._entries = [(c.timestamp, c) for c in normalize(commits)]

    @property
    def commits(self) -> list[Commit]:
        return [commit for _, commit in self._entries]

    def __len__(self) -> int:
        return len(self._entries)

    def __bool__(self) -> bool:
        return bool(self._entries)

    def bounds(self) -> tuple[float, float]:
        if not self._entries:
            raise EmptyTimeline()
        return self._entries[0][0], self._entries[-1][0]

    def nearest(self, time: float) -> Commit:
        """Return the commit closest to ``time``; the earliest wins ties."""
        if not self._entries:
            raise EmptyTimeline()
        best_ts, best = self._entries[0]
        best_distance = abs(best_ts - time)
        for ts, commit in self._entries[1:]:
            distance = abs(ts - time)
            if distance < best_distance:
                best_distance = distance
                best = commit
        return best

    def index_of(self, commit: Commit) -> int:
        for idx, (_, candidate) in enumerate(self._entries):
            if candidate.hash == commit.hash:
                return idx
        raise ValueError(f"commit {commit.short_hash} is not in the timeline")

    def progress(self, time: float) -> float:
        """Fraction of the span covered at ``time``, clamped to [0, 1]."""
        lo, hi = self.bounds()
        if hi <= lo:
            return 0.0
        return min(1.0, max(0.0, (time - lo) / (hi - lo)))

    def time_at(self, fraction: float) -> float:
        lo, hi = self.bounds()
        fraction = min(1.0, max(0.0, fraction))
        return lo + (hi - lo) * fraction
