"""Per-session cache of file content and diffs, keyed by commit and path."""

from __future__ import annotations

import threading

CacheKey = tuple[str, str] | tuple[str, str, str]

PARENT_SUFFIX = "~1"


def content_key(commit_hash: str, path: str) -> CacheKey:
    return (commit_hash, path)


def diff_key(commit_hash: str, path: str) -> CacheKey:
    return (commit_hash, path, PARENT_SUFFIX)


class ContentCache:
    """Append-only store of fetched file contents and diffs for one session.

    Entries never change once written, so any step may read them. Writes come
    from fetch worker threads, hence the lock.
    """

    def __init__(self) -> None:
        self._entries: dict[CacheKey, str] = {}
        self._lock = threading.Lock()

    def get(self, key: CacheKey) -> str | None:
        with self._lock:
            return self._entries.get(key)

    def put(self, key: CacheKey, value: str) -> str:
        """Store ``value`` unless the key exists; returns the stored value."""
        with self._lock:
            return self._entries.setdefault(key, value)

    def __contains__(self, key: object) -> bool:
        with self._lock:
            return key in self._entries

    def __len__(self) -> int:
        with self._lock:
            return len(self._entries)

    def clear(self) -> None:
        with self._lock:
            self._entries.clear()
