"""Unified diff parsing into hunks with per-side line numbers."""

from __future__ import annotations

import logging
import re

from gitreplay.models import DiffLine, Hunk, LineKind

logger = logging.getLogger(__name__)

HUNK_HEADER = re.compile(r"^@@ -(\d+)(?:,(\d+))? \+(\d+)(?:,(\d+))? @@")
FILE_HEADER = "diff "


def split_lines(text: str | None) -> list[str]:
    """Split on ``\\n`` only; a trailing newline adds no empty line.

    Form feeds and other separators ``str.splitlines`` honours stay inside the
    line. A trailing ``\\r`` is dropped.
    """
    if not text:
        return []
    lines = text.split("\n")
    if lines[-1] == "":
        lines.pop()
    return [line[:-1] if line.endswith("\r") else line for line in lines]


def _open_hunk(header: str, old_no: int, new_no: int) -> tuple[Hunk, int, int]:
    match = HUNK_HEADER.match(header)
    if match is None:
        logger.debug("malformed hunk header %r, keeping counters %d/%d", header, old_no, new_no)
        return Hunk(old_no, 0, new_no, 0, header=header), old_no, new_no
    old_start = int(match.group(1))
    new_start = int(match.group(3))
    old_count = int(match.group(2)) if match.group(2) is not None else 1
    new_count = int(match.group(4)) if match.group(4) is not None else 1
    return Hunk(old_start, old_count, new_start, new_count, header=header), old_start, new_start


def parse_diff(text: str | None) -> list[Hunk]:
    """Parse unified diff text into an ordered list of hunks.

    Lines before the first ``@@`` header are ignored, and so is everything
    between a ``diff ...`` file header and the next hunk. ``---``/``+++`` lines
    are never content. A header without line numbers keeps the previous
    counters.
    """
    hunks: list[Hunk] = []
    current: Hunk | None = None
    lines: list[DiffLine] = []
    old_no = 0
    new_no = 0

    def close() -> None:
        if current is not None:
            hunks.append(
                Hunk(
                    old_start=current.old_start,
                    old_line_count=current.old_line_count,
                    new_start=current.new_start,
                    new_line_count=current.new_line_count,
                    lines=tuple(lines),
                    header=current.header,
                )
            )

    for line in split_lines(text):
        if line.startswith("@@"):
            close()
            current, old_no, new_no = _open_hunk(line, old_no, new_no)
            lines = []
            continue
        if line.startswith(FILE_HEADER):
            close()
            current = None
            continue
        if current is None:
            continue

        if line.startswith(("+++", "---", "\\")) or not line:
            continue
        if line.startswith("+"):
            lines.append(DiffLine(LineKind.ADDITION, line[1:], None, new_no))
            new_no += 1
        elif line.startswith("-"):
            lines.append(DiffLine(LineKind.DELETION, line[1:], old_no, None))
            old_no += 1
        else:
            body = line[1:] if line.startswith(" ") else line
            lines.append(DiffLine(LineKind.CONTEXT, body, old_no, new_no))
            old_no += 1
            new_no += 1

    close()
    return hunks


def flatten(hunks: list[Hunk]) -> list[DiffLine]:
    return [line for hunk in hunks for line in hunk.lines]


def count_lines(hunks: list[Hunk]) -> int:
    return sum(len(hunk.lines) for hunk in hunks)
