"""Rich renderables for playback views."""

from __future__ import annotations

import time as _time
from datetime import datetime

from rich.console import RenderableType
from rich.text import Text

from gitreplay.models import DiffLine, Hunk, LineKind, Operation, OperationKind, PlaybackStats
from gitreplay.orchestrator import DISPLAY_CONTENT, DISPLAY_DIFF, Mode, Phase, PlaybackView
from gitreplay.tree import FileTree

PROGRESS_WIDTH = 40
LINE_NUMBER_WIDTH = 5
KIND_LABELS = {OperationKind.CREATE: "CREATE", OperationKind.MODIFY: "MODIFY"}
LINE_STYLES = {
    LineKind.ADDITION: "green",
    LineKind.DELETION: "red",
    LineKind.CONTEXT: "",
}
LINE_MARKERS = {LineKind.ADDITION: "+", LineKind.DELETION: "-", LineKind.CONTEXT: " "}


def relative_time(ts: float, now: float | None = None) -> str:
    """Format a timestamp as relative time."""
    if ts <= 0:
        return "unknown"
    delta = int((now if now is not None else _time.time()) - ts)
    if delta < 0:
        return "in the future"
    if delta < 60:
        return f"{delta}s ago"
    if delta < 3600:
        return f"{delta // 60}m ago"
    if delta < 86400:
        return f"{delta // 3600}h ago"
    if delta < 604800:
        return f"{delta // 86400}d ago"
    if delta < 2629800:
        return f"{delta // 604800}w ago"
    return f"{delta // 2629800}mo ago"


def format_time(ts: float | None) -> str:
    if ts is None:
        return "--:--"
    return datetime.fromtimestamp(ts).strftime("%b %d %H:%M")


def format_operation(op: Operation) -> Text:
    text = Text()
    style = "bold green" if op.kind is OperationKind.CREATE else "bold yellow"
    text.append(f"{KIND_LABELS[op.kind]:<7}", style=style)
    text.append(op.path)
    if op.file.from_path:
        text.append(f" (from {op.file.from_path})", style="dim")
    text.append(f"  +{op.file.insertions}", style="green")
    text.append(f" -{op.file.deletions}", style="red")
    return text


def format_header(view: PlaybackView) -> Text:
    commit = view.commit
    if commit is None:
        return Text("No commits loaded", style="dim")
    text = Text()
    text.append(f"COMMIT {view.commit_number:02d} OF {view.commit_count:02d}  ", style="bold")
    text.append(commit.short_hash, style="yellow")
    text.append(f"  {commit.subject}\n")
    text.append(commit.author, style="cyan")
    text.append(f"  {format_time(commit.timestamp)} ({relative_time(commit.timestamp)})", style="dim")
    return text


def format_status(view: PlaybackView) -> Text:
    state = "playing" if view.playing else "paused"
    text = Text(f"{view.mode.value} | {state} | {view.speed:g}x | end: {view.end_policy.value}")
    if view.mode is Mode.STEP and view.operation_count:
        text.append(f" | op {view.operation_index + 1}/{view.operation_count}")
    if view.error:
        text.append(f" | {view.error}", style="red")
    return text


def render_progress(fraction: float, width: int = PROGRESS_WIDTH) -> Text:
    fraction = min(1.0, max(0.0, fraction))
    filled = round(fraction * width)
    text = Text("[")
    text.append("#" * filled, style="blue")
    text.append("-" * (width - filled), style="dim")
    text.append(f"] {round(fraction * 100):3d}%")
    return text


def render_content(lines: list[str]) -> Text:
    text = Text()
    for number, line in enumerate(lines, start=1):
        text.append(f"{number:>{LINE_NUMBER_WIDTH}} ", style="dim")
        text.append(f"{line}\n")
    return text


def _number(value: int | None) -> str:
    return f"{value:>{LINE_NUMBER_WIDTH}}" if value is not None else " " * LINE_NUMBER_WIDTH


def render_diff_line(line: DiffLine) -> Text:
    text = Text()
    text.append(f"{_number(line.old_line_number)} {_number(line.new_line_number)} ", style="dim")
    text.append(f"{LINE_MARKERS[line.kind]}{line.text}", style=LINE_STYLES[line.kind])
    return text


def render_diff(hunks: list[Hunk]) -> Text:
    text = Text()
    for hunk in hunks:
        text.append(f"{hunk.header}\n", style="cyan")
        for line in hunk.lines:
            text.append_text(render_diff_line(line))
            text.append("\n")
    return text


def render_stats(stats: PlaybackStats) -> Text:
    text = Text("Playback complete: ", style="bold")
    text.append(f"{stats.created} created", style="green")
    text.append(", ")
    text.append(f"{stats.modified} modified", style="yellow")
    if stats.failed:
        text.append(f", {stats.failed} failed", style="red")
    text.append(f", {stats.total_operations} operations")
    return text


def render_overview(view: PlaybackView) -> Text:
    op = view.operation
    commit = view.commit
    text = Text()
    if commit is None:
        return text
    if len(commit.message.splitlines()) > 1:
        body = " ".join(line.strip() for line in commit.message.splitlines()[1:] if line.strip())
        text.append(f"{body}\n\n", style="italic")
    for index, change in enumerate(commit.files, start=1):
        current = op is not None and change == op.file
        marker = ">" if current else " "
        text.append(f"{marker} {index:03d} ", style="bold" if current else "dim")
        text.append(f"{change.path}  +{change.insertions} -{change.deletions}\n")
    return text


def render_body(view: PlaybackView) -> RenderableType:
    if view.phase is Phase.COMPLETE:
        return render_stats(view.stats)
    if view.phase is Phase.OVERVIEW:
        return render_overview(view)
    if view.display == DISPLAY_CONTENT:
        return render_content(view.visible_content)
    if view.display == DISPLAY_DIFF:
        return render_diff(view.visible_hunks)
    return Text("")




def render_tree(paths: list[str], view: PlaybackView) -> RenderableType:
    """File tree at the current commit with its changed files marked."""
    commit = view.commit
    if commit is None:
        return Text("")
    tree = FileTree.from_paths(paths)
    highlight = view.operation.path if view.operation else None
    changed = {change.path for change in commit.files}
    return tree.to_rich(label=commit.short_hash, highlight=highlight, changed=changed)
