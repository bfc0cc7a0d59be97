from __future__ import annotations

from datetime import datetime, timezone
from typing import TYPE_CHECKING

from rich.console import Console
from rich.text import Text
from rich.tree import Tree

from gitreplay.config import PlaybackConfig
from gitreplay.diff import parse_diff
from gitreplay.models import Commit, DiffLine, FileChange, LineKind, PlaybackStats
from gitreplay.orchestrator import Orchestrator
from gitreplay.render import (
    relative_time,
    render_diff,
    render_progress,
    render_stats,
    render_tree,
)
from gitreplay.scheduler import Scheduler
from gitreplay.session import Session
from gitreplay.tree import FileTree

if TYPE_CHECKING:
    from conftest import FakeRepository


def _plain(renderable: object) -> str:
    console = Console(width=80, no_color=True)
    with console.capture() as capture:
        console.print(renderable)
    return capture.get()


def test_relative_time() -> None:
    now = 1_000_000.0
    assert relative_time(now - 30, now) == "30s ago"
    assert relative_time(now - 7200, now) == "2h ago"
    assert relative_time(now - 3 * 86400, now) == "3d ago"
    assert relative_time(now + 10, now) == "in the future"
    assert relative_time(0, now) == "unknown"


def test_render_progress() -> None:
    assert render_progress(0.5, width=10).plain == "[#####-----]  50%"
    assert render_progress(2.0, width=4).plain == "[####] 100%"


def test_render_diff_shows_line_numbers() -> None:
    text = render_diff(parse_diff("@@ -1,3 +1,4 @@\n+foo\n bar\n-baz\n")).plain
    lines = text.splitlines()
    assert lines[0] == "@@ -1,3 +1,4 @@"
    assert lines[1] == "          1 +foo"
    assert lines[2] == "    1     2  bar"
    assert lines[3] == "    2       -baz"


def test_render_stats() -> None:
    assert render_stats(PlaybackStats(1, 1, 0, 2)).plain == "Playback complete: 1 created, 1 modified, 2 operations"
    assert "1 failed" in render_stats(PlaybackStats(0, 1, 1, 2)).plain


def test_file_tree() -> None:
    tree = FileTree.from_paths(["src/app.py", "README.md", "src/lib/util.py"])
    assert "src/lib" in tree
    assert tree.nodes["src"].is_dir
    assert tree.files() == ["README.md", "src/app.py", "src/lib/util.py"]
    assert set(tree.nodes["src"].children) == {"app.py", "lib"}

    output = _plain(tree.to_rich(label="HEAD", highlight="src/app.py"))
    assert output.index("src/") < output.index("README.md")
    assert output.index("lib/") < output.index("app.py")


def test_diff_line_model_defaults() -> None:
    line = DiffLine(LineKind.CONTEXT, "x")
    assert line.old_line_number is None
    assert FileChange("a.txt", 2, 3).changed_lines == 5


def _label_styles(tree: Tree) -> dict[str, str]:
    styles: dict[str, str] = {}
    for child in tree.children:
        label = child.label
        assert isinstance(label, Text)
        styles[label.plain] = str(label.style)
        styles.update(_label_styles(child))
    return styles


def test_render_tree_marks_current_and_changed_files(fake_repo: FakeRepository) -> None:
    fake_repo.commits = [
        Commit(
            "c0ffee123",
            "Ann",
            "ann@example.com",
            datetime(2024, 1, 1, tzinfo=timezone.utc),
            "Init",
            (FileChange("src/a.txt", 10, 0), FileChange("README.md", 1, 0)),
        )
    ]
    orchestrator = Orchestrator(Session(fake_repo, "main"), PlaybackConfig(), Scheduler())
    orchestrator.step(0)
    orchestrator.scheduler.run_until_idle()
    view = orchestrator.view
    assert view.operation is not None and view.commit is not None

    tree = render_tree(["README.md", "docs/guide.md", "src/a.txt"], view)
    assert isinstance(tree, Tree)
    assert tree.label == view.commit.short_hash

    styles = _label_styles(tree)
    current = view.operation.path.rsplit("/", 1)[-1]
    (other,) = {"a.txt", "README.md"} - {current}
    assert styles[current] == "reverse"
    assert styles[other] == "yellow"
    assert styles["guide.md"] == ""
    assert styles["src/"] == "bold"
