from __future__ import annotations

import shutil
from pathlib import Path

import pytest

from gitreplay import git_ops
from gitreplay.diff import parse_diff
from gitreplay.models import ChangeKind
from gitreplay.repository import DiffUnavailable, GitRepository, NotFoundAtRevision
from gitreplay.session import Session, SessionError

R, F, H = git_ops.RECORD_SEP, git_ops.FIELD_SEP, git_ops.HEADER_END


def test_parse_log_reads_raw_and_numstat() -> None:
    output = (
        f"{R}abc123{F}Ann{F}ann@example.com{F}2024-01-01T10:00:00+00:00{F}Add files\n\nMore detail\n{H}\n"
        ":000000 100644 0000000 1234567 A\tnew.txt\n"
        ":100644 100644 1234567 89abcde R090\told.txt\trenamed.txt\n"
        ":100644 100644 1234567 89abcde M\tlogo.png\n"
        "\n"
        "3\t0\tnew.txt\n"
        "1\t1\t{old.txt => renamed.txt}\n"
        "-\t-\tlogo.png\n"
        f"{R}def456{F}Bob{F}bob@example.com{F}2024-01-02T10:00:00+00:00{F}Empty{H}\n"
    )
    first, second = git_ops.parse_log(output)

    assert first.hash == "abc123"
    assert first.subject == "Add files"
    assert first.message == "Add files\n\nMore detail"
    assert [(f.path, f.insertions, f.deletions, f.change_kind) for f in first.files] == [
        ("new.txt", 3, 0, ChangeKind.ADDED),
        ("renamed.txt", 1, 1, ChangeKind.RENAMED),
        ("logo.png", 0, 0, ChangeKind.MODIFIED),
    ]
    assert first.files[1].from_path == "old.txt"
    assert second.files == ()
    assert second.timestamp - first.timestamp == 86400


def test_parse_log_skips_malformed_records() -> None:
    assert git_ops.parse_log(f"{R}only-a-hash{H}\n") == []
    assert git_ops.parse_log("") == []


def test_list_commits_from_repository(git_repo: Path) -> None:
    commits = git_ops.list_commits(git_repo, "main")
    assert [c.subject for c in commits] == ["Add readme", "Add app", "Update app"]
    assert [(f.path, f.insertions, f.deletions) for f in commits[1].files] == [
        ("README.md", 1, 1),
        ("src/app.py", 3, 0),
    ]
    assert commits[0].files[0].change_kind is ChangeKind.ADDED


def test_repository_queries(git_repo: Path) -> None:
    repo = GitRepository(git_repo)
    head = repo.list_commits("main")[-1].hash

    assert repo.get_file_content(head, "src/app.py").endswith("print(sys.argv[1:])\n")
    with pytest.raises(NotFoundAtRevision):
        repo.get_file_content(head, "missing.txt")

    hunks = parse_diff(repo.get_diff(head, "src/app.py"))
    assert len(hunks) == 1
    assert [line.text for line in hunks[0].lines if line.new_line_number is None] == ["print(sys.argv)"]

    assert repo.list_tree(head) == ["README.md", "src/app.py"]
    assert repo.list_branches() == ["main"]
    assert repo.current_branch() == "main"
    assert repo.has_revision("main")
    assert not repo.has_revision("nope")


def test_root_commit_diff_uses_empty_tree(git_repo: Path) -> None:
    repo = GitRepository(git_repo)
    root = repo.list_commits("main")[0].hash
    hunks = parse_diff(repo.get_diff(root, "README.md"))
    assert [line.text for line in hunks[0].lines] == ["hello", "world"]


def test_unknown_revision_diff_is_unavailable(git_repo: Path) -> None:
    with pytest.raises(DiffUnavailable):
        GitRepository(git_repo).get_diff("0" * 40, "README.md")


def test_session_open(git_repo: Path) -> None:
    session = Session.open(git_repo / "src")
    assert session.branch == "main"
    assert session.repo_root == git_repo
    assert len(session.commits) == 3
    assert [op.kind.value for op in session.operations] == ["create", "modify", "create", "modify"]

    with pytest.raises(SessionError, match="Unknown branch"):
        Session.open(git_repo, "nope")


@pytest.mark.skipif(shutil.which("git") is None, reason="git missing")
def test_session_open_outside_repository(tmp_path: Path) -> None:
    with pytest.raises(SessionError, match="Not inside a git repository"):
        Session.open(tmp_path)
