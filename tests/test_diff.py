from __future__ import annotations

from gitreplay.diff import count_lines, flatten, parse_diff, split_lines
from gitreplay.models import DiffLine, LineKind

GIT_DIFF = """\
diff --git a/src/app.py b/src/app.py
index 1234567..89abcde 100644
--- a/src/app.py
+++ b/src/app.py
@@ -1,3 +1,3 @@
 import sys
 import os
-print(sys.argv)
+print(sys.argv[1:])
@@ -10,2 +10,3 @@ def main():
     run()
+    cleanup()
     return 0
\\ No newline at end of file
"""


def test_basic_hunk_line_numbers() -> None:
    hunks = parse_diff("@@ -1,3 +1,4 @@\n+foo\n bar\n-baz\n")
    assert len(hunks) == 1
    assert list(hunks[0].lines) == [
        DiffLine(LineKind.ADDITION, "foo", None, 1),
        DiffLine(LineKind.CONTEXT, "bar", 1, 2),
        DiffLine(LineKind.DELETION, "baz", 2, None),
    ]


def test_empty_and_none_input() -> None:
    assert parse_diff("") == []
    assert parse_diff(None) == []


def test_git_diff_skips_file_headers() -> None:
    hunks = parse_diff(GIT_DIFF)
    assert [h.old_start for h in hunks] == [1, 10]
    first, second = hunks
    assert [line.kind for line in first.lines] == [
        LineKind.CONTEXT,
        LineKind.CONTEXT,
        LineKind.DELETION,
        LineKind.ADDITION,
    ]
    assert first.lines[2] == DiffLine(LineKind.DELETION, "print(sys.argv)", 3, None)
    assert first.lines[3] == DiffLine(LineKind.ADDITION, "print(sys.argv[1:])", None, 3)
    assert second.header.endswith("def main():")
    assert second.lines[1] == DiffLine(LineKind.ADDITION, "    cleanup()", None, 11)
    assert second.lines[2] == DiffLine(LineKind.CONTEXT, "    return 0", 11, 12)
    assert count_lines(hunks) == 7
    assert len(flatten(hunks)) == 7


def test_lines_before_first_hunk_are_ignored() -> None:
    hunks = parse_diff("+stray\n-stray\n@@ -5 +5 @@\n-old\n+new\n")
    assert len(hunks) == 1
    assert hunks[0].old_line_count == 1
    assert hunks[0].new_line_count == 1
    assert [line.text for line in hunks[0].lines] == ["old", "new"]


def test_triple_markers_inside_hunk_are_skipped() -> None:
    hunks = parse_diff("@@ -1,1 +1,1 @@\n--- a\n+++ b\n-old\n+new\n")
    assert hunks[0].lines == (
        DiffLine(LineKind.DELETION, "old", 1, None),
        DiffLine(LineKind.ADDITION, "new", None, 1),
    )


def test_lines_past_header_counts_are_kept() -> None:
    hunks = parse_diff("@@ -1 +1 @@\n-a\n+b\n+c\n d\n")
    assert hunks[0].lines == (
        DiffLine(LineKind.DELETION, "a", 1, None),
        DiffLine(LineKind.ADDITION, "b", None, 1),
        DiffLine(LineKind.ADDITION, "c", None, 2),
        DiffLine(LineKind.CONTEXT, "d", 2, 3),
    )
    assert count_lines(hunks) == 4


def test_multi_file_diff_skips_preamble() -> None:
    text = GIT_DIFF + (
        "diff --git a/README.md b/README.md\n"
        "index 1111111..2222222 100644\n"
        "--- a/README.md\n"
        "+++ b/README.md\n"
        "@@ -1 +1 @@\n"
        "-hello\n"
        "+hi\n"
    )
    hunks = parse_diff(text)
    assert len(hunks) == 3
    assert count_lines(hunks[:2]) == 7
    assert hunks[2].lines == (
        DiffLine(LineKind.DELETION, "hello", 1, None),
        DiffLine(LineKind.ADDITION, "hi", None, 1),
    )


def test_form_feed_stays_inside_line() -> None:
    hunks = parse_diff("@@ -1,2 +1,2 @@\n-a\n+x\x0cy\n b\n")
    assert hunks[0].lines == (
        DiffLine(LineKind.DELETION, "a", 1, None),
        DiffLine(LineKind.ADDITION, "x\x0cy", None, 1),
        DiffLine(LineKind.CONTEXT, "b", 2, 2),
    )


def test_split_lines() -> None:
    assert split_lines("a\x0cb\x1cc\n\nd\n") == ["a\x0cb\x1cc", "", "d"]
    assert split_lines("a\r\nb") == ["a", "b"]
    assert split_lines("") == []
    assert split_lines(None) == []


def test_malformed_header_keeps_previous_counters() -> None:
    text = "@@ -4,1 +7,2 @@\n ctx\n+new\n@@ garbage @@\n+more\n x\n"
    hunks = parse_diff(text)
    assert len(hunks) == 2
    malformed = hunks[1]
    assert malformed.header == "@@ garbage @@"
    assert malformed.lines == (
        DiffLine(LineKind.ADDITION, "more", None, 9),
        DiffLine(LineKind.CONTEXT, "x", 5, 10),
    )


def test_no_newline_marker_and_empty_lines_skipped() -> None:
    hunks = parse_diff("@@ -1,2 +1,2 @@\n-a\n\n\\ No newline at end of file\n+b\n")
    assert [line.kind for line in hunks[0].lines] == [LineKind.DELETION, LineKind.ADDITION]
