"""Tests for status listing and unified-diff parsing.

Covers branch records, porcelain records, hunk classification by count,
no-newline markers, quoted paths, and the fatal malformed-input cases.
"""

from __future__ import annotations

import unittest

from lazystage.diff.model import FileKind, LineKind
from lazystage.diff.parser import (
    ParseError,
    build_repo_status,
    parse_branch_record,
    parse_diff,
    parse_head_commit,
    parse_hunk_header,
    parse_status_records,
    unquote_path,
)

MODIFIED_DIFF = (
    "diff --git a/hello.py b/hello.py\n"
    "index 1111111..2222222 100644\n"
    "--- a/hello.py\n"
    "+++ b/hello.py\n"
    "@@ -1,3 +1,4 @@ def main():\n"
    " import os\n"
    '-print("a")\n'
    '+print("b")\n'
    '+print("c")\n'
    " x = 1\n"
)

STAGED_DIFF = (
    "diff --git a/old_name.py b/new_name.py\n"
    "similarity index 100%\n"
    "rename from old_name.py\n"
    "rename to new_name.py\n"
    "diff --git a/added.py b/added.py\n"
    "new file mode 100644\n"
    "index 0000000..3333333\n"
    "--- /dev/null\n"
    "+++ b/added.py\n"
    "@@ -0,0 +1,2 @@\n"
    "+one\n"
    "+two\n"
)

STATUS_OUTPUT = (
    "## main...origin/main [ahead 1]\0"
    " M hello.py\0"
    "?? new.txt\0"
    "R  new_name.py\0old_name.py\0"
    "A  added.py\0"
    "UU conflict.txt\0"
)


class BranchRecordTests(unittest.TestCase):
    def test_upstream_with_ahead_and_behind(self) -> None:
        branch = parse_branch_record("## main...origin/main [ahead 2, behind 3]")
        self.assertEqual(branch.name, "main")
        self.assertEqual(branch.upstream, "origin/main")
        self.assertEqual((branch.ahead, branch.behind), (2, 3))

    def test_plain_branch_has_no_upstream(self) -> None:
        branch = parse_branch_record("## feature/x")
        self.assertEqual(branch.name, "feature/x")
        self.assertIsNone(branch.upstream)

    def test_no_commits_yet(self) -> None:
        branch = parse_branch_record("## No commits yet on main")
        self.assertEqual(branch.name, "main")
        self.assertTrue(branch.no_commits)
        self.assertEqual(branch.label(), "main (no commits yet)")

    def test_detached_head(self) -> None:
        branch = parse_branch_record("## HEAD (no branch)")
        self.assertTrue(branch.detached)


class StatusRecordTests(unittest.TestCase):
    def test_rename_record_consumes_source_path_token(self) -> None:
        branch, records = parse_status_records(STATUS_OUTPUT)
        self.assertEqual(branch.name, "main")
        self.assertEqual([r.code for r in records], [" M", "??", "R ", "A ", "UU"])
        rename = records[2]
        self.assertEqual(rename.path, "new_name.py")
        self.assertEqual(rename.old_path, "old_name.py")

    def test_malformed_record_raises(self) -> None:
        with self.assertRaises(ParseError):
            parse_status_records("## main\0garbage\0")


class HunkHeaderTests(unittest.TestCase):
    def test_missing_counts_default_to_one(self) -> None:
        self.assertEqual(parse_hunk_header("@@ -5 +7 @@"), (5, 1, 7, 1, ""))

    def test_caption_is_kept(self) -> None:
        self.assertEqual(parse_hunk_header("@@ -1,2 +1,3 @@ class A:")[4], " class A:")

    def test_non_integer_range_raises(self) -> None:
        with self.assertRaises(ParseError):
            parse_hunk_header("@@ -x,2 +1,3 @@")


class ParseDiffTests(unittest.TestCase):
    def test_lines_are_classified_in_source_order(self) -> None:
        (entry,) = parse_diff(MODIFIED_DIFF)
        self.assertEqual(entry.path, "hello.py")
        (hunk,) = entry.hunks
        self.assertEqual((hunk.old_start, hunk.old_count, hunk.new_start, hunk.new_count), (1, 3, 1, 4))
        self.assertEqual(
            [line.kind for line in hunk.lines],
            [LineKind.CONTEXT, LineKind.DELETION, LineKind.ADDITION, LineKind.ADDITION, LineKind.CONTEXT],
        )
        self.assertEqual([line.origin for line in hunk.lines], [0, 1, 2, 3, 4])
        self.assertEqual(hunk.lines[1].text, 'print("a")')
        self.assertTrue(hunk.is_consistent())

    def test_rename_and_new_file_headers(self) -> None:
        rename, added = parse_diff(STAGED_DIFF)
        self.assertEqual(rename.kind, FileKind.RENAMED)
        self.assertEqual(rename.old_path, "old_name.py")
        self.assertEqual(rename.path, "new_name.py")
        self.assertEqual(rename.hunks, ())
        self.assertEqual(added.kind, FileKind.ADDED)
        self.assertEqual(added.new_mode, "100644")
        self.assertEqual(added.hunks[0].old_count, 0)

    def test_no_newline_markers_are_separate_lines(self) -> None:
        text = (
            "diff --git a/f b/f\n"
            "--- a/f\n"
            "+++ b/f\n"
            "@@ -1,2 +1,2 @@\n"
            " a\n"
            "-b\n"
            "\\ No newline at end of file\n"
            "+c\n"
            "\\ No newline at end of file\n"
        )
        (entry,) = parse_diff(text)
        kinds = [line.kind for line in entry.hunks[0].lines]
        self.assertEqual(
            kinds,
            [LineKind.CONTEXT, LineKind.DELETION, LineKind.NO_NEWLINE, LineKind.ADDITION, LineKind.NO_NEWLINE],
        )
        self.assertEqual(entry.hunks[0].lines[2].text, " No newline at end of file")

    def test_diff_markup_inside_content_is_not_a_header(self) -> None:
        text = (
            "diff --git a/notes.md b/notes.md\n"
            "--- a/notes.md\n"
            "+++ b/notes.md\n"
            "@@ -1 +1,3 @@\n"
            " intro\n"
            "+diff --git a/x b/x\n"
            "+@@ -1 +1 @@\n"
        )
        (entry,) = parse_diff(text)
        self.assertEqual(len(entry.hunks), 1)
        self.assertEqual(entry.hunks[0].lines[1].text, "diff --git a/x b/x")

    def test_carriage_returns_are_preserved(self) -> None:
        text = "diff --git a/w b/w\n--- a/w\n+++ b/w\n@@ -1 +1 @@\n-old\r\n+new\r\n"
        (entry,) = parse_diff(text)
        self.assertEqual(entry.hunks[0].lines[0].text, "old\r")

    def test_binary_file_has_no_hunks(self) -> None:
        text = (
            "diff --git a/img.png b/img.png\n"
            "index 1..2 100644\n"
            "Binary files a/img.png and b/img.png differ\n"
        )
        (entry,) = parse_diff(text)
        self.assertTrue(entry.binary)
        self.assertTrue(entry.is_opaque)

    def test_mode_only_change(self) -> None:
        text = "diff --git a/run.sh b/run.sh\nold mode 100644\nnew mode 100755\n"
        (entry,) = parse_diff(text)
        self.assertEqual((entry.old_mode, entry.new_mode), ("100644", "100755"))
        self.assertEqual(entry.hunks, ())

    def test_quoted_paths_are_unquoted(self) -> None:
        text = (
            'diff --git "a/sp\\303\\244ce.txt" "b/sp\\303\\244ce.txt"\n'
            '--- "a/sp\\303\\244ce.txt"\n'
            '+++ "b/sp\\303\\244ce.txt"\n'
            "@@ -1 +1 @@\n"
            "-a\n"
            "+b\n"
        )
        (entry,) = parse_diff(text)
        self.assertEqual(entry.path, "späce.txt")

    def test_paths_with_spaces(self) -> None:
        text = "diff --git a/my file.txt b/my file.txt\n--- a/my file.txt\n+++ b/my file.txt\n@@ -1 +1 @@\n-a\n+b\n"
        (entry,) = parse_diff(text)
        self.assertEqual(entry.path, "my file.txt")

    def test_combined_diff_becomes_conflicted_entry(self) -> None:
        text = (
            "diff --cc conflict.txt\n"
            "index 1111111,2222222..0000000\n"
            "--- a/conflict.txt\n"
            "+++ b/conflict.txt\n"
            "@@@ -1,1 -1,1 +1,5 @@@\n"
            "++<<<<<<< HEAD\n"
        )
        (entry,) = parse_diff(text)
        self.assertEqual(entry.kind, FileKind.CONFLICTED)
        self.assertEqual(entry.hunks, ())

    def test_header_without_paths_raises(self) -> None:
        with self.assertRaises(ParseError):
            parse_diff("diff --git foo bar\n")

    def test_truncated_hunk_raises(self) -> None:
        with self.assertRaises(ParseError):
            parse_diff("diff --git a/f b/f\n--- a/f\n+++ b/f\n@@ -1,3 +1,3 @@\n a\n")

    def test_unknown_marker_raises(self) -> None:
        with self.assertRaises(ParseError):
            parse_diff("diff --git a/f b/f\n--- a/f\n+++ b/f\n@@ -1 +1 @@\n?a\n")


class BuildRepoStatusTests(unittest.TestCase):
    def test_entries_follow_status_order_with_untracked_first(self) -> None:
        status = build_repo_status(STATUS_OUTPUT, MODIFIED_DIFF, STAGED_DIFF, "abc1234\0Initial commit\n")

        self.assertEqual(status.branch.upstream, "origin/main")
        self.assertEqual(status.head.oid, "abc1234")
        self.assertEqual(status.head.title, "Initial commit")
        self.assertEqual(
            [(e.path, e.kind) for e in status.unstaged],
            [
                ("new.txt", FileKind.UNTRACKED),
                ("hello.py", FileKind.MODIFIED),
                ("conflict.txt", FileKind.CONFLICTED),
            ],
        )
        self.assertEqual(
            [(e.path, e.kind) for e in status.staged],
            [("new_name.py", FileKind.RENAMED), ("added.py", FileKind.ADDED)],
        )
        self.assertEqual(status.staged[0].old_path, "old_name.py")
        self.assertEqual(len(status.unstaged[1].hunks), 1)
        self.assertEqual(status.unstaged[0].hunks, ())
        self.assertFalse(status.clean)

    def test_empty_repository_is_clean_without_head(self) -> None:
        status = build_repo_status("## No commits yet on main\0", "", "", "")
        self.assertTrue(status.clean)
        self.assertIsNone(status.head)
        self.assertTrue(status.branch.no_commits)


class SmallHelpersTests(unittest.TestCase):
    def test_unquote_plain_path_is_unchanged(self) -> None:
        self.assertEqual(unquote_path("plain.txt"), "plain.txt")

    def test_unquote_simple_escapes(self) -> None:
        self.assertEqual(unquote_path('"tab\\there"'), "tab\there")

    def test_head_commit_empty_output(self) -> None:
        self.assertIsNone(parse_head_commit(""))


if __name__ == "__main__":
    unittest.main()
