"""Tests for patch synthesis from partial selections."""

from __future__ import annotations

import unittest

from lazystage.diff.model import Hunk, Line, LineKind, Section
from lazystage.diff.parser import build_repo_status, parse_diff
from lazystage.diff.patch import (
    EmptySelection,
    InvalidHunkState,
    PatchAction,
    invert_hunk,
    plan_action,
    quote_path,
    subset_hunk,
    synthesize_patch,
)
from lazystage.diff.selection import Selection, SelectionRef

FILE_HEADER = (
    "diff --git a/f.txt b/f.txt\n"
    "index 1111111..2222222 100644\n"
    "--- a/f.txt\n"
    "+++ b/f.txt\n"
)
SCENARIO_DIFF = FILE_HEADER + "@@ -10,3 +10,4 @@\n a\n-b\n+c\n+d\n e\n"
TWO_HUNK_DIFF = (
    FILE_HEADER
    + "@@ -1,2 +1,3 @@\n a\n+b\n c\n"
    + "@@ -10,2 +11,3 @@\n x\n+y\n z\n"
)


def _status(unstaged_diff: str = "", staged_diff: str = "", code: str = " M"):
    return build_repo_status(f"## main\0{code} f.txt\0", unstaged_diff, staged_diff)


def _lines(status, section: Section, lines: set[int], hunk_index: int = 0) -> Selection:
    entry = status.entries(section)[0]
    ref = SelectionRef.for_hunk(section, 0, entry, hunk_index, frozenset(lines))
    return Selection().toggle(ref)


def _whole_file(status, section: Section) -> Selection:
    return Selection().toggle(SelectionRef.for_file(section, 0, status.entries(section)[0]))


class StagePatchTests(unittest.TestCase):
    def test_whole_file_reproduces_source_text(self) -> None:
        status = _status(TWO_HUNK_DIFF)
        patch = synthesize_patch(status, _whole_file(status, Section.UNSTAGED), PatchAction.STAGE)
        self.assertEqual(patch, TWO_HUNK_DIFF)

    def test_single_addition_keeps_deletion_as_context(self) -> None:
        status = _status(SCENARIO_DIFF)
        patch = synthesize_patch(status, _lines(status, Section.UNSTAGED, {2}), PatchAction.STAGE)
        self.assertEqual(patch, FILE_HEADER + "@@ -10,3 +10,4 @@\n a\n b\n+c\n e\n")

    def test_single_deletion_drops_unselected_additions(self) -> None:
        status = _status(SCENARIO_DIFF)
        patch = synthesize_patch(status, _lines(status, Section.UNSTAGED, {1}), PatchAction.STAGE)
        self.assertEqual(patch, FILE_HEADER + "@@ -10,3 +10,2 @@\n a\n-b\n e\n")

    def test_selected_context_line_alone_is_empty(self) -> None:
        status = _status(SCENARIO_DIFF)
        with self.assertRaises(EmptySelection):
            synthesize_patch(status, _lines(status, Section.UNSTAGED, {0}), PatchAction.STAGE)

    def test_later_hunk_start_follows_skipped_hunks(self) -> None:
        status = _status(TWO_HUNK_DIFF)
        selection = _lines(status, Section.UNSTAGED, set(), hunk_index=1)
        patch = synthesize_patch(status, selection, PatchAction.STAGE)
        self.assertEqual(patch, FILE_HEADER + "@@ -10,2 +10,3 @@\n x\n+y\n z\n")

    def test_partial_hunks_shift_later_new_start(self) -> None:
        status = _status(TWO_HUNK_DIFF)
        entry = status.unstaged[0]
        selection = Selection(
            frozenset(
                {
                    SelectionRef.for_hunk(Section.UNSTAGED, 0, entry, 0, frozenset({1})),
                    SelectionRef.for_hunk(Section.UNSTAGED, 0, entry, 1),
                }
            )
        )
        patch = synthesize_patch(status, selection, PatchAction.STAGE)
        self.assertEqual(patch, TWO_HUNK_DIFF)


class NoNewlineTests(unittest.TestCase):
    DIFF = FILE_HEADER + "@@ -1,2 +1,4 @@\n a\n b\n+c\n+d\n\\ No newline at end of file\n"

    def test_marker_kept_with_its_line(self) -> None:
        status = _status(self.DIFF)
        patch = synthesize_patch(status, _lines(status, Section.UNSTAGED, {3}), PatchAction.STAGE)
        self.assertEqual(
            patch,
            FILE_HEADER + "@@ -1,2 +1,3 @@\n a\n b\n+d\n\\ No newline at end of file\n",
        )

    def test_marker_dropped_with_its_line(self) -> None:
        status = _status(self.DIFF)
        patch = synthesize_patch(status, _lines(status, Section.UNSTAGED, {2}), PatchAction.STAGE)
        self.assertEqual(patch, FILE_HEADER + "@@ -1,2 +1,3 @@\n a\n b\n+c\n")


class InvertedPatchTests(unittest.TestCase):
    GENERATED_HEADER = "diff --git a/f.txt b/f.txt\n--- a/f.txt\n+++ b/f.txt\n"

    def test_unstage_partial_reinserts_deleted_line(self) -> None:
        status = _status(staged_diff=SCENARIO_DIFF, code="M ")
        plan = plan_action(status, _lines(status, Section.STAGED, {1}), PatchAction.UNSTAGE)
        self.assertTrue(plan.action.cached)
        self.assertEqual(
            plan.patch,
            self.GENERATED_HEADER + "@@ -10,4 +10,5 @@\n a\n+b\n c\n d\n e\n",
        )

    def test_discard_whole_hunk_targets_working_tree(self) -> None:
        status = _status(SCENARIO_DIFF)
        plan = plan_action(status, _lines(status, Section.UNSTAGED, set()), PatchAction.DISCARD)
        self.assertFalse(plan.action.cached)
        self.assertEqual(
            plan.patch,
            self.GENERATED_HEADER + "@@ -10,4 +10,3 @@\n a\n+b\n-c\n-d\n e\n",
        )

    def test_unstage_whole_new_file_deletes_it_from_index(self) -> None:
        diff = (
            "diff --git a/f.txt b/f.txt\n"
            "new file mode 100644\n"
            "index 0000000..3333333\n"
            "--- /dev/null\n"
            "+++ b/f.txt\n"
            "@@ -0,0 +1,2 @@\n"
            "+one\n"
            "+two\n"
        )
        status = _status(staged_diff=diff, code="A ")
        patch = synthesize_patch(status, _whole_file(status, Section.STAGED), PatchAction.UNSTAGE)
        self.assertEqual(
            patch,
            "diff --git a/f.txt b/f.txt\n"
            "deleted file mode 100644\n"
            "--- a/f.txt\n"
            "+++ /dev/null\n"
            "@@ -1,2 +0,0 @@\n"
            "-one\n"
            "-two\n",
        )


class UnterminatedLastLineTests(unittest.TestCase):
    DIFF = (
        FILE_HEADER
        + "@@ -1,2 +1,2 @@\n a\n-b\n\\ No newline at end of file\n+c\n\\ No newline at end of file\n"
    )

    def test_addition_after_unterminated_context_re_adds_the_line(self) -> None:
        status = _status(self.DIFF)
        patch = synthesize_patch(status, _lines(status, Section.UNSTAGED, {3}), PatchAction.STAGE)
        self.assertEqual(
            patch,
            FILE_HEADER
            + "@@ -1,2 +1,3 @@\n a\n-b\n\\ No newline at end of file\n+b\n+c\n"
            + "\\ No newline at end of file\n",
        )

    def test_deletion_alone_keeps_its_marker(self) -> None:
        status = _status(self.DIFF)
        patch = synthesize_patch(status, _lines(status, Section.UNSTAGED, {1}), PatchAction.STAGE)
        self.assertEqual(patch, FILE_HEADER + "@@ -1,2 +1 @@\n a\n-b\n\\ No newline at end of file\n")


class RenameAndModeHeaderTests(unittest.TestCase):
    RENAME_DIFF = (
        "diff --git a/old.txt b/new.txt\n"
        "similarity index 80%\n"
        "rename from old.txt\n"
        "rename to new.txt\n"
        "index 1111111..2222222 100644\n"
        "--- a/old.txt\n"
        "+++ b/new.txt\n"
        "@@ -1,3 +1,4 @@\n a\n-b\n+X\n c\n+d\n"
    )
    MODE_DIFF = (
        "diff --git a/f.txt b/f.txt\n"
        "old mode 100644\n"
        "new mode 100755\n"
        "index 1111111..2222222\n"
        "--- a/f.txt\n"
        "+++ b/f.txt\n"
        "@@ -1 +1,3 @@\n a\n+b\n+c\n"
    )

    def _renamed(self):
        return build_repo_status("## main\0R  new.txt\0old.txt\0", "", self.RENAME_DIFF)

    def test_partial_unstage_of_rename_keeps_the_new_name(self) -> None:
        status = self._renamed()
        patch = synthesize_patch(status, _lines(status, Section.STAGED, {2}), PatchAction.UNSTAGE)
        self.assertEqual(
            patch,
            "diff --git a/new.txt b/new.txt\n--- a/new.txt\n+++ b/new.txt\n"
            "@@ -1,4 +1,3 @@\n a\n-X\n c\n d\n",
        )

    def test_whole_unstage_of_rename_reverts_the_rename(self) -> None:
        status = self._renamed()
        patch = synthesize_patch(status, _whole_file(status, Section.STAGED), PatchAction.UNSTAGE)
        self.assertTrue(
            patch.startswith(
                "diff --git a/new.txt b/old.txt\n"
                "rename from new.txt\n"
                "rename to old.txt\n"
                "--- a/new.txt\n"
                "+++ b/old.txt\n"
            )
        )

    def test_partial_unstage_of_mode_change_leaves_mode(self) -> None:
        status = _status(staged_diff=self.MODE_DIFF, code="M ")
        patch = synthesize_patch(status, _lines(status, Section.STAGED, {1}), PatchAction.UNSTAGE)
        self.assertEqual(
            patch,
            "diff --git a/f.txt b/f.txt\n--- a/f.txt\n+++ b/f.txt\n@@ -1,3 +1,2 @@\n a\n-b\n c\n",
        )

    def test_whole_unstage_of_mode_change_swaps_modes(self) -> None:
        status = _status(staged_diff=self.MODE_DIFF, code="M ")
        patch = synthesize_patch(status, _whole_file(status, Section.STAGED), PatchAction.UNSTAGE)
        self.assertIn("old mode 100755\nnew mode 100644\n", patch)

    def test_partial_stage_of_mode_change_drops_mode_lines(self) -> None:
        status = _status(self.MODE_DIFF)
        patch = synthesize_patch(status, _lines(status, Section.UNSTAGED, {2}), PatchAction.STAGE)
        self.assertEqual(
            patch,
            "diff --git a/f.txt b/f.txt\n--- a/f.txt\n+++ b/f.txt\n@@ -1 +1,2 @@\n a\n+c\n",
        )


class InversionRoundTripTests(unittest.TestCase):
    def test_double_inversion_restores_classification(self) -> None:
        (entry,) = parse_diff(SCENARIO_DIFF)
        hunk = entry.hunks[0]
        twice = invert_hunk(invert_hunk(hunk))
        self.assertEqual([(line.kind, line.text) for line in twice.lines], [(line.kind, line.text) for line in hunk.lines])
        self.assertEqual(
            (twice.old_start, twice.old_count, twice.new_start, twice.new_count),
            (hunk.old_start, hunk.old_count, hunk.new_start, hunk.new_count),
        )

    def test_unstage_subset_inverted_back_matches_stage_subset(self) -> None:
        (entry,) = parse_diff(SCENARIO_DIFF)
        hunk = entry.hunks[0]
        changes = sorted(hunk.change_indices())
        for mask in range(1, 1 << len(changes)):
            chosen = frozenset(c for bit, c in enumerate(changes) if mask & (1 << bit))
            unstaged = subset_hunk(hunk, chosen, inverted=True)
            staged = subset_hunk(hunk, chosen)
            back = invert_hunk(unstaged)
            self.assertEqual(
                [line.kind for line in back.lines if line.kind is not LineKind.CONTEXT],
                [line.kind for line in staged.lines if line.kind is not LineKind.CONTEXT],
                chosen,
            )
            self.assertEqual(
                {line.text for line in back.lines if line.is_change},
                {hunk.lines[idx].text for idx in chosen},
                chosen,
            )


class PartialDeletionTests(unittest.TestCase):
    def test_partial_delete_keeps_the_file(self) -> None:
        diff = (
            "diff --git a/f.txt b/f.txt\n"
            "deleted file mode 100644\n"
            "index 1111111..0000000\n"
            "--- a/f.txt\n"
            "+++ /dev/null\n"
            "@@ -1,2 +0,0 @@\n"
            "-x\n"
            "-y\n"
        )
        status = _status(diff, code=" D")
        patch = synthesize_patch(status, _lines(status, Section.UNSTAGED, {0}), PatchAction.STAGE)
        self.assertNotIn("deleted file mode", patch)
        self.assertIn("+++ b/f.txt\n", patch)
        self.assertTrue(patch.endswith("@@ -1,2 +1 @@\n-x\n y\n"))


class SelectionValidityTests(unittest.TestCase):
    def test_empty_selection_raises(self) -> None:
        status = _status(SCENARIO_DIFF)
        with self.assertRaises(EmptySelection):
            plan_action(status, Selection(), PatchAction.STAGE)

    def test_stale_hunk_reference_is_dropped(self) -> None:
        old_status = _status(SCENARIO_DIFF)
        selection = _lines(old_status, Section.UNSTAGED, {2})
        new_status = _status(FILE_HEADER + "@@ -12,3 +12,4 @@\n a\n-b\n+c\n+d\n e\n")
        self.assertFalse(selection.prune(new_status))
        with self.assertRaises(EmptySelection):
            plan_action(new_status, selection, PatchAction.STAGE)

    def test_inconsistent_hunk_raises(self) -> None:
        hunk = Hunk(
            old_start=1,
            old_count=5,
            new_start=1,
            new_count=1,
            header="",
            lines=(Line(LineKind.CONTEXT, "a", 0), Line(LineKind.ADDITION, "b", 1)),
        )
        with self.assertRaises(InvalidHunkState):
            subset_hunk(hunk, frozenset({1}))

    def test_untracked_file_is_staged_by_path(self) -> None:
        status = build_repo_status("## main\0?? new.txt\0", "", "")
        plan = plan_action(status, _whole_file(status, Section.UNSTAGED), PatchAction.STAGE)
        self.assertIsNone(plan.patch)
        self.assertEqual(plan.paths, ("new.txt",))


class SynthesizedHunkInvariantTests(unittest.TestCase):
    def test_every_subset_has_consistent_header(self) -> None:
        (entry,) = parse_diff(SCENARIO_DIFF)
        hunk = entry.hunks[0]
        changes = sorted(hunk.change_indices())
        for mask in range(1, 1 << len(changes)):
            chosen = frozenset(c for bit, c in enumerate(changes) if mask & (1 << bit))
            for inverted in (False, True):
                piece = subset_hunk(hunk, chosen, inverted=inverted)
                self.assertIsNotNone(piece)
                self.assertTrue(piece.is_consistent(), (chosen, inverted))


class QuotePathTests(unittest.TestCase):
    def test_plain_path_is_unquoted(self) -> None:
        self.assertEqual(quote_path("a/b.txt"), "a/b.txt")

    def test_non_ascii_path_uses_octal_escapes(self) -> None:
        self.assertEqual(quote_path("a/ä"), '"a/\\303\\244"')


if __name__ == "__main__":
    unittest.main()
