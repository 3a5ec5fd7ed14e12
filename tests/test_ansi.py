"""Regression tests for ANSI row-shaping primitives.

Focuses on width measurement, clipping, padding and wrapping of styled rows.
These cases protect status and viewport math from line-shaping regressions.
"""

import unittest

from lazystage import ansi as ansi_mod


class WidthTests(unittest.TestCase):
    def test_escapes_take_no_columns(self) -> None:
        self.assertEqual(ansi_mod.display_width("\x1b[31mred\x1b[0m"), 3)

    def test_wide_and_combining_characters(self) -> None:
        self.assertEqual(ansi_mod.display_width("日本"), 4)
        self.assertEqual(ansi_mod.display_width("é"), 1)

    def test_tabs_expand_to_stops(self) -> None:
        self.assertEqual(ansi_mod.display_width("a\tb"), 9)


class ClipTests(unittest.TestCase):
    def test_clip_keeps_escapes(self) -> None:
        self.assertEqual(ansi_mod.clip_ansi_line("\x1b[31mabcdef\x1b[0m", 3), "\x1b[31mabc")

    def test_clip_does_not_split_wide_character(self) -> None:
        self.assertEqual(ansi_mod.clip_ansi_line("a日本", 2), "a")

    def test_clip_expands_tabs(self) -> None:
        self.assertEqual(ansi_mod.clip_ansi_line("a\tb", 10), "a" + " " * 7 + "b")

    def test_pad_fills_to_width(self) -> None:
        self.assertEqual(ansi_mod.pad_ansi_line("\x1b[1mab", 4), "\x1b[1mab  ")


class WrapTests(unittest.TestCase):
    def test_unstyled_text_splits_to_width(self) -> None:
        self.assertEqual(ansi_mod.wrap_ansi_line("abcdefg", 3), ["abc", "def", "g"])

    def test_continuation_restates_active_color(self) -> None:
        self.assertEqual(
            ansi_mod.wrap_ansi_line("\x1b[31mabcdef\x1b[0m", 3),
            ["\x1b[31mabc", "\x1b[31mdef\x1b[0m"],
        )

    def test_empty_input(self) -> None:
        self.assertEqual(ansi_mod.wrap_ansi_line("", 5), [""])


if __name__ == "__main__":
    unittest.main()
