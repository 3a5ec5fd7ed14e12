"""Tests for request execution, error recovery and the interaction loop.

The git client is replaced by an in-memory fake so these cases exercise
dispatch, refresh and notice reporting without a repository.
"""

from __future__ import annotations

from contextlib import contextmanager
import unittest

from lazystage.diff.parser import ParseError, build_repo_status
from lazystage.git import CommandResult
from lazystage.runtime.app import LoopDeps, RequestExecutor, handle_key, run_main_loop
from lazystage.state.machine import StateMachine
from lazystage.state.mode import BranchListMode
from lazystage.state.requests import Commit, GitCommand, ListBranches, Quit, Refresh, StageAll
from lazystage.ui_theme import PLAIN_PALETTE

DIRTY = build_repo_status("## main\0?? new.txt\0", "", "")
CLEAN = build_repo_status("## main\0", "", "")


class FakeClient:
    def __init__(self, status=DIRTY) -> None:
        self.status = status
        self.calls: list[str] = []
        self.load_error: Exception | None = None
        self.stage_error: Exception | None = None
        self.result = CommandResult(("add", "-A"), 0)

    def load_status(self):
        self.calls.append("load_status")
        if self.load_error is not None:
            raise self.load_error
        return self.status

    def stage_all(self) -> CommandResult:
        self.calls.append("stage_all")
        if self.stage_error is not None:
            raise self.stage_error
        return self.result

    def run(self, args) -> CommandResult:
        self.calls.append("run")
        return self.result

    def commit(self, variant) -> CommandResult:
        self.calls.append("commit")
        return self.result

    def branches(self):
        return ["dev", "main"], "main"


class RequestExecutorTests(unittest.TestCase):
    def setUp(self) -> None:
        self.machine = StateMachine(status=DIRTY)
        self.client = FakeClient(status=CLEAN)
        self.executor = RequestExecutor(self.machine, self.client)

    def test_quit_ends_session(self) -> None:
        self.assertTrue(self.executor.execute(Quit()))
        self.assertEqual(self.client.calls, [])

    def test_repo_changing_request_is_followed_by_refresh(self) -> None:
        self.assertFalse(self.executor.execute(StageAll()))
        self.assertEqual(self.client.calls, ["stage_all", "load_status"])
        self.assertIs(self.machine.status, CLEAN)

    def test_explicit_refresh(self) -> None:
        self.executor.execute(Refresh())
        self.assertEqual(self.client.calls, ["load_status"])

    def test_failed_command_reports_stderr_as_error(self) -> None:
        self.client.result = CommandResult(("bogus",), 1, b"", b"fatal: bad\n")
        self.executor.execute(GitCommand(("bogus",)))

        notice = self.machine.messages.pop()
        self.assertTrue(notice.is_error)
        self.assertEqual(notice.text, "fatal: bad")

    def test_silent_failure_reports_exit_status(self) -> None:
        self.client.result = CommandResult(("status",), 2)
        self.executor.execute(GitCommand(("status",)))

        notice = self.machine.messages.pop()
        self.assertTrue(notice.is_error)
        self.assertEqual(notice.text, "`status` exited with status 2")

    def test_successful_output_is_a_note(self) -> None:
        self.client.result = CommandResult(("log",), 0, b"\x1b[33mabc\x1b[0m one\n")
        self.executor.execute(GitCommand(("log",)))

        notice = self.machine.messages.pop()
        self.assertFalse(notice.is_error)
        self.assertIn("abc", notice.text)
        self.assertIsNone(self.machine.messages.pop())

    def test_refresh_failure_keeps_previous_snapshot(self) -> None:
        self.client.load_error = ParseError("malformed status record")

        self.assertFalse(self.executor.refresh())

        self.assertIs(self.machine.status, DIRTY)
        self.assertEqual(self.machine.messages.pop().text, "Refresh failed: malformed status record")

    def test_commit_runs_with_terminal_suspended(self) -> None:
        events: list[str] = []

        @contextmanager
        def suspended():
            events.append("suspend")
            yield
            events.append("resume")

        executor = RequestExecutor(self.machine, self.client, suspend_terminal=suspended)
        executor.execute(Commit())

        self.assertEqual(events, ["suspend", "resume"])
        self.assertEqual(self.client.calls, ["commit", "load_status"])

    def test_list_branches_enters_branch_list(self) -> None:
        self.executor.execute(ListBranches())
        self.assertIsInstance(self.machine.mode, BranchListMode)
        self.assertEqual(self.machine.mode.current, "main")


class HandleKeyTests(unittest.TestCase):
    def test_recoverable_error_becomes_notice(self) -> None:
        machine = StateMachine(status=DIRTY)
        client = FakeClient()
        client.stage_error = OSError("disk full")

        self.assertFalse(handle_key(machine, RequestExecutor(machine, client), "S"))

        notice = machine.messages.pop()
        self.assertTrue(notice.is_error)
        self.assertEqual(notice.text, "disk full")

    def test_quit_key(self) -> None:
        machine = StateMachine(status=DIRTY)
        self.assertTrue(handle_key(machine, RequestExecutor(machine, FakeClient()), "q"))


class MainLoopTests(unittest.TestCase):
    def _run(self, keys: list[str], sizes: list[tuple[int, int]]) -> list[list[str]]:
        machine = StateMachine(status=DIRTY)
        machine.messages.error("Unknown config key: bogus")
        executor = RequestExecutor(machine, FakeClient(status=DIRTY))
        pending_keys = iter(keys)
        frames: list[list[str]] = []

        def size() -> tuple[int, int]:
            return sizes.pop(0) if len(sizes) > 1 else sizes[0]

        deps = LoopDeps(
            read_key=lambda _fd, _timeout: next(pending_keys),
            size=size,
            draw=frames.append,
        )
        run_main_loop(machine=machine, executor=executor, palette=PLAIN_PALETTE, stdin_fd=0, deps=deps)
        return frames

    def test_draws_after_each_key_until_quit(self) -> None:
        frames = self._run(["", "j", "q"], [(40, 10)])

        self.assertEqual(len(frames), 2)
        self.assertEqual(len(frames[0]), 10)
        self.assertIn("Unknown config key: bogus", frames[0][-1])
        self.assertNotIn("Unknown config key", frames[1][-1])

    def test_resize_triggers_redraw_without_a_key(self) -> None:
        frames = self._run(["", "q"], [(40, 10), (60, 20)])

        self.assertEqual(len(frames), 2)
        self.assertEqual(len(frames[1]), 20)


if __name__ == "__main__":
    unittest.main()
