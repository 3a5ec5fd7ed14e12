"""Runtime composition: request execution, refresh, and the interaction loop.

The loop is single-threaded: read one key, let the state machine turn it
into requests, run those synchronously through the git client, refresh when
repository state may have changed, render, and wait again.
"""

from __future__ import annotations

from collections.abc import Callable
import contextlib
from dataclasses import dataclass
import logging
import os
from pathlib import Path
import sys
from typing import ContextManager

from ..config import Config
from ..diff.parser import ParseError
from ..diff.patch import PatchAction, SynthesisError
from ..git import CommandResult, GitClient, GitCommandError
from ..input import read_key
from ..render import RenderContext, content_height, render_screen, row_height_fn
from ..state.keymap import Keymap
from ..state.machine import StateMachine
from ..state.messages import Message
from ..state.requests import (
    ApplyAction,
    Checkout,
    Commit,
    CreateBranch,
    GitCommand,
    ListBranches,
    Pull,
    Push,
    Quit,
    Refresh,
    Request,
    ShellCommand,
    Stash,
    StageAll,
    UnstageAll,
)
from ..terminal import TerminalController
from ..ui_theme import Palette, build_palette

_LOG = logging.getLogger(__name__)

RESIZE_POLL_MS = 200
RECOVERABLE_ERRORS = (ParseError, SynthesisError, GitCommandError, OSError)


class RequestExecutor:
    """Runs state-machine requests against git and reports through notices."""

    def __init__(
        self,
        machine: StateMachine,
        client: GitClient,
        suspend_terminal: Callable[[], ContextManager[None]] | None = None,
    ) -> None:
        self.machine = machine
        self.client = client
        self._suspend = suspend_terminal or contextlib.nullcontext
        self._handlers: dict[type[Request], Callable[[Request], None]] = {
            Refresh: lambda _request: None,
            ListBranches: self._list_branches,
            ApplyAction: self._apply_action,
            StageAll: lambda _request: self._report(self.client.stage_all()),
            UnstageAll: lambda _request: self._report(self.client.unstage_all(self._no_commits())),
            Checkout: lambda request: self._report(self.client.checkout(request.branch)),
            CreateBranch: lambda request: self._report(self.client.create_branch(request.name)),
            Commit: self._commit,
            Push: self._push,
            Pull: self._pull,
            Stash: lambda request: self._report(self.client.stash(pop=request.pop)),
            GitCommand: lambda request: self._report(self.client.run(request.args)),
            ShellCommand: lambda request: self._report(self.client.shell(request.command)),
        }

    def _no_commits(self) -> bool:
        return self.machine.status.branch.no_commits

    def _report(self, result: CommandResult) -> None:
        messages = self.machine.messages
        messages.push_command_output(result.stdout, result.stderr, ok=result.ok)
        if not result.ok:
            _LOG.info("command %s exited with %d", result.args, result.returncode)
            if not result.stderr.strip():
                messages.error(f"`{' '.join(result.args)}` exited with status {result.returncode}")

    def refresh(self) -> bool:
        """Rebuild the snapshot; on failure keep the previous one and report."""
        try:
            status = self.client.load_status()
        except (ParseError, GitCommandError) as exc:
            _LOG.error("refresh failed: %s", exc)
            self.machine.messages.error(f"Refresh failed: {exc}")
            return False
        self.machine.replace_status(status)
        return True

    def execute(self, request: Request) -> bool:
        """Run one request; return ``True`` when the session should end."""
        if isinstance(request, Quit):
            return True
        _LOG.debug("execute %s", type(request).__name__)
        self._handlers[type(request)](request)
        if request.changes_repo or isinstance(request, Refresh):
            self.refresh()
        return False

    def _list_branches(self, _request: Request) -> None:
        branches, current = self.client.branches()
        self.machine.show_branches(branches, current)

    def _apply_action(self, request: ApplyAction) -> None:
        plan = request.plan
        if plan.patch is not None:
            self._report(self.client.apply_patch(plan.patch, cached=plan.action.cached))
        if not plan.opaque:
            return
        if plan.action is PatchAction.STAGE:
            self._report(self.client.stage_paths(plan.paths))
        elif plan.action is PatchAction.UNSTAGE:
            self._report(self.client.unstage_paths(plan.paths, no_commits=self._no_commits()))
        else:
            for result in self.client.discard_entries(plan.opaque):
                self._report(result)

    def _commit(self, request: Commit) -> None:
        with self._suspend():
            result = self.client.commit(request.variant)
        self._report(result)

    def _push(self, request: Push) -> None:
        # Credential helpers may prompt on the real terminal.
        with self._suspend():
            result = self.client.push(force=request.force)
        self._report(result)

    def _pull(self, _request: Pull) -> None:
        with self._suspend():
            result = self.client.pull()
        self._report(result)


@dataclass(frozen=True)
class LoopDeps:
    """Injected collaborators for ``run_main_loop``."""

    read_key: Callable[[int, int | None], str]
    size: Callable[[], tuple[int, int]]
    draw: Callable[[list[str]], None]


def handle_key(machine: StateMachine, executor: RequestExecutor, key: str) -> bool:
    """Feed one key through the machine and execute its requests.

    Recoverable errors become error notices. Returns ``True`` to quit.
    """
    try:
        for request in machine.handle_key(key):
            if executor.execute(request):
                return True
    except RECOVERABLE_ERRORS as exc:
        _LOG.exception("error while handling %r", key)
        machine.messages.error(str(exc) or type(exc).__name__)
    return False


def draw_frame(machine: StateMachine, notice: Message | None, palette: Palette, deps: LoopDeps) -> tuple[int, int]:
    columns, lines = deps.size()
    ctx = RenderContext(palette=palette, options=machine.options, width=max(1, columns), height=max(1, lines))
    machine.update_viewport(content_height(machine, notice, ctx), row_height_fn(machine, ctx))
    deps.draw(render_screen(machine, notice, ctx))
    return columns, lines


def run_main_loop(
    *,
    machine: StateMachine,
    executor: RequestExecutor,
    palette: Palette,
    stdin_fd: int,
    deps: LoopDeps,
) -> None:
    executor.refresh()
    notice = machine.messages.pop()
    while True:
        size = draw_frame(machine, notice, palette, deps)

        key = deps.read_key(stdin_fd, RESIZE_POLL_MS)
        if not key:
            # Timeout: redraw only if the terminal was resized.
            while not key and deps.size() == size:
                key = deps.read_key(stdin_fd, RESIZE_POLL_MS)
            if not key:
                continue

        if handle_key(machine, executor, key):
            return
        notice = machine.messages.pop()


def run_app(repo_root: Path, config: Config, warnings: list[str], no_color: bool = False) -> int:
    """Start the interactive session on ``repo_root``; returns the exit code."""
    if not (os.isatty(sys.stdin.fileno()) and os.isatty(sys.stdout.fileno())):
        print("lazystage: an interactive terminal is required", file=sys.stderr)
        return 1

    machine = StateMachine(keymap=Keymap(config.keymap), options=config.options)
    for warning in warnings:
        machine.messages.error(warning)
    palette = build_palette(config.colors, no_color=no_color or bool(os.environ.get("NO_COLOR")))

    stdin_fd = sys.stdin.fileno()
    terminal = TerminalController(stdin_fd, sys.stdout.fileno())
    client = GitClient(repo_root, config.options)
    executor = RequestExecutor(machine, client, suspend_terminal=terminal.suspended)
    deps = LoopDeps(
        read_key=lambda fd, timeout: read_key(fd, timeout_ms=timeout),
        size=terminal.size,
        draw=terminal.draw,
    )
    _LOG.info("session start in %s", repo_root)
    with terminal.raw_mode():
        run_main_loop(machine=machine, executor=executor, palette=palette, stdin_fd=stdin_fd, deps=deps)
    _LOG.info("session end")
    return 0


__all__ = [
    "LoopDeps",
    "RequestExecutor",
    "draw_frame",
    "handle_key",
    "run_app",
    "run_main_loop",
]
