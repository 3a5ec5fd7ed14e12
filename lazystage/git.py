"""Access to the ``git`` binary.

Every invocation returns a ``CommandResult``; a non-zero exit status is data,
not an exception. Only repository discovery raises, and only when the git
binary itself cannot be executed.
"""

from __future__ import annotations

from collections.abc import Callable, Sequence
from dataclasses import dataclass
import logging
import os
from pathlib import Path
import shlex
import subprocess

from .config import Options
from .diff.model import FileEntry, FileKind, RepoStatus
from .diff.parser import build_repo_status
from .state.requests import CommitVariant

_LOG = logging.getLogger(__name__)

STATUS_ARGS = ("status", "--porcelain=v1", "--branch", "-z", "--untracked-files=all")
DIFF_ARGS = ("diff", "--no-color", "--no-ext-diff", "--src-prefix=a/", "--dst-prefix=b/")
HEAD_ARGS = ("log", "-1", "--format=%h%x00%s")
COMMIT_ARGS = {
    CommitVariant.COMMIT: ("commit",),
    CommitVariant.AMEND: ("commit", "--amend"),
    CommitVariant.EXTEND: ("commit", "--amend", "--no-edit"),
}


class GitUnavailableError(RuntimeError):
    """The git executable could not be started."""


class GitCommandError(Exception):
    """A git command needed to build the status snapshot failed."""

    def __init__(self, result: CommandResult) -> None:
        detail = result.stderr_text.strip() or f"exit status {result.returncode}"
        super().__init__(f"git {' '.join(result.args)}: {detail}")
        self.result = result


@dataclass(frozen=True)
class CommandResult:
    args: tuple[str, ...]
    returncode: int
    stdout: bytes = b""
    stderr: bytes = b""

    @property
    def ok(self) -> bool:
        return self.returncode == 0

    @property
    def stdout_text(self) -> str:
        return self.stdout.decode("utf-8", errors="replace")

    @property
    def stderr_text(self) -> str:
        return self.stderr.decode("utf-8", errors="replace")


Runner = Callable[..., subprocess.CompletedProcess]


def _execute(
    argv: list[str],
    cwd: Path,
    *,
    input_bytes: bytes | None = None,
    capture: bool = True,
    runner: Runner = subprocess.run,
) -> CommandResult:
    display = tuple(argv[1:]) if argv and argv[0] == "git" else tuple(argv)
    _LOG.debug("run %s", shlex.join(argv))
    kwargs: dict[str, object] = {"cwd": str(cwd), "check": False}
    if capture:
        kwargs["stdout"] = subprocess.PIPE
        kwargs["stderr"] = subprocess.PIPE
        if input_bytes is not None:
            kwargs["input"] = input_bytes
        else:
            kwargs["stdin"] = subprocess.DEVNULL
    try:
        proc = runner(argv, **kwargs)
    except OSError as exc:
        _LOG.warning("failed to start %s: %s", argv[0], exc)
        return CommandResult(display, 127, b"", str(exc).encode("utf-8", errors="replace"))
    stdout = proc.stdout if isinstance(proc.stdout, bytes) else b""
    stderr = proc.stderr if isinstance(proc.stderr, bytes) else b""
    _LOG.debug("exit %d from %s", proc.returncode, shlex.join(argv))
    return CommandResult(display, proc.returncode, stdout, stderr)


def find_repo_root(path: Path, runner: Runner = subprocess.run) -> Path | None:
    """Return the work tree containing ``path``, or ``None`` outside a repository.

    Raises ``GitUnavailableError`` when git cannot be executed at all.
    """
    try:
        proc = runner(
            ["git", "rev-parse", "--show-toplevel"],
            cwd=str(path),
            stdout=subprocess.PIPE,
            stderr=subprocess.DEVNULL,
            check=False,
        )
    except OSError as exc:
        raise GitUnavailableError(f"cannot run git: {exc}") from exc
    if proc.returncode != 0:
        return None
    top = proc.stdout.decode("utf-8", errors="replace").strip()
    return Path(top) if top else None


def init_repo(path: Path, runner: Runner = subprocess.run) -> CommandResult:
    return _execute(["git", "init"], path, runner=runner)


class GitClient:
    def __init__(
        self,
        repo_root: Path,
        options: Options | None = None,
        runner: Runner = subprocess.run,
    ) -> None:
        self.repo_root = repo_root
        self.options = options if options is not None else Options()
        self._runner = runner

    def run(self, args: Sequence[str], input_text: str | None = None) -> CommandResult:
        """Run ``git <args>`` with captured output."""
        input_bytes = input_text.encode("utf-8") if input_text is not None else None
        return _execute(["git", *args], self.repo_root, input_bytes=input_bytes, runner=self._runner)

    def run_attached(self, args: Sequence[str]) -> CommandResult:
        """Run ``git <args>`` on the real terminal (editor sessions)."""
        return _execute(["git", *args], self.repo_root, capture=False, runner=self._runner)

    # Snapshot

    def _checked(self, args: Sequence[str]) -> str:
        result = self.run(args)
        if not result.ok:
            raise GitCommandError(result)
        return result.stdout_text

    def _diff_args(self, cached: bool) -> list[str]:
        args = list(DIFF_ARGS)
        if self.options.ws_error_highlight != "none":
            args.append(f"--ws-error-highlight={self.options.ws_error_highlight}")
        if cached:
            args.append("--cached")
        return args

    def load_status(self) -> RepoStatus:
        """Collect status, both diffs and the head commit, and parse them.

        Raises ``GitCommandError`` if status or diff fail, and ``ParseError``
        if their output is malformed.
        """
        status_output = self._checked(STATUS_ARGS)
        unstaged = self._checked(self._diff_args(cached=False))
        staged = self._checked(self._diff_args(cached=True))
        head = self.run(HEAD_ARGS)
        # No commits yet makes ``git log`` fail; that just means no head.
        head_output = head.stdout_text if head.ok else ""
        return build_repo_status(status_output, unstaged, staged, head_output)

    # Staging

    def apply_patch(self, patch: str, cached: bool) -> CommandResult:
        args = ["apply", "--whitespace=nowarn"]
        if cached:
            args.append("--cached")
        args.append("-")
        return self.run(args, input_text=patch)

    def stage_paths(self, paths: Sequence[str]) -> CommandResult:
        return self.run(["add", "--", *paths])

    def unstage_paths(self, paths: Sequence[str], no_commits: bool = False) -> CommandResult:
        if no_commits:
            return self.run(["rm", "--cached", "-r", "-q", "--", *paths])
        return self.run(["reset", "-q", "--", *paths])

    def discard_entries(self, entries: Sequence[FileEntry]) -> list[CommandResult]:
        """Throw away working-tree state for whole entries."""
        untracked = [entry.path for entry in entries if entry.kind is FileKind.UNTRACKED]
        tracked = [entry.path for entry in entries if entry.kind is not FileKind.UNTRACKED]
        results: list[CommandResult] = []
        if untracked:
            results.append(self.run(["clean", "-f", "-q", "--", *untracked]))
        if tracked:
            results.append(self.run(["checkout", "-q", "--", *tracked]))
        return results

    def stage_all(self) -> CommandResult:
        return self.run(["add", "-A"])

    def unstage_all(self, no_commits: bool = False) -> CommandResult:
        if no_commits:
            return self.run(["rm", "--cached", "-r", "-q", "."])
        return self.run(["reset", "-q"])

    # Branches

    def branches(self) -> tuple[list[str], str | None]:
        """Return local branch names and the checked-out branch, if any."""
        args = ["branch", "--format=%(refname:short)"]
        if self.options.sort_branches:
            args.append(f"--sort={self.options.sort_branches}")
        result = self.run(args)
        if not result.ok:
            raise GitCommandError(result)
        names = [line.strip() for line in result.stdout_text.splitlines() if line.strip()]
        current = self.run(["branch", "--show-current"])
        current_name = current.stdout_text.strip() if current.ok else ""
        return names, current_name or None

    def checkout(self, branch: str) -> CommandResult:
        return self.run(["checkout", branch])

    def create_branch(self, name: str) -> CommandResult:
        return self.run(["checkout", "-b", name])

    # Remote, history, stash

    def commit(self, variant: CommitVariant) -> CommandResult:
        return self.run_attached(COMMIT_ARGS[variant])

    def push(self, force: bool = False) -> CommandResult:
        return self.run(["push", "--force"] if force else ["push"])

    def pull(self) -> CommandResult:
        return self.run(["pull"])

    def stash(self, pop: bool = False) -> CommandResult:
        return self.run(["stash", "pop"] if pop else ["stash"])

    # Free-form

    def shell(self, command: str) -> CommandResult:
        """Run ``command`` through ``$SHELL -c``, or split it when no shell is set."""
        shell = os.environ.get("SHELL", "").strip()
        if shell:
            argv = [shell, "-c", command]
        else:
            try:
                argv = shlex.split(command)
            except ValueError as exc:
                return CommandResult((command,), 2, b"", str(exc).encode("utf-8"))
            if not argv:
                return CommandResult((), 0)
        return _execute(argv, self.repo_root, runner=self._runner)


__all__ = [
    "CommandResult",
    "GitClient",
    "GitCommandError",
    "GitUnavailableError",
    "find_repo_root",
    "init_repo",
]
