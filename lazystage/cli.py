"""Command-line front door for lazystage.

Parses CLI options, configures logging, locates (or offers to create) the
repository, loads config, and hands over to the interactive runtime.
"""

from __future__ import annotations

import argparse
from collections.abc import Callable, Sequence
import logging
from pathlib import Path
import sys

from . import __version__
from .config import load_config
from .git import GitUnavailableError, find_repo_root, init_repo
from .runtime import run_app

_LOG = logging.getLogger(__name__)

INIT_PROMPT = "Not a git repository. Initialise one? [y/N] "


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="lazystage",
        description="Stage, unstage and discard git changes by file, hunk or line.",
    )
    parser.add_argument("path", nargs="?", default=".", help="Path inside the repository. Defaults to the current directory.")
    parser.add_argument("--debug-log", metavar="FILE", default=None, help="Write debug logging to FILE.")
    parser.add_argument("--no-color", action="store_true", help="Disable configured colors.")
    parser.add_argument("--version", action="version", version=f"%(prog)s {__version__}")
    return parser


def configure_logging(debug_log: str | None) -> None:
    if not debug_log:
        return
    handler = logging.FileHandler(debug_log, encoding="utf-8")
    handler.setFormatter(logging.Formatter("%(asctime)s %(levelname)s %(name)s: %(message)s"))
    package_logger = logging.getLogger("lazystage")
    package_logger.addHandler(handler)
    package_logger.setLevel(logging.DEBUG)


def confirm_init(ask: Callable[[str], str] = input) -> bool:
    try:
        answer = ask(INIT_PROMPT)
    except EOFError:
        return False
    return answer.strip().lower() in {"y", "yes"}


def resolve_repository(path: Path, ask: Callable[[str], str] = input) -> Path | None:
    """Return the work-tree root for ``path``, initialising one if the user agrees."""
    root = find_repo_root(path)
    if root is not None:
        return root
    if not confirm_init(ask):
        return None
    result = init_repo(path)
    if not result.ok:
        print(result.stderr_text.strip() or "git init failed", file=sys.stderr)
        return None
    return find_repo_root(path) or path.resolve()


def main(argv: Sequence[str] | None = None) -> int:
    """Parse arguments and run the session; returns the process exit code."""
    args = build_parser().parse_args(argv)
    try:
        configure_logging(args.debug_log)
    except OSError as exc:
        print(f"lazystage: cannot open debug log: {exc}", file=sys.stderr)
        return 1

    path = Path(args.path)
    if not path.is_dir():
        print(f"lazystage: not a directory: {path}", file=sys.stderr)
        return 1

    try:
        root = resolve_repository(path)
    except GitUnavailableError as exc:
        print(f"lazystage: {exc}", file=sys.stderr)
        return 1
    if root is None:
        return 1

    config, warnings = load_config()
    _LOG.debug("repository root %s", root)
    return run_app(root, config, warnings, no_color=args.no_color)


if __name__ == "__main__":
    raise SystemExit(main())
