"""Requests the state machine hands to the runtime for execution.

The state machine never touches git or the terminal itself. Requests whose
``changes_repo`` is true are always followed by a refresh.
"""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum

from ..diff.patch import ActionPlan


class CommitVariant(Enum):
    COMMIT = "commit"
    AMEND = "amend"
    EXTEND = "extend"


@dataclass(frozen=True)
class Request:
    changes_repo = False


@dataclass(frozen=True)
class Refresh(Request):
    pass


@dataclass(frozen=True)
class Quit(Request):
    pass


@dataclass(frozen=True)
class ListBranches(Request):
    pass


@dataclass(frozen=True)
class ApplyAction(Request):
    plan: ActionPlan
    changes_repo = True


@dataclass(frozen=True)
class StageAll(Request):
    changes_repo = True


@dataclass(frozen=True)
class UnstageAll(Request):
    changes_repo = True


@dataclass(frozen=True)
class Checkout(Request):
    branch: str
    changes_repo = True


@dataclass(frozen=True)
class CreateBranch(Request):
    name: str
    changes_repo = True


@dataclass(frozen=True)
class Commit(Request):
    variant: CommitVariant = CommitVariant.COMMIT
    changes_repo = True


@dataclass(frozen=True)
class Push(Request):
    force: bool = False
    changes_repo = True


@dataclass(frozen=True)
class Pull(Request):
    changes_repo = True


@dataclass(frozen=True)
class Stash(Request):
    pop: bool = False
    changes_repo = True


@dataclass(frozen=True)
class GitCommand(Request):
    args: tuple[str, ...]
    changes_repo = True


@dataclass(frozen=True)
class ShellCommand(Request):
    command: str
    changes_repo = True


__all__ = [
    "ApplyAction",
    "Checkout",
    "Commit",
    "CommitVariant",
    "CreateBranch",
    "GitCommand",
    "ListBranches",
    "Pull",
    "Push",
    "Quit",
    "Refresh",
    "Request",
    "ShellCommand",
    "Stash",
    "StageAll",
    "UnstageAll",
]
