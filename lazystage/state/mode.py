"""Interaction modes: one dataclass per mode, each carrying its own payload."""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum

from ..diff.patch import ActionPlan
from .minibuffer import LineEditor


class ModeKind(Enum):
    STATUS = "status"
    BRANCH_LIST = "branch_list"
    COMMAND_MENU = "command_menu"
    MINIBUFFER_COMMAND = "minibuffer_command"
    SUBPROCESS_PROMPT = "subprocess_prompt"
    CONFIRM_DESTRUCTIVE = "confirm_destructive"


class PromptPurpose(Enum):
    GIT_COMMAND = "git_command"
    NEW_BRANCH = "new_branch"


@dataclass(frozen=True)
class MenuItem:
    key: str
    label: str
    action: str


@dataclass(frozen=True)
class Menu:
    name: str
    title: str
    items: tuple[MenuItem, ...]

    def item_for(self, key: str) -> MenuItem | None:
        for item in self.items:
            if item.key == key:
                return item
        return None


BRANCH_MENU = Menu(
    name="branch",
    title="Branch",
    items=(
        MenuItem("b", "checkout", "checkout_branch"),
        MenuItem("n", "new", "new_branch"),
    ),
)
COMMIT_MENU = Menu(
    name="commit",
    title="Commit",
    items=(
        MenuItem("c", "commit", "commit"),
        MenuItem("a", "amend", "commit_amend"),
        MenuItem("e", "extend", "commit_extend"),
    ),
)
PUSH_MENU = Menu(
    name="push",
    title="Push",
    items=(
        MenuItem("p", "push", "push"),
        MenuItem("f", "force", "push_force"),
    ),
)
STASH_MENU = Menu(
    name="stash",
    title="Stash",
    items=(
        MenuItem("s", "stash", "stash"),
        MenuItem("p", "pop", "stash_pop"),
    ),
)
MENUS = {menu.name: menu for menu in (BRANCH_MENU, COMMIT_MENU, PUSH_MENU, STASH_MENU)}


@dataclass(frozen=True)
class StatusMode:
    kind = ModeKind.STATUS


@dataclass(frozen=True)
class BranchListMode:
    branches: tuple[str, ...]
    current: str | None = None
    cursor: int = 0
    kind = ModeKind.BRANCH_LIST

    @property
    def highlighted(self) -> str | None:
        if 0 <= self.cursor < len(self.branches):
            return self.branches[self.cursor]
        return None


@dataclass(frozen=True)
class CommandMenuMode:
    menu: Menu
    kind = ModeKind.COMMAND_MENU


@dataclass(frozen=True)
class MinibufferCommandMode:
    editor: LineEditor
    purpose: PromptPurpose = PromptPurpose.GIT_COMMAND
    kind = ModeKind.MINIBUFFER_COMMAND

    @property
    def prompt(self) -> str:
        return ":" if self.purpose is PromptPurpose.GIT_COMMAND else "New branch: "


@dataclass(frozen=True)
class SubprocessPromptMode:
    editor: LineEditor
    kind = ModeKind.SUBPROCESS_PROMPT
    prompt = "!"


@dataclass(frozen=True)
class ConfirmDestructiveMode:
    plan: ActionPlan
    kind = ModeKind.CONFIRM_DESTRUCTIVE

    prompt = "Really discard selected changes? [y/n]"


Mode = (
    StatusMode
    | BranchListMode
    | CommandMenuMode
    | MinibufferCommandMode
    | SubprocessPromptMode
    | ConfirmDestructiveMode
)

STATUS_MODE = StatusMode()

__all__ = [
    "BRANCH_MENU",
    "BranchListMode",
    "COMMIT_MENU",
    "CommandMenuMode",
    "ConfirmDestructiveMode",
    "MENUS",
    "Menu",
    "MenuItem",
    "MinibufferCommandMode",
    "Mode",
    "ModeKind",
    "PUSH_MENU",
    "PromptPurpose",
    "STASH_MENU",
    "STATUS_MODE",
    "StatusMode",
    "SubprocessPromptMode",
]
