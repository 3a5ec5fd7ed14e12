"""Interaction state machine.

``StateMachine.handle_key`` consumes one decoded key token, mutates mode,
cursor, expansion and selection, and returns the requests the runtime must
execute. Repository state only changes through those requests.
"""

from __future__ import annotations

from collections.abc import Callable
import logging
import shlex

from ..config import Options
from ..diff.model import EMPTY_STATUS, RepoStatus
from ..diff.patch import EmptySelection, PatchAction, SynthesisError, plan_action
from ..diff.selection import EMPTY_SELECTION, Selection, SelectionRef
from .cursor import (
    CursorPath,
    Expansion,
    Row,
    RowKind,
    Viewport,
    build_rows,
    first_navigable,
    remap_cursor,
    step_cursor,
)
from .keymap import KeyComboRegistry, Keymap
from .messages import MessageQueue
from .minibuffer import History, LineEditor
from .mode import (
    MENUS,
    STATUS_MODE,
    BranchListMode,
    CommandMenuMode,
    ConfirmDestructiveMode,
    MinibufferCommandMode,
    Mode,
    ModeKind,
    PromptPurpose,
    SubprocessPromptMode,
)
from .requests import (
    ApplyAction,
    Checkout,
    Commit,
    CommitVariant,
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

_LOG = logging.getLogger(__name__)

_MENU_REQUESTS: dict[str, Callable[[], Request]] = {
    "checkout_branch": ListBranches,
    "commit": lambda: Commit(CommitVariant.COMMIT),
    "commit_amend": lambda: Commit(CommitVariant.AMEND),
    "commit_extend": lambda: Commit(CommitVariant.EXTEND),
    "push": Push,
    "push_force": lambda: Push(force=True),
    "stash": Stash,
    "stash_pop": lambda: Stash(pop=True),
}


class StateMachine:
    def __init__(
        self,
        keymap: Keymap | None = None,
        options: Options | None = None,
        status: RepoStatus = EMPTY_STATUS,
    ) -> None:
        self.keymap = keymap if keymap is not None else Keymap()
        self.options = options if options is not None else Options()
        self.expansion = Expansion(
            auto_expand_files=self.options.auto_expand_files,
            auto_expand_hunks=self.options.auto_expand_hunks,
        )
        self.viewport = Viewport(lookahead=self.options.lookahead_lines)
        self.messages = MessageQueue()
        self.selection: Selection = EMPTY_SELECTION
        self.mode: Mode = STATUS_MODE
        self.histories = {
            ModeKind.MINIBUFFER_COMMAND: History(),
            ModeKind.SUBPROCESS_PROMPT: History(),
        }
        self._branch_history = History()
        self._pending: list[Request] = []

        self.status = status
        self.expansion.observe(status)
        self.rows: list[Row] = build_rows(status, self.expansion)
        self.cursor = first_navigable(self.rows)

        self._registries: dict[ModeKind, KeyComboRegistry] = {
            ModeKind.STATUS: self.keymap.registry(self._status_handlers()),
            ModeKind.BRANCH_LIST: self.keymap.registry(self._branch_handlers()),
            ModeKind.CONFIRM_DESTRUCTIVE: self.keymap.registry(
                {
                    "confirm_yes": self._confirm_yes,
                    "confirm_no": self._confirm_no,
                }
            ),
        }

    # Queries

    @property
    def current_row(self) -> Row | None:
        if 0 <= self.cursor < len(self.rows) and self.rows[self.cursor].navigable:
            return self.rows[self.cursor]
        return None

    def is_marked(self, row: Row) -> bool:
        ref = self._ref_for_row(row)
        return ref is not None and ref in self.selection

    # Input

    def handle_key(self, key: str) -> list[Request]:
        """Process one key and return the requests it produced."""
        self._pending = []
        mode = self.mode
        if isinstance(mode, (MinibufferCommandMode, SubprocessPromptMode)):
            self._handle_prompt_key(mode, key)
        elif isinstance(mode, CommandMenuMode):
            self._handle_menu_key(mode, key)
        else:
            self._registries[mode.kind].dispatch(key)
        requests, self._pending = self._pending, []
        return requests

    def _emit(self, request: Request) -> bool:
        self._pending.append(request)
        return True

    def _set_mode(self, mode: Mode) -> None:
        if mode.kind is not self.mode.kind:
            _LOG.debug("mode %s -> %s", self.mode.kind.value, mode.kind.value)
        self.mode = mode

    # Status mode

    def _status_handlers(self) -> dict[str, Callable[[], bool | None]]:
        return {
            "move_down": lambda: self.move(1),
            "move_up": lambda: self.move(-1),
            "move_first": self.move_first,
            "move_last": self.move_last,
            "page_down": lambda: self.move(self._page_size()),
            "page_up": lambda: self.move(-self._page_size()),
            "toggle_expand": self.toggle_expand,
            "toggle_mark": self.toggle_mark,
            "clear_marks": self.clear_marks,
            "stage": lambda: self._staging_action(PatchAction.STAGE),
            "unstage": lambda: self._staging_action(PatchAction.UNSTAGE),
            "discard": lambda: self._staging_action(PatchAction.DISCARD),
            "stage_all": lambda: self._emit(StageAll()),
            "unstage_all": lambda: self._emit(UnstageAll()),
            "pull": lambda: self._emit(Pull()),
            "refresh": lambda: self._emit(Refresh()),
            "git_command": lambda: self._open_prompt(PromptPurpose.GIT_COMMAND),
            "shell_command": self._open_shell_prompt,
            "branch_menu": lambda: self._open_menu("branch"),
            "commit_menu": lambda: self._open_menu("commit"),
            "push_menu": lambda: self._open_menu("push"),
            "stash_menu": lambda: self._open_menu("stash"),
            "quit": lambda: self._emit(Quit()),
        }

    def _page_size(self) -> int:
        return max(1, self.viewport.height // 2)

    def move(self, delta: int) -> bool:
        self.cursor = step_cursor(self.rows, self.cursor, delta)
        return True

    def move_first(self) -> bool:
        self.cursor = first_navigable(self.rows)
        return True

    def move_last(self) -> bool:
        self.cursor = step_cursor(self.rows, self.cursor, len(self.rows))
        return True

    def _rebuild_rows(self, path: CursorPath | None, file_index: int) -> None:
        self.rows = build_rows(self.status, self.expansion)
        self.cursor = remap_cursor(self.rows, path, file_index)

    def toggle_expand(self) -> bool:
        row = self.current_row
        if row is None or row.entry is None or row.section is None:
            return False
        path = row.entry.path
        if row.kind is RowKind.FILE:
            if not row.entry.hunks:
                return False
            self.expansion.toggle_file(row.section, path)
            target = row.cursor_path()
        else:
            # On a line, collapse the enclosing hunk and land on it.
            assert row.hunk_index is not None
            self.expansion.toggle_hunk(row.section, path, row.hunk_index)
            target = CursorPath(row.section, path, row.hunk_index)
        self._rebuild_rows(target, row.file_index)
        return True

    def _ref_for_row(self, row: Row) -> SelectionRef | None:
        if row.entry is None or row.section is None:
            return None
        if row.kind is RowKind.FILE:
            return SelectionRef.for_file(row.section, row.file_index, row.entry)
        if row.hunk_index is None:
            return None
        if row.kind is RowKind.HUNK:
            return SelectionRef.for_hunk(row.section, row.file_index, row.entry, row.hunk_index)
        if row.line is None or not row.line.is_change:
            return None
        return SelectionRef.for_hunk(
            row.section,
            row.file_index,
            row.entry,
            row.hunk_index,
            lines=frozenset({row.line.origin}),
        )

    def toggle_mark(self) -> bool:
        row = self.current_row
        ref = self._ref_for_row(row) if row is not None else None
        if ref is None:
            return False
        self.selection = self.selection.toggle(ref)
        return True

    def clear_marks(self) -> bool:
        self.selection = EMPTY_SELECTION
        return True

    def _action_selection(self) -> Selection:
        if self.selection:
            return self.selection
        row = self.current_row
        ref = self._ref_for_row(row) if row is not None else None
        if ref is None:
            return EMPTY_SELECTION
        return Selection(frozenset({ref}))

    def _staging_action(self, action: PatchAction) -> bool:
        try:
            plan = plan_action(self.status, self._action_selection(), action)
        except EmptySelection as exc:
            self.messages.error(str(exc))
            return True
        except SynthesisError as exc:
            _LOG.error("patch synthesis failed: %s", exc)
            self.messages.error(f"Cannot {action.value}: {exc}")
            return True

        if action is PatchAction.DISCARD:
            self._set_mode(ConfirmDestructiveMode(plan))
            return True
        self.selection = EMPTY_SELECTION
        return self._emit(ApplyAction(plan))

    # Confirm mode

    def _confirm_yes(self) -> bool:
        assert isinstance(self.mode, ConfirmDestructiveMode)
        plan = self.mode.plan
        self.selection = EMPTY_SELECTION
        self._set_mode(STATUS_MODE)
        return self._emit(ApplyAction(plan))

    def _confirm_no(self) -> bool:
        self._set_mode(STATUS_MODE)
        self.messages.note("Discard cancelled")
        return True

    # Menus

    def _open_menu(self, name: str) -> bool:
        self._set_mode(CommandMenuMode(MENUS[name]))
        return True

    def _handle_menu_key(self, mode: CommandMenuMode, key: str) -> None:
        if key in ("ESC", "q"):
            self._set_mode(STATUS_MODE)
            return
        item = mode.menu.item_for(key)
        if item is None:
            return
        if item.action == "new_branch":
            self._open_prompt(PromptPurpose.NEW_BRANCH)
            return
        self._set_mode(STATUS_MODE)
        self._emit(_MENU_REQUESTS[item.action]())

    # Branch list

    def show_branches(self, branches: list[str], current: str | None = None) -> None:
        """Enter the branch list after the runtime fetched it."""
        if not branches:
            self.messages.note("No branches")
            return
        cursor = branches.index(current) if current in branches else 0
        self._set_mode(BranchListMode(tuple(branches), current, cursor))

    def _branch_handlers(self) -> dict[str, Callable[[], bool | None]]:
        return {
            "move_down": lambda: self._move_branch(1),
            "move_up": lambda: self._move_branch(-1),
            "move_first": lambda: self._move_branch(-len(self._branch_mode().branches)),
            "move_last": lambda: self._move_branch(len(self._branch_mode().branches)),
            "checkout": self._checkout_highlighted,
            "new_branch": lambda: self._open_prompt(PromptPurpose.NEW_BRANCH),
            "back": lambda: self._set_mode(STATUS_MODE),
        }

    def _branch_mode(self) -> BranchListMode:
        assert isinstance(self.mode, BranchListMode)
        return self.mode

    def _move_branch(self, delta: int) -> bool:
        mode = self._branch_mode()
        cursor = max(0, min(len(mode.branches) - 1, mode.cursor + delta))
        self.mode = BranchListMode(mode.branches, mode.current, cursor)
        return True

    def _checkout_highlighted(self) -> bool:
        branch = self._branch_mode().highlighted
        self._set_mode(STATUS_MODE)
        if branch is None:
            return False
        return self._emit(Checkout(branch))

    # Prompts

    def _open_prompt(self, purpose: PromptPurpose) -> bool:
        if purpose is PromptPurpose.NEW_BRANCH:
            history = self._branch_history
        else:
            history = self.histories[ModeKind.MINIBUFFER_COMMAND]
        self._set_mode(MinibufferCommandMode(LineEditor(history), purpose))
        return True

    def _open_shell_prompt(self) -> bool:
        self._set_mode(SubprocessPromptMode(LineEditor(self.histories[ModeKind.SUBPROCESS_PROMPT])))
        return True

    def _handle_prompt_key(self, mode: MinibufferCommandMode | SubprocessPromptMode, key: str) -> None:
        if key == "ESC":
            self._set_mode(STATUS_MODE)
            return
        if key != "ENTER":
            mode.editor.handle_key(key)
            return

        text = mode.editor.submit().strip()
        self._set_mode(STATUS_MODE)
        if not text:
            return
        if isinstance(mode, SubprocessPromptMode):
            self._emit(ShellCommand(text))
        elif mode.purpose is PromptPurpose.NEW_BRANCH:
            self._emit(CreateBranch(text))
        else:
            try:
                args = shlex.split(text)
            except ValueError as exc:
                self.messages.error(f"Cannot parse command: {exc}")
                return
            if args:
                self._emit(GitCommand(tuple(args)))

    # Refresh

    def replace_status(self, status: RepoStatus) -> None:
        """Swap in a freshly parsed snapshot, remapping cursor and marks."""
        row = self.current_row
        path = row.cursor_path() if row is not None else None
        file_index = row.file_index if row is not None else 0
        self.status = status
        self.expansion.observe(status)
        self.selection = self.selection.prune(status)
        self._rebuild_rows(path, file_index)

    def update_viewport(
        self,
        height: int,
        row_height: Callable[[int], int] | None = None,
    ) -> int:
        """Recompute the scroll offset for ``height`` visible rows."""
        self.viewport.height = max(1, height)
        return self.viewport.follow(self.cursor, len(self.rows), row_height)


__all__ = ["StateMachine"]
