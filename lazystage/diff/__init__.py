"""Diff model, status/diff parsing, selections, and patch synthesis."""

from .model import (
    BranchInfo,
    EMPTY_STATUS,
    FileEntry,
    FileKind,
    HeadCommit,
    Hunk,
    Line,
    LineKind,
    RepoStatus,
    Section,
)
from .parser import ParseError, build_repo_status, parse_diff
from .patch import (
    ActionPlan,
    EmptySelection,
    InvalidHunkState,
    PatchAction,
    SynthesisError,
    plan_action,
    synthesize_patch,
)
from .selection import EMPTY_SELECTION, Selection, SelectionRef

__all__ = [
    "ActionPlan",
    "BranchInfo",
    "EMPTY_SELECTION",
    "EMPTY_STATUS",
    "EmptySelection",
    "FileEntry",
    "FileKind",
    "HeadCommit",
    "Hunk",
    "InvalidHunkState",
    "Line",
    "LineKind",
    "ParseError",
    "PatchAction",
    "RepoStatus",
    "Section",
    "Selection",
    "SelectionRef",
    "SynthesisError",
    "build_repo_status",
    "parse_diff",
    "plan_action",
    "synthesize_patch",
]
