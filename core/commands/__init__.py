"""
Ledgerline Command Layer — Execution & Undo Core
==================================================
Every mutating business operation runs as a registered command.
Every successful command leaves one action log entry.
Every undoable entry carries a unique undo token.

Handler → Bus → Audit log → Cache invalidation → Side effects.
"""

from core.commands.errors import (
    CommandBusError,
    DuplicateCommandError,
    HandlerNotFound,
    NotUndoable,
    ScopeViolation,
    UndoTokenNotFound,
)
from core.commands.types import (
    REDO_INPUT_KEY,
    CommandExecuteResult,
    CommandHandler,
    CommandLogBuilderArgs,
    CommandLogMetadata,
    default_undo_token,
    is_undoable,
    merge_metadata,
)
from core.commands.changes import (
    build_changes,
    build_record_changes,
    deep_equal,
    derive_changes_from_snapshots,
)
from core.commands.registry import (
    clear_commands,
    command_registry,
    get_command,
    list_command_ids,
    register_command,
    unregister_command,
)
from core.commands.undo import extract_undo_payload
from core.commands.redo import resolve_redo_input, wrap_redo_payload
from core.commands.bus import CommandBus

__all__ = [
    # ── Errors ────────────────────────────────────────────────
    "CommandBusError",
    "DuplicateCommandError",
    "HandlerNotFound",
    "NotUndoable",
    "ScopeViolation",
    "UndoTokenNotFound",
    # ── Types ─────────────────────────────────────────────────
    "REDO_INPUT_KEY",
    "CommandExecuteResult",
    "CommandHandler",
    "CommandLogBuilderArgs",
    "CommandLogMetadata",
    "default_undo_token",
    "is_undoable",
    "merge_metadata",
    # ── Changes ───────────────────────────────────────────────
    "build_changes",
    "build_record_changes",
    "deep_equal",
    "derive_changes_from_snapshots",
    # ── Registry ──────────────────────────────────────────────
    "clear_commands",
    "command_registry",
    "get_command",
    "list_command_ids",
    "register_command",
    "unregister_command",
    # ── Undo / Redo ───────────────────────────────────────────
    "extract_undo_payload",
    "resolve_redo_input",
    "wrap_redo_payload",
    # ── Bus ───────────────────────────────────────────────────
    "CommandBus",
]
