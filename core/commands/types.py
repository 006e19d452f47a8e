"""
Ledgerline Command Layer — Handler Contract & Value Types
===========================================================
Every mutating business operation is a named CommandHandler.

A handler implements execute() and optionally:
    prepare(input, ctx)                 → {"before": snapshot} | None
    capture_after(input, result, ctx)   → snapshot
    build_log(args)                     → CommandLogMetadata | mapping | None
    undo(input=..., ctx=..., log_entry=...)

Hooks may be coroutine functions or plain functions; the bus awaits any
awaitable they return. A handler is undoable iff is_undoable is not False
AND an undo hook is defined.

Snapshots, payloads and changes are opaque JSON-serializable blobs as far
as the bus is concerned.
"""

from __future__ import annotations

import inspect
import uuid
from dataclasses import dataclass, field, fields
from typing import Any, Awaitable, Mapping, Optional, TypeVar, Union

from core.context.runtime import CommandRuntimeContext

T = TypeVar("T")

REDO_INPUT_KEY = "__redoInput"


def default_undo_token() -> str:
    return str(uuid.uuid4())


async def resolve_maybe_awaitable(value: Union[T, Awaitable[T]]) -> T:
    if inspect.isawaitable(value):
        return await value
    return value


# ══════════════════════════════════════════════════════════════
# LOG METADATA
# ══════════════════════════════════════════════════════════════

@dataclass
class CommandLogMetadata:
    """
    Audit envelope returned by build_log().

    payload carries handler-specific undo data (conventionally under an
    "undo" key). context may carry "cacheAliases" hints for invalidation.
    """

    tenant_id: Optional[str] = None
    organization_id: Optional[str] = None
    actor_user_id: Optional[str] = None
    action_label: Optional[str] = None
    resource_kind: Optional[str] = None
    resource_id: Optional[str] = None
    parent_resource_kind: Optional[str] = None
    parent_resource_id: Optional[str] = None
    undo_token: Optional[str] = None
    payload: Any = None
    snapshot_before: Any = None
    snapshot_after: Any = None
    changes: Optional[dict[str, Any]] = None
    context: Optional[dict[str, Any]] = None

    @classmethod
    def from_value(cls, value: Any) -> Optional["CommandLogMetadata"]:
        if value is None:
            return None
        if isinstance(value, cls):
            return value
        if isinstance(value, Mapping):
            known = {f.name for f in fields(cls)}
            unknown = set(value) - known
            if unknown:
                raise ValueError(
                    f"Unknown log metadata fields: {sorted(unknown)}."
                )
            return cls(**dict(value))
        raise ValueError(
            f"Log metadata must be CommandLogMetadata or a mapping, "
            f"got {type(value).__name__}."
        )

    def to_dict(self) -> dict[str, Any]:
        return {f.name: getattr(self, f.name) for f in fields(self)}


def merge_metadata(
    primary: Optional[CommandLogMetadata],
    secondary: Optional[CommandLogMetadata],
) -> Optional[CommandLogMetadata]:
    """
    Merge caller-supplied (primary) and build_log (secondary) metadata.

    For every field the secondary value wins when it is not None; None in
    secondary falls back to primary. Returns None when both are absent.
    """
    if primary is None and secondary is None:
        return None
    merged = CommandLogMetadata()
    for f in fields(CommandLogMetadata):
        value = getattr(secondary, f.name) if secondary is not None else None
        if value is None and primary is not None:
            value = getattr(primary, f.name)
        setattr(merged, f.name, value)
    return merged


# ══════════════════════════════════════════════════════════════
# HOOK ARGUMENTS & RESULTS
# ══════════════════════════════════════════════════════════════

@dataclass(frozen=True)
class CommandLogBuilderArgs:
    input: Any
    result: Any
    ctx: CommandRuntimeContext
    snapshots: dict[str, Any] = field(default_factory=dict)


@dataclass(frozen=True)
class CommandExecuteResult:
    result: Any
    log_entry: Any = None


# ══════════════════════════════════════════════════════════════
# HANDLER BASE
# ══════════════════════════════════════════════════════════════

class CommandHandler:
    """
    Base class for command handlers.

    Subclasses set `id` and implement execute(); optional hooks are only
    treated as present when a subclass defines them.
    """

    id: str = ""
    is_undoable: Optional[bool] = None

    async def execute(self, input: Any, ctx: CommandRuntimeContext) -> Any:
        raise NotImplementedError


HOOK_NAMES = ("prepare", "execute", "capture_after", "build_log", "undo")


def get_hook(handler: Any, name: str):
    hook = getattr(handler, name, None)
    return hook if callable(hook) else None


def is_undoable(handler: Any) -> bool:
    return (
        getattr(handler, "is_undoable", None) is not False
        and get_hook(handler, "undo") is not None
    )
