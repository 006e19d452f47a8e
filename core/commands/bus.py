"""
Ledgerline Command Layer — Command Bus
========================================
Orchestrates the command lifecycle around every mutating operation.

Execute flow:
    1. Resolve handler by id                → HandlerNotFound
    2. prepare(input, ctx)                  → {"before": snapshot}
    3. execute(input, ctx)                  → result
    4. capture_after(input, result, ctx)    → "after" snapshot
    5. build_log(args)                      → CommandLogMetadata
    6. Merge metadata, mint undo token, backfill snapshots, infer changes
    7. Persist ActionLog                    (audit store)
    8. Invalidate cached read views         (best-effort)
    9. Flush queued side effects            (best-effort)

Undo flow:
    1. Resolve ActionLog by undo token      → UndoTokenNotFound
    2. Check entry tenant/organization      → ScopeViolation
    3. Entry must still be "done"           → UndoTokenNotFound
    4. Resolve handler, require undo hook   → NotUndoable
    5. undo(input=command_payload, ctx=..., log_entry=...)
    6. Mark the entry undone, invalidate, flush

The CommandBus:
- Awaits each step in order; the audit entry is durable before caches
  are invalidated
- Never catches hook errors (prepare / execute / undo)
- Swallows only cache invalidation and flush failures

The CommandBus does NOT:
- Roll back partial writes of a failed execute
- Log the undo itself (the state transition is the record)
- Retry, lock or version-check rows
"""

from __future__ import annotations

import logging
from collections.abc import Mapping
from typing import Any, Optional

from core.caching.crud import (
    canonicalize_resource_tag,
    debug_crud_cache,
    derive_resource_from_command_id,
    invalidate_crud_cache,
    pick_first_identifier,
)
from core.commands.changes import derive_changes_from_snapshots
from core.commands.errors import (
    HandlerNotFound,
    NotUndoable,
    UndoTokenNotFound,
)
from core.commands.redo import wrap_redo_payload
from core.commands.registry import CommandRegistry, command_registry
from core.commands.types import (
    CommandExecuteResult,
    CommandLogBuilderArgs,
    CommandLogMetadata,
    default_undo_token,
    get_hook,
    is_undoable,
    merge_metadata,
    resolve_maybe_awaitable,
)
from core.container import ACTION_LOG_SERVICE, DATA_ENGINE, ServiceNotRegistered
from core.context import scope_guard
from core.context.runtime import CommandRuntimeContext

logger = logging.getLogger("ledgerline.commands")

# The audit subsystem's own resources are never audited.
SKIPPED_ACTION_LOG_RESOURCE_KINDS = frozenset({
    "audit_logs.access",
    "audit_logs.action",
    "dashboards.layout",
    "dashboards.user_widgets",
    "dashboards.role_widgets",
})

_RESULT_ID_KEYS = ("entityId", "id", "recordId")
_INPUT_ID_KEYS = ("id", "entityId", "recordId")


# ══════════════════════════════════════════════════════════════
# IDENTIFIER LOOKUP
# ══════════════════════════════════════════════════════════════

def _read(source: Any, key: str) -> Any:
    """Key access for mappings, attribute access for objects."""
    if source is None:
        return None
    if isinstance(source, Mapping):
        return source.get(key)
    return getattr(source, key, None)


def _nested_entity(source: Any) -> Any:
    return _read(source, "entity")


def _normalize_cache_aliases(context: Any) -> list[str]:
    raw = _read(context, "cacheAliases")
    if not isinstance(raw, (list, tuple)):
        return []
    aliases: list[str] = []
    for value in raw:
        canonical = canonicalize_resource_tag(value)
        if canonical and canonical not in aliases:
            aliases.append(canonical)
    return aliases


# ══════════════════════════════════════════════════════════════
# COMMAND BUS
# ══════════════════════════════════════════════════════════════

class CommandBus:
    """
    Executes and reverses registered commands.

    Stateless apart from the registry it reads; one instance may serve
    concurrent invocations, each with its own runtime context.
    """

    def __init__(self, registry: Optional[CommandRegistry] = None):
        self._registry = registry or command_registry

    def _resolve_handler(self, command_id: str) -> Any:
        handler = self._registry.get(command_id)
        if handler is None:
            raise HandlerNotFound(command_id)
        return handler

    # ── Execute ───────────────────────────────────────────────

    async def execute(
        self,
        command_id: str,
        *,
        input: Any,
        ctx: CommandRuntimeContext,
        metadata: Any = None,
    ) -> CommandExecuteResult:
        handler = self._resolve_handler(command_id)

        prepare = get_hook(handler, "prepare")
        prepared = await resolve_maybe_awaitable(prepare(input, ctx)) if prepare else None
        snapshots: dict[str, Any] = dict(prepared or {})

        result = await resolve_maybe_awaitable(handler.execute(input, ctx))

        capture_after = get_hook(handler, "capture_after")
        after = (
            await resolve_maybe_awaitable(capture_after(input, result, ctx))
            if capture_after
            else None
        )
        snapshots["after"] = after

        build_log = get_hook(handler, "build_log")
        log_meta = None
        if build_log:
            built = await resolve_maybe_awaitable(
                build_log(
                    CommandLogBuilderArgs(
                        input=input,
                        result=result,
                        ctx=ctx,
                        snapshots=snapshots,
                    )
                )
            )
            log_meta = CommandLogMetadata.from_value(built)

        merged = merge_metadata(CommandLogMetadata.from_value(metadata), log_meta)

        if is_undoable(handler):
            if merged is None:
                merged = CommandLogMetadata()
            if not merged.undo_token:
                merged.undo_token = default_undo_token()
            if not merged.actor_user_id and ctx.auth is not None:
                merged.actor_user_id = ctx.auth.sub

        before = snapshots.get("before")
        if merged is None and (after is not None or before is not None):
            merged = CommandLogMetadata()

        if merged is not None:
            if after is not None and merged.snapshot_after is None:
                merged.snapshot_after = after
            if before is not None and merged.snapshot_before is None:
                merged.snapshot_before = before
            if not merged.changes:
                merged.changes = derive_changes_from_snapshots(
                    merged.snapshot_before,
                    merged.snapshot_after,
                )

        log_entry = await self._persist_log(command_id, input, ctx, merged)

        try:
            await self._invalidate_after_execute(command_id, input, result, ctx, merged)
        except Exception:
            debug_crud_cache(
                "invalidate:error",
                {"command": command_id, "phase": "execute"},
            )
            logger.debug(
                f"Cache invalidation failed after {command_id}",
                exc_info=True,
            )

        await self._flush(ctx, command_id)
        return CommandExecuteResult(result=result, log_entry=log_entry)

    async def _persist_log(
        self,
        command_id: str,
        input: Any,
        ctx: CommandRuntimeContext,
        metadata: Optional[CommandLogMetadata],
    ) -> Any:
        if metadata is None:
            return None
        if metadata.resource_kind in SKIPPED_ACTION_LOG_RESOURCE_KINDS:
            return None
        try:
            service = ctx.container.resolve(ACTION_LOG_SERVICE)
        except ServiceNotRegistered:
            logger.debug(f"No action log service; {command_id} not audited")
            return None

        auth = ctx.auth
        tenant_id = metadata.tenant_id or (auth.tenant_id if auth else None)
        organization_id = (
            metadata.organization_id
            or ctx.selected_organization_id
            or (auth.org_id if auth else None)
        )
        actor_user_id = metadata.actor_user_id or (auth.sub if auth else None)

        return await resolve_maybe_awaitable(
            service.log({
                "tenant_id": tenant_id,
                "organization_id": organization_id,
                "actor_user_id": actor_user_id,
                "command_id": command_id,
                "action_label": metadata.action_label,
                "resource_kind": metadata.resource_kind,
                "resource_id": metadata.resource_id,
                "parent_resource_kind": metadata.parent_resource_kind,
                "parent_resource_id": metadata.parent_resource_id,
                "undo_token": metadata.undo_token,
                "command_payload": wrap_redo_payload(metadata.payload, input),
                "snapshot_before": metadata.snapshot_before,
                "snapshot_after": metadata.snapshot_after,
                "changes": metadata.changes,
                "context": metadata.context,
            })
        )

    async def _invalidate_after_execute(
        self,
        command_id: str,
        input: Any,
        result: Any,
        ctx: CommandRuntimeContext,
        metadata: Optional[CommandLogMetadata],
    ) -> None:
        metadata = metadata or CommandLogMetadata()
        derived = derive_resource_from_command_id(command_id)
        resource = metadata.resource_kind or derived
        if not resource:
            return

        result_entity = _nested_entity(result)
        input_entity = _nested_entity(input)

        record_id = pick_first_identifier(
            metadata.resource_id,
            *(_read(result, key) for key in _RESULT_ID_KEYS),
            _read(result_entity, "id"),
            *(_read(input, key) for key in _INPUT_ID_KEYS),
            _read(input_entity, "id"),
        )
        organization_id = pick_first_identifier(
            metadata.organization_id,
            _read(result, "organizationId"),
            _read(result_entity, "organizationId"),
            _read(result_entity, "organization_id"),
            _read(input, "organizationId"),
            _read(input_entity, "organizationId"),
            ctx.selected_organization_id,
            ctx.auth.org_id if ctx.auth else None,
        )
        tenant_id = pick_first_identifier(
            metadata.tenant_id,
            _read(result, "tenantId"),
            _read(result_entity, "tenantId"),
            _read(result_entity, "tenant_id"),
            _read(input, "tenantId"),
            _read(input_entity, "tenantId"),
            ctx.auth.tenant_id if ctx.auth else None,
        )

        aliases = _normalize_cache_aliases(metadata.context)
        if derived and derived not in aliases:
            aliases.append(derived)

        await invalidate_crud_cache(
            ctx.container,
            resource,
            {"id": record_id, "organizationId": organization_id, "tenantId": tenant_id},
            metadata.tenant_id or (ctx.auth.tenant_id if ctx.auth else None),
            f"command:{command_id}:execute",
            aliases,
        )

    async def _flush(self, ctx: CommandRuntimeContext, command_id: str) -> None:
        try:
            data_engine = ctx.container.resolve(DATA_ENGINE)
            await resolve_maybe_awaitable(data_engine.flush_entity_changes())
        except Exception:
            logger.debug(
                f"Side-effect flush failed after {command_id}",
                exc_info=True,
            )

    # ── Undo ──────────────────────────────────────────────────

    async def undo(self, undo_token: str, ctx: CommandRuntimeContext) -> None:
        """
        Reverse the command that issued `undo_token`.

        Raises:
            UndoTokenNotFound: Token unknown, or the entry is no longer "done".
            ScopeViolation:    Entry belongs to another tenant/organization.
            HandlerNotFound:   Command id no longer registered.
            NotUndoable:       Handler has no undo hook.
        """
        service = ctx.container.resolve(ACTION_LOG_SERVICE)
        log_entry = await resolve_maybe_awaitable(service.find_by_undo_token(undo_token))
        if log_entry is None:
            raise UndoTokenNotFound(undo_token)

        scope_guard.ensure_tenant_matches(ctx, _read(log_entry, "tenant_id"))
        scope_guard.ensure_organization_allowed(ctx, _read(log_entry, "organization_id"))

        state = _read(log_entry, "execution_state")
        if state is not None and state != "done":
            raise UndoTokenNotFound(undo_token)

        command_id = _read(log_entry, "command_id")
        handler = self._resolve_handler(command_id)
        if not is_undoable(handler):
            raise NotUndoable(command_id)

        await resolve_maybe_awaitable(
            handler.undo(
                input=_read(log_entry, "command_payload"),
                ctx=ctx,
                log_entry=log_entry,
            )
        )

        await resolve_maybe_awaitable(service.mark_undone(_read(log_entry, "id")))
        logger.info(f"Command {command_id} undone (log {_read(log_entry, 'id')})")

        try:
            await self._invalidate_after_undo(command_id, ctx, log_entry)
        except Exception:
            logger.debug(
                f"Cache invalidation failed after undo of {command_id}",
                exc_info=True,
            )

        await self._flush(ctx, command_id)

    async def _invalidate_after_undo(
        self,
        command_id: str,
        ctx: CommandRuntimeContext,
        log_entry: Any,
    ) -> None:
        derived = derive_resource_from_command_id(command_id)
        resource = _read(log_entry, "resource_kind") or derived
        if not resource:
            return
        aliases = _normalize_cache_aliases(_read(log_entry, "context_json"))
        if derived and derived not in aliases:
            aliases.append(derived)
        tenant_id = _read(log_entry, "tenant_id") or (ctx.auth.tenant_id if ctx.auth else None)
        await invalidate_crud_cache(
            ctx.container,
            resource,
            {
                "id": _read(log_entry, "resource_id"),
                "organizationId": _read(log_entry, "organization_id") or ctx.default_organization_id,
                "tenantId": tenant_id,
            },
            tenant_id,
            f"command:{command_id}:undo",
            aliases,
        )
