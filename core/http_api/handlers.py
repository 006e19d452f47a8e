"""
Ledgerline HTTP API - Framework-Agnostic Handlers
=================================================
Async handler functions over contracts and injected dependencies.

Undo and redo are only offered for the caller's most recent eligible
entry: the latest undoable entry for the resource (or, failing that, for
the actor) must be the target, and a redo target must be the actor's
latest undone entry. Tenant-wide roles widen the actor check to entries
written by other users of the same tenant.
"""

from __future__ import annotations

import logging
from collections.abc import Mapping
from typing import Any

from core.audit.service import ActionLogListQuery, serialize_action_log
from core.commands.errors import CommandBusError
from core.commands.redo import resolve_redo_input
from core.commands.types import CommandLogMetadata
from core.container import ACTION_LOG_SERVICE
from core.crud.errors import CrudHttpError
from core.http_api.auth.resolver import build_runtime_context
from core.http_api.contracts import (
    ActionLogListHttpRequest,
    RedoHttpRequest,
    UndoHttpRequest,
)
from core.http_api.dependencies import HttpApiDependencies
from core.http_api.errors import (
    REDO_DATA_UNAVAILABLE,
    REDO_FAILED,
    REDO_NOT_AVAILABLE,
    UNDO_FAILED,
    UNDO_NOT_AVAILABLE,
    command_error_response,
    error_response,
    success_response,
)

logger = logging.getLogger("ledgerline.audit")

VIEW_TENANT_ROLE = "audit_logs.view_tenant"
UNDO_TENANT_ROLE = "audit_logs.undo_tenant"
REDO_TENANT_ROLE = "audit_logs.redo_tenant"


def _cache_aliases(context: Any) -> list[str]:
    if not isinstance(context, Mapping):
        return []
    raw = context.get("cacheAliases")
    if not isinstance(raw, list):
        return []
    return [value.strip() for value in raw if isinstance(value, str) and value.strip()]


def _entry_in_scope(entry, actor, *, tenant_wide: bool) -> bool:
    if entry.actor_user_id and entry.actor_user_id != actor.actor_id and not tenant_wide:
        return False
    if entry.tenant_id and actor.tenant_id and entry.tenant_id != actor.tenant_id:
        return False
    scoped_org = actor.organization_id
    if entry.organization_id and scoped_org and entry.organization_id != scoped_org:
        return False
    return True


# ══════════════════════════════════════════════════════════════
# LIST
# ══════════════════════════════════════════════════════════════

async def list_action_logs(
    request: ActionLogListHttpRequest,
    dependencies: HttpApiDependencies,
) -> dict[str, Any]:
    actor = request.actor
    container = dependencies.container_factory()
    logs = container.resolve(ACTION_LOG_SERVICE)
    can_view_tenant = actor.has_role(VIEW_TENANT_ROLE)

    organization_id = actor.organization_id
    if request.organization_id and (
        actor.organization_ids is None
        or request.organization_id in actor.organization_ids
    ):
        organization_id = request.organization_id

    actor_user_id = None if can_view_tenant else actor.actor_id
    if can_view_tenant and request.actor_user_id:
        actor_user_id = request.actor_user_id

    entries = await logs.list(
        ActionLogListQuery(
            tenant_id=actor.tenant_id,
            organization_id=organization_id,
            actor_user_id=actor_user_id,
            resource_kind=request.resource_kind,
            resource_id=request.resource_id,
            include_related=request.include_related,
            undoable_only=request.undoable_only,
            before=request.before,
            after=request.after,
            limit=request.limit,
        )
    )
    return success_response({
        "items": [serialize_action_log(entry) for entry in entries],
        "canViewTenant": can_view_tenant,
    })


# ══════════════════════════════════════════════════════════════
# UNDO
# ══════════════════════════════════════════════════════════════

async def post_undo(
    request: UndoHttpRequest,
    dependencies: HttpApiDependencies,
) -> dict[str, Any]:
    actor = request.actor
    undo_token = request.undo_token.strip()
    container = dependencies.container_factory()
    logs = container.resolve(ACTION_LOG_SERVICE)
    can_undo_tenant = actor.has_role(UNDO_TENANT_ROLE)
    not_available = error_response(
        code=UNDO_NOT_AVAILABLE,
        message="Undo token not available",
    )

    target = await logs.find_by_undo_token(undo_token)
    if target is None or target.execution_state != "done":
        return not_available
    if not _entry_in_scope(target, actor, tenant_wide=can_undo_tenant):
        return not_available

    lookup_actor_id = (
        (target.actor_user_id or actor.actor_id) if can_undo_tenant else actor.actor_id
    )
    latest = None
    if target.resource_kind or target.resource_id:
        latest = await logs.latest_undoable_for_resource(
            lookup_actor_id,
            tenant_id=actor.tenant_id,
            organization_id=actor.organization_id,
            resource_kind=target.resource_kind,
            resource_id=target.resource_id,
        )
    if latest is None:
        latest = await logs.latest_undoable_for_actor(
            lookup_actor_id,
            tenant_id=actor.tenant_id,
            organization_id=actor.organization_id,
        )
    if latest is None or latest.id != target.id:
        return not_available

    ctx = build_runtime_context(actor, container)
    try:
        await dependencies.command_bus.undo(undo_token, ctx)
    except (CommandBusError, CrudHttpError) as exc:
        logger.warning(f"Undo of log {target.id} rejected: {exc}")
        return command_error_response(exc)
    except Exception:
        logger.error(f"Undo of log {target.id} failed", exc_info=True)
        return error_response(code=UNDO_FAILED, message="Undo failed")
    return success_response({"logId": str(target.id)})


# ══════════════════════════════════════════════════════════════
# REDO
# ══════════════════════════════════════════════════════════════

async def post_redo(
    request: RedoHttpRequest,
    dependencies: HttpApiDependencies,
) -> dict[str, Any]:
    actor = request.actor
    container = dependencies.container_factory()
    logs = container.resolve(ACTION_LOG_SERVICE)
    can_redo_tenant = actor.has_role(REDO_TENANT_ROLE)
    not_available = error_response(
        code=REDO_NOT_AVAILABLE,
        message="Redo target not available",
    )

    entry = await logs.find_by_id(request.log_id.strip())
    if entry is None or entry.execution_state != "undone":
        return not_available
    if not _entry_in_scope(entry, actor, tenant_wide=can_redo_tenant):
        return not_available

    lookup_actor_id = (
        (entry.actor_user_id or actor.actor_id) if can_redo_tenant else actor.actor_id
    )
    latest_undone = await logs.latest_undone_for_actor(
        lookup_actor_id,
        tenant_id=actor.tenant_id,
        organization_id=actor.organization_id,
    )
    if latest_undone is None or latest_undone.id != entry.id:
        return not_available

    redo_input = resolve_redo_input(entry)
    if redo_input is None:
        return error_response(
            code=REDO_DATA_UNAVAILABLE,
            message="Redo data unavailable for this action",
        )

    aliases = _cache_aliases(entry.context_json)
    metadata = CommandLogMetadata(
        tenant_id=entry.tenant_id,
        organization_id=entry.organization_id,
        actor_user_id=actor.actor_id,
        action_label=entry.action_label,
        resource_kind=entry.resource_kind,
        resource_id=entry.resource_id,
        context={"cacheAliases": aliases} if aliases else None,
    )
    ctx = build_runtime_context(actor, container)
    try:
        executed = await dependencies.command_bus.execute(
            entry.command_id,
            input=redo_input,
            ctx=ctx,
            metadata=metadata,
        )
    except (CommandBusError, CrudHttpError) as exc:
        logger.warning(f"Redo of log {entry.id} rejected: {exc}")
        return command_error_response(exc)
    except Exception:
        logger.error(f"Redo of log {entry.id} failed", exc_info=True)
        return error_response(code=REDO_FAILED, message="Redo failed")

    await logs.mark_redone(entry.id)
    new_entry = executed.log_entry
    return success_response({
        "logId": str(new_entry.id) if new_entry is not None else None,
        "undoToken": new_entry.undo_token if new_entry is not None else None,
    })
