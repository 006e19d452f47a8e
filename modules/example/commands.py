"""
Ledgerline Example Module — Todo Commands
===========================================
example.todos.create | example.todos.update | example.todos.delete

Snapshot shape (resource kind "example.todo"):
    {"id", "title", "is_done", "tenantId", "organizationId", "custom"?}

Undo:
- create → soft-delete the todo, reset its custom fields
- update → restore title/is_done and the previous custom values
- delete → clear the soft-delete marker (or re-create the row)
"""

from __future__ import annotations

from typing import Any, Optional

from core.commands import CommandHandler, CommandLogBuilderArgs, register_command
from core.commands.custom_fields import (
    build_custom_field_reset_map,
    diff_custom_field_changes,
    normalize_custom_field_values,
)
from core.commands.helpers import (
    build_changes,
    emit_crud_side_effects,
    emit_crud_undo_side_effects,
    parse_with_custom_fields,
    require_id,
    set_custom_fields_if_any,
)
from core.commands.undo import extract_undo_payload, log_entry_value
from core.container import DATA_ENGINE
from core.context import ensure_scope, resolve_undo_scope
from core.context.runtime import CommandRuntimeContext
from core.crud.errors import CrudHttpError
from core.data.custom_fields import load_custom_field_snapshot
from core.data.engine import CrudEventsConfig
from core.i18n import translate
from modules.example.models import Todo
from modules.example.validators import parse_todo_create, parse_todo_update, parse_uuid

RESOURCE_KIND = "example.todo"
CUSTOM_FIELD_ENTITY_ID = "example:todo"

TODO_CRUD_EVENTS = CrudEventsConfig(module="example", entity="todo")


def serialize_todo(todo: Todo, custom: Optional[dict[str, Any]] = None) -> dict[str, Any]:
    payload: dict[str, Any] = {
        "id": str(todo.id),
        "title": str(todo.title),
        "is_done": bool(todo.is_done),
        "tenantId": str(todo.tenant_id) if todo.tenant_id else None,
        "organizationId": str(todo.organization_id) if todo.organization_id else None,
    }
    if custom:
        payload["custom"] = custom
    return payload


async def load_todo_custom_snapshot(todo: Todo) -> dict[str, Any]:
    return await load_custom_field_snapshot(
        entity_id=CUSTOM_FIELD_ENTITY_ID,
        record_id=str(todo.id),
        tenant_id=todo.tenant_id or None,
        organization_id=todo.organization_id or None,
    )


def _identifiers(record_id: str, tenant_id: str, organization_id: str) -> dict[str, str]:
    return {
        "id": record_id,
        "tenantId": tenant_id,
        "organizationId": organization_id,
    }


def _snapshot(log_entry: Any, field: str, payload_key: str) -> Optional[dict[str, Any]]:
    snapshot = log_entry_value(log_entry, field)
    if snapshot:
        return snapshot
    payload = extract_undo_payload(log_entry)
    if isinstance(payload, dict):
        return payload.get(payload_key)
    return None


# ══════════════════════════════════════════════════════════════
# CREATE
# ══════════════════════════════════════════════════════════════

class CreateTodoCommand(CommandHandler):
    id = "example.todos.create"
    is_undoable = True

    async def execute(self, input: Any, ctx: CommandRuntimeContext) -> Todo:
        parsed, custom = parse_with_custom_fields(parse_todo_create, input)
        scope = ensure_scope(ctx)
        data_engine = ctx.container.resolve(DATA_ENGINE)

        todo = await data_engine.create_entity(
            Todo,
            {
                "title": parsed.title,
                "is_done": bool(parsed.is_done),
                "tenant_id": scope.tenant_id,
                "organization_id": scope.organization_id,
            },
        )
        await set_custom_fields_if_any(
            data_engine=data_engine,
            entity_id=CUSTOM_FIELD_ENTITY_ID,
            record_id=str(todo.id),
            tenant_id=scope.tenant_id,
            organization_id=scope.organization_id,
            values=custom,
        )
        emit_crud_side_effects(
            data_engine=data_engine,
            action="created",
            entity=todo,
            identifiers=_identifiers(str(todo.id), scope.tenant_id, scope.organization_id),
            events=TODO_CRUD_EVENTS,
        )
        return todo

    def capture_after(self, input: Any, result: Todo, ctx: CommandRuntimeContext) -> dict:
        return serialize_todo(result)

    async def build_log(self, args: CommandLogBuilderArgs) -> dict[str, Any]:
        todo = args.result
        after = serialize_todo(todo, await load_todo_custom_snapshot(todo))
        return {
            "action_label": translate("example.audit.todos.create", "Create todo"),
            "resource_kind": RESOURCE_KIND,
            "resource_id": str(todo.id),
            "tenant_id": after["tenantId"],
            "organization_id": after["organizationId"],
            "snapshot_after": after,
            "payload": {"undo": {"after": after}},
        }

    async def undo(self, *, input: Any, ctx: CommandRuntimeContext, log_entry: Any) -> None:
        snapshot = _snapshot(log_entry, "snapshot_after", "after") or {}
        record_id = snapshot.get("id") or log_entry_value(log_entry, "resource_id")
        if not record_id:
            raise CrudHttpError(400, {"error": "Missing todo id for undo"})
        scope = resolve_undo_scope(ctx, snapshot)
        data_engine = ctx.container.resolve(DATA_ENGINE)

        removed = await data_engine.delete_entity(
            Todo,
            {
                "id": record_id,
                "tenant_id": scope.tenant_id,
                "organization_id": scope.organization_id,
            },
            soft=True,
            soft_delete_field="deleted_at",
        )
        custom = snapshot.get("custom")
        if custom:
            values = normalize_custom_field_values(build_custom_field_reset_map(None, custom))
            await data_engine.set_custom_fields(
                entity_id=CUSTOM_FIELD_ENTITY_ID,
                record_id=record_id,
                tenant_id=scope.tenant_id,
                organization_id=scope.organization_id,
                values=values,
                notify=False,
            )
        emit_crud_undo_side_effects(
            data_engine=data_engine,
            action="deleted",
            entity=removed,
            identifiers=_identifiers(record_id, scope.tenant_id, scope.organization_id),
            events=TODO_CRUD_EVENTS,
        )


# ══════════════════════════════════════════════════════════════
# UPDATE
# ══════════════════════════════════════════════════════════════

class UpdateTodoCommand(CommandHandler):
    id = "example.todos.update"
    is_undoable = True

    async def prepare(self, input: Any, ctx: CommandRuntimeContext) -> dict:
        parsed, _ = parse_with_custom_fields(parse_todo_update, input)
        existing = await Todo.objects.filter(id=parsed.id, deleted_at__isnull=True).afirst()
        if existing is None:
            raise CrudHttpError(404, {"error": "Todo not found"})
        return {"before": serialize_todo(existing, await load_todo_custom_snapshot(existing))}

    async def execute(self, input: Any, ctx: CommandRuntimeContext) -> Todo:
        parsed, custom = parse_with_custom_fields(parse_todo_update, input)
        scope = ensure_scope(ctx)
        data_engine = ctx.container.resolve(DATA_ENGINE)

        def apply(todo: Todo) -> None:
            if parsed.title is not None:
                todo.title = parsed.title
            if parsed.is_done is not None:
                todo.is_done = parsed.is_done

        todo = await data_engine.update_entity(
            Todo,
            {
                "id": parsed.id,
                "tenant_id": scope.tenant_id,
                "organization_id": scope.organization_id,
                "deleted_at__isnull": True,
            },
            apply,
        )
        if todo is None:
            raise CrudHttpError(404, {"error": "Todo not found"})

        await set_custom_fields_if_any(
            data_engine=data_engine,
            entity_id=CUSTOM_FIELD_ENTITY_ID,
            record_id=str(todo.id),
            tenant_id=scope.tenant_id,
            organization_id=scope.organization_id,
            values=custom,
        )
        emit_crud_side_effects(
            data_engine=data_engine,
            action="updated",
            entity=todo,
            identifiers=_identifiers(str(todo.id), scope.tenant_id, scope.organization_id),
            events=TODO_CRUD_EVENTS,
        )
        return todo

    async def capture_after(self, input: Any, result: Todo, ctx: CommandRuntimeContext) -> dict:
        return serialize_todo(result, await load_todo_custom_snapshot(result))

    async def build_log(self, args: CommandLogBuilderArgs) -> dict[str, Any]:
        todo = args.result
        before = args.snapshots.get("before")
        after_custom = await load_todo_custom_snapshot(todo)
        after = serialize_todo(todo, after_custom)
        changes = build_changes(before, after, ("title", "is_done"))
        before_custom = before.get("custom") if before else None
        for key, diff in diff_custom_field_changes(before_custom, after_custom).items():
            changes[f"cf_{key}"] = diff
        return {
            "action_label": translate("example.audit.todos.update", "Update todo"),
            "resource_kind": RESOURCE_KIND,
            "resource_id": str(todo.id),
            "tenant_id": after["tenantId"],
            "organization_id": after["organizationId"],
            "changes": changes,
            "snapshot_before": before,
            "snapshot_after": after,
            "payload": {"undo": {"before": before, "after": after}},
        }

    async def undo(self, *, input: Any, ctx: CommandRuntimeContext, log_entry: Any) -> None:
        before = _snapshot(log_entry, "snapshot_before", "before")
        if not before or not before.get("id"):
            raise CrudHttpError(400, {"error": "Missing previous snapshot for undo"})
        after = _snapshot(log_entry, "snapshot_after", "after") or {}
        scope = resolve_undo_scope(ctx, before)
        data_engine = ctx.container.resolve(DATA_ENGINE)

        def restore(todo: Todo) -> None:
            todo.title = before["title"]
            todo.is_done = before["is_done"]
            todo.tenant_id = before.get("tenantId") or scope.tenant_id
            todo.organization_id = before.get("organizationId") or scope.organization_id

        updated = await data_engine.update_entity(
            Todo,
            {
                "id": before["id"],
                "tenant_id": scope.tenant_id,
                "organization_id": scope.organization_id,
                "deleted_at__isnull": True,
            },
            restore,
        )
        values = normalize_custom_field_values(
            build_custom_field_reset_map(before.get("custom"), after.get("custom"))
        )
        if values:
            await data_engine.set_custom_fields(
                entity_id=CUSTOM_FIELD_ENTITY_ID,
                record_id=before["id"],
                tenant_id=scope.tenant_id,
                organization_id=scope.organization_id,
                values=values,
                notify=False,
            )
        emit_crud_undo_side_effects(
            data_engine=data_engine,
            action="updated",
            entity=updated,
            identifiers=_identifiers(before["id"], scope.tenant_id, scope.organization_id),
            events=TODO_CRUD_EVENTS,
        )


# ══════════════════════════════════════════════════════════════
# DELETE
# ══════════════════════════════════════════════════════════════

class DeleteTodoCommand(CommandHandler):
    id = "example.todos.delete"
    is_undoable = True

    async def prepare(self, input: Any, ctx: CommandRuntimeContext) -> dict:
        record_id = parse_uuid(require_id(input, "Todo id required"))
        existing = await Todo.objects.filter(id=record_id, deleted_at__isnull=True).afirst()
        if existing is None:
            return {}
        return {"before": serialize_todo(existing, await load_todo_custom_snapshot(existing))}

    async def execute(self, input: Any, ctx: CommandRuntimeContext) -> Todo:
        record_id = parse_uuid(require_id(input, "Todo id required"))
        scope = ensure_scope(ctx)
        data_engine = ctx.container.resolve(DATA_ENGINE)
        todo = await data_engine.delete_entity(
            Todo,
            {
                "id": record_id,
                "tenant_id": scope.tenant_id,
                "organization_id": scope.organization_id,
                "deleted_at__isnull": True,
            },
            soft=True,
            soft_delete_field="deleted_at",
        )
        if todo is None:
            raise CrudHttpError(404, {"error": "Todo not found"})
        emit_crud_side_effects(
            data_engine=data_engine,
            action="deleted",
            entity=todo,
            identifiers=_identifiers(record_id, scope.tenant_id, scope.organization_id),
            events=TODO_CRUD_EVENTS,
        )
        return todo

    def build_log(self, args: CommandLogBuilderArgs) -> dict[str, Any]:
        before = args.snapshots.get("before")
        return {
            "action_label": translate("example.audit.todos.delete", "Delete todo"),
            "resource_kind": RESOURCE_KIND,
            "resource_id": parse_uuid(require_id(args.input, "Todo id required")),
            "tenant_id": before.get("tenantId") if before else None,
            "organization_id": before.get("organizationId") if before else None,
            "snapshot_before": before,
            "payload": {"undo": {"before": before}},
        }

    async def undo(self, *, input: Any, ctx: CommandRuntimeContext, log_entry: Any) -> None:
        before = _snapshot(log_entry, "snapshot_before", "before")
        if not before or not before.get("id"):
            raise CrudHttpError(400, {"error": "Missing snapshot for undo"})
        scope = resolve_undo_scope(ctx, before)
        data_engine = ctx.container.resolve(DATA_ENGINE)
        tenant_id = before.get("tenantId") or scope.tenant_id
        organization_id = before.get("organizationId") or scope.organization_id

        restored = await data_engine.find_entity(
            Todo,
            {
                "id": before["id"],
                "tenant_id": scope.tenant_id,
                "organization_id": scope.organization_id,
            },
        )
        if restored is not None:
            restored.deleted_at = None
            restored.title = before["title"]
            restored.is_done = before["is_done"]
            restored.tenant_id = tenant_id
            restored.organization_id = organization_id
            await restored.asave()
        else:
            restored = await data_engine.create_entity(
                Todo,
                {
                    "id": before["id"],
                    "title": before["title"],
                    "is_done": before["is_done"],
                    "tenant_id": tenant_id,
                    "organization_id": organization_id,
                },
            )
        custom = before.get("custom")
        if custom:
            await data_engine.set_custom_fields(
                entity_id=CUSTOM_FIELD_ENTITY_ID,
                record_id=before["id"],
                tenant_id=scope.tenant_id,
                organization_id=scope.organization_id,
                values=normalize_custom_field_values(custom),
                notify=False,
            )
        emit_crud_undo_side_effects(
            data_engine=data_engine,
            action="updated",
            entity=restored,
            identifiers=_identifiers(before["id"], scope.tenant_id, scope.organization_id),
            events=TODO_CRUD_EVENTS,
        )


def register_commands() -> None:
    for handler in (CreateTodoCommand(), UpdateTodoCommand(), DeleteTodoCommand()):
        register_command(handler, replace=True)
