"""
Ledgerline Directory Module — Organization Commands
=====================================================
directory.organizations.create | directory.organizations.update |
directory.organizations.delete

Execute hooks return an OrganizationMutation: the organization plus the
parent of every child the command touched, before and after. build_log
turns that into the undo payload, so nothing is stashed on the entity.

View snapshot (resource kind "directory.organization"):
    {"id", "tenantId", "name", "isActive", "parentId",
     "createdAt", "updatedAt", "custom"?}

Derived hierarchy lists stay out of the view snapshot: they follow from
parentId, and a re-parent would otherwise drag every ancestor and
descendant list into the change diff.

Undo payload:
    {"undo": {"before"?, "after"?, "childrenBefore"?}}
    each snapshot: {"id", "tenantId", "name", "isActive", "parentId",
                    "childParents": [{"childId", "parentId"}], "custom"?}
"""

from __future__ import annotations

import logging
from collections.abc import Iterable
from dataclasses import dataclass, field
from typing import Any, Optional

from core.commands import CommandHandler, CommandLogBuilderArgs, register_command
from core.commands.custom_fields import (
    build_custom_field_reset_map,
    normalize_custom_field_values,
)
from core.commands.helpers import (
    emit_crud_side_effects,
    emit_crud_undo_side_effects,
    parse_with_custom_fields,
    require_id,
    require_tenant_scope,
    set_custom_fields_if_any,
)
from core.commands.undo import extract_undo_payload
from core.container import DATA_ENGINE
from core.context import ensure_tenant_matches
from core.context.runtime import CommandRuntimeContext
from core.crud.errors import CrudHttpError
from core.data.custom_fields import load_custom_field_snapshot
from core.data.engine import CrudEventsConfig
from core.i18n import translate
from modules.directory.hierarchy import rebuild_hierarchy_for_tenant
from modules.directory.models import Organization
from modules.directory.validators import (
    parse_organization_create,
    parse_organization_update,
    parse_uuid,
)

logger = logging.getLogger("ledgerline.directory")

RESOURCE_KIND = "directory.organization"
CUSTOM_FIELD_ENTITY_ID = "directory:organization"

ORGANIZATION_CRUD_EVENTS = CrudEventsConfig(module="directory", entity="organization")

ChildParents = list[dict[str, Optional[str]]]


@dataclass(frozen=True)
class OrganizationMutation:
    """Result of an organization command."""

    entity: Organization
    child_parents_before: ChildParents = field(default_factory=list)
    child_parents_after: ChildParents = field(default_factory=list)


# ══════════════════════════════════════════════════════════════
# SNAPSHOTS
# ══════════════════════════════════════════════════════════════

def _iso(value: Any) -> Optional[str]:
    return value.isoformat() if value else None


def serialize_organization(
    org: Organization,
    custom: Optional[dict[str, Any]] = None,
) -> dict[str, Any]:
    payload: dict[str, Any] = {
        "id": str(org.id),
        "tenantId": str(org.tenant_id) if org.tenant_id else None,
        "name": org.name,
        "isActive": bool(org.is_active),
        "parentId": str(org.parent_id) if org.parent_id else None,
        "createdAt": _iso(org.created_at),
        "updatedAt": _iso(org.updated_at),
    }
    if custom:
        payload["custom"] = custom
    return payload


def build_undo_snapshot(
    org: Organization,
    child_parents: ChildParents,
    custom: Optional[dict[str, Any]] = None,
) -> dict[str, Any]:
    snapshot: dict[str, Any] = {
        "id": str(org.id),
        "tenantId": str(org.tenant_id) if org.tenant_id else None,
        "name": org.name,
        "isActive": bool(org.is_active),
        "parentId": str(org.parent_id) if org.parent_id else None,
        "childParents": [
            {"childId": str(entry["childId"]), "parentId": entry.get("parentId")}
            for entry in child_parents
        ],
    }
    if custom:
        snapshot["custom"] = custom
    return snapshot


async def load_organization_custom_snapshot(org: Organization) -> dict[str, Any]:
    return await load_custom_field_snapshot(
        entity_id=CUSTOM_FIELD_ENTITY_ID,
        record_id=str(org.id),
        tenant_id=org.tenant_id or None,
        organization_id=str(org.id),
    )


async def _load_live(record_id: str) -> Optional[Organization]:
    return await Organization.objects.filter(id=record_id, deleted_at__isnull=True).afirst()


def _identifiers(record_id: str, tenant_id: str) -> dict[str, str]:
    return {"id": record_id, "tenantId": tenant_id, "organizationId": record_id}


def _undo_payload(log_entry: Any) -> dict[str, Any]:
    payload = extract_undo_payload(log_entry)
    return payload if isinstance(payload, dict) else {}


def _undo_tenant(ctx: CommandRuntimeContext, snapshot: dict[str, Any]) -> str:
    tenant_id = snapshot.get("tenantId")
    if not tenant_id:
        raise CrudHttpError(400, {"error": "Missing tenant for organization undo"})
    ensure_tenant_matches(ctx, tenant_id)
    return str(tenant_id)


# ══════════════════════════════════════════════════════════════
# CHILD/PARENT BOOKKEEPING
# ══════════════════════════════════════════════════════════════

def normalize_child_ids(ids: Iterable[str], exclude: Iterable[Optional[str]]) -> list[str]:
    excluded = {value for value in exclude if value}
    result: list[str] = []
    for value in ids:
        value = str(value)
        if value and value not in excluded and value not in result:
            result.append(value)
    return result


async def _live_children(tenant_id: str, ids: Iterable[str]) -> list[Organization]:
    return [
        org
        async for org in Organization.objects.filter(
            tenant_id=tenant_id,
            deleted_at__isnull=True,
            id__in=list(ids),
        )
    ]


async def ensure_parent_exists(tenant_id: str, parent_id: Optional[str]) -> None:
    if not parent_id:
        return
    exists = await Organization.objects.filter(
        id=parent_id,
        tenant_id=tenant_id,
        deleted_at__isnull=True,
    ).aexists()
    if not exists:
        raise CrudHttpError(400, {"error": "Parent not found"})


async def ensure_children_valid(tenant_id: str, child_ids: list[str]) -> list[Organization]:
    if not child_ids:
        return []
    children = await _live_children(tenant_id, child_ids)
    if len(children) != len(child_ids):
        raise CrudHttpError(400, {"error": "Invalid child assignment"})
    return children


async def load_child_parent_snapshots(
    tenant_id: Optional[str],
    child_ids: Iterable[str],
) -> ChildParents:
    if not tenant_id:
        return []
    ids = normalize_child_ids(child_ids, ())
    if not ids:
        return []
    parents = {
        str(child.id): (str(child.parent_id) if child.parent_id else None)
        for child in await _live_children(tenant_id, ids)
    }
    return [
        {"childId": child_id, "parentId": parents[child_id]}
        for child_id in ids
        if child_id in parents
    ]


async def _set_parent(child: Organization, parent_id: Optional[str]) -> None:
    child.parent_id = parent_id
    await child.asave(update_fields=["parent_id", "updated_at"])


async def assign_children(tenant_id: str, record_id: str, child_ids: Iterable[str]) -> None:
    targets = [child_id for child_id in child_ids if child_id != record_id]
    if not targets:
        return
    for child in await _live_children(tenant_id, targets):
        if child.parent_id != record_id:
            await _set_parent(child, record_id)


async def clear_removed_children(tenant_id: str, record_id: str, keep: set[str]) -> None:
    async for child in Organization.objects.filter(
        tenant_id=tenant_id,
        parent_id=record_id,
        deleted_at__isnull=True,
    ):
        if str(child.id) not in keep:
            await _set_parent(child, None)


async def restore_child_parents(tenant_id: str, snapshots: Optional[ChildParents]) -> None:
    if not snapshots:
        return
    desired = {
        str(entry["childId"]): entry.get("parentId")
        for entry in snapshots
        if entry.get("childId")
    }
    for child in await _live_children(tenant_id, desired):
        target = desired[str(child.id)]
        if child.parent_id != target:
            await _set_parent(child, target)


# ══════════════════════════════════════════════════════════════
# CREATE
# ══════════════════════════════════════════════════════════════

class CreateOrganizationCommand(CommandHandler):
    id = "directory.organizations.create"
    is_undoable = True

    async def execute(self, input: Any, ctx: CommandRuntimeContext) -> OrganizationMutation:
        parsed, custom = parse_with_custom_fields(parse_organization_create, input)
        tenant_id = require_tenant_scope(ctx.tenant_id, parsed.tenant_id)
        parent_id = parsed.parent_id
        await ensure_parent_exists(tenant_id, parent_id)

        child_ids = normalize_child_ids(parsed.child_ids, (parent_id,))
        await ensure_children_valid(tenant_id, child_ids)
        child_parents_before = await load_child_parent_snapshots(tenant_id, child_ids)

        data_engine = ctx.container.resolve(DATA_ENGINE)
        org = await data_engine.create_entity(
            Organization,
            {
                "tenant_id": tenant_id,
                "name": parsed.name,
                "is_active": True if parsed.is_active is None else parsed.is_active,
                "parent_id": parent_id,
            },
        )
        record_id = str(org.id)
        await assign_children(tenant_id, record_id, child_ids)
        child_parents_after = await load_child_parent_snapshots(tenant_id, child_ids)

        await set_custom_fields_if_any(
            data_engine=data_engine,
            entity_id=CUSTOM_FIELD_ENTITY_ID,
            record_id=record_id,
            tenant_id=tenant_id,
            organization_id=record_id,
            values=custom,
        )
        await rebuild_hierarchy_for_tenant(tenant_id)
        emit_crud_side_effects(
            data_engine=data_engine,
            action="created",
            entity=org,
            identifiers=_identifiers(record_id, tenant_id),
            events=ORGANIZATION_CRUD_EVENTS,
        )
        return OrganizationMutation(
            entity=org,
            child_parents_before=child_parents_before,
            child_parents_after=child_parents_after,
        )

    async def capture_after(
        self,
        input: Any,
        result: OrganizationMutation,
        ctx: CommandRuntimeContext,
    ) -> dict:
        org = result.entity
        return serialize_organization(org, await load_organization_custom_snapshot(org))

    async def build_log(self, args: CommandLogBuilderArgs) -> dict[str, Any]:
        mutation: OrganizationMutation = args.result
        org = mutation.entity
        custom = await load_organization_custom_snapshot(org)
        return {
            "action_label": translate("directory.audit.organizations.create", "Create organization"),
            "resource_kind": RESOURCE_KIND,
            "resource_id": str(org.id),
            "tenant_id": args.ctx.tenant_id or org.tenant_id,
            "snapshot_after": serialize_organization(org, custom),
            "payload": {
                "undo": {
                    "after": build_undo_snapshot(org, mutation.child_parents_after, custom),
                    "childrenBefore": mutation.child_parents_before,
                },
            },
        }

    async def undo(self, *, input: Any, ctx: CommandRuntimeContext, log_entry: Any) -> None:
        payload = _undo_payload(log_entry)
        after = payload.get("after")
        if not after or not after.get("id"):
            raise CrudHttpError(400, {"error": "Missing organization snapshot for undo"})
        tenant_id = _undo_tenant(ctx, after)
        data_engine = ctx.container.resolve(DATA_ENGINE)

        await restore_child_parents(tenant_id, payload.get("childrenBefore"))
        if after.get("custom"):
            values = normalize_custom_field_values(
                build_custom_field_reset_map(None, after["custom"])
            )
            await data_engine.set_custom_fields(
                entity_id=CUSTOM_FIELD_ENTITY_ID,
                record_id=after["id"],
                tenant_id=tenant_id,
                organization_id=after["id"],
                values=values,
                notify=False,
            )
        removed = await data_engine.delete_entity(
            Organization,
            {"id": after["id"], "tenant_id": tenant_id, "deleted_at__isnull": True},
            soft=False,
        )
        await rebuild_hierarchy_for_tenant(tenant_id)
        emit_crud_undo_side_effects(
            data_engine=data_engine,
            action="deleted",
            entity=removed,
            identifiers=_identifiers(after["id"], tenant_id),
            events=ORGANIZATION_CRUD_EVENTS,
        )


# ══════════════════════════════════════════════════════════════
# UPDATE
# ══════════════════════════════════════════════════════════════

class UpdateOrganizationCommand(CommandHandler):
    id = "directory.organizations.update"
    is_undoable = True

    async def prepare(self, input: Any, ctx: CommandRuntimeContext) -> dict:
        parsed, _ = parse_with_custom_fields(parse_organization_update, input)
        current = await _load_live(parsed.id)
        if current is None:
            raise CrudHttpError(404, {"error": "Organization not found"})
        touched = set(map(str, current.child_ids or []))
        touched.update(parsed.child_ids or ())
        child_parents = await load_child_parent_snapshots(current.tenant_id, touched)
        custom = await load_organization_custom_snapshot(current)
        return {
            "before": serialize_organization(current, custom),
            "before_undo": build_undo_snapshot(current, child_parents, custom),
        }

    async def execute(self, input: Any, ctx: CommandRuntimeContext) -> OrganizationMutation:
        parsed, custom = parse_with_custom_fields(parse_organization_update, input)
        existing = await _load_live(parsed.id)
        if existing is None:
            raise CrudHttpError(404, {"error": "Organization not found"})
        tenant_id = require_tenant_scope(ctx.tenant_id, parsed.tenant_id or existing.tenant_id)

        parent_id = parsed.parent_id if parsed.parent_set else existing.parent_id
        if parent_id and parsed.parent_set:
            if parent_id == parsed.id:
                raise CrudHttpError(400, {"error": "Organization cannot be its own parent"})
            if parent_id in (existing.descendant_ids or []):
                raise CrudHttpError(400, {"error": "Cannot assign descendant as parent"})
            await ensure_parent_exists(tenant_id, parent_id)

        desired: Optional[list[str]] = None
        if parsed.child_ids is not None:
            desired = normalize_child_ids(parsed.child_ids, (parsed.id,))
            if parent_id and parent_id in desired:
                raise CrudHttpError(400, {"error": "Child cannot equal parent"})
            ancestors = set(existing.ancestor_ids or [])
            if any(child_id in ancestors for child_id in desired):
                raise CrudHttpError(400, {"error": "Cannot assign ancestor as child"})
            for child in await ensure_children_valid(tenant_id, desired):
                if parsed.id in (child.descendant_ids or []):
                    raise CrudHttpError(400, {"error": "Cannot assign descendant cycle"})

        touched = set(map(str, existing.child_ids or []))
        touched.update(desired or ())
        child_parents_before = await load_child_parent_snapshots(tenant_id, touched)

        def apply(org: Organization) -> None:
            if parsed.name is not None:
                org.name = parsed.name
            if parsed.is_active is not None:
                org.is_active = parsed.is_active
            org.parent_id = parent_id

        data_engine = ctx.container.resolve(DATA_ENGINE)
        org = await data_engine.update_entity(
            Organization,
            {"id": parsed.id, "tenant_id": tenant_id, "deleted_at__isnull": True},
            apply,
        )
        if org is None:
            raise CrudHttpError(404, {"error": "Organization not found"})

        record_id = str(org.id)
        if desired is not None:
            await clear_removed_children(tenant_id, record_id, set(desired))
            await assign_children(tenant_id, record_id, desired)
        child_parents_after = await load_child_parent_snapshots(tenant_id, touched)

        await set_custom_fields_if_any(
            data_engine=data_engine,
            entity_id=CUSTOM_FIELD_ENTITY_ID,
            record_id=record_id,
            tenant_id=tenant_id,
            organization_id=record_id,
            values=custom,
        )
        await rebuild_hierarchy_for_tenant(tenant_id)
        emit_crud_side_effects(
            data_engine=data_engine,
            action="updated",
            entity=org,
            identifiers=_identifiers(record_id, tenant_id),
            events=ORGANIZATION_CRUD_EVENTS,
        )
        return OrganizationMutation(
            entity=org,
            child_parents_before=child_parents_before,
            child_parents_after=child_parents_after,
        )

    async def capture_after(
        self,
        input: Any,
        result: OrganizationMutation,
        ctx: CommandRuntimeContext,
    ) -> dict:
        org = result.entity
        return serialize_organization(org, await load_organization_custom_snapshot(org))

    async def build_log(self, args: CommandLogBuilderArgs) -> dict[str, Any]:
        # Changes are left to snapshot inference over the view snapshots.
        mutation: OrganizationMutation = args.result
        org = mutation.entity
        custom = await load_organization_custom_snapshot(org)
        return {
            "action_label": translate("directory.audit.organizations.update", "Update organization"),
            "resource_kind": RESOURCE_KIND,
            "resource_id": str(org.id),
            "tenant_id": args.ctx.tenant_id or org.tenant_id,
            "payload": {
                "undo": {
                    "before": args.snapshots.get("before_undo"),
                    "after": build_undo_snapshot(org, mutation.child_parents_after, custom),
                },
            },
        }

    async def undo(self, *, input: Any, ctx: CommandRuntimeContext, log_entry: Any) -> None:
        payload = _undo_payload(log_entry)
        before = payload.get("before")
        if not before or not before.get("id"):
            raise CrudHttpError(400, {"error": "Missing previous snapshot for undo"})
        after = payload.get("after") or {}
        tenant_id = _undo_tenant(ctx, before)
        data_engine = ctx.container.resolve(DATA_ENGINE)

        def restore(org: Organization) -> None:
            org.name = before["name"]
            org.is_active = before["isActive"]
            org.parent_id = before.get("parentId")

        updated = await data_engine.update_entity(
            Organization,
            {"id": before["id"], "tenant_id": tenant_id},
            restore,
        )
        values = normalize_custom_field_values(
            build_custom_field_reset_map(before.get("custom"), after.get("custom"))
        )
        if values:
            await data_engine.set_custom_fields(
                entity_id=CUSTOM_FIELD_ENTITY_ID,
                record_id=before["id"],
                tenant_id=tenant_id,
                organization_id=before["id"],
                values=values,
                notify=False,
            )
        await restore_child_parents(tenant_id, before.get("childParents"))
        await rebuild_hierarchy_for_tenant(tenant_id)
        emit_crud_undo_side_effects(
            data_engine=data_engine,
            action="updated",
            entity=updated,
            identifiers=_identifiers(before["id"], tenant_id),
            events=ORGANIZATION_CRUD_EVENTS,
        )


# ══════════════════════════════════════════════════════════════
# DELETE
# ══════════════════════════════════════════════════════════════

class DeleteOrganizationCommand(CommandHandler):
    id = "directory.organizations.delete"
    is_undoable = True

    async def prepare(self, input: Any, ctx: CommandRuntimeContext) -> dict:
        record_id = parse_uuid(require_id(input, "Organization id required"))
        existing = await _load_live(record_id)
        if existing is None:
            return {}
        child_parents = await load_child_parent_snapshots(
            existing.tenant_id,
            existing.child_ids or [],
        )
        custom = await load_organization_custom_snapshot(existing)
        return {
            "before": serialize_organization(existing, custom),
            "before_undo": build_undo_snapshot(existing, child_parents, custom),
        }

    async def execute(self, input: Any, ctx: CommandRuntimeContext) -> OrganizationMutation:
        record_id = parse_uuid(require_id(input, "Organization id required"))
        existing = await _load_live(record_id)
        if existing is None:
            raise CrudHttpError(404, {"error": "Organization not found"})
        tenant_id = require_tenant_scope(ctx.tenant_id, existing.tenant_id)
        parent_id = existing.parent_id
        child_parents_before = await load_child_parent_snapshots(
            tenant_id,
            existing.child_ids or [],
        )

        data_engine = ctx.container.resolve(DATA_ENGINE)
        org = await data_engine.delete_entity(
            Organization,
            {"id": record_id, "tenant_id": tenant_id, "deleted_at__isnull": True},
            soft=True,
            soft_delete_field="deleted_at",
        )
        if org is None:
            raise CrudHttpError(404, {"error": "Organization not found"})
        org.is_active = False
        org.parent_id = None
        await org.asave(update_fields=["is_active", "parent_id", "updated_at"])

        # Children move up to the deleted organization's parent.
        async for child in Organization.objects.filter(
            tenant_id=tenant_id,
            parent_id=record_id,
            deleted_at__isnull=True,
        ):
            await _set_parent(child, parent_id)

        await rebuild_hierarchy_for_tenant(tenant_id)
        emit_crud_side_effects(
            data_engine=data_engine,
            action="deleted",
            entity=org,
            identifiers=_identifiers(record_id, tenant_id),
            events=ORGANIZATION_CRUD_EVENTS,
        )
        return OrganizationMutation(entity=org, child_parents_before=child_parents_before)

    def build_log(self, args: CommandLogBuilderArgs) -> dict[str, Any]:
        before = args.snapshots.get("before")
        return {
            "action_label": translate("directory.audit.organizations.delete", "Delete organization"),
            "resource_kind": RESOURCE_KIND,
            "resource_id": parse_uuid(require_id(args.input, "Organization id required")),
            "tenant_id": args.ctx.tenant_id or (before.get("tenantId") if before else None),
            "snapshot_before": before,
            "payload": {"undo": {"before": args.snapshots.get("before_undo")}},
        }

    async def undo(self, *, input: Any, ctx: CommandRuntimeContext, log_entry: Any) -> None:
        before = _undo_payload(log_entry).get("before")
        if not before or not before.get("id"):
            raise CrudHttpError(400, {"error": "Missing snapshot for undo"})
        tenant_id = _undo_tenant(ctx, before)
        data_engine = ctx.container.resolve(DATA_ENGINE)

        restored = await data_engine.find_entity(
            Organization,
            {"id": before["id"], "tenant_id": tenant_id},
        )
        if restored is not None:
            restored.deleted_at = None
            restored.name = before["name"]
            restored.is_active = before["isActive"]
            restored.parent_id = before.get("parentId")
            await restored.asave()
        else:
            restored = await data_engine.create_entity(
                Organization,
                {
                    "id": before["id"],
                    "tenant_id": tenant_id,
                    "name": before["name"],
                    "is_active": before["isActive"],
                    "parent_id": before.get("parentId"),
                },
            )
        if before.get("custom"):
            await data_engine.set_custom_fields(
                entity_id=CUSTOM_FIELD_ENTITY_ID,
                record_id=before["id"],
                tenant_id=tenant_id,
                organization_id=before["id"],
                values=normalize_custom_field_values(before["custom"]),
                notify=False,
            )
        await restore_child_parents(tenant_id, before.get("childParents"))
        await rebuild_hierarchy_for_tenant(tenant_id)
        logger.info(f"Restored organization {before['id']} for tenant {tenant_id}")
        emit_crud_undo_side_effects(
            data_engine=data_engine,
            action="updated",
            entity=restored,
            identifiers=_identifiers(before["id"], tenant_id),
            events=ORGANIZATION_CRUD_EVENTS,
        )


def register_commands() -> None:
    for handler in (
        CreateOrganizationCommand(),
        UpdateOrganizationCommand(),
        DeleteOrganizationCommand(),
    ):
        register_command(handler, replace=True)
