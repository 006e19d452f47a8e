"""
Ledgerline Feature Toggles Module — Global Toggle Commands
============================================================
feature_toggles.global.create | feature_toggles.global.update |
feature_toggles.global.delete

Toggles are global, so snapshots carry no tenant. Every command that
changes a toggle clears the cached is_enabled answers for its identifier.

Snapshot shape (resource kind "feature_toggles.global"):
    {"id", "identifier", "name", "description", "category", "type",
     "defaultValue"}

Undo:
- create → remove the toggle and any overrides added since
- update → restore every toggle field
- delete → re-create the toggle and its tenant overrides
"""

from __future__ import annotations

from typing import Any, Optional

from core.commands import CommandHandler, CommandLogBuilderArgs, register_command
from core.commands.helpers import build_changes, require_id
from core.commands.undo import extract_undo_payload, log_entry_value
from core.container import FEATURE_TOGGLES_SERVICE
from core.context.runtime import CommandRuntimeContext
from core.crud.errors import CrudHttpError
from core.i18n import translate
from modules.feature_toggles.models import FeatureToggle, FeatureToggleOverride
from modules.feature_toggles.validators import (
    parse_toggle_create,
    parse_toggle_update,
    parse_uuid,
)

RESOURCE_KIND = "feature_toggles.global"

SNAPSHOT_KEYS = (
    "identifier",
    "name",
    "description",
    "category",
    "type",
    "defaultValue",
)


def serialize_toggle(toggle: FeatureToggle) -> dict[str, Any]:
    return {
        "id": str(toggle.id),
        "identifier": toggle.identifier,
        "name": toggle.name,
        "description": toggle.description,
        "category": toggle.category,
        "type": toggle.type,
        "defaultValue": toggle.default_value,
    }


async def load_toggle_snapshot(toggle_id: str) -> Optional[dict[str, Any]]:
    toggle = await FeatureToggle.objects.filter(id=toggle_id).afirst()
    return serialize_toggle(toggle) if toggle is not None else None


async def load_override_snapshots(toggle_id: str) -> list[dict[str, Any]]:
    return [
        {
            "id": str(override.id),
            "toggleId": str(override.toggle_id),
            "tenantId": override.tenant_id,
            "value": override.value,
        }
        async for override in FeatureToggleOverride.objects.filter(
            toggle_id=toggle_id,
        ).order_by("tenant_id")
    ]


def _apply_snapshot(toggle: FeatureToggle, snapshot: dict[str, Any]) -> None:
    toggle.identifier = snapshot["identifier"]
    toggle.name = snapshot["name"]
    toggle.description = snapshot.get("description")
    toggle.category = snapshot.get("category")
    toggle.type = snapshot.get("type") or toggle.type
    toggle.default_value = snapshot.get("defaultValue")


async def _invalidate(ctx: CommandRuntimeContext, *identifiers: Optional[str]) -> None:
    service = ctx.container.resolve(FEATURE_TOGGLES_SERVICE)
    for identifier in dict.fromkeys(value for value in identifiers if value):
        await service.invalidate_is_enabled_cache_by_identifier_tag(identifier)


async def _ensure_identifier_free(identifier: str, exclude_id: Optional[str] = None) -> None:
    existing = FeatureToggle.objects.filter(identifier=identifier)
    if exclude_id:
        existing = existing.exclude(id=exclude_id)
    if await existing.aexists():
        raise CrudHttpError(409, {"error": f"Feature toggle '{identifier}' already exists"})


def _undo_payload(log_entry: Any) -> dict[str, Any]:
    payload = extract_undo_payload(log_entry)
    return payload if isinstance(payload, dict) else {}


# ══════════════════════════════════════════════════════════════
# CREATE
# ══════════════════════════════════════════════════════════════

class CreateToggleCommand(CommandHandler):
    id = "feature_toggles.global.create"
    is_undoable = True

    async def execute(self, input: Any, ctx: CommandRuntimeContext) -> dict[str, str]:
        parsed = parse_toggle_create(input or {})
        await _ensure_identifier_free(parsed.identifier)
        toggle = await FeatureToggle.objects.acreate(
            identifier=parsed.identifier,
            name=parsed.name,
            description=parsed.description,
            category=parsed.category,
            type=parsed.type,
            default_value=parsed.default_value,
        )
        await _invalidate(ctx, toggle.identifier)
        return {"toggleId": str(toggle.id)}

    async def capture_after(self, input: Any, result: dict, ctx: CommandRuntimeContext) -> Optional[dict]:
        return await load_toggle_snapshot(result["toggleId"])

    async def build_log(self, args: CommandLogBuilderArgs) -> dict[str, Any]:
        snapshot = await load_toggle_snapshot(args.result["toggleId"])
        return {
            "action_label": translate("feature_toggles.audit.toggles.create", "Create toggle"),
            "resource_kind": RESOURCE_KIND,
            "resource_id": args.result["toggleId"],
            "snapshot_after": snapshot,
            "payload": {"undo": {"after": snapshot}},
        }

    async def undo(self, *, input: Any, ctx: CommandRuntimeContext, log_entry: Any) -> None:
        toggle_id = log_entry_value(log_entry, "resource_id")
        if not toggle_id:
            raise CrudHttpError(400, {"error": "Missing toggle id for undo"})
        toggle = await FeatureToggle.objects.filter(id=toggle_id).afirst()
        if toggle is None:
            return
        await FeatureToggleOverride.objects.filter(toggle_id=toggle.id).adelete()
        await toggle.adelete()
        await _invalidate(ctx, toggle.identifier)


# ══════════════════════════════════════════════════════════════
# UPDATE
# ══════════════════════════════════════════════════════════════

class UpdateToggleCommand(CommandHandler):
    id = "feature_toggles.global.update"
    is_undoable = True

    async def prepare(self, input: Any, ctx: CommandRuntimeContext) -> dict:
        parsed = parse_toggle_update(input or {})
        snapshot = await load_toggle_snapshot(parsed.id)
        return {"before": snapshot} if snapshot else {}

    async def execute(self, input: Any, ctx: CommandRuntimeContext) -> dict[str, str]:
        parsed = parse_toggle_update(input or {})
        toggle = await FeatureToggle.objects.filter(id=parsed.id).afirst()
        if toggle is None:
            raise CrudHttpError(404, {"error": "Toggle not found"})
        previous_identifier = toggle.identifier
        if parsed.identifier and parsed.identifier != toggle.identifier:
            await _ensure_identifier_free(parsed.identifier, exclude_id=parsed.id)
            toggle.identifier = parsed.identifier
        if parsed.name is not None:
            toggle.name = parsed.name
        if parsed.description is not None:
            toggle.description = parsed.description
        if parsed.category is not None:
            toggle.category = parsed.category
        if parsed.type is not None:
            toggle.type = parsed.type
        if parsed.has_default_value:
            toggle.default_value = parsed.default_value
        await toggle.asave()
        await _invalidate(ctx, previous_identifier, toggle.identifier)
        return {"toggleId": str(toggle.id)}

    async def build_log(self, args: CommandLogBuilderArgs) -> Optional[dict[str, Any]]:
        before = args.snapshots.get("before")
        if not before:
            return None
        after = await load_toggle_snapshot(before["id"])
        return {
            "action_label": translate("feature_toggles.audit.toggles.update", "Update toggle"),
            "resource_kind": RESOURCE_KIND,
            "resource_id": before["id"],
            "snapshot_before": before,
            "snapshot_after": after,
            "changes": build_changes(before, after, SNAPSHOT_KEYS) if after else {},
            "payload": {"undo": {"before": before, "after": after}},
        }

    async def undo(self, *, input: Any, ctx: CommandRuntimeContext, log_entry: Any) -> None:
        payload = _undo_payload(log_entry)
        before = payload.get("before")
        if not before or not before.get("id"):
            raise CrudHttpError(400, {"error": "Missing previous snapshot for undo"})
        toggle = await FeatureToggle.objects.filter(id=before["id"]).afirst()
        current_identifier = toggle.identifier if toggle is not None else None
        if toggle is None:
            toggle = FeatureToggle(id=before["id"])
        _apply_snapshot(toggle, before)
        await toggle.asave()
        await _invalidate(ctx, current_identifier, toggle.identifier)


# ══════════════════════════════════════════════════════════════
# DELETE
# ══════════════════════════════════════════════════════════════

class DeleteToggleCommand(CommandHandler):
    id = "feature_toggles.global.delete"
    is_undoable = True

    async def prepare(self, input: Any, ctx: CommandRuntimeContext) -> dict:
        toggle_id = parse_uuid(require_id(input, "Feature toggle id required"))
        snapshot = await load_toggle_snapshot(toggle_id)
        if snapshot is None:
            return {}
        return {"before": snapshot, "overrides": await load_override_snapshots(toggle_id)}

    async def execute(self, input: Any, ctx: CommandRuntimeContext) -> dict[str, str]:
        toggle_id = parse_uuid(require_id(input, "Feature toggle id required"))
        toggle = await FeatureToggle.objects.filter(id=toggle_id).afirst()
        if toggle is None:
            raise CrudHttpError(404, {"error": "Feature toggle not found"})
        await FeatureToggleOverride.objects.filter(toggle_id=toggle.id).adelete()
        await toggle.adelete()
        await _invalidate(ctx, toggle.identifier)
        return {"toggleId": toggle_id}

    def build_log(self, args: CommandLogBuilderArgs) -> Optional[dict[str, Any]]:
        before = args.snapshots.get("before")
        if not before:
            return None
        return {
            "action_label": translate("feature_toggles.audit.toggles.delete", "Delete toggle"),
            "resource_kind": RESOURCE_KIND,
            "resource_id": before["id"],
            "snapshot_before": before,
            "payload": {
                "undo": {
                    "before": before,
                    "overrides": args.snapshots.get("overrides") or [],
                },
            },
        }

    async def undo(self, *, input: Any, ctx: CommandRuntimeContext, log_entry: Any) -> None:
        payload = _undo_payload(log_entry)
        before = payload.get("before")
        if not before or not before.get("id"):
            raise CrudHttpError(400, {"error": "Missing snapshot for undo"})
        toggle = await FeatureToggle.objects.filter(id=before["id"]).afirst()
        if toggle is None:
            toggle = FeatureToggle(id=before["id"])
            _apply_snapshot(toggle, before)
            await toggle.asave()
            for override in payload.get("overrides") or []:
                await FeatureToggleOverride.objects.acreate(
                    id=override["id"],
                    toggle=toggle,
                    tenant_id=override["tenantId"],
                    value=override.get("value"),
                )
        else:
            _apply_snapshot(toggle, before)
            await toggle.asave()
        await _invalidate(ctx, toggle.identifier)


def register_commands() -> None:
    for handler in (CreateToggleCommand(), UpdateToggleCommand(), DeleteToggleCommand()):
        register_command(handler, replace=True)
