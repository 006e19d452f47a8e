"""
Ledgerline Core Audit — Action Log Service
============================================
Async store for ActionLog rows, resolved by the command bus under the
`action_log_service` container name.

Responsibilities:
- normalize and persist one entry per executed command
- look entries up by undo token or id
- move the execution state (done → undone → redone)
- list entries for the audit views and find the latest undo/redo target

Every lookup ignores soft-deleted rows.
"""

from __future__ import annotations

import logging
import uuid
from collections.abc import Mapping
from dataclasses import dataclass
from datetime import datetime
from typing import Any, Optional

from django.conf import settings
from django.db.models import Q

from core.audit.models import ActionLog, ExecutionState

logger = logging.getLogger("ledgerline.audit")

MAX_LIST_LIMIT = 200
API_KEY_PREFIX = "api_key:"

_ID_FIELDS = ("tenant_id", "organization_id", "actor_user_id")
_OPTIONAL_TEXT_FIELDS = (
    "action_label",
    "resource_kind",
    "resource_id",
    "parent_resource_kind",
    "parent_resource_id",
    "undo_token",
)
_CREATE_STATES = (ExecutionState.DONE, ExecutionState.UNDONE, ExecutionState.FAILED)


@dataclass(frozen=True)
class ActionLogListQuery:
    """Filters for ActionLogService.list(); None means "no filter"."""

    tenant_id: Optional[str] = None
    organization_id: Optional[str] = None
    actor_user_id: Optional[str] = None
    resource_kind: Optional[str] = None
    resource_id: Optional[str] = None
    include_related: bool = False
    undoable_only: bool = False
    before: Optional[datetime] = None
    after: Optional[datetime] = None
    limit: Optional[int] = None


def _nullable_id(value: Any) -> Optional[str]:
    if not isinstance(value, str) or not value:
        return None
    if value.startswith(API_KEY_PREFIX):
        return value[len(API_KEY_PREFIX):] or None
    return value


def _optional_text(value: Any) -> Optional[str]:
    if isinstance(value, str) and value:
        return value
    return None


def _record_like(value: Any) -> Any:
    if value is None or isinstance(value, (Mapping, list)):
        return value
    return None


def clamp_list_limit(value: Any) -> int:
    default = getattr(settings, "LEDGERLINE_ACTION_LOG_LIST_LIMIT", 50)
    if value is None or isinstance(value, bool):
        return default
    try:
        limit = int(value)
    except (TypeError, ValueError):
        return default
    return min(max(limit, 1), MAX_LIST_LIMIT)


def serialize_action_log(entry: ActionLog) -> dict[str, Any]:
    """JSON view of one entry as rendered by the audit endpoints."""
    return {
        "id": str(entry.id),
        "commandId": entry.command_id,
        "actionLabel": entry.action_label,
        "executionState": entry.execution_state,
        "actorUserId": entry.actor_user_id,
        "tenantId": entry.tenant_id,
        "organizationId": entry.organization_id,
        "resourceKind": entry.resource_kind,
        "resourceId": entry.resource_id,
        "parentResourceKind": entry.parent_resource_kind,
        "parentResourceId": entry.parent_resource_id,
        "undoToken": entry.undo_token,
        "createdAt": entry.created_at.isoformat() if entry.created_at else None,
        "updatedAt": entry.updated_at.isoformat() if entry.updated_at else None,
        "snapshotBefore": entry.snapshot_before,
        "snapshotAfter": entry.snapshot_after,
        "changes": entry.changes_json,
        "context": entry.context_json,
    }


class ActionLogService:
    """Django ORM backed action log store."""

    # ── Write ─────────────────────────────────────────────────

    def normalize_input(self, payload: Optional[Mapping[str, Any]]) -> dict[str, Any]:
        """
        Coerce a loosely-typed log payload into model fields.

        Id fields drop an "api_key:" prefix, empty strings become None, a
        missing command id becomes "unknown" and unexpected states fall
        back to done.
        """
        payload = payload or {}
        data: dict[str, Any] = {}
        for name in _ID_FIELDS:
            data[name] = _nullable_id(payload.get(name))
        for name in _OPTIONAL_TEXT_FIELDS:
            data[name] = _optional_text(payload.get(name))

        command_id = payload.get("command_id")
        data["command_id"] = command_id if isinstance(command_id, str) and command_id else "unknown"

        state = payload.get("execution_state")
        data["execution_state"] = state if state in _CREATE_STATES else ExecutionState.DONE

        data["command_payload"] = payload.get("command_payload")
        data["snapshot_before"] = payload.get("snapshot_before")
        data["snapshot_after"] = payload.get("snapshot_after")
        data["changes_json"] = _record_like(payload.get("changes"))
        context = payload.get("context")
        data["context_json"] = dict(context) if isinstance(context, Mapping) else None
        return data

    async def log(self, payload: Optional[Mapping[str, Any]]) -> ActionLog:
        data = self.normalize_input(payload)
        entry = await ActionLog.objects.acreate(**data)
        logger.debug(
            f"Action log {entry.id} written for {entry.command_id} "
            f"(resource={entry.resource_kind}:{entry.resource_id})"
        )
        return entry

    async def mark_undone(self, log_id: Any) -> Optional[ActionLog]:
        return await self._set_state(log_id, ExecutionState.UNDONE)

    async def mark_redone(self, log_id: Any) -> Optional[ActionLog]:
        return await self._set_state(log_id, ExecutionState.REDONE)

    async def _set_state(self, log_id: Any, state: str) -> Optional[ActionLog]:
        entry = await self.find_by_id(log_id)
        if entry is None:
            return None
        entry.execution_state = state
        await entry.asave(update_fields=["execution_state", "updated_at"])
        return entry

    # ── Read ──────────────────────────────────────────────────

    def _live(self):
        return ActionLog.objects.filter(deleted_at__isnull=True)

    async def find_by_undo_token(self, undo_token: Optional[str]) -> Optional[ActionLog]:
        if not undo_token:
            return None
        return await self._live().filter(undo_token=undo_token).afirst()

    async def find_by_id(self, log_id: Any) -> Optional[ActionLog]:
        if not log_id:
            return None
        try:
            parsed = uuid.UUID(str(log_id))
        except ValueError:
            return None
        return await self._live().filter(id=parsed).afirst()

    async def list(self, query: Optional[ActionLogListQuery] = None) -> list[ActionLog]:
        query = query or ActionLogListQuery()
        queryset = self._live()
        if query.tenant_id:
            queryset = queryset.filter(tenant_id=query.tenant_id)
        if query.organization_id:
            queryset = queryset.filter(organization_id=query.organization_id)
        if query.actor_user_id:
            queryset = queryset.filter(actor_user_id=query.actor_user_id)

        if query.include_related and query.resource_kind and query.resource_id:
            queryset = queryset.filter(
                Q(resource_kind=query.resource_kind, resource_id=query.resource_id)
                | Q(
                    parent_resource_kind=query.resource_kind,
                    parent_resource_id=query.resource_id,
                )
            )
        else:
            if query.resource_kind:
                queryset = queryset.filter(resource_kind=query.resource_kind)
            if query.resource_id:
                queryset = queryset.filter(resource_id=query.resource_id)

        if query.undoable_only:
            queryset = queryset.filter(undo_token__isnull=False)
        if query.before:
            queryset = queryset.filter(created_at__lt=query.before)
        if query.after:
            queryset = queryset.filter(created_at__gt=query.after)

        limit = clamp_list_limit(query.limit)
        return [entry async for entry in queryset.order_by("-created_at")[:limit]]

    def _undoable(self, actor_user_id: str, tenant_id: Optional[str], organization_id: Optional[str]):
        queryset = self._live().filter(
            actor_user_id=actor_user_id,
            undo_token__isnull=False,
            execution_state=ExecutionState.DONE,
        )
        if tenant_id:
            queryset = queryset.filter(tenant_id=tenant_id)
        if organization_id:
            queryset = queryset.filter(organization_id=organization_id)
        return queryset

    async def latest_undoable_for_actor(
        self,
        actor_user_id: str,
        *,
        tenant_id: Optional[str] = None,
        organization_id: Optional[str] = None,
    ) -> Optional[ActionLog]:
        queryset = self._undoable(actor_user_id, tenant_id, organization_id)
        return await queryset.order_by("-created_at").afirst()

    async def latest_undoable_for_resource(
        self,
        actor_user_id: str,
        *,
        tenant_id: Optional[str] = None,
        organization_id: Optional[str] = None,
        resource_kind: Optional[str] = None,
        resource_id: Optional[str] = None,
    ) -> Optional[ActionLog]:
        queryset = self._undoable(actor_user_id, tenant_id, organization_id)
        if resource_kind:
            queryset = queryset.filter(resource_kind=resource_kind)
        if resource_id:
            queryset = queryset.filter(resource_id=resource_id)
        return await queryset.order_by("-created_at").afirst()

    async def latest_undone_for_actor(
        self,
        actor_user_id: str,
        *,
        tenant_id: Optional[str] = None,
        organization_id: Optional[str] = None,
    ) -> Optional[ActionLog]:
        queryset = self._live().filter(
            actor_user_id=actor_user_id,
            execution_state=ExecutionState.UNDONE,
        )
        if tenant_id:
            queryset = queryset.filter(tenant_id=tenant_id)
        if organization_id:
            queryset = queryset.filter(organization_id=organization_id)
        return await queryset.order_by("-updated_at").afirst()
