"""
Ledgerline Data Layer — Data Engine
=====================================
The persistence boundary command handlers write through.

Responsibilities:
- create / update / delete (soft or hard) Django model rows
- write custom-field values
- queue CRUD side effects during a command and dispatch them on flush

One DataEngine belongs to one invocation scope (one container). The bus
calls flush_entity_changes() after logging and cache invalidation;
flushing an empty queue is a no-op, so the call is idempotent.
"""

from __future__ import annotations

import logging
from collections.abc import Mapping
from dataclasses import dataclass
from typing import Any, Callable, Optional

from django.utils import timezone

from core.data.models import CustomFieldValue
from core.events.dispatcher import CrudEvent, dispatch
from core.events.registry import SubscriberRegistry

logger = logging.getLogger("ledgerline.events")

CRUD_ACTIONS = frozenset({"created", "updated", "deleted"})


@dataclass(frozen=True)
class CrudEventsConfig:
    """
    Event naming for one entity kind.

    Events are named "<module>.<entity>.<action>". build_payload, when
    given, receives the identifiers mapping and the entity.
    """

    module: str
    entity: str
    build_payload: Optional[Callable[[Mapping[str, Any], Any], dict]] = None

    def event_type(self, action: str) -> str:
        return f"{self.module}.{self.entity}.{action}"


@dataclass(frozen=True)
class PendingEntityChange:
    action: str
    entity: Any
    identifiers: dict[str, Any]
    events: Optional[CrudEventsConfig]
    origin: str


class DataEngine:
    """Django-backed persistence boundary with deferred side effects."""

    def __init__(self, subscribers: Optional[SubscriberRegistry] = None):
        self._subscribers = subscribers or SubscriberRegistry()
        self._pending: list[PendingEntityChange] = []

    # ── Entities ──────────────────────────────────────────────

    async def create_entity(self, model: Any, data: Mapping[str, Any]) -> Any:
        return await model.objects.acreate(**dict(data))

    async def find_entity(self, model: Any, where: Mapping[str, Any]) -> Any:
        return await model.objects.filter(**dict(where)).afirst()

    async def update_entity(
        self,
        model: Any,
        where: Mapping[str, Any],
        apply: Callable[[Any], None],
    ) -> Any:
        """Load one row, mutate it via `apply`, save. None when no row matches."""
        entity = await self.find_entity(model, where)
        if entity is None:
            return None
        apply(entity)
        await entity.asave()
        return entity

    async def delete_entity(
        self,
        model: Any,
        where: Mapping[str, Any],
        *,
        soft: bool = True,
        soft_delete_field: str = "deleted_at",
    ) -> Any:
        """
        Soft-delete (stamp soft_delete_field) or hard-delete one row.

        Returns the entity as it was removed, or None when no row matches.
        """
        entity = await self.find_entity(model, where)
        if entity is None:
            return None
        if soft:
            setattr(entity, soft_delete_field, timezone.now())
            await entity.asave()
        else:
            await entity.adelete()
        return entity

    # ── Custom fields ─────────────────────────────────────────

    async def set_custom_fields(
        self,
        *,
        entity_id: str,
        record_id: str,
        tenant_id: Optional[str],
        organization_id: Optional[str],
        values: Mapping[str, Any],
        notify: bool = False,
    ) -> None:
        for key, value in values.items():
            lookup = {
                "entity_id": entity_id,
                "record_id": str(record_id),
                "field_key": key,
            }
            if value is None:
                await CustomFieldValue.objects.filter(**lookup).adelete()
                continue
            await CustomFieldValue.objects.aupdate_or_create(
                defaults={
                    "value": value,
                    "tenant_id": tenant_id,
                    "organization_id": organization_id,
                },
                **lookup,
            )
        if notify:
            self.mark_entity_change(
                action="updated",
                entity=None,
                identifiers={
                    "id": str(record_id),
                    "tenantId": tenant_id,
                    "organizationId": organization_id,
                },
                events=CrudEventsConfig(module="custom_fields", entity="values"),
            )

    # ── Side effects ──────────────────────────────────────────

    def mark_entity_change(
        self,
        *,
        action: str,
        entity: Any,
        identifiers: Mapping[str, Any],
        events: Optional[CrudEventsConfig] = None,
        origin: str = "command",
    ) -> None:
        if action not in CRUD_ACTIONS:
            raise ValueError(f"action must be one of {sorted(CRUD_ACTIONS)}.")
        self._pending.append(
            PendingEntityChange(
                action=action,
                entity=entity,
                identifiers=dict(identifiers),
                events=events,
                origin=origin,
            )
        )

    @property
    def pending_changes(self) -> tuple[PendingEntityChange, ...]:
        return tuple(self._pending)

    async def flush_entity_changes(self) -> list[dict]:
        """Dispatch and clear queued side effects. Returns dispatch reports."""
        pending, self._pending = self._pending, []
        reports = []
        for change in pending:
            if change.events is None:
                continue
            payload = {
                "id": change.identifiers.get("id"),
                "tenantId": change.identifiers.get("tenantId"),
                "organizationId": change.identifiers.get("organizationId"),
            }
            if change.events.build_payload is not None:
                payload.update(change.events.build_payload(change.identifiers, change.entity))
            payload["origin"] = change.origin
            event = CrudEvent(
                event_type=change.events.event_type(change.action),
                payload=payload,
            )
            reports.append(await dispatch(event, self._subscribers))
        return reports
