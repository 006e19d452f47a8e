"""
Ledgerline Command Layer — Handler Helpers
============================================
Shared building blocks for per-module command handlers: id/tenant
resolution, custom-field writes and CRUD side-effect queueing.
"""

from __future__ import annotations

import uuid
from collections.abc import Mapping
from typing import Any, Callable, Optional, TypeVar

from core.commands.changes import build_changes
from core.commands.custom_fields import (
    normalize_custom_field_values,
    split_custom_field_payload,
)
from core.crud.errors import CrudHttpError

T = TypeVar("T")

__all__ = [
    "build_changes",
    "emit_crud_side_effects",
    "emit_crud_undo_side_effects",
    "parse_with_custom_fields",
    "require_id",
    "require_tenant_scope",
    "set_custom_fields_if_any",
]


def parse_with_custom_fields(
    parser: Callable[[dict[str, Any]], T],
    raw: Any,
) -> tuple[T, dict[str, Any]]:
    """Split custom values off the raw input and parse the rest."""
    base, custom = split_custom_field_payload(raw)
    return parser(base), custom


def require_tenant_scope(
    auth_tenant_id: Optional[str],
    requested: Optional[str] = None,
) -> str:
    if auth_tenant_id and requested and str(requested) != str(auth_tenant_id):
        raise CrudHttpError(403, {"error": "Forbidden"})
    tenant_id = requested or auth_tenant_id
    if not tenant_id:
        raise CrudHttpError(400, {"error": "Tenant scope required"})
    return str(tenant_id)


def _id_candidate(value: Any) -> Optional[str]:
    if isinstance(value, bool):
        return None
    if isinstance(value, str) and value.strip():
        return value
    if isinstance(value, int):
        return str(value)
    if isinstance(value, uuid.UUID):
        return str(value)
    return None


def require_id(value: Any, message: str = "ID is required") -> str:
    direct = _id_candidate(value)
    if direct is not None:
        return direct
    if isinstance(value, Mapping):
        body = value.get("body")
        query = value.get("query")
        candidates = (
            value.get("id"),
            value.get("recordId"),
            body.get("id") if isinstance(body, Mapping) else None,
            query.get("id") if isinstance(query, Mapping) else None,
        )
        for candidate in candidates:
            resolved = _id_candidate(candidate)
            if resolved is not None:
                return resolved
    raise CrudHttpError(400, {"error": message})


async def set_custom_fields_if_any(
    *,
    data_engine: Any,
    entity_id: str,
    record_id: str,
    tenant_id: Optional[str],
    organization_id: Optional[str],
    values: Optional[Mapping[str, Any]],
    notify: bool = False,
) -> None:
    if not values:
        return
    await data_engine.set_custom_fields(
        entity_id=entity_id,
        record_id=record_id,
        tenant_id=tenant_id,
        organization_id=organization_id,
        values=normalize_custom_field_values(values),
        notify=notify,
    )


def emit_crud_side_effects(
    *,
    data_engine: Any,
    action: str,
    entity: Any,
    identifiers: Mapping[str, Any],
    events: Any = None,
) -> None:
    data_engine.mark_entity_change(
        action=action,
        entity=entity,
        identifiers=identifiers,
        events=events,
        origin="command",
    )


def emit_crud_undo_side_effects(
    *,
    data_engine: Any,
    action: str,
    entity: Any,
    identifiers: Mapping[str, Any],
    events: Any = None,
) -> None:
    """Undo variant: consumers see origin "undo"; a missing entity is a no-op."""
    if entity is None:
        return
    data_engine.mark_entity_change(
        action=action,
        entity=entity,
        identifiers=identifiers,
        events=events,
        origin="undo",
    )

