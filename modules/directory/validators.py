"""
Ledgerline Directory Module — Input Validation
================================================
"""

from __future__ import annotations

import uuid
from dataclasses import dataclass, field
from typing import Any, Optional

from core.crud.errors import CrudHttpError

_UNSET = object()


def _invalid(message: str) -> CrudHttpError:
    return CrudHttpError(400, {"error": message})


def parse_uuid(value: Any, field_name: str = "id") -> str:
    try:
        return str(uuid.UUID(str(value)))
    except ValueError as exc:
        raise _invalid(f"{field_name} must be a valid UUID") from exc


def _parse_name(value: Any, *, required: bool) -> Optional[str]:
    if value is None:
        if required:
            raise _invalid("name is required")
        return None
    if not isinstance(value, str) or not value.strip():
        raise _invalid("name must be a non-empty string")
    if len(value) > 255:
        raise _invalid("name must be at most 255 characters")
    return value.strip()


def _parse_is_active(value: Any) -> Optional[bool]:
    if value is None:
        return None
    if not isinstance(value, bool):
        raise _invalid("isActive must be a boolean")
    return value


def _parse_optional_uuid(value: Any, field_name: str) -> Optional[str]:
    if value is None or value == "":
        return None
    return parse_uuid(value, field_name)


def _parse_child_ids(value: Any) -> tuple[str, ...]:
    if value is None:
        return ()
    if not isinstance(value, (list, tuple)):
        raise _invalid("childIds must be a list")
    return tuple(parse_uuid(item, "childIds") for item in value)


@dataclass(frozen=True)
class OrganizationCreateInput:
    name: str
    tenant_id: Optional[str] = None
    is_active: Optional[bool] = None
    parent_id: Optional[str] = None
    child_ids: tuple[str, ...] = field(default_factory=tuple)


@dataclass(frozen=True)
class OrganizationUpdateInput:
    """parent_set distinguishes an explicit null parent from an omitted one."""

    id: str
    tenant_id: Optional[str] = None
    name: Optional[str] = None
    is_active: Optional[bool] = None
    parent_id: Optional[str] = None
    parent_set: bool = False
    child_ids: Optional[tuple[str, ...]] = None


def parse_organization_create(data: dict[str, Any]) -> OrganizationCreateInput:
    tenant_id = data.get("tenantId")
    return OrganizationCreateInput(
        name=_parse_name(data.get("name"), required=True),
        tenant_id=str(tenant_id) if tenant_id else None,
        is_active=_parse_is_active(data.get("isActive")),
        parent_id=_parse_optional_uuid(data.get("parentId"), "parentId"),
        child_ids=_parse_child_ids(data.get("childIds")),
    )


def parse_organization_update(data: dict[str, Any]) -> OrganizationUpdateInput:
    if data.get("id") is None:
        raise _invalid("id is required")
    tenant_id = data.get("tenantId")
    raw_children = data.get("childIds", _UNSET)
    return OrganizationUpdateInput(
        id=parse_uuid(data["id"]),
        tenant_id=str(tenant_id) if tenant_id else None,
        name=_parse_name(data.get("name"), required=False),
        is_active=_parse_is_active(data.get("isActive")),
        parent_id=_parse_optional_uuid(data.get("parentId"), "parentId"),
        parent_set="parentId" in data,
        child_ids=None if raw_children is _UNSET else _parse_child_ids(raw_children),
    )
