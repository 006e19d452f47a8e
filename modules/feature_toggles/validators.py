"""
Ledgerline Feature Toggles Module — Input Validation
======================================================
"""

from __future__ import annotations

import re
import uuid
from dataclasses import dataclass
from typing import Any, Optional

from core.crud.errors import CrudHttpError
from modules.feature_toggles.models import ToggleType

_IDENTIFIER = re.compile(r"^[a-z0-9][a-z0-9_.\-]*$")
_UNSET = object()


def _invalid(message: str) -> CrudHttpError:
    return CrudHttpError(400, {"error": message})


def parse_uuid(value: Any, field_name: str = "id") -> str:
    try:
        return str(uuid.UUID(str(value)))
    except ValueError as exc:
        raise _invalid(f"{field_name} must be a valid UUID") from exc


def _parse_identifier(value: Any, *, required: bool) -> Optional[str]:
    if value is None:
        if required:
            raise _invalid("identifier is required")
        return None
    if not isinstance(value, str) or not _IDENTIFIER.match(value):
        raise _invalid("identifier must be lowercase letters, digits, '_', '.' or '-'")
    return value


def _parse_text(value: Any, field_name: str, *, required: bool = False) -> Optional[str]:
    if value is None:
        if required:
            raise _invalid(f"{field_name} is required")
        return None
    if not isinstance(value, str) or (required and not value.strip()):
        raise _invalid(f"{field_name} must be a non-empty string")
    return value


def _parse_type(value: Any) -> Optional[str]:
    if value is None:
        return None
    if value not in ToggleType.values:
        raise _invalid(f"type must be one of {', '.join(ToggleType.values)}")
    return value


@dataclass(frozen=True)
class ToggleCreateInput:
    identifier: str
    name: str
    description: Optional[str] = None
    category: Optional[str] = None
    type: str = ToggleType.BOOLEAN
    default_value: Any = None


@dataclass(frozen=True)
class ToggleUpdateInput:
    """has_default_value marks an explicit defaultValue, which may be null."""

    id: str
    identifier: Optional[str] = None
    name: Optional[str] = None
    description: Optional[str] = None
    category: Optional[str] = None
    type: Optional[str] = None
    default_value: Any = None
    has_default_value: bool = False


def parse_toggle_create(data: dict[str, Any]) -> ToggleCreateInput:
    return ToggleCreateInput(
        identifier=_parse_identifier(data.get("identifier"), required=True),
        name=_parse_text(data.get("name"), "name", required=True),
        description=_parse_text(data.get("description"), "description"),
        category=_parse_text(data.get("category"), "category"),
        type=_parse_type(data.get("type")) or ToggleType.BOOLEAN,
        default_value=data.get("defaultValue"),
    )


def parse_toggle_update(data: dict[str, Any]) -> ToggleUpdateInput:
    if data.get("id") is None:
        raise _invalid("id is required")
    default_value = data.get("defaultValue", _UNSET)
    return ToggleUpdateInput(
        id=parse_uuid(data["id"]),
        identifier=_parse_identifier(data.get("identifier"), required=False),
        name=_parse_text(data.get("name"), "name"),
        description=_parse_text(data.get("description"), "description"),
        category=_parse_text(data.get("category"), "category"),
        type=_parse_type(data.get("type")),
        default_value=None if default_value is _UNSET else default_value,
        has_default_value=default_value is not _UNSET,
    )
