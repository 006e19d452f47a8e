"""
Ledgerline Example Module — Input Validation
==============================================
Command inputs parsed into frozen dataclasses. Invalid input raises
CrudHttpError(400) so transports can surface it as a validation failure.
"""

from __future__ import annotations

import uuid
from dataclasses import dataclass
from typing import Any, Optional

from core.crud.errors import CrudHttpError


def _invalid(message: str) -> CrudHttpError:
    return CrudHttpError(400, {"error": message})


def _parse_title(value: Any, *, required: bool) -> Optional[str]:
    if value is None:
        if required:
            raise _invalid("title is required")
        return None
    if not isinstance(value, str) or not value.strip():
        raise _invalid("title must be a non-empty string")
    return value


def _parse_is_done(value: Any) -> Optional[bool]:
    if value is None:
        return None
    if not isinstance(value, bool):
        raise _invalid("is_done must be a boolean")
    return value


def parse_uuid(value: Any, field_name: str = "id") -> str:
    try:
        return str(uuid.UUID(str(value)))
    except ValueError as exc:
        raise _invalid(f"{field_name} must be a valid UUID") from exc


@dataclass(frozen=True)
class TodoCreateInput:
    title: str
    is_done: Optional[bool] = None


@dataclass(frozen=True)
class TodoUpdateInput:
    id: str
    title: Optional[str] = None
    is_done: Optional[bool] = None


def parse_todo_create(data: dict[str, Any]) -> TodoCreateInput:
    return TodoCreateInput(
        title=_parse_title(data.get("title"), required=True),
        is_done=_parse_is_done(data.get("is_done")),
    )


def parse_todo_update(data: dict[str, Any]) -> TodoUpdateInput:
    if data.get("id") is None:
        raise _invalid("id is required")
    return TodoUpdateInput(
        id=parse_uuid(data["id"]),
        title=_parse_title(data.get("title"), required=False),
        is_done=_parse_is_done(data.get("is_done")),
    )
