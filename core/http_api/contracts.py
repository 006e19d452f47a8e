"""
Ledgerline HTTP API - Contracts
===============================
Framework-agnostic request/response DTOs for the audit log endpoints.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, Optional


@dataclass(frozen=True)
class ActorMetadata:
    """
    Request identity as resolved by the transport adapter.

    RBAC lives outside this service; roles arrive pre-resolved and are
    only compared against the audit role names.
    """

    actor_id: str
    tenant_id: Optional[str] = None
    organization_id: Optional[str] = None
    organization_ids: Optional[tuple[str, ...]] = None
    roles: tuple[str, ...] = field(default_factory=tuple)

    def __post_init__(self):
        if not self.actor_id or not isinstance(self.actor_id, str):
            raise ValueError("actor_id must be a non-empty string.")
        if self.organization_ids is not None and not isinstance(
            self.organization_ids, tuple
        ):
            raise ValueError("organization_ids must be a tuple or None.")
        if not isinstance(self.roles, tuple):
            raise ValueError("roles must be a tuple.")

    def has_role(self, role: str) -> bool:
        return role in self.roles or "superadmin" in self.roles


@dataclass(frozen=True)
class ActionLogListHttpRequest:
    actor: ActorMetadata
    organization_id: Optional[str] = None
    actor_user_id: Optional[str] = None
    resource_kind: Optional[str] = None
    resource_id: Optional[str] = None
    include_related: bool = False
    undoable_only: bool = False
    limit: Optional[int] = None
    before: Optional[datetime] = None
    after: Optional[datetime] = None

    def __post_init__(self):
        if not isinstance(self.actor, ActorMetadata):
            raise ValueError("actor must be ActorMetadata.")
        if self.limit is not None and (
            not isinstance(self.limit, int) or isinstance(self.limit, bool)
        ):
            raise ValueError("limit must be int or None.")


@dataclass(frozen=True)
class UndoHttpRequest:
    actor: ActorMetadata
    undo_token: str

    def __post_init__(self):
        if not isinstance(self.actor, ActorMetadata):
            raise ValueError("actor must be ActorMetadata.")
        if not isinstance(self.undo_token, str) or not self.undo_token.strip():
            raise ValueError("Invalid undo token")


@dataclass(frozen=True)
class RedoHttpRequest:
    actor: ActorMetadata
    log_id: str

    def __post_init__(self):
        if not isinstance(self.actor, ActorMetadata):
            raise ValueError("actor must be ActorMetadata.")
        if not isinstance(self.log_id, str) or not self.log_id.strip():
            raise ValueError("Invalid log id")


@dataclass(frozen=True)
class HttpApiErrorBody:
    code: str
    message: str
    details: dict[str, Any] = field(default_factory=dict)

    def to_dict(self) -> dict[str, Any]:
        return {
            "code": self.code,
            "message": self.message,
            "details": dict(self.details),
        }


@dataclass(frozen=True)
class HttpApiResponse:
    ok: bool
    data: Any = None
    error: Optional[HttpApiErrorBody] = None

    def to_dict(self) -> dict[str, Any]:
        if self.ok:
            return {"ok": True, "data": self.data}
        if self.error is None:
            raise ValueError("error must be set when ok is False.")
        return {"ok": False, "error": self.error.to_dict()}
