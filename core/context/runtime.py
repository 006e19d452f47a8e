"""
Ledgerline Context — Command Runtime Context
==============================================
Per-invocation value objects handed to every command hook.

A fresh CommandRuntimeContext is built for each execute/undo call and is
never persisted. The container it carries is the only route by which
handlers reach persistence, the audit store and the cache.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Optional


@dataclass(frozen=True)
class AuthContext:
    """
    Authenticated actor identity.

    sub is the acting user id. Authorization itself is delegated to an
    external RBAC check; roles are carried as hints only.
    """

    sub: Optional[str] = None
    tenant_id: Optional[str] = None
    org_id: Optional[str] = None
    roles: tuple[str, ...] = field(default_factory=tuple)
    is_super_admin: bool = False

    def __post_init__(self):
        if not isinstance(self.roles, tuple):
            raise ValueError("roles must be a tuple.")


@dataclass(frozen=True)
class OrganizationScope:
    """Organizations the actor may act within for the current request."""

    selected_id: Optional[str] = None
    allowed_ids: Optional[tuple[str, ...]] = None
    tenant_id: Optional[str] = None

    def allows(self, organization_id: str) -> bool:
        if self.allowed_ids is None:
            return True
        return organization_id in self.allowed_ids


@dataclass(frozen=True)
class CommandRuntimeContext:
    """
    Execution context for one command invocation.

    organization_ids of None means "unrestricted within the tenant";
    an empty tuple means the actor has no organization access.
    """

    container: Any
    auth: Optional[AuthContext] = None
    organization_scope: Optional[OrganizationScope] = None
    selected_organization_id: Optional[str] = None
    organization_ids: Optional[tuple[str, ...]] = None
    request: Any = None

    def __post_init__(self):
        if self.container is None:
            raise ValueError("container is required.")
        if self.organization_ids is not None and not isinstance(
            self.organization_ids, tuple
        ):
            raise ValueError("organization_ids must be a tuple or None.")

    @property
    def tenant_id(self) -> Optional[str]:
        return self.auth.tenant_id if self.auth else None

    @property
    def actor_id(self) -> Optional[str]:
        return self.auth.sub if self.auth else None

    @property
    def default_organization_id(self) -> Optional[str]:
        if self.selected_organization_id:
            return self.selected_organization_id
        return self.auth.org_id if self.auth else None
