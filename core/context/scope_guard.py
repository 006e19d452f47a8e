"""
Ledgerline Scope Guard — Tenant/Organization Enforcement
==========================================================
Scope checks shared by command handlers.

ensure_scope() runs at the top of execute hooks that write
tenant/organization-owned rows. resolve_undo_scope() runs at the top of
every undo hook: an undo token issued in one tenant/organization must not
be redeemable by an actor scoped to another.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Mapping, Optional

from core.commands.errors import ScopeViolation
from core.context.runtime import CommandRuntimeContext
from core.crud.errors import CrudHttpError


@dataclass(frozen=True)
class ResolvedScope:
    tenant_id: str
    organization_id: str


def ensure_scope(ctx: CommandRuntimeContext) -> ResolvedScope:
    """Require both tenant and organization on the acting context."""
    tenant_id = ctx.tenant_id
    if not tenant_id:
        raise CrudHttpError(400, {"error": "Tenant context is required"})
    organization_id = ctx.default_organization_id
    if not organization_id:
        raise CrudHttpError(400, {"error": "Organization context is required"})
    return ResolvedScope(tenant_id=tenant_id, organization_id=organization_id)


def ensure_tenant_matches(
    ctx: CommandRuntimeContext,
    tenant_id: Optional[str],
) -> None:
    """Reject when an entry tenant differs from the acting tenant."""
    acting = ctx.tenant_id
    if tenant_id and acting and str(tenant_id) != str(acting):
        raise ScopeViolation("Undo scope does not match tenant.")


def ensure_organization_allowed(
    ctx: CommandRuntimeContext,
    organization_id: Optional[str],
) -> None:
    """
    Reject when an entry organization is outside the actor's allowed set.

    The selected organization is always allowed. A context without an
    allowed-organization list is unrestricted within its tenant.
    """
    if not organization_id:
        return
    organization_id = str(organization_id)
    if organization_id == ctx.selected_organization_id:
        return
    allowed = ctx.organization_ids
    if allowed is None and ctx.organization_scope is not None:
        allowed = ctx.organization_scope.allowed_ids
    if allowed is not None and organization_id not in allowed:
        raise ScopeViolation(
            "Undo scope is not permitted for this organization."
        )


def resolve_undo_scope(
    ctx: CommandRuntimeContext,
    snapshot: Optional[Mapping[str, Any]] = None,
) -> ResolvedScope:
    """
    Re-validate an undo against the snapshot it reverses.

    Raises:
        ScopeViolation: Snapshot tenant differs from the acting tenant, or
                        the snapshot organization is not permitted.
        CrudHttpError:  Acting context lacks tenant/organization.
    """
    scope = ensure_scope(ctx)
    snapshot = snapshot or {}
    tenant_id = snapshot.get("tenantId") or scope.tenant_id
    if str(tenant_id) != str(scope.tenant_id):
        raise ScopeViolation("Undo scope does not match tenant.")

    organization_id = scope.organization_id
    snapshot_org = snapshot.get("organizationId")
    if snapshot_org:
        ensure_organization_allowed(ctx, snapshot_org)
        organization_id = str(snapshot_org)
    return ResolvedScope(tenant_id=str(tenant_id), organization_id=organization_id)
