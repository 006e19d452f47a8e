"""
Ledgerline Context — Public API
================================
Per-invocation runtime context and scope enforcement.
"""

from core.context.runtime import (
    AuthContext,
    CommandRuntimeContext,
    OrganizationScope,
)
from core.context.scope_guard import (
    ResolvedScope,
    ensure_organization_allowed,
    ensure_scope,
    ensure_tenant_matches,
    resolve_undo_scope,
)

__all__ = [
    "AuthContext",
    "CommandRuntimeContext",
    "OrganizationScope",
    "ResolvedScope",
    "ensure_organization_allowed",
    "ensure_scope",
    "ensure_tenant_matches",
    "resolve_undo_scope",
]
