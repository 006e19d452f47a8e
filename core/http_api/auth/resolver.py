"""
Ledgerline HTTP API Auth - Identity Resolvers
=============================================
Resolve the acting identity from request headers and build the command
runtime context for it.

Authentication happens upstream (gateway / session middleware); these
headers carry its outcome:

    X-Actor-Id           acting user id (required)
    X-Tenant-Id          tenant of the actor
    X-Organization-Id    selected organization
    X-Organization-Ids   comma-separated allowed organizations; absent
                         means unrestricted within the tenant
    X-Roles              comma-separated role names
"""

from __future__ import annotations

from typing import Any, Optional

from core.context.runtime import AuthContext, CommandRuntimeContext, OrganizationScope
from core.http_api.contracts import ActorMetadata

HEADER_ACTOR_ID = "x-actor-id"
HEADER_TENANT_ID = "x-tenant-id"
HEADER_ORGANIZATION_ID = "x-organization-id"
HEADER_ORGANIZATION_IDS = "x-organization-ids"
HEADER_ROLES = "x-roles"

SUPERADMIN_ROLE = "superadmin"


def _normalize_headers(headers: dict[str, Any] | None) -> dict[str, str]:
    normalized: dict[str, str] = {}
    for key, value in (headers or {}).items():
        normalized[str(key).strip().lower()] = str(value).strip()
    return normalized


def _split_list(value: Optional[str]) -> tuple[str, ...]:
    if not value:
        return tuple()
    return tuple(part.strip() for part in value.split(",") if part.strip())


def resolve_actor_metadata(headers: dict[str, Any] | None) -> ActorMetadata | None:
    """ActorMetadata for the request, or None when no actor is present."""
    normalized = _normalize_headers(headers)
    actor_id = normalized.get(HEADER_ACTOR_ID)
    if not actor_id:
        return None
    organization_ids = (
        _split_list(normalized[HEADER_ORGANIZATION_IDS])
        if HEADER_ORGANIZATION_IDS in normalized
        else None
    )
    return ActorMetadata(
        actor_id=actor_id,
        tenant_id=normalized.get(HEADER_TENANT_ID) or None,
        organization_id=normalized.get(HEADER_ORGANIZATION_ID) or None,
        organization_ids=organization_ids,
        roles=_split_list(normalized.get(HEADER_ROLES)),
    )


def build_runtime_context(
    actor: ActorMetadata,
    container: Any,
    request: Any = None,
) -> CommandRuntimeContext:
    auth = AuthContext(
        sub=actor.actor_id,
        tenant_id=actor.tenant_id,
        org_id=actor.organization_id,
        roles=actor.roles,
        is_super_admin=SUPERADMIN_ROLE in actor.roles,
    )
    scope = OrganizationScope(
        selected_id=actor.organization_id,
        allowed_ids=actor.organization_ids,
        tenant_id=actor.tenant_id,
    )
    return CommandRuntimeContext(
        container=container,
        auth=auth,
        organization_scope=scope,
        selected_organization_id=actor.organization_id,
        organization_ids=actor.organization_ids,
        request=request,
    )
