"""
Ledgerline Core Caching — CRUD Read-View Tags & Invalidation
==============================================================
Tag vocabulary shared by cached CRUD reads and command-side invalidation.

Tags:
    crud:<resource>:tenant:<tenant>:record:<id>
    crud:<resource>:tenant:<tenant>:org:<org>:collection

A command invalidates the record tag and the collection tags for the
affected organization (and the tenant-wide "null" organization) under the
resource kind and every alias (for example the resource derived from the
command id, "example.todos.create" → "example.todos").

Invalidation is best-effort: callers swallow failures (see CommandBus).
"""

from __future__ import annotations

import logging
import re
from collections.abc import Mapping
from threading import Lock
from typing import Any, Iterable, Optional

from django.conf import settings

from core.caching import TTLCache
from core.commands.types import resolve_maybe_awaitable
from core.container import CACHE

logger = logging.getLogger("ledgerline.cache")

_SEGMENT_UNSAFE = re.compile(r"[^a-z0-9._\-]+")

_SHARED_CACHE: Optional[TTLCache] = None
_SHARED_CACHE_LOCK = Lock()


# ══════════════════════════════════════════════════════════════
# SETTINGS
# ══════════════════════════════════════════════════════════════

def is_crud_cache_enabled() -> bool:
    return bool(getattr(settings, "LEDGERLINE_CRUD_CACHE_ENABLED", True))


def is_crud_cache_debug_enabled() -> bool:
    return bool(getattr(settings, "LEDGERLINE_CRUD_CACHE_DEBUG", False))


def debug_crud_cache(event: str, details: Mapping[str, Any]) -> None:
    if is_crud_cache_debug_enabled():
        logger.debug(f"[crud][cache] {event} {dict(details)}")


def build_crud_cache() -> TTLCache:
    """Process-wide cache instance shared by every container."""
    global _SHARED_CACHE
    with _SHARED_CACHE_LOCK:
        if _SHARED_CACHE is None:
            _SHARED_CACHE = TTLCache(
                max_size=getattr(settings, "LEDGERLINE_CRUD_CACHE_MAX_SIZE", 1000),
                default_ttl_seconds=getattr(
                    settings, "LEDGERLINE_CRUD_CACHE_TTL_SECONDS", 300
                ),
            )
        return _SHARED_CACHE


def resolve_crud_cache(container: Any) -> Optional[Any]:
    if container is None or not container.has(CACHE):
        return None
    return container.resolve(CACHE)


# ══════════════════════════════════════════════════════════════
# TAG VOCABULARY
# ══════════════════════════════════════════════════════════════

def normalize_tag_segment(value: Any) -> str:
    if value is None:
        return "null"
    text = str(value).strip().lower()
    if not text:
        return "null"
    return _SEGMENT_UNSAFE.sub("_", text)


def canonicalize_resource_tag(value: Any) -> Optional[str]:
    if not isinstance(value, str):
        return None
    text = value.strip().lower()
    if not text:
        return None
    text = text.replace("/", ".").replace(":", ".")
    text = _SEGMENT_UNSAFE.sub("_", text).strip("._")
    return text or None


def derive_resource_from_command_id(command_id: Any) -> Optional[str]:
    """Drop the trailing action segment: "example.todos.create" → "example.todos"."""
    if not isinstance(command_id, str):
        return None
    parts = [part for part in command_id.strip().split(".") if part]
    if len(parts) < 2:
        return None
    return canonicalize_resource_tag(".".join(parts[:-1]))


def pick_first_identifier(*candidates: Any) -> Optional[str]:
    for candidate in candidates:
        if isinstance(candidate, bool) or candidate is None:
            continue
        if isinstance(candidate, str):
            if candidate.strip():
                return candidate.strip()
            continue
        if isinstance(candidate, int):
            return str(candidate)
        text = str(candidate).strip()
        if text and not isinstance(candidate, (Mapping, list, tuple, set)):
            return text
    return None


def build_record_tag(resource: str, tenant_id: Any, record_id: Any) -> str:
    return (
        f"crud:{normalize_tag_segment(resource)}"
        f":tenant:{normalize_tag_segment(tenant_id)}"
        f":record:{normalize_tag_segment(record_id)}"
    )


def build_collection_tags(
    resource: str,
    tenant_id: Any,
    organization_ids: Optional[Iterable[Any]] = None,
) -> list[str]:
    org_ids = list(organization_ids or [])
    if None not in org_ids:
        org_ids.append(None)
    base = (
        f"crud:{normalize_tag_segment(resource)}"
        f":tenant:{normalize_tag_segment(tenant_id)}"
    )
    seen: list[str] = []
    for org_id in org_ids:
        tag = f"{base}:org:{normalize_tag_segment(org_id)}:collection"
        if tag not in seen:
            seen.append(tag)
    return seen


# ══════════════════════════════════════════════════════════════
# INVALIDATION
# ══════════════════════════════════════════════════════════════

async def invalidate_crud_cache(
    container: Any,
    resource: str,
    identifiers: Mapping[str, Any],
    fallback_tenant: Optional[str],
    reason: str,
    alias_tags: Optional[Iterable[str]] = None,
) -> int:
    """
    Invalidate cached views for a resource (and its aliases).

    Returns the number of entries dropped; 0 when caching is disabled or
    no cache is registered.
    """
    if not is_crud_cache_enabled():
        return 0
    cache = resolve_crud_cache(container)
    if cache is None:
        return 0

    resources: list[str] = []
    for candidate in [resource, *(alias_tags or [])]:
        canonical = canonicalize_resource_tag(candidate)
        if canonical and canonical not in resources:
            resources.append(canonical)

    record_id = identifiers.get("id")
    organization_id = identifiers.get("organizationId")
    tenant_id = identifiers.get("tenantId") or fallback_tenant

    tags: list[str] = []
    for target in resources:
        if record_id:
            tags.append(build_record_tag(target, tenant_id, record_id))
        tags.extend(build_collection_tags(target, tenant_id, [organization_id]))

    dropped = 0
    for tag in tags:
        dropped += await resolve_maybe_awaitable(cache.invalidate_by_tag(tag))

    debug_crud_cache(
        "invalidate",
        {"reason": reason, "resources": resources, "tags": tags, "dropped": dropped},
    )
    return dropped
