"""
Ledgerline Directory Module — Hierarchy Bookkeeping
=====================================================
Recomputes derived tree fields for every live organization of a tenant.

Rules:
- parent_id is the source of truth; everything else is derived
- a parent that is deleted or outside the tenant makes the row a root
- a parent chain that loops back is cut at the first repeated id
- only rows whose derived fields changed are written, and updated_at
  is left alone so hierarchy rebuilds never show up in change diffs
"""

from __future__ import annotations

import logging
from dataclasses import dataclass

from modules.directory.models import Organization

logger = logging.getLogger("ledgerline.directory")

HIERARCHY_FIELDS = ["ancestor_ids", "child_ids", "descendant_ids", "depth"]


@dataclass(frozen=True)
class HierarchyNode:
    ancestor_ids: list[str]
    child_ids: list[str]
    descendant_ids: list[str]
    depth: int


def compute_hierarchy(parents: dict[str, str | None]) -> dict[str, HierarchyNode]:
    """
    Derive tree fields from an id → parent id map.

    Ancestors are ordered nearest-first. Children keep the iteration
    order of the input map; descendants are depth-first.
    """
    children: dict[str, list[str]] = {node_id: [] for node_id in parents}
    effective_parent: dict[str, str | None] = {}
    for node_id, parent_id in parents.items():
        if parent_id and parent_id in parents and parent_id != node_id:
            effective_parent[node_id] = parent_id
        else:
            effective_parent[node_id] = None

    ancestors: dict[str, list[str]] = {}
    for node_id in parents:
        chain: list[str] = []
        seen = {node_id}
        current = effective_parent[node_id]
        while current is not None and current not in seen:
            chain.append(current)
            seen.add(current)
            current = effective_parent[current]
        ancestors[node_id] = chain
        if chain:
            children[chain[0]].append(node_id)

    def collect(node_id: str, visited: set[str]) -> list[str]:
        result: list[str] = []
        for child_id in children[node_id]:
            if child_id in visited:
                continue
            visited.add(child_id)
            result.append(child_id)
            result.extend(collect(child_id, visited))
        return result

    return {
        node_id: HierarchyNode(
            ancestor_ids=ancestors[node_id],
            child_ids=list(children[node_id]),
            descendant_ids=collect(node_id, {node_id}),
            depth=len(ancestors[node_id]),
        )
        for node_id in parents
    }


async def rebuild_hierarchy_for_tenant(tenant_id: str) -> int:
    """
    Rewrite derived hierarchy fields for a tenant.

    Returns:
        Number of organizations whose bookkeeping changed.
    """
    organizations = [
        org
        async for org in Organization.objects.filter(
            tenant_id=tenant_id,
            deleted_at__isnull=True,
        ).order_by("created_at", "id")
    ]
    parents = {
        str(org.id): (str(org.parent_id) if org.parent_id else None)
        for org in organizations
    }
    nodes = compute_hierarchy(parents)

    updated = 0
    for org in organizations:
        node = nodes[str(org.id)]
        if (
            org.ancestor_ids == node.ancestor_ids
            and org.child_ids == node.child_ids
            and org.descendant_ids == node.descendant_ids
            and org.depth == node.depth
        ):
            continue
        org.ancestor_ids = node.ancestor_ids
        org.child_ids = node.child_ids
        org.descendant_ids = node.descendant_ids
        org.depth = node.depth
        await org.asave(update_fields=HIERARCHY_FIELDS)
        updated += 1

    logger.debug(
        f"Rebuilt hierarchy for tenant {tenant_id}: "
        f"{len(organizations)} organizations, {updated} updated"
    )
    return updated
