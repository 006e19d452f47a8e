"""
Ledgerline Data Layer — Custom Field Snapshots
================================================
Reads the custom-field values of one record as a flat {key: value} map,
the shape embedded under "custom" in command snapshots.
"""

from __future__ import annotations

from typing import Any, Optional

from core.data.models import CustomFieldValue


async def load_custom_field_snapshot(
    *,
    entity_id: str,
    record_id: str,
    tenant_id: Optional[str] = None,
    organization_id: Optional[str] = None,
) -> dict[str, Any]:
    queryset = CustomFieldValue.objects.filter(
        entity_id=entity_id,
        record_id=str(record_id),
    )
    if tenant_id:
        queryset = queryset.filter(tenant_id=tenant_id)
    if organization_id:
        queryset = queryset.filter(organization_id=organization_id)

    snapshot: dict[str, Any] = {}
    async for row in queryset.order_by("field_key"):
        snapshot[row.field_key] = row.value
    return snapshot
