"""
Ledgerline Feature Toggles Module — Toggle Lookups
====================================================
Resolves toggle state for a tenant, cached in the shared TTLCache.

Resolution order:
1. The tenant's override value, when one exists
2. The toggle's default value
3. Disabled, when no toggle carries the identifier

Every cached answer is tagged "feature_toggles:identifier:<identifier>",
so commands that change a toggle clear all tenants' answers at once.
"""

from __future__ import annotations

import logging
from typing import Any, Optional

from modules.feature_toggles.models import FeatureToggle, FeatureToggleOverride, ToggleType

logger = logging.getLogger("ledgerline.cache")

CACHE_KEY_PREFIX = "feature_toggles:is_enabled"
IDENTIFIER_TAG_PREFIX = "feature_toggles:identifier"


def identifier_tag(identifier: str) -> str:
    return f"{IDENTIFIER_TAG_PREFIX}:{identifier}"


def _is_truthy(toggle_type: str, value: Any) -> bool:
    if toggle_type == ToggleType.BOOLEAN:
        return value is True
    return value is not None


class FeatureTogglesService:
    """
    Toggle state lookups.

    The cache is optional; without one every call reads the database.
    """

    def __init__(self, cache: Optional[Any] = None):
        self._cache = cache

    async def resolve_value(self, identifier: str, tenant_id: Optional[str]) -> tuple[Optional[str], Any]:
        """Return (toggle type, effective value), or (None, None) when unknown."""
        toggle = await FeatureToggle.objects.filter(identifier=identifier).afirst()
        if toggle is None:
            return None, None
        if tenant_id:
            override = await FeatureToggleOverride.objects.filter(
                toggle_id=toggle.id,
                tenant_id=tenant_id,
            ).afirst()
            if override is not None:
                return toggle.type, override.value
        return toggle.type, toggle.default_value

    async def is_enabled(self, identifier: str, tenant_id: Optional[str] = None) -> bool:
        key = f"{CACHE_KEY_PREFIX}:{identifier}:{tenant_id or 'global'}"
        if self._cache is not None:
            cached = self._cache.get(key)
            if cached is not None:
                return cached

        toggle_type, value = await self.resolve_value(identifier, tenant_id)
        enabled = toggle_type is not None and _is_truthy(toggle_type, value)

        if self._cache is not None:
            self._cache.put(
                key,
                enabled,
                tenant_id=tenant_id,
                tags=[identifier_tag(identifier)],
            )
        return enabled

    async def invalidate_is_enabled_cache_by_identifier_tag(self, identifier: str) -> int:
        if self._cache is None or not identifier:
            return 0
        removed = self._cache.invalidate_by_tag(identifier_tag(identifier))
        logger.debug(f"Invalidated {removed} cached toggle answers for {identifier}")
        return removed
