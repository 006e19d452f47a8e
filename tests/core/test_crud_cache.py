"""
Ledgerline CRUD Cache — Tests
===============================
TTLCache behavior with an injected clock, the tag vocabulary and
invalidate_crud_cache().
"""

from __future__ import annotations

from datetime import datetime, timedelta, timezone

import pytest

from core.caching import TTLCache
from core.caching.crud import (
    build_collection_tags,
    build_record_tag,
    canonicalize_resource_tag,
    derive_resource_from_command_id,
    invalidate_crud_cache,
    normalize_tag_segment,
    pick_first_identifier,
)
from core.container import CACHE, ServiceContainer

NOW = datetime(2026, 3, 1, 9, 0, tzinfo=timezone.utc)
TENANT_ID = "Tenant-A"


# ══════════════════════════════════════════════════════════════
# TTL CACHE
# ══════════════════════════════════════════════════════════════

class TestTTLCache:
    def test_entry_expires_after_ttl(self):
        cache = TTLCache(default_ttl_seconds=30)
        cache.put("k", "v", now=NOW)
        assert cache.get("k", now=NOW + timedelta(seconds=29)) == "v"
        assert cache.get("k", now=NOW + timedelta(seconds=31)) is None

    def test_per_entry_ttl_override(self):
        cache = TTLCache(default_ttl_seconds=300)
        cache.put("k", "v", now=NOW, ttl_seconds=5)
        assert cache.get("k", now=NOW + timedelta(seconds=6)) is None

    def test_lru_eviction_at_capacity(self):
        cache = TTLCache(max_size=2)
        cache.put("a", 1, now=NOW)
        cache.put("b", 2, now=NOW)
        cache.get("a", now=NOW)
        cache.put("c", 3, now=NOW)
        assert cache.get("a", now=NOW) == 1
        assert cache.get("b", now=NOW) is None
        assert cache.get("c", now=NOW) == 3

    def test_invalidate_by_tag_drops_every_tagged_entry(self):
        cache = TTLCache()
        cache.put("a", 1, now=NOW, tags=["t1"])
        cache.put("b", 2, now=NOW, tags=["t1", "t2"])
        cache.put("c", 3, now=NOW, tags=["t2"])
        assert cache.invalidate_by_tag("t1") == 2
        assert cache.get("c", now=NOW) == 3
        assert cache.invalidate_by_tag("t1") == 0

    def test_invalidate_by_tenant(self):
        cache = TTLCache()
        cache.put("a", 1, now=NOW, tenant_id="t-1")
        cache.put("b", 2, now=NOW, tenant_id="t-2")
        assert cache.invalidate_by_tenant("t-1") == 1
        assert cache.get("b", now=NOW) == 2

    def test_evicted_entries_leave_no_empty_tags(self):
        cache = TTLCache(max_size=1, default_ttl_seconds=30)
        cache.put("a", 1, now=NOW, tags=["record:a"])
        cache.put("b", 2, now=NOW, tags=["record:b", "shared"])
        assert cache.tag_count == 2

        assert cache.get("b", now=NOW + timedelta(seconds=31)) is None
        assert cache.tag_count == 0

    def test_stats_track_hits_and_misses(self):
        cache = TTLCache()
        cache.put("a", 1, now=NOW)
        cache.get("a", now=NOW)
        cache.get("missing", now=NOW)
        stats = cache.stats
        assert stats.hits == 1
        assert stats.misses == 1


# ══════════════════════════════════════════════════════════════
# TAG VOCABULARY
# ══════════════════════════════════════════════════════════════

class TestTags:
    def test_segments_are_lowercased_and_sanitized(self):
        assert normalize_tag_segment("Tenant A/1") == "tenant_a_1"
        assert normalize_tag_segment(None) == "null"
        assert normalize_tag_segment("  ") == "null"

    def test_resource_tag_canonicalization(self):
        assert canonicalize_resource_tag("Example/Todos") == "example.todos"
        assert canonicalize_resource_tag("directory:organization") == "directory.organization"
        assert canonicalize_resource_tag("") is None
        assert canonicalize_resource_tag(7) is None

    def test_resource_derived_from_command_id(self):
        assert derive_resource_from_command_id("example.todos.create") == "example.todos"
        assert derive_resource_from_command_id("single") is None

    def test_pick_first_identifier_skips_blank_and_bool(self):
        assert pick_first_identifier(None, "", True, "  id-1 ", "id-2") == "id-1"
        assert pick_first_identifier(None, 5) == "5"
        assert pick_first_identifier(None, {"id": 1}) is None

    def test_record_tag(self):
        assert build_record_tag("example.todo", TENANT_ID, "R1") == (
            "crud:example.todo:tenant:tenant-a:record:r1"
        )

    def test_collection_tags_always_include_null_organization(self):
        assert build_collection_tags("example.todo", TENANT_ID, ["org-1", "org-1"]) == [
            "crud:example.todo:tenant:tenant-a:org:org-1:collection",
            "crud:example.todo:tenant:tenant-a:org:null:collection",
        ]


# ══════════════════════════════════════════════════════════════
# INVALIDATION
# ══════════════════════════════════════════════════════════════

class TestInvalidateCrudCache:
    async def test_record_collection_and_alias_tags(self):
        cache = TTLCache()
        container = ServiceContainer().register_instance(CACHE, cache)
        cache.put("record", 1, tags=[build_record_tag("example.todo", TENANT_ID, "r1")])
        cache.put("alias", 2, tags=[build_record_tag("example.todos", TENANT_ID, "r1")])
        cache.put(
            "collection",
            3,
            tags=build_collection_tags("example.todo", TENANT_ID, [None]),
        )
        cache.put("other", 4, tags=[build_record_tag("example.todo", "tenant-b", "r1")])

        dropped = await invalidate_crud_cache(
            container,
            "example.todo",
            {"id": "r1", "organizationId": "org-1", "tenantId": TENANT_ID},
            None,
            "test",
            ["example.todos"],
        )

        assert dropped == 3
        assert cache.get("other") == 4

    async def test_fallback_tenant_used_when_identifiers_lack_one(self):
        cache = TTLCache()
        container = ServiceContainer().register_instance(CACHE, cache)
        cache.put("record", 1, tags=[build_record_tag("example.todo", TENANT_ID, "r1")])
        dropped = await invalidate_crud_cache(
            container, "example.todo", {"id": "r1"}, TENANT_ID, "test"
        )
        assert dropped == 1

    async def test_no_cache_registered_is_noop(self):
        assert await invalidate_crud_cache(
            ServiceContainer(), "example.todo", {"id": "r1"}, TENANT_ID, "test"
        ) == 0

    async def test_disabled_cache_is_noop(self, settings):
        settings.LEDGERLINE_CRUD_CACHE_ENABLED = False
        cache = TTLCache()
        container = ServiceContainer().register_instance(CACHE, cache)
        cache.put("record", 1, tags=[build_record_tag("example.todo", TENANT_ID, "r1")])
        dropped = await invalidate_crud_cache(
            container, "example.todo", {"id": "r1"}, TENANT_ID, "test"
        )
        assert dropped == 0
        assert cache.get("record") == 1


@pytest.mark.parametrize("command_id,expected", [
    ("directory.organizations.update", "directory.organizations"),
    ("feature_toggles.global.delete", "feature_toggles.global"),
])
def test_module_command_ids_derive_resources(command_id, expected):
    assert derive_resource_from_command_id(command_id) == expected
