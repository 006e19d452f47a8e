"""
Ledgerline Change/Diff Engine — Tests
=======================================
Pure diffs between snapshots: no Django, no I/O.
"""

from __future__ import annotations

import uuid
from datetime import datetime, timezone
from decimal import Decimal

from core.commands.changes import (
    build_changes,
    build_record_changes,
    deep_equal,
    derive_changes_from_snapshots,
    normalize_custom_field_key,
)


# ══════════════════════════════════════════════════════════════
# deep_equal
# ══════════════════════════════════════════════════════════════

class TestDeepEqual:
    def test_nested_structures_compare_structurally(self):
        left = {"a": [1, {"b": "x"}], "c": None}
        right = {"a": [1, {"b": "x"}], "c": None}
        assert deep_equal(left, right)

    def test_list_order_matters(self):
        assert not deep_equal([1, 2], [2, 1])

    def test_datetime_equals_matching_iso_string(self):
        moment = datetime(2026, 3, 1, 12, 30, tzinfo=timezone.utc)
        assert deep_equal(moment, "2026-03-01T12:30:00+00:00")

    def test_bool_is_not_int(self):
        assert not deep_equal(True, 1)

    def test_value_types_compare_by_value(self):
        assert deep_equal(Decimal("9.99"), Decimal("9.99"))
        assert not deep_equal(Decimal("9.99"), Decimal("10.00"))
        ident = "3b241101-e2bb-4255-8caf-4136c566a962"
        assert deep_equal(uuid.UUID(ident), uuid.UUID(ident))

    def test_self_referencing_mapping_does_not_recurse_forever(self):
        left: dict = {}
        left["self"] = left
        right: dict = {}
        right["self"] = right
        assert deep_equal(left, right) is False


# ══════════════════════════════════════════════════════════════
# INFERRED RECORD CHANGES
# ══════════════════════════════════════════════════════════════

class TestBuildRecordChanges:
    def test_reports_only_changed_keys(self):
        changes = build_record_changes(
            {"name": "A", "parentId": None, "isActive": True},
            {"name": "B", "parentId": "X", "isActive": True},
        )
        assert changes == {
            "name": {"from": "A", "to": "B"},
            "parentId": {"from": None, "to": "X"},
        }

    def test_identical_decimals_are_not_changes(self):
        changes = build_record_changes(
            {"price": Decimal("9.99"), "sku": "A-1"},
            {"price": Decimal("9.99"), "sku": "A-2"},
        )
        assert changes == {"sku": {"from": "A-1", "to": "A-2"}}

    def test_updated_at_never_appears(self):
        changes = build_record_changes(
            {"title": "a", "updatedAt": "2026-01-01T00:00:00+00:00", "updated_at": 1},
            {"title": "a", "updatedAt": "2026-02-01T00:00:00+00:00", "updated_at": 2},
        )
        assert changes == {}

    def test_nested_mapping_reports_dotted_leaves(self):
        changes = build_record_changes(
            {"address": {"city": "Oslo", "zip": "0150"}},
            {"address": {"city": "Bergen", "zip": "0150"}},
        )
        assert changes == {"address.city": {"from": "Oslo", "to": "Bergen"}}

    def test_added_and_removed_keys_report_none(self):
        changes = build_record_changes({"old": 1}, {"new": 2})
        assert changes == {
            "old": {"from": 1, "to": None},
            "new": {"from": None, "to": 2},
        }

    def test_custom_container_is_flattened_with_prefix(self):
        changes = build_record_changes(
            {"custom": {"priority": "low", "cf_color": "red"}},
            {"custom": {"priority": "high", "cf_color": "red", "size": 3}},
        )
        assert changes == {
            "cf_priority": {"from": "low", "to": "high"},
            "cf_size": {"from": None, "to": 3},
        }

    def test_custom_key_prefix_not_doubled(self):
        assert normalize_custom_field_key("cf_color") == "cf_color"
        assert normalize_custom_field_key("cf:color") == "cf_color"
        assert normalize_custom_field_key("color") == "cf_color"


class TestDeriveChangesFromSnapshots:
    def test_none_when_a_side_is_missing(self):
        assert derive_changes_from_snapshots(None, {"a": 1}) is None
        assert derive_changes_from_snapshots({"a": 1}, "not-a-record") is None

    def test_none_when_nothing_changed(self):
        assert derive_changes_from_snapshots({"a": 1}, {"a": 1}) is None

    def test_returns_diff(self):
        assert derive_changes_from_snapshots({"a": 1}, {"a": 2}) == {
            "a": {"from": 1, "to": 2},
        }


# ══════════════════════════════════════════════════════════════
# EXPLICIT CHANGES
# ══════════════════════════════════════════════════════════════

class TestBuildChanges:
    def test_only_listed_keys_are_compared(self):
        changes = build_changes(
            {"title": "a", "is_done": False, "other": 1},
            {"title": "b", "is_done": False, "other": 2},
            ("title", "is_done"),
        )
        assert changes == {"title": {"from": "a", "to": "b"}}

    def test_empty_without_before(self):
        assert build_changes(None, {"title": "b"}, ("title",)) == {}

    def test_updated_at_skipped_even_when_listed(self):
        changes = build_changes({"updatedAt": 1}, {"updatedAt": 2}, ("updatedAt",))
        assert changes == {}
