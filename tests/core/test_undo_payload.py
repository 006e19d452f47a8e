"""
Ledgerline Undo Payload & Redo Envelope — Tests
=================================================
"""

from __future__ import annotations

from core.commands import REDO_INPUT_KEY, extract_undo_payload
from core.commands.redo import resolve_redo_input, wrap_redo_payload


# ══════════════════════════════════════════════════════════════
# extract_undo_payload
# ══════════════════════════════════════════════════════════════

class TestExtractUndoPayload:
    def test_reads_top_level_undo(self):
        entry = {"command_payload": {"undo": {"before": {"id": "1"}}}}
        assert extract_undo_payload(entry) == {"before": {"id": "1"}}

    def test_reads_undo_nested_under_value(self):
        entry = {"command_payload": {REDO_INPUT_KEY: {}, "value": {"undo": {"after": 2}}}}
        assert extract_undo_payload(entry) == {"after": 2}

    def test_reads_undo_from_any_other_entry(self):
        entry = {
            "command_payload": {
                REDO_INPUT_KEY: {"undo": "not this one"},
                "custom": {"undo": {"snapshot": 3}},
            },
        }
        assert extract_undo_payload(entry) == {"snapshot": 3}

    def test_explicit_none_under_nested_entry_returns_none(self):
        entry = {
            "command_payload": {"meta": {"undo": None}},
            "snapshot_before": {"id": "1"},
        }
        assert extract_undo_payload(entry) is None

    def test_falls_back_to_log_snapshots(self):
        entry = {
            "command_payload": {REDO_INPUT_KEY: {"id": "1"}},
            "snapshot_before": {"id": "1", "title": "a"},
            "snapshot_after": None,
        }
        assert extract_undo_payload(entry) == {
            "before": {"id": "1", "title": "a"},
            "after": None,
        }

    def test_none_without_payload_or_snapshots(self):
        assert extract_undo_payload({"command_payload": None}) is None
        assert extract_undo_payload(None) is None

    def test_reads_model_attributes(self):
        class Entry:
            command_payload = {"undo": {"before": {"id": "x"}}}
            snapshot_before = None
            snapshot_after = None

        assert extract_undo_payload(Entry()) == {"before": {"id": "x"}}


# ══════════════════════════════════════════════════════════════
# REDO ENVELOPE
# ══════════════════════════════════════════════════════════════

class TestWrapRedoPayload:
    def test_mapping_payload_gains_input(self):
        wrapped = wrap_redo_payload({"undo": {"a": 1}}, {"id": "1"})
        assert wrapped == {REDO_INPUT_KEY: {"id": "1"}, "undo": {"a": 1}}

    def test_non_mapping_payload_kept_under_value(self):
        wrapped = wrap_redo_payload(["x"], {"id": "1"})
        assert wrapped == {REDO_INPUT_KEY: {"id": "1"}, "value": ["x"]}

    def test_none_payload_only_carries_input(self):
        assert wrap_redo_payload(None, "raw") == {REDO_INPUT_KEY: "raw"}

    def test_existing_envelope_untouched(self):
        existing = {REDO_INPUT_KEY: {"id": "orig"}, "undo": {}}
        assert wrap_redo_payload(existing, {"id": "new"}) == existing


class TestResolveRedoInput:
    def test_prefers_envelope_input(self):
        entry = {
            "command_id": "example.todos.create",
            "command_payload": {REDO_INPUT_KEY: {"title": "again"}},
        }
        assert resolve_redo_input(entry) == {"title": "again"}

    def test_rebuilds_update_input_from_changes(self):
        entry = {
            "command_id": "example.todos.update",
            "command_payload": {"undo": {}},
            "resource_id": "todo-1",
            "changes_json": {
                "title": {"from": "a", "to": "b"},
                "is_done": {"from": False, "to": True},
            },
        }
        assert resolve_redo_input(entry) == {"id": "todo-1", "title": "b", "is_done": True}

    def test_non_update_without_envelope_is_unavailable(self):
        entry = {
            "command_id": "example.todos.delete",
            "command_payload": {"undo": {}},
            "resource_id": "todo-1",
        }
        assert resolve_redo_input(entry) is None

    def test_update_without_changes_is_unavailable(self):
        entry = {
            "command_id": "example.todos.update",
            "command_payload": None,
            "resource_id": "todo-1",
            "changes_json": {},
        }
        assert resolve_redo_input(entry) is None
