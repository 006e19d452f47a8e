"""
Ledgerline Command Layer — Redo Envelope
==========================================
The stored command payload always keeps the original command input under
a reserved key, next to any handler-specific undo data, so an undone
command can be re-executed without the handler threading its input.
"""

from __future__ import annotations

from collections.abc import Mapping
from typing import Any, Optional

from core.commands.types import REDO_INPUT_KEY
from core.commands.undo import log_entry_value

def wrap_redo_payload(existing: Any, input: Any) -> dict[str, Any]:
    """
    Wrap a handler payload into the redo envelope.

    Mappings are copied with the input added; any other non-None value is
    kept under "value". An envelope that already carries a redo input is returned as is.
    """
    if not isinstance(existing, Mapping):
        envelope: dict[str, Any] = {REDO_INPUT_KEY: input}
        if existing is not None:
            envelope["value"] = existing
        return envelope
    if existing.get(REDO_INPUT_KEY) is not None:
        return dict(existing)
    return {REDO_INPUT_KEY: input, **existing}


def resolve_redo_input(log_entry: Any) -> Optional[Any]:
    """
    Recover the input to re-execute an undone command.

    Falls back, for *.update commands, to rebuilding {"id", <field>: to}
    from the recorded changes map.
    """
    payload = log_entry_value(log_entry, "command_payload")
    if isinstance(payload, Mapping) and payload.get(REDO_INPUT_KEY) is not None:
        return payload[REDO_INPUT_KEY]

    command_id = log_entry_value(log_entry, "command_id") or ""
    if not command_id.endswith(".update"):
        return None
    changes = log_entry_value(log_entry, "changes_json")
    if changes is None:
        changes = log_entry_value(log_entry, "changes")
    resource_id = log_entry_value(log_entry, "resource_id")
    if not isinstance(changes, Mapping) or not resource_id:
        return None
    rebuilt: dict[str, Any] = {"id": resource_id}
    for key, change in changes.items():
        if isinstance(change, Mapping) and "to" in change:
            rebuilt[key] = change["to"]
    return rebuilt if len(rebuilt) > 1 else None
