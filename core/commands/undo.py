"""
Ledgerline Command Layer — Undo Payload Extraction
====================================================
Reads the reversal data a handler stored at build_log() time.

Lookup order on the stored command payload (the redo envelope):
    1. payload["undo"]
    2. payload["value"]["undo"]      (non-mapping payload wrapped by the bus)
    3. any other entry carrying an "undo" key (explicit None → None)
Falling back to {"before", "after"} from the entry snapshots.
"""

from __future__ import annotations

from collections.abc import Mapping
from typing import Any, Optional

from core.commands.types import REDO_INPUT_KEY


def log_entry_value(log_entry: Any, name: str, default: Any = None) -> Any:
    """Read a field from an ActionLog row or a plain mapping."""
    if log_entry is None:
        return default
    if isinstance(log_entry, Mapping):
        return log_entry.get(name, default)
    return getattr(log_entry, name, default)


def _snapshot_fallback(log_entry: Any) -> Optional[dict[str, Any]]:
    before = log_entry_value(log_entry, "snapshot_before")
    after = log_entry_value(log_entry, "snapshot_after")
    if before is None and after is None:
        return None
    return {"before": before, "after": after}


def extract_undo_payload(log_entry: Any) -> Any:
    if log_entry is None:
        return None
    raw = log_entry_value(log_entry, "command_payload")
    if raw is None:
        raw = log_entry_value(log_entry, "payload")
    if not isinstance(raw, Mapping):
        return _snapshot_fallback(log_entry)

    if raw.get("undo"):
        return raw["undo"]
    value = raw.get("value")
    if isinstance(value, Mapping) and value.get("undo"):
        return value["undo"]
    for key, entry in raw.items():
        if key == REDO_INPUT_KEY:
            continue
        if isinstance(entry, Mapping) and "undo" in entry:
            return entry["undo"]
    return _snapshot_fallback(log_entry)
