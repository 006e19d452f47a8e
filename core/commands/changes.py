"""
Ledgerline Command Layer — Change/Diff Engine
===============================================
Pure, deterministic field-level diffs between two snapshots.

Rules:
- deep_equal is structural with a cycle guard; a container seen twice
  on one comparison path compares unequal instead of recursing forever
- datetime values and ISO-8601 strings parsing to the same instant are equal
- sequences compare by position (reordering is a change)
- nested mappings recurse with dot-joined paths; when a nested diff is
  non-empty only the leaf entries are reported
- custom-field containers are diffed as one flat, cf_-prefixed key space
- updatedAt / updated_at never appear in a diff

No I/O, no Django, no logging.
"""

from __future__ import annotations

from collections.abc import Mapping
from datetime import date, datetime, timezone
from typing import Any, Optional

CUSTOM_FIELD_CONTAINER_KEYS = frozenset({"custom", "customFields", "customValues", "cf"})
SKIPPED_CHANGE_KEYS = frozenset({"updatedAt", "updated_at"})
CUSTOM_FIELD_PREFIX = "cf_"

_MISSING = object()

Changes = dict[str, dict[str, Any]]


def as_record(value: Any) -> Optional[Mapping]:
    return value if isinstance(value, Mapping) else None


def normalize_custom_field_key(key: str) -> str:
    """Custom field keys are reported as cf_<key> exactly once."""
    key = str(key)
    if key.startswith("cf:"):
        key = key[3:]
    if key.startswith(CUSTOM_FIELD_PREFIX):
        return key
    return f"{CUSTOM_FIELD_PREFIX}{key}"


def _to_instant(value: Any) -> Optional[str]:
    if isinstance(value, datetime):
        moment = value if value.tzinfo else value.replace(tzinfo=timezone.utc)
        return moment.astimezone(timezone.utc).isoformat()
    if isinstance(value, date):
        return datetime(value.year, value.month, value.day, tzinfo=timezone.utc).isoformat()
    if isinstance(value, str):
        try:
            parsed = datetime.fromisoformat(value.strip())
        except ValueError:
            return None
        return _to_instant(parsed)
    return None


def _same_scalar(a: Any, b: Any) -> bool:
    if isinstance(a, bool) or isinstance(b, bool):
        return isinstance(a, bool) and isinstance(b, bool) and a == b
    return a == b


def deep_equal(a: Any, b: Any, seen: Optional[set[int]] = None) -> bool:
    if a is b:
        return True
    if isinstance(a, (datetime, date)) or isinstance(b, (datetime, date)):
        a_iso = _to_instant(a)
        b_iso = _to_instant(b)
        if a_iso is not None and b_iso is not None:
            return a_iso == b_iso
        return False
    if isinstance(a, (list, tuple)) and isinstance(b, (list, tuple)):
        if len(a) != len(b):
            return False
        return all(deep_equal(x, y, seen) for x, y in zip(a, b))
    if isinstance(a, Mapping) and isinstance(b, Mapping):
        if seen is None:
            seen = set()
        if id(a) in seen or id(b) in seen:
            return False
        seen.add(id(a))
        seen.add(id(b))
        if len(a) != len(b):
            return False
        return all(deep_equal(a[key], b.get(key, _MISSING), seen) for key in a)
    return _same_scalar(a, b)


def _append_custom_field_changes(changes: Changes, before: Any, after: Any) -> bool:
    before_rec = as_record(before)
    after_rec = as_record(after)
    if before_rec is None and after_rec is None:
        return False
    left = before_rec or {}
    right = after_rec or {}
    for key in _ordered_union(left, right):
        from_value = left.get(key, _MISSING)
        to_value = right.get(key, _MISSING)
        if not deep_equal(from_value, to_value):
            changes[normalize_custom_field_key(key)] = _change(from_value, to_value)
    return True


def _change(from_value: Any, to_value: Any) -> dict[str, Any]:
    return {
        "from": None if from_value is _MISSING else from_value,
        "to": None if to_value is _MISSING else to_value,
    }


def _ordered_union(left: Mapping, right: Mapping) -> list:
    keys = list(left)
    keys.extend(key for key in right if key not in left)
    return keys


def _build_record_changes_deep(
    before: Mapping,
    after: Mapping,
    prefix: Optional[str],
    seen: set[int],
) -> Changes:
    changes: Changes = {}
    if id(before) in seen or id(after) in seen:
        return changes
    seen.add(id(before))
    seen.add(id(after))

    for key in _ordered_union(before, after):
        if key in SKIPPED_CHANGE_KEYS:
            continue
        if key in CUSTOM_FIELD_CONTAINER_KEYS:
            if _append_custom_field_changes(changes, before.get(key), after.get(key)):
                continue
        from_value = before.get(key, _MISSING)
        to_value = after.get(key, _MISSING)
        path = f"{prefix}.{key}" if prefix else str(key)
        from_rec = as_record(from_value)
        to_rec = as_record(to_value)
        if from_rec is not None and to_rec is not None:
            nested = _build_record_changes_deep(from_rec, to_rec, path, seen)
            if nested:
                changes.update(nested)
                continue
        if not deep_equal(from_value, to_value):
            changes[path] = _change(from_value, to_value)
    return changes


def build_record_changes(before: Mapping, after: Mapping) -> Changes:
    return _build_record_changes_deep(before, after, None, set())


def derive_changes_from_snapshots(before: Any, after: Any) -> Optional[Changes]:
    """Inferred changes, or None when a side is not a mapping or nothing changed."""
    before_rec = as_record(before)
    after_rec = as_record(after)
    if before_rec is None or after_rec is None:
        return None
    changes = build_record_changes(before_rec, after_rec)
    return changes or None


def build_changes(
    before: Optional[Mapping],
    after: Mapping,
    keys: tuple[str, ...] | list[str],
) -> Changes:
    """Explicit shallow diff over a fixed key list."""
    if not before:
        return {}
    diff: Changes = {}
    for key in keys:
        if key in SKIPPED_CHANGE_KEYS:
            continue
        previous = before.get(key)
        current = after.get(key)
        if previous != current:
            diff[key] = {"from": previous, "to": current}
    return diff
