"""
Ledgerline Command Layer — Custom Field Payload Helpers
=========================================================
Pure helpers for the custom-field side channel of command inputs and
snapshots. Persistence of values lives in core.data.
"""

from __future__ import annotations

from collections.abc import Mapping
from typing import Any, Optional

from core.commands.changes import deep_equal

_CUSTOM_INPUT_CONTAINERS = ("customFields", "custom")
_CUSTOM_KEY_PREFIXES = ("cf_", "cf:")


def strip_custom_field_prefix(key: str) -> str:
    for prefix in _CUSTOM_KEY_PREFIXES:
        if key.startswith(prefix):
            return key[len(prefix):]
    return key


def split_custom_field_payload(raw: Any) -> tuple[dict[str, Any], dict[str, Any]]:
    """
    Separate base fields from custom-field values.

    Custom values come from cf_<key> / cf:<key> entries and from a
    "customFields" or "custom" container mapping.
    """
    if not isinstance(raw, Mapping):
        return {}, {}
    base: dict[str, Any] = {}
    custom: dict[str, Any] = {}
    for key, value in raw.items():
        if key in _CUSTOM_INPUT_CONTAINERS and isinstance(value, Mapping):
            for inner_key, inner_value in value.items():
                custom[strip_custom_field_prefix(str(inner_key))] = inner_value
            continue
        if isinstance(key, str) and key.startswith(_CUSTOM_KEY_PREFIXES):
            custom[strip_custom_field_prefix(key)] = value
            continue
        base[key] = value
    return base, custom


def normalize_custom_field_values(values: Optional[Mapping[str, Any]]) -> dict[str, Any]:
    """Bare keys; tuples and sets become lists so values stay JSON-safe."""
    normalized: dict[str, Any] = {}
    for key, value in (values or {}).items():
        if isinstance(value, (tuple, set, frozenset)):
            value = list(value)
        normalized[strip_custom_field_prefix(str(key))] = value
    return normalized


def build_custom_field_reset_map(
    before: Optional[Mapping[str, Any]],
    after: Optional[Mapping[str, Any]],
) -> dict[str, Any]:
    """
    Values that restore `before` over `after`.

    Keys present only in `after` are reset to None (deleted); every key
    of `before` is written back. Never a partial restore.
    """
    before = before or {}
    after = after or {}
    reset: dict[str, Any] = {key: None for key in after if key not in before}
    reset.update(before)
    return reset


def diff_custom_field_changes(
    before: Optional[Mapping[str, Any]],
    after: Optional[Mapping[str, Any]],
) -> dict[str, dict[str, Any]]:
    before = before or {}
    after = after or {}
    diff: dict[str, dict[str, Any]] = {}
    keys = list(before) + [key for key in after if key not in before]
    for key in keys:
        from_value = before.get(key)
        to_value = after.get(key)
        if not deep_equal(from_value, to_value):
            diff[key] = {"from": from_value, "to": to_value}
    return diff
