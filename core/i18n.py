"""
Ledgerline Core — Translation
===============================
Resolves human-readable labels (action labels in audit entries) through
Django's translation catalogs.
"""

from __future__ import annotations

from django.utils.translation import gettext


def translate(key: str, fallback: str) -> str:
    """Catalog text for `key`, or `fallback` when no entry exists."""
    translated = gettext(key)
    if not translated or translated == key:
        return fallback
    return translated
