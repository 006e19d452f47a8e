"""
Ledgerline Feature Toggles Module
==================================
Global toggles with per-tenant overrides.
"""
