"""
Ledgerline HTTP API Auth - Public API
=====================================
"""

from core.http_api.auth.resolver import (
    build_runtime_context,
    resolve_actor_metadata,
)

__all__ = [
    "build_runtime_context",
    "resolve_actor_metadata",
]
