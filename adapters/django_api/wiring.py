"""
Ledgerline Django Adapter Wiring
================================
Constructs HttpApiDependencies for the Django runtime.

This module is adapter-only glue:
- one shared CommandBus over the process-wide command registry
- a fresh service container per request (build_default_container)
"""

from __future__ import annotations

import threading

from core.commands.bus import CommandBus
from core.container import build_default_container
from core.http_api.dependencies import HttpApiDependencies

_DEPENDENCIES_LOCK = threading.Lock()
_DEPENDENCIES: HttpApiDependencies | None = None


def _create_dependencies() -> HttpApiDependencies:
    return HttpApiDependencies(
        container_factory=build_default_container,
        command_bus=CommandBus(),
    )


def build_dependencies() -> HttpApiDependencies:
    """
    Lazy singleton wiring for adapter runtime.
    """
    global _DEPENDENCIES
    with _DEPENDENCIES_LOCK:
        if _DEPENDENCIES is None:
            _DEPENDENCIES = _create_dependencies()
        return _DEPENDENCIES


def reset_dependencies() -> None:
    """Drop the cached wiring (tests)."""
    global _DEPENDENCIES
    with _DEPENDENCIES_LOCK:
        _DEPENDENCIES = None
