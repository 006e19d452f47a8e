"""
Ledgerline HTTP API - Dependencies
==================================
Injected collaborators for the audit log handlers.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Callable


@dataclass(frozen=True)
class HttpApiDependencies:
    """
    container_factory builds a fresh service container per request;
    command_bus is shared.
    """

    container_factory: Callable[[], Any]
    command_bus: Any
