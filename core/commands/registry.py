"""
Ledgerline Command Layer — Command Registry
=============================================
Process-wide lookup from command id to handler.

Rules:
- Populated once at startup (each module's AppConfig.ready())
- Read-only thereafter; lookups are O(1)
- Duplicate ids are a programmer error: DuplicateCommandError is raised
  unless the caller explicitly passes replace=True
- Thread-safe (startup may run concurrently across workers)
"""

import logging
from threading import Lock
from typing import Any, Optional

from core.commands.errors import CommandBusError, DuplicateCommandError
from core.commands.types import get_hook

logger = logging.getLogger("ledgerline.commands")


class CommandRegistry:
    """In-memory registry of command handlers keyed by id."""

    def __init__(self):
        self._handlers: dict[str, Any] = {}
        self._lock = Lock()

    def register(self, handler: Any, *, replace: bool = False) -> None:
        command_id = getattr(handler, "id", None)
        if not command_id or not isinstance(command_id, str):
            raise CommandBusError(
                f"Command handler must declare a non-empty string id, "
                f"got {command_id!r}."
            )
        if get_hook(handler, "execute") is None:
            raise CommandBusError(
                f"Command handler '{command_id}' must define execute()."
            )

        with self._lock:
            if command_id in self._handlers and not replace:
                raise DuplicateCommandError(command_id)
            self._handlers[command_id] = handler

        logger.debug(f"Command registered: {command_id}")

    def unregister(self, command_id: str) -> None:
        with self._lock:
            self._handlers.pop(command_id, None)

    def get(self, command_id: str) -> Optional[Any]:
        with self._lock:
            return self._handlers.get(command_id)

    def has(self, command_id: str) -> bool:
        with self._lock:
            return command_id in self._handlers

    def ids(self) -> tuple[str, ...]:
        with self._lock:
            return tuple(sorted(self._handlers))

    def clear(self) -> None:
        with self._lock:
            self._handlers.clear()


command_registry = CommandRegistry()


def register_command(handler: Any, *, replace: bool = False) -> None:
    command_registry.register(handler, replace=replace)


def unregister_command(command_id: str) -> None:
    command_registry.unregister(command_id)


def get_command(command_id: str) -> Optional[Any]:
    return command_registry.get(command_id)


def list_command_ids() -> tuple[str, ...]:
    return command_registry.ids()


def clear_commands() -> None:
    command_registry.clear()
