"""
Ledgerline CRUD Events — Subscriber Registry
==============================================
Controls which handlers receive CRUD side-effect events flushed by the
data engine (e.g. "example.todo.created").

Rules:
- Event types must follow module.entity.action format
- Multiple subscribers per event type allowed
- Duplicate handler for same event type forbidden
- In-memory only, thread-safe
"""

import logging
from threading import Lock
from typing import Callable, Optional

from core.events.errors import (
    DuplicateSubscriberError,
    EventBusError,
    InvalidEventTypeFormat,
)

logger = logging.getLogger("ledgerline.events")


class SubscriberRegistry:
    """
    In-memory registry of event subscribers.

    Each entry maps an event_type to a list of
    (handler, subscriber_module) tuples.
    """

    def __init__(self):
        self._subscribers: dict[str, list[tuple[Callable, str]]] = {}
        self._lock = Lock()

    @staticmethod
    def _validate_event_type_format(event_type: str) -> None:
        if not event_type or not isinstance(event_type, str):
            raise InvalidEventTypeFormat(event_type or "")

        parts = event_type.strip().split(".")
        if len(parts) < 3 or not all(parts):
            raise InvalidEventTypeFormat(event_type)

    def register_subscriber(
        self,
        event_type: str,
        handler: Callable,
        subscriber_module: str,
    ) -> None:
        """
        Register a handler (sync or async) for an event type.

        Raises:
            InvalidEventTypeFormat:   Bad event type format
            DuplicateSubscriberError: Handler already registered
        """
        self._validate_event_type_format(event_type)

        if not callable(handler):
            raise EventBusError(
                f"Handler must be callable, got {type(handler)}."
            )

        handler_name = getattr(handler, "__qualname__", str(handler))

        with self._lock:
            subscribers = self._subscribers.setdefault(event_type, [])
            for existing_handler, _ in subscribers:
                if existing_handler is handler:
                    raise DuplicateSubscriberError(event_type, handler_name)
            subscribers.append((handler, subscriber_module))

        logger.info(
            f"Subscriber registered: {handler_name} → {event_type} "
            f"(from module: {subscriber_module})"
        )

    def unregister_subscriber(self, event_type: str, handler: Callable) -> None:
        with self._lock:
            remaining = [
                entry for entry in self._subscribers.get(event_type, [])
                if entry[0] is not handler
            ]
            if remaining:
                self._subscribers[event_type] = remaining
            else:
                self._subscribers.pop(event_type, None)

    def get_subscribers(self, event_type: str) -> list[tuple[Callable, str]]:
        """Subscribers for an event type; empty list when none."""
        with self._lock:
            return list(self._subscribers.get(event_type, []))

    def has_subscribers(self, event_type: str) -> bool:
        with self._lock:
            return bool(self._subscribers.get(event_type))

    def subscriber_count(self, event_type: str) -> int:
        with self._lock:
            return len(self._subscribers.get(event_type, []))


_DEFAULT_REGISTRY: Optional[SubscriberRegistry] = None
_DEFAULT_REGISTRY_LOCK = Lock()


def default_subscriber_registry() -> SubscriberRegistry:
    """Process-wide registry used by the default container wiring."""
    global _DEFAULT_REGISTRY
    with _DEFAULT_REGISTRY_LOCK:
        if _DEFAULT_REGISTRY is None:
            _DEFAULT_REGISTRY = SubscriberRegistry()
        return _DEFAULT_REGISTRY
