"""
Ledgerline CRUD Events — Public API
=====================================
Side effects are queued during a command and heard after it completes.
"""

from core.events.dispatcher import CrudEvent, dispatch
from core.events.errors import (
    DuplicateSubscriberError,
    EventBusError,
    InvalidEventTypeFormat,
)
from core.events.registry import SubscriberRegistry, default_subscriber_registry

__all__ = [
    "CrudEvent",
    "dispatch",
    "SubscriberRegistry",
    "default_subscriber_registry",
    "EventBusError",
    "InvalidEventTypeFormat",
    "DuplicateSubscriberError",
]
