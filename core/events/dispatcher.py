"""
Ledgerline CRUD Events — Dispatcher
=====================================
Routes flushed CRUD side-effect events to registered subscribers.

Dispatch behavior:
1. Look up subscribers by event_type
2. Execute handlers sequentially (awaiting async handlers)
3. Catch subscriber exceptions per handler
4. Log failure
5. Continue to next subscriber

Subscriber failure must NOT break dispatch of other subscribers or the
command that produced the event: the mutation is already durable.
"""

import inspect
import logging
import uuid
from dataclasses import dataclass, field
from typing import Any

from core.events.registry import SubscriberRegistry

logger = logging.getLogger("ledgerline.events")


@dataclass(frozen=True)
class CrudEvent:
    """
    One CRUD side effect.

    payload always carries id, tenantId, organizationId and origin
    ("command" or "undo") so consumers can tell reversals apart.
    """

    event_type: str
    payload: dict[str, Any]
    event_id: str = field(default_factory=lambda: str(uuid.uuid4()))

    @property
    def origin(self) -> str:
        return str(self.payload.get("origin", "command"))


async def dispatch(event: CrudEvent, registry: SubscriberRegistry) -> dict:
    """
    Dispatch one event to all registered subscribers.

    Returns:
        {
            'event_type': str,
            'event_id': str,
            'subscribers_notified': int,
            'subscribers_failed': int,
            'failures': list[dict]
        }

    This function NEVER raises exceptions.
    """
    event_type = event.event_type
    event_id = event.event_id

    subscribers = registry.get_subscribers(event_type)

    result = {
        "event_type": event_type,
        "event_id": event_id,
        "subscribers_notified": 0,
        "subscribers_failed": 0,
        "failures": [],
    }

    if not subscribers:
        logger.debug(
            f"No subscribers for event type '{event_type}' "
            f"(event_id: {event_id})"
        )
        return result

    for handler, subscriber_module in subscribers:
        handler_name = getattr(handler, "__qualname__", str(handler))

        try:
            outcome = handler(event)
            if inspect.isawaitable(outcome):
                await outcome
            result["subscribers_notified"] += 1
            logger.debug(
                f"Dispatched {event_type} → {handler_name} "
                f"(module: {subscriber_module})"
            )

        except Exception as exc:
            result["subscribers_failed"] += 1
            result["failures"].append({
                "handler": handler_name,
                "module": subscriber_module,
                "error": str(exc),
                "error_type": type(exc).__name__,
            })

            logger.error(
                f"Subscriber failed: {handler_name} for "
                f"{event_type} (event_id: {event_id}): {exc}",
                exc_info=True,
            )

    logger.info(
        f"Dispatch complete: {event_type} (event_id: {event_id}) — "
        f"{result['subscribers_notified']} notified, "
        f"{result['subscribers_failed']} failed"
    )

    return result
