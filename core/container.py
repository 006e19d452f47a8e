"""
Ledgerline Core — Service Container
=====================================
Name-keyed dependency resolver handed to every command invocation.

Command handlers never import concrete services. They resolve them by
name from the container carried on the runtime context, which keeps the
bus testable with stub services and lets each request fork its own
persistence handles.

Well-known names:
    action_log_service       — audit log store (core.audit.service)
    data_engine              — persistence boundary (core.data.engine)
    cache                    — CRUD read-view cache (core.caching)
    feature_toggles_service  — feature toggle lookups
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from threading import Lock
from typing import Any, Callable, Dict, Optional

logger = logging.getLogger("ledgerline.commands")


ACTION_LOG_SERVICE = "action_log_service"
DATA_ENGINE = "data_engine"
CACHE = "cache"
FEATURE_TOGGLES_SERVICE = "feature_toggles_service"


class ServiceNotRegistered(KeyError):
    """Requested service name has no registration."""

    def __init__(self, name: str):
        self.name = name
        super().__init__(f"Service '{name}' is not registered.")


@dataclass
class ServiceRegistration:
    name: str
    instance: Optional[Any] = None
    factory: Optional[Callable[["ServiceContainer"], Any]] = None
    singleton: bool = True


class ServiceContainer:
    """
    Minimal dependency container.

    Instances are returned as registered. Factories receive the container
    and are cached when registered as singletons.
    """

    def __init__(self):
        self._services: Dict[str, ServiceRegistration] = {}
        self._lock = Lock()

    def register_instance(self, name: str, instance: Any) -> "ServiceContainer":
        with self._lock:
            if name in self._services:
                logger.debug(f"Service {name} is already registered, overriding")
            self._services[name] = ServiceRegistration(name=name, instance=instance)
        return self

    def register_factory(
        self,
        name: str,
        factory: Callable[["ServiceContainer"], Any],
        *,
        singleton: bool = True,
    ) -> "ServiceContainer":
        with self._lock:
            if name in self._services:
                logger.debug(f"Service {name} is already registered, overriding")
            self._services[name] = ServiceRegistration(
                name=name,
                factory=factory,
                singleton=singleton,
            )
        return self

    def resolve(self, name: str) -> Any:
        """
        Resolve a service by name.

        Raises:
            ServiceNotRegistered: No registration exists for the name.
        """
        with self._lock:
            registration = self._services.get(name)
        if registration is None:
            raise ServiceNotRegistered(name)
        if registration.instance is not None:
            return registration.instance
        if registration.factory is None:
            raise ServiceNotRegistered(name)

        instance = registration.factory(self)
        if registration.singleton:
            with self._lock:
                if registration.instance is None:
                    registration.instance = instance
                return registration.instance
        return instance

    def has(self, name: str) -> bool:
        with self._lock:
            return name in self._services

    def unregister(self, name: str) -> None:
        with self._lock:
            self._services.pop(name, None)


def build_default_container() -> ServiceContainer:
    """
    Wire the Django-backed services for one invocation scope.

    Call once per request or job: the data engine queues side effects
    per container, while the cache is shared process-wide.

    Imports are local so the container module stays importable without
    a configured Django project (pure unit tests build their own).
    """
    from core.audit.service import ActionLogService
    from core.caching.crud import build_crud_cache
    from core.data.engine import DataEngine
    from core.events.registry import default_subscriber_registry
    from modules.feature_toggles.service import FeatureTogglesService

    container = ServiceContainer()
    container.register_factory(ACTION_LOG_SERVICE, lambda c: ActionLogService())
    container.register_factory(CACHE, lambda c: build_crud_cache())
    container.register_factory(
        DATA_ENGINE,
        lambda c: DataEngine(subscribers=default_subscriber_registry()),
    )
    container.register_factory(
        FEATURE_TOGGLES_SERVICE,
        lambda c: FeatureTogglesService(cache=c.resolve(CACHE)),
    )
    return container
