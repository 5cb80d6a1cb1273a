"""Service registration and discovery."""

from __future__ import annotations

import logging
import random
import threading
import time
from abc import ABC, abstractmethod
from collections.abc import Callable
from dataclasses import dataclass

log = logging.getLogger(__name__)

STALE_AFTER_SECONDS = 5.0


class DiscoveryError(Exception):
    """A service or instance could not be found."""


class Registry(ABC):
    """Where service instances announce themselves and are looked up."""

    @abstractmethod
    def register(self, instance_id: str, service_name: str, host_port: str) -> None: ...

    @abstractmethod
    def deregister(self, instance_id: str, service_name: str) -> None: ...

    @abstractmethod
    def discover(self, service_name: str) -> list[str]: ...

    @abstractmethod
    def health_check(self, instance_id: str, service_name: str) -> None: ...


def generate_instance_id(service_name: str) -> str:
    """A random instance identifier for ``service_name``."""
    return f"{service_name}-{random.getrandbits(63)}"


def pick_address(registry: Registry, service_name: str) -> str:
    """Pick one discovered address of ``service_name`` at random."""
    addresses = registry.discover(service_name)
    log.info("Discovered %d instances of %s", len(addresses), service_name)
    if not addresses:
        raise DiscoveryError(f"no instances of {service_name} found")
    return random.choice(addresses)


@dataclass
class _Instance:
    host_port: str
    last_active: float


class InMemoryRegistry(Registry):
    """A registry held in memory, safe to share between threads."""

    def __init__(self, clock: Callable[[], float] = time.monotonic) -> None:
        self._lock = threading.RLock()
        self._services: dict[str, dict[str, _Instance]] = {}
        self._clock = clock

    def register(self, instance_id: str, service_name: str, host_port: str) -> None:
        with self._lock:
            instances = self._services.setdefault(service_name, {})
            instances[instance_id] = _Instance(host_port, self._clock())

    def deregister(self, instance_id: str, service_name: str) -> None:
        with self._lock:
            self._services.get(service_name, {}).pop(instance_id, None)

    def health_check(self, instance_id: str, service_name: str) -> None:
        with self._lock:
            instances = self._services.get(service_name)
            if instances is None:
                raise DiscoveryError("service is not registered yet")
            instance = instances.get(instance_id)
            if instance is None:
                raise DiscoveryError("service instance is not registered yet")
            instance.last_active = self._clock()

    def discover(self, service_name: str) -> list[str]:
        with self._lock:
            instances = self._services.get(service_name)
            if not instances:
                raise DiscoveryError("no service address found")
            return [instance.host_port for instance in instances.values()]

    def service_addresses(self, service_name: str) -> list[str]:
        """Addresses of instances that reported health within the last five seconds."""
        with self._lock:
            instances = self._services.get(service_name)
            if not instances:
                raise DiscoveryError("no service address found")
            cutoff = self._clock() - STALE_AFTER_SECONDS
            return [
                instance.host_port
                for instance in instances.values()
                if instance.last_active >= cutoff
            ]