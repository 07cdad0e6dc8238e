"""
Registry of client backends.

Maps a backend name to the factories that build its admin client and
consumers. The registry is an ordinary object owned by whoever starts
the tool; nothing is loaded by class name at runtime.
"""

from dataclasses import dataclass
from typing import Any, Callable, Dict, List, Optional

from streamreset.client.admin import AdminClient, Consumer
from streamreset.client.memory import InMemoryCluster
from streamreset.errors import UnknownBackendError
from streamreset.utils.config import Config
from streamreset.utils.logging import get_logger

logger = get_logger(__name__)

AdminFactory = Callable[[Config], AdminClient]
ConsumerFactory = Callable[[AdminClient, str, Dict[str, Any]], Consumer]


@dataclass(frozen=True)
class ClientBackend:
    """
    Factories for one backend.

    Attributes:
        name: Backend name used in configuration
        admin_factory: Builds an admin client from configuration
        consumer_factory: Builds a consumer for a group from the admin
            client it belongs to, the group id and consumer settings
    """
    name: str
    admin_factory: AdminFactory
    consumer_factory: ConsumerFactory


class ClientRegistry:
    """Explicitly owned mapping from backend name to client factories."""

    def __init__(self):
        self._backends: Dict[str, ClientBackend] = {}

    def register(
        self,
        name: str,
        admin_factory: AdminFactory,
        consumer_factory: ConsumerFactory,
    ) -> None:
        """
        Register a backend.

        Args:
            name: Backend name
            admin_factory: Admin client factory
            consumer_factory: Consumer factory

        Raises:
            ValueError: If the name is already registered
        """
        if name in self._backends:
            raise ValueError(f"Client backend already registered: {name}")

        self._backends[name] = ClientBackend(name, admin_factory, consumer_factory)

        logger.debug("Registered client backend", backend=name)

    def get(self, name: str) -> ClientBackend:
        backend = self._backends.get(name)
        if backend is None:
            raise UnknownBackendError(
                f"Unknown client backend '{name}'. "
                f"Registered backends: {', '.join(self.names()) or 'none'}"
            )
        return backend

    def create_admin(self, name: str, config: Config) -> AdminClient:
        return self.get(name).admin_factory(config)

    def create_consumer(
        self,
        name: str,
        admin: AdminClient,
        group_id: str,
        consumer_config: Optional[Dict[str, Any]] = None,
    ) -> Consumer:
        return self.get(name).consumer_factory(admin, group_id, dict(consumer_config or {}))

    def names(self) -> List[str]:
        return sorted(self._backends)


def _memory_admin(config: Config) -> AdminClient:
    snapshot = config.get("backend.memory.snapshot")
    if snapshot:
        return InMemoryCluster.load_snapshot(snapshot)
    return InMemoryCluster()


def _memory_consumer(admin: AdminClient, group_id: str, consumer_config: Dict[str, Any]) -> Consumer:
    if not isinstance(admin, InMemoryCluster):
        raise TypeError("memory consumers require an InMemoryCluster admin client")
    return admin.consumer(group_id, **consumer_config)


def default_registry() -> ClientRegistry:
    """
    Create a registry with the built-in backends.

    Returns:
        Fresh registry with the ``memory`` backend registered
    """
    registry = ClientRegistry()
    registry.register("memory", _memory_admin, _memory_consumer)
    return registry
