"""Admin and consumer client contracts and backends."""

from streamreset.client.admin import AdminClient, AssignInfo, Consumer, NewTopic
from streamreset.client.memory import InMemoryCluster, InMemoryConsumer
from streamreset.client.registry import ClientRegistry, default_registry

__all__ = [
    "AdminClient",
    "AssignInfo",
    "Consumer",
    "NewTopic",
    "InMemoryCluster",
    "InMemoryConsumer",
    "ClientRegistry",
    "default_registry",
]
