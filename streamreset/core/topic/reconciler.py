"""
Reconciliation of requested topics against the live topic inventory.
"""

from dataclasses import dataclass, field
from typing import Iterable, Set

from streamreset.client.admin import DEFAULT_TIMEOUT_SECONDS, AdminClient
from streamreset.core.topic.names import GroupedTopics, build_full_topic_name
from streamreset.errors import OperationError
from streamreset.utils.logging import get_logger

logger = get_logger(__name__)


@dataclass
class SplitTopicListResult:
    """
    Requested topics split by whether they exist.

    Attributes:
        topics_to_subscribe: Fully qualified names that exist
        not_found: Fully qualified names that do not exist
    """
    topics_to_subscribe: Set[str] = field(default_factory=set)
    not_found: Set[str] = field(default_factory=set)

    def merge(self, other: "SplitTopicListResult") -> "SplitTopicListResult":
        return SplitTopicListResult(
            topics_to_subscribe=self.topics_to_subscribe | other.topics_to_subscribe,
            not_found=self.not_found | other.not_found,
        )


def reconcile(requested: GroupedTopics, live: GroupedTopics) -> SplitTopicListResult:
    """
    Split requested topics into subscribable and not found.

    A container missing from the live inventory is treated as empty.

    Args:
        requested: Requested topics grouped by container
        live: Existing topics grouped by container

    Returns:
        Split result with fully qualified names
    """
    result = SplitTopicListResult()
    for container, topics in requested.items():
        existing = live.get(container, set())
        for topic in topics:
            full_name = build_full_topic_name(container, topic)
            if topic in existing:
                result.topics_to_subscribe.add(full_name)
            else:
                result.not_found.add(full_name)

    return result


def list_topics_for_containers(
    admin: AdminClient,
    containers: Iterable[str],
    timeout: float = DEFAULT_TIMEOUT_SECONDS,
) -> GroupedTopics:
    """
    Fetch the live topic inventory of several containers.

    Containers that do not exist are left out of the result.

    Args:
        admin: Admin client
        containers: Container paths
        timeout: Seconds to wait per listing

    Returns:
        Container to set of short topic names

    Raises:
        OperationError: If a container cannot be listed
    """
    live: GroupedTopics = {}
    for container in sorted(set(containers)):
        if not admin.container_exists(container):
            logger.warning("Container does not exist", container=container)
            continue
        try:
            live[container] = set(admin.list_topics(container, timeout=timeout))
        except Exception as e:
            raise OperationError("list topics", container, str(e)) from e

    return live
