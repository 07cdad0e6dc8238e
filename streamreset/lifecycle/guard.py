"""
Guard against cleaning up while a consumer group is still attached.
"""

from typing import Iterable

from streamreset.client.admin import DEFAULT_TIMEOUT_SECONDS, AdminClient
from streamreset.errors import ActiveConsumerGroupError, OperationError
from streamreset.utils.logging import get_logger

logger = get_logger(__name__)


class ActiveConsumerGuard:
    """
    Checks live assignments before any destructive action.

    Assignments are queried on every call and never cached.
    """

    def __init__(self, admin: AdminClient, timeout: float = DEFAULT_TIMEOUT_SECONDS):
        self.admin = admin
        self.timeout = timeout

    def assert_no_active_consumers(
        self,
        container: str,
        group_id: str,
        topics: Iterable[str],
    ) -> None:
        """
        Fail if any group member listens on any partition of the topics.

        Args:
            container: Container holding the topics
            group_id: Consumer group id
            topics: Topic names inside the container

        Raises:
            ActiveConsumerGroupError: If a partition has listeners
            OperationError: If assignments cannot be listed
        """
        for topic in topics:
            try:
                assignments = self.admin.list_assignments(
                    container, group_id, topic, timeout=self.timeout
                )
            except Exception as e:
                raise OperationError("list assignments", f"{container} {topic}", str(e)) from e

            for info in assignments:
                if info.num_listeners > 0:
                    logger.error(
                        "Consumer group is still active",
                        container=container,
                        group_id=group_id,
                        topic=topic,
                        partition=info.partition,
                        listeners=info.num_listeners,
                    )
                    raise ActiveConsumerGroupError(group_id, topic)

        logger.debug("No active consumers", container=container, group_id=group_id)
