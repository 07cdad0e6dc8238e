"""
Deletion of an application's internal topics, containers and directory.
"""

from typing import Collection, List

from streamreset.client.admin import AdminClient
from streamreset.errors import OperationError, TopicDeletionError
from streamreset.lifecycle.internal_topics import ApplicationLayout
from streamreset.utils.logging import get_logger

logger = get_logger(__name__)

DEFAULT_DELETE_TIMEOUT_SECONDS = 30.0


class InternalTopicCleaner:
    """
    Removes everything the streams runtime created for an application.

    Callers must run ActiveConsumerGuard first; the cleaner itself does
    not check for attached consumers.
    """

    def __init__(self, admin: AdminClient, timeout: float = DEFAULT_DELETE_TIMEOUT_SECONDS):
        self.admin = admin
        self.timeout = timeout

    def cleanup(
        self,
        topics: Collection[str],
        layout: ApplicationLayout,
        dry_run: bool = False,
    ) -> None:
        """
        Delete internal topics, then the internal containers and app directory.

        Args:
            topics: Fully qualified internal topic names
            layout: Application layout
            dry_run: Only report what would be deleted
        """
        logger.info(
            "Deleting all internal/auto-created topics for application",
            application_id=layout.application_id,
        )

        if dry_run:
            for topic in topics:
                logger.info("Topic would be deleted", topic=topic)
            logger.info("Container would be deleted", container=layout.internal_container)
            logger.info("Container would be deleted", container=layout.internal_compacted_container)
            logger.info("Directory would be deleted", path=layout.app_dir)
        else:
            if topics:
                self.delete_topics(topics)
            self.delete_containers_and_app_dir(layout)

        logger.info("Internal topic cleanup done", application_id=layout.application_id)

    def delete_topics(self, topics: Collection[str]) -> None:
        """
        Delete topics and wait for every deletion.

        Args:
            topics: Fully qualified topic names

        Raises:
            TopicDeletionError: If any deletion failed; every failure is
                logged first
        """
        results = self.admin.delete_topics(list(topics))

        failed: List[str] = []
        first_error = None
        for topic, future in results.items():
            try:
                future.result(timeout=self.timeout)
            except Exception as e:
                logger.error("Error deleting topic", topic=topic, error=str(e))
                failed.append(topic)
                first_error = first_error or e
            else:
                logger.info("Deleted topic", topic=topic)

        if failed:
            raise TopicDeletionError(failed) from first_error

    def delete_containers_and_app_dir(self, layout: ApplicationLayout) -> None:
        for container in (layout.internal_container, layout.internal_compacted_container):
            try:
                if self.admin.container_exists(container):
                    self.admin.delete_container(container)
                    logger.info("Deleted container", container=container)
            except Exception as e:
                raise OperationError("delete container", container, str(e)) from e

        try:
            if self.admin.path_exists(layout.app_dir):
                self.admin.delete_path(layout.app_dir)
                logger.info("Deleted directory", path=layout.app_dir)
        except Exception as e:
            raise OperationError("delete directory", layout.app_dir, str(e)) from e
