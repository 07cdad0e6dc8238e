"""
Internal topic lifecycle.

The streams runtime owns a set of internal topics (repartition topics and
state store changelogs) inside two per-application containers. At startup
it makes sure every internal topic exists with exactly the expected
partition count. An existing topic with a different partition count is
never fixed up automatically: doing so would silently corrupt application
state, so the operator has to run the reset tool first.
"""

from dataclasses import dataclass, field
from typing import Collection, Dict, Mapping, Optional, Set

from streamreset.client.admin import (
    DEFAULT_TIMEOUT_SECONDS,
    AdminClient,
    NewTopic,
    TopicExistsError,
)
from streamreset.core.topic.names import group_by_container
from streamreset.errors import (
    InternalContainerNotFoundError,
    OperationError,
    PartitionCountMismatchError,
    TopicCreationError,
    TopicsNotReadyError,
)
from streamreset.utils.config import Config
from streamreset.utils.logging import get_logger
from streamreset.utils.retry import (
    RetriesExhaustedError,
    RetryableError,
    RetryConfig,
    RetryManager,
)

logger = get_logger(__name__)

MAX_TOPIC_READY_TRY = 5

DEFAULT_APPS_ROOT = "/apps/kafka-streams"
INTERNAL_CONTAINER_NAME = "kafka-internal-stream"
INTERNAL_COMPACTED_CONTAINER_NAME = "kafka-internal-stream-compacted"

CLEANUP_POLICY_DELETE = "delete"
CLEANUP_POLICY_COMPACT = "compact"


@dataclass(frozen=True)
class ApplicationLayout:
    """
    Where an application's internal resources live.

    Attributes:
        apps_root: Directory holding all application directories
        application_id: Application (consumer group) id
        assignment_container: Client-side assignment container the runtime
            requires to exist (not checked if None)
    """
    apps_root: str
    application_id: str
    assignment_container: Optional[str] = None

    @property
    def app_dir(self) -> str:
        return f"{self.apps_root.rstrip('/')}/{self.application_id}"

    @property
    def internal_container(self) -> str:
        return f"{self.app_dir}/{INTERNAL_CONTAINER_NAME}"

    @property
    def internal_compacted_container(self) -> str:
        return f"{self.app_dir}/{INTERNAL_COMPACTED_CONTAINER_NAME}"


@dataclass(frozen=True)
class InternalTopicConfig:
    """
    Description of one internal topic.

    Attributes:
        name: Fully qualified topic name
        cleanup_policy: "delete", "compact" or "compact,delete"
        retention_ms: Retention override (None keeps the default)
        windowed: Windowed store changelog; retention is extended by the
            manager's additional window retention
        retention_overrides: Extra topic-level configs
    """
    name: str
    cleanup_policy: str = CLEANUP_POLICY_DELETE
    retention_ms: Optional[int] = None
    windowed: bool = False
    retention_overrides: Mapping[str, str] = field(default_factory=dict, compare=False)

    def to_topic_properties(self, additional_retention_ms: int = 0) -> Dict[str, str]:
        """
        Render topic-level configs for creation.

        Args:
            additional_retention_ms: Added to retention of windowed changelogs

        Returns:
            Config name to value
        """
        properties = {"cleanup.policy": self.cleanup_policy}

        if self.retention_ms is not None:
            retention = self.retention_ms
            if self.windowed:
                retention += additional_retention_ms
            properties["retention.ms"] = str(retention)

        properties.update({k: str(v) for k, v in self.retention_overrides.items()})

        return properties


class InternalTopicManager:
    """
    Prepares internal topics for a streams application.

    The only component that retries: every attempt re-reads the live
    partition counts before deciding what to create, because another
    instance may have created or changed topics in between.
    """

    def __init__(
        self,
        admin: AdminClient,
        replication_factor: int = 1,
        default_topic_configs: Optional[Mapping[str, str]] = None,
        window_additional_retention_ms: int = 86400000,
        retry_config: Optional[RetryConfig] = None,
        timeout: float = DEFAULT_TIMEOUT_SECONDS,
        retry_manager: Optional[RetryManager] = None,
    ):
        """
        Initialize the manager.

        Args:
            admin: Admin client
            replication_factor: Replication factor for created topics
            default_topic_configs: Topic-level configs applied to every created topic
            window_additional_retention_ms: Extra retention for windowed changelogs
            retry_config: Retry settings (defaults to MAX_TOPIC_READY_TRY attempts)
            timeout: Seconds to wait per admin call
            retry_manager: Preconfigured retry manager (overrides retry_config)
        """
        self.admin = admin
        self.replication_factor = replication_factor
        self.default_topic_configs = dict(default_topic_configs or {})
        self.window_additional_retention_ms = window_additional_retention_ms
        self.timeout = timeout
        self.retry_manager = retry_manager or RetryManager(
            retry_config or RetryConfig(max_attempts=MAX_TOPIC_READY_TRY)
        )

        logger.debug(
            "Initialized internal topic manager",
            replication_factor=replication_factor,
            max_attempts=self.retry_manager.config.max_attempts,
            window_additional_retention_ms=window_additional_retention_ms,
        )

    @classmethod
    def from_config(cls, admin: AdminClient, config: Config) -> "InternalTopicManager":
        """
        Create a manager from the ``lifecycle`` and ``topic`` configuration.

        Args:
            admin: Admin client
            config: Tool configuration

        Returns:
            Configured manager
        """
        retry_config = RetryConfig(
            max_attempts=int(config.get("lifecycle.max_topic_ready_try", MAX_TOPIC_READY_TRY)),
            retry_backoff_ms=int(config.get("lifecycle.retry_backoff_ms", 100)),
            retry_backoff_max_ms=int(config.get("lifecycle.retry_backoff_max_ms", 5000)),
        )
        return cls(
            admin,
            replication_factor=int(config.get("lifecycle.replication_factor", 1)),
            default_topic_configs=config.topic_defaults(),
            window_additional_retention_ms=int(
                config.get("lifecycle.window_additional_retention_ms", 86400000)
            ),
            retry_config=retry_config,
            timeout=float(config.get("admin.timeout_seconds", DEFAULT_TIMEOUT_SECONDS)),
        )

    def make_ready(self, topics: Mapping[InternalTopicConfig, int]) -> None:
        """
        Make sure every topic exists with the given partition count.

        Args:
            topics: Internal topic to its required partition count

        Raises:
            PartitionCountMismatchError: If an existing topic has a different
                partition count (nothing is created or deleted)
            TopicsNotReadyError: If topics could not be created within
                MAX_TOPIC_READY_TRY attempts
        """
        if not topics:
            return

        try:
            self.retry_manager.execute_with_retry(
                lambda: self._make_ready_once(topics),
                operation_name="Internal topic creation",
            )
        except RetriesExhaustedError as e:
            message = (
                f"Could not create internal topics after {e.attempts} attempts. "
                "This can happen if the cluster is temporarily unavailable. "
                "Increase lifecycle.max_topic_ready_try to be resilient against this error."
            )
            logger.error(message)
            raise TopicsNotReadyError(message) from e.__cause__

    def get_num_partitions(self, names: Collection[str]) -> Dict[str, int]:
        """
        Get the partition count of the given topics that exist.

        Args:
            names: Fully qualified topic names

        Returns:
            Topic name to partition count, for existing topics only
        """
        existing = self._filter_existing(names)
        if not existing:
            return {}

        try:
            return dict(self.admin.describe_topics(existing, timeout=self.timeout))
        except Exception as e:
            raise OperationError("describe topics", ", ".join(sorted(existing)), str(e)) from e

    def ensure_internal_containers(self, layout: ApplicationLayout) -> None:
        """
        Provision the application directory and internal containers.

        Args:
            layout: Application layout

        Raises:
            InternalContainerNotFoundError: If the apps root does not exist or the
                assignment container is required but missing
        """
        if not self.admin.path_exists(layout.apps_root):
            raise InternalContainerNotFoundError(layout.apps_root)

        if not self.admin.path_exists(layout.app_dir):
            self.admin.make_dirs(layout.app_dir)
            logger.info("Created application directory", path=layout.app_dir)

        if not self.admin.container_exists(layout.internal_container):
            self.admin.create_container(layout.internal_container)
            logger.info("Created internal container", container=layout.internal_container)

        compacted = layout.internal_compacted_container
        if not self.admin.container_exists(compacted):
            self.admin.create_container(compacted, compact=True)
            logger.info("Created internal container", container=compacted)

        if not self.admin.is_compacted(compacted):
            self.admin.enable_compaction(compacted)
            logger.info("Enabled log compaction", container=compacted)

        assignment = layout.assignment_container
        if assignment is not None and not self.admin.container_exists(assignment):
            raise InternalContainerNotFoundError(assignment)

    def _make_ready_once(self, topics: Mapping[InternalTopicConfig, int]) -> None:
        existing = self.get_num_partitions([config.name for config in topics])

        to_create = self._validate_topic_partitions(topics, existing)
        if to_create:
            self._create_topics(to_create)

    def _validate_topic_partitions(
        self,
        topics: Mapping[InternalTopicConfig, int],
        existing: Mapping[str, int],
    ) -> Dict[InternalTopicConfig, int]:
        """
        Check existing topics and return the ones to create.

        Raises:
            PartitionCountMismatchError: On the first mismatching topic
        """
        to_create: Dict[InternalTopicConfig, int] = {}

        for config, num_partitions in topics.items():
            if config.name in existing:
                actual = existing[config.name]
                if actual != num_partitions:
                    error = PartitionCountMismatchError(config.name, num_partitions, actual)
                    logger.error(str(error))
                    raise error
            else:
                to_create[config] = num_partitions

        return to_create

    def _create_topics(self, topics: Mapping[InternalTopicConfig, int]) -> None:
        new_topics = []
        for config, num_partitions in topics.items():
            configs = dict(self.default_topic_configs)
            configs.update(config.to_topic_properties(self.window_additional_retention_ms))
            new_topics.append(
                NewTopic(
                    name=config.name,
                    num_partitions=num_partitions,
                    replication_factor=self.replication_factor,
                    configs=configs,
                )
            )

        partitions_by_name = {config.name: n for config, n in topics.items()}
        results = self.admin.create_topics(new_topics)

        for name, future in results.items():
            try:
                future.result(timeout=self.timeout)
            except TopicExistsError:
                logger.info("Topic created concurrently", topic=name)
            except Exception as e:
                error = TopicCreationError(name, str(e) or type(e).__name__)
                raise RetryableError(str(error)) from error
            else:
                logger.info(
                    "Created internal topic",
                    topic=name,
                    partitions=partitions_by_name.get(name),
                )

    def _filter_existing(self, names: Collection[str]) -> Set[str]:
        existing: Set[str] = set()
        for container, short_names in group_by_container(names).items():
            if not self.admin.container_exists(container):
                continue
            try:
                live = self.admin.list_topics(container, timeout=self.timeout)
            except Exception as e:
                raise OperationError("list topics", container, str(e)) from e
            existing.update(
                f"{container}:{topic}" for topic in short_names if topic in live
            )
        return existing

