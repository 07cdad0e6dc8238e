"""
Client contracts for the broker and admin layer.

The reset tool never talks to the wire protocol itself. It drives an
AdminClient (topics, containers, assignments, auxiliary directories) and a
Consumer (positions and commits for one consumer group) through the narrow
interfaces below. Every blocking call takes a timeout in seconds and raises
TimeoutError when it expires.
"""

from abc import ABC, abstractmethod
from concurrent.futures import Future
from dataclasses import dataclass, field
from typing import Collection, Dict, List, Mapping, Optional, Set

from streamreset.consumer.offset import OffsetAndTimestamp, TopicPartition

DEFAULT_TIMEOUT_SECONDS = 60.0


class TopicExistsError(Exception):
    """Topic creation raced with another creator."""

    def __init__(self, topic: str):
        self.topic = topic
        super().__init__(f"Topic {topic} already exists")


class UnknownTopicError(Exception):
    """Topic does not exist."""

    def __init__(self, topic: str):
        self.topic = topic
        super().__init__(f"Topic {topic} does not exist")


class ContainerNotFoundError(Exception):
    """Container does not exist."""

    def __init__(self, container: str):
        self.container = container
        super().__init__(f"Container {container} does not exist")


@dataclass(frozen=True)
class NewTopic:
    """
    Topic creation request.

    Attributes:
        name: Fully qualified topic name
        num_partitions: Partition count
        replication_factor: Replica count
        configs: Topic-level configs
    """
    name: str
    num_partitions: int
    replication_factor: int = 1
    configs: Mapping[str, str] = field(default_factory=dict, compare=False)


@dataclass(frozen=True)
class AssignInfo:
    """
    Assignment of one partition of a topic within a consumer group.

    Attributes:
        topic: Short topic name
        partition: Partition number
        num_listeners: Number of group members currently attached
    """
    topic: str
    partition: int
    num_listeners: int = 0


class AdminClient(ABC):
    """Administrative operations against the cluster."""

    @abstractmethod
    def list_topics(self, container: str, timeout: float = DEFAULT_TIMEOUT_SECONDS) -> Set[str]:
        """
        List short topic names inside a container.

        Args:
            container: Container path
            timeout: Seconds to wait

        Returns:
            Short topic names
        """

    @abstractmethod
    def container_exists(self, container: str) -> bool:
        """Check whether a container exists."""

    @abstractmethod
    def create_container(self, container: str, compact: bool = False) -> None:
        """Create a container."""

    @abstractmethod
    def is_compacted(self, container: str) -> bool:
        """Check whether log compaction is enabled for a container."""

    @abstractmethod
    def enable_compaction(self, container: str) -> None:
        """Turn on log compaction for a container."""

    @abstractmethod
    def delete_container(self, container: str) -> None:
        """Delete a container and every topic in it."""

    @abstractmethod
    def describe_topics(
        self,
        names: Collection[str],
        timeout: float = DEFAULT_TIMEOUT_SECONDS,
    ) -> Dict[str, int]:
        """
        Describe topics.

        Args:
            names: Fully qualified topic names
            timeout: Seconds to wait

        Returns:
            Topic name to partition count

        Raises:
            UnknownTopicError: If any topic does not exist
        """

    @abstractmethod
    def create_topics(self, topics: Collection[NewTopic]) -> Dict[str, Future]:
        """
        Request topic creation.

        Args:
            topics: Creation requests

        Returns:
            Topic name to a future that resolves to None or raises
            (TopicExistsError for a concurrent creator)
        """

    @abstractmethod
    def delete_topics(self, names: Collection[str]) -> Dict[str, Future]:
        """
        Request topic deletion.

        Args:
            names: Fully qualified topic names

        Returns:
            Topic name to a future that resolves to None or raises
        """

    @abstractmethod
    def list_assignments(
        self,
        container: str,
        group_id: str,
        topic: str,
        timeout: float = DEFAULT_TIMEOUT_SECONDS,
    ) -> List[AssignInfo]:
        """
        List live partition assignments of a consumer group for one topic.

        Args:
            container: Container path
            group_id: Consumer group id
            topic: Fully qualified or short topic name
            timeout: Seconds to wait

        Returns:
            One entry per assigned partition
        """

    @abstractmethod
    def path_exists(self, path: str) -> bool:
        """Check whether an auxiliary directory exists."""

    @abstractmethod
    def make_dirs(self, path: str) -> None:
        """Create an auxiliary directory and its parents."""

    @abstractmethod
    def delete_path(self, path: str) -> None:
        """Recursively delete an auxiliary directory."""

    def close(self, timeout: float = DEFAULT_TIMEOUT_SECONDS) -> None:
        """Release client resources."""


class Consumer(ABC):
    """Position and commit operations for one consumer group."""

    @abstractmethod
    def subscribe(self, topics: Collection[str]) -> None:
        """Subscribe to fully qualified topic names."""

    @abstractmethod
    def assignment(self) -> Set[TopicPartition]:
        """Partitions currently assigned to this consumer."""

    @abstractmethod
    def beginning_offsets(
        self,
        partitions: Collection[TopicPartition],
        timeout: float = DEFAULT_TIMEOUT_SECONDS,
    ) -> Dict[TopicPartition, int]:
        """Earliest retained offset per partition."""

    @abstractmethod
    def end_offsets(
        self,
        partitions: Collection[TopicPartition],
        timeout: float = DEFAULT_TIMEOUT_SECONDS,
    ) -> Dict[TopicPartition, int]:
        """High watermark per partition."""

    @abstractmethod
    def offsets_for_times(
        self,
        timestamps: Mapping[TopicPartition, int],
        timeout: float = DEFAULT_TIMEOUT_SECONDS,
    ) -> Dict[TopicPartition, Optional[OffsetAndTimestamp]]:
        """
        Look up offsets by timestamp.

        Args:
            timestamps: Partition to timestamp in milliseconds
            timeout: Seconds to wait

        Returns:
            Partition to the earliest offset whose timestamp is at or after
            the query, or None when no such record exists
        """

    @abstractmethod
    def seek(self, partition: TopicPartition, offset: int) -> None:
        """Move the position of one partition."""

    @abstractmethod
    def seek_to_beginning(self, partitions: Collection[TopicPartition]) -> None:
        """Move positions to the earliest retained offset."""

    @abstractmethod
    def seek_to_end(self, partitions: Collection[TopicPartition]) -> None:
        """Move positions to the high watermark."""

    @abstractmethod
    def position(self, partition: TopicPartition, timeout: float = DEFAULT_TIMEOUT_SECONDS) -> int:
        """Current position of one partition."""

    @abstractmethod
    def commit(self, timeout: float = DEFAULT_TIMEOUT_SECONDS) -> None:
        """Commit current positions for every assigned partition."""

    def close(self) -> None:
        """Release consumer resources."""
