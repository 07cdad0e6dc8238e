"""
In-process cluster implementing the admin and consumer contracts.

Holds containers, topics, partition offset ranges with record timestamps,
committed group offsets, live assignments and auxiliary directories in
memory. Used as the ``memory`` backend and as the test double for every
component that talks to the broker.
"""

import bisect
import threading
from concurrent.futures import Future
from dataclasses import dataclass, field
from pathlib import PurePosixPath
from typing import Any, Collection, Dict, List, Mapping, Optional, Set, Tuple

import yaml

from streamreset.client.admin import (
    DEFAULT_TIMEOUT_SECONDS,
    AdminClient,
    AssignInfo,
    Consumer,
    ContainerNotFoundError,
    NewTopic,
    TopicExistsError,
    UnknownTopicError,
)
from streamreset.consumer.offset import OffsetAndTimestamp, TopicPartition
from streamreset.core.topic.names import short_topic_name, split_full_topic_name
from streamreset.utils.logging import get_logger

logger = get_logger(__name__)


@dataclass
class PartitionLog:
    """
    Offset range and record timestamps of one partition.

    Attributes:
        beginning_offset: Earliest retained offset
        timestamps: Record timestamps (ms) for offsets beginning_offset onwards
    """
    beginning_offset: int = 0
    timestamps: List[int] = field(default_factory=list)

    @property
    def end_offset(self) -> int:
        return self.beginning_offset + len(self.timestamps)

    def offset_for_time(self, timestamp: int) -> Optional[OffsetAndTimestamp]:
        """
        Find the first record at or after a timestamp.

        Timestamps are assumed to be non-decreasing within a partition.

        Args:
            timestamp: Query timestamp in milliseconds

        Returns:
            Offset and timestamp of the record, or None
        """
        index = bisect.bisect_left(self.timestamps, timestamp)
        if index >= len(self.timestamps):
            return None
        return OffsetAndTimestamp(
            offset=self.beginning_offset + index,
            timestamp=self.timestamps[index],
        )


@dataclass
class ContainerState:
    """Topics and settings of one container."""
    compact: bool = False
    topics: Dict[str, List[PartitionLog]] = field(default_factory=dict)
    topic_configs: Dict[str, Dict[str, str]] = field(default_factory=dict)


class InMemoryCluster(AdminClient):
    """
    Cluster state held in memory.

    Thread-safe; every public method takes the cluster lock.
    """

    def __init__(self):
        self._containers: Dict[str, ContainerState] = {}
        self._committed: Dict[str, Dict[TopicPartition, int]] = {}
        self._assignments: Dict[Tuple[str, str, str], List[AssignInfo]] = {}
        self._paths: Set[str] = set()
        self._create_failures: Dict[str, List[BaseException]] = {}
        self._lock = threading.RLock()
        self.closed = False

        self.calls: List[str] = []

    # Setup helpers

    def add_container(self, container: str, compact: bool = False) -> None:
        with self._lock:
            self._containers.setdefault(container, ContainerState(compact=compact))

    def add_topic(
        self,
        full_topic_name: str,
        num_partitions: int = 1,
        beginning_offsets: Optional[List[int]] = None,
        end_offsets: Optional[List[int]] = None,
    ) -> None:
        """
        Add a topic, creating its container when needed.

        Args:
            full_topic_name: Fully qualified topic name
            num_partitions: Partition count
            beginning_offsets: Earliest offset per partition (default 0)
            end_offsets: High watermark per partition (default beginning);
                synthesized records get timestamp 0
        """
        container, topic = split_full_topic_name(full_topic_name)
        with self._lock:
            self.add_container(container)
            partitions = []
            for p in range(num_partitions):
                beginning = beginning_offsets[p] if beginning_offsets else 0
                end = end_offsets[p] if end_offsets else beginning
                partitions.append(
                    PartitionLog(
                        beginning_offset=beginning,
                        timestamps=[0] * max(end - beginning, 0),
                    )
                )
            self._containers[container].topics[topic] = partitions

    def set_partition_log(self, tp: TopicPartition, log: PartitionLog) -> None:
        with self._lock:
            self._partitions(tp.topic)[tp.partition] = log

    def append_records(self, tp: TopicPartition, timestamps: List[int]) -> None:
        with self._lock:
            self._partitions(tp.topic)[tp.partition].timestamps.extend(timestamps)

    def set_assignments(
        self,
        container: str,
        group_id: str,
        topic: str,
        assignments: List[AssignInfo],
    ) -> None:
        with self._lock:
            key = (container, group_id, short_topic_name(topic))
            self._assignments[key] = list(assignments)

    def set_committed(self, group_id: str, tp: TopicPartition, offset: int) -> None:
        with self._lock:
            self._committed.setdefault(group_id, {})[tp] = offset

    def committed(self, group_id: str, tp: TopicPartition) -> Optional[int]:
        with self._lock:
            return self._committed.get(group_id, {}).get(tp)

    def topic_configs(self, full_topic_name: str) -> Dict[str, str]:
        container, topic = split_full_topic_name(full_topic_name)
        with self._lock:
            return dict(self._containers[container].topic_configs.get(topic, {}))

    def fail_next_create(self, full_topic_name: str, error: BaseException) -> None:
        """Make the next creation request for a topic fail with an error."""
        with self._lock:
            self._create_failures.setdefault(full_topic_name, []).append(error)

    def consumer(self, group_id: str, **config) -> "InMemoryConsumer":
        return InMemoryConsumer(self, group_id, **config)

    # AdminClient

    def list_topics(self, container: str, timeout: float = DEFAULT_TIMEOUT_SECONDS) -> Set[str]:
        with self._lock:
            self.calls.append("list_topics")
            state = self._containers.get(container)
            if state is None:
                raise ContainerNotFoundError(container)
            return set(state.topics)

    def container_exists(self, container: str) -> bool:
        with self._lock:
            return container in self._containers

    def create_container(self, container: str, compact: bool = False) -> None:
        with self._lock:
            self.calls.append("create_container")
            self.add_container(container, compact=compact)
            logger.debug("Created container", container=container, compact=compact)

    def is_compacted(self, container: str) -> bool:
        with self._lock:
            return self._container(container).compact

    def enable_compaction(self, container: str) -> None:
        with self._lock:
            self._container(container).compact = True

    def delete_container(self, container: str) -> None:
        with self._lock:
            self.calls.append("delete_container")
            self._container(container)
            del self._containers[container]

    def describe_topics(
        self,
        names: Collection[str],
        timeout: float = DEFAULT_TIMEOUT_SECONDS,
    ) -> Dict[str, int]:
        with self._lock:
            self.calls.append("describe_topics")
            return {name: len(self._partitions(name)) for name in names}

    def create_topics(self, topics: Collection[NewTopic]) -> Dict[str, Future]:
        with self._lock:
            self.calls.append("create_topics")
            results: Dict[str, Future] = {}
            for new_topic in topics:
                future: Future = Future()
                results[new_topic.name] = future

                failures = self._create_failures.get(new_topic.name)
                if failures:
                    future.set_exception(failures.pop(0))
                    continue

                container, topic = split_full_topic_name(new_topic.name)
                state = self._containers.get(container)
                if state is None:
                    future.set_exception(ContainerNotFoundError(container))
                elif topic in state.topics:
                    future.set_exception(TopicExistsError(new_topic.name))
                else:
                    state.topics[topic] = [
                        PartitionLog() for _ in range(new_topic.num_partitions)
                    ]
                    state.topic_configs[topic] = dict(new_topic.configs)
                    future.set_result(None)
            return results

    def delete_topics(self, names: Collection[str]) -> Dict[str, Future]:
        with self._lock:
            self.calls.append("delete_topics")
            results: Dict[str, Future] = {}
            for name in names:
                future: Future = Future()
                results[name] = future

                container, topic = split_full_topic_name(name)
                state = self._containers.get(container)
                if state is None or topic not in state.topics:
                    future.set_exception(UnknownTopicError(name))
                    continue

                del state.topics[topic]
                state.topic_configs.pop(topic, None)
                for group_offsets in self._committed.values():
                    for tp in [tp for tp in group_offsets if tp.topic == name]:
                        del group_offsets[tp]
                future.set_result(None)
            return results

    def list_assignments(
        self,
        container: str,
        group_id: str,
        topic: str,
        timeout: float = DEFAULT_TIMEOUT_SECONDS,
    ) -> List[AssignInfo]:
        with self._lock:
            self.calls.append("list_assignments")
            key = (container, group_id, short_topic_name(topic))
            return list(self._assignments.get(key, []))

    def path_exists(self, path: str) -> bool:
        with self._lock:
            return _normalize(path) in self._paths

    def make_dirs(self, path: str) -> None:
        with self._lock:
            current = PurePosixPath(_normalize(path))
            for parent in [current, *current.parents]:
                if str(parent) != "/":
                    self._paths.add(str(parent))

    def delete_path(self, path: str) -> None:
        with self._lock:
            self.calls.append("delete_path")
            root = _normalize(path)
            self._paths = {
                p for p in self._paths
                if p != root and not p.startswith(root + "/")
            }

    def close(self, timeout: float = DEFAULT_TIMEOUT_SECONDS) -> None:
        self.closed = True

    # Snapshots

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> "InMemoryCluster":
        """
        Build a cluster from a plain mapping.

        Layout::

            paths: [/apps/kafka-streams]
            containers:
              /apps/orders:
                compact: false
                topics:
                  input: 2                      # partition count
                  events:                       # explicit partitions
                    - {beginning_offset: 0, timestamps: [1000, 2000]}
            committed:
              my-app:
                "/apps/orders:input": {0: 5}
            assignments:
              - {container: /apps/orders, group: my-app, topic: input,
                 partition: 0, listeners: 1}

        Args:
            data: Snapshot mapping

        Returns:
            Populated cluster
        """
        cluster = cls()

        for path in data.get("paths", []) or []:
            cluster.make_dirs(path)

        for container, spec in (data.get("containers") or {}).items():
            spec = spec or {}
            cluster.add_container(container, compact=bool(spec.get("compact", False)))
            for topic, partitions in (spec.get("topics") or {}).items():
                full_name = f"{container}:{topic}"
                if isinstance(partitions, int):
                    cluster.add_topic(full_name, num_partitions=partitions)
                    continue
                cluster.add_topic(full_name, num_partitions=len(partitions))
                for p, partition_spec in enumerate(partitions):
                    cluster.set_partition_log(
                        TopicPartition(full_name, p),
                        PartitionLog(
                            beginning_offset=int(partition_spec.get("beginning_offset", 0)),
                            timestamps=[int(t) for t in partition_spec.get("timestamps", [])],
                        ),
                    )

        for group_id, topics in (data.get("committed") or {}).items():
            for topic, offsets in (topics or {}).items():
                for partition, offset in offsets.items():
                    cluster.set_committed(
                        group_id, TopicPartition(topic, int(partition)), int(offset)
                    )

        grouped: Dict[Tuple[str, str, str], List[AssignInfo]] = {}
        for entry in data.get("assignments", []) or []:
            key = (entry["container"], entry["group"], entry["topic"])
            grouped.setdefault(key, []).append(
                AssignInfo(
                    topic=entry["topic"],
                    partition=int(entry.get("partition", 0)),
                    num_listeners=int(entry.get("listeners", 0)),
                )
            )
        for (container, group_id, topic), infos in grouped.items():
            cluster.set_assignments(container, group_id, topic, infos)

        return cluster

    @classmethod
    def load_snapshot(cls, path: str) -> "InMemoryCluster":
        """Build a cluster from a YAML snapshot file."""
        with open(path, "r") as f:
            data = yaml.safe_load(f) or {}

        logger.info("Loaded in-memory cluster snapshot", path=path)
        return cls.from_dict(data)

    # Internal

    def _container(self, container: str) -> ContainerState:
        state = self._containers.get(container)
        if state is None:
            raise ContainerNotFoundError(container)
        return state

    def _partitions(self, full_topic_name: str) -> List[PartitionLog]:
        container, topic = split_full_topic_name(full_topic_name)
        state = self._containers.get(container)
        if state is None or topic not in state.topics:
            raise UnknownTopicError(full_topic_name)
        return state.topics[topic]

    def _partition(self, tp: TopicPartition) -> PartitionLog:
        partitions = self._partitions(tp.topic)
        if not 0 <= tp.partition < len(partitions):
            raise UnknownTopicError(str(tp))
        return partitions[tp.partition]


class InMemoryConsumer(Consumer):
    """
    Consumer bound to one group on an InMemoryCluster.

    Positions are resolved eagerly: seeks take effect immediately and a
    partition without a position falls back to the committed offset, then
    to auto_offset_reset.
    """

    def __init__(
        self,
        cluster: InMemoryCluster,
        group_id: str,
        auto_offset_reset: str = "earliest",
        **config,
    ):
        self.cluster = cluster
        self.group_id = group_id
        self.auto_offset_reset = auto_offset_reset
        self.config = config

        self._assignment: Set[TopicPartition] = set()
        self._positions: Dict[TopicPartition, int] = {}
        self.closed = False
        self.commits = 0

    def subscribe(self, topics: Collection[str]) -> None:
        assignment = set()
        with self.cluster._lock:
            for topic in topics:
                partitions = self.cluster._partitions(topic)
                assignment.update(
                    TopicPartition(topic, p) for p in range(len(partitions))
                )
        self._assignment = assignment
        self._positions = {
            tp: offset for tp, offset in self._positions.items() if tp in assignment
        }

    def assignment(self) -> Set[TopicPartition]:
        return set(self._assignment)

    def beginning_offsets(
        self,
        partitions: Collection[TopicPartition],
        timeout: float = DEFAULT_TIMEOUT_SECONDS,
    ) -> Dict[TopicPartition, int]:
        with self.cluster._lock:
            return {
                tp: self.cluster._partition(tp).beginning_offset for tp in partitions
            }

    def end_offsets(
        self,
        partitions: Collection[TopicPartition],
        timeout: float = DEFAULT_TIMEOUT_SECONDS,
    ) -> Dict[TopicPartition, int]:
        with self.cluster._lock:
            return {tp: self.cluster._partition(tp).end_offset for tp in partitions}

    def offsets_for_times(
        self,
        timestamps: Mapping[TopicPartition, int],
        timeout: float = DEFAULT_TIMEOUT_SECONDS,
    ) -> Dict[TopicPartition, Optional[OffsetAndTimestamp]]:
        with self.cluster._lock:
            return {
                tp: self.cluster._partition(tp).offset_for_time(ts)
                for tp, ts in timestamps.items()
            }

    def seek(self, partition: TopicPartition, offset: int) -> None:
        self._check_assigned(partition)
        if offset < 0:
            raise ValueError(f"Seek offset must not be negative: {offset}")
        self._positions[partition] = offset

    def seek_to_beginning(self, partitions: Collection[TopicPartition]) -> None:
        for tp, offset in self.beginning_offsets(partitions).items():
            self.seek(tp, offset)

    def seek_to_end(self, partitions: Collection[TopicPartition]) -> None:
        for tp, offset in self.end_offsets(partitions).items():
            self.seek(tp, offset)

    def position(self, partition: TopicPartition, timeout: float = DEFAULT_TIMEOUT_SECONDS) -> int:
        self._check_assigned(partition)
        if partition not in self._positions:
            committed = self.cluster.committed(self.group_id, partition)
            if committed is not None:
                self._positions[partition] = committed
            elif self.auto_offset_reset == "latest":
                self._positions[partition] = self.end_offsets([partition])[partition]
            else:
                self._positions[partition] = self.beginning_offsets([partition])[partition]
        return self._positions[partition]

    def commit(self, timeout: float = DEFAULT_TIMEOUT_SECONDS) -> None:
        for tp in self._assignment:
            self.cluster.set_committed(self.group_id, tp, self.position(tp))
        self.commits += 1

    def close(self) -> None:
        self.closed = True

    def _check_assigned(self, partition: TopicPartition) -> None:
        if partition not in self._assignment:
            raise ValueError(f"Partition {partition} is not assigned to this consumer")


def _normalize(path: str) -> str:
    return str(PurePosixPath(path))
