"""Consumer offset types."""

from dataclasses import dataclass
from typing import Optional


@dataclass(frozen=True)
class TopicPartition:
    """
    Represents a topic-partition pair.

    Attributes:
        topic: Fully qualified topic name
        partition: Partition number
    """
    topic: str
    partition: int

    def __str__(self) -> str:
        return f"{self.topic}-{self.partition}"

    def __repr__(self) -> str:
        return f"TopicPartition(topic='{self.topic}', partition={self.partition})"


@dataclass(frozen=True)
class OffsetAndTimestamp:
    """
    Result of a time index lookup.

    Attributes:
        offset: First offset whose record timestamp is at or after the query
        timestamp: Timestamp of that record in milliseconds
    """
    offset: int
    timestamp: Optional[int] = None


__all__ = [
    "TopicPartition",
    "OffsetAndTimestamp",
]
