"""Consumer offset types and offset reset."""

from streamreset.consumer.offset import OffsetAndTimestamp, TopicPartition

__all__ = [
    "TopicPartition",
    "OffsetAndTimestamp",
]
