"""
Clamping of requested offsets into the live offset range of a partition.
"""

from typing import Dict, Mapping

from streamreset.consumer.offset import TopicPartition
from streamreset.utils.logging import get_logger

logger = get_logger(__name__)


def clamp(requested: int, beginning: int, end: int) -> int:
    """
    Clamp an offset into [beginning, end].

    The end offset itself is a valid target (consume nothing until new
    records arrive).

    Args:
        requested: Requested offset
        beginning: Earliest retained offset
        end: High watermark

    Returns:
        Effective offset
    """
    if requested >= end:
        return end
    if requested <= beginning:
        return beginning
    return requested


def check_offset_range(
    requested: Mapping[TopicPartition, int],
    beginning_offsets: Mapping[TopicPartition, int],
    end_offsets: Mapping[TopicPartition, int],
) -> Dict[TopicPartition, int]:
    """
    Clamp requested offsets per partition, logging every adjustment.

    Args:
        requested: Requested offset per partition
        beginning_offsets: Earliest retained offset per partition
        end_offsets: High watermark per partition

    Returns:
        Effective offset per partition
    """
    validated: Dict[TopicPartition, int] = {}

    for tp, offset in requested.items():
        beginning = beginning_offsets[tp]
        end = end_offsets[tp]
        effective = clamp(offset, beginning, end)

        if effective != offset:
            if offset >= end:
                logger.warning(
                    "Offset higher than latest offset",
                    topic=tp.topic,
                    partition=tp.partition,
                    requested=offset,
                    effective=effective,
                )
            else:
                logger.warning(
                    "Offset lower than earliest offset",
                    topic=tp.topic,
                    partition=tp.partition,
                    requested=offset,
                    effective=effective,
                )

        validated[tp] = effective

    return validated
