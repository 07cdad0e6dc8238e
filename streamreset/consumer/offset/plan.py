"""
Reset plan parsing.

A reset plan is plain text with one ``TOPIC,PARTITION,OFFSET`` record per
line, no header and no quoting. A later record for the same partition
replaces an earlier one.
"""

import re
from pathlib import Path
from typing import Dict, Union

from streamreset.consumer.offset import TopicPartition
from streamreset.errors import EmptyPlanError, MalformedPlanError
from streamreset.utils.logging import get_logger

logger = get_logger(__name__)

PLAN_FORMAT = "TOPIC,PARTITION,OFFSET"
MAX_OFFSET = 2 ** 63 - 1
MAX_PARTITION = 2 ** 31 - 1

_INTEGER_RE = re.compile(r"[+-]?[0-9]+")


def _parse_non_negative(value: str, field_name: str, line_number: int, upper: int) -> int:
    text = value.strip()
    if not _INTEGER_RE.fullmatch(text):
        raise MalformedPlanError(
            f"Reset plan {field_name} '{value}' is not an integer", line_number
        )

    parsed = int(text)
    if parsed < 0 or parsed > upper:
        raise MalformedPlanError(
            f"Reset plan {field_name} {parsed} is out of range", line_number
        )
    return parsed


def parse_reset_plan(plan_text: str) -> Dict[TopicPartition, int]:
    """
    Parse a reset plan.

    Args:
        plan_text: Plan file contents

    Returns:
        Target offset per topic-partition

    Raises:
        EmptyPlanError: If the plan has no records
        MalformedPlanError: If a line is not TOPIC,PARTITION,OFFSET
    """
    if not plan_text or not plan_text.strip():
        raise EmptyPlanError("Error parsing reset plan. It is empty.")

    offsets: Dict[TopicPartition, int] = {}

    for line_number, raw_line in enumerate(plan_text.split("\n"), start=1):
        line = raw_line.strip()
        if not line:
            continue

        parts = line.split(",")
        if len(parts) != 3:
            raise MalformedPlanError(
                f"Reset plan is not following the format `{PLAN_FORMAT}`",
                line_number,
            )

        topic = parts[0].strip()
        if not topic:
            raise MalformedPlanError("Reset plan topic is empty", line_number)

        partition = _parse_non_negative(parts[1], "partition", line_number, MAX_PARTITION)
        offset = _parse_non_negative(parts[2], "offset", line_number, MAX_OFFSET)

        offsets[TopicPartition(topic, partition)] = offset

    logger.debug("Parsed reset plan", partitions=len(offsets))

    return offsets


def read_reset_plan(path: Union[str, Path]) -> Dict[TopicPartition, int]:
    """
    Read and parse a reset plan file.

    Args:
        path: Plan file path

    Returns:
        Target offset per topic-partition

    Raises:
        MalformedPlanError: If the file is not valid UTF-8
    """
    try:
        text = Path(path).read_text(encoding="utf-8")
    except UnicodeDecodeError as e:
        raise MalformedPlanError(f"Reset plan {path} is not valid UTF-8: {e.reason}") from e
    return parse_reset_plan(text)
