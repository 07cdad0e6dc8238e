"""
Offset reset engine.

Moves the positions of input topic partitions according to a reset
scenario, skips intermediate topic partitions to their end and commits
the result unless running as a dry run.
"""

import time
from dataclasses import dataclass, field
from datetime import timedelta
from typing import Callable, Collection, Dict, Mapping, Optional, Set

from streamreset.client.admin import DEFAULT_TIMEOUT_SECONDS, Consumer
from streamreset.consumer.offset import OffsetAndTimestamp, TopicPartition
from streamreset.consumer.offset.range_validator import check_offset_range
from streamreset.consumer.offset.reset_strategy import ResetScenario, ScenarioKind
from streamreset.errors import OperationError
from streamreset.utils.logging import get_logger

logger = get_logger(__name__)


@dataclass
class ResetResult:
    """
    Outcome of one engine run.

    Attributes:
        positions: Resolved position of every handled partition
        committed: Whether the positions were committed
    """
    positions: Dict[TopicPartition, int] = field(default_factory=dict)
    committed: bool = False


class OffsetResetEngine:
    """
    Applies a reset scenario to the partitions of one consumer group.

    Consumer failures abort the run wrapped in OperationError; seeks
    already applied are not rolled back.
    """

    def __init__(
        self,
        consumer: Consumer,
        scenario: ResetScenario,
        group_id: str,
        dry_run: bool = False,
        timeout: float = DEFAULT_TIMEOUT_SECONDS,
        clock: Callable[[], float] = time.time,
    ):
        """
        Initialize the engine.

        Args:
            consumer: Consumer subscribed for the group
            scenario: Reset scenario for input partitions
            group_id: Consumer group id (for reporting)
            dry_run: Compute and report only, never commit
            timeout: Seconds to wait per consumer call
            clock: Current time in seconds (for BY_DURATION)
        """
        self.consumer = consumer
        self.scenario = scenario
        self.group_id = group_id
        self.dry_run = dry_run
        self.timeout = timeout
        self._clock = clock

        self._handlers: Dict[ScenarioKind, Callable[[Set[TopicPartition]], None]] = {
            ScenarioKind.TO_OFFSET: lambda tps: self.reset_offsets_to(tps, self.scenario.value),
            ScenarioKind.TO_EARLIEST: self.consumer.seek_to_beginning,
            ScenarioKind.TO_LATEST: self.consumer.seek_to_end,
            ScenarioKind.SHIFT_BY: lambda tps: self.shift_offsets_by(tps, self.scenario.value),
            ScenarioKind.TO_DATETIME: lambda tps: self.reset_to_datetime(tps, self.scenario.value),
            ScenarioKind.BY_DURATION: lambda tps: self.reset_by_duration(tps, self.scenario.value),
            ScenarioKind.FROM_FILE: lambda tps: self.reset_from_plan(tps, self.scenario.value),
        }

    def apply(
        self,
        input_partitions: Collection[TopicPartition],
        intermediate_partitions: Collection[TopicPartition],
    ) -> ResetResult:
        """
        Reset input partitions, skip intermediate partitions to the end.

        Args:
            input_partitions: Partitions of input topics
            intermediate_partitions: Partitions of intermediate topics

        Returns:
            Resolved positions and whether they were committed

        Raises:
            OperationError: If a consumer call fails
        """
        result = ResetResult()

        try:
            result.positions.update(self.reset_input_partitions(input_partitions))
        except Exception as e:
            raise OperationError("reset input offsets", self.group_id, str(e)) from e

        try:
            result.positions.update(self.seek_to_end(intermediate_partitions))
        except Exception as e:
            raise OperationError("seek intermediate offsets to end", self.group_id, str(e)) from e

        if not self.dry_run:
            try:
                for tp in set(input_partitions) | set(intermediate_partitions):
                    result.positions[tp] = self.consumer.position(tp, timeout=self.timeout)
                self.consumer.commit(timeout=self.timeout)
            except Exception as e:
                raise OperationError("commit", self.group_id, str(e)) from e
            result.committed = True

            logger.info(
                "Committed reset offsets",
                group_id=self.group_id,
                partitions=len(result.positions),
            )

        return result

    def reset_input_partitions(
        self,
        partitions: Collection[TopicPartition],
    ) -> Dict[TopicPartition, int]:
        """
        Move input partitions according to the scenario.

        Args:
            partitions: Input topic partitions

        Returns:
            Position per partition after the move
        """
        partitions = set(partitions)
        if not partitions:
            return {}

        logger.info(
            "Resetting input topic offsets",
            group_id=self.group_id,
            scenario=self.scenario.describe(),
            partitions=len(partitions),
        )

        self._handlers[self.scenario.kind](partitions)

        positions = {}
        for tp in sorted(partitions, key=lambda p: (p.topic, p.partition)):
            positions[tp] = self.consumer.position(tp, timeout=self.timeout)
            logger.info(
                "Input partition offset",
                topic=tp.topic,
                partition=tp.partition,
                offset=positions[tp],
            )

        return positions

    def seek_to_end(self, partitions: Collection[TopicPartition]) -> Dict[TopicPartition, int]:
        """
        Skip intermediate partitions to their end offset.

        Args:
            partitions: Intermediate topic partitions

        Returns:
            Position per partition after the move
        """
        partitions = set(partitions)
        if not partitions:
            return {}

        for topic in sorted({tp.topic for tp in partitions}):
            logger.info(
                "Intermediate topic offsets will be reset to end",
                group_id=self.group_id,
                topic=topic,
            )

        self.consumer.seek_to_end(partitions)

        return {tp: self.consumer.position(tp, timeout=self.timeout) for tp in partitions}

    def reset_offsets_to(self, partitions: Set[TopicPartition], offset: int) -> None:
        requested = {tp: offset for tp in partitions}
        self._seek_validated(requested)

    def shift_offsets_by(self, partitions: Set[TopicPartition], shift_by: int) -> None:
        requested = {
            tp: self.consumer.position(tp, timeout=self.timeout) + shift_by
            for tp in partitions
        }
        self._seek_validated(requested)

    def reset_to_datetime(self, partitions: Set[TopicPartition], timestamp_ms: int) -> None:
        """
        Seek every partition to the first offset at or after a timestamp.

        Partitions with no such record are sought to their end.

        Args:
            partitions: Input partitions
            timestamp_ms: Epoch milliseconds
        """
        found = self.consumer.offsets_for_times(
            {tp: timestamp_ms for tp in partitions},
            timeout=self.timeout,
        )

        missing = [tp for tp in partitions if found.get(tp) is None]
        end_offsets = (
            self.consumer.end_offsets(missing, timeout=self.timeout) if missing else {}
        )

        for tp in partitions:
            offset_and_timestamp: Optional[OffsetAndTimestamp] = found.get(tp)
            if offset_and_timestamp is None:
                logger.warning(
                    "No record at or after timestamp, seeking to end",
                    topic=tp.topic,
                    partition=tp.partition,
                    timestamp=timestamp_ms,
                )
                self.consumer.seek(tp, end_offsets[tp])
            else:
                self.consumer.seek(tp, offset_and_timestamp.offset)

    def reset_by_duration(self, partitions: Set[TopicPartition], duration: timedelta) -> None:
        now_ms = int(self._clock() * 1000)
        timestamp_ms = now_ms - duration // timedelta(milliseconds=1)
        self.reset_to_datetime(partitions, timestamp_ms)

    def reset_from_plan(
        self,
        partitions: Set[TopicPartition],
        plan: Mapping[TopicPartition, int],
    ) -> None:
        """
        Seek partitions to the offsets given in a reset plan.

        Partitions absent from the plan keep their position.

        Args:
            partitions: Input partitions
            plan: Target offset per partition
        """
        requested = {tp: offset for tp, offset in plan.items() if tp in partitions}

        skipped = set(plan) - set(requested)
        if skipped:
            logger.warning(
                "Reset plan entries do not match any input partition",
                partitions=sorted(str(tp) for tp in skipped),
            )

        self._seek_validated(requested)

    def _seek_validated(self, requested: Mapping[TopicPartition, int]) -> None:
        if not requested:
            return

        partitions = list(requested)
        end_offsets = self.consumer.end_offsets(partitions, timeout=self.timeout)
        beginning_offsets = self.consumer.beginning_offsets(partitions, timeout=self.timeout)

        validated = check_offset_range(requested, beginning_offsets, end_offsets)

        for tp, offset in validated.items():
            self.consumer.seek(tp, offset)
