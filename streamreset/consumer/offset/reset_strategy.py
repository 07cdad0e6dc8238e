"""
Offset reset scenarios.

An operator picks at most one scenario describing where input topic
offsets should move to. When none is picked the offsets are reset to the
earliest retained offset.
"""

import re
from dataclasses import dataclass
from datetime import datetime, timedelta, timezone
from enum import Enum
from typing import Any, Dict, Optional

from streamreset.consumer.offset.plan import read_reset_plan
from streamreset.errors import (
    InvalidDatetimeError,
    InvalidDurationError,
    InvalidOptionsError,
    ScenarioConflictError,
)
from streamreset.utils.logging import get_logger

logger = get_logger(__name__)

DATETIME_FORMAT = "%Y-%m-%dT%H:%M:%S.%f%z"

_EPOCH = datetime(1970, 1, 1, tzinfo=timezone.utc)
_HOUR_ONLY_OFFSET_RE = re.compile(r"[+-][0-9]{2}$")
_DURATION_RE = re.compile(
    r"(?P<sign>-)?P"
    r"(?:(?P<years>[0-9]+)Y)?"
    r"(?:(?P<months>[0-9]+)M)?"
    r"(?:(?P<weeks>[0-9]+)W)?"
    r"(?:(?P<days>[0-9]+)D)?"
    r"(?:T"
    r"(?:(?P<hours>[0-9]+)H)?"
    r"(?:(?P<minutes>[0-9]+)M)?"
    r"(?:(?P<seconds>[0-9]+(?:[.,][0-9]+)?)S)?"
    r")?"
)


class ScenarioKind(str, Enum):
    """
    Where to move input topic offsets.
    """
    TO_OFFSET = "to-offset"
    TO_EARLIEST = "to-earliest"
    TO_LATEST = "to-latest"
    SHIFT_BY = "shift-by"
    TO_DATETIME = "to-datetime"
    BY_DURATION = "by-duration"
    FROM_FILE = "from-file"


@dataclass(frozen=True)
class ResetScenario:
    """
    A reset scenario and its already validated argument.

    Attributes:
        kind: Scenario kind
        value: Target offset (TO_OFFSET), delta (SHIFT_BY), epoch
            milliseconds (TO_DATETIME), timedelta (BY_DURATION) or parsed
            plan (FROM_FILE); None otherwise
    """
    kind: ScenarioKind = ScenarioKind.TO_EARLIEST
    value: Any = None

    @classmethod
    def from_options(
        cls,
        to_offset: Optional[int] = None,
        to_earliest: bool = False,
        to_latest: bool = False,
        shift_by: Optional[int] = None,
        to_datetime: Optional[str] = None,
        by_duration: Optional[str] = None,
        from_file: Optional[str] = None,
    ) -> "ResetScenario":
        """
        Select the scenario from operator options.

        Arguments are parsed here so that every validation error surfaces
        before anything is changed.

        Returns:
            Selected scenario (TO_EARLIEST when nothing is selected)

        Raises:
            ScenarioConflictError: If more than one scenario is selected
            InvalidOptionsError: If to_offset is negative
            InvalidDatetimeError: If to_datetime cannot be parsed
            InvalidDurationError: If by_duration cannot be parsed
            MalformedPlanError, EmptyPlanError: If the plan file is invalid
        """
        selected: Dict[ScenarioKind, Any] = {}
        if to_offset is not None:
            selected[ScenarioKind.TO_OFFSET] = to_offset
        if to_earliest:
            selected[ScenarioKind.TO_EARLIEST] = None
        if to_latest:
            selected[ScenarioKind.TO_LATEST] = None
        if shift_by is not None:
            selected[ScenarioKind.SHIFT_BY] = shift_by
        if to_datetime is not None:
            selected[ScenarioKind.TO_DATETIME] = to_datetime
        if by_duration is not None:
            selected[ScenarioKind.BY_DURATION] = by_duration
        if from_file is not None:
            selected[ScenarioKind.FROM_FILE] = from_file

        if len(selected) > 1:
            raise ScenarioConflictError(kind.value for kind in selected)

        if not selected:
            return cls(ScenarioKind.TO_EARLIEST)

        kind, raw = next(iter(selected.items()))

        if kind == ScenarioKind.TO_OFFSET:
            if raw < 0:
                raise InvalidOptionsError(f"--to-offset must not be negative: {raw}")
            return cls(kind, int(raw))
        elif kind == ScenarioKind.SHIFT_BY:
            return cls(kind, int(raw))
        elif kind == ScenarioKind.TO_DATETIME:
            return cls(kind, parse_datetime(raw))
        elif kind == ScenarioKind.BY_DURATION:
            return cls(kind, parse_duration(raw))
        elif kind == ScenarioKind.FROM_FILE:
            return cls(kind, read_reset_plan(raw))

        return cls(kind)

    def describe(self) -> str:
        if self.kind == ScenarioKind.FROM_FILE:
            return f"{self.kind.value} ({len(self.value)} partitions)"
        if self.value is None:
            return self.kind.value
        return f"{self.kind.value} {self.value}"


def parse_datetime(timestamp: str) -> int:
    """
    Parse an ISO-8601 timestamp with milliseconds into epoch milliseconds.

    Accepted forms are ``yyyy-MM-ddTHH:mm:ss.SSS`` followed by ``Z``,
    ``+HH:MM``, ``+HHMM`` or ``+HH``. A timestamp without any zone
    designator is read as UTC.

    Args:
        timestamp: Timestamp text

    Returns:
        Milliseconds since the epoch

    Raises:
        InvalidDatetimeError: If the text cannot be parsed
    """
    parts = timestamp.split("T", 1)
    if len(parts) < 2:
        raise InvalidDatetimeError(
            f"Error parsing timestamp '{timestamp}'. "
            "It does not contain a 'T' according to ISO8601 format"
        )

    time_part = parts[1]
    if not time_part:
        raise InvalidDatetimeError(
            f"Error parsing timestamp '{timestamp}'. Time part after 'T' is empty"
        )

    if not any(designator in time_part for designator in ("+", "-", "Z")):
        timestamp = timestamp + "Z"

    try:
        parsed = datetime.strptime(timestamp, DATETIME_FORMAT)
    except ValueError as e:
        if not _HOUR_ONLY_OFFSET_RE.search(timestamp):
            raise InvalidDatetimeError(
                f"Error parsing timestamp '{timestamp}': {e}"
            ) from e
        try:
            parsed = datetime.strptime(timestamp + "00", DATETIME_FORMAT)
        except ValueError as retry_error:
            raise InvalidDatetimeError(
                f"Error parsing timestamp '{timestamp}': {retry_error}"
            ) from retry_error

    return (parsed - _EPOCH) // timedelta(milliseconds=1)


def parse_duration(duration: str) -> timedelta:
    """
    Parse an ISO-8601 duration such as ``P1DT2H`` or ``PT0.5S``.

    Years and months are rejected since they have no fixed length.

    Args:
        duration: Duration text

    Returns:
        Parsed duration (negative for a leading '-')

    Raises:
        InvalidDurationError: If the text cannot be parsed
    """
    match = _DURATION_RE.fullmatch(duration.strip())
    if not match or duration.strip().endswith(("P", "T")):
        raise InvalidDurationError(
            f"Error parsing duration '{duration}'. Expected format 'PnDTnHnMnS'"
        )

    fields = match.groupdict()
    if fields["years"] or fields["months"]:
        raise InvalidDurationError(
            f"Duration '{duration}' uses years or months, which have no fixed length"
        )

    seconds = float(fields["seconds"].replace(",", ".")) if fields["seconds"] else 0.0
    try:
        parsed = timedelta(
            weeks=int(fields["weeks"] or 0),
            days=int(fields["days"] or 0),
            hours=int(fields["hours"] or 0),
            minutes=int(fields["minutes"] or 0),
            seconds=seconds,
        )
    except (OverflowError, ValueError) as e:
        raise InvalidDurationError(f"Duration '{duration}' is out of range") from e

    return -parsed if fields["sign"] else parsed
