"""
Error taxonomy for the reset tool.

Every error raised by the tool derives from ResetToolError and carries an
ErrorKind. Underlying causes are kept on ``__cause__`` (``raise ... from``)
so callers can inspect the chain without string matching.
"""

from enum import Enum
from typing import Iterable, List, Optional


class ErrorKind(str, Enum):
    """Classification of tool errors."""
    VALIDATION = "validation"    # Bad input, nothing changed yet
    TRANSIENT = "transient"      # Retryable infrastructure failure
    FATAL = "fatal"              # Consistency violation, operator must act
    UNEXPECTED = "unexpected"    # Anything unclassified


class ResetToolError(Exception):
    """Base class for all reset tool errors."""

    kind: ErrorKind = ErrorKind.UNEXPECTED

    def cause_chain(self) -> List[BaseException]:
        """
        Walk the explicit cause chain starting at this error.

        Returns:
            This error followed by each chained cause
        """
        chain: List[BaseException] = []
        current: Optional[BaseException] = self
        while current is not None and current not in chain:
            chain.append(current)
            current = current.__cause__
        return chain


class InvalidTopicNameError(ResetToolError):
    """Topic name does not follow the container:topic convention."""
    kind = ErrorKind.VALIDATION


class MalformedPlanError(ResetToolError):
    """Reset plan line is not TOPIC,PARTITION,OFFSET."""
    kind = ErrorKind.VALIDATION

    def __init__(self, message: str, line_number: int = 0):
        self.line_number = line_number
        if line_number:
            message = f"{message} (line {line_number})"
        super().__init__(message)


class EmptyPlanError(ResetToolError):
    """Reset plan contains no records."""
    kind = ErrorKind.VALIDATION


class ScenarioConflictError(ResetToolError):
    """More than one reset scenario was requested."""
    kind = ErrorKind.VALIDATION

    def __init__(self, scenarios: Iterable[str]):
        self.scenarios = sorted(scenarios)
        super().__init__(
            "Only one reset scenario can be specified, got: "
            + ", ".join(self.scenarios)
        )


class InvalidDatetimeError(ResetToolError):
    """Datetime is not an ISO-8601 timestamp with milliseconds."""
    kind = ErrorKind.VALIDATION


class InvalidDurationError(ResetToolError):
    """Duration is not an ISO-8601 duration."""
    kind = ErrorKind.VALIDATION


class InvalidOptionsError(ResetToolError):
    """Options are inconsistent with each other."""
    kind = ErrorKind.VALIDATION


class UnknownBackendError(ResetToolError):
    """No client backend is registered under the requested name."""
    kind = ErrorKind.VALIDATION


class TopicCreationError(ResetToolError):
    """Topic creation failed for a reason other than the topic existing."""
    kind = ErrorKind.TRANSIENT

    def __init__(self, topic: str, reason: str):
        self.topic = topic
        super().__init__(f"Could not create topic {topic}: {reason}")


class PartitionCountMismatchError(ResetToolError):
    """Existing internal topic has a different partition count."""
    kind = ErrorKind.FATAL

    def __init__(self, topic: str, expected: int, actual: int):
        self.topic = topic
        self.expected = expected
        self.actual = actual
        super().__init__(
            f"Existing internal topic {topic} has invalid partitions: "
            f"expected: {expected}; actual: {actual}. "
            "Run the streams reset tool to clean up invalid topics before processing."
        )


class ActiveConsumerGroupError(ResetToolError):
    """Consumer group still has attached members."""
    kind = ErrorKind.FATAL

    def __init__(self, group_id: str, topic: Optional[str] = None):
        self.group_id = group_id
        self.topic = topic
        super().__init__(
            f"Consumer group '{group_id}' is still active. "
            "Make sure to stop all running application instances before running the reset tool."
        )


class TopicsNotReadyError(ResetToolError):
    """Internal topics could not be brought to a consistent state."""
    kind = ErrorKind.FATAL


class InternalContainerNotFoundError(ResetToolError):
    """A container the runtime depends on does not exist."""
    kind = ErrorKind.FATAL

    def __init__(self, container: str):
        self.container = container
        super().__init__(
            f"Container '{container}' does not exist. "
            f"The streams runtime requires '{container}' to be created."
        )


class TopicDeletionError(ResetToolError):
    """One or more internal topics could not be deleted."""
    kind = ErrorKind.FATAL

    def __init__(self, topics: Iterable[str]):
        self.topics = sorted(topics)
        super().__init__(
            "Encountered an error deleting one or more topics: "
            + ", ".join(self.topics)
        )


class OperationError(ResetToolError):
    """Unclassified failure wrapped with the operation and resource it hit."""
    kind = ErrorKind.UNEXPECTED

    def __init__(self, operation: str, resource: str, reason: str = ""):
        self.operation = operation
        self.resource = resource
        message = f"{operation} failed for {resource}"
        if reason:
            message = f"{message}: {reason}"
        super().__init__(message)
