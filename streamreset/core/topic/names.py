"""
Fully qualified topic names.

Topics live inside containers (streams). A fully qualified name has the
form ``<container>:<topic>`` where the container is an absolute path such
as ``/apps/orders`` and the short topic name is a single token.
"""

import re
from typing import Dict, Iterable, List, Set, Tuple

from streamreset.errors import InvalidTopicNameError

LEGAL_CHARS = r"[a-zA-Z0-9._-]"
FULL_TOPIC_NAME_PATTERN = rf"(?:/{LEGAL_CHARS}+)+:{LEGAL_CHARS}+"

_FULL_TOPIC_NAME_RE = re.compile(FULL_TOPIC_NAME_PATTERN)

GroupedTopics = Dict[str, Set[str]]


def validate_full_topic_name(full_topic_name: str) -> None:
    """
    Validate a fully qualified topic name.

    Args:
        full_topic_name: Name to check

    Raises:
        InvalidTopicNameError: If the name does not match FULL_TOPIC_NAME_PATTERN
    """
    if not _FULL_TOPIC_NAME_RE.fullmatch(full_topic_name):
        raise InvalidTopicNameError(
            f"Full topic name {full_topic_name} is invalid. "
            f"It should be {FULL_TOPIC_NAME_PATTERN}"
        )


def is_full_topic_name(name: str) -> bool:
    """Cheap check for an already qualified name; does not validate characters."""
    return name.startswith("/") and ":" in name


def build_full_topic_name(container: str, short_topic_name: str) -> str:
    return f"{container}:{short_topic_name}"


def split_full_topic_name(full_topic_name: str) -> Tuple[str, str]:
    """
    Split a qualified name at its first colon.

    Args:
        full_topic_name: Qualified topic name

    Returns:
        (container, short topic name)
    """
    container, _, short_name = full_topic_name.partition(":")
    return container, short_name


def short_topic_name(full_topic_name: str) -> str:
    container, sep, short_name = full_topic_name.partition(":")
    return short_name if sep else container


def decorate_with_default(names: Iterable[str], default_container: str) -> List[str]:
    """
    Qualify bare topic names with the default container.

    Names that already contain a colon are kept as given. Every resulting
    name is validated against FULL_TOPIC_NAME_PATTERN.

    Args:
        names: Topic names as supplied by the operator
        default_container: Container for bare names ("" if none)

    Returns:
        Qualified names in input order

    Raises:
        InvalidTopicNameError: If a bare name is given without a default
            container, or a resulting name is malformed
    """
    decorated = []
    for name in names:
        full_name = name
        if ":" not in name:
            if not default_container:
                raise InvalidTopicNameError(
                    f"Default stream is not specified. Short topic name {name} is invalid."
                )
            full_name = build_full_topic_name(default_container, name)

        validate_full_topic_name(full_name)
        decorated.append(full_name)

    return decorated


def add_container_to_topics(topics: Iterable[str], container: str) -> List[str]:
    """Qualify every short topic name with the given container."""
    return [build_full_topic_name(container, topic) for topic in topics]


def group_by_container(names: Iterable[str]) -> GroupedTopics:
    """
    Group qualified topic names by container.

    Args:
        names: Validated, fully qualified topic names

    Returns:
        Container name to set of short topic names
    """
    grouped: GroupedTopics = {}
    for name in names:
        container, topic = split_full_topic_name(name)
        grouped.setdefault(container, set()).add(topic)
    return grouped
