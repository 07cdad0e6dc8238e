"""Fully qualified topic names and topic reconciliation."""

from streamreset.core.topic.names import (
    GroupedTopics,
    add_container_to_topics,
    decorate_with_default,
    group_by_container,
    is_full_topic_name,
    validate_full_topic_name,
)
from streamreset.core.topic.reconciler import SplitTopicListResult, reconcile

__all__ = [
    "GroupedTopics",
    "add_container_to_topics",
    "decorate_with_default",
    "group_by_container",
    "is_full_topic_name",
    "validate_full_topic_name",
    "SplitTopicListResult",
    "reconcile",
]
