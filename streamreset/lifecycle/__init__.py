"""
Internal topic lifecycle.

Preparation of internal topics for the streams runtime, the active
consumer guard and cleanup of everything an application created.
"""

from streamreset.lifecycle.cleanup import InternalTopicCleaner
from streamreset.lifecycle.guard import ActiveConsumerGuard
from streamreset.lifecycle.internal_topics import (
    ApplicationLayout,
    InternalTopicConfig,
    InternalTopicManager,
)

__all__ = [
    "ActiveConsumerGuard",
    "ApplicationLayout",
    "InternalTopicCleaner",
    "InternalTopicConfig",
    "InternalTopicManager",
]
