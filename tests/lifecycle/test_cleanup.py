"""Tests for internal topic cleanup."""

import pytest

from streamreset.client.memory import InMemoryCluster
from streamreset.errors import OperationError, TopicDeletionError
from streamreset.lifecycle.cleanup import InternalTopicCleaner
from streamreset.lifecycle.internal_topics import ApplicationLayout

LAYOUT = ApplicationLayout("/apps/kafka-streams", "app")
REPARTITION = f"{LAYOUT.internal_container}:app-repartition"
CHANGELOG = f"{LAYOUT.internal_compacted_container}:app-changelog"


@pytest.fixture
def cluster():
    """Create a cluster with a provisioned application."""
    cluster = InMemoryCluster()
    cluster.make_dirs(LAYOUT.app_dir)
    cluster.add_topic(REPARTITION, num_partitions=1)
    cluster.add_topic(CHANGELOG, num_partitions=1)
    return cluster


class TestInternalTopicCleaner:
    """Test InternalTopicCleaner."""

    def test_cleanup(self, cluster):
        """Test topics, containers and directory are deleted."""
        InternalTopicCleaner(cluster).cleanup([REPARTITION, CHANGELOG], LAYOUT)

        assert not cluster.container_exists(LAYOUT.internal_container)
        assert not cluster.container_exists(LAYOUT.internal_compacted_container)
        assert not cluster.path_exists(LAYOUT.app_dir)
        assert cluster.path_exists("/apps/kafka-streams")
        assert cluster.calls.index("delete_topics") < cluster.calls.index("delete_container")

    def test_dry_run(self, cluster):
        """Test dry run deletes nothing."""
        InternalTopicCleaner(cluster).cleanup([REPARTITION, CHANGELOG], LAYOUT, dry_run=True)

        assert cluster.list_topics(LAYOUT.internal_container) == {"app-repartition"}
        assert cluster.path_exists(LAYOUT.app_dir)
        assert "delete_topics" not in cluster.calls

    def test_no_topics(self):
        """Test cleanup of an application that never created anything."""
        cluster = InMemoryCluster()

        InternalTopicCleaner(cluster).cleanup([], LAYOUT)

        assert "delete_topics" not in cluster.calls
        assert "delete_container" not in cluster.calls

    def test_deletion_failure(self, cluster):
        """Test failures are collected and reported together."""
        missing = f"{LAYOUT.internal_container}:gone"

        with pytest.raises(TopicDeletionError) as exc_info:
            InternalTopicCleaner(cluster).delete_topics([REPARTITION, missing])

        assert exc_info.value.topics == [missing]
        assert cluster.list_topics(LAYOUT.internal_container) == set()

    def test_container_deletion_failure(self, cluster, monkeypatch):
        """Test container deletion failure is wrapped."""
        def fail(container):
            raise RuntimeError("permission denied")

        monkeypatch.setattr(cluster, "delete_container", fail)

        with pytest.raises(OperationError, match="permission denied"):
            InternalTopicCleaner(cluster).delete_containers_and_app_dir(LAYOUT)
