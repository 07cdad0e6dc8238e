"""Tests for the streams application reset run."""

import pytest

from streamreset.client.admin import AssignInfo, ContainerNotFoundError
from streamreset.client.memory import InMemoryCluster
from streamreset.client.registry import ClientRegistry
from streamreset.consumer.offset import TopicPartition
from streamreset.consumer.offset.reset_strategy import ResetScenario, ScenarioKind
from streamreset.lifecycle.internal_topics import ApplicationLayout
from streamreset.tools.resetter import (
    EXIT_CODE_ERROR,
    EXIT_CODE_SUCCESS,
    ResetOptions,
    StreamsResetter,
)
from streamreset.utils.config import Config

APP = "app"
LAYOUT = ApplicationLayout("/apps/kafka-streams", APP)
REPARTITION = f"{LAYOUT.internal_container}:app-agg-repartition"
CHANGELOG = f"{LAYOUT.internal_compacted_container}:app-store-changelog"

IN0 = TopicPartition("/s:in", 0)
IN1 = TopicPartition("/s:in", 1)
MID0 = TopicPartition("/s:mid", 0)


@pytest.fixture
def cluster():
    """Create a cluster with a stopped application that made progress."""
    cluster = InMemoryCluster()
    cluster.make_dirs(LAYOUT.app_dir)
    cluster.add_topic("/s:in", num_partitions=2, beginning_offsets=[0, 2], end_offsets=[10, 12])
    cluster.add_topic("/s:mid", num_partitions=1, end_offsets=[7])
    cluster.add_topic("/s:out", num_partitions=1, end_offsets=[4])
    cluster.add_topic(REPARTITION, num_partitions=2)
    cluster.add_topic(CHANGELOG, num_partitions=2)
    cluster.set_committed(APP, IN0, 8)
    cluster.set_committed(APP, IN1, 9)
    cluster.set_committed(APP, MID0, 1)
    return cluster


@pytest.fixture
def resetter(cluster):
    """Create a resetter bound to the cluster."""
    return StreamsResetter(config=Config(), admin=cluster)


def options(**kwargs):
    defaults = dict(
        application_id=APP,
        input_topics=["in"],
        intermediate_topics=["/s:mid"],
        default_container="/s",
    )
    defaults.update(kwargs)
    return ResetOptions(**defaults)


class TestRun:
    """Test StreamsResetter.run."""

    def test_full_reset(self, cluster, resetter):
        """Test offsets reset, intermediate skipped and internals removed."""
        exit_code = resetter.run(options())

        assert exit_code == EXIT_CODE_SUCCESS
        assert cluster.committed(APP, IN0) == 0
        assert cluster.committed(APP, IN1) == 2
        assert cluster.committed(APP, MID0) == 7
        assert not cluster.container_exists(LAYOUT.internal_container)
        assert not cluster.container_exists(LAYOUT.internal_compacted_container)
        assert not cluster.path_exists(LAYOUT.app_dir)
        assert cluster.list_topics("/s") == {"in", "mid", "out"}
        assert sorted(resetter.report.internal_topics) == sorted([REPARTITION, CHANGELOG])
        assert resetter.report.committed
        assert cluster.closed

    def test_scenario_applied(self, cluster, resetter):
        """Test the selected scenario drives input offsets."""
        exit_code = resetter.run(options(scenario=ResetScenario(ScenarioKind.TO_OFFSET, 5)))

        assert exit_code == EXIT_CODE_SUCCESS
        assert cluster.committed(APP, IN0) == 5
        assert cluster.committed(APP, IN1) == 5

    def test_dry_run(self, cluster, resetter):
        """Test dry run changes nothing."""
        exit_code = resetter.run(options(dry_run=True))

        assert exit_code == EXIT_CODE_SUCCESS
        assert cluster.committed(APP, IN0) == 8
        assert cluster.committed(APP, MID0) == 1
        assert cluster.describe_topics([REPARTITION]) == {REPARTITION: 2}
        assert cluster.path_exists(LAYOUT.app_dir)
        assert "delete_topics" not in cluster.calls
        assert resetter.report.positions[IN0] == 0
        assert not resetter.report.committed

    def test_missing_input_topic(self, cluster, resetter):
        """Test missing topic fails the run but the rest is processed."""
        exit_code = resetter.run(options(input_topics=["in", "nope"]))

        assert exit_code == EXIT_CODE_ERROR
        assert resetter.report.not_found_input == {"/s:nope"}
        assert resetter.report.not_found_intermediate == set()
        assert cluster.committed(APP, IN0) == 0
        assert not cluster.container_exists(LAYOUT.internal_container)

    def test_missing_intermediate_topic(self, resetter):
        """Test missing intermediate topic is reported as intermediate."""
        exit_code = resetter.run(options(intermediate_topics=["/s:mid", "/t:gone"]))

        assert exit_code == EXIT_CODE_ERROR
        assert resetter.report.not_found_intermediate == {"/t:gone"}
        assert resetter.report.not_found_input == set()

    def test_all_topics_missing(self, cluster, resetter):
        """Test nothing to subscribe still cleans up."""
        exit_code = resetter.run(options(input_topics=["nope"], intermediate_topics=[]))

        assert exit_code == EXIT_CODE_ERROR
        assert cluster.committed(APP, IN0) == 8
        assert not cluster.container_exists(LAYOUT.internal_container)

    def test_no_topics_only_cleans_up(self, cluster, resetter):
        """Test run without input or intermediate topics."""
        exit_code = resetter.run(options(input_topics=[], intermediate_topics=[]))

        assert exit_code == EXIT_CODE_SUCCESS
        assert cluster.committed(APP, IN0) == 8
        assert not cluster.path_exists(LAYOUT.app_dir)

    def test_active_consumer_blocks_everything(self, cluster, resetter):
        """Test a running instance stops the run before any change."""
        cluster.set_assignments(
            LAYOUT.internal_container, APP, "app-agg-repartition",
            [AssignInfo("app-agg-repartition", 0, num_listeners=1)],
        )

        exit_code = resetter.run(options())

        assert exit_code == EXIT_CODE_ERROR
        assert cluster.committed(APP, IN0) == 8
        assert cluster.describe_topics([REPARTITION, CHANGELOG]) == {REPARTITION: 2, CHANGELOG: 2}
        assert "delete_topics" not in cluster.calls
        assert "delete_container" not in cluster.calls
        assert cluster.closed

    def test_bare_topic_without_default(self, cluster, resetter):
        """Test bare topic name with no default container."""
        exit_code = resetter.run(options(default_container=""))

        assert exit_code == EXIT_CODE_ERROR
        assert cluster.committed(APP, IN0) == 8
        assert cluster.container_exists(LAYOUT.internal_container)

    def test_topic_both_input_and_intermediate(self, resetter):
        """Test a topic cannot play both roles."""
        exit_code = resetter.run(options(intermediate_topics=["in"]))

        assert exit_code == EXIT_CODE_ERROR

    def test_missing_application_id(self, cluster, resetter):
        """Test empty application id."""
        assert resetter.run(options(application_id="")) == EXIT_CODE_ERROR
        assert cluster.calls == []

    def test_internal_topics_rebuilt_per_run(self, resetter):
        """Test a second run starts with an empty internal topic list."""
        resetter.run(options())
        resetter.run(options(input_topics=[], intermediate_topics=[]))

        assert resetter.all_topics == []

    def test_report_kept_after_next_run(self, resetter):
        """Test a report is not changed by a later run."""
        resetter.run(options())
        first = resetter.report

        resetter.run(options(input_topics=[], intermediate_topics=[]))

        assert sorted(first.internal_topics) == sorted([REPARTITION, CHANGELOG])
        assert resetter.report.internal_topics == []
        assert resetter.report is not first

    def test_internal_listing_failure(self, cluster, resetter, monkeypatch):
        """Test internal topic listing failure stops the run before any change."""
        def fail(*args, **kwargs):
            raise ContainerNotFoundError(LAYOUT.internal_container)

        monkeypatch.setattr(cluster, "list_topics", fail)

        assert resetter.run(options()) == EXIT_CODE_ERROR
        assert cluster.committed(APP, IN0) == 8
        assert cluster.container_exists(LAYOUT.internal_container)
        assert cluster.closed

    def test_commit_failure(self, cluster):
        """Test commit failure fails the run and keeps internal topics."""
        def fail(*args, **kwargs):
            raise RuntimeError("coordinator unavailable")

        def failing_consumer(admin, group_id, cfg):
            consumer = admin.consumer(group_id, **cfg)
            consumer.commit = fail
            return consumer

        registry = ClientRegistry()
        registry.register("failing", lambda config: cluster, failing_consumer)
        resetter = StreamsResetter(config=Config(), registry=registry, backend="failing")

        assert resetter.run(options()) == EXIT_CODE_ERROR
        assert cluster.committed(APP, IN0) == 8
        assert cluster.describe_topics([REPARTITION]) == {REPARTITION: 2}
        assert not resetter.report.committed

    def test_unknown_backend(self):
        """Test failure to create the admin client."""
        resetter = StreamsResetter(config=Config(), registry=ClientRegistry(), backend="kafka")

        assert resetter.run(options()) == EXIT_CODE_ERROR

    def test_admin_from_registry(self, cluster):
        """Test admin and consumer come from the registered backend."""
        registry = ClientRegistry()
        registry.register(
            "fixed",
            lambda config: cluster,
            lambda admin, group_id, cfg: admin.consumer(group_id, **cfg),
        )
        resetter = StreamsResetter(config=Config(), registry=registry, backend="fixed")

        assert resetter.run(options()) == EXIT_CODE_SUCCESS
        assert cluster.committed(APP, IN0) == 0
        assert cluster.closed
