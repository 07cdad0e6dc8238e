"""
Streams application reset.

Resets the processing state of a streams application so it can reprocess
its input:

1. input topic offsets are moved according to the selected scenario
   (earliest by default)
2. intermediate topics are skipped to their end
3. internal topics, the internal containers and the application directory
   are deleted

Only run this when no application instance is running. Output topics are
never touched, and local state stores on the application hosts still have
to be cleaned separately.
"""

from dataclasses import dataclass, field
from typing import Dict, List, Optional, Set

from streamreset.client.admin import AdminClient
from streamreset.client.registry import ClientRegistry, default_registry
from streamreset.consumer.offset import TopicPartition
from streamreset.consumer.offset.engine import OffsetResetEngine
from streamreset.consumer.offset.reset_strategy import ResetScenario
from streamreset.core.topic.names import (
    add_container_to_topics,
    decorate_with_default,
    group_by_container,
)
from streamreset.core.topic.reconciler import list_topics_for_containers, reconcile
from streamreset.errors import InvalidOptionsError, OperationError, ResetToolError
from streamreset.lifecycle.cleanup import InternalTopicCleaner
from streamreset.lifecycle.guard import ActiveConsumerGuard
from streamreset.lifecycle.internal_topics import DEFAULT_APPS_ROOT, ApplicationLayout
from streamreset.utils.config import Config, get_config
from streamreset.utils.logging import bind_application, clear_context, get_logger

logger = get_logger(__name__)

EXIT_CODE_SUCCESS = 0
EXIT_CODE_ERROR = 1


@dataclass
class ResetOptions:
    """
    What to reset.

    Attributes:
        application_id: Streams application id (also the consumer group id)
        input_topics: Input topics, bare or fully qualified
        intermediate_topics: Intermediate topics, bare or fully qualified
        scenario: Where to move input topic offsets
        dry_run: Report actions without performing them
        default_container: Container for bare topic names
    """
    application_id: str
    input_topics: List[str] = field(default_factory=list)
    intermediate_topics: List[str] = field(default_factory=list)
    scenario: ResetScenario = field(default_factory=ResetScenario)
    dry_run: bool = False
    default_container: str = ""


@dataclass
class ResetReport:
    """
    What one run did.

    Attributes:
        not_found_input: Input topics that do not exist
        not_found_intermediate: Intermediate topics that do not exist
        positions: Resulting position per reset partition
        committed: Whether positions were committed
        internal_topics: Internal topics found (and deleted unless dry run)
    """
    not_found_input: Set[str] = field(default_factory=set)
    not_found_intermediate: Set[str] = field(default_factory=set)
    positions: Dict[TopicPartition, int] = field(default_factory=dict)
    committed: bool = False
    internal_topics: List[str] = field(default_factory=list)


class StreamsResetter:
    """
    Runs one reset of a streams application.

    Owns the list of internal topics discovered during a run; it is
    rebuilt from scratch on every call to run().
    """

    def __init__(
        self,
        config: Optional[Config] = None,
        registry: Optional[ClientRegistry] = None,
        backend: Optional[str] = None,
        admin: Optional[AdminClient] = None,
    ):
        """
        Initialize the resetter.

        Args:
            config: Configuration (global configuration if None)
            registry: Client backends (built-in backends if None)
            backend: Backend name (backend.name from configuration if None)
            admin: Admin client to use instead of creating one
        """
        self.config = config or get_config()
        self.registry = registry or default_registry()
        self.backend = backend or self.config.get("backend.name", "memory")
        self._admin = admin

        self.timeout = float(self.config.get("admin.timeout_seconds", 60.0))
        self.delete_timeout = float(self.config.get("admin.delete_timeout_seconds", 30.0))
        self.apps_root = self.config.get("apps.root", DEFAULT_APPS_ROOT)

        self.all_topics: List[str] = []
        self.report = ResetReport()

    def run(self, options: ResetOptions) -> int:
        """
        Reset the application.

        Args:
            options: What to reset

        Returns:
            EXIT_CODE_SUCCESS, or EXIT_CODE_ERROR on any failure including
            requested topics that do not exist
        """
        exit_code = EXIT_CODE_SUCCESS
        admin: Optional[AdminClient] = None

        self.all_topics = []
        self.report = ResetReport()
        bind_application(options.application_id)

        try:
            self._validate_options(options)

            admin = self._admin or self.registry.create_admin(self.backend, self.config)
            layout = ApplicationLayout(self.apps_root, options.application_id)

            self._collect_internal_topics(admin, layout)
            self.report.internal_topics = list(self.all_topics)

            if options.dry_run:
                logger.info(
                    "Dry run displays the actions which will be performed when running the reset tool"
                )

            exit_code = self.reset_input_and_seek_to_end_intermediate(admin, options)

            InternalTopicCleaner(admin, timeout=self.delete_timeout).cleanup(
                self.all_topics, layout, dry_run=options.dry_run
            )

        except ResetToolError as e:
            exit_code = EXIT_CODE_ERROR
            logger.error(
                "Reset failed",
                error=str(e),
                kind=e.kind.value,
                causes=[repr(cause) for cause in e.cause_chain()[1:]],
            )

        except Exception as e:
            exit_code = EXIT_CODE_ERROR
            logger.exception("Reset failed with unexpected error", error=str(e))

        finally:
            if admin is not None:
                admin.close(timeout=self.timeout)
            clear_context()

        return exit_code

    def reset_input_and_seek_to_end_intermediate(
        self,
        admin: AdminClient,
        options: ResetOptions,
    ) -> int:
        """
        Reset input topic offsets and skip intermediate topics to the end.

        Missing topics are reported and skipped; the remaining topics are
        still processed.

        Args:
            admin: Admin client
            options: What to reset

        Returns:
            EXIT_CODE_ERROR if any requested topic is missing, else
            EXIT_CODE_SUCCESS
        """
        input_topics = decorate_with_default(options.input_topics, options.default_container)
        intermediate_topics = decorate_with_default(
            options.intermediate_topics, options.default_container
        )

        if not input_topics and not intermediate_topics:
            logger.info("No input or intermediate topics specified. Skipping seek.")
            return EXIT_CODE_SUCCESS

        overlap = set(input_topics) & set(intermediate_topics)
        if overlap:
            raise InvalidOptionsError(
                "Topics cannot be both input and intermediate: " + ", ".join(sorted(overlap))
            )

        if input_topics:
            logger.info("Reset-offsets for input topics", topics=input_topics)
        if intermediate_topics:
            logger.info("Seek-to-end for intermediate topics", topics=intermediate_topics)

        grouped_input = group_by_container(input_topics)
        grouped_intermediate = group_by_container(intermediate_topics)
        live = list_topics_for_containers(
            admin,
            set(grouped_input) | set(grouped_intermediate),
            timeout=self.timeout,
        )

        input_split = reconcile(grouped_input, live)
        intermediate_split = reconcile(grouped_intermediate, live)

        exit_code = EXIT_CODE_SUCCESS

        if input_split.not_found:
            self.report.not_found_input = set(input_split.not_found)
            logger.warning(
                "Following input topics are not found, skipping them",
                topics=sorted(input_split.not_found),
            )
            exit_code = EXIT_CODE_ERROR

        if intermediate_split.not_found:
            self.report.not_found_intermediate = set(intermediate_split.not_found)
            logger.warning(
                "Following intermediate topics are not found, skipping them",
                topics=sorted(intermediate_split.not_found),
            )
            exit_code = EXIT_CODE_ERROR

        topics_to_subscribe = input_split.merge(intermediate_split).topics_to_subscribe

        # The consumer rejects an empty subscription
        if not topics_to_subscribe:
            return exit_code

        consumer = self.registry.create_consumer(
            self.backend,
            admin,
            options.application_id,
            {"enable_auto_commit": False},
        )

        try:
            consumer.subscribe(sorted(topics_to_subscribe))

            input_partitions: Set[TopicPartition] = set()
            intermediate_partitions: Set[TopicPartition] = set()
            for tp in consumer.assignment():
                if tp.topic in input_split.topics_to_subscribe:
                    input_partitions.add(tp)
                elif tp.topic in intermediate_split.topics_to_subscribe:
                    intermediate_partitions.add(tp)
                else:
                    logger.warning("Skipping invalid partition", partition=str(tp))

            engine = OffsetResetEngine(
                consumer,
                options.scenario,
                options.application_id,
                dry_run=options.dry_run,
                timeout=self.timeout,
            )
            result = engine.apply(input_partitions, intermediate_partitions)

            self.report.positions = result.positions
            self.report.committed = result.committed

        except Exception:
            logger.error("Resetting offsets failed", group_id=options.application_id)
            raise

        finally:
            consumer.close()

        logger.info("Offset reset done", group_id=options.application_id)
        return exit_code

    def _collect_internal_topics(self, admin: AdminClient, layout: ApplicationLayout) -> None:
        guard = ActiveConsumerGuard(admin, timeout=self.timeout)

        for container in (layout.internal_container, layout.internal_compacted_container):
            if not admin.container_exists(container):
                continue

            try:
                topics = sorted(admin.list_topics(container, timeout=self.timeout))
            except Exception as e:
                raise OperationError("list topics", container, str(e)) from e
            guard.assert_no_active_consumers(container, layout.application_id, topics)
            self.all_topics.extend(add_container_to_topics(topics, container))

    def _validate_options(self, options: ResetOptions) -> None:
        if not options.application_id:
            raise InvalidOptionsError("An application id is required")
