#!/usr/bin/env python3
"""
Command-line entry point for the streams application reset tool.

Usage:
    # Reset input topics to earliest, skip intermediate topics to end,
    # delete internal topics
    streamreset --application-id my-app \\
        --input-topics /s/in:a,/s/in:b --intermediate-topics /s/mid:x

    # Show what would happen
    streamreset --application-id my-app --input-topics a \\
        --default-stream /s/in --to-datetime 2024-01-01T00:00:00.000 --dry-run
"""

import argparse
import sys
from typing import List, Optional, Sequence

from streamreset.consumer.offset.reset_strategy import ResetScenario
from streamreset.errors import ResetToolError
from streamreset.tools.resetter import (
    EXIT_CODE_ERROR,
    ResetOptions,
    StreamsResetter,
)
from streamreset.utils.config import Config
from streamreset.utils.logging import configure_logging, get_logger

logger = get_logger(__name__)


def _topic_list(value: str) -> List[str]:
    return [topic.strip() for topic in value.split(",") if topic.strip()]


def build_parser() -> argparse.ArgumentParser:
    """Build the command-line parser."""
    parser = argparse.ArgumentParser(
        prog="streamreset",
        description=(
            "Reset the processing state of a streams application so it can "
            "reprocess its input from scratch. Stop all application instances first."
        ),
    )

    parser.add_argument(
        '--application-id',
        type=str,
        required=True,
        help='The streams application id (consumer group id)'
    )

    parser.add_argument(
        '--input-topics',
        type=_topic_list,
        default=[],
        help='Comma-separated input topics; their offsets are reset per the selected scenario'
    )

    parser.add_argument(
        '--intermediate-topics',
        type=_topic_list,
        default=[],
        help='Comma-separated intermediate topics; consumers skip to their end'
    )

    parser.add_argument(
        '--default-stream',
        type=str,
        default='',
        help='Stream (container) used for topic names without one'
    )

    scenarios = parser.add_argument_group(
        'reset scenarios',
        'At most one may be given; --to-earliest is the default'
    )

    scenarios.add_argument(
        '--to-offset',
        type=int,
        default=None,
        help='Reset to this absolute offset (clamped to the valid range)'
    )

    scenarios.add_argument(
        '--to-datetime',
        type=str,
        default=None,
        help='Reset to the first offset at or after YYYY-MM-DDTHH:mm:SS.sss[Z|+HH:mm]'
    )

    scenarios.add_argument(
        '--by-duration',
        type=str,
        default=None,
        help='Reset to the offset at now minus an ISO-8601 duration, e.g. PT15M or P1DT2H'
    )

    scenarios.add_argument(
        '--to-earliest',
        action='store_true',
        help='Reset to the earliest offset'
    )

    scenarios.add_argument(
        '--to-latest',
        action='store_true',
        help='Reset to the latest offset'
    )

    scenarios.add_argument(
        '--from-file',
        type=str,
        default=None,
        help='Reset per a CSV plan file of TOPIC,PARTITION,OFFSET lines'
    )

    scenarios.add_argument(
        '--shift-by',
        type=int,
        default=None,
        help='Shift current offsets by this amount (may be negative)'
    )

    parser.add_argument(
        '--execute',
        action='store_true',
        help='Perform the reset (the default when --dry-run is not given)'
    )

    parser.add_argument(
        '--dry-run',
        action='store_true',
        help='Only display the actions that would be performed'
    )

    parser.add_argument(
        '--config-file',
        type=str,
        default=None,
        help='YAML configuration file'
    )

    parser.add_argument(
        '--backend',
        type=str,
        default=None,
        help='Client backend name (default: backend.name from configuration)'
    )

    parser.add_argument(
        '--log-level',
        type=str,
        default=None,
        choices=['DEBUG', 'INFO', 'WARNING', 'ERROR'],
        help='Logging level (default: logging.level from configuration)'
    )

    return parser


def main(argv: Optional[Sequence[str]] = None) -> int:
    """
    Run the reset tool.

    Args:
        argv: Command-line arguments (sys.argv[1:] if None)

    Returns:
        Process exit code
    """
    args = build_parser().parse_args(argv)

    try:
        config = Config(args.config_file)
    except (OSError, ValueError) as e:
        configure_logging(args.log_level or "INFO")
        logger.error("Could not load configuration", path=args.config_file, error=str(e))
        return EXIT_CODE_ERROR

    configure_logging(
        log_level=args.log_level or config.get("logging.level", "INFO"),
        log_format=config.get("logging.format", "console"),
    )

    if args.execute and args.dry_run:
        logger.error("Only one of --execute and --dry-run can be specified")
        return EXIT_CODE_ERROR

    try:
        scenario = ResetScenario.from_options(
            to_offset=args.to_offset,
            to_earliest=args.to_earliest,
            to_latest=args.to_latest,
            shift_by=args.shift_by,
            to_datetime=args.to_datetime,
            by_duration=args.by_duration,
            from_file=args.from_file,
        )
    except ResetToolError as e:
        logger.error("Invalid reset scenario", error=str(e))
        return EXIT_CODE_ERROR
    except OSError as e:
        logger.error("Could not read reset plan", path=args.from_file, error=str(e))
        return EXIT_CODE_ERROR

    options = ResetOptions(
        application_id=args.application_id,
        input_topics=args.input_topics,
        intermediate_topics=args.intermediate_topics,
        scenario=scenario,
        dry_run=args.dry_run,
        default_container=args.default_stream,
    )

    logger.info(
        "Starting streams application reset",
        application_id=options.application_id,
        scenario=scenario.describe(),
        dry_run=options.dry_run,
    )

    return StreamsResetter(config=config, backend=args.backend).run(options)


if __name__ == '__main__':
    sys.exit(main())
