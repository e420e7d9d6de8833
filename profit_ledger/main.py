"""Main module entrypoint for local runtime execution.

This module validates startup configuration and either launches the FastAPI
service or runs one distribution job, typically from cron.
"""

import argparse
import logging
from datetime import datetime, timezone

import uvicorn

from profit_ledger.bootstrap import bootstrap_create_application, bootstrap_create_distribution_orchestrator
from profit_ledger.config import config_load_settings
from profit_ledger.jobs import (
    DISTRIBUTION_CYCLE_JOB_NAME,
    POSITION_COMPLETION_JOB_NAME,
    PROFIT_DISTRIBUTION_JOB_NAME,
    JobExecutionResult,
)

_COMMAND_JOB_NAMES = {
    "distribute": PROFIT_DISTRIBUTION_JOB_NAME,
    "complete-expired": POSITION_COMPLETION_JOB_NAME,
    "cycle": DISTRIBUTION_CYCLE_JOB_NAME,
}

logger = logging.getLogger(__name__)


def main() -> None:
    """Run selected runtime command with validated startup configuration.

    Returns:
        None: This function does not return a runtime value.

    Raises:
        SettingsLoadError: Raised when configuration validation fails.
        SystemExit: Raised with code 1 when a job fails.
    """

    argument_parser = argparse.ArgumentParser(description="Profit ledger runtime entrypoint")
    argument_parser.add_argument(
        "command",
        nargs="?",
        default="api",
        choices=("api", *_COMMAND_JOB_NAMES),
        help="Runtime command: `api` starts server, `distribute` credits due periods, "
        "`complete-expired` completes term-elapsed positions, `cycle` runs both in order",
        type=str,
    )
    argument_parser.add_argument(
        "--as-of",
        dest="as_of",
        type=main_parse_as_of,
        help="Optional evaluation instant as an ISO-8601 timestamp with UTC offset",
    )
    parsed_arguments = argument_parser.parse_args()

    settings = config_load_settings()
    logging.basicConfig(
        level=settings.log_level,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )

    if parsed_arguments.command in _COMMAND_JOB_NAMES:
        orchestrator = bootstrap_create_distribution_orchestrator()
        try:
            execution_result = orchestrator.job_execute(
                job_name=_COMMAND_JOB_NAMES[parsed_arguments.command],
                as_of_utc=parsed_arguments.as_of,
            )
        except RuntimeError as error:
            logger.error("%s failed: %s", parsed_arguments.command, error)
            raise SystemExit(1) from error
        main_print_execution_summary(execution_result)
        if execution_result.status != "success":
            raise SystemExit(1)
        return

    application = bootstrap_create_application()
    uvicorn.run(
        application,
        host=settings.application_host,
        port=settings.application_port,
    )


def main_parse_as_of(value: str) -> datetime:
    """Parse the `--as-of` argument.

    Args:
        value: ISO-8601 timestamp text.

    Returns:
        datetime: Timestamp converted to UTC.

    Raises:
        argparse.ArgumentTypeError: Raised when the value is not an offset-aware timestamp.
    """

    try:
        parsed_value = datetime.fromisoformat(value.strip())
    except ValueError as error:
        raise argparse.ArgumentTypeError(f"invalid ISO-8601 timestamp: {value}") from error
    if parsed_value.tzinfo is None:
        raise argparse.ArgumentTypeError("--as-of must include a UTC offset, e.g. 2026-01-01T00:00:00+00:00")
    return parsed_value.astimezone(timezone.utc)


def main_print_execution_summary(execution_result: JobExecutionResult) -> None:
    """Print one-line job summary and aggregated errors to stdout.

    Args:
        execution_result: Finished job result.

    Returns:
        None: Prints summary to stdout as side effect.
    """

    counts = execution_result.counts
    print(
        f"{execution_result.job_name} {execution_result.status} as_of={execution_result.as_of_utc.isoformat()} "
        f"credited={counts.credited_count} skipped={counts.skipped_count} "
        f"completed={counts.completed_count} errors={counts.error_count}"
    )
    if execution_result.distribution is not None:
        for entry in execution_result.distribution.errors:
            print(f"CREDIT_ERROR position={entry.position_id} period={entry.period_index}: {entry.reason}")
    if execution_result.completion is not None:
        for entry in execution_result.completion.errors:
            print(f"COMPLETION_ERROR position={entry.position_id}: {entry.reason}")


if __name__ == "__main__":
    main()
