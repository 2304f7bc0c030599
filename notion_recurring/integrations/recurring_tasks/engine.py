"""
Recurring tasks run orchestration.

One run: retrieve the database schema, resolve the RunConfig, sync the UTC
offset and Type formulas, query completed recurring tasks and move each
one to its next occurrence. Every Notion call goes through the client's
shared rate limiter, so the whole run is one ordered sequence of requests.
"""

from typing import Optional

from notion_recurring.integrations.recurring_tasks.models import (
    PropertySelections,
    RunOptions,
    RunReport,
)
from notion_recurring.integrations.recurring_tasks.reconciler import reconcile_tasks
from notion_recurring.integrations.recurring_tasks.schema_resolver import resolve_run_config
from notion_recurring.integrations.recurring_tasks.task_query import query_completed_tasks
from notion_recurring.integrations.recurring_tasks.timezone_sync import sync_timezone
from notion_recurring.utils.structured_logger import StructuredLogger, get_logger

RUN_LOGGER_NAME = "notion_recurring.run"


def run_recurring_tasks(
    client,
    database_id: str,
    timestamp: Optional[str],
    selections: Optional[PropertySelections] = None,
    options: Optional[RunOptions] = None,
    run_logger: Optional[StructuredLogger] = None
):
    """
    Execute one recurring tasks run.

    Args:
        client: NotionClient
        database_id: Tasks database id
        timestamp: Trigger time as configured, with its UTC offset
        selections: Property and status option ids chosen by the user
        options: Run options
        run_logger: StructuredLogger for stage tracking

    Returns:
        Tuple of (RunReport, RunConfig)
    """
    options = options or RunOptions()
    run_logger = run_logger or get_logger(RUN_LOGGER_NAME)
    report = RunReport()

    with run_logger.run_context(database_id=database_id):
        with run_logger.step_context("resolve_schema"):
            database = client.retrieve_database(database_id)
            config = resolve_run_config(database.get("properties") or {}, selections)

        if options.sync_timezone:
            with run_logger.step_context("sync_timezone"):
                sync_timezone(client, database_id, config, timestamp)
        else:
            run_logger.info("Timezone sync disabled; leaving UTC Offset and Type formulas as-is")

        with run_logger.step_context("query_tasks"):
            report.matched = query_completed_tasks(
                client, database_id, config, page_size=options.page_size
            )

        with run_logger.step_context("reconcile_tasks", matched=len(report.matched)):
            result = reconcile_tasks(client, config, report.matched, options)
            report.updated = result.updated
            report.failed = result.failed

        run_logger.info(
            f"Matched {len(report.matched)} tasks, updated {len(report.updated)}",
            matched_count=len(report.matched),
            updated_count=len(report.updated),
            failed_count=len(report.failed),
            rate_limiter=client.limiter.get_metrics() if hasattr(client, "limiter") else None,
            retries=client.retry_manager.get_metrics() if hasattr(client, "retry_manager") else None,
        )

    return report, config
