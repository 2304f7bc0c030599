#!/usr/bin/env python3
"""
Run the recurring tasks workflow from the command line.

Usage:
    notion-recurring-tasks --config recurring_tasks.yaml run
    notion-recurring-tasks --config recurring_tasks.yaml databases --query "All Tasks"
    notion-recurring-tasks --config recurring_tasks.yaml properties

Environment Variables:
    NOTION_API_TOKEN: Notion integration token (if not set in the config file)
"""

import argparse
import json
import logging
import sys
from typing import List, Optional

from notion_recurring.config.constants import ROLE_LABELS, TASK_DATABASE_MARKER
from notion_recurring.config.settings import Settings, load_settings
from notion_recurring.integrations.recurring_tasks.engine import run_recurring_tasks
from notion_recurring.integrations.recurring_tasks.report import summarize_report
from notion_recurring.integrations.recurring_tasks.schema_resolver import candidate_properties
from notion_recurring.integrations.recurring_tasks.timezone_sync import current_timestamp
from notion_recurring.utils.error_handling import RecurringTasksError, format_error_response
from notion_recurring.utils.notion_utils import NotionClient, get_database_title
from notion_recurring.utils.rate_limiter import RateLimiter
from notion_recurring.utils.retry_manager import RetryManager
from notion_recurring.utils.structured_logger import get_logger

DEFAULT_CONFIG_PATH = "recurring_tasks.yaml"

logger = logging.getLogger(__name__)


def build_client(settings: Settings) -> NotionClient:
    """Notion client wired with the configured limiter and retry policy."""
    limiter = RateLimiter(
        min_interval=settings.rate_limit.min_interval,
        max_concurrent=settings.rate_limit.max_concurrent,
        default_retry_after=settings.rate_limit.default_retry_after,
        max_rate_limit_waits=settings.rate_limit.max_rate_limit_waits,
    )
    retry_manager = RetryManager(
        max_retries=settings.retry.record_max_retries,
        base_delay=settings.retry.base_delay,
        max_delay=settings.retry.max_delay,
    )
    return NotionClient(
        settings.notion_token,
        limiter=limiter,
        retry_manager=retry_manager,
        timeout=settings.request_timeout,
        record_max_retries=settings.retry.record_max_retries,
        schema_max_retries=settings.retry.schema_max_retries,
    )


def command_run(settings: Settings, args: argparse.Namespace) -> int:
    client = build_client(settings)
    timestamp = settings.timestamp or current_timestamp(settings.timezone)
    run_logger = get_logger("notion_recurring.run", json_format=args.json_logs)

    report, config = run_recurring_tasks(
        client,
        settings.database_id,
        timestamp,
        selections=settings.properties,
        options=settings.options,
        run_logger=run_logger,
    )
    summary = summarize_report(report, config)

    if args.json:
        print(json.dumps(summary, indent=2, ensure_ascii=False))
    else:
        print(summary["text"])
    return 1 if summary["failed_count"] else 0


def command_databases(settings: Settings, args: argparse.Namespace) -> int:
    client = build_client(settings)
    databases = client.search_databases(args.query)
    # Task databases first, keeping Notion's last-edited order otherwise
    databases.sort(key=lambda db: TASK_DATABASE_MARKER not in get_database_title(db))

    for database in databases:
        print(f"{database.get('id')}  {get_database_title(database)}")
    return 0


def command_properties(settings: Settings, args: argparse.Namespace) -> int:
    client = build_client(settings)
    database = client.retrieve_database(settings.database_id)
    schema = database.get("properties") or {}

    for role, label in ROLE_LABELS.items():
        print(f"{label}:")
        for ref in candidate_properties(schema, role):
            print(f"  {ref.id}  {ref.name} ({ref.type})")
            prop = next((p for p in schema.values() if p.get("id") == ref.id), {})
            for option in (prop.get("status") or {}).get("options") or []:
                print(f"      option {option.get('id')}  {option.get('name')}")
    return 0


COMMANDS = {
    "run": command_run,
    "databases": command_databases,
    "properties": command_properties,
}


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        description="Move completed recurring Notion tasks to their next due date",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog=__doc__,
    )
    parser.add_argument(
        "--config",
        default=DEFAULT_CONFIG_PATH,
        help=f"Path to the YAML settings file (default: {DEFAULT_CONFIG_PATH})"
    )
    parser.add_argument("--verbose", "-v", action="store_true", help="Enable debug logging")
    parser.add_argument("--json-logs", action="store_true", help="Emit run logs as JSON lines")

    subparsers = parser.add_subparsers(dest="command", required=True)

    run_parser = subparsers.add_parser("run", help="Reconcile completed recurring tasks")
    run_parser.add_argument("--json", action="store_true", help="Print the summary as JSON")

    databases_parser = subparsers.add_parser("databases", help="List databases visible to the token")
    databases_parser.add_argument("--query", default=None, help="Filter by database title")

    subparsers.add_parser("properties", help="List candidate properties for each role")

    return parser


def main(argv: Optional[List[str]] = None) -> int:
    parser = build_parser()
    args = parser.parse_args(argv)

    logging.basicConfig(
        level=logging.DEBUG if args.verbose else logging.INFO,
        format="%(asctime)s - [%(levelname)s] - %(name)s - %(message)s"
    )

    try:
        settings = load_settings(args.config)
        return COMMANDS[args.command](settings, args)
    except RecurringTasksError as e:
        logger.error(e.message)
        print(json.dumps(format_error_response(e), indent=2, ensure_ascii=False), file=sys.stderr)
        return 1


if __name__ == "__main__":
    sys.exit(main())
