"""
Task Query Engine

Finds every completed task whose Next Due API formula produced a next
occurrence. Tasks whose formula yields the "∅" sentinel (one-time tasks,
ended recurrences) never match.
"""

import logging
from typing import Any, Dict, List

from notion_recurring.config.constants import NEXT_DUE_SENTINEL, NOTION_PAGE_SIZE
from notion_recurring.integrations.recurring_tasks.models import (
    CheckboxCompletion,
    CompletionField,
    RunConfig,
    StatusCompletion,
)

logger = logging.getLogger(__name__)


def completion_predicate(completion: CompletionField) -> Dict[str, Any]:
    """Filter predicate matching a completed task for one completion field."""
    if isinstance(completion, CheckboxCompletion):
        return {
            "property": completion.field.name,
            "checkbox": {"equals": True},
        }
    if isinstance(completion, StatusCompletion):
        return {
            "property": completion.field.name,
            "status": {"equals": completion.completed.name},
        }
    raise TypeError(f"Unsupported completion field: {completion!r}")


def build_filter(config: RunConfig) -> Dict[str, Any]:
    """
    Compound filter: (any completion field done) AND (next due is not "∅").

    Args:
        config: Resolved RunConfig

    Returns:
        Notion database query filter
    """
    return {
        "and": [
            {"or": [completion_predicate(c) for c in config.completion_fields]},
            {
                "property": config.next_due.name,
                "formula": {"string": {"does_not_equal": NEXT_DUE_SENTINEL}},
            },
        ]
    }


def query_completed_tasks(
    client,
    database_id: str,
    config: RunConfig,
    page_size: int = NOTION_PAGE_SIZE
) -> List[Dict[str, Any]]:
    """
    Fetch all completed recurring tasks across every result page.

    A page that fails after its retries aborts the whole query, so callers
    never act on a partial task list.

    Args:
        client: NotionClient (rate limited and retried)
        database_id: Tasks database id
        config: Resolved RunConfig
        page_size: Results per page

    Returns:
        Task pages in the order Notion returned them
    """
    filter_criteria = build_filter(config)
    tasks: List[Dict[str, Any]] = []
    start_cursor = None
    page_number = 0

    while True:
        page_number += 1
        data = client.query_database(
            database_id,
            filter_criteria=filter_criteria,
            start_cursor=start_cursor,
            page_size=page_size
        )
        results = data.get("results", [])
        tasks.extend(results)
        logger.info(f"Query page {page_number}: {len(results)} tasks")

        if not data.get("has_more"):
            break
        start_cursor = data.get("next_cursor")
        if not start_cursor:
            logger.warning("Query reported more results without a cursor; stopping")
            break

    logger.info(f"Found {len(tasks)} completed recurring tasks")
    return tasks
