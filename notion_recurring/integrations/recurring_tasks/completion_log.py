"""
Completion Log

Keeps a history of completed occurrences on each recurring task by
appending the due date that was just completed to the page body as a
bulleted list item.
"""

import logging
from typing import Any, Dict, Optional

from notion_recurring.integrations.recurring_tasks.models import RunConfig
from notion_recurring.utils.common_utils import safe_get
from notion_recurring.utils.notion_utils import build_bulleted_list_item, get_page_property

logger = logging.getLogger(__name__)


def append_completion_entry(client, record: Dict[str, Any], config: RunConfig) -> Optional[Dict[str, Any]]:
    """
    Append the task's previous due date to its page body.

    Args:
        client: NotionClient (rate limited and retried)
        record: The task page as it was before reconciliation
        config: Resolved RunConfig

    Returns:
        Notion's response, or None when the task had no due date
    """
    due_prop = get_page_property(record, config.due.name, config.due.id)
    due = safe_get(due_prop, ["date", "start"])

    if not due:
        logger.info(f"No previous due date on {record.get('url')}; nothing to log")
        return None

    return client.append_block_children(record["id"], [build_bulleted_list_item(due)])
