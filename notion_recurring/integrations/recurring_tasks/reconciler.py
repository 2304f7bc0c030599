"""
Task Reconciler

Moves each completed recurring task to its next occurrence: reads the
Next Due API payload, resets the completion field(s) and writes the new
due date, all in a single page update per task. Tasks are processed one at
a time, in the order the query returned them.
"""

import json
import logging
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional

from notion_recurring.config.constants import ON_RECORD_ERROR_ABORT
from notion_recurring.integrations.recurring_tasks.completion_log import append_completion_entry
from notion_recurring.integrations.recurring_tasks.models import (
    CheckboxCompletion,
    CompletionField,
    DueWindow,
    FieldRef,
    RecordFailure,
    RunConfig,
    RunOptions,
    StatusCompletion,
)
from notion_recurring.utils.common_utils import safe_get
from notion_recurring.utils.notion_utils import get_page_property
from notion_recurring.utils.error_handling import (
    MaxRetriesExceededError,
    NotionAPIError,
    PayloadError,
    RecordReconcileError,
)

logger = logging.getLogger(__name__)


@dataclass
class ReconcileResult:
    updated: List[Dict[str, Any]] = field(default_factory=list)
    failed: List[RecordFailure] = field(default_factory=list)


def get_record_property(record: Dict[str, Any], ref: FieldRef) -> Optional[Dict[str, Any]]:
    """Value of a resolved property on a task page."""
    return get_page_property(record, ref.name, ref.id)


def parse_next_occurrence(raw: Any) -> DueWindow:
    """
    Parse the Next Due API formula output.

    The formula returns JSON like {"start": "2024-01-20", "end": "2024-01-20"}.
    When end equals start the task is a single date, so end is cleared.

    Raises:
        PayloadError: If the value is not a JSON object with a start date
    """
    if not isinstance(raw, str) or not raw.strip():
        raise PayloadError(f"Next Due API value is empty or not text: {raw!r}", raw)

    try:
        payload = json.loads(raw)
    except ValueError as e:
        raise PayloadError(f"Next Due API value is not valid JSON: {raw!r}", raw) from e

    if not isinstance(payload, dict):
        raise PayloadError(f"Next Due API value is not a JSON object: {raw!r}", raw)

    start = payload.get("start")
    if not isinstance(start, str) or not start:
        raise PayloadError(f"Next Due API value has no start date: {raw!r}", raw)

    end = payload.get("end")
    if end is not None and not isinstance(end, str):
        raise PayloadError(f"Next Due API end date is not text: {raw!r}", raw)
    if not end or end == start:
        end = None

    return DueWindow(start=start, end=end)


def read_next_occurrence(record: Dict[str, Any], config: RunConfig) -> DueWindow:
    """Extract and parse a task's Next Due API formula string."""
    prop = get_record_property(record, config.next_due)
    raw = safe_get(prop, ["formula", "string"])
    return parse_next_occurrence(raw)


def completion_reset(completion: CompletionField) -> Dict[str, Any]:
    """Property value that marks a completion field as not done."""
    if isinstance(completion, CheckboxCompletion):
        return {"checkbox": False}
    if isinstance(completion, StatusCompletion):
        return {"status": {"name": completion.not_started.name}}
    raise TypeError(f"Unsupported completion field: {completion!r}")


def build_update_properties(config: RunConfig, window: DueWindow) -> Dict[str, Any]:
    """Combined patch: reset every completion field and set the new due date."""
    properties = {
        completion.field.name: completion_reset(completion)
        for completion in config.completion_fields
    }
    properties[config.due.name] = window.to_property_value()
    return properties


def reconcile_task(client, config: RunConfig, record: Dict[str, Any]) -> Dict[str, Any]:
    """
    Reconcile one task with a single page update.

    Returns:
        The updated page as confirmed by Notion
    """
    window = read_next_occurrence(record, config)
    current_due = safe_get(get_record_property(record, config.due), ["date", "start"])

    logger.info(f"Processing task at: {record.get('url')}")
    logger.info(f"Current Due value: {current_due}; next due: {window.start} - {window.end}")

    return client.update_page(record["id"], build_update_properties(config, window))


def reconcile_tasks(
    client,
    config: RunConfig,
    records: List[Dict[str, Any]],
    options: Optional[RunOptions] = None
) -> ReconcileResult:
    """
    Reconcile every task, strictly in input order.

    With the "abort" policy (default) the first failing task stops the run
    with RecordReconcileError. With "continue" the failure is recorded and
    the remaining tasks are still processed.

    A failed completion log append happens after the page write, so the
    task is reported both as updated and as failed.

    Args:
        client: NotionClient (rate limited and retried)
        config: Resolved RunConfig
        records: Task pages from the query
        options: Run options (failure policy, completion log)

    Returns:
        ReconcileResult with the updated pages and any recorded failures
    """
    options = options or RunOptions()
    result = ReconcileResult()

    for record in records:
        try:
            result.updated.append(reconcile_task(client, config, record))
            if options.log_completed_dates:
                append_completion_entry(client, record, config)
        except (PayloadError, NotionAPIError, MaxRetriesExceededError) as e:
            if options.on_record_error == ON_RECORD_ERROR_ABORT:
                raise RecordReconcileError(record.get("id"), record.get("url"), e) from e
            logger.error(f"Skipping task {record.get('url') or record.get('id')}: {e}")
            result.failed.append(RecordFailure(record=record, error=e))

    logger.info(f"Updated {len(result.updated)} of {len(records)} tasks")
    return result
