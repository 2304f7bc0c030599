"""
Notion Recurring Tasks

Moves completed recurring tasks in a Notion tasks database to their next
due date. Runs on a Pipedream schedule trigger (hourly by default).

Inputs (props):
  - notion: Notion app connection
  - databaseID: Tasks database id
  - dueProp, doneProp, nextDueAPIProp, utcOffsetProp, typeProp: property
    selections, as '{"name": ..., "id": ...}' JSON strings or bare ids
  - donePropStatusNotStarted, donePropStatusCompleted: status options when
    doneProp is a Status property
  - secondaryDoneProp (+ secondaryDonePropStatusNotStarted / Completed): optional
  - onRecordError: "abort" (default) or "continue"
  - logCompletedDates: append each completed due date to the task page
  - syncTimezone: update the UTC Offset and Type formulas (default true)

Returns the run summary for later steps (email, Slack...).
"""
import logging
from typing import Any, Dict, Optional

from notion_recurring.config.constants import ERROR_INVALID_INPUT, ERROR_MISSING_AUTH
from notion_recurring.integrations.recurring_tasks.engine import run_recurring_tasks
from notion_recurring.integrations.recurring_tasks.models import PropertySelections, RunOptions
from notion_recurring.integrations.recurring_tasks.report import summarize_report
from notion_recurring.integrations.recurring_tasks.timezone_sync import current_timestamp
from notion_recurring.utils.common_utils import parse_json_string, safe_get
from notion_recurring.utils.error_handling import ConfigurationError
from notion_recurring.utils.notion_utils import NotionClient

# Configure logging for Pipedream
logger = logging.getLogger()
logger.setLevel(logging.INFO)

# Pipedream prop name -> PropertySelections field
SELECTION_INPUTS = {
    "dueProp": "due",
    "doneProp": "completion",
    "donePropStatusNotStarted": "completion_not_started",
    "donePropStatusCompleted": "completion_completed",
    "nextDueAPIProp": "next_due",
    "utcOffsetProp": "utc_offset",
    "typeProp": "type_marker",
    "secondaryDoneProp": "secondary_completion",
    "secondaryDonePropStatusNotStarted": "secondary_not_started",
    "secondaryDonePropStatusCompleted": "secondary_completed",
}


def selection_id(value: Any, field: Optional[str] = None) -> Optional[str]:
    """
    Extract a property or option id from a prop value.

    Accepts '{"name": "Due", "id": "abc"}' JSON strings, dicts with an
    "id" key, or a bare id string.
    """
    if value is None or value == "":
        return None
    try:
        value = parse_json_string(value)
    except ValueError as e:
        raise ConfigurationError(f"Property selection '{field}' is not valid JSON: {e}", field=field) from e
    if isinstance(value, dict):
        return value.get("id")
    return str(value)


def parse_selections(inputs: Dict[str, Any]) -> PropertySelections:
    """Build PropertySelections from the step's props."""
    return PropertySelections(**{
        field_name: selection_id(inputs.get(prop_name), prop_name)
        for prop_name, field_name in SELECTION_INPUTS.items()
    })


def _as_bool(value: Any, default: bool) -> bool:
    if value is None or value == "":
        return default
    if isinstance(value, str):
        return value.strip().lower() in ("true", "1", "yes")
    return bool(value)


def parse_options(inputs: Dict[str, Any]) -> RunOptions:
    """Build RunOptions from the step's props."""
    try:
        return RunOptions(
            on_record_error=inputs.get("onRecordError") or "abort",
            sync_timezone=_as_bool(inputs.get("syncTimezone"), True),
            log_completed_dates=_as_bool(inputs.get("logCompletedDates"), False),
        )
    except ValueError as e:
        raise ConfigurationError(str(e), field="onRecordError") from e


def get_trigger_timestamp(steps: Dict[str, Any]) -> str:
    """Configured trigger time, from the timestamp or the timezone name."""
    timezone_configured = safe_get(steps, ["trigger", "event", "timezone_configured"], default={})
    timestamp = safe_get(timezone_configured, ["iso8601", "timestamp"])
    if timestamp:
        return timestamp

    timezone_name = safe_get(timezone_configured, ["timezone"])
    if timezone_name:
        logger.info(f"No trigger timestamp; using current time in {timezone_name}")
        return current_timestamp(timezone_name)

    raise ConfigurationError(
        "The trigger has no configured timezone. Use a schedule trigger with a timezone set.",
        field="timezone_configured"
    )


def get_notion_token(inputs: Dict[str, Any]) -> str:
    token = safe_get(inputs, ["notion", "$auth", "oauth_access_token"])
    if not token:
        raise ConfigurationError(ERROR_MISSING_AUTH, field="notion")
    return token


def handler(pd: "pipedream"):
    """
    Runs the recurring tasks workflow for the configured tasks database.

    Errors are raised so that the Pipedream job fails loudly instead of
    silently leaving completed tasks untouched.
    """
    inputs = pd.inputs
    steps = pd.steps

    database_id = inputs.get("databaseID")
    if not database_id:
        raise ConfigurationError(ERROR_INVALID_INPUT.format("databaseID"), field="databaseID")

    client = NotionClient(get_notion_token(inputs))
    options = parse_options(inputs)
    timestamp = get_trigger_timestamp(steps) if options.sync_timezone else None

    report, config = run_recurring_tasks(
        client,
        database_id,
        timestamp,
        selections=parse_selections(inputs),
        options=options,
    )

    summary = summarize_report(report, config)
    logger.info(summary["text"])
    return summary
