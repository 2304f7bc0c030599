"""
Timezone Synchronizer

Keeps the database's UTC Offset formula in step with the workflow's
configured timezone (Daylight Saving Time included) and pins the Type
formula to "⏳One-Time". The original Type formula is
if(empty(prop("Recur Interval")), "⏳One-Time", "🔄Recurring"); with this
workflow handling recurrence, completed tasks must stop counting as
recurring so they leave the active task views until their new due date.
"""

import logging
from datetime import datetime
from typing import Any, Dict
from zoneinfo import ZoneInfo, ZoneInfoNotFoundError

from notion_recurring.config.constants import ONE_TIME_TYPE_EXPRESSION
from notion_recurring.integrations.recurring_tasks.models import RunConfig
from notion_recurring.utils.error_handling import ConfigurationError

logger = logging.getLogger(__name__)


def utc_offset_hours(timestamp: str) -> float:
    """
    Signed UTC offset in hours of an ISO-8601 timestamp.

    Args:
        timestamp: e.g. "2024-03-10T06:00:00-07:00" or "2024-03-10T06:00:00+05:45"

    Returns:
        Offset in fractional hours, e.g. -7.0, 5.5 or 5.75

    Raises:
        ConfigurationError: If the timestamp is invalid or has no offset
    """
    if not timestamp:
        raise ConfigurationError("No timestamp provided for the UTC offset", field="timestamp")

    value = timestamp.strip()
    if value.endswith("Z"):
        value = value[:-1] + "+00:00"

    try:
        moment = datetime.fromisoformat(value)
    except ValueError as e:
        raise ConfigurationError(f"Invalid ISO-8601 timestamp '{timestamp}': {e}", field="timestamp") from e

    offset = moment.utcoffset()
    if offset is None:
        raise ConfigurationError(
            f"Timestamp '{timestamp}' has no UTC offset; a timezone-aware timestamp is required",
            field="timestamp"
        )
    return offset.total_seconds() / 3600


def format_offset_expression(hours: float) -> str:
    """Render an offset as a formula literal: -7, 5.5, 5.75, 0."""
    return f"{hours:g}" if hours != 0 else "0"


def current_timestamp(timezone_name: str) -> str:
    """Current time in an IANA timezone as an ISO-8601 string with offset."""
    try:
        zone = ZoneInfo(timezone_name)
    except (ZoneInfoNotFoundError, ValueError) as e:
        raise ConfigurationError(f"Unknown timezone '{timezone_name}'", field="timezone") from e
    return datetime.now(zone).isoformat()


def build_database_update(config: RunConfig, offset_hours: float) -> Dict[str, Any]:
    """Property definitions patch for the UTC Offset and Type formulas."""
    return {
        config.utc_offset.name: {
            "formula": {"expression": format_offset_expression(offset_hours)}
        },
        config.type_marker.name: {
            "formula": {"expression": ONE_TIME_TYPE_EXPRESSION}
        },
    }


def sync_timezone(client, database_id: str, config: RunConfig, timestamp: str) -> Dict[str, Any]:
    """
    Write the workflow's UTC offset and the constant Type formula to the database.

    Args:
        client: NotionClient (rate limited and retried)
        database_id: Tasks database id
        config: Resolved RunConfig
        timestamp: Trigger time as configured, with its UTC offset

    Returns:
        The updated database object returned by Notion
    """
    offset_hours = utc_offset_hours(timestamp)
    logger.info(f"User-set workflow UTC offset is {format_offset_expression(offset_hours)}.")

    response = client.update_database(database_id, build_database_update(config, offset_hours))
    logger.info("Updated UTC offset and Type formulas.")
    return response
