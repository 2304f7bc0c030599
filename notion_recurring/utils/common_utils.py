"""
Common Utilities

Helpers for reading values out of nested Notion payloads.
"""

import json
from typing import Any, Dict, List, Optional


def safe_get(obj, path, default=None):
    """
    Safely get a value from a nested dictionary or list using a path.
    Args:
        obj: Dictionary or list to get value from
        path: List of keys/indices or a single key/index
        default: Value to return if path is not found
    Returns:
        Value at path or default if not found
    """
    if obj is None:
        return default
    if path is None or path == []:
        return default
    if not isinstance(path, list):
        path = [path]
    current = obj
    for key in path:
        if isinstance(current, dict):
            if key not in current:
                return default
            current = current[key]
        elif isinstance(current, list) and isinstance(key, int):
            if 0 <= key < len(current):
                current = current[key]
            else:
                return default
        else:
            return default
    return default if current is None else current


def extract_text_from_rich_text(rich_text_array: Optional[List[Dict[str, Any]]]) -> str:
    """Extract plain text from a Notion rich_text or title array."""
    if not rich_text_array:
        return ""
    return "".join(item.get("plain_text", "") for item in rich_text_array)


def parse_json_string(value: Any) -> Any:
    """Return `value` decoded when it is a JSON object string, else unchanged.

    Pipedream props arrive as JSON strings such as '{"name": "Due", "id": "abc"}'.
    """
    if isinstance(value, str) and value.strip().startswith("{"):
        return json.loads(value)
    return value
