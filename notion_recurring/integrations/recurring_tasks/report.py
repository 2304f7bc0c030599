"""
Run report rendering.

Turns a RunReport into the dict returned to later workflow steps, with a
plain text message (email, logs) and a Markdown message (Slack, Discord).
"""

from typing import Any, Dict, List, Optional

from notion_recurring.integrations.recurring_tasks.models import RunConfig, RunReport
from notion_recurring.utils.common_utils import extract_text_from_rich_text, safe_get
from notion_recurring.utils.notion_utils import get_page_property


def task_title(record: Dict[str, Any], config: Optional[RunConfig]) -> str:
    """Plain-text title of a task page."""
    if config is not None and config.title is not None:
        prop = get_page_property(record, config.title.name, config.title.id)
        title = extract_text_from_rich_text(safe_get(prop, ["title"]))
        if title:
            return title

    for prop in (record.get("properties") or {}).values():
        if isinstance(prop, dict) and prop.get("type") == "title":
            return extract_text_from_rich_text(prop.get("title")) or "Untitled"
    return "Untitled"


def _updated_entry(record: Dict[str, Any], config: Optional[RunConfig]) -> Dict[str, Any]:
    due = None
    if config is not None:
        due = safe_get(get_page_property(record, config.due.name, config.due.id), ["date"])
    return {
        "id": record.get("id"),
        "title": task_title(record, config),
        "url": record.get("url"),
        "due_start": safe_get(due, ["start"]),
        "due_end": safe_get(due, ["end"]),
    }


def _format_due(entry: Dict[str, Any]) -> str:
    if entry["due_end"]:
        return f"{entry['due_start']} → {entry['due_end']}"
    return entry["due_start"] or "no due date"


def render_text(entries: List[Dict[str, Any]], matched: int, failures: List[Dict[str, Any]]) -> str:
    lines = [f"Recurring tasks: {matched} matched, {len(entries)} updated."]
    for entry in entries:
        lines.append(f"- {entry['title']} (next due {_format_due(entry)}): {entry['url']}")
    if failures:
        lines.append(f"{len(failures)} failed:")
        for failure in failures:
            lines.append(f"- {failure['url'] or failure['id']}: {failure['error']}")
    return "\n".join(lines)


def render_markdown(entries: List[Dict[str, Any]], matched: int, failures: List[Dict[str, Any]]) -> str:
    lines = [f"*Recurring tasks:* {matched} matched, {len(entries)} updated."]
    for entry in entries:
        lines.append(f"• [{entry['title']}]({entry['url']}) next due *{_format_due(entry)}*")
    if failures:
        lines.append(f"*{len(failures)} failed:*")
        for failure in failures:
            lines.append(f"• {failure['url'] or failure['id']}: `{failure['error']}`")
    return "\n".join(lines)


def summarize_report(report: RunReport, config: Optional[RunConfig] = None) -> Dict[str, Any]:
    """
    Build the step return value for a run.

    Args:
        report: Completed RunReport
        config: RunConfig used for the run (for titles and due dates)

    Returns:
        Counts, per-task entries, failures, and text/markdown messages
    """
    entries = [_updated_entry(record, config) for record in report.updated]
    failures = [
        {
            "id": failure.record.get("id"),
            "url": failure.record.get("url"),
            "error": str(failure.error),
        }
        for failure in report.failed
    ]
    matched = len(report.matched)

    return {
        "matched_count": matched,
        "updated_count": len(entries),
        "failed_count": len(failures),
        "updated": entries,
        "failed": failures,
        "text": render_text(entries, matched, failures),
        "markdown": render_markdown(entries, matched, failures),
    }
