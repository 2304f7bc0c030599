"""
Recurring tasks reconciliation for Notion.

Resolves the database schema, syncs the UTC offset, finds completed
recurring tasks and moves each one to its next occurrence.
"""

from .engine import run_recurring_tasks
from .models import (
    CheckboxCompletion,
    DueWindow,
    FieldRef,
    PropertySelections,
    RunConfig,
    RunOptions,
    RunReport,
    StatusCompletion,
    StatusOption,
)
from .report import summarize_report
from .schema_resolver import resolve_run_config

__all__ = [
    "CheckboxCompletion",
    "DueWindow",
    "FieldRef",
    "PropertySelections",
    "RunConfig",
    "RunOptions",
    "RunReport",
    "StatusCompletion",
    "StatusOption",
    "resolve_run_config",
    "run_recurring_tasks",
    "summarize_report",
]
