"""
Data model for a recurring tasks run.

Everything here is immutable: a RunConfig is built once per run by the
schema resolver and only read afterwards.
"""

from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional, Tuple, Union

from notion_recurring.config.constants import (
    NOTION_PAGE_SIZE,
    ON_RECORD_ERROR_ABORT,
    RECORD_ERROR_POLICIES,
)


@dataclass(frozen=True)
class FieldRef:
    """A database property identified by its stable id."""

    name: str
    id: str
    type: str


@dataclass(frozen=True)
class StatusOption:
    """One option of a status property. The id is stable, the name is not."""

    id: str
    name: str


@dataclass(frozen=True)
class CheckboxCompletion:
    """Completion tracked by a checkbox property."""

    field: FieldRef


@dataclass(frozen=True)
class StatusCompletion:
    """Completion tracked by a status property and two of its options."""

    field: FieldRef
    not_started: StatusOption
    completed: StatusOption


CompletionField = Union[CheckboxCompletion, StatusCompletion]


@dataclass(frozen=True)
class RunConfig:
    """Validated property configuration shared by the query and reconcile stages."""

    due: FieldRef
    completion: CompletionField
    next_due: FieldRef
    utc_offset: FieldRef
    type_marker: FieldRef
    secondary_completion: Optional[CompletionField] = None
    title: Optional[FieldRef] = None

    @property
    def completion_fields(self) -> Tuple[CompletionField, ...]:
        """Primary completion field, followed by the secondary one if configured."""
        if self.secondary_completion is None:
            return (self.completion,)
        return (self.completion, self.secondary_completion)


@dataclass(frozen=True)
class PropertySelections:
    """Property and status option ids chosen by the user.

    Every entry is optional; missing roles are matched by property name.
    """

    due: Optional[str] = None
    completion: Optional[str] = None
    completion_not_started: Optional[str] = None
    completion_completed: Optional[str] = None
    next_due: Optional[str] = None
    utc_offset: Optional[str] = None
    type_marker: Optional[str] = None
    secondary_completion: Optional[str] = None
    secondary_not_started: Optional[str] = None
    secondary_completed: Optional[str] = None


@dataclass(frozen=True)
class DueWindow:
    """New due date parsed from the Next Due API formula."""

    start: str
    end: Optional[str] = None

    def to_property_value(self) -> Dict[str, Any]:
        return {"date": {"start": self.start, "end": self.end}}


@dataclass
class RunOptions:
    """Behavior switches for one run."""

    on_record_error: str = ON_RECORD_ERROR_ABORT
    sync_timezone: bool = True
    log_completed_dates: bool = False
    page_size: int = NOTION_PAGE_SIZE

    def __post_init__(self):
        if self.on_record_error not in RECORD_ERROR_POLICIES:
            raise ValueError(
                f"on_record_error must be one of {', '.join(RECORD_ERROR_POLICIES)}, "
                f"got '{self.on_record_error}'"
            )
        if not 1 <= self.page_size <= NOTION_PAGE_SIZE:
            raise ValueError(f"page_size must be between 1 and {NOTION_PAGE_SIZE}")


@dataclass
class RecordFailure:
    """A task that could not be reconciled under the 'continue' policy."""

    record: Dict[str, Any]
    error: Exception


@dataclass
class RunReport:
    """Outcome of one run."""

    matched: List[Dict[str, Any]] = field(default_factory=list)
    updated: List[Dict[str, Any]] = field(default_factory=list)
    failed: List[RecordFailure] = field(default_factory=list)
