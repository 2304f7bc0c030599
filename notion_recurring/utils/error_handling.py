"""
Error handling utilities for the recurring tasks workflow.

This module provides the exception hierarchy and the helpers that turn
Notion HTTP responses into those exceptions.
"""

import logging
import traceback
from datetime import datetime, timezone
from typing import Any, Dict, Optional

from notion_recurring.config.constants import (
    ERROR_API_REQUEST,
    ERROR_INVALID_RESPONSE,
)

UTC = timezone.utc

logger = logging.getLogger(__name__)


class RecurringTasksError(Exception):
    """Base exception for recurring task errors."""

    def __init__(self, message: str, code: Optional[str] = None, details: Optional[Dict] = None):
        self.message = message
        self.code = code
        self.details = details or {}
        super().__init__(self.message)

    def to_dict(self) -> Dict[str, Any]:
        """Convert exception to dictionary for step output."""
        return {
            "error": self.message,
            "code": self.code,
            "details": self.details,
            "timestamp": datetime.now(UTC).isoformat()
        }


class ConfigurationError(RecurringTasksError):
    """Raised when settings or workflow inputs are invalid or missing."""

    def __init__(self, message: str, field: Optional[str] = None):
        super().__init__(message, code="CONFIG_ERROR", details={"field": field})


class SchemaError(RecurringTasksError):
    """Raised when the database schema lacks a field the workflow depends on.

    Always raised before any write happens in a run.
    """

    def __init__(self, message: str, role: Optional[str] = None, required_types=None):
        self.role = role
        self.required_types = tuple(required_types or ())
        super().__init__(
            message,
            code="SCHEMA_ERROR",
            details={"role": role, "required_types": list(self.required_types)}
        )


class NotionAPIError(RecurringTasksError):
    """Raised when a Notion API call returns a non-success status."""

    def __init__(
        self,
        message: str,
        status_code: Optional[int] = None,
        notion_code: Optional[str] = None,
        operation: Optional[str] = None,
        retry_after: Optional[float] = None
    ):
        self.status_code = status_code
        self.notion_code = notion_code
        self.operation = operation
        self.retry_after = retry_after
        super().__init__(
            message,
            code="API_ERROR",
            details={
                "status_code": status_code,
                "notion_code": notion_code,
                "operation": operation,
            }
        )


class MaxRetriesExceededError(RecurringTasksError):
    """Raised when maximum retry attempts have been exhausted."""

    def __init__(self, operation: str, attempts: int, last_error: Optional[Exception] = None):
        self.operation = operation
        self.attempts = attempts
        self.last_error = last_error
        self.status_code = getattr(last_error, "status_code", None)
        super().__init__(
            f"{operation} failed after {attempts} attempts: {last_error}",
            code="MAX_RETRIES",
            details={
                "operation": operation,
                "attempts": attempts,
                "status_code": self.status_code,
            }
        )


class PayloadError(RecurringTasksError):
    """Raised when a Next Due API value cannot be parsed."""

    def __init__(self, message: str, raw_value: Any = None):
        self.raw_value = raw_value
        super().__init__(message, code="PAYLOAD_ERROR", details={"raw_value": raw_value})


class RecordReconcileError(RecurringTasksError):
    """Raised when a single task cannot be reconciled and the run aborts."""

    def __init__(self, page_id: str, url: Optional[str], cause: Exception):
        self.page_id = page_id
        self.url = url
        self.cause = cause
        super().__init__(
            f"Failed to reconcile task {url or page_id}: {cause}",
            code="RECORD_ERROR",
            details={"page_id": page_id, "url": url, "cause": type(cause).__name__}
        )


def parse_retry_after(value: Optional[str]) -> Optional[float]:
    """Parse a Retry-After header given in seconds."""
    if value is None or value == "":
        return None
    try:
        return max(float(value), 0.0)
    except (TypeError, ValueError):
        logger.warning(f"Ignoring unparseable Retry-After header: {value!r}")
        return None


def handle_api_response(response: Any, operation: str = "notion") -> Dict[str, Any]:
    """
    Handle a Notion API response and raise appropriate errors.

    Args:
        response: HTTP response object
        operation: Name of the operation for error messages

    Returns:
        Parsed JSON response

    Raises:
        NotionAPIError: If the response indicates an error or is not JSON
    """
    status_code = response.status_code

    if 200 <= status_code < 300:
        try:
            return response.json()
        except ValueError as e:
            raise NotionAPIError(
                ERROR_INVALID_RESPONSE.format(e),
                status_code=status_code,
                operation=operation
            ) from e

    notion_code = None
    try:
        body = response.json()
        if isinstance(body, dict):
            error_detail = body.get("message") or response.reason
            notion_code = body.get("code")
        else:
            error_detail = response.reason
    except ValueError:
        error_detail = getattr(response, "text", "") or response.reason

    raise NotionAPIError(
        ERROR_API_REQUEST.format(f"{operation} returned {status_code}: {error_detail}"),
        status_code=status_code,
        notion_code=notion_code,
        operation=operation,
        retry_after=parse_retry_after(response.headers.get("Retry-After"))
    )


def format_error_response(error: Exception, include_trace: bool = False) -> Dict[str, Any]:
    """
    Format an exception into a standardized error response.

    Args:
        error: The exception to format
        include_trace: Whether to include stack trace

    Returns:
        Formatted error dictionary
    """
    if isinstance(error, RecurringTasksError):
        return error.to_dict()

    response = {
        "error": str(error),
        "type": type(error).__name__,
        "timestamp": datetime.now(UTC).isoformat()
    }

    if include_trace:
        response["trace"] = traceback.format_exc()

    return response
