"""
Central configuration constants for the recurring tasks workflow.

This module contains all shared constants used across the package,
providing a single source of truth for API endpoints, limits and the
property names used by the recurring task templates.
"""

# API Base URLs
NOTION_API_BASE_URL = "https://api.notion.com/v1"
NOTION_API_VERSION = "2022-06-28"
NOTION_PAGES_URL = f"{NOTION_API_BASE_URL}/pages"
NOTION_DATABASES_URL = f"{NOTION_API_BASE_URL}/databases"
NOTION_BLOCKS_URL = f"{NOTION_API_BASE_URL}/blocks"
NOTION_SEARCH_URL = f"{NOTION_API_BASE_URL}/search"

# Timeouts and Limits
DEFAULT_TIMEOUT = 30  # seconds
NOTION_PAGE_SIZE = 100  # Notion API maximum for queries
SEARCH_PAGE_SIZE = 50

# Rate limiting (Notion allows an average of three requests per second)
RATE_LIMIT_MIN_INTERVAL = 0.333  # seconds between dispatches
RATE_LIMIT_MAX_CONCURRENT = 1
RATE_LIMIT_DEFAULT_RETRY_AFTER = 0.4  # seconds, when 429 has no Retry-After

# Retry ceilings (retries after the first attempt)
RECORD_MAX_RETRIES = 3
SCHEMA_MAX_RETRIES = 5
RETRY_BASE_DELAY = 1.0  # seconds
RETRY_MAX_DELAY = 30.0  # seconds
RETRY_EXPONENTIAL_BASE = 2.0

# HTTP status classification
CLIENT_ERROR_STATUS_MIN = 400
CLIENT_ERROR_STATUS_MAX = 409
RETRYABLE_STATUS_CODES = (500, 503, 504)
RATE_LIMIT_STATUS_CODE = 429

# HTTP Headers
DEFAULT_HEADERS = {
    "Content-Type": "application/json",
}

NOTION_HEADERS = {
    **DEFAULT_HEADERS,
    "Notion-Version": NOTION_API_VERSION,
}

# Formula output meaning "no next occurrence"
NEXT_DUE_SENTINEL = "∅"

# Type formula expression written once per run so completed recurring
# tasks are no longer classified as recurring
ONE_TIME_TYPE_LABEL = "⏳One-Time"
ONE_TIME_TYPE_EXPRESSION = f'"{ONE_TIME_TYPE_LABEL}"'

# Default property names per role, in order of preference
DEFAULT_PROPERTY_NAMES = {
    "due": ("Due",),
    "completion": ("Status", "Kanban Status", "Done"),
    "secondary_completion": (),
    "next_due": ("Next Due API",),
    "utc_offset": ("UTC Offset",),
    "type_marker": ("Type",),
}

# Accepted Notion property types per role
ROLE_PROPERTY_TYPES = {
    "due": ("date",),
    "completion": ("checkbox", "status"),
    "secondary_completion": ("checkbox", "status"),
    "next_due": ("formula",),
    "utc_offset": ("formula",),
    "type_marker": ("formula",),
}

ROLE_LABELS = {
    "due": "Due",
    "completion": "Task Status",
    "secondary_completion": "Secondary Task Status",
    "next_due": "Next Due API",
    "utc_offset": "UTC Offset",
    "type_marker": "Type",
}

# Status option fallbacks (by name, then by Notion status group)
NOT_STARTED_OPTION_NAMES = ("Not started", "Not Started", "To Do")
COMPLETED_OPTION_NAMES = ("Done", "Complete", "Completed")
NOT_STARTED_GROUP_NAME = "To-do"
COMPLETED_GROUP_NAME = "Complete"

# Database search labels
TASK_DATABASE_MARKER = "All Tasks"

# Record failure policies
ON_RECORD_ERROR_ABORT = "abort"
ON_RECORD_ERROR_CONTINUE = "continue"
RECORD_ERROR_POLICIES = (ON_RECORD_ERROR_ABORT, ON_RECORD_ERROR_CONTINUE)

# Error Messages
ERROR_MISSING_AUTH = "Authentication credentials not found"
ERROR_INVALID_INPUT = "Required input field '{}' is missing"
ERROR_API_REQUEST = "API request failed: {}"
ERROR_INVALID_RESPONSE = "Invalid response from API: {}"
ERROR_MISSING_PROPERTY = (
    "Could not find the {label} property. Select it explicitly or add a "
    "property named {names} of type {types} to your database."
)
ERROR_WRONG_PROPERTY_TYPE = (
    "The selected {label} property '{name}' has type '{actual}', "
    "but it must be of type {types}."
)
ERROR_MISSING_STATUS_OPTION = (
    "The {option} option selected for the {label} property '{name}' "
    "(id {option_id}) no longer exists. Choose the option again."
)
ERROR_UNRESOLVED_STATUS_OPTION = (
    "Could not determine the {option} option for the {label} property "
    "'{name}'. Select it explicitly."
)

