"""
Notion Utilities

This module provides a small Notion REST client. Every request goes
through one dispatch path: the retry policy wraps the rate limiter, which
wraps the HTTP call. Retries therefore respect the limiter's spacing too.
"""

import logging
import time
from typing import Any, Dict, List, Optional

import requests

from notion_recurring.config.constants import (
    DEFAULT_TIMEOUT,
    NOTION_BLOCKS_URL,
    NOTION_DATABASES_URL,
    NOTION_HEADERS,
    NOTION_PAGE_SIZE,
    NOTION_PAGES_URL,
    NOTION_SEARCH_URL,
    RECORD_MAX_RETRIES,
    SCHEMA_MAX_RETRIES,
    SEARCH_PAGE_SIZE,
)
from notion_recurring.utils.error_handling import handle_api_response
from notion_recurring.utils.rate_limiter import RateLimiter
from notion_recurring.utils.retry_manager import RetryManager

logger = logging.getLogger(__name__)


class NotionClient:
    """
    Notion API client with rate limiting and retries on every call.

    Args:
        token: Notion integration token or OAuth access token
        session: Optional requests.Session for connection pooling
        limiter: Shared RateLimiter (one in flight, 333ms spacing by default)
        retry_manager: Shared RetryManager
        timeout: Per-request timeout in seconds
    """

    def __init__(
        self,
        token: str,
        session: Optional[requests.Session] = None,
        limiter: Optional[RateLimiter] = None,
        retry_manager: Optional[RetryManager] = None,
        timeout: float = DEFAULT_TIMEOUT,
        record_max_retries: int = RECORD_MAX_RETRIES,
        schema_max_retries: int = SCHEMA_MAX_RETRIES
    ):
        self.session = session or requests.Session()
        self.session.headers.update({
            "Authorization": f"Bearer {token}",
            **NOTION_HEADERS,
        })
        self.limiter = limiter or RateLimiter()
        self.retry_manager = retry_manager or RetryManager()
        self.timeout = timeout
        self.record_max_retries = record_max_retries
        self.schema_max_retries = schema_max_retries

    def _send(self, operation: str, method: str, url: str, **kwargs) -> Dict[str, Any]:
        """Perform one HTTP request and convert failures into NotionAPIError."""
        logger.debug(f"{operation}: {method} {url}")
        start_time = time.time()
        response = self.session.request(method, url, timeout=self.timeout, **kwargs)
        logger.debug(
            f"{operation}: {response.status_code} in {time.time() - start_time:.2f}s"
        )
        return handle_api_response(response, operation)

    def dispatch(
        self,
        operation: str,
        method: str,
        url: str,
        max_retries: Optional[int] = None,
        **kwargs
    ) -> Dict[str, Any]:
        """
        Send a request through the retry policy and the rate limiter.

        Args:
            operation: Operation name for logging and errors
            method: HTTP method
            url: Full endpoint URL
            max_retries: Retry ceiling (defaults to the record ceiling)
            **kwargs: Passed to requests (json, params)

        Returns:
            Parsed JSON response
        """
        if max_retries is None:
            max_retries = self.record_max_retries

        def attempt():
            return self.limiter.schedule(self._send, operation, method, url, **kwargs)

        return self.retry_manager.run(attempt, operation_name=operation, max_retries=max_retries)

    def retrieve_database(self, database_id: str) -> Dict[str, Any]:
        """Retrieve a database object including its property schema."""
        return self.dispatch(
            "retrieve database",
            "GET",
            f"{NOTION_DATABASES_URL}/{database_id}",
            max_retries=self.schema_max_retries
        )

    def update_database(self, database_id: str, properties: Dict[str, Any]) -> Dict[str, Any]:
        """Update property definitions (e.g. formula expressions) of a database."""
        return self.dispatch(
            "update database",
            "PATCH",
            f"{NOTION_DATABASES_URL}/{database_id}",
            json={"properties": properties}
        )

    def query_database(
        self,
        database_id: str,
        filter_criteria: Optional[Dict[str, Any]] = None,
        start_cursor: Optional[str] = None,
        page_size: int = NOTION_PAGE_SIZE
    ) -> Dict[str, Any]:
        """
        Query one page of database records.

        Returns:
            The raw query response with results, has_more and next_cursor
        """
        payload: Dict[str, Any] = {"page_size": page_size}
        if filter_criteria:
            payload["filter"] = filter_criteria
        if start_cursor:
            payload["start_cursor"] = start_cursor

        return self.dispatch(
            "query database",
            "POST",
            f"{NOTION_DATABASES_URL}/{database_id}/query",
            json=payload
        )

    def update_page(self, page_id: str, properties: Dict[str, Any]) -> Dict[str, Any]:
        """Update property values of one page; returns the updated page."""
        return self.dispatch(
            "update page",
            "PATCH",
            f"{NOTION_PAGES_URL}/{page_id}",
            json={"properties": properties}
        )

    def append_block_children(self, block_id: str, children: List[Dict[str, Any]]) -> Dict[str, Any]:
        """Append child blocks to a page or block."""
        return self.dispatch(
            "append blocks",
            "PATCH",
            f"{NOTION_BLOCKS_URL}/{block_id}/children",
            json={"children": children}
        )

    def search_databases(self, query: Optional[str] = None) -> List[Dict[str, Any]]:
        """
        List all databases shared with the integration, most recently edited first.

        Args:
            query: Optional title search text

        Returns:
            List of database objects across all result pages
        """
        databases = []
        start_cursor = None

        while True:
            payload: Dict[str, Any] = {
                "page_size": SEARCH_PAGE_SIZE,
                "filter": {"value": "database", "property": "object"},
                "sort": {"direction": "descending", "timestamp": "last_edited_time"},
            }
            if query:
                payload["query"] = query
            if start_cursor:
                payload["start_cursor"] = start_cursor

            data = self.dispatch("search databases", "POST", NOTION_SEARCH_URL, json=payload)
            databases.extend(data.get("results", []))

            if not data.get("has_more") or not data.get("next_cursor"):
                break
            start_cursor = data["next_cursor"]

        return databases


def get_database_title(database: Dict[str, Any]) -> str:
    """Plain-text title of a database object."""
    return "".join(
        item.get("plain_text", "") for item in database.get("title", []) or []
    ) or "Untitled"


def build_bulleted_list_item(text: str) -> Dict[str, Any]:
    """Build a bulleted_list_item block containing plain text."""
    return {
        "object": "block",
        "type": "bulleted_list_item",
        "bulleted_list_item": {
            "rich_text": [
                {"type": "text", "text": {"content": text}}
            ]
        },
    }


def get_page_property(page: Dict[str, Any], name: str, property_id: str) -> Optional[Dict[str, Any]]:
    """
    Find a property value on a page, by name first and then by stable id.

    Args:
        page: Notion page object
        name: Current property name
        property_id: Stable property id

    Returns:
        The page's property value object, or None
    """
    properties = page.get("properties") or {}
    prop = properties.get(name)
    if prop is not None and prop.get("id", property_id) == property_id:
        return prop
    for value in properties.values():
        if isinstance(value, dict) and value.get("id") == property_id:
            return value
    return None
