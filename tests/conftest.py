"""
Shared test fixtures for the recurring tasks workflow.

These fixtures provide mock objects that simulate the Pipedream runtime and
the Notion API, allowing unit tests to run without actual API connections.
"""
import copy
import json

import pytest


class MockPipedream:
    """Mock Pipedream context object for testing handlers."""

    def __init__(self):
        self.inputs = {}
        self.steps = {}


def status_property(prop_id, name, options, groups=None):
    return {
        "id": prop_id,
        "name": name,
        "type": "status",
        "status": {
            "options": [{"id": oid, "name": oname, "color": "default"} for oid, oname in options],
            "groups": groups or [],
        },
    }


def build_schema():
    """Database properties shaped like Ultimate Tasks."""
    return {
        "Name": {"id": "title", "name": "Name", "type": "title", "title": {}},
        "Due": {"id": "due%3A", "name": "Due", "type": "date", "date": {}},
        "Done": {"id": "done%40", "name": "Done", "type": "checkbox", "checkbox": {}},
        "Kanban Status": status_property(
            "kanban",
            "Kanban Status",
            [("opt-todo", "To Do"), ("opt-doing", "Doing"), ("opt-done", "Done")],
            groups=[
                {"id": "g-todo", "name": "To-do", "option_ids": ["opt-todo"]},
                {"id": "g-progress", "name": "In progress", "option_ids": ["opt-doing"]},
                {"id": "g-complete", "name": "Complete", "option_ids": ["opt-done"]},
            ],
        ),
        "Next Due API": {"id": "next%3F", "name": "Next Due API", "type": "formula", "formula": {"expression": ""}},
        "UTC Offset": {"id": "utc", "name": "UTC Offset", "type": "formula", "formula": {"expression": "0"}},
        "Type": {"id": "type", "name": "Type", "type": "formula", "formula": {"expression": ""}},
        "Recur Interval": {"id": "recur", "name": "Recur Interval", "type": "number", "number": {}},
    }


def make_task(page_id, title, start, end=None, done=True, status="Done", due="2024-01-10"):
    """A task page as returned by a database query."""
    payload = {"start": start, "end": end if end is not None else start}
    return {
        "object": "page",
        "id": page_id,
        "url": f"https://www.notion.so/{title.replace(' ', '-')}-{page_id}",
        "properties": {
            "Name": {"id": "title", "type": "title", "title": [{"plain_text": title}]},
            "Due": {"id": "due%3A", "type": "date", "date": {"start": due, "end": None}},
            "Done": {"id": "done%40", "type": "checkbox", "checkbox": done},
            "Kanban Status": {"id": "kanban", "type": "status", "status": {"name": status}},
            "Next Due API": {
                "id": "next%3F",
                "type": "formula",
                "formula": {"type": "string", "string": json.dumps(payload)},
            },
        },
    }


class FakeNotionClient:
    """In-memory stand-in for NotionClient that records every call in order."""

    def __init__(self, database=None, query_responses=None):
        self.database = database if database is not None else {"object": "database", "properties": build_schema()}
        self.query_responses = list(query_responses or [{"results": [], "has_more": False, "next_cursor": None}])
        self.calls = []
        self.pages = {}
        for response in self.query_responses:
            for page in response.get("results", []):
                self.pages[page["id"]] = page

    def call_names(self):
        return [call[0] for call in self.calls]

    def calls_to(self, name):
        return [call for call in self.calls if call[0] == name]

    def retrieve_database(self, database_id):
        self.calls.append(("retrieve_database", database_id))
        return self.database

    def update_database(self, database_id, properties):
        self.calls.append(("update_database", database_id, properties))
        return {"object": "database", "id": database_id}

    def query_database(self, database_id, filter_criteria=None, start_cursor=None, page_size=100):
        self.calls.append(("query_database", database_id, filter_criteria, start_cursor, page_size))
        index = len(self.calls_to("query_database")) - 1
        return self.query_responses[index]

    def update_page(self, page_id, properties):
        self.calls.append(("update_page", page_id, properties))
        page = copy.deepcopy(self.pages.get(page_id, {"object": "page", "id": page_id, "properties": {}}))
        for name, value in properties.items():
            page["properties"].setdefault(name, {}).update(value)
        return page

    def append_block_children(self, block_id, children):
        self.calls.append(("append_block_children", block_id, children))
        return {"object": "list", "results": children}


@pytest.fixture
def mock_pd():
    """Create a mock Pipedream context object."""
    return MockPipedream()


@pytest.fixture
def notion_auth():
    """Mock Notion OAuth token structure."""
    return {"notion": {"$auth": {"oauth_access_token": "test_notion_token"}}}


@pytest.fixture
def schema():
    """Live database schema with checkbox and status completion properties."""
    return build_schema()


@pytest.fixture
def task_factory():
    """Factory for task pages."""
    return make_task


@pytest.fixture
def fake_client_factory():
    """Factory for FakeNotionClient instances."""
    return FakeNotionClient


@pytest.fixture
def schedule_trigger():
    """Sample Pipedream schedule trigger with a configured timezone."""
    return {
        "trigger": {
            "event": {
                "timestamp": 1705755600,
                "interval_seconds": 3600,
                "timezone_configured": {
                    "iso8601": {
                        "date": "2024-01-20",
                        "time": "06:00:00.000",
                        "timestamp": "2024-01-20T06:00:00.000-07:00",
                    },
                    "timezone": "America/Denver",
                },
            }
        }
    }
