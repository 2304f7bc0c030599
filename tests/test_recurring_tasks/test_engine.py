"""End-to-end tests for a recurring tasks run against a fake Notion client."""

import pytest

from notion_recurring.integrations.recurring_tasks.engine import run_recurring_tasks
from notion_recurring.integrations.recurring_tasks.models import PropertySelections, RunOptions
from notion_recurring.integrations.recurring_tasks.report import summarize_report
from notion_recurring.utils.error_handling import RecordReconcileError, SchemaError

TIMESTAMP = "2024-01-20T06:00:00.000-07:00"


@pytest.fixture
def tasks(task_factory):
    return [
        task_factory("p1", "Water plants", "2024-01-27", done=True, status="To Do"),
        task_factory("p2", "Pay rent", "2024-02-01", end="2024-02-03", done=True, status="To Do"),
        task_factory("p3", "Review budget", "2024-02-20", done=False, status="Done"),
    ]


class TestRunRecurringTasks:
    """Test cases for run_recurring_tasks."""

    def test_full_run(self, fake_client_factory, tasks):
        """Every matched task gets exactly one update, in query order."""
        client = fake_client_factory(query_responses=[{"results": tasks, "has_more": False}])
        selections = PropertySelections(completion="done%40", secondary_completion="kanban")

        report, config = run_recurring_tasks(client, "db1", TIMESTAMP, selections=selections)

        assert client.call_names() == [
            "retrieve_database",
            "update_database",
            "query_database",
            "update_page",
            "update_page",
            "update_page",
        ]
        assert client.calls_to("update_database")[0][2]["UTC Offset"] == {"formula": {"expression": "-7"}}

        criteria = client.calls_to("query_database")[0][2]
        assert criteria["and"][0]["or"] == [
            {"property": "Done", "checkbox": {"equals": True}},
            {"property": "Kanban Status", "status": {"equals": "Done"}},
        ]

        updates = client.calls_to("update_page")
        assert [u[1] for u in updates] == ["p1", "p2", "p3"]
        for update in updates:
            assert update[2]["Done"] == {"checkbox": False}
            assert update[2]["Kanban Status"] == {"status": {"name": "To Do"}}
        assert updates[0][2]["Due"] == {"date": {"start": "2024-01-27", "end": None}}
        assert updates[1][2]["Due"] == {"date": {"start": "2024-02-01", "end": "2024-02-03"}}

        assert [page["id"] for page in report.updated] == ["p1", "p2", "p3"]
        assert config.secondary_completion.field.name == "Kanban Status"

        summary = summarize_report(report, config)
        assert summary["updated_count"] == 3
        assert [entry["title"] for entry in summary["updated"]] == ["Water plants", "Pay rent", "Review budget"]

    def test_no_matching_tasks(self, fake_client_factory):
        client = fake_client_factory()

        report, config = run_recurring_tasks(client, "db1", TIMESTAMP)

        assert client.calls_to("update_page") == []
        assert report.matched == []
        assert summarize_report(report, config)["updated_count"] == 0

    def test_schema_error_happens_before_any_write(self, fake_client_factory, tasks):
        client = fake_client_factory(query_responses=[{"results": tasks}])
        selections = PropertySelections(
            completion="done%40",
            secondary_completion="kanban",
            secondary_not_started="opt-removed",
        )

        with pytest.raises(SchemaError):
            run_recurring_tasks(client, "db1", TIMESTAMP, selections=selections)

        assert client.call_names() == ["retrieve_database"]

    def test_missing_property_aborts_run(self, fake_client_factory, schema):
        del schema["UTC Offset"]
        client = fake_client_factory(database={"properties": schema})

        with pytest.raises(SchemaError) as exc_info:
            run_recurring_tasks(client, "db1", TIMESTAMP)

        assert exc_info.value.role == "utc_offset"
        assert client.call_names() == ["retrieve_database"]

    def test_timezone_sync_disabled(self, fake_client_factory):
        client = fake_client_factory()

        run_recurring_tasks(client, "db1", None, options=RunOptions(sync_timezone=False))

        assert client.call_names() == ["retrieve_database", "query_database"]

    def test_status_only_database(self, fake_client_factory, tasks):
        client = fake_client_factory(query_responses=[{"results": tasks[2:]}])

        report, config = run_recurring_tasks(client, "db1", TIMESTAMP)

        update = client.calls_to("update_page")[0][2]
        assert update == {
            "Kanban Status": {"status": {"name": "To Do"}},
            "Due": {"date": {"start": "2024-02-20", "end": None}},
        }

    def test_record_failure_aborts_by_default(self, fake_client_factory, tasks):
        tasks[1]["properties"]["Next Due API"]["formula"]["string"] = "not json"
        client = fake_client_factory(query_responses=[{"results": tasks}])

        with pytest.raises(RecordReconcileError) as exc_info:
            run_recurring_tasks(client, "db1", TIMESTAMP, selections=PropertySelections(completion="done%40"))

        assert exc_info.value.page_id == "p2"
        assert [u[1] for u in client.calls_to("update_page")] == ["p1"]

    def test_record_failure_continue_policy(self, fake_client_factory, tasks):
        tasks[1]["properties"]["Next Due API"]["formula"]["string"] = "not json"
        client = fake_client_factory(query_responses=[{"results": tasks}])

        report, config = run_recurring_tasks(
            client, "db1", TIMESTAMP,
            selections=PropertySelections(completion="done%40"),
            options=RunOptions(on_record_error="continue"),
        )

        assert [page["id"] for page in report.updated] == ["p1", "p3"]
        assert [failure.record["id"] for failure in report.failed] == ["p2"]
        assert summarize_report(report, config)["failed_count"] == 1

    def test_paginated_run(self, fake_client_factory, task_factory):
        pages = [task_factory(f"p{i}", f"Task {i}", "2024-03-01") for i in range(5)]
        client = fake_client_factory(query_responses=[
            {"results": pages[:2], "has_more": True, "next_cursor": "c1"},
            {"results": pages[2:], "has_more": False, "next_cursor": None},
        ])

        report, _ = run_recurring_tasks(
            client, "db1", TIMESTAMP,
            options=RunOptions(page_size=2),
        )

        assert [u[1] for u in client.calls_to("update_page")] == [f"p{i}" for i in range(5)]
        assert len(report.matched) == 5
