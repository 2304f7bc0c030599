"""
Tests for the Pipedream recurring tasks step.

This module tests the handler and its input parsing with a mock Pipedream
context and a fake Notion client.
"""

import json

import pytest
from unittest.mock import patch

from notion_recurring.integrations.recurring_tasks.models import PropertySelections
from notion_recurring.steps.notion_recurring_tasks import (
    get_notion_token,
    get_trigger_timestamp,
    handler,
    parse_options,
    parse_selections,
    selection_id,
)
from notion_recurring.utils.error_handling import ConfigurationError, SchemaError

STEP_MODULE = "notion_recurring.steps.notion_recurring_tasks"


class TestSelectionParsing:
    """Test parsing of property selection props."""

    def test_selection_id_from_json_string(self):
        assert selection_id('{"name": "Due", "id": "due%3A"}') == "due%3A"

    def test_selection_id_from_dict(self):
        assert selection_id({"name": "Done", "id": "done%40"}) == "done%40"

    def test_selection_id_bare(self):
        assert selection_id("opt-done") == "opt-done"

    @pytest.mark.parametrize("value", [None, ""])
    def test_selection_id_empty(self, value):
        assert selection_id(value) is None

    def test_parse_selections(self):
        inputs = {
            "dueProp": json.dumps({"name": "Due", "id": "due%3A"}),
            "doneProp": json.dumps({"name": "Kanban Status", "id": "kanban"}),
            "donePropStatusNotStarted": json.dumps({"name": "To Do", "id": "opt-todo"}),
            "donePropStatusCompleted": json.dumps({"name": "Done", "id": "opt-done"}),
            "secondaryDoneProp": "done%40",
        }

        assert parse_selections(inputs) == PropertySelections(
            due="due%3A",
            completion="kanban",
            completion_not_started="opt-todo",
            completion_completed="opt-done",
            secondary_completion="done%40",
        )

    def test_parse_selections_empty(self):
        assert parse_selections({}) == PropertySelections()

    def test_selection_id_malformed_json(self):
        with pytest.raises(ConfigurationError) as exc_info:
            selection_id('{"id": ', field="dueProp")

        assert exc_info.value.details == {"field": "dueProp"}

    def test_parse_selections_names_malformed_prop(self):
        with pytest.raises(ConfigurationError, match="doneProp") as exc_info:
            parse_selections({"dueProp": "due%3A", "doneProp": '{"name": "Done", '})

        assert exc_info.value.details == {"field": "doneProp"}


class TestOptionParsing:
    """Test parsing of run option props."""

    def test_defaults(self):
        options = parse_options({})

        assert options.on_record_error == "abort"
        assert options.sync_timezone is True
        assert options.log_completed_dates is False

    def test_string_booleans(self):
        options = parse_options({"syncTimezone": "false", "logCompletedDates": "true"})

        assert options.sync_timezone is False
        assert options.log_completed_dates is True

    def test_invalid_policy(self):
        with pytest.raises(ConfigurationError) as exc_info:
            parse_options({"onRecordError": "ignore"})

        assert exc_info.value.details == {"field": "onRecordError"}


class TestTriggerAndAuth:
    """Test reading the trigger timestamp and the Notion token."""

    def test_trigger_timestamp(self, schedule_trigger):
        assert get_trigger_timestamp(schedule_trigger) == "2024-01-20T06:00:00.000-07:00"

    def test_trigger_timezone_only(self):
        steps = {"trigger": {"event": {"timezone_configured": {"timezone": "Asia/Kolkata"}}}}

        assert get_trigger_timestamp(steps).endswith("+05:30")

    def test_trigger_without_timezone(self):
        with pytest.raises(ConfigurationError):
            get_trigger_timestamp({"trigger": {"event": {}}})

    def test_notion_token(self, notion_auth):
        assert get_notion_token(notion_auth) == "test_notion_token"

    def test_missing_notion_token(self):
        with pytest.raises(ConfigurationError):
            get_notion_token({})


class TestHandler:
    """Test the step handler."""

    def test_successful_run(self, mock_pd, notion_auth, schedule_trigger, fake_client_factory, task_factory):
        tasks = [task_factory("p1", "Water plants", "2024-01-27")]
        client = fake_client_factory(query_responses=[{"results": tasks}])
        mock_pd.inputs = {**notion_auth, "databaseID": "db1", "doneProp": "done%40"}
        mock_pd.steps = schedule_trigger

        with patch(f"{STEP_MODULE}.NotionClient", return_value=client) as client_cls:
            result = handler(mock_pd)

        client_cls.assert_called_once_with("test_notion_token")
        assert result["updated_count"] == 1
        assert result["updated"][0]["title"] == "Water plants"
        assert result["text"].startswith("Recurring tasks: 1 matched, 1 updated.")
        assert client.calls_to("update_database")[0][2]["UTC Offset"] == {"formula": {"expression": "-7"}}

    def test_missing_database(self, mock_pd, notion_auth):
        mock_pd.inputs = dict(notion_auth)

        with pytest.raises(ConfigurationError) as exc_info:
            handler(mock_pd)

        assert exc_info.value.details == {"field": "databaseID"}

    def test_sync_disabled_needs_no_trigger(self, mock_pd, notion_auth, fake_client_factory):
        client = fake_client_factory()
        mock_pd.inputs = {**notion_auth, "databaseID": "db1", "syncTimezone": False}

        with patch(f"{STEP_MODULE}.NotionClient", return_value=client):
            result = handler(mock_pd)

        assert result["matched_count"] == 0
        assert client.calls_to("update_database") == []

    def test_schema_error_fails_the_step(self, mock_pd, notion_auth, schedule_trigger, fake_client_factory, schema):
        del schema["Next Due API"]
        client = fake_client_factory(database={"properties": schema})
        mock_pd.inputs = {**notion_auth, "databaseID": "db1"}
        mock_pd.steps = schedule_trigger

        with patch(f"{STEP_MODULE}.NotionClient", return_value=client):
            with pytest.raises(SchemaError):
                handler(mock_pd)
