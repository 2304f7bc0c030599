"""Tests for syncing the UTC Offset and Type formulas."""

from datetime import datetime

import pytest

from notion_recurring.integrations.recurring_tasks.models import (
    CheckboxCompletion,
    FieldRef,
    RunConfig,
)
from notion_recurring.integrations.recurring_tasks.timezone_sync import (
    build_database_update,
    current_timestamp,
    format_offset_expression,
    sync_timezone,
    utc_offset_hours,
)
from notion_recurring.utils.error_handling import ConfigurationError


@pytest.fixture
def config():
    return RunConfig(
        due=FieldRef("Due", "due%3A", "date"),
        completion=CheckboxCompletion(field=FieldRef("Done", "done%40", "checkbox")),
        next_due=FieldRef("Next Due API", "next%3F", "formula"),
        utc_offset=FieldRef("UTC Offset", "utc", "formula"),
        type_marker=FieldRef("Type", "type", "formula"),
    )


class TestUtcOffsetHours:
    """Test cases for reading the offset from a timestamp."""

    @pytest.mark.parametrize("timestamp,expected", [
        ("2024-01-20T06:00:00.000-07:00", -7.0),
        ("2024-07-20T06:00:00-06:00", -6.0),
        ("2024-01-20T06:00:00+05:30", 5.5),
        ("2024-01-20T06:00:00+05:45", 5.75),
        ("2024-01-20T06:00:00-03:30", -3.5),
        ("2024-01-20T06:00:00+00:00", 0.0),
        ("2024-01-20T06:00:00Z", 0.0),
    ])
    def test_offsets(self, timestamp, expected):
        assert utc_offset_hours(timestamp) == expected

    @pytest.mark.parametrize("timestamp", ["2024-01-20T06:00:00", "yesterday", "", None])
    def test_invalid_timestamps(self, timestamp):
        with pytest.raises(ConfigurationError):
            utc_offset_hours(timestamp)


class TestFormatOffsetExpression:
    """Test cases for rendering the offset formula literal."""

    @pytest.mark.parametrize("hours,expected", [
        (-7.0, "-7"),
        (5.5, "5.5"),
        (5.75, "5.75"),
        (-3.5, "-3.5"),
        (0.0, "0"),
        (-0.0, "0"),
        (12.0, "12"),
    ])
    def test_formats(self, hours, expected):
        assert format_offset_expression(hours) == expected


class TestCurrentTimestamp:
    """Test cases for current_timestamp."""

    def test_has_offset(self):
        moment = datetime.fromisoformat(current_timestamp("Asia/Kathmandu"))

        assert moment.utcoffset().total_seconds() == 5.75 * 3600

    def test_unknown_timezone(self):
        with pytest.raises(ConfigurationError) as exc_info:
            current_timestamp("Mars/Olympus_Mons")

        assert exc_info.value.details == {"field": "timezone"}


class TestSyncTimezone:
    """Test cases for the database update."""

    def test_build_database_update(self, config):
        assert build_database_update(config, -7.0) == {
            "UTC Offset": {"formula": {"expression": "-7"}},
            "Type": {"formula": {"expression": '"⏳One-Time"'}},
        }

    def test_sync_writes_both_formulas(self, config, fake_client_factory):
        client = fake_client_factory()

        sync_timezone(client, "db1", config, "2024-03-10T06:00:00-06:00")

        assert client.calls == [(
            "update_database",
            "db1",
            {
                "UTC Offset": {"formula": {"expression": "-6"}},
                "Type": {"formula": {"expression": '"⏳One-Time"'}},
            },
        )]

    def test_renamed_formula_properties(self, config, fake_client_factory):
        renamed = RunConfig(
            due=config.due,
            completion=config.completion,
            next_due=config.next_due,
            utc_offset=FieldRef("Offset (hrs)", "utc", "formula"),
            type_marker=FieldRef("Kind", "type", "formula"),
        )
        client = fake_client_factory()

        sync_timezone(client, "db1", renamed, "2024-01-20T06:00:00+05:30")

        properties = client.calls[0][2]
        assert properties["Offset (hrs)"] == {"formula": {"expression": "5.5"}}
        assert "Kind" in properties

    def test_invalid_timestamp_writes_nothing(self, config, fake_client_factory):
        client = fake_client_factory()

        with pytest.raises(ConfigurationError):
            sync_timezone(client, "db1", config, "2024-01-20T06:00:00")

        assert client.calls == []
