"""Settings loading for running the workflow outside Pipedream."""

from __future__ import annotations

import os
import re
from dataclasses import dataclass, field, fields
from pathlib import Path
from typing import Any, Optional

import yaml

from notion_recurring.config.constants import (
    DEFAULT_TIMEOUT,
    RATE_LIMIT_DEFAULT_RETRY_AFTER,
    RATE_LIMIT_MAX_CONCURRENT,
    RATE_LIMIT_MIN_INTERVAL,
    RECORD_MAX_RETRIES,
    RETRY_BASE_DELAY,
    RETRY_MAX_DELAY,
    SCHEMA_MAX_RETRIES,
)
from notion_recurring.integrations.recurring_tasks.models import PropertySelections, RunOptions
from notion_recurring.utils.error_handling import ConfigurationError


# Pattern to match ${VAR_NAME} or ${VAR_NAME:-default}
ENV_VAR_PATTERN = re.compile(r'\$\{([A-Z_][A-Z0-9_]*)(?::-([^}]*))?\}')

TOKEN_ENV_VAR = "NOTION_API_TOKEN"


@dataclass
class RateLimitSettings:
    """Rate limiter tuning."""

    min_interval: float = RATE_LIMIT_MIN_INTERVAL
    max_concurrent: int = RATE_LIMIT_MAX_CONCURRENT
    default_retry_after: float = RATE_LIMIT_DEFAULT_RETRY_AFTER
    max_rate_limit_waits: Optional[int] = None


@dataclass
class RetrySettings:
    """Retry ceilings and backoff."""

    record_max_retries: int = RECORD_MAX_RETRIES
    schema_max_retries: int = SCHEMA_MAX_RETRIES
    base_delay: float = RETRY_BASE_DELAY
    max_delay: float = RETRY_MAX_DELAY


@dataclass
class Settings:
    """Complete workflow settings."""

    notion_token: str
    database_id: str
    timezone: str = "UTC"
    timestamp: Optional[str] = None
    request_timeout: float = DEFAULT_TIMEOUT
    properties: PropertySelections = field(default_factory=PropertySelections)
    options: RunOptions = field(default_factory=RunOptions)
    rate_limit: RateLimitSettings = field(default_factory=RateLimitSettings)
    retry: RetrySettings = field(default_factory=RetrySettings)


def _substitute_env_vars(value: Any) -> Any:
    """
    Recursively substitute environment variables in configuration values.

    Supports patterns:
        ${VAR_NAME} - Required variable, raises error if not set
        ${VAR_NAME:-default} - Optional variable with default value
    """
    if isinstance(value, str):
        def replace_match(match: re.Match) -> str:
            var_name = match.group(1)
            default = match.group(2)
            env_value = os.environ.get(var_name)

            if env_value is not None:
                return env_value
            elif default is not None:
                return default
            else:
                raise ConfigurationError(
                    f"Environment variable '{var_name}' is not set and has no default. "
                    f"Set it with: export {var_name}=<value>",
                    field=var_name
                )

        return ENV_VAR_PATTERN.sub(replace_match, value)

    elif isinstance(value, dict):
        return {k: _substitute_env_vars(v) for k, v in value.items()}

    elif isinstance(value, list):
        return [_substitute_env_vars(item) for item in value]

    else:
        return value


def _build(cls, data: Optional[dict], section: str):
    """Instantiate a settings dataclass, rejecting unknown keys."""
    data = data or {}
    if not isinstance(data, dict):
        raise ConfigurationError(f"'{section}' must be a mapping", field=section)

    known = {f.name for f in fields(cls)}
    unknown = sorted(set(data) - known)
    if unknown:
        raise ConfigurationError(
            f"Unknown keys in '{section}': {', '.join(unknown)}. "
            f"Allowed: {', '.join(sorted(known))}",
            field=section
        )

    try:
        return cls(**data)
    except (TypeError, ValueError) as e:
        raise ConfigurationError(f"Invalid '{section}' settings: {e}", field=section) from e


def parse_settings(raw_data: dict) -> Settings:
    """
    Build Settings from an already-parsed mapping.

    The Notion token falls back to the NOTION_API_TOKEN environment variable.
    """
    data = _substitute_env_vars(raw_data)

    token = data.get("notion_token") or os.environ.get(TOKEN_ENV_VAR)
    if not token:
        raise ConfigurationError(
            f"Notion token missing. Set 'notion_token' or export {TOKEN_ENV_VAR}",
            field="notion_token"
        )

    database_id = data.get("database_id")
    if not database_id:
        raise ConfigurationError("'database_id' is required", field="database_id")

    return Settings(
        notion_token=token,
        database_id=str(database_id),
        timezone=data.get("timezone", "UTC"),
        timestamp=data.get("timestamp"),
        request_timeout=data.get("request_timeout", DEFAULT_TIMEOUT),
        properties=_build(PropertySelections, data.get("properties"), "properties"),
        options=_build(RunOptions, data.get("options"), "options"),
        rate_limit=_build(RateLimitSettings, data.get("rate_limit"), "rate_limit"),
        retry=_build(RetrySettings, data.get("retry"), "retry"),
    )


def load_settings(config_path: str) -> Settings:
    """
    Load and parse a YAML settings file.

    Environment variables in the format ${VAR_NAME} or ${VAR_NAME:-default}
    are substituted during loading.

    Args:
        config_path: Path to the YAML settings file

    Returns:
        Parsed Settings object
    """
    config_file = Path(config_path)
    if not config_file.exists():
        raise ConfigurationError(f"Configuration file not found: {config_path}")

    try:
        with open(config_file) as f:
            raw_data = yaml.safe_load(f)
    except yaml.YAMLError as e:
        raise ConfigurationError(f"Invalid YAML in {config_path}: {e}")

    if not raw_data:
        raise ConfigurationError(f"Empty configuration file: {config_path}")

    return parse_settings(raw_data)
