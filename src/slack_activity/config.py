"""Configuration loading for slack-activity

Settings come from three places:
- environment (and a ``.env`` file) for the Slack token and default user
- a YAML or JSON config file for extraction options
- CLI options, which override the config file
"""

import os
from datetime import date, datetime, time, timedelta
from pathlib import Path
from typing import List, Literal, Optional, Tuple

import yaml
from dotenv import find_dotenv, load_dotenv
from pydantic import BaseModel, ConfigDict, Field, ValidationError
from pydantic.alias_generators import to_camel

from .errors import AppError, ConfigurationError

CONFIG_FILE_NAME = ".slack-activity.yaml"
LEGACY_CONFIG_FILE_NAME = "config.json"

TOKEN_ENV_VARS = ("SLACK_BOT_TOKEN", "SLACK_USER_TOKEN")


class SlackSettings(BaseModel):
    token: str
    user_id: Optional[str] = None

    @classmethod
    def from_env(cls) -> "SlackSettings":
        """Read the Slack token from the environment (after loading .env)"""
        load_dotenv(find_dotenv(usecwd=True))
        token = next((os.environ[v] for v in TOKEN_ENV_VARS if os.environ.get(v)), None)
        if not token:
            raise ConfigurationError(
                "Slack token not found. Set SLACK_BOT_TOKEN or SLACK_USER_TOKEN.",
                "CONFIG_MISSING_TOKEN",
            )
        return cls(token=token, user_id=os.environ.get("TARGET_USER_ID") or None)


class AppConfig(BaseModel):
    """Extraction options

    Keys may be written in snake_case or camelCase (``contextMessageCount``).
    """

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)

    include_channels: List[str] = Field(default_factory=list)
    exclude_channels: List[str] = Field(default_factory=list)
    context_message_count: int = Field(default=3, ge=0)
    default_days: int = Field(default=30, ge=1)
    output_format: Literal["json", "markdown"] = "json"
    output_file_name: Optional[str] = None
    output_dir: str = "outputs"
    start_date: Optional[str] = None
    end_date: Optional[str] = None


def find_config_file() -> Optional[Path]:
    """Look in the current directory, then home, then for a legacy config.json"""
    candidates = [
        Path(CONFIG_FILE_NAME),
        Path.home() / CONFIG_FILE_NAME,
        Path(LEGACY_CONFIG_FILE_NAME),
    ]
    for path in candidates:
        if path.exists():
            return path
    return None


def load_config(config_path: Optional[str] = None) -> AppConfig:
    """Load the config file, or defaults when none exists

    An explicitly given path must exist.
    """
    if config_path:
        path = Path(config_path)
        if not path.exists():
            raise ConfigurationError(
                f"Config file not found: {path}", "CONFIG_FILE_NOT_FOUND"
            )
    else:
        path = find_config_file()
        if path is None:
            return AppConfig()

    try:
        with open(path, encoding="utf-8") as f:
            raw = yaml.safe_load(f) or {}
    except (OSError, yaml.YAMLError) as e:
        raise ConfigurationError(
            f"Failed to read config file {path}: {e}", "CONFIG_PARSE_ERROR"
        ) from e

    if not isinstance(raw, dict):
        raise ConfigurationError(
            f"Config file {path} must contain a mapping", "CONFIG_PARSE_ERROR"
        )
    try:
        return AppConfig.model_validate(raw)
    except ValidationError as e:
        raise ConfigurationError(f"Invalid config in {path}: {e}") from e


def parse_date_input(value: Optional[str], end_of_day: bool = False) -> Optional[datetime]:
    """Parse ``YYYY-MM-DD`` or an ISO datetime into an aware datetime

    Naive values are taken as local time. A bare date means the start of
    that day, or its last microsecond when ``end_of_day`` is set.
    """
    if not value:
        return None
    try:
        if len(value) == 10:
            day = date.fromisoformat(value)
            parsed = datetime.combine(day, time.max if end_of_day else time.min)
        else:
            parsed = datetime.fromisoformat(value)
    except ValueError as e:
        raise AppError(
            f"Invalid date '{value}'. Use YYYY-MM-DD.", "INVALID_DATE", 400
        ) from e
    if parsed.tzinfo is None:
        parsed = parsed.astimezone()
    return parsed


def resolve_period(
    config: AppConfig,
    start_date: Optional[str] = None,
    end_date: Optional[str] = None,
    now: Optional[datetime] = None,
) -> Tuple[datetime, datetime]:
    """Work out the extraction range: CLI option, then config, then defaults"""
    now = now or datetime.now().astimezone()
    end = (
        parse_date_input(end_date, end_of_day=True)
        or parse_date_input(config.end_date, end_of_day=True)
        or now
    )
    start = (
        parse_date_input(start_date)
        or parse_date_input(config.start_date)
        or end - timedelta(days=config.default_days)
    )
    if start > end:
        raise AppError(
            "Start date must not be after end date", "INVALID_DATE_RANGE", 400
        )
    return start, end
