"""Pydantic models for extracted Slack activity"""

from datetime import datetime, timezone
from typing import Any, Dict, List, Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator


class SlackMessage(BaseModel):
    """A single Slack message as returned by history or replies endpoints

    ``ts`` is Slack's message timestamp. It is unique within a channel and is
    the message id; ordering must always compare ``float(ts)``.
    """

    ts: str
    channel: str
    user: Optional[str] = None
    text: Optional[str] = None
    thread_ts: Optional[str] = None
    subtype: Optional[str] = None
    reply_count: int = 0

    @property
    def sort_key(self) -> float:
        return float(self.ts)

    @property
    def timestamp(self) -> datetime:
        """Convert Slack timestamp to an aware UTC datetime"""
        return datetime.fromtimestamp(float(self.ts), tz=timezone.utc)

    @property
    def is_thread_parent(self) -> bool:
        return self.thread_ts is not None and self.thread_ts == self.ts

    @classmethod
    def from_api(cls, data: Dict[str, Any], channel_id: str) -> "SlackMessage":
        """Build a message from a raw Slack API dict"""
        return cls(
            ts=data["ts"],
            channel=channel_id,
            user=data.get("user"),
            text=data.get("text"),
            thread_ts=data.get("thread_ts"),
            subtype=data.get("subtype"),
            reply_count=data.get("reply_count") or 0,
        )


class SlackChannel(BaseModel):
    """Represents a Slack channel"""

    id: str
    name: str
    is_member: Optional[bool] = None

    @classmethod
    def from_api(cls, data: Dict[str, Any]) -> "SlackChannel":
        return cls(
            id=data["id"],
            name=data.get("name") or data["id"],
            is_member=data.get("is_member"),
        )


class MatchedMessageContext(BaseModel):
    """A target-user message plus the messages around it"""

    model_config = ConfigDict(frozen=True)

    target_message: SlackMessage
    context_messages: List[SlackMessage] = Field(default_factory=list)
    channel_name: str

    @property
    def before(self) -> List[SlackMessage]:
        target = self.target_message.sort_key
        return [m for m in self.context_messages if m.sort_key < target]

    @property
    def after(self) -> List[SlackMessage]:
        target = self.target_message.sort_key
        return [m for m in self.context_messages if m.sort_key > target]


class Period(BaseModel):
    model_config = ConfigDict(frozen=True)

    start: str
    end: str

    @classmethod
    def from_datetimes(cls, start: datetime, end: datetime) -> "Period":
        return cls(start=to_iso_utc(start), end=to_iso_utc(end))


class ExtractionSummary(BaseModel):
    model_config = ConfigDict(frozen=True)

    total_matches: int
    total_channels: int
    channels_processed: List[str] = Field(default_factory=list)


class ExtractionResult(BaseModel):
    """Result of one extraction run, immutable once built"""

    model_config = ConfigDict(frozen=True)

    period: Period
    target_user_id: str
    matches: List[MatchedMessageContext] = Field(default_factory=list)
    summary: ExtractionSummary
    display_names: Dict[str, str] = Field(default_factory=dict)
    context_window_size: int

    @field_validator("context_window_size")
    @classmethod
    def validate_window_size(cls, v: int) -> int:
        if v < 0:
            raise ValueError("context_window_size must be non-negative")
        return v

    def display_name(self, user_id: Optional[str]) -> Optional[str]:
        if not user_id:
            return None
        return self.display_names.get(user_id)


def to_iso_utc(value: datetime) -> str:
    """ISO-8601 string in UTC with millisecond precision and a Z suffix"""
    utc = value.astimezone(timezone.utc)
    return utc.strftime("%Y-%m-%dT%H:%M:%S.") + f"{utc.microsecond // 1000:03d}Z"


def to_slack_ts(value: datetime) -> str:
    """Convert a datetime to Slack's ``seconds.micros`` timestamp form"""
    return f"{value.timestamp():.6f}"
