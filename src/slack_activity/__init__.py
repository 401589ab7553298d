"""Slack Activity - extract one user's Slack messages with their context"""

from .models import (
    SlackMessage,
    SlackChannel,
    MatchedMessageContext,
    ExtractionResult,
    ExtractionSummary,
    Period,
)
from .errors import (
    AppError,
    SlackClientError,
    SlackApiRequestError,
    RateLimitedError,
    ConfigurationError,
)
from .slack_client import SlackActivityClient, ChannelCache, ChannelResolution
from .channel_detector import ChannelDetector
from .message_processor import MessageProcessor
from .name_resolver import UserNameResolver
from .report_formatter import ReportFormatter
from .cli import cli

__all__ = [
    "SlackMessage",
    "SlackChannel",
    "MatchedMessageContext",
    "ExtractionResult",
    "ExtractionSummary",
    "Period",
    "AppError",
    "SlackClientError",
    "SlackApiRequestError",
    "RateLimitedError",
    "ConfigurationError",
    "SlackActivityClient",
    "ChannelCache",
    "ChannelResolution",
    "ChannelDetector",
    "MessageProcessor",
    "UserNameResolver",
    "ReportFormatter",
    "cli",
]
