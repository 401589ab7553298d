"""Error types raised by slack-activity"""

from typing import Optional


class AppError(Exception):
    """Base error carrying a machine-readable code and a status

    status_code 400 marks an expected validation failure (bad config, bad
    dates, missing user), anything else is treated as a runtime fault.
    """

    def __init__(self, message: str, code: str, status_code: int = 500):
        super().__init__(message)
        self.message = message
        self.code = code
        self.status_code = status_code

    @property
    def is_validation_error(self) -> bool:
        return self.status_code == 400


class SlackClientError(AppError):
    """Base class for failures talking to the Slack Web API"""


class SlackApiRequestError(SlackClientError):
    """A Slack API call failed for a reason other than rate limiting"""

    def __init__(self, message: str, slack_error: Optional[str] = None):
        super().__init__(message, "SLACK_API_ERROR", 500)
        self.slack_error = slack_error


class RateLimitedError(SlackClientError):
    """Slack answered with a rate limit; the caller may retry after waiting"""

    def __init__(self, message: str, retry_after: float = 1.0):
        super().__init__(message, "SLACK_RATE_LIMITED", 429)
        self.retry_after = retry_after


class ConfigurationError(AppError):
    """Configuration, environment or CLI input is invalid"""

    def __init__(self, message: str, code: str = "CONFIG_INVALID"):
        super().__init__(message, code, 400)
