"""Test Pydantic models"""

import pytest
from datetime import datetime, timezone
from pydantic import ValidationError

from slack_activity import (
    SlackChannel,
    SlackMessage,
    MatchedMessageContext,
    ExtractionResult,
    ExtractionSummary,
    Period,
)
from slack_activity.models import to_iso_utc, to_slack_ts
from tests.fixtures import api_message, message, TARGET_USER


class TestSlackMessage:
    """Test SlackMessage model"""

    def test_from_api_extracts_fields(self):
        raw = api_message(
            "1697654321.123456",
            user=TARGET_USER,
            text="Thread parent",
            thread_ts="1697654321.123456",
            reply_count=5,
        )

        msg = SlackMessage.from_api(raw, "C0123456789")

        assert msg.ts == "1697654321.123456"
        assert msg.user == TARGET_USER
        assert msg.channel == "C0123456789"
        assert msg.thread_ts == "1697654321.123456"
        assert msg.reply_count == 5
        assert msg.subtype is None

    def test_from_api_keeps_subtype(self):
        raw = {"ts": "1697654321.000100", "subtype": "channel_join", "user": TARGET_USER}

        msg = SlackMessage.from_api(raw, "C0123456789")

        assert msg.subtype == "channel_join"
        assert msg.reply_count == 0

    def test_thread_flags(self):
        parent = message("100.0", thread_ts="100.0", reply_count=1)
        reply = message("101.0", thread_ts="100.0")
        standalone = message("102.0")

        assert parent.is_thread_parent
        assert not reply.is_thread_parent
        assert not standalone.is_thread_parent

    def test_timestamp_is_utc(self):
        msg = message("1697654321.123456")
        assert msg.timestamp == datetime(2023, 10, 18, 18, 38, 41, 123456, tzinfo=timezone.utc)

    def test_sort_key_is_numeric(self):
        assert message("10.0").sort_key > message("9.5").sort_key


class TestSlackChannel:
    def test_from_api(self):
        channel = SlackChannel.from_api({"id": "C0123456789", "name": "general", "is_member": True})
        assert channel.name == "general"
        assert channel.is_member is True

    def test_missing_name_falls_back_to_id(self):
        channel = SlackChannel.from_api({"id": "D0123456789"})
        assert channel.name == "D0123456789"


class TestMatchedMessageContext:
    def test_before_and_after_split_around_target(self):
        match = MatchedMessageContext(
            target_message=message("3", user=TARGET_USER),
            context_messages=[message("1"), message("2"), message("4")],
            channel_name="general",
        )

        assert [m.ts for m in match.before] == ["1", "2"]
        assert [m.ts for m in match.after] == ["4"]


class TestExtractionResult:
    @pytest.fixture
    def result(self):
        return ExtractionResult(
            period=Period(start="2024-01-01T00:00:00.000Z", end="2024-01-31T00:00:00.000Z"),
            target_user_id=TARGET_USER,
            summary=ExtractionSummary(total_matches=0, total_channels=0),
            display_names={TARGET_USER: "johnny"},
            context_window_size=3,
        )

    def test_is_immutable(self, result):
        with pytest.raises(ValidationError):
            result.target_user_id = "U000"

    def test_display_name_lookup(self, result):
        assert result.display_name(TARGET_USER) == "johnny"
        assert result.display_name("U404") is None
        assert result.display_name(None) is None

    def test_negative_window_rejected(self):
        with pytest.raises(ValidationError):
            ExtractionResult(
                period=Period(start="a", end="b"),
                target_user_id=TARGET_USER,
                summary=ExtractionSummary(total_matches=0, total_channels=0),
                context_window_size=-1,
            )


class TestTimeConversion:
    def test_to_iso_utc(self):
        value = datetime(2024, 1, 2, 3, 4, 5, 678900, tzinfo=timezone.utc)
        assert to_iso_utc(value) == "2024-01-02T03:04:05.678Z"

    def test_period_from_datetimes(self):
        start = datetime(2024, 1, 1, tzinfo=timezone.utc)
        end = datetime(2024, 1, 31, 23, 59, 59, 999999, tzinfo=timezone.utc)

        period = Period.from_datetimes(start, end)

        assert period.start == "2024-01-01T00:00:00.000Z"
        assert period.end == "2024-01-31T23:59:59.999Z"

    def test_to_slack_ts(self):
        value = datetime(2023, 10, 18, 18, 38, 41, 123456, tzinfo=timezone.utc)
        assert to_slack_ts(value) == "1697654321.123456"
