"""Render an ExtractionResult as JSON or a Markdown report"""

from datetime import datetime
from pathlib import Path
from typing import List, Literal, Optional

from .models import ExtractionResult, MatchedMessageContext, SlackMessage, to_iso_utc

OutputFormat = Literal["json", "markdown"]

DEFAULT_OUTPUT_DIR = "outputs"
TARGET_MARKER = "  <= TARGET"


class ReportFormatter:
    """Format extraction results for humans or downstream tools

    Example:
        >>> formatter = ReportFormatter()
        >>> content = formatter.render(result, "markdown")
        >>> path = formatter.save(content, formatter.build_file_name(None, "markdown"))
    """

    def render(self, result: ExtractionResult, output_format: OutputFormat) -> str:
        if output_format == "json":
            return result.model_dump_json(indent=2)
        return self.to_markdown(result)

    def to_markdown(self, result: ExtractionResult) -> str:
        target = result.target_user_id
        output_lines = [
            "# Slack User Activity Report",
            "",
            "Messages posted by one user, each shown with the conversation around it.",
            "",
            f"- Period: {result.period.start} to {result.period.end}",
            f"- Target user: {self._user_label(result, target)} ({target})",
            f"- Context: up to {result.context_window_size} messages before and after",
            f"- Messages: {result.summary.total_matches}",
            f"- Channels: {result.summary.total_channels}",
            "",
            'Times are ISO 8601 (UTC). The matched message is marked with "<= TARGET".',
            "",
        ]
        for match in result.matches:
            output_lines.extend(self._format_match(result, match))
        return "\n".join(output_lines)

    def _format_match(
        self, result: ExtractionResult, match: MatchedMessageContext
    ) -> List[str]:
        target = match.target_message
        lines = [f"## #{match.channel_name} - {self._format_time(target)}", "", "```"]
        for message in match.before:
            lines.append(self._format_line(result, message))
        lines.append(self._format_line(result, target) + TARGET_MARKER)
        for message in match.after:
            lines.append(self._format_line(result, message))
        lines.extend(["```", ""])
        return lines

    def _format_line(self, result: ExtractionResult, message: SlackMessage) -> str:
        return (
            f"[{self._format_time(message)}] "
            f"{self._user_label(result, message.user)}: "
            f"{self._format_text(message)}"
        )

    @staticmethod
    def _format_time(message: SlackMessage) -> str:
        return to_iso_utc(message.timestamp)

    @staticmethod
    def _user_label(result: ExtractionResult, user_id: Optional[str]) -> str:
        if not user_id:
            return "unknown"
        name = result.display_name(user_id)
        return f"@{name}" if name else user_id

    @staticmethod
    def _format_text(message: SlackMessage) -> str:
        text = (message.text or "").strip()
        if text:
            return text
        if message.subtype:
            return f"(no text / {message.subtype})"
        return "(no text)"

    @staticmethod
    def build_file_name(
        pattern: Optional[str],
        output_format: OutputFormat,
        now: Optional[datetime] = None,
    ) -> str:
        """Output file name from an optional ``{datetime}``/``{date}`` pattern"""
        stamp = (now or datetime.now()).strftime("%Y%m%d-%H%M%S")
        extension = ".json" if output_format == "json" else ".md"
        if not pattern:
            return f"slack-activity-{stamp}{extension}"
        file_name = pattern.replace("{datetime}", stamp).replace("{date}", stamp)
        if not file_name.lower().endswith((".json", ".md")):
            file_name += extension
        return file_name

    @staticmethod
    def save(content: str, file_name: str, output_dir: Optional[str] = None) -> Path:
        directory = Path(output_dir.strip() if output_dir and output_dir.strip() else DEFAULT_OUTPUT_DIR)
        directory.mkdir(parents=True, exist_ok=True)
        path = directory / file_name
        path.write_text(content, encoding="utf-8")
        return path
