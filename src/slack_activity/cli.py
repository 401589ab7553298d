"""CLI interface for slack-activity"""

import asyncio
import logging
import os
from collections import Counter
from typing import List

import click
from rich.console import Console
from rich.markup import escape
from rich.panel import Panel
from rich.table import Table

from .channel_detector import ChannelDetector
from .config import AppConfig, SlackSettings, load_config, resolve_period
from .errors import AppError
from .message_processor import MessageProcessor
from .models import ExtractionResult
from .report_formatter import ReportFormatter
from .slack_client import ChannelCache, SlackActivityClient

console = Console()

LOG_FORMAT = "%(asctime)s - %(name)s - %(levelname)s - %(message)s"
LOG_LEVELS = ["debug", "info", "warn", "warning", "error"]


def configure_logging(level: str) -> None:
    logging.basicConfig(level=level.upper(), format=LOG_FORMAT, force=True)


def _fail(error: Exception) -> None:
    """Print an error and exit; validation problems exit with 2, faults with 1"""
    if isinstance(error, AppError):
        console.print(f"[red]Error {escape(f'[{error.code}]')}: {escape(error.message)}[/red]")
        raise SystemExit(2 if error.is_validation_error else 1)
    console.print(f"[red]Unexpected error: {escape(str(error))}[/red]")
    raise SystemExit(1)


def _unique(ids: List[str]) -> List[str]:
    return list(dict.fromkeys(ids))


@click.group()
@click.option(
    '--log-level',
    type=click.Choice(LOG_LEVELS, case_sensitive=False),
    default=lambda: os.environ.get("LOG_LEVEL", "info").lower(),
    help='Log level (default: info, or $LOG_LEVEL)',
)
def cli(log_level):
    """Slack Activity - extract a user's Slack messages with their context"""
    configure_logging(log_level)


@cli.command()
@click.option('--start-date', '-s', help='Start date YYYY-MM-DD')
@click.option('--end-date', '-e', help='End date YYYY-MM-DD (inclusive)')
@click.option('--user-id', '-u', help='Target user id (default: $TARGET_USER_ID or token owner)')
@click.option('--format', '-f', 'output_format', type=click.Choice(['json', 'markdown']), help='Output format')
@click.option('--output', '-o', help='Output file name, supports {datetime} (legacy: {date})')
@click.option('--config', '-c', 'config_path', help='Config file path (YAML or JSON)')
def extract(start_date, end_date, user_id, output_format, output, config_path):
    """Extract messages of one user with surrounding context

    Examples:
        \b
        # Last 30 days for the token owner, JSON output
        slack-activity extract

        \b
        # Markdown report for a given user and range
        slack-activity extract -u U012ABC3DEF -s 2024-01-01 -e 2024-01-31 -f markdown
    """
    try:
        asyncio.run(_extract_async(start_date, end_date, user_id, output_format, output, config_path))
    except Exception as e:
        _fail(e)


async def _select_channels(
    detector: ChannelDetector, config: AppConfig, user_id: str, start, end
) -> List[str]:
    if config.include_channels:
        channel_ids = await detector.resolve_channel_ids(config.include_channels)
    else:
        channel_ids = await detector.detect_active_channels(
            user_id, start, end, config.exclude_channels
        )
    if config.exclude_channels:
        exclude_ids = set(await detector.resolve_channel_ids(config.exclude_channels))
        channel_ids = [c for c in channel_ids if c not in exclude_ids]
    return _unique(channel_ids)


async def _extract_async(start_date, end_date, user_id, output_format, output, config_path):
    """Async implementation of extract command"""
    logger = logging.getLogger(__name__)

    settings = SlackSettings.from_env()
    config = load_config(config_path)
    start, end = resolve_period(config, start_date, end_date)
    output_format = output_format or config.output_format
    logger.info(f"Extraction period: {start.isoformat()} to {end.isoformat()}")

    client = SlackActivityClient(settings.token, channel_cache=ChannelCache())
    target_user_id = user_id or settings.user_id or await client.get_auth_user_id()
    if not target_user_id:
        raise AppError("Could not determine the target user id", "MISSING_USER", 400)

    console.print(Panel.fit(
        f"[bold blue]Slack Activity Extraction[/bold blue]\n"
        f"User: {target_user_id}\n"
        f"Period: {start:%Y-%m-%d %H:%M} to {end:%Y-%m-%d %H:%M}\n"
        f"Context: {config.context_message_count} messages each side",
        border_style="blue"
    ))

    detector = ChannelDetector(client)
    with console.status("[cyan]Resolving channels..."):
        channel_ids = await _select_channels(detector, config, target_user_id, start, end)
    if not channel_ids:
        console.print("[yellow]No channels to process. Check includeChannels/excludeChannels.[/yellow]")
    logger.info(f"Channels to process: {len(channel_ids)}")

    processor = MessageProcessor(client)
    with console.status(f"[cyan]Extracting messages from {len(channel_ids)} channels..."):
        result = await processor.extract_user_messages_with_context(
            channel_ids, target_user_id, start, end, config.context_message_count
        )

    formatter = ReportFormatter()
    file_name = formatter.build_file_name(output or config.output_file_name, output_format)
    content = formatter.render(result, output_format)
    path = formatter.save(content, file_name, config.output_dir)

    _print_summary(result)
    console.print(f"[green]✓ Wrote {output_format} report to {path}[/green]")


def _print_summary(result: ExtractionResult) -> None:
    per_channel = Counter(m.channel_name for m in result.matches)
    table = Table(title="Extraction Summary", show_header=True, header_style="bold cyan")
    table.add_column("Channel", style="cyan")
    table.add_column("Messages", justify="right")
    for channel_name in result.summary.channels_processed:
        table.add_row(f"#{channel_name}", str(per_channel[channel_name]))
    console.print(table)
    console.print(
        f"\n[bold]Total:[/bold] {result.summary.total_matches} messages "
        f"in {result.summary.total_channels} channels"
    )


@cli.command()
@click.argument('names', nargs=-1)
def channels(names):
    """List channels, or check that NAMES resolve to channel ids

    Examples:
        \b
        slack-activity channels
        slack-activity channels general C0123456789
    """
    try:
        asyncio.run(_channels_async(list(names)))
    except Exception as e:
        _fail(e)


async def _channels_async(names: List[str]):
    settings = SlackSettings.from_env()
    client = SlackActivityClient(settings.token, channel_cache=ChannelCache())

    if not names:
        channel_list = await client.list_channels()
        table = Table(title="Channels", show_header=True, header_style="bold cyan")
        table.add_column("ID", style="cyan")
        table.add_column("Name")
        table.add_column("Member")
        for channel in sorted(channel_list, key=lambda c: c.name):
            table.add_row(channel.id, f"#{channel.name}", "yes" if channel.is_member else "-")
        console.print(table)
        return

    resolution = await client.resolve_channel_ids(names)
    for channel_id in resolution.valid:
        console.print(f"[green]✓ {channel_id} #{client.get_cached_channel_name(channel_id)}[/green]")
    for token in resolution.invalid:
        console.print(f"[red]✗ {token} not found[/red]")


if __name__ == "__main__":
    cli()
