"""Extract a user's messages with surrounding context"""

import logging
from datetime import datetime
from typing import List, Optional, Sequence, Union

from .models import (
    ExtractionResult,
    ExtractionSummary,
    MatchedMessageContext,
    Period,
    SlackChannel,
)
from .name_resolver import UserNameResolver
from .slack_client import SlackActivityClient, as_slack_ts
from .timeline import ContextWindowBuilder, select_user_messages


class MessageProcessor:
    """Build an ``ExtractionResult`` for one user over a set of channels

    Channels are processed in the order given. Fetch failures propagate and
    stop the whole run.

    Example:
        >>> processor = MessageProcessor(client)
        >>> result = await processor.extract_user_messages_with_context(
        ...     ["C0123456789"], "U012ABC3DEF", start, end, context_count=3
        ... )
    """

    def __init__(
        self,
        client: SlackActivityClient,
        name_resolver: Optional[UserNameResolver] = None,
    ) -> None:
        self.client = client
        self.name_resolver = name_resolver or UserNameResolver(client)
        self.logger = logging.getLogger(__name__)

    async def collect_channel_matches(
        self,
        channel_id: str,
        user_id: str,
        start: datetime,
        end: datetime,
        window: ContextWindowBuilder,
    ) -> List[MatchedMessageContext]:
        """Matches with context for a single channel

        The merged timeline only lives for the duration of this call.
        """
        timeline = await self.client.fetch_channel_timeline(
            channel_id, as_slack_ts(start), as_slack_ts(end)
        )
        user_messages = select_user_messages(timeline, user_id)
        self.logger.debug(
            f"Channel {channel_id}: {len(timeline)} messages, "
            f"{len(user_messages)} from target user"
        )
        if not user_messages:
            return []

        channel = await self.client.get_channel_info(channel_id)
        return [
            MatchedMessageContext(
                target_message=message,
                context_messages=window.build(timeline, message),
                channel_name=channel.name,
            )
            for message in user_messages
        ]

    async def extract_user_messages_with_context(
        self,
        channels: Sequence[Union[str, SlackChannel]],
        user_id: str,
        start: datetime,
        end: datetime,
        context_count: int,
    ) -> ExtractionResult:
        window = ContextWindowBuilder(context_count)
        channel_ids = [c.id if isinstance(c, SlackChannel) else c for c in channels]

        matches: List[MatchedMessageContext] = []
        channels_processed: List[str] = []

        self.logger.info(f"Extracting messages from {len(channel_ids)} channels")
        for channel_id in channel_ids:
            channel_matches = await self.collect_channel_matches(
                channel_id, user_id, start, end, window
            )
            if not channel_matches:
                continue
            channels_processed.append(channel_matches[0].channel_name)
            matches.extend(channel_matches)

        self.logger.info("Resolving user display names...")
        display_names = await self.name_resolver.resolve_for_matches(matches, user_id)

        result = ExtractionResult(
            period=Period.from_datetimes(start, end),
            target_user_id=user_id,
            matches=matches,
            summary=ExtractionSummary(
                total_matches=len(matches),
                total_channels=len(channels_processed),
                channels_processed=channels_processed,
            ),
            display_names=display_names,
            context_window_size=context_count,
        )
        self.logger.info(
            f"Extraction complete: {result.summary.total_matches} messages "
            f"in {result.summary.total_channels} channels"
        )
        return result
