"""Find the channels a user was active in"""

import logging
from datetime import datetime
from typing import Iterable, List

from .errors import SlackClientError
from .slack_client import SlackActivityClient


class ChannelDetector:
    def __init__(self, client: SlackActivityClient) -> None:
        self.client = client
        self.logger = logging.getLogger(__name__)

    async def resolve_channel_ids(self, channels: Iterable[str]) -> List[str]:
        """Resolve names/ids, warning about the ones that do not exist"""
        resolution = await self.client.resolve_channel_ids(channels)
        if resolution.invalid:
            self.logger.warning(
                f"Ignoring unknown channels: {', '.join(resolution.invalid)}"
            )
        return resolution.valid

    async def detect_active_channels(
        self,
        user_id: str,
        start: datetime,
        end: datetime,
        exclude_channels: Iterable[str] = (),
    ) -> List[str]:
        """Ids of channels where ``user_id`` posted between ``start`` and ``end``

        A channel whose probe fails is skipped; the others are still checked.
        """
        exclude_ids = set((await self.client.resolve_channel_ids(exclude_channels)).valid)
        channels = await self.client.list_channels()
        self.logger.info(f"Detecting active channels among {len(channels)} candidates")

        active: List[str] = []
        for channel in channels:
            if channel.id in exclude_ids:
                continue
            try:
                user_messages = await self.client.find_user_messages(
                    channel.id, user_id, start, end
                )
            except SlackClientError as e:
                self.logger.warning(f"Skipping channel {channel.id} during detection: {e}")
                continue
            except Exception as e:
                self.logger.warning(
                    f"Skipping channel {channel.id} during detection: "
                    f"unexpected {type(e).__name__}: {e}"
                )
                continue
            if user_messages:
                active.append(channel.id)

        self.logger.info(f"Found {len(active)} active channels")
        return active
