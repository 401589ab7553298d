"""Async Slack Web API adapter used by the extraction pipeline"""

import asyncio
import logging
from datetime import datetime
from typing import Any, Awaitable, Callable, Dict, Iterable, List, NoReturn, Optional, Union

import aiohttp
from pydantic import BaseModel, Field
from slack_sdk.errors import SlackApiError
from slack_sdk.errors import SlackClientError as SlackSDKError
from slack_sdk.web.async_client import AsyncWebClient

from .errors import ConfigurationError, RateLimitedError, SlackApiRequestError, SlackClientError
from .models import SlackChannel, SlackMessage, to_slack_ts
from .timeline import discover_thread_roots, merge_timeline, select_user_messages, sort_messages

DEFAULT_RETRY_AFTER_SECONDS = 1.0
CHANNEL_ID_PREFIXES = ("C", "G")

SlackTime = Union[datetime, str, float]


class ChannelCache:
    """Channel metadata cache scoped to one extraction run

    Entries are only ever added. Nothing is evicted while the run lasts.
    """

    def __init__(self) -> None:
        self._channels: Dict[str, SlackChannel] = {}

    def get(self, channel_id: str) -> Optional[SlackChannel]:
        return self._channels.get(channel_id)

    def add(self, channel: SlackChannel) -> None:
        self._channels.setdefault(channel.id, channel)

    def name_for(self, channel_id: str) -> Optional[str]:
        channel = self._channels.get(channel_id)
        return channel.name if channel else None


class ChannelResolution(BaseModel):
    """Outcome of resolving user-supplied channel names/ids"""

    valid: List[str] = Field(default_factory=list)
    invalid: List[str] = Field(default_factory=list)


def looks_like_channel_id(token: str) -> bool:
    return token.startswith(CHANNEL_ID_PREFIXES)


def as_slack_ts(value: SlackTime) -> str:
    if isinstance(value, datetime):
        return to_slack_ts(value)
    if isinstance(value, str):
        return value
    return f"{float(value):.6f}"


def _response_data(response: Any) -> Dict[str, Any]:
    data = getattr(response, "data", None)
    return data if isinstance(data, dict) else {}


def _retry_after_seconds(headers: Any) -> float:
    if not headers:
        return DEFAULT_RETRY_AFTER_SECONDS
    for key, value in dict(headers).items():
        if str(key).lower() != "retry-after":
            continue
        if isinstance(value, (list, tuple)):
            value = value[0] if value else None
        try:
            return float(value)
        except (TypeError, ValueError):
            return DEFAULT_RETRY_AFTER_SECONDS
    return DEFAULT_RETRY_AFTER_SECONDS


class SlackActivityClient:
    """Thin async wrapper around ``AsyncWebClient``

    Handles cursor pagination, ascending ordering of fetched messages,
    thread reply expansion and translation of Slack failures into
    ``SlackApiRequestError`` / ``RateLimitedError``.
    """

    CHANNEL_PAGE_SIZE = 1000
    MESSAGE_PAGE_SIZE = 200
    CHANNEL_TYPES = "public_channel,private_channel"

    def __init__(
        self,
        token: str,
        channel_cache: Optional[ChannelCache] = None,
        max_concurrency: int = 5,
    ) -> None:
        if not token:
            raise ConfigurationError("Slack token is not set", "SLACK_TOKEN_MISSING")
        self.logger = logging.getLogger(__name__)
        self.client: AsyncWebClient = AsyncWebClient(token=token)
        self.channel_cache = channel_cache if channel_cache is not None else ChannelCache()
        self.max_concurrency = max_concurrency

    async def _handle_slack_error(self, error: Exception, failure: str) -> NoReturn:
        """Translate a Slack failure, waiting out rate limits before raising"""
        if isinstance(error, SlackApiError):
            response = error.response
            data = _response_data(response)
            slack_error = data.get("error")
            status = getattr(response, "status_code", None)
            if slack_error == "ratelimited" or status == 429:
                retry_after = _retry_after_seconds(getattr(response, "headers", None))
                self.logger.warning(
                    f"Slack API rate limited ({failure}), waiting {retry_after}s"
                )
                await asyncio.sleep(retry_after)
                raise RateLimitedError(
                    f"{failure}: rate limited", retry_after=retry_after
                ) from error
            cause = slack_error or str(error)
            raise SlackApiRequestError(f"{failure}: {cause}", slack_error=slack_error) from error
        raise SlackApiRequestError(f"{failure}: {error}") from error

    async def _call(
        self, method: Callable[..., Awaitable[Any]], failure: str, **kwargs: Any
    ) -> Dict[str, Any]:
        try:
            response = await method(**kwargs)
        except (SlackSDKError, aiohttp.ClientError, asyncio.TimeoutError) as e:
            await self._handle_slack_error(e, failure)
        return _response_data(response)

    async def _paginate(
        self,
        method: Callable[..., Awaitable[Any]],
        items_key: str,
        failure: str,
        **params: Any,
    ) -> List[Dict[str, Any]]:
        """Follow ``next_cursor`` until Slack stops returning one

        Pages are requested one after another since every cursor comes from
        the previous response.
        """
        items: List[Dict[str, Any]] = []
        cursor: Optional[str] = None
        while True:
            kwargs = dict(params)
            if cursor:
                kwargs["cursor"] = cursor
            data = await self._call(method, failure, **kwargs)
            page = data.get(items_key) or []
            items.extend(page)
            cursor = (data.get("response_metadata") or {}).get("next_cursor") or None
            self.logger.debug(f"{items_key}: page of {len(page)}, total {len(items)}")
            if not cursor:
                break
        return items

    async def get_auth_user_id(self) -> Optional[str]:
        """User id that owns the token, or None if auth.test fails"""
        try:
            data = await self._call(self.client.auth_test, "auth.test failed")
        except SlackClientError as e:
            self.logger.warning(f"Could not determine token owner: {e}")
            return None
        return data.get("user_id")

    async def list_channels(self) -> List[SlackChannel]:
        """List every channel visible to the token, populating the cache"""
        self.logger.info("Fetching channel list...")
        raw_channels = await self._paginate(
            self.client.conversations_list,
            "channels",
            "Failed to list channels",
            limit=self.CHANNEL_PAGE_SIZE,
            types=self.CHANNEL_TYPES,
        )
        channels = [SlackChannel.from_api(c) for c in raw_channels]
        for channel in channels:
            self.channel_cache.add(channel)
        self.logger.info(f"Fetched {len(channels)} channels")
        return channels

    async def get_channel_info(self, channel_id: str) -> SlackChannel:
        """Channel metadata, cache first

        Falls back to a channel named after its id when Slack cannot tell us.
        """
        cached = self.channel_cache.get(channel_id)
        if cached:
            return cached
        try:
            data = await self._call(
                self.client.conversations_info,
                f"Failed to fetch channel info ({channel_id})",
                channel=channel_id,
            )
        except SlackClientError as e:
            self.logger.warning(f"Using channel id as name for {channel_id}: {e}")
            return SlackChannel(id=channel_id, name=channel_id)
        raw = data.get("channel")
        if not raw:
            return SlackChannel(id=channel_id, name=channel_id)
        channel = SlackChannel.from_api(raw)
        self.channel_cache.add(channel)
        return channel

    def get_cached_channel_name(self, channel_id: str) -> Optional[str]:
        return self.channel_cache.name_for(channel_id)

    async def get_history(
        self, channel_id: str, oldest: SlackTime, latest: SlackTime
    ) -> List[SlackMessage]:
        """Channel history between ``oldest`` and ``latest``, both inclusive"""
        raw_messages = await self._paginate(
            self.client.conversations_history,
            "messages",
            f"Failed to fetch history for channel {channel_id}",
            channel=channel_id,
            oldest=as_slack_ts(oldest),
            latest=as_slack_ts(latest),
            inclusive=True,
            limit=self.MESSAGE_PAGE_SIZE,
        )
        return sort_messages(SlackMessage.from_api(m, channel_id) for m in raw_messages)

    async def get_thread_replies(
        self, channel_id: str, thread_ts: str, oldest: SlackTime, latest: SlackTime
    ) -> List[SlackMessage]:
        """All messages of one thread (root included when Slack returns it)"""
        raw_messages = await self._paginate(
            self.client.conversations_replies,
            "messages",
            f"Failed to fetch thread replies ({channel_id}/{thread_ts})",
            channel=channel_id,
            ts=thread_ts,
            oldest=as_slack_ts(oldest),
            latest=as_slack_ts(latest),
            inclusive=True,
            limit=self.MESSAGE_PAGE_SIZE,
        )
        messages = []
        for raw in raw_messages:
            message = SlackMessage.from_api(raw, channel_id)
            if not message.thread_ts and message.reply_count:
                message = message.model_copy(update={"thread_ts": message.ts})
            messages.append(message)
        return sort_messages(messages)

    async def fetch_channel_timeline(
        self, channel_id: str, oldest: SlackTime, latest: SlackTime
    ) -> List[SlackMessage]:
        """History merged with the replies of every thread it references

        Deduplicated by ts (replies win) and sorted ascending.
        """
        base = await self.get_history(channel_id, oldest, latest)
        roots = discover_thread_roots(base)
        replies = await self._fetch_threads(channel_id, roots, oldest, latest)
        timeline = merge_timeline(base, *replies)
        self.logger.debug(
            f"Channel {channel_id}: {len(base)} history messages, "
            f"{len(roots)} threads, {len(timeline)} in timeline"
        )
        return timeline

    async def _fetch_threads(
        self,
        channel_id: str,
        roots: Iterable[str],
        oldest: SlackTime,
        latest: SlackTime,
    ) -> List[List[SlackMessage]]:
        semaphore = asyncio.Semaphore(self.max_concurrency)

        async def fetch_one(thread_ts: str) -> List[SlackMessage]:
            async with semaphore:
                return await self.get_thread_replies(channel_id, thread_ts, oldest, latest)

        tasks = [asyncio.ensure_future(fetch_one(ts)) for ts in roots]
        try:
            return list(await asyncio.gather(*tasks))
        except BaseException:
            # first failure wins; no sibling fetch may outlive the call
            for task in tasks:
                task.cancel()
            await asyncio.gather(*tasks, return_exceptions=True)
            raise

    async def find_user_messages(
        self, channel_id: str, user_id: str, oldest: SlackTime, latest: SlackTime
    ) -> List[SlackMessage]:
        """Messages authored by ``user_id`` across history and threads"""
        timeline = await self.fetch_channel_timeline(channel_id, oldest, latest)
        return select_user_messages(timeline, user_id)

    async def get_user_info(self, user_id: str) -> Dict[str, Any]:
        data = await self._call(
            self.client.users_info,
            f"Failed to fetch user info ({user_id})",
            user=user_id,
        )
        return data.get("user") or {}

    async def resolve_channel_ids(self, tokens: Iterable[str]) -> ChannelResolution:
        """Map channel names or ids to ids known to the workspace

        Tokens starting with C or G are ids, anything else is an exact
        channel name (a leading ``#`` is ignored).
        """
        tokens = list(tokens)
        resolution = ChannelResolution()
        if not tokens:
            return resolution

        channels = await self.list_channels()
        known_ids = {c.id for c in channels}
        by_name = {c.name: c.id for c in channels}

        for token in tokens:
            if looks_like_channel_id(token):
                if token in known_ids:
                    resolution.valid.append(token)
                else:
                    resolution.invalid.append(token)
                continue
            channel_id = by_name.get(token.lstrip("#"))
            if channel_id:
                resolution.valid.append(channel_id)
            else:
                resolution.invalid.append(token)
        return resolution
