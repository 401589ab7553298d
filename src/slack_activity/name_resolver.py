"""Resolve Slack user ids to display names"""

import asyncio
import logging
from typing import Any, Dict, Iterable, List, Optional, Set

from .errors import SlackClientError
from .models import MatchedMessageContext
from .slack_client import SlackActivityClient

# Order in which user fields are tried for a readable name
PROFILE_NAME_FIELDS = (
    "display_name_normalized",
    "display_name",
    "real_name_normalized",
    "real_name",
)


def display_name_from_user(user: Dict[str, Any], fallback: str) -> str:
    profile = user.get("profile") or {}
    for field in PROFILE_NAME_FIELDS:
        value = profile.get(field)
        if value:
            return str(value)
    return str(user.get("name") or fallback)


def collect_user_ids(
    matches: Iterable[MatchedMessageContext], target_user_id: Optional[str] = None
) -> List[str]:
    """Every author id in the matches and their context, plus the target"""
    user_ids: Set[str] = set()
    for match in matches:
        if match.target_message.user:
            user_ids.add(match.target_message.user)
        for message in match.context_messages:
            if message.user:
                user_ids.add(message.user)
    if target_user_id:
        user_ids.add(target_user_id)
    return sorted(user_ids)


class UserNameResolver:
    """Look up display names concurrently

    Each id is looked up exactly once. A failed lookup maps the id to
    itself instead of failing the batch.
    """

    def __init__(self, client: SlackActivityClient, max_concurrency: int = 10) -> None:
        self.client = client
        self.max_concurrency = max_concurrency
        self.logger = logging.getLogger(__name__)

    async def resolve(self, user_ids: Iterable[str]) -> Dict[str, str]:
        unique_ids = sorted(set(user_ids))
        semaphore = asyncio.Semaphore(self.max_concurrency)

        async def lookup(user_id: str) -> str:
            async with semaphore:
                try:
                    user = await self.client.get_user_info(user_id)
                    return display_name_from_user(user, user_id)
                except SlackClientError as e:
                    self.logger.warning(f"Could not resolve user {user_id}: {e}")
                    return user_id
                except Exception as e:
                    self.logger.warning(
                        f"Could not resolve user {user_id}: unexpected {type(e).__name__}: {e}"
                    )
                    return user_id

        names = await asyncio.gather(*(lookup(uid) for uid in unique_ids))
        return dict(zip(unique_ids, names))

    async def resolve_for_matches(
        self, matches: Iterable[MatchedMessageContext], target_user_id: str
    ) -> Dict[str, str]:
        return await self.resolve(collect_user_ids(matches, target_user_id))
