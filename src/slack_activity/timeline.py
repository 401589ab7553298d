"""Merge channel history with thread replies and window context around matches

History and thread replies arrive from two different endpoints and overlap
(a thread root shows up in both). They are merged into one per-channel
timeline keyed by ``ts`` and sorted by the numeric value of ``ts``.
"""

from typing import Iterable, List, Optional, Set

from .models import SlackMessage


def thread_root_ids(message: SlackMessage) -> Set[str]:
    """Return the thread root ids a history message points at

    Conditions are evaluated in this order and combined with OR:

    1. the message carries ``thread_ts``: that thread is a root
    2. no ``thread_ts`` but a positive ``reply_count``: the message itself
    3. ``thread_ts == ts``: the message is its own root

    A root reply can satisfy 1 and 3 at once, which yields the same id twice;
    the set collapses it.
    """
    roots: Set[str] = set()
    if message.thread_ts:
        roots.add(message.thread_ts)
    if not message.thread_ts and message.reply_count > 0:
        roots.add(message.ts)
    if message.is_thread_parent:
        roots.add(message.ts)
    return roots


def discover_thread_roots(messages: Iterable[SlackMessage]) -> List[str]:
    """Collect thread roots referenced by ``messages``, ordered by ts"""
    roots: Set[str] = set()
    for message in messages:
        roots.update(thread_root_ids(message))
    return sorted(roots, key=float)


def sort_messages(messages: Iterable[SlackMessage]) -> List[SlackMessage]:
    return sorted(messages, key=lambda m: m.sort_key)


def merge_timeline(*sources: Iterable[SlackMessage]) -> List[SlackMessage]:
    """Merge message sources into one deduplicated timeline

    Later sources overwrite earlier ones on duplicate ``ts``. The result is
    strictly ascending by ``float(ts)``.
    """
    by_ts = {}
    for source in sources:
        for message in source:
            by_ts[message.ts] = message
    return sort_messages(by_ts.values())


def is_user_message(message: SlackMessage, user_id: str) -> bool:
    """True for plain messages authored by ``user_id``

    Messages with a subtype (joins, edits, bot posts, ...) never count.
    """
    return message.user == user_id and not message.subtype


def select_user_messages(
    timeline: Iterable[SlackMessage], user_id: str
) -> List[SlackMessage]:
    return [m for m in timeline if is_user_message(m, user_id)]


class ContextWindowBuilder:
    """Compute the context window around a matched message

    Threaded matches only see their own thread (root + replies). Top-level
    matches see their neighbours in the full channel timeline. Windows clamp
    at sequence ends and never include the match itself.

    If the thread root was not fetched (it predates the queried range), the
    window is taken over whatever thread messages are present.

    Example:
        >>> builder = ContextWindowBuilder(window_size=1)
        >>> builder.build(timeline, match)  # [previous, next]
    """

    def __init__(self, window_size: int):
        if window_size < 0:
            raise ValueError("window_size must be non-negative")
        self.window_size = window_size

    def build(
        self, timeline: List[SlackMessage], target: SlackMessage
    ) -> List[SlackMessage]:
        if target.thread_ts:
            sequence = self.thread_messages(timeline, target.thread_ts)
        else:
            sequence = timeline
        return self._window(sequence, target)

    @staticmethod
    def thread_messages(
        timeline: Iterable[SlackMessage], thread_ts: str
    ) -> List[SlackMessage]:
        return sort_messages(
            m for m in timeline if m.thread_ts == thread_ts or m.ts == thread_ts
        )

    def _window(
        self, sequence: List[SlackMessage], target: SlackMessage
    ) -> List[SlackMessage]:
        index = _index_of(sequence, target.ts)
        if index is None:
            return []
        start = max(0, index - self.window_size)
        end = min(len(sequence), index + self.window_size + 1)
        return [m for m in sequence[start:end] if m.ts != target.ts]


def _index_of(sequence: List[SlackMessage], ts: str) -> Optional[int]:
    for i, message in enumerate(sequence):
        if message.ts == ts:
            return i
    return None
