"""Cached entity snapshots: users, servers, channels, messages and reactions.

Messages are the only entities mutated in place after insertion (their
reaction collection), so each message carries its own lock. Every read of the
reaction collection returns an immutable snapshot.
"""
import threading
from collections import OrderedDict
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Dict, FrozenSet, Iterable, Optional, Tuple


@dataclass(frozen=True)
class Emoji:
    """Emoji identity.

    Custom emojis are identified by ``id``; unicode emojis have no id and are
    identified by ``name``.
    """
    name: Optional[str]
    id: Optional[int] = None

    @property
    def key(self) -> str:
        if self.id is not None:
            return str(self.id)
        return self.name or ""

    @property
    def is_custom(self) -> bool:
        return self.id is not None

    def __str__(self) -> str:
        if self.is_custom:
            return f"<:{self.name}:{self.id}>"
        return self.name or ""


@dataclass(frozen=True)
class Reaction:
    """All reactions of one emoji on a message.

    ``count`` is derived from ``user_ids`` so the two can never disagree.
    """
    emoji: Emoji
    user_ids: FrozenSet[int] = frozenset()

    @property
    def count(self) -> int:
        return len(self.user_ids)

    def contains(self, user_id: int) -> bool:
        return user_id in self.user_ids


@dataclass(frozen=True)
class User:
    id: int
    name: str = ""
    bot: bool = False


@dataclass(frozen=True)
class Server:
    id: int
    name: str = ""


@dataclass(frozen=True)
class Channel:
    """A text channel, either bound to a server or private (DM / group)."""
    id: int
    name: str = ""
    server_id: Optional[int] = None

    def owner_server(self) -> Optional[int]:
        """Id of the server owning this channel, or None for private channels."""
        return self.server_id


@dataclass(eq=False)
class Message:  # pylint: disable=too-many-instance-attributes
    """A cached message and its reactions.

    Attributes:
        id: Message ID
        channel_id: ID of the channel the message was sent in
        author_id: ID of the author, if known
        content: Message content text
        created_at: When the message entered the cache
    """
    id: int
    channel_id: int
    author_id: Optional[int] = None
    content: str = ""
    created_at: datetime = field(default_factory=lambda: datetime.now(timezone.utc))
    _reactions: Dict[str, Reaction] = field(default_factory=OrderedDict, init=False, repr=False)
    _lock: threading.Lock = field(default_factory=threading.Lock, init=False, repr=False)

    @property
    def reactions(self) -> Tuple[Reaction, ...]:
        with self._lock:
            return tuple(self._reactions.values())

    def get_reaction(self, emoji: Emoji) -> Optional[Reaction]:
        with self._lock:
            return self._reactions.get(emoji.key)

    def add_reaction(self, emoji: Emoji, user_id: int) -> Reaction:
        """Record ``user_id`` as reacting with ``emoji``; returns the new record."""
        with self._lock:
            current = self._reactions.get(emoji.key)
            users = current.user_ids if current is not None else frozenset()
            updated = Reaction(emoji=emoji, user_ids=users | {user_id})
            self._reactions[emoji.key] = updated
            return updated

    def remove_reaction(self, emoji: Emoji, user_id: int) -> Optional[Reaction]:
        """Remove one user's reaction.

        Returns:
            The remaining record, or None when the emoji has no reactors left
        """
        with self._lock:
            current = self._reactions.get(emoji.key)
            if current is None:
                return None
            remaining = current.user_ids - {user_id}
            if not remaining:
                del self._reactions[emoji.key]
                return None
            updated = Reaction(emoji=current.emoji, user_ids=remaining)
            self._reactions[emoji.key] = updated
            return updated

    def remove_reaction_emoji(self, emoji: Emoji) -> Optional[Reaction]:
        with self._lock:
            return self._reactions.pop(emoji.key, None)

    def remove_all_reactions(self) -> int:
        """Clear the reaction collection, returning how many records were dropped."""
        with self._lock:
            dropped = len(self._reactions)
            self._reactions = OrderedDict()
            return dropped

    def replace_reactions(self, reactions: Iterable[Reaction]) -> None:
        """Swap in a whole reaction collection, e.g. from a message payload."""
        fresh: Dict[str, Reaction] = OrderedDict()
        for reaction in reactions:
            if reaction.user_ids:
                fresh[reaction.emoji.key] = reaction
        with self._lock:
            self._reactions = fresh
