"""Typed events handed to listeners.

Events are built from packet fields, never from the cache after mutation, so
they stay meaningful when the affected entity was not cached. They keep a
reference to the owning session for listeners that want to look up the
current state of the entities they name.
"""
from dataclasses import dataclass, field
from enum import Enum
from typing import TYPE_CHECKING, Any, ClassVar, Optional

from core.entities import Channel, Emoji, Message, Server

if TYPE_CHECKING:
    from core.session import Session


class EventKind(Enum):
    REACTION_ADD = "reaction_add"
    REACTION_REMOVE = "reaction_remove"
    REACTION_REMOVE_ALL = "reaction_remove_all"
    REACTION_REMOVE_EMOJI = "reaction_remove_emoji"
    MESSAGE_CREATE = "message_create"
    MESSAGE_DELETE = "message_delete"
    CHANNEL_CREATE = "channel_create"
    CHANNEL_DELETE = "channel_delete"
    SERVER_JOIN = "server_join"
    SERVER_LEAVE = "server_leave"


@dataclass(frozen=True)
class Event:
    kind: ClassVar[EventKind]

    session: Optional["Session"] = field(default=None, compare=False, repr=False, kw_only=True)

    def _cache(self) -> Any:
        if self.session is None:
            return None
        return self.session.cache


@dataclass(frozen=True)
class ChannelEvent(Event):
    channel_id: int
    server_id: Optional[int]

    def get_channel(self) -> Optional[Channel]:
        cache = self._cache()
        return cache.get_channel_by_id(self.channel_id) if cache is not None else None

    def get_server(self) -> Optional[Server]:
        cache = self._cache()
        if cache is None or self.server_id is None:
            return None
        return cache.get_server_by_id(self.server_id)


@dataclass(frozen=True)
class MessageEvent(ChannelEvent):
    message_id: int

    def get_cached_message(self) -> Optional[Message]:
        cache = self._cache()
        return cache.get_cached_message_by_id(self.message_id) if cache is not None else None


@dataclass(frozen=True)
class ReactionAddEvent(MessageEvent):
    kind = EventKind.REACTION_ADD
    user_id: int
    emoji: Emoji


@dataclass(frozen=True)
class ReactionRemoveEvent(MessageEvent):
    kind = EventKind.REACTION_REMOVE
    user_id: int
    emoji: Emoji


@dataclass(frozen=True)
class ReactionRemoveAllEvent(MessageEvent):
    """All reactions were removed from a message."""
    kind = EventKind.REACTION_REMOVE_ALL


@dataclass(frozen=True)
class ReactionRemoveEmojiEvent(MessageEvent):
    """Every reaction of a single emoji was removed from a message."""
    kind = EventKind.REACTION_REMOVE_EMOJI
    emoji: Emoji


@dataclass(frozen=True)
class MessageCreateEvent(MessageEvent):
    kind = EventKind.MESSAGE_CREATE
    author_id: Optional[int]
    content: str


@dataclass(frozen=True)
class MessageDeleteEvent(MessageEvent):
    kind = EventKind.MESSAGE_DELETE


@dataclass(frozen=True)
class ChannelCreateEvent(ChannelEvent):
    kind = EventKind.CHANNEL_CREATE
    name: str


@dataclass(frozen=True)
class ChannelDeleteEvent(ChannelEvent):
    kind = EventKind.CHANNEL_DELETE


@dataclass(frozen=True)
class ServerEvent(Event):
    server_id: int

    def get_server(self) -> Optional[Server]:
        cache = self._cache()
        return cache.get_server_by_id(self.server_id) if cache is not None else None


@dataclass(frozen=True)
class ServerJoinEvent(ServerEvent):
    kind = EventKind.SERVER_JOIN
    name: str


@dataclass(frozen=True)
class ServerLeaveEvent(ServerEvent):
    """The session lost access to a server (left, kicked, or outage)."""
    kind = EventKind.SERVER_LEAVE
    unavailable: bool = False
