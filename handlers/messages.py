"""Handlers for message creation and deletion packets."""
import logging
from typing import TYPE_CHECKING, Any, Dict, List, Mapping

from core.entities import Message, Reaction, User
from core.errors import DecodeError
from core.events import MessageCreateEvent, MessageDeleteEvent
from core.listeners import Scope
from core.models import Packet, parse_emoji, to_snowflake
from handlers.common import (
    PacketHandler,
    dispatch_channel_event,
    forget_messages,
    resolve_channel,
)

if TYPE_CHECKING:
    from core.session import Session

logger = logging.getLogger(__name__)


def _parse_author(packet: Packet) -> User:
    data = packet.get_mapping("author")
    name = data.get("username") or ""
    if not isinstance(name, str):
        raise DecodeError(packet.type, "author.username", "expected string")
    return User(
        id=to_snowflake(packet.type, "author.id", data.get("id")),
        name=name,
        bot=bool(data.get("bot", False)),
    )


def _parse_reactions(packet: Packet) -> List[Reaction]:
    """Decode the ``reactions`` array of a message payload.

    Entries without ``user_ids`` carry nothing the cache can keep consistent
    and are skipped.
    """
    reactions: List[Reaction] = []
    for entry in packet.get_list("reactions"):
        if not isinstance(entry, Mapping):
            raise DecodeError(packet.type, "reactions", "expected array of objects")
        emoji_data: Any = entry.get("emoji")
        if not isinstance(emoji_data, Mapping):
            raise DecodeError(packet.type, "reactions.emoji", "missing emoji object")
        user_ids = entry.get("user_ids")
        if not user_ids:
            continue
        if not isinstance(user_ids, list):
            raise DecodeError(packet.type, "reactions.user_ids", "expected array")
        users = frozenset(to_snowflake(packet.type, "reactions.user_ids", u) for u in user_ids)
        reactions.append(Reaction(emoji=parse_emoji(packet.type, emoji_data), user_ids=users))
    return reactions


def handle_message_create(session: "Session", packet: Packet) -> None:
    message_id = packet.get_snowflake("id")
    channel_id = packet.get_snowflake("channel_id")
    author = _parse_author(packet)
    content = packet.get_optional_str("content")
    reactions = _parse_reactions(packet)

    channel = resolve_channel(session, packet, channel_id)
    if channel is None:
        return

    session.cache.put_user(author)
    message = Message(id=message_id, channel_id=channel.id, author_id=author.id, content=content)
    message.replace_reactions(reactions)
    forget_messages(session, session.cache.put_message(message))

    event = MessageCreateEvent(
        channel_id=channel.id,
        server_id=channel.owner_server(),
        message_id=message_id,
        author_id=author.id,
        content=content,
        session=session,
    )
    dispatch_channel_event(session, event, channel, entity_scopes=(Scope.user(author.id),))


def handle_message_delete(session: "Session", packet: Packet) -> None:
    message_id = packet.get_snowflake("id")
    channel_id = packet.get_snowflake("channel_id")

    channel = resolve_channel(session, packet, channel_id)
    if channel is None:
        return

    event = MessageDeleteEvent(
        channel_id=channel.id,
        server_id=channel.owner_server(),
        message_id=message_id,
        session=session,
    )
    # listeners are gathered before the message's own registrations go away
    dispatch_channel_event(session, event, channel, entity_scopes=(Scope.message(message_id),))

    if session.cache.remove_message(message_id) is None:
        logger.debug("Deleted message_id=%s was not cached", message_id)
    session.listeners.remove_scope(Scope.message(message_id))


HANDLERS: Dict[str, PacketHandler] = {
    "MESSAGE_CREATE": handle_message_create,
    "MESSAGE_DELETE": handle_message_delete,
}
