"""Handlers for the message reaction packet family.

Each handler decodes its fields up front, drops the packet when the channel
is not cached, updates the cached message when there is one, and dispatches
an event built from the packet itself. Listener fan-out order is message,
(reacting user), channel, owning server, global.
"""
import logging
from typing import TYPE_CHECKING, Dict

from core.events import (
    ReactionAddEvent,
    ReactionRemoveAllEvent,
    ReactionRemoveEmojiEvent,
    ReactionRemoveEvent,
)
from core.listeners import Scope
from core.models import Packet
from handlers.common import PacketHandler, dispatch_channel_event, resolve_channel

if TYPE_CHECKING:
    from core.session import Session

logger = logging.getLogger(__name__)


def handle_reaction_add(session: "Session", packet: Packet) -> None:
    channel_id = packet.get_snowflake("channel_id")
    message_id = packet.get_snowflake("message_id")
    user_id = packet.get_snowflake("user_id")
    emoji = packet.get_emoji()

    channel = resolve_channel(session, packet, channel_id)
    if channel is None:
        return

    message = session.cache.get_cached_message_by_id(message_id)
    if message is not None:
        message.add_reaction(emoji, user_id)

    event = ReactionAddEvent(
        channel_id=channel.id,
        server_id=channel.owner_server(),
        message_id=message_id,
        user_id=user_id,
        emoji=emoji,
        session=session,
    )
    dispatch_channel_event(
        session, event, channel, entity_scopes=(Scope.message(message_id), Scope.user(user_id))
    )


def handle_reaction_remove(session: "Session", packet: Packet) -> None:
    channel_id = packet.get_snowflake("channel_id")
    message_id = packet.get_snowflake("message_id")
    user_id = packet.get_snowflake("user_id")
    emoji = packet.get_emoji()

    channel = resolve_channel(session, packet, channel_id)
    if channel is None:
        return

    message = session.cache.get_cached_message_by_id(message_id)
    if message is not None:
        message.remove_reaction(emoji, user_id)

    event = ReactionRemoveEvent(
        channel_id=channel.id,
        server_id=channel.owner_server(),
        message_id=message_id,
        user_id=user_id,
        emoji=emoji,
        session=session,
    )
    dispatch_channel_event(
        session, event, channel, entity_scopes=(Scope.message(message_id), Scope.user(user_id))
    )


def handle_reaction_remove_all(session: "Session", packet: Packet) -> None:
    channel_id = packet.get_snowflake("channel_id")
    message_id = packet.get_snowflake("message_id")

    channel = resolve_channel(session, packet, channel_id)
    if channel is None:
        return

    message = session.cache.get_cached_message_by_id(message_id)
    if message is not None:
        dropped = message.remove_all_reactions()
        logger.debug("Cleared %s reaction(s) from message_id=%s", dropped, message_id)

    event = ReactionRemoveAllEvent(
        channel_id=channel.id,
        server_id=channel.owner_server(),
        message_id=message_id,
        session=session,
    )
    dispatch_channel_event(session, event, channel, entity_scopes=(Scope.message(message_id),))


def handle_reaction_remove_emoji(session: "Session", packet: Packet) -> None:
    channel_id = packet.get_snowflake("channel_id")
    message_id = packet.get_snowflake("message_id")
    emoji = packet.get_emoji()

    channel = resolve_channel(session, packet, channel_id)
    if channel is None:
        return

    message = session.cache.get_cached_message_by_id(message_id)
    if message is not None:
        message.remove_reaction_emoji(emoji)

    event = ReactionRemoveEmojiEvent(
        channel_id=channel.id,
        server_id=channel.owner_server(),
        message_id=message_id,
        emoji=emoji,
        session=session,
    )
    dispatch_channel_event(session, event, channel, entity_scopes=(Scope.message(message_id),))


HANDLERS: Dict[str, PacketHandler] = {
    "MESSAGE_REACTION_ADD": handle_reaction_add,
    "MESSAGE_REACTION_REMOVE": handle_reaction_remove,
    "MESSAGE_REACTION_REMOVE_ALL": handle_reaction_remove_all,
    "MESSAGE_REACTION_REMOVE_EMOJI": handle_reaction_remove_emoji,
}
