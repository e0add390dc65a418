"""Handlers for channel creation and deletion packets."""
import logging
from typing import TYPE_CHECKING, Any, Dict, Mapping, Optional

from core.entities import Channel
from core.errors import DecodeError
from core.events import ChannelCreateEvent, ChannelDeleteEvent
from core.listeners import Scope
from core.models import Packet, to_snowflake
from handlers.common import (
    PacketHandler,
    dispatch_channel_event,
    forget_messages,
    gather_listeners,
    resolve_channel,
    submit,
)

if TYPE_CHECKING:
    from core.session import Session

logger = logging.getLogger(__name__)


def parse_channel(packet_type: str, data: Mapping[str, Any], server_id: Optional[int] = None) -> Channel:
    """Decode a channel object; ``server_id`` overrides a missing ``guild_id``."""
    name = data.get("name") or ""
    if not isinstance(name, str):
        raise DecodeError(packet_type, "name", "expected string")
    guild_id = data.get("guild_id")
    if guild_id is not None:
        server_id = to_snowflake(packet_type, "guild_id", guild_id)
    return Channel(id=to_snowflake(packet_type, "id", data.get("id")), name=name, server_id=server_id)


def handle_channel_create(session: "Session", packet: Packet) -> None:
    channel = parse_channel(packet.type, packet.data)

    server_id = channel.owner_server()
    if server_id is not None and session.cache.get_server_by_id(server_id) is None:
        logger.debug("Dropping %s for uncached server_id=%s", packet.type, server_id)
        return

    session.cache.put_channel(channel)

    event = ChannelCreateEvent(
        channel_id=channel.id,
        server_id=server_id,
        name=channel.name,
        session=session,
    )
    # nobody can listen on a channel that did not exist yet
    listeners = gather_listeners(session, event.kind, server_id=server_id)
    submit(session, event, listeners, server_id)


def handle_channel_delete(session: "Session", packet: Packet) -> None:
    channel_id = packet.get_snowflake("id")

    channel = resolve_channel(session, packet, channel_id)
    if channel is None:
        return

    event = ChannelDeleteEvent(
        channel_id=channel.id,
        server_id=channel.owner_server(),
        session=session,
    )
    dispatch_channel_event(session, event, channel)

    forget_messages(session, session.cache.get_cached_messages_of_channel(channel.id))
    session.cache.remove_channel(channel.id)
    session.listeners.remove_scope(Scope.channel(channel.id))


HANDLERS: Dict[str, PacketHandler] = {
    "CHANNEL_CREATE": handle_channel_create,
    "CHANNEL_DELETE": handle_channel_delete,
}
