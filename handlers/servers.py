"""Handlers for server lifecycle packets and the READY packet."""
import logging
from typing import TYPE_CHECKING, Dict, List, Mapping, Optional

from core.entities import Channel, Server, User
from core.errors import DecodeError
from core.events import ServerJoinEvent, ServerLeaveEvent
from core.listeners import Scope
from core.models import Packet, to_snowflake
from handlers.channels import parse_channel
from handlers.common import PacketHandler, forget_messages, gather_listeners, submit

if TYPE_CHECKING:
    from core.session import Session

logger = logging.getLogger(__name__)


def _parse_channels(packet: Packet, field_name: str, server_id: Optional[int] = None) -> List[Channel]:
    channels: List[Channel] = []
    for entry in packet.get_list(field_name):
        if not isinstance(entry, Mapping):
            raise DecodeError(packet.type, field_name, "expected array of objects")
        channels.append(parse_channel(packet.type, entry, server_id=server_id))
    return channels


def handle_ready(session: "Session", packet: Packet) -> None:
    """Seed the cache with the connected user and private channels.

    READY is a lifecycle packet and dispatches no event.
    """
    data = packet.get_mapping("user")
    name = data.get("username") or ""
    if not isinstance(name, str):
        raise DecodeError(packet.type, "user.username", "expected string")
    user = User(
        id=to_snowflake(packet.type, "user.id", data.get("id")),
        name=name,
        bot=bool(data.get("bot", False)),
    )
    private_channels = _parse_channels(packet, "private_channels")

    session.cache.put_user(user)
    session.self_user_id = user.id
    for channel in private_channels:
        session.cache.put_channel(channel)
    logger.info("Session ready as user_id=%s with %s private channel(s)", user.id, len(private_channels))


def handle_server_create(session: "Session", packet: Packet) -> None:
    server_id = packet.get_snowflake("id")
    name = packet.get_optional_str("name")
    channels = _parse_channels(packet, "channels", server_id=server_id)

    session.cache.put_server(Server(id=server_id, name=name))
    for channel in channels:
        session.cache.put_channel(channel)

    event = ServerJoinEvent(server_id=server_id, name=name, session=session)
    listeners = gather_listeners(session, event.kind, entity_scopes=(Scope.server(server_id),))
    submit(session, event, listeners, server_id)


def handle_server_delete(session: "Session", packet: Packet) -> None:
    server_id = packet.get_snowflake("id")
    unavailable = bool(packet.get("unavailable", False))

    if session.cache.get_server_by_id(server_id) is None:
        logger.debug("Dropping %s for uncached server_id=%s", packet.type, server_id)
        return

    event = ServerLeaveEvent(server_id=server_id, unavailable=unavailable, session=session)
    listeners = gather_listeners(session, event.kind, entity_scopes=(Scope.server(server_id),))
    submit(session, event, listeners, server_id)

    for channel in session.cache.get_channels_of_server(server_id):
        forget_messages(session, session.cache.get_cached_messages_of_channel(channel.id))
        session.listeners.remove_scope(Scope.channel(channel.id))
    session.cache.remove_server(server_id)
    session.listeners.remove_scope(Scope.server(server_id))


HANDLERS: Dict[str, PacketHandler] = {
    "READY": handle_ready,
    "GUILD_CREATE": handle_server_create,
    "GUILD_DELETE": handle_server_delete,
}
