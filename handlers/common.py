"""Steps shared by every packet handler: target resolution, listener
gathering across nested scopes, and submission to the dispatcher."""
import logging
from typing import TYPE_CHECKING, Callable, Iterable, List, Optional

from core.dispatcher import Invocation, ScopeRoot
from core.entities import Channel, Message
from core.events import Event, EventKind
from core.listeners import GLOBAL_SCOPE, Listener, Scope
from core.models import Packet

if TYPE_CHECKING:
    from core.session import Session

logger = logging.getLogger(__name__)

PacketHandler = Callable[["Session", Packet], None]


def resolve_channel(session: "Session", packet: Packet, channel_id: int) -> Optional[Channel]:
    """Look up the packet's target channel; None means drop the packet."""
    channel = session.cache.get_channel_by_id(channel_id)
    if channel is None:
        logger.debug("Dropping %s for uncached channel_id=%s", packet.type, channel_id)
    return channel


def gather_listeners(
    session: "Session",
    kind: EventKind,
    entity_scopes: Iterable[Scope] = (),
    channel: Optional[Channel] = None,
    server_id: Optional[int] = None,
) -> List[Listener]:
    """Collect listeners in order: entity scopes, channel, owning server, global.

    Each scope contributes its listeners in registration order. A callback
    registered on several scopes appears once per registration.
    """
    registry = session.listeners
    gathered: List[Listener] = []
    for scope in entity_scopes:
        gathered.extend(registry.listeners_for(scope, kind))
    if channel is not None:
        gathered.extend(registry.listeners_for(Scope.channel(channel.id), kind))
        server_id = channel.owner_server()
    if server_id is not None:
        gathered.extend(registry.listeners_for(Scope.server(server_id), kind))
    gathered.extend(registry.listeners_for(GLOBAL_SCOPE, kind))
    return gathered


def submit(session: "Session", event: Event, listeners: List[Listener], server_id: Optional[int]) -> None:
    """Hand the event to the dispatcher under the server's root, or the global one."""
    session.dispatcher.dispatch(ScopeRoot.for_server(server_id), listeners, Invocation(event))


def dispatch_channel_event(
    session: "Session",
    event: Event,
    channel: Channel,
    entity_scopes: Iterable[Scope] = (),
) -> None:
    server_id = channel.owner_server()
    listeners = gather_listeners(session, event.kind, entity_scopes, channel=channel)
    submit(session, event, listeners, server_id)


def forget_messages(session: "Session", messages: Iterable[Message]) -> None:
    """Drop listener registrations attached to messages that left the cache."""
    for message in messages:
        session.listeners.remove_scope(Scope.message(message.id))
