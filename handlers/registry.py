"""Packet type tag -> handler lookup.

Handlers are plain functions taking the session and the packet; the set is
built once per session and looked up by the packet's type tag.
"""
import logging
from typing import TYPE_CHECKING, Dict, List, Optional

from core.models import Packet
from handlers import channels, messages, reactions, servers
from handlers.common import PacketHandler

if TYPE_CHECKING:
    from core.session import Session

logger = logging.getLogger(__name__)


class HandlerSet:
    """Routes packets to the handler registered for their type tag.

    Unknown tags go to a log-only fallback instead of failing.
    """

    def __init__(self, log_unknown_packets: bool = False) -> None:
        self.log_unknown_packets = log_unknown_packets
        self._handlers: Dict[str, PacketHandler] = {}

    def register(self, packet_type: str, handler: PacketHandler) -> None:
        if packet_type in self._handlers:
            logger.warning("Replacing handler for packet type %s", packet_type)
        self._handlers[packet_type] = handler

    def get(self, packet_type: str) -> Optional[PacketHandler]:
        return self._handlers.get(packet_type)

    @property
    def packet_types(self) -> List[str]:
        return sorted(self._handlers)

    def handle(self, session: "Session", packet: Packet) -> None:
        handler = self._handlers.get(packet.type)
        if handler is None:
            self._handle_unknown(packet)
            return
        handler(session, packet)

    def _handle_unknown(self, packet: Packet) -> None:
        level = logging.INFO if self.log_unknown_packets else logging.DEBUG
        logger.log(level, "Ignoring packet of unknown type %s (seq=%s)", packet.type, packet.sequence)


def default_handler_set(log_unknown_packets: bool = False) -> HandlerSet:
    """Build a HandlerSet with every packet handler this library implements."""
    handler_set = HandlerSet(log_unknown_packets=log_unknown_packets)
    for module in (reactions, messages, channels, servers):
        for packet_type, handler in module.HANDLERS.items():
            handler_set.register(packet_type, handler)
    return handler_set
