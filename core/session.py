"""Session context tying the pipeline together.

A Session owns the entity cache, the listener registry, the dispatcher and
the packet handler set. It is created at connection start and torn down at
the end; handlers and listeners receive it explicitly instead of reaching
for module-level state.
"""
import logging
from contextlib import asynccontextmanager
from typing import Any, AsyncIterable, AsyncIterator, Dict, Optional

import trio

from config import DEFAULT_CONFIG, merge_config
from core.cache import EntityCache
from core.dispatcher import Dispatcher, ErrorObserver
from core.errors import DecodeError
from core.events import EventKind
from core.gateway import PacketPump
from core.listeners import GLOBAL_SCOPE, Listener, ListenerHandle, ListenerRegistry, Scope
from core.models import Packet, parse_packet
from handlers.registry import HandlerSet, default_handler_set
from utils.scheduling import CacheSweeper

logger = logging.getLogger(__name__)


class Session:
    """State of one gateway connection.

    Attributes:
        config: Effective configuration (defaults merged with overrides)
        cache: Entity cache; written only by packet handlers
        listeners: Listener registry
        dispatcher: Per-scope-root event dispatcher
        handlers: Packet type -> handler routing
        self_user_id: ID of the connected user, known after READY
    """

    def __init__(
        self,
        config: Optional[Dict[str, Any]] = None,
        handlers: Optional[HandlerSet] = None,
    ) -> None:
        self.config = merge_config(DEFAULT_CONFIG, config or {})
        gateway_cfg = self.config["gateway"]
        cache_cfg = self.config["cache"]

        self.cache = EntityCache(message_capacity=int(cache_cfg["message_capacity"]))
        self.listeners = ListenerRegistry()
        self.dispatcher = Dispatcher()
        self.handlers = handlers or default_handler_set(
            log_unknown_packets=bool(gateway_cfg["log_unknown_packets"])
        )
        self.self_user_id: Optional[int] = None

    def add_listener(self, kind: EventKind, callback: Listener, scope: Scope = GLOBAL_SCOPE) -> ListenerHandle:
        """Register ``callback`` for events of ``kind``, global unless ``scope`` is given."""
        return self.listeners.register(scope, kind, callback)

    def remove_listener(self, handle: ListenerHandle) -> None:
        self.listeners.unregister(handle)

    def add_error_observer(self, observer: ErrorObserver) -> None:
        """Observers get ``(exc, subject, listener)`` for every isolated failure.

        ``subject`` is the event for listener failures and the packet (or raw
        frame) for packets that failed to decode; ``listener`` is None then.
        """
        self.dispatcher.add_error_observer(observer)

    def handle_packet(self, packet: Packet) -> bool:
        """Run one packet through its handler.

        Returns:
            False if the packet was rejected; the failure has been logged and
            reported to the error observers
        """
        try:
            self.handlers.handle(self, packet)
        except DecodeError as e:
            logger.warning("Dropping malformed packet (seq=%s): %s", packet.sequence, e)
            self.dispatcher.report_error(e, packet)
            return False
        except Exception as e:  # pylint: disable=broad-exception-caught
            # Intentionally catch all exceptions so one bad packet cannot stop
            # the packets queued behind it
            logger.exception("Error handling %s packet (seq=%s)", packet.type, packet.sequence)
            self.dispatcher.report_error(e, packet)
            return False
        return True

    def handle_raw(self, frame: Dict[str, Any]) -> bool:
        """Parse a raw gateway frame and handle it if it is a dispatch frame."""
        try:
            packet = parse_packet(frame)
        except DecodeError as e:
            logger.warning("Dropping malformed frame: %s", e)
            self.dispatcher.report_error(e, frame)
            return False
        if packet is None:
            return True
        return self.handle_packet(packet)

    async def consume(self, source: AsyncIterable[Dict[str, Any]]) -> int:
        """Feed every frame from ``source`` through the worker pool.

        Returns:
            Number of frames read from the source
        """
        gateway_cfg = self.config["gateway"]
        pump = PacketPump(
            self,
            workers=int(gateway_cfg["workers"]),
            queue_size=int(gateway_cfg["queue_size"]),
        )
        return await pump.run(source)

    def close(self) -> None:
        self.listeners.clear()
        self.cache.clear()


@asynccontextmanager
async def open_session(config: Optional[Dict[str, Any]] = None) -> AsyncIterator[Session]:
    """Create a session with its dispatcher and cache sweeper running.

    On normal exit, pending dispatches are drained before the session is
    torn down.
    """
    session = Session(config)
    cache_cfg = session.config["cache"]
    sweeper = CacheSweeper(
        session,
        max_age_seconds=float(cache_cfg["message_max_age_seconds"]),
        interval_seconds=float(cache_cfg["sweep_interval_seconds"]),
    )
    async with trio.open_nursery() as nursery:
        await nursery.start(session.dispatcher.run)
        nursery.start_soon(sweeper.run)
        try:
            yield session
            await session.dispatcher.wait_idle()
        finally:
            nursery.cancel_scope.cancel()
            session.close()
