"""Inbound packet pump.

Reads raw frames from the gateway connection (any async iterable of frame
dicts) and spreads them over a pool of trio worker tasks.

Sharding Strategy:
-----------------
Frames are routed to a worker by the server they concern, falling back to
the channel, so packets about the same server or channel are handled in the
order they arrived, while unrelated servers make progress independently.
Frames with no routing key (READY and friends) all go to worker 0.
"""
import logging
import zlib
from typing import TYPE_CHECKING, Any, AsyncIterable, Dict, List, Mapping, Optional

import trio

if TYPE_CHECKING:
    from core.session import Session

logger = logging.getLogger(__name__)


def routing_key(frame: Mapping[str, Any]) -> Optional[str]:
    """Pick the id that decides which worker handles ``frame``."""
    data = frame.get("d")
    if not isinstance(data, Mapping):
        return None
    packet_type = frame.get("t") or ""
    if not isinstance(packet_type, str):
        return None
    if data.get("guild_id") is not None:
        return str(data["guild_id"])
    if packet_type.startswith("GUILD_") and data.get("id") is not None:
        return str(data["id"])
    if data.get("channel_id") is not None:
        return str(data["channel_id"])
    if packet_type.startswith("CHANNEL_") and data.get("id") is not None:
        return str(data["id"])
    return None


class PacketPump:
    """Moves frames from a source into per-worker queues.

    Attributes:
        session: Session whose handlers process the frames
        workers: Number of worker tasks
        queue_size: Buffered frames per worker before the source is throttled
    """

    def __init__(self, session: "Session", workers: int = 4, queue_size: int = 256) -> None:
        if workers < 1:
            raise ValueError("workers must be at least 1")
        self.session = session
        self.workers = workers
        self.queue_size = queue_size
        self.handled = 0

    def route(self, frame: Any) -> int:
        key = routing_key(frame) if isinstance(frame, Mapping) else None
        if key is None:
            return 0
        return zlib.crc32(key.encode("utf-8", errors="surrogatepass")) % self.workers

    async def run(self, source: AsyncIterable[Dict[str, Any]]) -> int:
        """Pump until ``source`` is exhausted and every queued frame is handled.

        Returns:
            Number of frames read from the source
        """
        received = 0
        channels = [trio.open_memory_channel(self.queue_size) for _ in range(self.workers)]
        senders: List[trio.MemorySendChannel] = [send for send, _ in channels]

        async with trio.open_nursery() as nursery:
            for index, (_, receive) in enumerate(channels):
                nursery.start_soon(self._worker, index, receive)

            try:
                async for frame in source:
                    received += 1
                    await senders[self.route(frame)].send(frame)
            finally:
                for send in senders:
                    send.close()

        logger.info("Gateway source exhausted after %s frame(s)", received)
        return received

    async def _worker(self, index: int, receive: trio.MemoryReceiveChannel) -> None:
        async with receive:
            async for frame in receive:
                logger.debug("Worker %s handling frame", index)
                self.session.handle_raw(frame)
                self.handled += 1
                await trio.sleep(0)
