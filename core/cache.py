"""In-memory entity cache owned by a session.

Packet handlers are the only writers. Each entity type has its own lock,
held only while the container is touched; per-message reaction state is
guarded by the message itself (see ``core.entities.Message``).
"""
import logging
import threading
from collections import OrderedDict
from datetime import datetime, timedelta, timezone
from typing import Dict, List, Optional

from core.entities import Channel, Message, Server, User

logger = logging.getLogger(__name__)


class EntityCache:
    """Holds the latest known snapshot of servers, channels, messages and users.

    Attributes:
        message_capacity: Maximum number of cached messages; the oldest
            message is evicted first once the limit is exceeded. ``0``
            disables message caching entirely.
    """

    def __init__(self, message_capacity: int = 1000) -> None:
        self.message_capacity = message_capacity
        self._servers: Dict[int, Server] = {}
        self._channels: Dict[int, Channel] = {}
        self._users: Dict[int, User] = {}
        self._messages: "OrderedDict[int, Message]" = OrderedDict()
        self._server_lock = threading.Lock()
        self._channel_lock = threading.Lock()
        self._user_lock = threading.Lock()
        self._message_lock = threading.Lock()

    # -- lookups -----------------------------------------------------------

    def get_server_by_id(self, server_id: int) -> Optional[Server]:
        with self._server_lock:
            return self._servers.get(server_id)

    def get_channel_by_id(self, channel_id: int) -> Optional[Channel]:
        with self._channel_lock:
            return self._channels.get(channel_id)

    def get_user_by_id(self, user_id: int) -> Optional[User]:
        with self._user_lock:
            return self._users.get(user_id)

    def get_cached_message_by_id(self, message_id: int) -> Optional[Message]:
        with self._message_lock:
            return self._messages.get(message_id)

    def get_channels_of_server(self, server_id: int) -> List[Channel]:
        with self._channel_lock:
            return [c for c in self._channels.values() if c.owner_server() == server_id]

    def get_cached_messages_of_channel(self, channel_id: int) -> List[Message]:
        with self._message_lock:
            return [m for m in self._messages.values() if m.channel_id == channel_id]

    @property
    def message_count(self) -> int:
        with self._message_lock:
            return len(self._messages)

    # -- mutation (packet handlers only) -----------------------------------

    def put_server(self, server: Server) -> None:
        with self._server_lock:
            self._servers[server.id] = server

    def put_channel(self, channel: Channel) -> None:
        with self._channel_lock:
            self._channels[channel.id] = channel

    def put_user(self, user: User) -> None:
        with self._user_lock:
            self._users[user.id] = user

    def put_message(self, message: Message) -> List[Message]:
        """Cache a message, evicting the oldest ones beyond capacity.

        Returns:
            Messages evicted to make room
        """
        if self.message_capacity <= 0:
            return []
        evicted: List[Message] = []
        with self._message_lock:
            self._messages[message.id] = message
            self._messages.move_to_end(message.id)
            while len(self._messages) > self.message_capacity:
                _, oldest = self._messages.popitem(last=False)
                evicted.append(oldest)
        if evicted:
            logger.debug("Evicted %s message(s) over capacity %s", len(evicted), self.message_capacity)
        return evicted

    def remove_message(self, message_id: int) -> Optional[Message]:
        with self._message_lock:
            return self._messages.pop(message_id, None)

    def remove_channel(self, channel_id: int) -> Optional[Channel]:
        """Drop a channel and every cached message sent in it."""
        with self._channel_lock:
            channel = self._channels.pop(channel_id, None)
        with self._message_lock:
            for msg_id in [m.id for m in self._messages.values() if m.channel_id == channel_id]:
                del self._messages[msg_id]
        return channel

    def remove_server(self, server_id: int) -> Optional[Server]:
        """Drop a server together with its channels and their messages."""
        with self._server_lock:
            server = self._servers.pop(server_id, None)
        for channel in self.get_channels_of_server(server_id):
            self.remove_channel(channel.id)
        return server

    def evict_messages_older_than(self, max_age: timedelta, now: Optional[datetime] = None) -> List[Message]:
        """Evict messages that entered the cache more than ``max_age`` ago."""
        cutoff = (now or datetime.now(timezone.utc)) - max_age
        with self._message_lock:
            stale = [m for m in self._messages.values() if m.created_at <= cutoff]
            for msg in stale:
                del self._messages[msg.id]
        return stale

    def clear(self) -> None:
        with self._server_lock:
            self._servers.clear()
        with self._channel_lock:
            self._channels.clear()
        with self._user_lock:
            self._users.clear()
        with self._message_lock:
            self._messages.clear()
