"""Listener registry keyed by (scope, event kind).

Scopes nest message -> channel -> server -> global; which scopes an event
fans out to is decided by the packet handlers, the registry only stores and
snapshots registrations.
"""
import itertools
import logging
import threading
from collections import OrderedDict
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Callable, Dict, List, Optional, Tuple

from core.events import EventKind

logger = logging.getLogger(__name__)

Listener = Callable[[Any], Any]


class ScopeKind(Enum):
    GLOBAL = "global"
    SERVER = "server"
    CHANNEL = "channel"
    MESSAGE = "message"
    USER = "user"


@dataclass(frozen=True)
class Scope:
    """Where a listener is attached: the whole session or one entity."""
    kind: ScopeKind
    id: Optional[int] = None

    @classmethod
    def global_(cls) -> "Scope":
        return cls(ScopeKind.GLOBAL)

    @classmethod
    def server(cls, server_id: int) -> "Scope":
        return cls(ScopeKind.SERVER, server_id)

    @classmethod
    def channel(cls, channel_id: int) -> "Scope":
        return cls(ScopeKind.CHANNEL, channel_id)

    @classmethod
    def message(cls, message_id: int) -> "Scope":
        return cls(ScopeKind.MESSAGE, message_id)

    @classmethod
    def user(cls, user_id: int) -> "Scope":
        return cls(ScopeKind.USER, user_id)


GLOBAL_SCOPE = Scope.global_()

_ids = itertools.count(1)


@dataclass(frozen=True)
class ListenerHandle:
    """One registration of a callback; pass it back to unregister."""
    scope: Scope
    kind: EventKind
    callback: Listener = field(compare=False)
    id: int = field(default_factory=lambda: next(_ids))


class ListenerRegistry:
    """Ordered listener registrations, safe to mutate while dispatching.

    Reads return tuples copied under the lock, so a dispatch pass keeps the
    snapshot it started with even if listeners are removed mid-pass.
    """

    def __init__(self) -> None:
        self._lock = threading.Lock()
        self._entries: Dict[Tuple[Scope, EventKind], "OrderedDict[int, ListenerHandle]"] = {}

    def register(self, scope: Scope, kind: EventKind, callback: Listener) -> ListenerHandle:
        """Attach ``callback`` for events of ``kind`` at ``scope``.

        Registering the same callback twice for the same scope and kind
        returns the existing handle.
        """
        with self._lock:
            bucket = self._entries.setdefault((scope, kind), OrderedDict())
            for handle in bucket.values():
                if handle.callback == callback:
                    return handle
            handle = ListenerHandle(scope=scope, kind=kind, callback=callback)
            bucket[handle.id] = handle
        logger.debug("Registered listener %s for %s at %s", handle.id, kind.value, scope)
        return handle

    def unregister(self, handle: ListenerHandle) -> None:
        with self._lock:
            bucket = self._entries.get((handle.scope, handle.kind))
            if bucket is None or bucket.pop(handle.id, None) is None:
                return
            if not bucket:
                del self._entries[(handle.scope, handle.kind)]
        logger.debug("Unregistered listener %s", handle.id)

    def listeners_for(self, scope: Scope, kind: EventKind) -> Tuple[Listener, ...]:
        with self._lock:
            bucket = self._entries.get((scope, kind))
            if not bucket:
                return ()
            return tuple(h.callback for h in bucket.values())

    def handles_for(self, scope: Scope) -> List[ListenerHandle]:
        with self._lock:
            return [h for (s, _), bucket in self._entries.items() if s == scope for h in bucket.values()]

    def remove_scope(self, scope: Scope) -> int:
        """Drop every registration attached to ``scope``, e.g. a deleted entity."""
        with self._lock:
            keys = [key for key in self._entries if key[0] == scope]
            removed = sum(len(self._entries.pop(key)) for key in keys)
        if removed:
            logger.debug("Removed %s listener(s) attached to %s", removed, scope)
        return removed

    def clear(self) -> None:
        with self._lock:
            self._entries.clear()
