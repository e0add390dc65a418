"""Periodic message cache eviction.

Provides a CacheSweeper that drops cached messages once they are older than
the configured maximum age, together with the listeners attached to them.
"""
import logging
from datetime import datetime, timedelta
from typing import TYPE_CHECKING, Optional

import trio

from core.listeners import Scope

if TYPE_CHECKING:
    from core.session import Session

logger = logging.getLogger(__name__)


class CacheSweeper:
    """
    Evicts stale messages from a session's cache on a fixed interval.
    A non-positive max age disables the sweeper.
    """

    def __init__(self, session: "Session", max_age_seconds: float, interval_seconds: float = 60) -> None:
        self.session = session
        self.max_age = timedelta(seconds=max_age_seconds)
        self.interval_seconds = interval_seconds

    @property
    def enabled(self) -> bool:
        return self.max_age > timedelta(0) and self.interval_seconds > 0

    def sweep_once(self, now: Optional[datetime] = None) -> int:
        """Evict every message older than the max age.

        Args:
            now: Reference time, defaults to the current UTC time

        Returns:
            Number of evicted messages
        """
        evicted = self.session.cache.evict_messages_older_than(self.max_age, now=now)
        for message in evicted:
            self.session.listeners.remove_scope(Scope.message(message.id))
        if evicted:
            logger.info("Evicted %s stale message(s) from cache", len(evicted))
        return len(evicted)

    async def run(self) -> None:
        """Sweep loop; runs until cancelled."""
        if not self.enabled:
            logger.info("Message cache sweeper disabled")
            return
        while True:
            await trio.sleep(self.interval_seconds)
            try:
                self.sweep_once()
            except Exception:  # pylint: disable=broad-exception-caught
                # Intentionally catch all exceptions to keep the sweeper running
                logger.exception("Error in CacheSweeper loop")
