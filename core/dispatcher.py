"""Event dispatching with per-scope-root ordering.

Dispatches submitted under the same scope root (a server, or the global root
for private channels) run one after another in submission order. Different
roots are drained by separate trio tasks and may interleave freely. Errors
raised by individual listeners are isolated and reported to error observers.
"""
import inspect
import logging
import math
from dataclasses import dataclass
from typing import Any, Callable, Dict, List, Optional, Sequence, Tuple

import trio

from core.listeners import Listener

logger = logging.getLogger(__name__)

ErrorObserver = Callable[[BaseException, Any, Optional[Listener]], None]


@dataclass(frozen=True)
class ScopeRoot:
    """Sequencing key for dispatch: a server id, or None for the global root."""
    server_id: Optional[int] = None

    @classmethod
    def for_server(cls, server_id: Optional[int]) -> "ScopeRoot":
        if server_id is None:
            return GLOBAL_ROOT
        return cls(server_id)

    @property
    def is_global(self) -> bool:
        return self.server_id is None


GLOBAL_ROOT = ScopeRoot()


@dataclass(frozen=True)
class Invocation:
    """Calls one listener with a captured event."""
    event: Any

    def __call__(self, listener: Listener) -> Any:
        return listener(self.event)


@dataclass(frozen=True)
class _Job:
    listeners: Tuple[Listener, ...]
    invocation: Invocation


def _describe(listener: Listener) -> str:
    return getattr(listener, "__qualname__", None) or repr(listener)


class Dispatcher:
    """Runs gathered listeners for events, serialized per scope root.

    Must be started in a nursery before use::

        await nursery.start(dispatcher.run)

    ``dispatch`` is synchronous and must be called from the trio thread.
    """

    def __init__(self, error_observers: Optional[List[ErrorObserver]] = None) -> None:
        self._error_observers: List[ErrorObserver] = list(error_observers or [])
        self._queues: Dict[ScopeRoot, trio.MemorySendChannel] = {}
        self._nursery: Optional[trio.Nursery] = None
        self._idle = trio.Event()
        self._idle.set()

    def add_error_observer(self, observer: ErrorObserver) -> None:
        self._error_observers.append(observer)

    @property
    def running(self) -> bool:
        return self._nursery is not None

    @property
    def active_roots(self) -> List[ScopeRoot]:
        return list(self._queues)

    async def run(self, *, task_status: Any = trio.TASK_STATUS_IGNORED) -> None:
        """Host the per-root drain tasks until cancelled."""
        async with trio.open_nursery() as nursery:
            self._nursery = nursery
            task_status.started()
            try:
                await trio.sleep_forever()
            finally:
                self._nursery = None

    def dispatch(self, scope_root: ScopeRoot, listeners: Sequence[Listener], invocation: Invocation) -> None:
        """Queue ``invocation`` to be applied to each listener, in order.

        Args:
            scope_root: Root whose queue the dispatch joins
            listeners: Gathered listeners; copied, so later changes are ignored
            invocation: Applied to every listener
        """
        if self._nursery is None:
            raise RuntimeError("Dispatcher is not running")
        job = _Job(listeners=tuple(listeners), invocation=invocation)
        if not job.listeners:
            logger.debug("No listeners for %s", type(invocation.event).__name__)
            return

        send = self._queues.get(scope_root)
        if send is None:
            send, receive = trio.open_memory_channel(math.inf)
            self._queues[scope_root] = send
            if self._idle.is_set():
                self._idle = trio.Event()
            self._nursery.start_soon(self._drain, scope_root, receive)
        send.send_nowait(job)

    async def wait_idle(self) -> None:
        """Wait until every queued dispatch has completed."""
        while self._queues:
            await self._idle.wait()

    async def _drain(self, scope_root: ScopeRoot, receive: trio.MemoryReceiveChannel) -> None:
        async with receive:
            while True:
                try:
                    job = receive.receive_nowait()
                except trio.WouldBlock:
                    # no await between the check and the pop, so nothing can be
                    # queued to this channel after we decide to retire it
                    self._queues.pop(scope_root).close()
                    if not self._queues:
                        self._idle.set()
                    return
                await self._run_job(job)
                await trio.sleep(0)

    async def _run_job(self, job: _Job) -> None:
        for listener in job.listeners:
            try:
                result = job.invocation(listener)
                if inspect.isawaitable(result):
                    await result
            except Exception as exc:  # pylint: disable=broad-exception-caught
                # Intentionally catch all exceptions so one listener cannot
                # starve its siblings or break the dispatch queue
                logger.exception(
                    "Error in listener %s for %s",
                    _describe(listener),
                    type(job.invocation.event).__name__,
                )
                self.report_error(exc, job.invocation.event, listener)

    def report_error(self, exc: BaseException, subject: Any, listener: Optional[Listener] = None) -> None:
        """Hand a failure to every error observer; observer failures are logged only."""
        for observer in list(self._error_observers):
            try:
                observer(exc, subject, listener)
            except Exception:  # pylint: disable=broad-exception-caught
                logger.exception("Error observer %s failed", _describe(observer))
