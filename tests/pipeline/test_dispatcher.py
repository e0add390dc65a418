from types import SimpleNamespace

import pytest
import trio
import trio.testing

from core.dispatcher import GLOBAL_ROOT, Dispatcher, Invocation, ScopeRoot


def _run(body, clock=None):
    async def main():
        dispatcher = Dispatcher()
        async with trio.open_nursery() as nursery:
            await nursery.start(dispatcher.run)
            await body(dispatcher)
            await dispatcher.wait_idle()
            nursery.cancel_scope.cancel()

    trio.run(main, clock=clock or trio.testing.MockClock(autojump_threshold=0))


def _event(name):
    return SimpleNamespace(name=name)


def test_dispatch_requires_running_dispatcher():
    dispatcher = Dispatcher()

    with pytest.raises(RuntimeError):
        dispatcher.dispatch(GLOBAL_ROOT, [lambda e: None], Invocation(_event("x")))


def test_scope_root_for_server():
    assert ScopeRoot.for_server(None) is GLOBAL_ROOT
    assert ScopeRoot.for_server(9) == ScopeRoot(9)
    assert not ScopeRoot(9).is_global


def test_same_root_runs_in_submission_order():
    log = []

    async def slow(event):
        log.append(("start", event.name))
        await trio.sleep(1 if event.name == "first" else 0)
        log.append(("end", event.name))

    async def body(dispatcher):
        dispatcher.dispatch(ScopeRoot(9), [slow], Invocation(_event("first")))
        dispatcher.dispatch(ScopeRoot(9), [slow], Invocation(_event("second")))

    _run(body)

    assert log == [("start", "first"), ("end", "first"), ("start", "second"), ("end", "second")]


def test_different_roots_run_concurrently():
    log = []

    async def listener(event):
        await trio.sleep(event.delay)
        log.append(event.name)

    async def body(dispatcher):
        dispatcher.dispatch(ScopeRoot(1), [listener], Invocation(SimpleNamespace(name="server-1", delay=5)))
        dispatcher.dispatch(ScopeRoot(2), [listener], Invocation(SimpleNamespace(name="server-2", delay=1)))

    _run(body)

    assert log == ["server-2", "server-1"]


def test_failing_listener_is_isolated_and_reported():
    called = []
    reported = []

    def boom(event):
        raise ValueError("listener bug")

    async def body(dispatcher):
        dispatcher.add_error_observer(lambda exc, subject, listener: reported.append((exc, subject, listener)))
        dispatcher.dispatch(
            GLOBAL_ROOT,
            [lambda e: called.append("before"), boom, lambda e: called.append("after")],
            Invocation(_event("x")),
        )
        dispatcher.dispatch(GLOBAL_ROOT, [lambda e: called.append("next event")], Invocation(_event("y")))

    _run(body)

    assert called == ["before", "after", "next event"]
    assert len(reported) == 1
    exc, subject, listener = reported[0]
    assert isinstance(exc, ValueError)
    assert subject.name == "x"
    assert listener is boom


def test_failing_error_observer_does_not_break_dispatch():
    called = []

    def bad_observer(exc, subject, listener):
        raise RuntimeError("observer bug")

    async def body(dispatcher):
        dispatcher.add_error_observer(bad_observer)
        dispatcher.dispatch(
            GLOBAL_ROOT,
            [lambda e: 1 / 0, lambda e: called.append(e.name)],
            Invocation(_event("x")),
        )

    _run(body)

    assert called == ["x"]


def test_listener_list_is_copied_at_submission():
    called = []
    listeners = [lambda e: called.append("a")]

    async def body(dispatcher):
        dispatcher.dispatch(GLOBAL_ROOT, listeners, Invocation(_event("x")))
        listeners.append(lambda e: called.append("b"))

    _run(body)

    assert called == ["a"]


def test_roots_retire_when_drained():
    seen = []

    async def body(dispatcher):
        dispatcher.dispatch(ScopeRoot(1), [lambda e: seen.append(e.name)], Invocation(_event("x")))
        assert dispatcher.active_roots == [ScopeRoot(1)]
        await dispatcher.wait_idle()
        assert dispatcher.active_roots == []
        dispatcher.dispatch(ScopeRoot(1), [lambda e: seen.append(e.name)], Invocation(_event("y")))

    _run(body)

    assert seen == ["x", "y"]
