import trio
import trio.testing

from conftest import frame
from core.dispatcher import GLOBAL_ROOT, ScopeRoot
from core.entities import Channel, Emoji, Message, Server
from core.events import EventKind, ReactionRemoveAllEvent
from core.listeners import Scope

THUMBS_UP = {"id": None, "name": "\U0001F44D"}
USER_A, USER_B = 1, 2


def _seed(session, *, server_bound=True, cache_message=True, reactions=((THUMBS_UP, (USER_A, USER_B)),)):
    server_id = 9 if server_bound else None
    if server_bound:
        session.cache.put_server(Server(id=9))
    session.cache.put_channel(Channel(id=100, server_id=server_id))
    if cache_message:
        message = Message(id=200, channel_id=100)
        for emoji, users in reactions:
            for user in users:
                emoji_id = int(emoji["id"]) if emoji["id"] is not None else None
                message.add_reaction(Emoji(name=emoji["name"], id=emoji_id), user)
        session.cache.put_message(message)


def _remove_all(seq=None):
    return frame("MESSAGE_REACTION_REMOVE_ALL", seq, channel_id="100", message_id="200")


def test_unknown_channel_is_silently_dropped(session):
    session.cache.put_message(Message(id=200, channel_id=100))
    session.cache.get_cached_message_by_id(200).add_reaction(Emoji(name="x"), USER_A)
    session.add_listener(EventKind.REACTION_REMOVE_ALL, lambda e: None)

    assert session.handle_raw(_remove_all()) is True

    assert session.dispatcher.calls == []
    assert session.cache.get_cached_message_by_id(200).reactions != ()


def test_remove_all_clears_cached_reactions(session):
    _seed(session)

    session.handle_raw(_remove_all())

    assert session.cache.get_cached_message_by_id(200).reactions == ()


def test_remove_all_on_message_without_reactions(session):
    _seed(session, reactions=())

    session.handle_raw(_remove_all())

    assert session.cache.get_cached_message_by_id(200).reactions == ()
    assert len(session.dispatcher.calls) == 1


def test_channel_and_global_listeners_each_called_once(session):
    _seed(session)
    seen = []
    session.add_listener(EventKind.REACTION_REMOVE_ALL, lambda e: seen.append(("channel", e)), Scope.channel(100))
    session.add_listener(EventKind.REACTION_REMOVE_ALL, lambda e: seen.append(("global", e)))

    session.handle_raw(_remove_all())

    assert [scope for scope, _ in seen] == ["channel", "global"]
    for _, event in seen:
        assert isinstance(event, ReactionRemoveAllEvent)
        assert event.message_id == 200
        assert event.channel_id == 100
    assert session.cache.get_cached_message_by_id(200).reactions == ()


def test_uncached_message_still_dispatches(session):
    _seed(session, cache_message=False)
    seen = []
    session.add_listener(EventKind.REACTION_REMOVE_ALL, lambda e: seen.append("channel"), Scope.channel(100))
    session.add_listener(EventKind.REACTION_REMOVE_ALL, lambda e: seen.append("server"), Scope.server(9))
    session.add_listener(EventKind.REACTION_REMOVE_ALL, lambda e: seen.append("global"))

    assert session.handle_raw(_remove_all()) is True

    assert seen == ["channel", "server", "global"]
    assert session.cache.get_cached_message_by_id(200) is None


def test_listener_gathering_order_and_cross_scope_duplicates(session):
    _seed(session)
    seen = []

    def shared(event):
        seen.append("shared")

    session.add_listener(EventKind.REACTION_REMOVE_ALL, lambda e: seen.append("global"))
    session.add_listener(EventKind.REACTION_REMOVE_ALL, shared)
    session.add_listener(EventKind.REACTION_REMOVE_ALL, lambda e: seen.append("server"), Scope.server(9))
    session.add_listener(EventKind.REACTION_REMOVE_ALL, shared, Scope.channel(100))
    session.add_listener(EventKind.REACTION_REMOVE_ALL, lambda e: seen.append("message"), Scope.message(200))

    session.handle_raw(_remove_all())

    assert seen == ["message", "shared", "server", "global", "shared"]


def test_scope_root_follows_owning_server(session):
    _seed(session)
    session.add_listener(EventKind.REACTION_REMOVE_ALL, lambda e: None)
    session.handle_raw(_remove_all())

    root, _, invocation = session.dispatcher.calls[0]
    assert root == ScopeRoot(9)
    assert invocation.event.server_id == 9


def test_private_channel_dispatches_under_global_root(session):
    _seed(session, server_bound=False)
    session.add_listener(EventKind.REACTION_REMOVE_ALL, lambda e: None)
    session.add_listener(EventKind.REACTION_REMOVE_ALL, lambda e: None, Scope.server(9))

    session.handle_raw(_remove_all())

    root, listeners, _ = session.dispatcher.calls[0]
    assert root is GLOBAL_ROOT
    assert len(listeners) == 1


def test_malformed_packet_is_reported_and_not_dispatched(session):
    _seed(session)
    session.add_listener(EventKind.REACTION_REMOVE_ALL, lambda e: None)

    ok = session.handle_raw(frame("MESSAGE_REACTION_REMOVE_ALL", channel_id="100"))

    assert ok is False
    assert session.dispatcher.calls == []
    exc, subject, listener = session.dispatcher.errors[0]
    assert exc.field == "message_id"
    assert subject.type == "MESSAGE_REACTION_REMOVE_ALL"
    assert listener is None
    assert session.cache.get_cached_message_by_id(200).reactions != ()


def test_reaction_add_and_remove_update_cache(session):
    _seed(session, reactions=())
    seen = []
    session.add_listener(EventKind.REACTION_ADD, lambda e: seen.append(("user", e.emoji)), Scope.user(USER_A))
    session.add_listener(EventKind.REACTION_REMOVE, lambda e: seen.append(("removed", e.user_id)))

    session.handle_raw(frame("MESSAGE_REACTION_ADD", channel_id="100", message_id="200", user_id="1", emoji=THUMBS_UP))
    session.handle_raw(frame("MESSAGE_REACTION_ADD", channel_id="100", message_id="200", user_id="2", emoji=THUMBS_UP))
    session.handle_raw(frame("MESSAGE_REACTION_REMOVE", channel_id="100", message_id="200", user_id="1", emoji=THUMBS_UP))

    reaction = session.cache.get_cached_message_by_id(200).get_reaction(Emoji(name=THUMBS_UP["name"]))
    assert reaction.user_ids == frozenset({USER_B})
    assert reaction.count == 1
    assert seen == [("user", Emoji(name=THUMBS_UP["name"])), ("removed", USER_A)]


def test_reaction_remove_emoji_keeps_other_emojis(session):
    party = {"id": "42", "name": "party"}
    _seed(session, reactions=((THUMBS_UP, (USER_A,)), (party, (USER_B,))))
    seen = []
    session.add_listener(EventKind.REACTION_REMOVE_EMOJI, lambda e: seen.append(e.emoji.key), Scope.message(200))

    session.handle_raw(frame("MESSAGE_REACTION_REMOVE_EMOJI", channel_id="100", message_id="200", emoji=party))

    assert [r.emoji.name for r in session.cache.get_cached_message_by_id(200).reactions] == [THUMBS_UP["name"]]
    assert seen == ["42"]


def test_throwing_listener_does_not_reach_handler(run_session):
    seen = []
    errors = []

    def boom(event):
        raise RuntimeError("listener failed")

    async def body(session):
        _seed(session)
        session.add_error_observer(lambda exc, subject, listener: errors.append(exc))
        session.add_listener(EventKind.REACTION_REMOVE_ALL, boom, Scope.channel(100))
        session.add_listener(EventKind.REACTION_REMOVE_ALL, lambda e: seen.append(e.message_id))

        assert session.handle_raw(_remove_all()) is True
        await session.dispatcher.wait_idle()

        assert session.cache.get_cached_message_by_id(200).reactions == ()

    run_session(body)

    assert seen == [200]
    assert [type(e) for e in errors] == [RuntimeError]


def test_listener_can_resolve_current_state(run_session):
    observed = []

    async def body(session):
        _seed(session)

        def listener(event):
            message = event.get_cached_message()
            observed.append((message.reactions, event.get_channel().id, event.get_server().id))

        session.add_listener(EventKind.REACTION_REMOVE_ALL, listener)
        session.handle_raw(_remove_all())
        await session.dispatcher.wait_idle()

    run_session(body)

    assert observed == [((), 100, 9)]


def test_same_server_events_dispatch_in_order(run_session):
    order = []

    async def listener(event):
        # the first event sleeps longer; ordering must still hold
        await trio.sleep(2 if event.message_id == 200 else 0)
        order.append(event.message_id)

    async def body(session):
        _seed(session)
        session.cache.put_message(Message(id=201, channel_id=100))
        session.add_listener(EventKind.REACTION_REMOVE_ALL, listener)
        session.handle_raw(_remove_all())
        session.handle_raw(frame("MESSAGE_REACTION_REMOVE_ALL", channel_id="100", message_id="201"))

    run_session(body, clock=trio.testing.MockClock(autojump_threshold=0))

    assert order == [200, 201]
