"""
Tests for channel_feed.channel

Listener dispatch runs through SynchronousDispatcher so every callback has
happened by the time on_message() returns, except where EventQueue is used
on purpose.
"""
import json
import threading
from unittest.mock import MagicMock

import pytest

from channel_feed.channel import Channel
from channel_feed.channels import PRESENCE, PRIVATE
from channel_feed.dispatcher import EventQueue
from channel_feed.types import (
    ChannelState,
    IllegalStateError,
    InvalidArgumentError,
    ProtocolDecodeError,
)

from .conftest import RecordingListener

SUCCEEDED = "pusher_internal:subscription_succeeded"


# ── Helpers ───────────────────────────────────────────────────────────────────

def _succeeded_frame(channel: str, data: dict | None = None) -> str:
    frame = {"event": SUCCEEDED, "channel": channel}
    if data is not None:
        frame["data"] = json.dumps(data)
    return json.dumps(frame)


def _event_frame(channel: str, event: str, data: str, event_id: str | None = None) -> str:
    frame = {"event": event, "channel": channel, "data": data}
    if event_id is not None:
        frame["id"] = event_id
    return json.dumps(frame)


# ── Construction ──────────────────────────────────────────────────────────────

@pytest.mark.parametrize("name", ["feed", "ticker-BTC", "a", "privatefeed", "my-private-feed"])
def test_valid_names_start_initial(name, dispatcher):
    channel = Channel(name, dispatcher)

    assert channel.name == name
    assert channel.state is ChannelState.INITIAL
    assert channel.resume_after is None
    assert channel.lifecycle_listener is None


@pytest.mark.parametrize("name", ["private-orders", "presence-lobby"])
def test_restricted_names_rejected(name, dispatcher):
    with pytest.raises(InvalidArgumentError, match="invalid"):
        Channel(name, dispatcher)


@pytest.mark.parametrize("name", [None, ""])
def test_empty_names_rejected(name, dispatcher):
    with pytest.raises(InvalidArgumentError, match="empty name"):
        Channel(name, dispatcher)


def test_restricted_variant_accepts_its_own_names(dispatcher):
    assert Channel("private-orders", dispatcher, variant=PRIVATE).name == "private-orders"
    assert Channel("presence-lobby", dispatcher, variant=PRESENCE).name == "presence-lobby"


def test_restricted_variant_rejects_public_names(dispatcher):
    with pytest.raises(InvalidArgumentError):
        Channel("feed", dispatcher, variant=PRIVATE)


def test_repr_and_ordering(dispatcher):
    b = Channel("b", dispatcher)
    a = Channel("a", dispatcher)

    assert repr(a) == "[Public Channel: name=a]"
    assert sorted([b, a]) == [a, b]


# ── bind / unbind ─────────────────────────────────────────────────────────────

def test_bind_then_unbind_leaves_no_entry(channel, listener):
    channel.bind("price", listener)
    channel.unbind("price", listener)

    assert channel.listeners_for("price") == frozenset()


def test_unbind_never_bound_is_silent(channel, listener):
    channel.unbind("price", listener)


@pytest.mark.parametrize("event_name", [None, ""])
def test_bind_empty_event_name_raises(channel, listener, event_name):
    with pytest.raises(InvalidArgumentError, match="empty event name"):
        channel.bind(event_name, listener)


def test_bind_none_listener_raises(channel):
    with pytest.raises(InvalidArgumentError, match="null listener"):
        channel.bind("price", None)


def test_bind_internal_event_raises(channel, listener):
    with pytest.raises(InvalidArgumentError, match="internal event"):
        channel.bind(SUCCEEDED, listener)


def test_unbind_validates_like_bind(channel, listener):
    with pytest.raises(InvalidArgumentError):
        channel.unbind("pusher_internal:member_added", listener)


def test_bind_after_unsubscribe_raises(channel, listener):
    channel.build_unsubscribe_message()

    with pytest.raises(IllegalStateError, match="unsubscribed"):
        channel.bind("price", listener)
    with pytest.raises(IllegalStateError):
        channel.unbind("price", listener)


# ── Outbound frames ───────────────────────────────────────────────────────────

def test_subscribe_message_without_token(channel):
    assert channel.build_subscribe_message() == (
        '{"event":"pusher:subscribe","data":{"channel":"feed"}}'
    )


def test_subscribe_message_with_token(channel):
    channel.resume_after = "42"
    assert channel.build_subscribe_message() == (
        '{"event":"pusher:subscribe","data":{"channel":"feed","resume_after":"42"}}'
    )


def test_unsubscribe_message_transitions_and_keeps_listeners(channel, listener):
    channel.bind("price", listener)

    message = channel.build_unsubscribe_message()

    assert json.loads(message) == {
        "event": "pusher:unsubscribe",
        "data": {"channel": "feed"},
    }
    assert channel.state is ChannelState.UNSUBSCRIBED
    assert channel.listeners_for("price") == frozenset({listener})


# ── State ─────────────────────────────────────────────────────────────────────

def test_update_state_subscribe_sent(channel):
    channel.update_state(ChannelState.SUBSCRIBE_SENT)
    assert channel.state is ChannelState.SUBSCRIBE_SENT


def test_unsubscribed_is_sticky(channel):
    channel.update_state(ChannelState.UNSUBSCRIBED)

    with pytest.raises(IllegalStateError, match="cannot change state"):
        channel.update_state(ChannelState.INITIAL)
    channel.update_state(ChannelState.UNSUBSCRIBED)
    assert channel.state is ChannelState.UNSUBSCRIBED


def test_lifecycle_listener_last_write_wins(channel):
    first, second = RecordingListener(), RecordingListener()

    channel.lifecycle_listener = first
    channel.lifecycle_listener = second

    assert channel.lifecycle_listener is second


# ── Subscription success ──────────────────────────────────────────────────────

def test_subscription_succeeded_sets_state_token_and_notifies(channel, listener):
    channel.lifecycle_listener = listener
    channel.update_state(ChannelState.SUBSCRIBE_SENT)

    channel.on_message(SUCCEEDED, _succeeded_frame("feed", {"resume_after": "42"}))

    assert channel.state is ChannelState.SUBSCRIBED
    assert channel.resume_after == "42"
    assert listener.subscriptions == ["feed"]
    assert listener.events == []


def test_subscription_succeeded_without_token_clears_it(channel):
    channel.resume_after = "old"

    channel.on_message(SUCCEEDED, _succeeded_frame("feed", {}))

    assert channel.state is ChannelState.SUBSCRIBED
    assert channel.resume_after is None


def test_subscription_succeeded_without_data(channel):
    channel.on_message(SUCCEEDED, _succeeded_frame("feed"))
    assert channel.state is ChannelState.SUBSCRIBED


def test_subscription_succeeded_without_lifecycle_listener(channel, listener):
    channel.bind("price", listener)
    channel.on_message(SUCCEEDED, _succeeded_frame("feed", {"resume_after": "1"}))

    assert listener.events == []
    assert listener.subscriptions == []


def test_subscription_succeeded_is_submitted_to_dispatcher(listener):
    dispatcher = MagicMock()
    channel = Channel("feed", dispatcher)
    channel.lifecycle_listener = listener

    channel.on_message(SUCCEEDED, _succeeded_frame("feed", {"resume_after": "42"}))

    # Nothing runs until the dispatcher runs the submitted task.
    assert listener.subscriptions == []
    dispatcher.submit.assert_called_once()
    task = dispatcher.submit.call_args.args[0]
    task()
    assert listener.subscriptions == ["feed"]


def test_malformed_success_data_leaves_channel_untouched(channel, listener):
    channel.lifecycle_listener = listener
    channel.update_state(ChannelState.SUBSCRIBE_SENT)
    frame = json.dumps({"event": SUCCEEDED, "channel": "feed", "data": "{not json"})

    with pytest.raises(ProtocolDecodeError):
        channel.on_message(SUCCEEDED, frame)

    assert channel.state is ChannelState.SUBSCRIBE_SENT
    assert listener.subscriptions == []


@pytest.mark.parametrize("token", [42, {"a": 1}, ["1"]])
def test_non_string_resume_after_is_rejected(channel, listener, token):
    channel.lifecycle_listener = listener
    channel.resume_after = "7"
    channel.update_state(ChannelState.SUBSCRIBE_SENT)

    with pytest.raises(ProtocolDecodeError, match="resume_after"):
        channel.on_message(SUCCEEDED, _succeeded_frame("feed", {"resume_after": token}))

    assert channel.state is ChannelState.SUBSCRIBE_SENT
    assert channel.resume_after == "7"
    assert listener.subscriptions == []


def test_subscription_succeeded_with_object_data(channel, listener):
    channel.lifecycle_listener = listener
    frame = json.dumps(
        {"event": SUCCEEDED, "channel": "feed", "data": {"resume_after": "42"}}
    )

    channel.on_message(SUCCEEDED, frame)

    assert channel.state is ChannelState.SUBSCRIBED
    assert channel.resume_after == "42"
    assert listener.subscriptions == ["feed"]


# ── Application events ────────────────────────────────────────────────────────

def test_event_dispatched_to_bound_listener(channel, listener):
    channel.bind("price", listener)

    channel.on_message("price", _event_frame("feed", "price", '{"px":1.5}'))

    assert listener.events == [("feed", "price", '{"px":1.5}')]


def test_event_id_overwrites_token(channel):
    channel.resume_after = "99"

    channel.on_message("price", _event_frame("feed", "price", "x", event_id="7"))

    assert channel.resume_after == "7"


def test_event_id_updates_token_without_listeners(channel):
    channel.on_message("trade", _event_frame("feed", "trade", "x", event_id="8"))
    assert channel.resume_after == "8"


def test_event_without_id_keeps_token(channel):
    channel.resume_after = "5"
    channel.on_message("price", _event_frame("feed", "price", "x"))
    assert channel.resume_after == "5"


def test_event_without_listeners_dispatches_nothing():
    dispatcher = MagicMock()
    channel = Channel("feed", dispatcher)

    channel.on_message("price", _event_frame("feed", "price", "x"))

    dispatcher.submit.assert_not_called()


def test_double_bind_delivers_once(channel, listener):
    channel.bind("price", listener)
    channel.bind("price", listener)

    channel.on_message("price", _event_frame("feed", "price", "x"))

    assert len(listener.events) == 1


def test_every_listener_receives_event(channel):
    a, b = RecordingListener(), RecordingListener()
    channel.bind("price", a)
    channel.bind("price", b)

    channel.on_message("price", _event_frame("feed", "price", "x"))

    assert a.events == b.events == [("feed", "price", "x")]


def test_failing_listener_does_not_block_others(channel):
    class Exploding:
        def on_event(self, channel_name, event_name, data):
            raise RuntimeError("boom")

    good = RecordingListener()
    channel.bind("price", Exploding())
    channel.bind("price", good)

    channel.on_message("price", _event_frame("feed", "price", "1"))
    channel.on_message("price", _event_frame("feed", "price", "2"))

    assert [data for _, _, data in good.events] == ["1", "2"]


def test_listener_only_gets_its_event(channel, listener):
    channel.bind("price", listener)

    channel.on_message("trade", _event_frame("feed", "trade", "x"))

    assert listener.events == []


def test_malformed_frame_raises(channel):
    with pytest.raises(ProtocolDecodeError):
        channel.on_message("price", "{{{")


def test_messages_after_unsubscribe_are_ignored(channel, listener):
    channel.bind("price", listener)
    channel.build_unsubscribe_message()

    channel.on_message("price", _event_frame("feed", "price", "x", event_id="3"))

    assert listener.events == []
    assert channel.resume_after is None


def test_listener_never_runs_on_decode_thread(listener):
    with EventQueue() as queue:
        channel = Channel("feed", queue)
        threads: list[threading.Thread] = []

        class ThreadRecorder:
            def on_event(self, channel_name, event_name, data):
                threads.append(threading.current_thread())

        channel.bind("price", ThreadRecorder())
        channel.on_message("price", _event_frame("feed", "price", "x"))
        assert queue.drain(timeout=5)

    assert len(threads) == 1
    assert threads[0] is not threading.current_thread()


# ── Concurrency ───────────────────────────────────────────────────────────────

def test_concurrent_bind_and_dispatch():
    """
    Application threads bind/unbind while the decode path dispatches. The
    always-bound listener must get exactly one callback per message.
    """
    with EventQueue() as queue:
        channel = Channel("feed", queue)
        stable = RecordingListener()
        channel.bind("price", stable)
        churn = [RecordingListener() for _ in range(10)]
        stop = threading.Event()

        def binder():
            while not stop.is_set():
                for l in churn:
                    channel.bind("price", l)
                for l in churn:
                    channel.unbind("price", l)

        threads = [threading.Thread(target=binder) for _ in range(3)]
        for t in threads:
            t.start()
        for i in range(500):
            channel.on_message("price", _event_frame("feed", "price", str(i), event_id=str(i)))
        stop.set()
        for t in threads:
            t.join()
        assert queue.drain(timeout=10)

    assert [data for _, _, data in stable.events] == [str(i) for i in range(500)]
    assert channel.resume_after == "499"
    assert channel.listeners_for("price") == frozenset({stable})
