"""
Shared fixtures for channel_feed tests.
"""
import threading

import pytest

from channel_feed.channel import Channel
from channel_feed.dispatcher import SynchronousDispatcher


class RecordingListener:
    """Channel listener that records every callback it receives."""

    def __init__(self) -> None:
        self.events: list[tuple] = []
        self.subscriptions: list[str] = []
        self._lock = threading.Lock()

    def on_event(self, channel_name, event_name, data):
        with self._lock:
            self.events.append((channel_name, event_name, data))

    def on_subscription_succeeded(self, channel_name):
        with self._lock:
            self.subscriptions.append(channel_name)


@pytest.fixture
def dispatcher():
    return SynchronousDispatcher()


@pytest.fixture
def channel(dispatcher):
    return Channel("feed", dispatcher)


@pytest.fixture
def listener():
    return RecordingListener()
