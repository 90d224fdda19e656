"""
channel_feed — Per-channel subscription state and protocol handling for a
Pusher-protocol pub/sub client.

Public API:
    Channel             — one channel's lifecycle, continuity token and listeners
    ChannelManager      — registry of channels, routing and resubscription
    WebSocketConnection — transport feeding a ChannelManager
    EventQueue          — single-worker dispatcher for listener callbacks
    ChannelState        — INITIAL / SUBSCRIBE_SENT / SUBSCRIBED / UNSUBSCRIBED
"""
from .channel import Channel
from .channels import PRESENCE, PRIVATE, STANDARD, ChannelClass, ChannelVariant, variant_for
from .connection import WebSocketConnection
from .dispatcher import Dispatcher, EventQueue, SynchronousDispatcher
from .manager import ChannelManager, Transport
from .types import (
    ChannelEventListener,
    ChannelFeedError,
    ChannelState,
    ConnectionError,
    IllegalStateError,
    InvalidArgumentError,
    ProtocolDecodeError,
    SubscriptionEventListener,
)

__all__ = [
    "Channel",
    "ChannelManager",
    "Transport",
    "WebSocketConnection",
    "Dispatcher",
    "EventQueue",
    "SynchronousDispatcher",
    "ChannelClass",
    "ChannelVariant",
    "STANDARD",
    "PRIVATE",
    "PRESENCE",
    "variant_for",
    "ChannelState",
    "ChannelEventListener",
    "SubscriptionEventListener",
    "ChannelFeedError",
    "ConnectionError",
    "IllegalStateError",
    "InvalidArgumentError",
    "ProtocolDecodeError",
]
