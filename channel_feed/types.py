"""
Core Type Definitions and Exceptions

Channel lifecycle states, listener interfaces and the exception hierarchy
shared by every channel_feed module.
"""
from __future__ import annotations

from enum import Enum
from typing import Any, Optional, Protocol, runtime_checkable


class ChannelFeedError(Exception):
    """Base exception for all channel_feed errors."""

    def __init__(
        self,
        message: str,
        context: Optional[dict[str, Any]] = None,
    ) -> None:
        super().__init__(message)
        self.message = message
        self.context = context or {}

    def __str__(self) -> str:
        if self.context:
            ctx_str = ", ".join(f"{k}={v}" for k, v in self.context.items())
            return f"{self.message} [{ctx_str}]"
        return self.message


class InvalidArgumentError(ChannelFeedError, ValueError):
    """Raised when a caller passes a bad channel name, event name or listener."""


class IllegalStateError(ChannelFeedError, RuntimeError):
    """Raised when an operation is not allowed in the current state."""


class ProtocolDecodeError(ChannelFeedError):
    """Raised when an inbound envelope cannot be decoded."""

    def __init__(
        self,
        message: str,
        raw: Any = None,
        context: Optional[dict[str, Any]] = None,
    ) -> None:
        ctx = context or {}
        if raw is not None:
            ctx["raw"] = repr(raw)[:100]  # Truncate long frames
        super().__init__(message, ctx)
        self.raw = raw


class ConnectionError(ChannelFeedError):
    """Raised when the transport connection fails."""

    def __init__(
        self,
        message: str,
        url: str,
        context: Optional[dict[str, Any]] = None,
    ) -> None:
        ctx = context or {}
        ctx["url"] = url
        super().__init__(message, ctx)
        self.url = url


class ChannelState(str, Enum):
    """Subscription lifecycle of a single channel."""

    INITIAL = "initial"
    SUBSCRIBE_SENT = "subscribe_sent"
    SUBSCRIBED = "subscribed"
    UNSUBSCRIBED = "unsubscribed"


@runtime_checkable
class SubscriptionEventListener(Protocol):
    """Receives application events bound on a channel."""

    def on_event(self, channel_name: str, event_name: str, data: Optional[str]) -> None:
        """Called on the dispatcher thread with the event's raw data string."""
        ...


@runtime_checkable
class ChannelEventListener(SubscriptionEventListener, Protocol):
    """Event listener that is also told when the subscription succeeds."""

    def on_subscription_succeeded(self, channel_name: str) -> None:
        ...
