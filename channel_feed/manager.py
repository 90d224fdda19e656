"""
Channel Manager

Owns the channels a client has subscribed to, routes inbound frames to them
by name and (re)sends subscribe frames whenever the transport connects.

Usage:
    manager = ChannelManager(dispatcher=queue)
    connection = WebSocketConnection(url, manager)   # attaches itself
    await connection.connect()

    channel = await manager.subscribe("feed", listener, "price", "trade")
    ...
    await manager.unsubscribe("feed")
"""
from __future__ import annotations

import logging
from typing import Optional, Protocol, runtime_checkable

from .channel import Channel
from .channels import variant_for
from .dispatcher import Dispatcher
from .types import ChannelEventListener, ChannelState, InvalidArgumentError

logger = logging.getLogger(__name__)


@runtime_checkable
class Transport(Protocol):
    """Sends text frames to the server."""

    @property
    def connected(self) -> bool:
        ...

    async def send(self, message: str) -> None:
        ...


class ChannelManager:
    """
    Registry of channels keyed by name.

    Args:
        dispatcher: Shared by every channel for listener callbacks.
    """

    def __init__(self, dispatcher: Dispatcher) -> None:
        self._dispatcher = dispatcher
        self._channels: dict[str, Channel] = {}
        self._transport: Optional[Transport] = None

    def set_transport(self, transport: Transport) -> None:
        self._transport = transport

    @property
    def _connected(self) -> bool:
        return self._transport is not None and self._transport.connected

    # ── Subscribe / unsubscribe ───────────────────────────────────────────────

    async def subscribe(
        self,
        name: str,
        listener: Optional[ChannelEventListener] = None,
        *event_names: str,
    ) -> Channel:
        """
        Create and register a channel, sending the subscribe frame if connected.

        listener, when given, becomes the lifecycle listener and is bound to
        every name in event_names.

        Raises:
            InvalidArgumentError: Bad or duplicate name, or a restricted
                channel name (authorization is not supported).
        """
        if name and variant_for(name).restricted:
            raise InvalidArgumentError(
                f"Channel {name} requires authorization, which this client does not provide"
            )
        if name in self._channels:
            raise InvalidArgumentError(
                f"Already subscribed to a channel with name {name}"
            )

        channel = Channel(name, self._dispatcher)
        if listener is not None:
            channel.lifecycle_listener = listener
            for event_name in event_names:
                channel.bind(event_name, listener)

        self._channels[name] = channel
        logger.info("Subscribing to channel %s", name)

        if self._connected:
            await self._send_subscribe(channel)
        return channel

    async def unsubscribe(self, name: str) -> None:
        """
        Remove a channel and send its unsubscribe frame if connected.

        Raises:
            InvalidArgumentError: No channel with that name is registered.
        """
        channel = self._channels.pop(name, None)
        if channel is None:
            raise InvalidArgumentError(f"Cannot unsubscribe from unknown channel {name}")

        message = channel.build_unsubscribe_message()
        logger.info("Unsubscribing from channel %s", name)
        if self._connected:
            await self._transport.send(message)

    async def _send_subscribe(self, channel: Channel) -> None:
        """
        Send the subscribe frame for a channel that is still registered.

        SUBSCRIBE_SENT is set before the send so a success frame delivered
        while the send is in flight is not overwritten afterwards. A failed
        send rolls the state back to INITIAL.
        """
        if self._channels.get(channel.name) is not channel:
            logger.debug("Skipping subscribe for removed channel %s", channel.name)
            return
        if channel.state is ChannelState.UNSUBSCRIBED:
            return

        message = channel.build_subscribe_message()
        channel.update_state(ChannelState.SUBSCRIBE_SENT)
        try:
            await self._transport.send(message)
        except Exception:
            if channel.state is ChannelState.SUBSCRIBE_SENT:
                channel.update_state(ChannelState.INITIAL)
            raise

    # ── Lookup ────────────────────────────────────────────────────────────────

    def get_channel(self, name: str) -> Optional[Channel]:
        return self._channels.get(name)

    @property
    def channels(self) -> list[Channel]:
        """Registered channels, ordered by name."""
        return sorted(self._channels.values())

    def __contains__(self, name: object) -> bool:
        return name in self._channels

    # ── Transport callbacks ───────────────────────────────────────────────────

    def deliver(self, channel_name: str, event_name: str, raw: str | bytes) -> None:
        """
        Route an inbound frame to its channel.

        Raises:
            ProtocolDecodeError: Propagated from the channel.
        """
        channel = self._channels.get(channel_name)
        if channel is None:
            logger.debug("Dropping %s for unknown channel %s", event_name, channel_name)
            return
        channel.on_message(event_name, raw)

    async def on_connected(self) -> None:
        """Send subscribe frames for every registered channel, with surviving tokens."""
        for channel in self.channels:
            await self._send_subscribe(channel)
        if self._channels:
            logger.info("Resubscribed %d channel(s)", len(self._channels))

    def on_connection_lost(self, resumable: bool = True) -> None:
        """
        React to the transport going away.

        resumable keeps every channel and its continuity token for the next
        on_connected(); otherwise every channel is unsubscribed and dropped.
        """
        if resumable:
            for channel in self._channels.values():
                channel.update_state(ChannelState.INITIAL)
            return

        for channel in self._channels.values():
            channel.update_state(ChannelState.UNSUBSCRIBED)
        logger.info("Dropped %d channel(s) after connection teardown", len(self._channels))
        self._channels.clear()
