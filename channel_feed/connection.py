"""
WebSocket Connection

Transport for the channel layer. Opens one WebSocket to the configured URL,
hands every frame addressed to a channel to the ChannelManager and sends the
subscribe/unsubscribe frames the channels build.

There is no reconnect logic here. When the socket drops, the manager is told
the connection was lost (channels keep their continuity tokens) and the
owner decides whether to call connect() again.
"""
from __future__ import annotations

import asyncio
import logging
from datetime import datetime, timezone
from typing import Any, Optional

import websockets
from websockets.exceptions import ConnectionClosed, ConnectionClosedError

from . import serializer
from .manager import ChannelManager
from .types import ChannelFeedError, ConnectionError, IllegalStateError, ProtocolDecodeError

logger = logging.getLogger(__name__)


class WebSocketConnection:
    """
    Single WebSocket connection feeding a ChannelManager.

    Attaches itself to the manager as its transport on construction.
    """

    def __init__(
        self,
        ws_url: str,
        manager: ChannelManager,
        *,
        ping_interval: float = 20.0,
        ping_timeout: float = 10.0,
        close_timeout: float = 5.0,
    ) -> None:
        """
        Initialize the connection.

        Args:
            ws_url: Full WebSocket URL including app key and query string
            manager: Receives inbound channel frames and connection events
            ping_interval: Interval between ping frames (seconds)
            ping_timeout: Timeout for pong response (seconds)
            close_timeout: Timeout for close handshake (seconds)
        """
        self._ws_url = ws_url
        self._manager = manager
        self._ping_interval = ping_interval
        self._ping_timeout = ping_timeout
        self._close_timeout = close_timeout

        # Connection state
        self._ws: Optional[Any] = None
        self._established = False
        self._closing = False
        self._socket_id: Optional[str] = None

        # Stats
        self._messages_received = 0
        self._last_message_time: Optional[datetime] = None

        self._receive_task: Optional[asyncio.Task[None]] = None

        manager.set_transport(self)

    @property
    def connected(self) -> bool:
        """True once the server has confirmed the connection."""
        return self._established and self._ws is not None

    @property
    def socket_id(self) -> Optional[str]:
        return self._socket_id

    @property
    def messages_received(self) -> int:
        return self._messages_received

    async def connect(self) -> None:
        """
        Open the WebSocket and start receiving.

        Raises:
            ConnectionError: If the socket cannot be opened.
        """
        self._closing = False
        logger.info("Connecting", extra={"url": self._ws_url})
        try:
            self._ws = await websockets.connect(
                self._ws_url,
                ping_interval=self._ping_interval,
                ping_timeout=self._ping_timeout,
                close_timeout=self._close_timeout,
            )
        except Exception as e:
            raise ConnectionError(f"Failed to connect: {e}", url=self._ws_url) from e

        self._receive_task = asyncio.create_task(self._receive_loop())

    async def send(self, message: str) -> None:
        """
        Send a text frame.

        Raises:
            IllegalStateError: If the connection is not established.
        """
        if not self.connected:
            raise IllegalStateError(
                "Cannot send while not connected",
                context={"url": self._ws_url},
            )
        await self._ws.send(message)

    async def _receive_loop(self) -> None:
        """Main receive loop for WebSocket messages."""
        if self._ws is None:
            return

        try:
            async for message in self._ws:
                await self._handle_message(message)

        except ConnectionClosedError as e:
            logger.warning(
                f"Connection closed: code={getattr(e, 'code', None)}, reason={getattr(e, 'reason', None)}",
            )
        except ConnectionClosed as e:
            logger.info(f"Connection closed: code={getattr(e, 'code', None)}")
        finally:
            self._established = False
            if not self._closing:
                self._manager.on_connection_lost(resumable=True)

    async def _handle_message(self, frame: str | bytes) -> None:
        """Decode one frame and route it."""
        self._messages_received += 1
        self._last_message_time = datetime.now(timezone.utc)

        try:
            message = serializer.decode(frame)
        except ProtocolDecodeError as e:
            logger.warning("Dropping undecodable frame", extra={"error": str(e)})
            return

        if message.event == serializer.CONNECTION_ESTABLISHED_EVENT:
            await self._on_established(message)
            return

        if message.event == serializer.ERROR_EVENT:
            logger.warning("Server error", extra={"data": message.data})
            return

        if message.channel is None or message.event is None:
            logger.debug("Ignoring connection-level event %s", message.event)
            return

        try:
            self._manager.deliver(message.channel, message.event, frame)
        except ProtocolDecodeError as e:
            logger.warning(
                "Dropping malformed channel frame",
                extra={"channel": message.channel, "event": message.event, "error": str(e)},
            )
        except ChannelFeedError as e:
            logger.error(
                "Channel frame handling failed",
                extra={"channel": message.channel, "event": message.event, "error": str(e)},
                exc_info=True,
            )

    async def _on_established(self, message: serializer.InboundMessage) -> None:
        try:
            data = serializer.decode_data(message.data)
        except ProtocolDecodeError as e:
            logger.warning("Malformed connection_established frame", extra={"error": str(e)})
            data = {}
        self._socket_id = data.get("socket_id")
        self._established = True
        logger.info("Connected", extra={"socket_id": self._socket_id})
        try:
            await self._manager.on_connected()
        except ChannelFeedError as e:
            logger.error(
                "Resubscribe after connect failed",
                extra={"error": str(e)},
                exc_info=True,
            )

    async def disconnect(self) -> None:
        """Close the socket and unsubscribe every channel."""
        logger.info("Disconnecting")
        self._closing = True
        self._established = False

        if self._receive_task and not self._receive_task.done():
            self._receive_task.cancel()
            try:
                await self._receive_task
            except asyncio.CancelledError:
                pass

        if self._ws:
            try:
                await self._ws.close()
            except Exception as e:
                logger.warning(
                    "Error closing WebSocket",
                    extra={"error": str(e)},
                )
            finally:
                self._ws = None

        self._manager.on_connection_lost(resumable=False)
        logger.info(
            "Disconnected",
            extra={"messages_received": self._messages_received},
        )

    def get_stats(self) -> dict[str, Any]:
        """Get connection statistics."""
        return {
            "connected": self.connected,
            "socket_id": self._socket_id,
            "messages_received": self._messages_received,
            "last_message_time": (
                self._last_message_time.isoformat()
                if self._last_message_time
                else None
            ),
            "channels": [channel.name for channel in self._manager.channels],
        }
