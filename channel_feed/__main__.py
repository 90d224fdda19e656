"""
Channel Feed CLI

Subscribes to one channel and logs every event it receives until
interrupted.

    python -m channel_feed feed price trade --url wss://ws.example.com/app/KEY?protocol=5
"""
from __future__ import annotations

import argparse
import asyncio
import logging
import signal
from typing import Optional

from dotenv import load_dotenv

logger = logging.getLogger("channel_feed")


class LoggingListener:
    """Logs subscription success and every bound event."""

    def on_subscription_succeeded(self, channel_name: str) -> None:
        logger.info(f"Subscribed to {channel_name}")

    def on_event(self, channel_name: str, event_name: str, data: Optional[str]) -> None:
        logger.info(f"[{channel_name}] {event_name}: {(data or '')[:200]}")


async def run(channel_name: str, event_names: list[str], url: str) -> None:
    from channel_feed.config import settings
    from channel_feed.connection import WebSocketConnection
    from channel_feed.dispatcher import EventQueue
    from channel_feed.manager import ChannelManager

    queue = EventQueue(thread_name_prefix=settings.dispatcher.thread_name_prefix)
    manager = ChannelManager(dispatcher=queue)
    connection = WebSocketConnection(
        url,
        manager,
        ping_interval=settings.connection.ping_interval,
        ping_timeout=settings.connection.ping_timeout,
        close_timeout=settings.connection.close_timeout,
    )

    stop = asyncio.Event()
    loop = asyncio.get_running_loop()
    for sig in (signal.SIGINT, signal.SIGTERM):
        loop.add_signal_handler(sig, stop.set)

    await manager.subscribe(channel_name, LoggingListener(), *event_names)
    try:
        await connection.connect()
        await stop.wait()
    finally:
        await connection.disconnect()
        if not queue.drain(timeout=settings.dispatcher.shutdown_timeout):
            logger.warning("Event queue did not drain before shutdown")
        queue.shutdown(wait=False)
        logger.info(f"Stats: {connection.get_stats()}")


def main(argv: Optional[list[str]] = None) -> None:
    load_dotenv(".env")

    from channel_feed.config import settings

    logging.basicConfig(
        level=settings.log_level,
        format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
    )

    parser = argparse.ArgumentParser(description="Subscribe to a channel and log its events")
    parser.add_argument("channel", help="Channel name")
    parser.add_argument("events", nargs="*", help="Event names to bind")
    parser.add_argument(
        "--url",
        default=settings.connection.ws_url,
        help="WebSocket URL (default: CHANNEL_FEED_WS_URL)",
    )
    args = parser.parse_args(argv)
    if not args.url:
        parser.error("no WebSocket URL: pass --url or set CHANNEL_FEED_WS_URL")

    asyncio.run(run(args.channel, args.events, args.url))


if __name__ == "__main__":
    main()
