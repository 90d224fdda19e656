"""
Event Dispatcher

Listener callbacks never run on the thread that decoded the inbound frame.
Channels hand zero-argument tasks to a Dispatcher; the production EventQueue
runs them on a single worker thread in submission order.

Usage:
    with EventQueue() as queue:
        channel = Channel("feed", queue)
        ...

A task that raises is logged and dropped; the worker keeps going and later
tasks still run.
"""
from __future__ import annotations

import concurrent.futures
import logging
import threading
from typing import Callable, Protocol, runtime_checkable

from .types import IllegalStateError

logger = logging.getLogger(__name__)

Task = Callable[[], None]


@runtime_checkable
class Dispatcher(Protocol):
    """Accepts listener work for deferred execution."""

    def submit(self, task: Task) -> None:
        ...


def _run_isolated(task: Task) -> None:
    try:
        task()
    except Exception:
        logger.exception("Listener task failed", extra={"task": repr(task)})


class EventQueue:
    """
    Single-consumer FIFO dispatcher backed by a one-worker thread pool.

    Args:
        thread_name_prefix: Name prefix for the worker thread.
    """

    def __init__(self, thread_name_prefix: str = "channel-feed-events") -> None:
        self._executor = concurrent.futures.ThreadPoolExecutor(
            max_workers=1,
            thread_name_prefix=thread_name_prefix,
        )
        self._lock = threading.Lock()
        self._closed = False

    def submit(self, task: Task) -> None:
        """
        Enqueue a task. Tasks run in the order they were submitted.

        Raises:
            IllegalStateError: If the queue has been shut down.
        """
        with self._lock:
            if self._closed:
                raise IllegalStateError("EventQueue has been shut down")
            self._executor.submit(_run_isolated, task)

    def drain(self, timeout: float | None = None) -> bool:
        """
        Wait until every task submitted so far has run.

        Returns False if the timeout expired first.
        """
        with self._lock:
            if self._closed:
                return True
            marker = self._executor.submit(lambda: None)
        try:
            marker.result(timeout=timeout)
        except concurrent.futures.TimeoutError:
            return False
        return True

    def shutdown(self, wait: bool = True) -> None:
        """Stop accepting tasks; optionally wait for queued tasks to finish."""
        with self._lock:
            if self._closed:
                return
            self._closed = True
        self._executor.shutdown(wait=wait)
        logger.debug("EventQueue shut down")

    @property
    def closed(self) -> bool:
        return self._closed

    def __enter__(self) -> EventQueue:
        return self

    def __exit__(self, *_: object) -> None:
        self.shutdown()


class SynchronousDispatcher:
    """
    Runs each task immediately on the caller's thread.

    Intended for tests that need deterministic, single-threaded dispatch.
    Failures are isolated exactly as in EventQueue.
    """

    def submit(self, task: Task) -> None:
        _run_isolated(task)
