"""
Publish/subscribe broker.

One producer fans events out to many subscribers. Each subscriber owns a
bounded queue and receives events in FIFO order until it cancels or the broker
stops. Publishing never waits on a slow subscriber.
"""

from __future__ import annotations

import asyncio
import itertools
from collections.abc import AsyncIterator
from typing import Any

from loguru import logger

DEFAULT_QUEUE_SIZE = 100

# Queued to wake a waiting subscriber when it is closed
_CLOSED = object()


class BrokerClosedError(Exception):
    pass


class Subscription:
    def __init__(self, broker: Broker, sub_id: int, maxsize: int):
        self.id = sub_id
        self._broker = broker
        # One slot above maxsize so the close marker always fits
        self._queue: asyncio.Queue[Any] = asyncio.Queue(maxsize=maxsize + 1)
        self._maxsize = maxsize
        self._closed = False

    @property
    def closed(self) -> bool:
        return self._closed

    def pending(self) -> int:
        return self._queue.qsize()

    def _deliver(self, event: Any) -> None:
        if self._closed:
            return
        if self._queue.qsize() >= self._maxsize:
            dropped = self._queue.get_nowait()
            logger.warning(
                f"Subscriber {self.id} queue full, dropped event {type(dropped).__name__}"
            )
        self._queue.put_nowait(event)

    def _close(self) -> None:
        if self._closed:
            return
        self._closed = True
        self._queue.put_nowait(_CLOSED)

    async def next(self) -> Any:
        """
        Wait for the next event.

        Raises:
            BrokerClosedError: If the subscription was cancelled or the broker stopped
        """
        if self._closed and self._queue.empty():
            raise BrokerClosedError("Subscription closed")
        event = await self._queue.get()
        if event is _CLOSED:
            raise BrokerClosedError("Subscription closed")
        return event

    async def updates(self) -> AsyncIterator[Any]:
        while True:
            try:
                yield await self.next()
            except BrokerClosedError:
                return

    def cancel(self) -> None:
        self._broker._remove(self.id)
        self._close()


class Broker:
    def __init__(self, queue_size: int = DEFAULT_QUEUE_SIZE):
        if queue_size < 1:
            raise ValueError("queue_size must be at least 1")
        self.queue_size = queue_size
        self._subscribers: dict[int, Subscription] = {}
        self._ids = itertools.count(1)
        self._running = False
        self._stopped = False

    @property
    def running(self) -> bool:
        return self._running

    def start(self) -> None:
        if self._running or self._stopped:
            return
        self._running = True
        logger.debug("Broker started")

    def stop(self) -> None:
        if self._stopped:
            return
        self._stopped = True
        self._running = False
        subscribers = list(self._subscribers.values())
        self._subscribers.clear()
        for sub in subscribers:
            sub._close()
        logger.debug(f"Broker stopped, closed {len(subscribers)} subscription(s)")

    def subscribe(self, maxsize: int | None = None) -> Subscription:
        if not self._running:
            raise BrokerClosedError("Broker is not running")
        sub = Subscription(self, next(self._ids), maxsize or self.queue_size)
        self._subscribers[sub.id] = sub
        return sub

    def publish(self, event: Any) -> int:
        """Deliver event to every live subscriber. Returns the number reached."""
        if not self._running:
            raise BrokerClosedError("Broker is not running")
        subscribers = list(self._subscribers.values())
        for sub in subscribers:
            sub._deliver(event)
        return len(subscribers)

    def subscriber_count(self) -> int:
        return len(self._subscribers)

    def _remove(self, sub_id: int) -> None:
        self._subscribers.pop(sub_id, None)
