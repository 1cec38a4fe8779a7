"""
Realtime broadcast bus for operator event streams.

Tracks every open server-sent-events connection in this process and pushes
named events to all of them. Delivery is fire-and-forget: no queueing for
late joiners, no replay, no acknowledgement. A subscriber whose write fails
is dropped on the spot so half-closed connections never accumulate.
"""

from __future__ import annotations

import asyncio
import logging
import uuid
from typing import Any, AsyncIterator, Protocol

from app.utils.sse import format_sse, format_sse_comment

logger = logging.getLogger(__name__)

CONNECTED_EVENT = "connected"
KEEPALIVE_COMMENT = "keepalive"


class StreamClosed(Exception):
    """Raised when writing to a subscriber that has already been closed."""


class StreamSubscriber(Protocol):
    """Anything the bus can write SSE frames to."""

    def write(self, frame: str) -> None:
        """Queue a frame; raise if the connection can no longer accept it."""

    def close(self) -> None:
        """Signal end-of-stream. Must be idempotent."""


class SseSubscriber:
    """
    One open event-stream connection.

    Frames are buffered in a bounded queue drained by the HTTP response
    generator. A full queue means the client stopped reading, which the bus
    treats the same as a failed socket write.
    """

    def __init__(self, max_queue_size: int = 100):
        self.id = uuid.uuid4().hex[:8]
        self._queue: asyncio.Queue[str | None] = asyncio.Queue(maxsize=max_queue_size)
        self._closed = False

    @property
    def closed(self) -> bool:
        return self._closed

    def write(self, frame: str) -> None:
        if self._closed:
            raise StreamClosed(f"subscriber {self.id} is closed")
        self._queue.put_nowait(frame)

    def close(self) -> None:
        if self._closed:
            return
        self._closed = True
        try:
            self._queue.put_nowait(None)
        except asyncio.QueueFull:
            # Reader is stalled; drop one frame to make room for the sentinel
            self._queue.get_nowait()
            self._queue.put_nowait(None)

    async def frames(self) -> AsyncIterator[str]:
        """Yield frames until the subscriber is closed."""
        while True:
            frame = await self._queue.get()
            if frame is None:
                return
            yield frame

    def __repr__(self) -> str:
        return f"<SseSubscriber {self.id}>"


class BroadcastBus:
    """
    Registry of live stream subscribers.

    Constructed once per process (see the app lifespan) and shut down
    explicitly; independent instances can coexist, which keeps tests
    isolated. All methods must run on the event loop thread.
    """

    def __init__(self, keepalive_interval: float | None = 30.0):
        self._keepalive_interval = keepalive_interval
        # subscriber -> heartbeat task (None when keep-alive is disabled)
        self._subscribers: dict[StreamSubscriber, asyncio.Task | None] = {}

    @property
    def subscriber_count(self) -> int:
        return len(self._subscribers)

    def is_subscribed(self, subscriber: StreamSubscriber) -> bool:
        return subscriber in self._subscribers

    def subscribe(self, subscriber: StreamSubscriber) -> None:
        """Register a subscriber, greet it, and start its keep-alive heartbeat."""
        if subscriber in self._subscribers:
            return

        subscriber.write(
            format_sse(
                CONNECTED_EVENT,
                {
                    "message": "Connected to SupportBase events",
                    "clients": len(self._subscribers) + 1,
                },
            )
        )
        self._subscribers[subscriber] = self._start_heartbeat(subscriber)
        logger.info("Event stream subscriber connected (total: %d)", len(self._subscribers))

    def unsubscribe(self, subscriber: StreamSubscriber) -> bool:
        """Remove a subscriber, cancel its heartbeat, and close it. Idempotent."""
        removed = self._remove(subscriber, cancel_heartbeat=True)
        if removed:
            logger.info(
                "Event stream subscriber disconnected (total: %d)", len(self._subscribers)
            )
        return removed

    def broadcast(self, event_name: str, data: Any) -> int:
        """
        Write one event to every current subscriber.

        Returns the number of subscribers the frame was handed to. A failing
        subscriber is removed and does not affect delivery to the rest.
        """
        frame = format_sse(event_name, data)
        delivered = 0
        for subscriber in list(self._subscribers):
            try:
                subscriber.write(frame)
            except Exception as exc:
                logger.warning(
                    "Event stream write failed, removing subscriber: %s",
                    type(exc).__name__,
                )
                self._remove(subscriber, cancel_heartbeat=True)
                continue
            delivered += 1

        logger.debug(
            "Broadcast %s to %d subscriber(s)", event_name, delivered
        )
        return delivered

    def shutdown(self) -> None:
        """Close every open stream. Used on application shutdown."""
        for subscriber in list(self._subscribers):
            self._remove(subscriber, cancel_heartbeat=True)

    # ------------------------------------------------------------------
    # Internals
    # ------------------------------------------------------------------

    def _start_heartbeat(self, subscriber: StreamSubscriber) -> asyncio.Task | None:
        if not self._keepalive_interval:
            return None
        return asyncio.get_running_loop().create_task(self._heartbeat(subscriber))

    async def _heartbeat(self, subscriber: StreamSubscriber) -> None:
        while True:
            await asyncio.sleep(self._keepalive_interval)
            if subscriber not in self._subscribers:
                return
            try:
                subscriber.write(format_sse_comment(KEEPALIVE_COMMENT))
            except Exception:
                logger.info("Keep-alive write failed, removing subscriber")
                # Already inside the heartbeat task; do not cancel ourselves
                self._remove(subscriber, cancel_heartbeat=False)
                return

    def _remove(self, subscriber: StreamSubscriber, *, cancel_heartbeat: bool) -> bool:
        if subscriber not in self._subscribers:
            return False
        heartbeat = self._subscribers.pop(subscriber)
        if heartbeat is not None and cancel_heartbeat:
            heartbeat.cancel()
        try:
            subscriber.close()
        except Exception:
            logger.debug("Ignoring error while closing subscriber", exc_info=True)
        return True
