"""Real-time notifier pushing order lifecycle events to connected viewers.

Every event goes to every open connection; viewers discard events that are
not relevant to them. Delivery is best-effort and at-most-once per
connection: there is no queueing or replay for viewers that are offline.
"""

import asyncio
import inspect
import logging
import time
from collections.abc import Awaitable, Callable
from typing import Any, Protocol

from restaurant_order_service.exceptions import NotificationDeliveryError
from restaurant_order_service.models.event_models import OrderEvent
from restaurant_order_service.observability.metrics import (
    record_broadcast,
    record_notification_failure,
    record_viewer_connection_change,
)

logger = logging.getLogger(__name__)

DEFAULT_SEND_TIMEOUT_SECONDS = 1.0

# Close code sent to viewers dropped after a failed or timed-out send
PRUNED_CLOSE_CODE = 1011


class ViewerConnection(Protocol):
    """A persistent connection that accepts text frames (e.g. a Starlette WebSocket)."""

    async def send_text(self, data: str) -> None: ...

    async def close(self, code: int = 1000) -> None: ...


ConnectionHook = Callable[[ViewerConnection], Awaitable[None] | None]


class ConnectionRegistry:
    """Set of open viewer connections.

    Mutations are serialized by a lock and broadcasts iterate over a snapshot,
    so a connection can be pruned while a broadcast is in flight.
    """

    def __init__(self) -> None:
        self._connections: set[ViewerConnection] = set()
        self._lock = asyncio.Lock()

    async def add(self, connection: ViewerConnection) -> None:
        async with self._lock:
            self._connections.add(connection)

    async def remove(self, connection: ViewerConnection) -> bool:
        """Remove a connection.

        Returns:
            bool: True if the connection was registered
        """
        async with self._lock:
            if connection not in self._connections:
                return False
            self._connections.discard(connection)
            return True

    async def snapshot(self) -> list[ViewerConnection]:
        async with self._lock:
            return list(self._connections)

    def __len__(self) -> int:
        return len(self._connections)

    def __contains__(self, connection: object) -> bool:
        return connection in self._connections


class OrderNotifier:
    """Delivers order events to viewers and tracks their connections.

    The lifecycle service hands events to ``publish``, which never blocks. A
    single dispatcher task broadcasts queued events in the order they were
    published; nothing raised while broadcasting reaches the publisher.
    """

    def __init__(
        self,
        registry: ConnectionRegistry | None = None,
        send_timeout_seconds: float = DEFAULT_SEND_TIMEOUT_SECONDS,
        max_queue_size: int = 1000,
    ) -> None:
        """Initialize the notifier.

        Args:
            registry: Connection registry (a new one is created if omitted)
            send_timeout_seconds: Upper bound for delivering one frame to one viewer
            max_queue_size: Events buffered for the dispatcher before new ones are dropped
        """
        self.registry = registry if registry is not None else ConnectionRegistry()
        self.send_timeout_seconds = send_timeout_seconds
        self._queue: asyncio.Queue[OrderEvent] = asyncio.Queue(maxsize=max_queue_size)
        self._dispatcher: asyncio.Task[None] | None = None
        self._connect_hooks: list[ConnectionHook] = []
        self._disconnect_hooks: list[ConnectionHook] = []

    def on_connect(self, handler: ConnectionHook) -> None:
        """Register a hook called after a viewer connects."""
        self._connect_hooks.append(handler)

    def on_disconnect(self, handler: ConnectionHook) -> None:
        """Register a hook called after a viewer disconnects or is pruned."""
        self._disconnect_hooks.append(handler)

    @property
    def connection_count(self) -> int:
        return len(self.registry)

    async def connect(self, connection: ViewerConnection) -> None:
        """Start delivering events to an accepted connection."""
        await self.registry.add(connection)
        record_viewer_connection_change(1)
        logger.info(f"Viewer connected, {len(self.registry)} open connections")
        await self._run_hooks(self._connect_hooks, connection)

    async def disconnect(self, connection: ViewerConnection) -> None:
        """Stop delivering events to a connection. Safe to call more than once."""
        if not await self.registry.remove(connection):
            return
        record_viewer_connection_change(-1)
        logger.info(f"Viewer disconnected, {len(self.registry)} open connections")
        await self._run_hooks(self._disconnect_hooks, connection)

    def publish(self, event: OrderEvent) -> None:
        """Queue an event for broadcast.

        Args:
            event: The lifecycle event to deliver

        Raises:
            NotificationDeliveryError: If the queue is full and the event was dropped
        """
        try:
            self._queue.put_nowait(event)
        except asyncio.QueueFull as e:
            record_notification_failure("queue_full")
            raise NotificationDeliveryError(
                f"Event queue full, dropping {event.event_type.value} for order {event.order_id}"
            ) from e

    async def broadcast(self, event: OrderEvent) -> int:
        """Send an event to every open connection.

        Connections that fail or time out are pruned and closed, so the viewer
        sees the drop and reconnects. A slow viewer delays the next event by at
        most ``send_timeout_seconds``. Never raises.

        Args:
            event: The lifecycle event to deliver

        Returns:
            int: Number of connections the event was delivered to
        """
        try:
            payload = event.to_wire()
        except Exception as e:
            logger.error(f"Failed to serialize event for order {event.order_id}: {e}")
            record_notification_failure("serialization")
            return 0

        started = time.perf_counter()
        connections = await self.registry.snapshot()
        results = await asyncio.gather(*(self._send(c, payload) for c in connections))

        failed = [conn for conn, delivered in zip(connections, results) if not delivered]
        for connection in failed:
            await self.disconnect(connection)
        await asyncio.gather(*(self._close(c) for c in failed))

        delivered_count = len(connections) - len(failed)
        record_broadcast(time.perf_counter() - started, len(failed))
        logger.debug(
            f"Broadcast {event.event_type.value} for order {event.order_id} "
            f"to {delivered_count} viewers ({len(failed)} pruned)"
        )
        return delivered_count

    async def start(self) -> None:
        """Start the dispatcher task. Must be called from the running event loop."""
        if self._dispatcher is None or self._dispatcher.done():
            self._dispatcher = asyncio.create_task(self._dispatch_loop())
            logger.info("Order event dispatcher started")

    async def stop(self) -> None:
        """Stop the dispatcher task. Events still queued are discarded."""
        if self._dispatcher is None:
            return
        self._dispatcher.cancel()
        try:
            await self._dispatcher
        except asyncio.CancelledError:
            pass
        self._dispatcher = None
        logger.info("Order event dispatcher stopped")

    async def drain(self) -> None:
        """Wait until every queued event has been broadcast."""
        await self._queue.join()

    async def _dispatch_loop(self) -> None:
        while True:
            event = await self._queue.get()
            try:
                await self.broadcast(event)
            except Exception:
                logger.exception(f"Unexpected error broadcasting event for order {event.order_id}")
            finally:
                self._queue.task_done()

    async def _send(self, connection: ViewerConnection, payload: str) -> bool:
        try:
            await asyncio.wait_for(connection.send_text(payload), timeout=self.send_timeout_seconds)
            return True
        except asyncio.TimeoutError:
            reason = "timeout"
        except Exception as e:
            reason = type(e).__name__

        logger.warning(f"Failed to deliver event to viewer: {reason}")
        record_notification_failure(reason)
        return False

    async def _close(self, connection: ViewerConnection) -> None:
        try:
            await asyncio.wait_for(
                connection.close(code=PRUNED_CLOSE_CODE), timeout=self.send_timeout_seconds
            )
        except Exception as e:
            logger.debug(f"Closing pruned viewer failed: {type(e).__name__}")

    async def _run_hooks(self, hooks: list[ConnectionHook], connection: Any) -> None:
        for hook in hooks:
            try:
                result = hook(connection)
                if inspect.isawaitable(result):
                    await result
            except Exception:
                logger.exception("Connection hook failed")
