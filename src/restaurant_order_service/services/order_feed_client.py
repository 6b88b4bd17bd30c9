"""Viewer-side client for the real-time order channel.

Connects to ``/ws``, filters the broadcast stream down to the events a viewer
cares about, and reconnects after a fixed delay whenever the connection
drops. Events missed while disconnected are never replayed, so every
(re)connect triggers ``on_resync`` to re-fetch state over REST.
"""

import asyncio
import inspect
import logging
from collections.abc import Awaitable, Callable
from typing import Any

import websockets
from pydantic import ValidationError
from websockets.exceptions import WebSocketException

from restaurant_order_service.models.event_models import OrderEvent

logger = logging.getLogger(__name__)

DEFAULT_RECONNECT_DELAY_SECONDS = 3.0

EventCallback = Callable[[OrderEvent], Awaitable[None] | None]
Callback = Callable[[], Awaitable[None] | None]


async def _call(callback: Callable[..., Any] | None, *args: Any) -> None:
    """Run a viewer callback. Its errors are logged and never end the feed."""
    if callback is None:
        return
    try:
        result = callback(*args)
        if inspect.isawaitable(result):
            await result
    except Exception:
        logger.exception("Order feed callback failed")


async def _next_message(messages: Any) -> str | bytes | None:
    try:
        return await anext(messages)
    except StopAsyncIteration:
        return None


class OrderFeedClient:
    """Reconnecting subscriber to the order event broadcast.

    The retry policy is a flat delay between attempts, repeated until
    ``stop()`` is called: no backoff, no jitter and no retry cap.
    """

    def __init__(
        self,
        ws_url: str,
        on_event: EventCallback,
        order_id: str | None = None,
        restaurant_id: str | None = None,
        table_number: int | None = None,
        on_resync: Callback | None = None,
        on_connect: Callback | None = None,
        on_disconnect: Callback | None = None,
        reconnect_delay_seconds: float = DEFAULT_RECONNECT_DELAY_SECONDS,
        poll_while_disconnected: bool = False,
        connect: Callable[[str], Any] = websockets.connect,
    ) -> None:
        """Initialize the feed client.

        Args:
            ws_url: Real-time channel URL (e.g., "wss://orders.example.com/ws")
            on_event: Called with each relevant event
            order_id: Only pass events for this order
            restaurant_id: Only pass events for this restaurant
            table_number: Only pass events for this table
            on_resync: Called after every (re)connect to re-fetch current state
            on_connect: Called when a connection opens
            on_disconnect: Called when a connection drops or fails to open
            reconnect_delay_seconds: Fixed wait before each reconnect attempt
            poll_while_disconnected: Also call on_resync on each failed attempt,
                so dashboards keep refreshing while the channel is down
            connect: Connection factory returning an async context manager
        """
        self.ws_url = ws_url
        self.on_event = on_event
        self.order_id = order_id
        self.restaurant_id = restaurant_id
        self.table_number = table_number
        self.on_resync = on_resync
        self.on_connect = on_connect
        self.on_disconnect = on_disconnect
        self.reconnect_delay_seconds = reconnect_delay_seconds
        self.poll_while_disconnected = poll_while_disconnected
        self._connect = connect
        self._stopped = asyncio.Event()
        self.connected = False

    def is_relevant(self, event: OrderEvent) -> bool:
        """Check an event against this viewer's filters."""
        if self.order_id is not None and event.order_id != self.order_id:
            return False
        if self.restaurant_id is not None and event.restaurant_id != self.restaurant_id:
            return False
        if self.table_number is not None and event.table_number != self.table_number:
            return False
        return True

    def stop(self) -> None:
        """Stop the run loop, interrupting an open connection or a reconnect wait."""
        self._stopped.set()

    async def run(self) -> None:
        """Consume the feed until ``stop()`` is called."""
        while not self._stopped.is_set():
            try:
                async with self._connect(self.ws_url) as websocket:
                    await self._on_open()
                    await self._consume(websocket)
            except (OSError, asyncio.TimeoutError, WebSocketException) as e:
                logger.warning(f"Order feed connection to {self.ws_url} lost: {e}")
            except Exception:
                logger.exception(f"Unexpected order feed error on {self.ws_url}")

            if self.connected:
                self.connected = False
                await _call(self.on_disconnect)
            elif self.poll_while_disconnected and not self._stopped.is_set():
                await _call(self.on_resync)

            if self._stopped.is_set():
                break

            logger.info(f"Reconnecting to order feed in {self.reconnect_delay_seconds}s")
            try:
                await asyncio.wait_for(self._stopped.wait(), timeout=self.reconnect_delay_seconds)
            except asyncio.TimeoutError:
                pass

    async def _on_open(self) -> None:
        self.connected = True
        logger.info(f"Connected to order feed at {self.ws_url}")
        await _call(self.on_connect)
        await _call(self.on_resync)

    async def _consume(self, websocket: Any) -> None:
        messages = aiter(websocket)
        stopped = asyncio.create_task(self._stopped.wait())
        receive: asyncio.Task[str | bytes | None] | None = None
        try:
            while True:
                receive = asyncio.create_task(_next_message(messages))
                await asyncio.wait({receive, stopped}, return_when=asyncio.FIRST_COMPLETED)
                if not receive.done():
                    return
                message = receive.result()
                if message is None or self._stopped.is_set():
                    return
                await self._handle_message(message)
        finally:
            stopped.cancel()
            if receive is not None and not receive.done():
                receive.cancel()
                await asyncio.gather(receive, return_exceptions=True)

    async def _handle_message(self, message: str | bytes) -> None:
        try:
            event = OrderEvent.model_validate_json(message)
        except ValidationError as e:
            logger.error(f"Ignoring malformed order event: {e}")
            return

        if self.is_relevant(event):
            await _call(self.on_event, event)
