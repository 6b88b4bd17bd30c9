"""Client for the order service REST API, used by viewers to re-fetch state."""

import logging
from typing import Any

import httpx
from pydantic import ValidationError

from restaurant_order_service.models.order_models import CreateOrderRequest, Order, OrderStatus

logger = logging.getLogger(__name__)


class OrderApiClient:
    """HTTP client for the order service.

    Read methods are what viewers call after a real-time event or a
    reconnect; the REST API is always the source of truth.
    """

    def __init__(self, base_url: str, api_key: str | None = None, timeout: float = 10.0) -> None:
        """Initialize the order API client.

        Args:
            base_url: Base URL of the order service (e.g., "https://orders.example.com")
            api_key: Staff API key, required for staff-only endpoints
            timeout: Request timeout in seconds
        """
        self.base_url = base_url.rstrip("/")
        self.api_key = api_key
        self.timeout = timeout

    def _headers(self) -> dict[str, str]:
        return {"X-API-Key": self.api_key} if self.api_key else {}

    async def _request(
        self,
        method: str,
        path: str,
        json: dict[str, Any] | None = None,
        params: dict[str, Any] | None = None,
    ) -> Any | None:
        """Send a request and decode its JSON body, or return None on failure."""
        url = f"{self.base_url}{path}"
        try:
            async with httpx.AsyncClient(timeout=self.timeout) as client:
                response = await client.request(
                    method, url, json=json, params=params, headers=self._headers()
                )
                response.raise_for_status()
                return response.json()

        except (httpx.HTTPStatusError, httpx.RequestError) as e:
            logger.error(f"Order API {method} {path} failed: {e}")
            return None
        except ValueError as e:
            logger.error(f"Order API {method} {path} returned a non-JSON body: {e}")
            return None

    def _parse_order(self, data: Any) -> Order | None:
        if data is None:
            return None
        try:
            return Order.model_validate(data)
        except ValidationError as e:
            logger.error(f"Order API returned an invalid order: {e}")
            return None

    def _parse_orders(self, data: Any) -> list[Order] | None:
        if data is None:
            return None
        try:
            return [Order.model_validate(item) for item in data]
        except (TypeError, ValidationError) as e:
            logger.error(f"Order API returned an invalid order list: {e}")
            return None

    async def create_order(self, request: CreateOrderRequest) -> Order | None:
        """Place an order.

        Args:
            request: The order submission

        Returns:
            The created order, or None on failure
        """
        data = await self._request(
            "POST", "/orders", json=request.model_dump(mode="json", by_alias=True)
        )
        return self._parse_order(data)

    async def get_order(self, order_id: str) -> Order | None:
        """Fetch one order, or None if it is missing or the request failed."""
        data = await self._request("GET", f"/orders/{order_id}")
        return self._parse_order(data)

    async def list_restaurant_orders(
        self, restaurant_id: str, status: OrderStatus | None = None
    ) -> list[Order] | None:
        """Fetch a restaurant's orders, newest first (staff key required).

        Args:
            restaurant_id: The restaurant ID
            status: Optional status filter

        Returns:
            List of orders, or None on failure
        """
        params = {"status": status.value} if status is not None else None
        data = await self._request("GET", f"/restaurants/{restaurant_id}/orders", params=params)
        return self._parse_orders(data)

    async def list_table_orders(
        self, restaurant_id: str, table_number: int, active_only: bool = False
    ) -> list[Order] | None:
        """Fetch a table's orders, newest first, or None on failure."""
        data = await self._request(
            "GET",
            f"/restaurants/{restaurant_id}/tables/{table_number}/orders",
            params={"active_only": str(active_only).lower()},
        )
        return self._parse_orders(data)

    async def update_order_status(self, order_id: str, status: OrderStatus) -> Order | None:
        """Request a status transition (staff key required).

        Args:
            order_id: The order to change
            status: The requested status

        Returns:
            The updated order, or None if the request was rejected or failed
        """
        data = await self._request(
            "PATCH", f"/orders/{order_id}/status", json={"status": status.value}
        )
        return self._parse_order(data)
