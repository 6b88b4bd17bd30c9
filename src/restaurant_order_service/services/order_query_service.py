"""Read-only access to orders for staff dashboards and customer tracking views."""

import asyncio
import logging
from datetime import UTC, datetime, timedelta

from restaurant_order_service.exceptions import OrderNotFoundError
from restaurant_order_service.models.order_models import ACTIVE_STATUSES, Order, OrderStatus
from restaurant_order_service.repositories.order_repositories import OrderRepository

logger = logging.getLogger(__name__)

STALE_CANDIDATE_STATUSES = [OrderStatus.PENDING, OrderStatus.PREPARING]


class OrderQueryService:
    """Service for order read paths.

    The query surface is the source of truth for viewers; real-time events
    only tell them when to call it again.
    """

    def __init__(self, order_repository: OrderRepository) -> None:
        """Initialize the OrderQueryService.

        Args:
            order_repository: Repository for order records
        """
        self.order_repository = order_repository

    async def get_order(self, order_id: str) -> Order:
        """Get a single order.

        Args:
            order_id: The order ID to retrieve

        Returns:
            The order

        Raises:
            OrderNotFoundError: If the order does not exist
        """
        order = await asyncio.to_thread(self.order_repository.get_order, order_id)
        if order is None:
            raise OrderNotFoundError(order_id)
        return order

    async def get_orders_by_restaurant(
        self,
        restaurant_id: str,
        status: OrderStatus | None = None,
    ) -> list[Order]:
        """Get all orders for a restaurant, newest first.

        Args:
            restaurant_id: The restaurant ID
            status: Optional status to filter by

        Returns:
            List of orders, empty list if none found
        """
        return await asyncio.to_thread(
            self.order_repository.list_orders_for_restaurant, restaurant_id, status
        )

    async def get_orders_by_table(self, restaurant_id: str, table_number: int) -> list[Order]:
        """Get the order history of one table, newest first."""
        return await asyncio.to_thread(
            self.order_repository.list_orders_for_table, restaurant_id, table_number
        )

    async def get_active_orders_for_table(
        self, restaurant_id: str, table_number: int
    ) -> list[Order]:
        """Get a table's orders that have not reached a terminal status.

        Used to detect active orders when a customer returns to the table.
        """
        orders = await self.get_orders_by_table(restaurant_id, table_number)
        return [order for order in orders if order.status in ACTIVE_STATUSES]

    async def get_stale_orders(self, restaurant_id: str, older_than: timedelta) -> list[Order]:
        """Get pending or preparing orders whose status has not changed for a while.

        Nothing is cancelled automatically; callers decide what to do with them.

        Args:
            restaurant_id: The restaurant ID
            older_than: Minimum time since the last status change

        Returns:
            List of stale orders, newest first
        """
        cutoff = datetime.now(UTC) - older_than
        orders = await asyncio.to_thread(
            self.order_repository.list_orders_updated_before,
            restaurant_id,
            STALE_CANDIDATE_STATUSES,
            cutoff,
        )
        if orders:
            logger.info(
                f"{len(orders)} orders for restaurant {restaurant_id} "
                f"unchanged since {cutoff.isoformat()}"
            )
        return orders
