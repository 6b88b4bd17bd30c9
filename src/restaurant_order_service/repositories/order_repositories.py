"""DynamoDB repository classes for orders, restaurants and menu items.

Expected absence is reported with ``None``. Unexpected DynamoDB failures are
logged and raised as ``OrderStoreError`` so that an unavailable store is never
mistaken for a missing record.
"""

import logging
from datetime import datetime
from typing import Any

from botocore.exceptions import ClientError
from mypy_boto3_dynamodb.service_resource import DynamoDBServiceResource, Table

from restaurant_order_service.exceptions import OrderStoreError
from restaurant_order_service.models.menu_models import MenuItem, Restaurant
from restaurant_order_service.models.order_models import (
    Order,
    OrderStatus,
    build_table_key,
    format_timestamp,
)

logger = logging.getLogger(__name__)

RESTAURANT_INDEX = "restaurant_id-created_at-index"
TABLE_INDEX = "table_key-created_at-index"


def _is_condition_failure(error: ClientError) -> bool:
    return error.response.get("Error", {}).get("Code") == "ConditionalCheckFailedException"


class OrderRepository:
    """Repository for order records.

    Orders use ``id`` as partition key. Two GSIs sorted by ``created_at``
    serve the restaurant and table read paths.
    """

    def __init__(self, dynamodb_resource: DynamoDBServiceResource, table_name: str) -> None:
        """Initialize repository.

        Args:
            dynamodb_resource: Boto3 DynamoDB resource
            table_name: Name of the DynamoDB table
        """
        self.dynamodb = dynamodb_resource
        self.table_name = table_name
        self.table: Table = dynamodb_resource.Table(table_name)

    def create_order(self, order: Order) -> None:
        """Persist a new order.

        Args:
            order: Order to save

        Raises:
            OrderStoreError: If the write fails or the id already exists
        """
        try:
            self.table.put_item(
                Item=order.to_dynamodb_item(),
                ConditionExpression="attribute_not_exists(id)",
            )
        except ClientError as e:
            logger.error(f"Failed to save order {order.id}: {e}")
            raise OrderStoreError(f"Failed to save order {order.id}") from e

    def get_order(self, order_id: str) -> Order | None:
        """Retrieve an order by id.

        Args:
            order_id: Order identifier

        Returns:
            Order if found, None otherwise
        """
        try:
            response = self.table.get_item(Key={"id": order_id}, ConsistentRead=True)
        except ClientError as e:
            logger.error(f"Failed to get order {order_id}: {e}")
            raise OrderStoreError(f"Failed to get order {order_id}") from e

        if "Item" not in response:
            return None

        return Order.from_dynamodb_item(response["Item"])

    def update_status(
        self,
        order_id: str,
        expected_status: OrderStatus,
        new_status: OrderStatus,
        updated_at: datetime,
    ) -> Order | None:
        """Move an order to a new status if it is still in the expected status.

        Status and ``updated_at`` are written in a single conditional update, so
        no reader can observe one without the other and two writers racing from
        the same prior status cannot both succeed.

        Args:
            order_id: Order identifier
            expected_status: Status the caller read before deciding
            new_status: Status to write
            updated_at: Timestamp of the change

        Returns:
            The updated Order, or None if the stored status no longer matched
        """
        try:
            response = self.table.update_item(
                Key={"id": order_id},
                UpdateExpression="SET #status = :new_status, updated_at = :updated_at",
                ConditionExpression="attribute_exists(id) AND #status = :expected_status",
                ExpressionAttributeNames={"#status": "status"},
                ExpressionAttributeValues={
                    ":new_status": new_status.value,
                    ":expected_status": expected_status.value,
                    ":updated_at": format_timestamp(updated_at),
                },
                ReturnValues="ALL_NEW",
            )
        except ClientError as e:
            if _is_condition_failure(e):
                logger.info(
                    f"Status of order {order_id} changed concurrently, "
                    f"expected '{expected_status.value}'"
                )
                return None
            logger.error(f"Failed to update status of order {order_id}: {e}")
            raise OrderStoreError(f"Failed to update order {order_id}") from e

        return Order.from_dynamodb_item(response["Attributes"])

    def list_orders_for_restaurant(
        self, restaurant_id: str, status: OrderStatus | None = None
    ) -> list[Order]:
        """List orders for a restaurant, newest first.

        Args:
            restaurant_id: Restaurant identifier
            status: Optional status filter

        Returns:
            list: List of Order objects (empty list if none found)
        """
        query: dict[str, Any] = {
            "IndexName": RESTAURANT_INDEX,
            "KeyConditionExpression": "restaurant_id = :rid",
            "ExpressionAttributeValues": {":rid": restaurant_id},
            "ScanIndexForward": False,  # Most recent first
        }
        if status is not None:
            query["FilterExpression"] = "#status = :status"
            query["ExpressionAttributeNames"] = {"#status": "status"}
            query["ExpressionAttributeValues"][":status"] = status.value

        return self._query_all(query, f"restaurant {restaurant_id}")

    def list_orders_for_table(self, restaurant_id: str, table_number: int) -> list[Order]:
        """List orders placed at a table, newest first.

        Args:
            restaurant_id: Restaurant identifier
            table_number: Table number within the restaurant

        Returns:
            list: List of Order objects (empty list if none found)
        """
        table_key = build_table_key(restaurant_id, table_number)
        query: dict[str, Any] = {
            "IndexName": TABLE_INDEX,
            "KeyConditionExpression": "table_key = :tkey",
            "ExpressionAttributeValues": {":tkey": table_key},
            "ScanIndexForward": False,
        }
        return self._query_all(query, f"table {table_key}")

    def list_orders_updated_before(
        self,
        restaurant_id: str,
        statuses: list[OrderStatus],
        cutoff: datetime,
    ) -> list[Order]:
        """List orders in the given statuses whose last status change is older than cutoff.

        Args:
            restaurant_id: Restaurant identifier
            statuses: Statuses to include
            cutoff: Orders updated strictly before this time are returned

        Returns:
            list: Matching orders, newest first
        """
        if not statuses:
            return []

        status_values = {f":s{i}": status.value for i, status in enumerate(statuses)}
        query: dict[str, Any] = {
            "IndexName": RESTAURANT_INDEX,
            "KeyConditionExpression": "restaurant_id = :rid",
            "FilterExpression": (
                f"#status IN ({', '.join(status_values)}) AND updated_at < :cutoff"
            ),
            "ExpressionAttributeNames": {"#status": "status"},
            "ExpressionAttributeValues": {
                ":rid": restaurant_id,
                ":cutoff": format_timestamp(cutoff),
                **status_values,
            },
            "ScanIndexForward": False,
        }
        return self._query_all(query, f"stale orders of restaurant {restaurant_id}")

    def _query_all(self, query: dict[str, Any], description: str) -> list[Order]:
        """Run a query, following pagination until exhausted."""
        orders: list[Order] = []
        try:
            while True:
                response = self.table.query(**query)
                orders.extend(Order.from_dynamodb_item(item) for item in response.get("Items", []))

                last_key = response.get("LastEvaluatedKey")
                if not last_key:
                    return orders
                query["ExclusiveStartKey"] = last_key

        except ClientError as e:
            logger.error(f"Failed to list orders for {description}: {e}")
            raise OrderStoreError(f"Failed to list orders for {description}") from e


class RestaurantRepository:
    """Read-only repository for restaurant records keyed by ``id``."""

    def __init__(self, dynamodb_resource: DynamoDBServiceResource, table_name: str) -> None:
        self.dynamodb = dynamodb_resource
        self.table_name = table_name
        self.table: Table = dynamodb_resource.Table(table_name)

    def get_restaurant(self, restaurant_id: str) -> Restaurant | None:
        """Retrieve a restaurant by id, or None if it does not exist."""
        try:
            response = self.table.get_item(Key={"id": restaurant_id})
        except ClientError as e:
            logger.error(f"Failed to get restaurant {restaurant_id}: {e}")
            raise OrderStoreError(f"Failed to get restaurant {restaurant_id}") from e

        if "Item" not in response:
            return None

        return Restaurant.from_dynamodb_item(response["Item"])


class MenuItemRepository:
    """Read-only repository for menu items keyed by (restaurant_id, id)."""

    def __init__(self, dynamodb_resource: DynamoDBServiceResource, table_name: str) -> None:
        self.dynamodb = dynamodb_resource
        self.table_name = table_name
        self.table: Table = dynamodb_resource.Table(table_name)

    def get_menu_item(self, restaurant_id: str, menu_item_id: str) -> MenuItem | None:
        """Retrieve a restaurant's menu item, or None if it does not exist."""
        try:
            response = self.table.get_item(Key={"restaurant_id": restaurant_id, "id": menu_item_id})
        except ClientError as e:
            logger.error(f"Failed to get menu item {menu_item_id}: {e}")
            raise OrderStoreError(f"Failed to get menu item {menu_item_id}") from e

        if "Item" not in response:
            return None

        return MenuItem.from_dynamodb_item(response["Item"])
