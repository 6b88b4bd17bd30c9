"""Unit tests for DynamoDB repositories."""

from collections.abc import Callable
from datetime import UTC, datetime
from decimal import Decimal
from unittest.mock import MagicMock

import pytest
from botocore.exceptions import ClientError

from restaurant_order_service.exceptions import OrderStoreError
from restaurant_order_service.models.order_models import Order, OrderStatus
from restaurant_order_service.repositories.order_repositories import (
    RESTAURANT_INDEX,
    TABLE_INDEX,
    MenuItemRepository,
    OrderRepository,
    RestaurantRepository,
)


def client_error(code: str, operation: str = "UpdateItem") -> ClientError:
    return ClientError({"Error": {"Code": code, "Message": "Test error"}}, operation)


@pytest.fixture
def mock_dynamodb() -> MagicMock:
    """Create a mock DynamoDB resource."""
    return MagicMock()


@pytest.fixture
def mock_table(mock_dynamodb: MagicMock) -> MagicMock:
    """The table every repository built on mock_dynamodb talks to."""
    table = MagicMock()
    mock_dynamodb.Table.return_value = table
    return table


@pytest.mark.unit
class TestOrderRepository:
    """Test suite for OrderRepository."""

    @pytest.fixture
    def repository(self, mock_dynamodb: MagicMock, mock_table: MagicMock) -> OrderRepository:
        """Create an OrderRepository with mock DynamoDB."""
        return OrderRepository(dynamodb_resource=mock_dynamodb, table_name="test-orders")

    def test_create_order_success(
        self,
        repository: OrderRepository,
        mock_dynamodb: MagicMock,
        mock_table: MagicMock,
        make_order: Callable[..., Order],
    ) -> None:
        """Test that new orders are written with a no-overwrite condition."""
        order = make_order()

        repository.create_order(order)

        mock_dynamodb.Table.assert_called_once_with("test-orders")
        call_kwargs = mock_table.put_item.call_args.kwargs
        assert call_kwargs["Item"] == order.to_dynamodb_item()
        assert call_kwargs["ConditionExpression"] == "attribute_not_exists(id)"

    def test_create_order_failure(
        self,
        repository: OrderRepository,
        mock_table: MagicMock,
        make_order: Callable[..., Order],
    ) -> None:
        """Test that write errors surface as store errors."""
        mock_table.put_item.side_effect = client_error("InternalServerError", "PutItem")

        with pytest.raises(OrderStoreError):
            repository.create_order(make_order())

    def test_get_order_found(
        self,
        repository: OrderRepository,
        mock_table: MagicMock,
        make_order: Callable[..., Order],
    ) -> None:
        """Test retrieving a stored order with a consistent read."""
        order = make_order()
        mock_table.get_item.return_value = {"Item": order.to_dynamodb_item()}

        result = repository.get_order("ord_abc123")

        assert result == order
        mock_table.get_item.assert_called_once_with(
            Key={"id": "ord_abc123"}, ConsistentRead=True
        )

    def test_get_order_not_found(self, repository: OrderRepository, mock_table: MagicMock) -> None:
        """Test that a missing order returns None."""
        mock_table.get_item.return_value = {}

        assert repository.get_order("ord_missing") is None

    def test_get_order_store_failure(
        self, repository: OrderRepository, mock_table: MagicMock
    ) -> None:
        """Test that read errors are not mistaken for a missing order."""
        mock_table.get_item.side_effect = client_error("ProvisionedThroughputExceededException")

        with pytest.raises(OrderStoreError):
            repository.get_order("ord_abc123")

    def test_update_status_success(
        self,
        repository: OrderRepository,
        mock_table: MagicMock,
        make_order: Callable[..., Order],
    ) -> None:
        """Test that status and timestamp are written in one conditional update."""
        changed_at = datetime(2024, 1, 15, 10, 45, tzinfo=UTC)
        updated = make_order(status=OrderStatus.PREPARING, updated_at=changed_at)
        mock_table.update_item.return_value = {"Attributes": updated.to_dynamodb_item()}

        result = repository.update_status(
            "ord_abc123", OrderStatus.PENDING, OrderStatus.PREPARING, changed_at
        )

        assert result == updated
        call_kwargs = mock_table.update_item.call_args.kwargs
        assert call_kwargs["Key"] == {"id": "ord_abc123"}
        assert "#status = :expected_status" in call_kwargs["ConditionExpression"]
        assert call_kwargs["ExpressionAttributeNames"] == {"#status": "status"}
        assert call_kwargs["ExpressionAttributeValues"] == {
            ":new_status": "preparing",
            ":expected_status": "pending",
            ":updated_at": "2024-01-15T10:45:00.000000+00:00",
        }
        assert call_kwargs["ReturnValues"] == "ALL_NEW"

    def test_update_status_condition_failed(
        self, repository: OrderRepository, mock_table: MagicMock
    ) -> None:
        """Test that losing a race returns None instead of raising."""
        mock_table.update_item.side_effect = client_error("ConditionalCheckFailedException")

        result = repository.update_status(
            "ord_abc123", OrderStatus.PENDING, OrderStatus.PREPARING, datetime.now(UTC)
        )

        assert result is None

    def test_update_status_store_failure(
        self, repository: OrderRepository, mock_table: MagicMock
    ) -> None:
        """Test that other update errors surface as store errors."""
        mock_table.update_item.side_effect = client_error("InternalServerError")

        with pytest.raises(OrderStoreError):
            repository.update_status(
                "ord_abc123", OrderStatus.PENDING, OrderStatus.PREPARING, datetime.now(UTC)
            )

    def test_list_orders_for_restaurant(
        self,
        repository: OrderRepository,
        mock_table: MagicMock,
        make_order: Callable[..., Order],
    ) -> None:
        """Test listing a restaurant's orders newest first."""
        mock_table.query.return_value = {
            "Items": [
                make_order(id="ord_2").to_dynamodb_item(),
                make_order(id="ord_1").to_dynamodb_item(),
            ]
        }

        result = repository.list_orders_for_restaurant("rest_123456")

        assert [order.id for order in result] == ["ord_2", "ord_1"]
        call_kwargs = mock_table.query.call_args.kwargs
        assert call_kwargs["IndexName"] == RESTAURANT_INDEX
        assert call_kwargs["ExpressionAttributeValues"] == {":rid": "rest_123456"}
        assert call_kwargs["ScanIndexForward"] is False
        assert "FilterExpression" not in call_kwargs

    def test_list_orders_for_restaurant_with_status(
        self, repository: OrderRepository, mock_table: MagicMock
    ) -> None:
        """Test that a status filter is applied to the query."""
        mock_table.query.return_value = {"Items": []}

        result = repository.list_orders_for_restaurant("rest_123456", OrderStatus.READY)

        assert result == []
        call_kwargs = mock_table.query.call_args.kwargs
        assert call_kwargs["FilterExpression"] == "#status = :status"
        assert call_kwargs["ExpressionAttributeValues"][":status"] == "ready"

    def test_list_orders_follows_pagination(
        self,
        repository: OrderRepository,
        mock_table: MagicMock,
        make_order: Callable[..., Order],
    ) -> None:
        """Test that every page of results is collected."""
        mock_table.query.side_effect = [
            {
                "Items": [make_order(id="ord_2").to_dynamodb_item()],
                "LastEvaluatedKey": {"id": "ord_2"},
            },
            {"Items": [make_order(id="ord_1").to_dynamodb_item()]},
        ]

        result = repository.list_orders_for_restaurant("rest_123456")

        assert [order.id for order in result] == ["ord_2", "ord_1"]
        assert mock_table.query.call_count == 2
        assert mock_table.query.call_args.kwargs["ExclusiveStartKey"] == {"id": "ord_2"}

    def test_list_orders_for_table(
        self,
        repository: OrderRepository,
        mock_table: MagicMock,
        make_order: Callable[..., Order],
    ) -> None:
        """Test that table queries use the composite table key."""
        mock_table.query.return_value = {"Items": [make_order().to_dynamodb_item()]}

        result = repository.list_orders_for_table("rest_123456", 5)

        assert len(result) == 1
        call_kwargs = mock_table.query.call_args.kwargs
        assert call_kwargs["IndexName"] == TABLE_INDEX
        assert call_kwargs["ExpressionAttributeValues"] == {":tkey": "rest_123456#5"}

    def test_list_orders_query_failure(
        self, repository: OrderRepository, mock_table: MagicMock
    ) -> None:
        """Test that query errors surface as store errors."""
        mock_table.query.side_effect = client_error("InternalServerError", "Query")

        with pytest.raises(OrderStoreError):
            repository.list_orders_for_table("rest_123456", 5)

    def test_list_orders_updated_before(
        self, repository: OrderRepository, mock_table: MagicMock
    ) -> None:
        """Test the stale order query filters by status and cutoff."""
        mock_table.query.return_value = {"Items": []}
        cutoff = datetime(2024, 1, 15, 10, 0, tzinfo=UTC)

        repository.list_orders_updated_before(
            "rest_123456", [OrderStatus.PENDING, OrderStatus.PREPARING], cutoff
        )

        call_kwargs = mock_table.query.call_args.kwargs
        assert call_kwargs["FilterExpression"] == (
            "#status IN (:s0, :s1) AND updated_at < :cutoff"
        )
        assert call_kwargs["ExpressionAttributeValues"] == {
            ":rid": "rest_123456",
            ":cutoff": "2024-01-15T10:00:00.000000+00:00",
            ":s0": "pending",
            ":s1": "preparing",
        }

    def test_list_orders_updated_before_without_statuses(
        self, repository: OrderRepository, mock_table: MagicMock
    ) -> None:
        """Test that an empty status list short-circuits."""
        assert repository.list_orders_updated_before("rest_123456", [], datetime.now(UTC)) == []
        mock_table.query.assert_not_called()


@pytest.mark.unit
class TestRestaurantRepository:
    """Test suite for RestaurantRepository."""

    @pytest.fixture
    def repository(self, mock_dynamodb: MagicMock, mock_table: MagicMock) -> RestaurantRepository:
        """Create a RestaurantRepository with mock DynamoDB."""
        return RestaurantRepository(dynamodb_resource=mock_dynamodb, table_name="test-restaurants")

    def test_get_restaurant_found(
        self, repository: RestaurantRepository, mock_table: MagicMock
    ) -> None:
        """Test retrieving a restaurant."""
        mock_table.get_item.return_value = {
            "Item": {"id": "rest_123456", "name": "Bella Vista Restaurant"}
        }

        result = repository.get_restaurant("rest_123456")

        assert result is not None
        assert result.name == "Bella Vista Restaurant"
        mock_table.get_item.assert_called_once_with(Key={"id": "rest_123456"})

    def test_get_restaurant_not_found(
        self, repository: RestaurantRepository, mock_table: MagicMock
    ) -> None:
        """Test that a missing restaurant returns None."""
        mock_table.get_item.return_value = {}

        assert repository.get_restaurant("rest_missing") is None

    def test_get_restaurant_failure(
        self, repository: RestaurantRepository, mock_table: MagicMock
    ) -> None:
        """Test that read errors surface as store errors."""
        mock_table.get_item.side_effect = client_error("InternalServerError", "GetItem")

        with pytest.raises(OrderStoreError):
            repository.get_restaurant("rest_123456")


@pytest.mark.unit
class TestMenuItemRepository:
    """Test suite for MenuItemRepository."""

    @pytest.fixture
    def repository(self, mock_dynamodb: MagicMock, mock_table: MagicMock) -> MenuItemRepository:
        """Create a MenuItemRepository with mock DynamoDB."""
        return MenuItemRepository(dynamodb_resource=mock_dynamodb, table_name="test-menu-items")

    def test_get_menu_item_found(
        self, repository: MenuItemRepository, mock_table: MagicMock
    ) -> None:
        """Test retrieving a menu item by restaurant and id."""
        mock_table.get_item.return_value = {
            "Item": {
                "id": "item_pizza",
                "restaurant_id": "rest_123456",
                "name": "Pizza Margherita",
                "price": Decimal("12.99"),
                "available": False,
            }
        }

        result = repository.get_menu_item("rest_123456", "item_pizza")

        assert result is not None
        assert result.price == Decimal("12.99")
        assert result.available is False
        mock_table.get_item.assert_called_once_with(
            Key={"restaurant_id": "rest_123456", "id": "item_pizza"}
        )

    def test_get_menu_item_not_found(
        self, repository: MenuItemRepository, mock_table: MagicMock
    ) -> None:
        """Test that a missing menu item returns None."""
        mock_table.get_item.return_value = {}

        assert repository.get_menu_item("rest_123456", "item_ghost") is None
