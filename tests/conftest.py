"""Shared pytest fixtures and configuration for all tests."""

import os

os.environ.setdefault("ENVIRONMENT", "test")

from collections.abc import Callable  # noqa: E402
from datetime import UTC, datetime  # noqa: E402
from decimal import Decimal  # noqa: E402
from typing import Any  # noqa: E402

import pytest  # noqa: E402

from restaurant_order_service.auth.api_key_validator import StaffActor  # noqa: E402
from restaurant_order_service.models.menu_models import MenuItem, Restaurant  # noqa: E402
from restaurant_order_service.models.order_models import (  # noqa: E402
    LineItem,
    Order,
    OrderStatus,
)


@pytest.fixture
def mock_restaurant_id() -> str:
    """Fixture providing a standard test restaurant ID."""
    return "rest_123456"


@pytest.fixture
def restaurant(mock_restaurant_id: str) -> Restaurant:
    """Fixture providing the test restaurant record."""
    return Restaurant(id=mock_restaurant_id, name="Bella Vista Restaurant", owner_id="user_1")


@pytest.fixture
def menu_items(mock_restaurant_id: str) -> dict[str, MenuItem]:
    """Fixture providing menu items keyed by id."""
    return {
        "item_pizza": MenuItem(
            id="item_pizza",
            restaurant_id=mock_restaurant_id,
            name="Pizza Margherita",
            price=Decimal("12.99"),
            category_id="cat_main",
        ),
        "item_salad": MenuItem(
            id="item_salad",
            restaurant_id=mock_restaurant_id,
            name="Caesar Salad",
            price=Decimal("8.50"),
            category_id="cat_starters",
        ),
        "item_tiramisu": MenuItem(
            id="item_tiramisu",
            restaurant_id=mock_restaurant_id,
            name="Tiramisu",
            price=Decimal("7.00"),
            category_id="cat_desserts",
            available=False,
        ),
    }


@pytest.fixture
def staff_actor(mock_restaurant_id: str) -> StaffActor:
    """Fixture providing a staff member of the test restaurant."""
    return StaffActor(actor_id="staff_1", restaurant_ids=frozenset({mock_restaurant_id}))


@pytest.fixture
def make_order(mock_restaurant_id: str) -> Callable[..., Order]:
    """Fixture providing a factory for orders in any status."""

    def factory(**overrides: Any) -> Order:
        created = datetime(2024, 1, 15, 10, 30, tzinfo=UTC)
        data: dict[str, Any] = {
            "id": "ord_abc123",
            "restaurant_id": mock_restaurant_id,
            "table_number": 5,
            "items": [
                LineItem(
                    menu_item_id="item_pizza",
                    name="Pizza Margherita",
                    unit_price=Decimal("12.99"),
                    quantity=2,
                ),
                LineItem(
                    menu_item_id="item_salad",
                    name="Caesar Salad",
                    unit_price=Decimal("8.50"),
                    quantity=1,
                ),
            ],
            "subtotal": Decimal("34.48"),
            "total_amount": Decimal("34.48"),
            "status": OrderStatus.PENDING,
            "created_at": created,
            "updated_at": created,
        }
        data.update(overrides)
        return Order(**data)

    return factory
