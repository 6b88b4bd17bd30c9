"""Restaurant and menu data models.

These records are owned by the menu management screens; the order service
only reads them to validate orders and capture item prices.
"""

from decimal import Decimal
from typing import Any

from pydantic import BaseModel, Field


class Restaurant(BaseModel):
    """Restaurant record."""

    id: str = Field(..., description="Unique identifier for the restaurant")
    name: str = Field(..., description="Restaurant name")
    description: str | None = Field(None, description="Restaurant description")
    owner_id: str | None = Field(None, description="Staff user that owns the restaurant")

    @classmethod
    def from_dynamodb_item(cls, item: dict[str, Any]) -> "Restaurant":
        """Create Restaurant from DynamoDB item."""
        return cls(
            id=item["id"],
            name=item["name"],
            description=item.get("description"),
            owner_id=item.get("owner_id"),
        )


class MenuItem(BaseModel):
    """Menu item model."""

    id: str = Field(..., description="Unique identifier for the menu item")
    restaurant_id: str = Field(..., description="Restaurant this item belongs to")
    name: str = Field(..., description="Item name")
    description: str | None = Field(None, description="Item description")
    price: Decimal = Field(..., description="Item price", ge=0)
    category_id: str | None = Field(None, description="Category this item belongs to")
    available: bool = Field(default=True, description="Whether item is currently available")

    @classmethod
    def from_dynamodb_item(cls, item: dict[str, Any]) -> "MenuItem":
        """Create MenuItem from DynamoDB item."""
        return cls(
            id=item["id"],
            restaurant_id=item["restaurant_id"],
            name=item["name"],
            description=item.get("description"),
            price=Decimal(str(item["price"])),
            category_id=item.get("category_id"),
            available=item.get("available", True),
        )
