"""Order models and the order status state machine.

These models represent customer orders, their line items, and the request
payloads used to create and progress them. Orders are stored in DynamoDB
with ``id`` as partition key.
"""

from datetime import datetime
from decimal import Decimal
from enum import Enum
from typing import Any

from pydantic import BaseModel, ConfigDict, Field, field_validator
from pydantic.alias_generators import to_camel


class OrderStatus(str, Enum):
    """Enumeration of order status values."""

    PENDING = "pending"
    PREPARING = "preparing"
    READY = "ready"
    COMPLETED = "completed"
    CANCELLED = "cancelled"


class OrderType(str, Enum):
    """How the order is fulfilled."""

    DINE_IN = "dine_in"
    TAKEAWAY = "takeaway"
    DELIVERY = "delivery"


class PaymentMethod(str, Enum):
    """Payment method chosen at checkout."""

    CARD = "card"
    CASH = "cash"


class PaymentStatus(str, Enum):
    """Payment state of an order."""

    PENDING = "pending"
    PAID = "paid"
    FAILED = "failed"


ALLOWED_TRANSITIONS: dict[OrderStatus, frozenset[OrderStatus]] = {
    OrderStatus.PENDING: frozenset({OrderStatus.PREPARING, OrderStatus.CANCELLED}),
    OrderStatus.PREPARING: frozenset({OrderStatus.READY, OrderStatus.CANCELLED}),
    OrderStatus.READY: frozenset({OrderStatus.COMPLETED}),
    OrderStatus.COMPLETED: frozenset(),
    OrderStatus.CANCELLED: frozenset(),
}

TERMINAL_STATUSES: frozenset[OrderStatus] = frozenset(
    {OrderStatus.COMPLETED, OrderStatus.CANCELLED}
)

ACTIVE_STATUSES: frozenset[OrderStatus] = frozenset(
    status for status in OrderStatus if status not in TERMINAL_STATUSES
)


def can_transition(current: OrderStatus, requested: OrderStatus) -> bool:
    """Check whether ``requested`` is reachable from ``current`` in one step.

    Args:
        current: The order's stored status
        requested: The status a caller wants to move to

    Returns:
        bool: True if the transition table allows it
    """
    return requested in ALLOWED_TRANSITIONS[current]


def format_timestamp(value: datetime) -> str:
    """Render a timestamp as fixed-width ISO-8601 so stored values sort correctly."""
    return value.isoformat(timespec="microseconds")


class WireModel(BaseModel):
    """Base model for payloads exchanged with browsers and viewers (camelCase JSON)."""

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


class LineItem(WireModel):
    """A menu item, its captured price and quantity within an order."""

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True, frozen=True)

    menu_item_id: str = Field(..., description="Menu item this line refers to")
    name: str = Field(..., description="Item name at the time of ordering")
    unit_price: Decimal = Field(..., description="Unit price captured at order time", ge=0)
    quantity: int = Field(..., description="Number of units ordered", ge=1)
    notes: str | None = Field(None, description="Per-item customer notes")

    @property
    def line_total(self) -> Decimal:
        """Price of this line (unit price times quantity)."""
        return self.unit_price * self.quantity


class Order(WireModel):
    """Customer order tracked through the status lifecycle.

    Line items and amounts never change after creation; only ``status`` and
    ``updated_at`` are mutated, and always together.
    """

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True, frozen=True)

    id: str = Field(..., description="Unique order identifier")
    restaurant_id: str = Field(..., description="Restaurant that owns the order")
    table_number: int | None = Field(None, description="Table number for dine-in orders", ge=1)
    customer_name: str | None = Field(None, description="Customer display name")
    customer_phone: str | None = Field(None, description="Customer contact number")
    items: list[LineItem] = Field(..., description="Ordered line items", min_length=1)
    subtotal: Decimal = Field(..., description="Sum of line totals", ge=0)
    tax: Decimal = Field(default=Decimal("0"), description="Tax charged", ge=0)
    service_fee: Decimal = Field(default=Decimal("0"), description="Service fee charged", ge=0)
    total_amount: Decimal = Field(..., description="Subtotal plus tax and fees", ge=0)
    status: OrderStatus = Field(..., description="Current order status")
    order_type: OrderType = Field(default=OrderType.DINE_IN, description="Fulfilment type")
    payment_method: PaymentMethod = Field(default=PaymentMethod.CARD, description="Payment method")
    payment_status: PaymentStatus = Field(
        default=PaymentStatus.PENDING, description="Payment state"
    )
    special_instructions: str | None = Field(None, description="Free-text kitchen instructions")
    created_at: datetime = Field(..., description="Order creation timestamp")
    updated_at: datetime = Field(..., description="Timestamp of the last status change")

    @property
    def table_key(self) -> str | None:
        """Composite key identifying the table within its restaurant."""
        if self.table_number is None:
            return None
        return build_table_key(self.restaurant_id, self.table_number)

    @property
    def is_terminal(self) -> bool:
        """Whether the order can no longer change status."""
        return self.status in TERMINAL_STATUSES

    def to_dynamodb_item(self) -> dict[str, Any]:
        """Convert to DynamoDB item format.

        Returns:
            dict: DynamoDB-compatible representation
        """
        item: dict[str, Any] = {
            "id": self.id,
            "restaurant_id": self.restaurant_id,
            "items": [
                {
                    "menu_item_id": line.menu_item_id,
                    "name": line.name,
                    "unit_price": line.unit_price,
                    "quantity": line.quantity,
                    **({"notes": line.notes} if line.notes is not None else {}),
                }
                for line in self.items
            ],
            "subtotal": self.subtotal,
            "tax": self.tax,
            "service_fee": self.service_fee,
            "total_amount": self.total_amount,
            "status": self.status.value,
            "order_type": self.order_type.value,
            "payment_method": self.payment_method.value,
            "payment_status": self.payment_status.value,
            "created_at": format_timestamp(self.created_at),
            "updated_at": format_timestamp(self.updated_at),
        }

        # DynamoDB GSI key attributes must be omitted rather than null
        if self.table_number is not None:
            item["table_number"] = self.table_number
            item["table_key"] = self.table_key

        if self.customer_name is not None:
            item["customer_name"] = self.customer_name

        if self.customer_phone is not None:
            item["customer_phone"] = self.customer_phone

        if self.special_instructions is not None:
            item["special_instructions"] = self.special_instructions

        return item

    @classmethod
    def from_dynamodb_item(cls, item: dict[str, Any]) -> "Order":
        """Create Order from DynamoDB item.

        Args:
            item: DynamoDB item dictionary

        Returns:
            Order: Parsed model instance
        """
        data: dict[str, Any] = {
            "id": item["id"],
            "restaurant_id": item["restaurant_id"],
            "items": [
                LineItem(
                    menu_item_id=line["menu_item_id"],
                    name=line["name"],
                    unit_price=Decimal(str(line["unit_price"])),
                    quantity=int(line["quantity"]),
                    notes=line.get("notes"),
                )
                for line in item["items"]
            ],
            "subtotal": Decimal(str(item["subtotal"])),
            "tax": Decimal(str(item.get("tax", "0"))),
            "service_fee": Decimal(str(item.get("service_fee", "0"))),
            "total_amount": Decimal(str(item["total_amount"])),
            "status": OrderStatus(item["status"]),
            "order_type": OrderType(item.get("order_type", OrderType.DINE_IN.value)),
            "payment_method": PaymentMethod(item.get("payment_method", PaymentMethod.CARD.value)),
            "payment_status": PaymentStatus(
                item.get("payment_status", PaymentStatus.PENDING.value)
            ),
            "created_at": datetime.fromisoformat(item["created_at"]),
            "updated_at": datetime.fromisoformat(item["updated_at"]),
        }

        if "table_number" in item:
            data["table_number"] = int(item["table_number"])

        for optional in ("customer_name", "customer_phone", "special_instructions"):
            if optional in item:
                data[optional] = item[optional]

        return cls(**data)


def build_table_key(restaurant_id: str, table_number: int) -> str:
    """Build the table index key for a restaurant table."""
    return f"{restaurant_id}#{table_number}"


class OrderItemRequest(WireModel):
    """A single cart line submitted by the customer."""

    menu_item_id: str = Field(..., description="Menu item being ordered")
    quantity: int = Field(..., description="Number of units")
    notes: str | None = Field(None, description="Per-item customer notes")


class CreateOrderRequest(WireModel):
    """Customer order submission.

    Prices are never taken from the client; ``total_amount``, when supplied, is
    only checked against the total recomputed from menu prices.
    """

    restaurant_id: str = Field(..., description="Restaurant the order is placed with")
    table_number: int | None = Field(None, description="Table number for dine-in orders")
    customer_name: str | None = Field(None, description="Customer display name")
    customer_phone: str | None = Field(None, description="Customer contact number")
    items: list[OrderItemRequest] = Field(default_factory=list, description="Cart lines")
    order_type: OrderType = Field(default=OrderType.DINE_IN, description="Fulfilment type")
    payment_method: PaymentMethod = Field(default=PaymentMethod.CARD, description="Payment method")
    special_instructions: str | None = Field(None, description="Free-text kitchen instructions")
    tax: Decimal = Field(default=Decimal("0"), description="Tax computed by the client")
    service_fee: Decimal = Field(default=Decimal("0"), description="Fee computed by the client")
    total_amount: Decimal | None = Field(None, description="Client-declared order total")

    @field_validator("restaurant_id")
    @classmethod
    def validate_restaurant_id(cls, v: str) -> str:
        """Validate that restaurant_id is not blank."""
        if not v.strip():
            raise ValueError("restaurant_id must not be blank")
        return v


class StatusUpdateRequest(WireModel):
    """Staff request to move an order to a new status."""

    status: OrderStatus = Field(..., description="Requested order status")
