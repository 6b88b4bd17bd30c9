"""Real-time order events pushed to connected viewers.

Events exist only on the wire; they are never persisted.
"""

from datetime import datetime
from enum import Enum

from pydantic import Field

from restaurant_order_service.models.order_models import Order, OrderStatus, WireModel


class OrderEventType(str, Enum):
    """Kinds of lifecycle events."""

    ORDER_CREATED = "order_created"
    ORDER_STATUS_CHANGED = "order_status_changed"


class OrderEvent(WireModel):
    """Lifecycle event broadcast to every connected viewer.

    Viewers treat events as a hint to re-fetch the order, not as authoritative
    state.
    """

    event_type: OrderEventType = Field(..., description="Kind of lifecycle event")
    order_id: str = Field(..., description="Order the event refers to")
    restaurant_id: str = Field(..., description="Restaurant that owns the order")
    table_number: int | None = Field(None, description="Table of a dine-in order")
    new_status: OrderStatus | None = Field(None, description="Order status after the change")
    timestamp: datetime = Field(..., description="When the causing change committed")

    @classmethod
    def order_created(cls, order: Order) -> "OrderEvent":
        """Build the event announcing a newly placed order."""
        return cls(
            event_type=OrderEventType.ORDER_CREATED,
            order_id=order.id,
            restaurant_id=order.restaurant_id,
            table_number=order.table_number,
            new_status=order.status,
            timestamp=order.created_at,
        )

    @classmethod
    def status_changed(cls, order: Order) -> "OrderEvent":
        """Build the event announcing an order's new status."""
        return cls(
            event_type=OrderEventType.ORDER_STATUS_CHANGED,
            order_id=order.id,
            restaurant_id=order.restaurant_id,
            table_number=order.table_number,
            new_status=order.status,
            timestamp=order.updated_at,
        )

    def to_wire(self) -> str:
        """Serialize to the JSON frame sent over the real-time channel."""
        return self.model_dump_json(by_alias=True, exclude_none=True)
