"""Typed errors raised by the order lifecycle and query services.

Handlers map each class to an HTTP status; ``NotificationDeliveryError`` is
internal to the notifier and never reaches a caller.
"""

from restaurant_order_service.models.order_models import OrderStatus


class OrderServiceError(Exception):
    """Base class for order service errors."""


class OrderValidationError(OrderServiceError):
    """Malformed order input: empty cart, bad quantity, unknown item or total mismatch."""


class NotFoundError(OrderServiceError):
    """A referenced record does not exist."""


class OrderNotFoundError(NotFoundError):
    """The order does not exist."""

    def __init__(self, order_id: str) -> None:
        super().__init__(f"Order {order_id} not found")
        self.order_id = order_id


class RestaurantNotFoundError(NotFoundError):
    """The restaurant does not exist."""

    def __init__(self, restaurant_id: str) -> None:
        super().__init__(f"Restaurant {restaurant_id} not found")
        self.restaurant_id = restaurant_id


class InvalidTransitionError(OrderServiceError):
    """The requested status is not reachable from the order's current status."""

    def __init__(self, order_id: str, current: OrderStatus, requested: OrderStatus) -> None:
        super().__init__(
            f"Cannot move order {order_id} from '{current.value}' to '{requested.value}'"
        )
        self.order_id = order_id
        self.current = current
        self.requested = requested


class ForbiddenError(OrderServiceError):
    """The actor has no authority over the restaurant that owns the order."""


class ConcurrentUpdateError(OrderServiceError):
    """The order kept changing underneath a transition attempt."""


class OrderStoreError(OrderServiceError):
    """The persisted store failed unexpectedly."""


class NotificationDeliveryError(Exception):
    """An event could not be delivered to a viewer. Logged, never raised to callers."""
