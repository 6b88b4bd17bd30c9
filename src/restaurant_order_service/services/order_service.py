"""Order lifecycle service: the single authority for placing orders and changing their status."""

import asyncio
import logging
import uuid
from datetime import UTC, datetime
from decimal import Decimal

from restaurant_order_service.auth.api_key_validator import StaffActor
from restaurant_order_service.exceptions import (
    ConcurrentUpdateError,
    ForbiddenError,
    InvalidTransitionError,
    OrderNotFoundError,
    OrderValidationError,
    RestaurantNotFoundError,
)
from restaurant_order_service.models.event_models import OrderEvent
from restaurant_order_service.models.order_models import (
    CreateOrderRequest,
    LineItem,
    Order,
    OrderStatus,
    OrderType,
    PaymentMethod,
    PaymentStatus,
    can_transition,
)
from restaurant_order_service.observability.decorators import traced
from restaurant_order_service.observability.metrics import (
    record_order_created,
    record_status_transition,
    record_transition_rejected,
)
from restaurant_order_service.repositories.order_repositories import (
    MenuItemRepository,
    OrderRepository,
    RestaurantRepository,
)
from restaurant_order_service.services.notifier import OrderNotifier

logger = logging.getLogger(__name__)

CENTS = Decimal("0.01")


class OrderLifecycleService:
    """Service for creating orders and moving them through the status pipeline.

    pending -> preparing -> ready -> completed, with cancellation allowed from
    pending and preparing. Every successful create or transition publishes
    exactly one event; failed operations publish none.
    """

    def __init__(
        self,
        order_repository: OrderRepository,
        restaurant_repository: RestaurantRepository,
        menu_item_repository: MenuItemRepository,
        notifier: OrderNotifier,
        total_tolerance: Decimal = CENTS,
        max_transition_attempts: int = 3,
    ) -> None:
        """Initialize the OrderLifecycleService.

        Args:
            order_repository: Repository for order records
            restaurant_repository: Repository used to check restaurants exist
            menu_item_repository: Repository used to capture item names and prices
            notifier: Notifier receiving lifecycle events
            total_tolerance: Allowed difference between declared and computed totals
            max_transition_attempts: Reloads allowed when a concurrent writer wins
        """
        self.order_repository = order_repository
        self.restaurant_repository = restaurant_repository
        self.menu_item_repository = menu_item_repository
        self.notifier = notifier
        self.total_tolerance = total_tolerance
        self.max_transition_attempts = max_transition_attempts

    @traced("create_order")
    async def create_order(self, request: CreateOrderRequest) -> Order:
        """Validate and persist a customer order in status ``pending``.

        Item names and prices are captured from the menu, not the request. A
        client-declared total must match the recomputed total.

        Args:
            request: The customer's order submission

        Returns:
            The persisted order including its generated id

        Raises:
            RestaurantNotFoundError: If the restaurant does not exist
            OrderValidationError: If the cart or declared total is invalid
            OrderStoreError: If the store fails
        """
        restaurant = await asyncio.to_thread(
            self.restaurant_repository.get_restaurant, request.restaurant_id
        )
        if restaurant is None:
            raise RestaurantNotFoundError(request.restaurant_id)

        self._validate_request(request)
        items = await self._capture_line_items(request)

        subtotal = sum((line.line_total for line in items), Decimal("0"))
        total = subtotal + request.tax + request.service_fee

        if (
            request.total_amount is not None
            and abs(request.total_amount - total) > self.total_tolerance
        ):
            raise OrderValidationError(
                f"Declared total {request.total_amount} does not match computed total {total}"
            )

        now = datetime.now(UTC)
        order = Order(
            id=f"ord_{uuid.uuid4().hex[:12]}",
            restaurant_id=restaurant.id,
            table_number=request.table_number,
            customer_name=request.customer_name,
            customer_phone=request.customer_phone,
            items=items,
            subtotal=subtotal,
            tax=request.tax,
            service_fee=request.service_fee,
            total_amount=total,
            status=OrderStatus.PENDING,
            order_type=request.order_type,
            payment_method=request.payment_method,
            # Payment is simulated: card payments are approved at checkout
            payment_status=(
                PaymentStatus.PAID
                if request.payment_method == PaymentMethod.CARD
                else PaymentStatus.PENDING
            ),
            special_instructions=request.special_instructions,
            created_at=now,
            updated_at=now,
        )

        await asyncio.to_thread(self.order_repository.create_order, order)

        logger.info(
            f"Order {order.id} placed for restaurant {order.restaurant_id}, "
            f"total {order.total_amount}"
        )
        record_order_created(order.order_type.value)
        self._emit(OrderEvent.order_created(order))
        return order

    @traced("transition_status", record_args=("order_id", "requested_status"))
    async def transition_status(
        self,
        order_id: str,
        requested_status: OrderStatus,
        actor: StaffActor,
    ) -> Order:
        """Move an order to a new status.

        Requesting the status the order already has is a no-op success, except
        for terminal orders, which reject every request.

        Args:
            order_id: The order to change
            requested_status: The status to move to
            actor: Staff member issuing the request

        Returns:
            The order after the transition (or unchanged, for a no-op)

        Raises:
            OrderNotFoundError: If the order does not exist
            ForbiddenError: If the actor does not manage the order's restaurant
            InvalidTransitionError: If the status is not reachable from the current one
            ConcurrentUpdateError: If concurrent writers kept winning
            OrderStoreError: If the store fails
        """
        for _ in range(self.max_transition_attempts):
            order = await asyncio.to_thread(self.order_repository.get_order, order_id)
            if order is None:
                raise OrderNotFoundError(order_id)

            if not actor.can_manage(order.restaurant_id):
                record_transition_rejected("forbidden")
                raise ForbiddenError(
                    f"Actor {actor.actor_id} cannot manage restaurant {order.restaurant_id}"
                )

            if not order.is_terminal and order.status == requested_status:
                logger.info(f"Order {order_id} already '{requested_status.value}', nothing to do")
                return order

            if not can_transition(order.status, requested_status):
                record_transition_rejected("invalid_transition")
                raise InvalidTransitionError(order_id, order.status, requested_status)

            updated = await asyncio.to_thread(
                self.order_repository.update_status,
                order_id,
                order.status,
                requested_status,
                datetime.now(UTC),
            )
            if updated is None:
                # Another writer committed first; re-evaluate against its result
                continue

            logger.info(
                f"Order {order_id} moved from '{order.status.value}' to "
                f"'{updated.status.value}' by {actor.actor_id}"
            )
            record_status_transition(order.status.value, updated.status.value)
            self._emit(OrderEvent.status_changed(updated))
            return updated

        record_transition_rejected("concurrent_update")
        raise ConcurrentUpdateError(
            f"Order {order_id} changed concurrently {self.max_transition_attempts} times"
        )

    def _validate_request(self, request: CreateOrderRequest) -> None:
        """Check cart shape and amounts that do not need the menu."""
        if not request.items:
            raise OrderValidationError("Order must contain at least one item")

        for line in request.items:
            if line.quantity < 1:
                raise OrderValidationError(
                    f"Quantity for item {line.menu_item_id} must be at least 1"
                )

        if request.tax < 0 or request.service_fee < 0:
            raise OrderValidationError("Tax and service fee must not be negative")

        if request.order_type == OrderType.DINE_IN and request.table_number is None:
            raise OrderValidationError("Dine-in orders require a table number")

        if request.table_number is not None and request.table_number < 1:
            raise OrderValidationError("Table number must be positive")

    async def _capture_line_items(self, request: CreateOrderRequest) -> list[LineItem]:
        """Resolve each cart line against the menu, capturing name and price."""
        items: list[LineItem] = []
        for line in request.items:
            menu_item = await asyncio.to_thread(
                self.menu_item_repository.get_menu_item, request.restaurant_id, line.menu_item_id
            )
            if menu_item is None:
                raise OrderValidationError(f"Unknown menu item {line.menu_item_id}")
            if not menu_item.available:
                raise OrderValidationError(f"Menu item {menu_item.name} is not available")

            items.append(
                LineItem(
                    menu_item_id=menu_item.id,
                    name=menu_item.name,
                    unit_price=menu_item.price,
                    quantity=line.quantity,
                    notes=line.notes,
                )
            )
        return items

    def _emit(self, event: OrderEvent) -> None:
        """Hand an event to the notifier. Delivery problems never fail the caller."""
        try:
            self.notifier.publish(event)
        except Exception as e:
            logger.error(
                f"Failed to publish {event.event_type.value} for order {event.order_id}: {e}"
            )
