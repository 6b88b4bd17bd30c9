"""FastAPI application exposing order endpoints and the real-time channel."""

import logging
from collections.abc import AsyncIterator
from contextlib import asynccontextmanager
from datetime import timedelta

from fastapi import Depends, FastAPI, Header, HTTPException, Query, Request, WebSocket
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from pydantic import BaseModel

from restaurant_order_service.auth.api_dependencies import get_staff_actor_from_header
from restaurant_order_service.auth.api_key_validator import StaffActor, StaffKeyValidator
from restaurant_order_service.exceptions import (
    ConcurrentUpdateError,
    ForbiddenError,
    InvalidTransitionError,
    NotFoundError,
    OrderStoreError,
    OrderValidationError,
)
from restaurant_order_service.models.order_models import (
    CreateOrderRequest,
    Order,
    OrderStatus,
    StatusUpdateRequest,
)
from restaurant_order_service.services.notifier import OrderNotifier
from restaurant_order_service.services.order_query_service import OrderQueryService
from restaurant_order_service.services.order_service import OrderLifecycleService

logger = logging.getLogger(__name__)


class HealthResponse(BaseModel):
    """Health check response model."""

    status: str
    viewers: int


def create_app(
    lifecycle_service: OrderLifecycleService,
    query_service: OrderQueryService,
    notifier: OrderNotifier,
    staff_api_keys: dict[str, list[str]],
) -> FastAPI:
    """Create and configure the FastAPI application.

    Args:
        lifecycle_service: Service for placing orders and changing status
        query_service: Service for order read paths
        notifier: Notifier delivering events to websocket viewers
        staff_api_keys: Mapping of staff API key to the restaurant ids it grants

    Returns:
        Configured FastAPI application
    """

    @asynccontextmanager
    async def lifespan(app: FastAPI) -> AsyncIterator[None]:
        await app.state.notifier.start()
        yield
        await app.state.notifier.stop()

    app = FastAPI(
        title="Restaurant Order Service API",
        description="QR table ordering: order placement, status pipeline and live updates",
        version="1.0.0",
        lifespan=lifespan,
    )

    # Store services in app state for access in route handlers
    app.state.lifecycle_service = lifecycle_service
    app.state.query_service = query_service
    app.state.notifier = notifier
    app.state.staff_key_validator = StaffKeyValidator(staff_api_keys=staff_api_keys)

    @app.exception_handler(RequestValidationError)
    async def request_validation_handler(
        request: Request, exc: RequestValidationError
    ) -> JSONResponse:
        """Report malformed request bodies as 400 rather than 422."""
        logger.info(f"Rejected malformed request to {request.url.path}")
        return JSONResponse(
            status_code=400,
            content={"detail": "Invalid request data", "errors": jsonable_errors(exc)},
        )

    @app.exception_handler(OrderStoreError)
    async def store_error_handler(request: Request, exc: OrderStoreError) -> JSONResponse:
        logger.error(f"Store failure while handling {request.url.path}: {exc}")
        return JSONResponse(status_code=503, content={"detail": "Order store unavailable"})

    def require_staff(x_api_key: str | None = Header(None)) -> StaffActor:
        """Dependency resolving the calling staff member."""
        return get_staff_actor_from_header(
            x_api_key=x_api_key, validator=app.state.staff_key_validator
        )

    def ensure_can_manage(actor: StaffActor, restaurant_id: str) -> None:
        if not actor.can_manage(restaurant_id):
            raise HTTPException(
                status_code=403, detail=f"Not authorized for restaurant {restaurant_id}"
            )

    @app.get("/health", response_model=HealthResponse, tags=["Health"])
    async def health_check() -> HealthResponse:
        """Health check endpoint.

        Returns:
            Health status and the number of connected viewers
        """
        return HealthResponse(status="healthy", viewers=app.state.notifier.connection_count)

    @app.post("/orders", response_model=Order, status_code=201, tags=["Orders"])
    async def create_order(request: CreateOrderRequest) -> Order:
        """Place a new order from the customer-facing menu.

        Args:
            request: Cart contents and order metadata

        Returns:
            The created order in status ``pending``
        """
        try:
            order: Order = await app.state.lifecycle_service.create_order(request)
        except OrderValidationError as e:
            raise HTTPException(status_code=400, detail=str(e)) from e
        except NotFoundError as e:
            raise HTTPException(status_code=404, detail=str(e)) from e
        return order

    @app.get("/orders/{order_id}", response_model=Order, tags=["Orders"])
    async def get_order(order_id: str) -> Order:
        """Get a single order, used by the customer tracking page."""
        try:
            order: Order = await app.state.query_service.get_order(order_id)
        except NotFoundError as e:
            raise HTTPException(status_code=404, detail=str(e)) from e
        return order

    @app.patch("/orders/{order_id}/status", response_model=Order, tags=["Orders"])
    async def update_order_status(
        order_id: str,
        request: StatusUpdateRequest,
        actor: StaffActor = Depends(require_staff),
    ) -> Order:
        """Move an order along the status pipeline.

        Args:
            order_id: The order to change
            request: Body carrying the requested status

        Returns:
            The order after the change
        """
        try:
            order: Order = await app.state.lifecycle_service.transition_status(
                order_id, request.status, actor
            )
        except NotFoundError as e:
            raise HTTPException(status_code=404, detail=str(e)) from e
        except ForbiddenError as e:
            raise HTTPException(status_code=403, detail=str(e)) from e
        except (InvalidTransitionError, ConcurrentUpdateError) as e:
            raise HTTPException(status_code=409, detail=str(e)) from e
        return order

    @app.get(
        "/restaurants/{restaurant_id}/orders",
        response_model=list[Order],
        tags=["Restaurant Orders"],
    )
    async def list_restaurant_orders(
        restaurant_id: str,
        status: OrderStatus | None = None,
        actor: StaffActor = Depends(require_staff),
    ) -> list[Order]:
        """List a restaurant's orders, newest first, for the staff dashboard.

        Args:
            restaurant_id: The restaurant ID
            status: Optional status filter

        Returns:
            List of orders
        """
        ensure_can_manage(actor, restaurant_id)
        orders: list[Order] = await app.state.query_service.get_orders_by_restaurant(
            restaurant_id, status
        )
        return orders

    @app.get(
        "/restaurants/{restaurant_id}/orders/stale",
        response_model=list[Order],
        tags=["Restaurant Orders"],
    )
    async def list_stale_orders(
        restaurant_id: str,
        older_than_minutes: int = Query(30, ge=1),
        actor: StaffActor = Depends(require_staff),
    ) -> list[Order]:
        """List pending or preparing orders whose status has not changed recently."""
        ensure_can_manage(actor, restaurant_id)
        orders: list[Order] = await app.state.query_service.get_stale_orders(
            restaurant_id, timedelta(minutes=older_than_minutes)
        )
        return orders

    @app.get(
        "/restaurants/{restaurant_id}/tables/{table_number}/orders",
        response_model=list[Order],
        tags=["Table Orders"],
    )
    async def list_table_orders(
        restaurant_id: str,
        table_number: int,
        active_only: bool = False,
    ) -> list[Order]:
        """List the orders placed at a table, newest first.

        Args:
            restaurant_id: The restaurant ID
            table_number: Table number from the scanned QR code
            active_only: Only return orders that are not completed or cancelled

        Returns:
            List of orders
        """
        if active_only:
            orders: list[Order] = await app.state.query_service.get_active_orders_for_table(
                restaurant_id, table_number
            )
        else:
            orders = await app.state.query_service.get_orders_by_table(
                restaurant_id, table_number
            )
        return orders

    @app.websocket("/ws")
    async def order_events(websocket: WebSocket) -> None:
        """Real-time channel: pushes every order event to the viewer.

        Frames sent by the viewer carry no meaning and are discarded.
        """
        await websocket.accept()
        await app.state.notifier.connect(websocket)
        try:
            while True:
                message = await websocket.receive()
                if message["type"] == "websocket.disconnect":
                    break
        finally:
            await app.state.notifier.disconnect(websocket)

    return app


def jsonable_errors(exc: RequestValidationError) -> list[dict[str, str]]:
    """Reduce pydantic validation errors to location and message pairs."""
    return [
        {"loc": ".".join(str(part) for part in error.get("loc", ())), "msg": str(error.get("msg"))}
        for error in exc.errors()
    ]
