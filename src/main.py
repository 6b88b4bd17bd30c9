"""Main application entry point for the restaurant order service.

This module provides the FastAPI application factory and configuration
for running the service locally or in production.
"""

import logging
import os
from decimal import Decimal
from typing import Any

import boto3
from fastapi import FastAPI

from restaurant_order_service.auth.api_key_validator import ALL_RESTAURANTS
from restaurant_order_service.handlers.api_handler import create_app
from restaurant_order_service.observability import configure_logging, setup_observability
from restaurant_order_service.repositories.order_repositories import (
    MenuItemRepository,
    OrderRepository,
    RestaurantRepository,
)
from restaurant_order_service.services.notifier import OrderNotifier
from restaurant_order_service.services.order_query_service import OrderQueryService
from restaurant_order_service.services.order_service import OrderLifecycleService

logger = logging.getLogger(__name__)

DEVELOPMENT_STAFF_KEY = "dummy-key-for-development"


def get_dynamodb_resource() -> Any:
    """Create DynamoDB resource with appropriate configuration.

    Returns:
        Boto3 DynamoDB resource configured for environment
    """
    endpoint_url = os.getenv("DYNAMODB_ENDPOINT")
    region = os.getenv("AWS_REGION", "us-east-1")

    if endpoint_url:
        # Local DynamoDB accepts any credentials
        logger.info(f"Using local DynamoDB at {endpoint_url}")
        return boto3.resource(
            "dynamodb",
            endpoint_url=endpoint_url,
            region_name=region,
            aws_access_key_id=os.getenv("AWS_ACCESS_KEY_ID", "dummy"),
            aws_secret_access_key=os.getenv("AWS_SECRET_ACCESS_KEY", "dummy"),
        )
    else:
        logger.info(f"Using AWS DynamoDB in region {region}")
        return boto3.resource("dynamodb", region_name=region)


def parse_staff_api_keys(raw: str) -> dict[str, list[str]]:
    """Parse the STAFF_API_KEYS setting.

    Entries are comma separated; each is ``key:restaurant_id|restaurant_id``,
    and ``*`` grants every restaurant.

    Args:
        raw: Raw environment value, e.g. "k1:rest_1|rest_2,k2:*"

    Returns:
        Mapping of API key to restaurant ids

    Raises:
        ValueError: If an entry has no key or no restaurants
    """
    staff_api_keys: dict[str, list[str]] = {}
    for entry in raw.split(","):
        entry = entry.strip()
        if not entry:
            continue

        key, _, restaurants = entry.partition(":")
        restaurant_ids = [r.strip() for r in restaurants.split("|") if r.strip()]
        if not key.strip() or not restaurant_ids:
            raise ValueError(f"Invalid STAFF_API_KEYS entry: '{entry}'")

        staff_api_keys[key.strip()] = restaurant_ids

    return staff_api_keys


def create_application() -> FastAPI:
    """Create and configure the FastAPI application with all dependencies.

    This factory function:
    1. Configures logging
    2. Creates the DynamoDB resource and repositories
    3. Creates the notifier and services
    4. Creates the FastAPI app with order and real-time endpoints
    5. Sets up observability when enabled

    Returns:
        Configured FastAPI application instance
    """
    log_level = os.getenv("LOG_LEVEL", "INFO")
    configure_logging(log_level)

    logger.info("Initializing restaurant order service...")

    dynamodb_resource = get_dynamodb_resource()

    orders_table = os.getenv("DYNAMODB_ORDERS_TABLE", "restaurant-orders")
    restaurants_table = os.getenv("DYNAMODB_RESTAURANTS_TABLE", "restaurants")
    menu_items_table = os.getenv("DYNAMODB_MENU_ITEMS_TABLE", "restaurant-menu-items")

    order_repository = OrderRepository(dynamodb_resource=dynamodb_resource, table_name=orders_table)
    restaurant_repository = RestaurantRepository(
        dynamodb_resource=dynamodb_resource, table_name=restaurants_table
    )
    menu_item_repository = MenuItemRepository(
        dynamodb_resource=dynamodb_resource, table_name=menu_items_table
    )

    logger.info(
        f"Repositories configured - orders: {orders_table}, restaurants: {restaurants_table}, "
        f"menu items: {menu_items_table}"
    )

    notifier = OrderNotifier(
        send_timeout_seconds=float(os.getenv("BROADCAST_SEND_TIMEOUT_SECONDS", "1")),
        max_queue_size=int(os.getenv("NOTIFIER_QUEUE_SIZE", "1000")),
    )

    lifecycle_service = OrderLifecycleService(
        order_repository=order_repository,
        restaurant_repository=restaurant_repository,
        menu_item_repository=menu_item_repository,
        notifier=notifier,
        total_tolerance=Decimal(os.getenv("ORDER_TOTAL_TOLERANCE", "0.01")),
    )
    query_service = OrderQueryService(order_repository=order_repository)

    logger.info("Services initialized")

    staff_api_keys = parse_staff_api_keys(os.getenv("STAFF_API_KEYS", ""))

    if not staff_api_keys:
        logger.warning("No STAFF_API_KEYS configured - using development key for all restaurants")
        staff_api_keys = {DEVELOPMENT_STAFF_KEY: [ALL_RESTAURANTS]}

    app = create_app(
        lifecycle_service=lifecycle_service,
        query_service=query_service,
        notifier=notifier,
        staff_api_keys=staff_api_keys,
    )

    if os.getenv("OTEL_ENABLED", "false").lower() == "true":
        setup_observability(app)

    logger.info("Restaurant order service initialized successfully")

    return app


# Create the FastAPI application instance (only when not in test mode)
# This prevents the app from being created during test collection
if os.getenv("ENVIRONMENT") != "test":  # noqa: SIM108
    app = create_application()
else:
    app = FastAPI()


if __name__ == "__main__":
    """Run the application with uvicorn when executed directly."""
    import uvicorn

    port = int(os.getenv("PORT", "8002"))
    host = os.getenv("HOST", "0.0.0.0")

    logger.info(f"Starting development server on {host}:{port}")
    logger.info(f"API documentation available at http://{host}:{port}/docs")

    uvicorn.run(
        "main:app",
        host=host,
        port=port,
        reload=True,
        log_level=os.getenv("LOG_LEVEL", "info").lower(),
    )
