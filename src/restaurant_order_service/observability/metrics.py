"""Custom metrics for the restaurant order service."""

from opentelemetry import metrics

meter = metrics.get_meter("order-svc")

orders_created_counter = meter.create_counter(
    name="orders_created_total",
    description="Total number of orders placed by order type",
    unit="1",
)

status_transition_counter = meter.create_counter(
    name="order_status_transitions_total",
    description="Total number of committed order status transitions",
    unit="1",
)

transition_rejected_counter = meter.create_counter(
    name="order_transition_rejected_total",
    description="Total number of rejected status transition requests by reason",
    unit="1",
)

broadcast_duration_histogram = meter.create_histogram(
    name="order_event_broadcast_duration_seconds",
    description="Duration of broadcasting one event to all viewers",
    unit="s",
)

notification_failure_counter = meter.create_counter(
    name="notification_delivery_failures_total",
    description="Total number of events that could not be delivered to a viewer",
    unit="1",
)

viewer_connections = meter.create_up_down_counter(
    name="viewer_connections",
    description="Current number of open real-time viewer connections",
    unit="1",
)


def record_order_created(order_type: str) -> None:
    """Record a newly placed order.

    Args:
        order_type: Fulfilment type of the order (e.g., "dine_in")
    """
    orders_created_counter.add(1, {"order_type": order_type})


def record_status_transition(from_status: str, to_status: str) -> None:
    """Record a committed status transition."""
    status_transition_counter.add(1, {"from_status": from_status, "to_status": to_status})


def record_transition_rejected(reason: str) -> None:
    """Record a rejected transition request.

    Args:
        reason: Why it was rejected (e.g., "invalid_transition", "forbidden")
    """
    transition_rejected_counter.add(1, {"reason": reason})


def record_broadcast(duration_seconds: float, failed: int) -> None:
    """Record one broadcast of an event to all viewers.

    Args:
        duration_seconds: Time to deliver to every open connection
        failed: Number of connections that could not be reached
    """
    broadcast_duration_histogram.record(duration_seconds, {"had_failures": failed > 0})


def record_notification_failure(reason: str) -> None:
    """Record an event that could not be delivered."""
    notification_failure_counter.add(1, {"reason": reason})


def record_viewer_connection_change(change: int) -> None:
    """Record viewers connecting (+1) or disconnecting (-1)."""
    viewer_connections.add(change)
