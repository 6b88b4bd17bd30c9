"""OpenTelemetry tracing decorators."""

import asyncio
import functools
import inspect
from collections.abc import Callable, Iterable
from enum import Enum
from typing import Any, TypeVar

from opentelemetry import trace

F = TypeVar("F", bound=Callable[..., Any])


def _span_value(value: Any) -> Any:
    if isinstance(value, Enum):
        return value.value
    if isinstance(value, str | bool | int | float):
        return value
    return str(value)


def traced(
    span_name: str | None = None,
    service_name: str = "order-svc",
    record_args: Iterable[str] = (),
) -> Callable[[F], F]:
    """Decorator to add OpenTelemetry tracing to a function.

    Creates a new span for the decorated function with automatic error tracking.
    Async functions are supported. Arguments named in ``record_args`` are
    attached to the span as ``order.<name>`` attributes.

    Args:
        span_name: Name for the span (defaults to function name if not provided)
        service_name: Service name for span attributes
        record_args: Parameter names whose values are recorded on the span

    Returns:
        Decorated function with tracing

    Example:
        @traced("transition_status", record_args=("order_id", "requested_status"))
        async def transition_status(self, order_id: str, requested_status: OrderStatus) -> Order:
            ...
    """
    recorded = tuple(record_args)

    def decorator(func: F) -> F:
        name = span_name or func.__name__
        signature = inspect.signature(func)
        tracer = trace.get_tracer(service_name)

        def annotate(span: Any, args: tuple[Any, ...], kwargs: dict[str, Any]) -> None:
            span.set_attribute("service.name", service_name)
            if span_name:
                span.set_attribute("function.name", func.__name__)
            if not recorded:
                return
            bound = signature.bind_partial(*args, **kwargs)
            for arg_name in recorded:
                value = bound.arguments.get(arg_name)
                if value is not None:
                    span.set_attribute(f"order.{arg_name}", _span_value(value))

        def record_failure(span: Any, e: Exception) -> None:
            span.set_attribute("success", False)
            span.set_attribute("error.type", type(e).__name__)
            span.set_attribute("error.message", str(e))
            span.record_exception(e)

        @functools.wraps(func)
        async def async_wrapper(*args: Any, **kwargs: Any) -> Any:
            with tracer.start_as_current_span(name) as span:
                annotate(span, args, kwargs)
                try:
                    result = await func(*args, **kwargs)
                    span.set_attribute("success", True)
                    return result
                except Exception as e:
                    record_failure(span, e)
                    raise

        @functools.wraps(func)
        def sync_wrapper(*args: Any, **kwargs: Any) -> Any:
            with tracer.start_as_current_span(name) as span:
                annotate(span, args, kwargs)
                try:
                    result = func(*args, **kwargs)
                    span.set_attribute("success", True)
                    return result
                except Exception as e:
                    record_failure(span, e)
                    raise

        if asyncio.iscoroutinefunction(func):
            return async_wrapper  # type: ignore
        else:
            return sync_wrapper  # type: ignore

    return decorator
