"""Unit tests for tracing decorators and logging configuration."""

import logging
from unittest.mock import MagicMock, patch

import pytest
from opentelemetry import trace
from opentelemetry.trace import NonRecordingSpan, SpanContext, TraceFlags
from pythonjsonlogger import jsonlogger

from restaurant_order_service.models.order_models import OrderStatus
from restaurant_order_service.observability import configure_logging
from restaurant_order_service.observability.config import TraceContextFilter
from restaurant_order_service.observability.decorators import traced


@pytest.mark.unit
class TestTraced:
    """Test suite for the traced decorator."""

    @pytest.mark.asyncio
    async def test_async_function_span(self) -> None:
        """Test that async functions run inside a span marked successful."""
        span = MagicMock()
        tracer = MagicMock()
        tracer.start_as_current_span.return_value.__enter__.return_value = span

        with patch(
            "restaurant_order_service.observability.decorators.trace.get_tracer",
            return_value=tracer,
        ):

            @traced("place")
            async def place(value: int) -> int:
                return value * 2

        assert await place(21) == 42
        tracer.start_as_current_span.assert_called_once_with("place")
        span.set_attribute.assert_any_call("success", True)
        span.set_attribute.assert_any_call("function.name", "place")

    def test_sync_function_failure_is_recorded(self) -> None:
        """Test that exceptions are recorded on the span and re-raised."""
        span = MagicMock()
        tracer = MagicMock()
        tracer.start_as_current_span.return_value.__enter__.return_value = span

        with patch(
            "restaurant_order_service.observability.decorators.trace.get_tracer",
            return_value=tracer,
        ):

            @traced()
            def explode() -> None:
                raise RuntimeError("kaboom")

        with pytest.raises(RuntimeError, match="kaboom"):
            explode()

        tracer.start_as_current_span.assert_called_once_with("explode")
        span.set_attribute.assert_any_call("success", False)
        span.set_attribute.assert_any_call("error.type", "RuntimeError")
        span.record_exception.assert_called_once()

    @pytest.mark.asyncio
    async def test_records_selected_arguments(self) -> None:
        """Test that named arguments are attached to the span, enums by value."""
        span = MagicMock()
        tracer = MagicMock()
        tracer.start_as_current_span.return_value.__enter__.return_value = span

        with patch(
            "restaurant_order_service.observability.decorators.trace.get_tracer",
            return_value=tracer,
        ):

            @traced("transition", record_args=("order_id", "requested_status"))
            async def transition(order_id: str, requested_status: OrderStatus, note: str) -> None:
                return None

        await transition("ord_abc123", requested_status=OrderStatus.READY, note="secret")

        span.set_attribute.assert_any_call("order.order_id", "ord_abc123")
        span.set_attribute.assert_any_call("order.requested_status", "ready")
        recorded = [call.args[0] for call in span.set_attribute.call_args_list]
        assert "order.note" not in recorded

    def test_preserves_function_metadata(self) -> None:
        """Test that the wrapper keeps the wrapped function's name and docstring."""

        @traced()
        def documented() -> None:
            """Place an order."""

        assert documented.__name__ == "documented"
        assert documented.__doc__ == "Place an order."


@pytest.mark.unit
class TestConfigureLogging:
    """Test suite for configure_logging."""

    @patch.dict("os.environ", {}, clear=True)
    def test_installs_single_json_handler(self) -> None:
        """Test that the root logger gets exactly one JSON handler at the requested level."""
        root_logger = logging.getLogger()
        saved_handlers = root_logger.handlers[:]
        saved_level = root_logger.level
        try:
            configure_logging("debug")
            configure_logging("warning")

            assert root_logger.level == logging.WARNING
            assert len(root_logger.handlers) == 1
            assert isinstance(root_logger.handlers[0].formatter, jsonlogger.JsonFormatter)
        finally:
            root_logger.handlers[:] = saved_handlers
            root_logger.setLevel(saved_level)


@pytest.mark.unit
class TestTraceContextFilter:
    """Test suite for TraceContextFilter."""

    def _record(self) -> logging.LogRecord:
        return logging.LogRecord("test", logging.INFO, __file__, 1, "hello", None, None)

    def test_adds_ids_inside_a_span(self) -> None:
        """Test that records logged inside a span carry its ids."""
        context = SpanContext(
            trace_id=0x1234, span_id=0xABCD, is_remote=False, trace_flags=TraceFlags(1)
        )
        record = self._record()

        with trace.use_span(NonRecordingSpan(context)):
            assert TraceContextFilter().filter(record) is True

        assert record.trace_id == f"{0x1234:032x}"
        assert record.span_id == f"{0xABCD:016x}"

    def test_leaves_records_alone_outside_a_span(self) -> None:
        """Test that records without an active span pass through unchanged."""
        record = self._record()

        assert TraceContextFilter().filter(record) is True
        assert not hasattr(record, "trace_id")
