"""
Tests for Error Handler Utility

Tests the centralized error handling that converts service
exceptions into HTTP errors with a structured JSON body.
"""

import pytest
from fastapi import HTTPException

from enums.error_category import ErrorCategory
from exceptions import (
    OrderNotFoundException,
    InvalidOrderStateException,
    InsufficientStockException,
    EmptyCartException,
    UnauthorizedException,
    ValidationException,
    PrescriptionRequiredException,
    PrescriptionNotVerifiedException,
    PaymentFailedException,
    GatewayInitiationFailedException,
)
from utils.error_handler import get_status_code, to_http_exception, handle_unexpected_error, safe_service_call


class TestStatusCodes:
    """Exception -> HTTP status mapping"""

    @pytest.mark.parametrize("exception, status_code", [
        (ValidationException("quantity", "must be a positive integer"), 400),
        (PrescriptionRequiredException([3]), 400),
        (OrderNotFoundException(order_id=5), 404),
        (UnauthorizedException("guest-2", "reconcile payments"), 403),
        (PrescriptionNotVerifiedException(1, "PENDING"), 409),
        (PaymentFailedException("session_abc", "failed"), 402),
        (GatewayInitiationFailedException("abc", "timeout"), 502),
        (EmptyCartException("guest-1"), 409),
        (InsufficientStockException(item_id=1, requested=5, available=2), 409),
        (InvalidOrderStateException(5, "CANCELLED", "PENDING"), 409),
    ])
    def test_status_code(self, exception, status_code):
        assert get_status_code(exception) == status_code


class TestToHttpException:

    def test_body_carries_error_and_category(self):
        exc = InsufficientStockException(item_id=1, requested=5, available=2, seller_id=9)

        http_exc = to_http_exception(exc)

        assert isinstance(http_exc, HTTPException)
        assert http_exc.detail["error"] == "InsufficientStockException"
        assert http_exc.detail["category"] == ErrorCategory.INVALID_INPUT.value
        assert http_exc.detail["details"]["available"] == 2

    def test_unexpected_error_hides_internals(self):
        http_exc = handle_unexpected_error(RuntimeError("password=hunter2"))

        assert http_exc.status_code == 500
        assert http_exc.detail["category"] == ErrorCategory.RETRY_LATER.value
        assert "hunter2" not in str(http_exc.detail)


class TestSafeServiceCall:

    @pytest.mark.asyncio
    async def test_passes_result_through(self):
        @safe_service_call
        async def route():
            return {"ok": True}

        assert await route() == {"ok": True}

    @pytest.mark.asyncio
    async def test_converts_service_exception(self):
        @safe_service_call
        async def route():
            raise OrderNotFoundException(order_id=42)

        with pytest.raises(HTTPException) as exc_info:
            await route()

        assert exc_info.value.status_code == 404
        assert exc_info.value.detail["details"]["order_id"] == 42

    @pytest.mark.asyncio
    async def test_converts_unexpected_exception(self):
        @safe_service_call
        async def route():
            raise KeyError("boom")

        with pytest.raises(HTTPException) as exc_info:
            await route()

        assert exc_info.value.status_code == 500

    @pytest.mark.asyncio
    async def test_http_exception_untouched(self):
        @safe_service_call
        async def route():
            raise HTTPException(status_code=418)

        with pytest.raises(HTTPException) as exc_info:
            await route()

        assert exc_info.value.status_code == 418
