"""
Unit Tests: TrackingService and FulfillmentService

Tests for services/tracking.py and services/fulfillment.py covering:
- Guest lookup of all sibling orders by tracking code
- Sellers advancing their own orders, operators any order
- State machine enforcement on fulfillment steps
"""

import pytest

from enums.caller_role import CallerRole
from enums.order_status import OrderStatus
from exceptions import (
    InvalidOrderStateException,
    OrderNotFoundException,
    UnauthorizedException,
    ValidationException,
)
from models.identity import CallerIdentity
from services.cart import CartService
from services.checkout import CheckoutService
from services.fulfillment import FulfillmentService
from services.payment import PaymentService
from services.tracking import TrackingService


async def paid_two_seller_checkout(session, catalog, contact):
    await CartService.add_item("guest-1", catalog.pharmacy_a, catalog.paracetamol, 2, session)
    await CartService.add_item("guest-1", catalog.pharmacy_b, catalog.paracetamol, 1, session)
    checkout = await CheckoutService.checkout("guest-1", contact, None, session)
    result = await PaymentService.reconcile_payment("guest-1", checkout.transaction_reference, session)
    return checkout, result


def seller(seller_id: int) -> CallerIdentity:
    return CallerIdentity(caller_id=str(seller_id), role=CallerRole.SELLER)


class TestTracking:

    @pytest.mark.asyncio
    async def test_code_returns_every_sibling(self, test_session, catalog, contact, fake_gateway):
        checkout, result = await paid_two_seller_checkout(test_session, catalog, contact)

        orders = await TrackingService.get_orders_by_tracking_code(result.tracking_code, test_session)

        assert sorted(o.id for o in orders) == sorted(o.order_id for o in checkout.orders)
        assert {o.seller_id for o in orders} == {catalog.pharmacy_a, catalog.pharmacy_b}

    @pytest.mark.asyncio
    async def test_unknown_code(self, test_session, catalog):
        with pytest.raises(OrderNotFoundException) as exc_info:
            await TrackingService.get_orders_by_tracking_code("TRK-SESSION-999-1718000000000", test_session)

        assert exc_info.value.tracking_code == "TRK-SESSION-999-1718000000000"

    @pytest.mark.asyncio
    async def test_malformed_code(self, test_session, catalog):
        with pytest.raises(ValidationException):
            await TrackingService.get_orders_by_tracking_code("ORDER-1", test_session)


class TestFulfillment:

    @pytest.mark.asyncio
    async def test_seller_walks_own_order_to_delivered(self, test_session, catalog, contact, fake_gateway):
        checkout, _ = await paid_two_seller_checkout(test_session, catalog, contact)
        order = next(o for o in checkout.orders if o.seller_id == catalog.pharmacy_a)

        for status in (OrderStatus.PROCESSING, OrderStatus.SHIPPED, OrderStatus.DELIVERED):
            updated = await FulfillmentService.advance(seller(catalog.pharmacy_a), order.order_id, status,
                                                       test_session)
            assert updated.status == status

    @pytest.mark.asyncio
    async def test_seller_cannot_touch_other_shop(self, test_session, catalog, contact, fake_gateway):
        checkout, _ = await paid_two_seller_checkout(test_session, catalog, contact)
        order = next(o for o in checkout.orders if o.seller_id == catalog.pharmacy_a)

        with pytest.raises(UnauthorizedException):
            await FulfillmentService.advance(seller(catalog.pharmacy_b), order.order_id, OrderStatus.PROCESSING,
                                             test_session)

    @pytest.mark.asyncio
    async def test_operator_marks_ready_for_pickup(self, test_session, catalog, contact, fake_gateway, operator):
        checkout, _ = await paid_two_seller_checkout(test_session, catalog, contact)

        updated = await FulfillmentService.advance(operator, checkout.orders[0].order_id,
                                                   OrderStatus.READY_FOR_PICKUP, test_session)

        assert updated.status == OrderStatus.READY_FOR_PICKUP

    @pytest.mark.asyncio
    async def test_unpaid_order_cannot_ship(self, test_session, catalog, contact, fake_gateway):
        await CartService.add_item("guest-1", catalog.pharmacy_a, catalog.paracetamol, 1, test_session)
        checkout = await CheckoutService.checkout("guest-1", contact, None, test_session)

        with pytest.raises(InvalidOrderStateException):
            await FulfillmentService.advance(seller(catalog.pharmacy_a), checkout.orders[0].order_id,
                                             OrderStatus.SHIPPED, test_session)

    @pytest.mark.asyncio
    async def test_delivered_is_final(self, test_session, catalog, contact, fake_gateway, operator):
        checkout, _ = await paid_two_seller_checkout(test_session, catalog, contact)
        order_id = checkout.orders[0].order_id
        await FulfillmentService.advance(operator, order_id, OrderStatus.SHIPPED, test_session)
        await FulfillmentService.advance(operator, order_id, OrderStatus.DELIVERED, test_session)

        with pytest.raises(InvalidOrderStateException):
            await FulfillmentService.advance(operator, order_id, OrderStatus.PROCESSING, test_session)

    @pytest.mark.asyncio
    async def test_cart_is_not_an_order(self, test_session, catalog, operator):
        cart = await CartService.add_item("guest-1", catalog.pharmacy_a, catalog.paracetamol, 1, test_session)

        with pytest.raises(OrderNotFoundException):
            await FulfillmentService.advance(operator, cart.order_id, OrderStatus.PROCESSING, test_session)

    @pytest.mark.asyncio
    async def test_guest_cannot_advance(self, test_session, catalog, contact, fake_gateway):
        checkout, _ = await paid_two_seller_checkout(test_session, catalog, contact)
        guest = CallerIdentity(caller_id="guest-1", role=CallerRole.GUEST)

        with pytest.raises(UnauthorizedException):
            await FulfillmentService.advance(guest, checkout.orders[0].order_id, OrderStatus.PROCESSING,
                                             test_session)
