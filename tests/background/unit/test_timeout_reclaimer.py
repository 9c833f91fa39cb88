"""
Unit Tests: BackgroundTaskService.reclaim_timeouts()

Tests for services/background_tasks.py covering:
- Prescription verification timeout (PENDING_PRESCRIPTION older than 48h)
- Payment timeout (PENDING older than 24h)
- Stock release for every line of a cancelled order
- Orders inside their window, paid orders and carts are left alone
- One failing order does not stop the sweep
"""

from unittest.mock import patch

import pytest

from enums.order_status import OrderStatus
from repositories.order import OrderRepository
from services.background_tasks import BackgroundTaskService
from services.cart import CartService
from services.checkout import CheckoutService
from services.inventory import InventoryLedger
from services.payment import PaymentService

FILE_URL = "https://files.example.com/rx/scan-001.pdf"


class TestPrescriptionTimeout:

    @pytest.mark.asyncio
    async def test_gated_order_cancelled_after_49_hours(self, test_session, catalog, contact, fake_gateway,
                                                        backdate, stock_of):
        """Reason recorded, reserved stock restored."""
        await CartService.add_item("guest-1", catalog.pharmacy_a, catalog.amoxicillin, 2, test_session)
        checkout = await CheckoutService.checkout("guest-1", contact, FILE_URL, test_session)
        order_id = checkout.orders[0].order_id
        assert await stock_of(catalog.pharmacy_a, catalog.amoxicillin) == 1
        await backdate(order_id, hours=49)

        report = await BackgroundTaskService.reclaim_timeouts(test_session)

        assert report.cancelled_order_ids == [order_id]
        assert report.failed == 0
        order = await OrderRepository.get_by_id(order_id, test_session)
        assert order.status == OrderStatus.CANCELLED
        assert order.cancel_reason == "Prescription verification timeout"
        assert order.cancelled_at is not None
        assert await stock_of(catalog.pharmacy_a, catalog.amoxicillin) == 3

    @pytest.mark.asyncio
    async def test_gated_order_within_window_kept(self, test_session, catalog, contact, fake_gateway, backdate):
        await CartService.add_item("guest-1", catalog.pharmacy_a, catalog.amoxicillin, 1, test_session)
        checkout = await CheckoutService.checkout("guest-1", contact, FILE_URL, test_session)
        await backdate(checkout.orders[0].order_id, hours=30)

        report = await BackgroundTaskService.reclaim_timeouts(test_session)

        assert report.cancelled == 0
        order = await OrderRepository.get_by_id(checkout.orders[0].order_id, test_session)
        assert order.status == OrderStatus.PENDING_PRESCRIPTION


class TestPaymentTimeout:

    @pytest.mark.asyncio
    async def test_unpaid_order_cancelled_after_24_hours(self, test_session, catalog, contact, fake_gateway,
                                                         backdate, stock_of):
        await CartService.add_item("guest-1", catalog.pharmacy_a, catalog.paracetamol, 3, test_session)
        await CartService.add_item("guest-1", catalog.pharmacy_b, catalog.paracetamol, 1, test_session)
        checkout = await CheckoutService.checkout("guest-1", contact, None, test_session)
        for summary in checkout.orders:
            await backdate(summary.order_id, hours=25)

        report = await BackgroundTaskService.reclaim_timeouts(test_session)

        assert sorted(report.cancelled_order_ids) == sorted(o.order_id for o in checkout.orders)
        for summary in checkout.orders:
            order = await OrderRepository.get_by_id(summary.order_id, test_session)
            assert order.status == OrderStatus.CANCELLED
            assert order.cancel_reason == "Payment timeout"
        assert await stock_of(catalog.pharmacy_a, catalog.paracetamol) == 10
        assert await stock_of(catalog.pharmacy_b, catalog.paracetamol) == 4

    @pytest.mark.asyncio
    async def test_paid_and_young_orders_untouched(self, test_session, catalog, contact, fake_gateway, backdate):
        await CartService.add_item("guest-1", catalog.pharmacy_a, catalog.paracetamol, 1, test_session)
        paid = await CheckoutService.checkout("guest-1", contact, None, test_session)
        await PaymentService.reconcile_payment("guest-1", paid.transaction_reference, test_session)
        await backdate(paid.orders[0].order_id, hours=100)

        await CartService.add_item("guest-1", catalog.pharmacy_a, catalog.paracetamol, 1, test_session)
        young = await CheckoutService.checkout("guest-1", contact, None, test_session)
        await backdate(young.orders[0].order_id, hours=2)

        # An abandoned cart is not an order
        cart = await CartService.add_item("guest-2", catalog.pharmacy_a, catalog.paracetamol, 1, test_session)
        await backdate(cart.order_id, hours=100)

        report = await BackgroundTaskService.reclaim_timeouts(test_session)

        assert report.cancelled == 0
        assert (await OrderRepository.get_by_id(paid.orders[0].order_id, test_session)).status == OrderStatus.CONFIRMED
        assert (await OrderRepository.get_by_id(young.orders[0].order_id, test_session)).status == OrderStatus.PENDING
        assert (await OrderRepository.get_by_id(cart.order_id, test_session)).status == OrderStatus.CART


class TestSweepResilience:

    @pytest.mark.asyncio
    async def test_failing_order_does_not_stop_sweep(self, test_session, catalog, contact, fake_gateway,
                                                     backdate, stock_of):
        await CartService.add_item("guest-1", catalog.pharmacy_a, catalog.paracetamol, 2, test_session)
        first = await CheckoutService.checkout("guest-1", contact, None, test_session)
        await CartService.add_item("guest-2", catalog.lab, catalog.lipid_panel, 1, test_session)
        await CartService.add_item("guest-2", catalog.pharmacy_b, catalog.paracetamol, 1, test_session)
        second = await CheckoutService.checkout("guest-2", contact, None, test_session)
        failing_id = first.orders[0].order_id
        for order_id in [failing_id] + [o.order_id for o in second.orders]:
            await backdate(order_id, hours=30)

        original_release = InventoryLedger.release_lines

        async def flaky_release(lines, session):
            if any(line.order_id == failing_id for line in lines):
                raise RuntimeError("database is locked")
            await original_release(lines, session)

        with patch.object(InventoryLedger, "release_lines", side_effect=flaky_release):
            report = await BackgroundTaskService.reclaim_timeouts(test_session)

        assert report.failed_order_ids == [failing_id]
        assert "database is locked" in report.errors[failing_id]
        assert sorted(report.cancelled_order_ids) == sorted(o.order_id for o in second.orders)
        # The failed order was rolled back as a whole
        failed = await OrderRepository.get_by_id(failing_id, test_session)
        assert failed.status == OrderStatus.PENDING
        assert await stock_of(catalog.pharmacy_a, catalog.paracetamol) == 8
        assert await stock_of(catalog.pharmacy_b, catalog.paracetamol) == 4

    @pytest.mark.asyncio
    async def test_empty_sweep(self, test_session, catalog):
        report = await BackgroundTaskService.reclaim_timeouts(test_session)

        assert report.cancelled == 0
        assert report.failed == 0
