"""
Unit Tests: jobs/order_timeout_job.py

The one-shot entry point runs the same sweep as the background loop.
"""

from contextlib import asynccontextmanager
from unittest.mock import AsyncMock, patch

import pytest

from enums.order_status import OrderStatus
from jobs.order_timeout_job import run_order_timeout_job
from repositories.order import OrderRepository
from services.cart import CartService
from services.checkout import CheckoutService


class TestOrderTimeoutJob:

    @pytest.mark.asyncio
    async def test_job_reclaims_stale_orders(self, test_session, catalog, contact, fake_gateway, backdate,
                                             stock_of):
        await CartService.add_item("guest-1", catalog.lab, catalog.lipid_panel, 2, test_session)
        checkout = await CheckoutService.checkout("guest-1", contact, "https://files.example.com/rx/lab.pdf",
                                                  test_session)
        order_id = checkout.orders[0].order_id
        await backdate(order_id, hours=72)

        @asynccontextmanager
        async def test_db_session():
            yield test_session

        with patch("jobs.order_timeout_job.create_db_and_tables", AsyncMock()), \
                patch("jobs.order_timeout_job.get_db_session", test_db_session):
            report = await run_order_timeout_job()

        assert report.cancelled_order_ids == [order_id]
        assert (await OrderRepository.get_by_id(order_id, test_session)).status == OrderStatus.CANCELLED
        assert await stock_of(catalog.lab, catalog.lipid_panel) == 5
