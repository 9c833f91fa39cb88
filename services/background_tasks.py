import asyncio
import logging
from datetime import datetime, timedelta

from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import Session

import config
from db import get_db_session, session_commit, session_rollback
from enums.order_status import OrderStatus
from models.checkout import ReclaimReportDTO
from models.order import OrderDTO
from repositories.order import OrderRepository
from repositories.orderItem import OrderItemRepository
from services.inventory import InventoryLedger
from utils.order_state_machine import OrderStateMachine

logger = logging.getLogger(__name__)

PRESCRIPTION_TIMEOUT_REASON = "Prescription verification timeout"
PAYMENT_TIMEOUT_REASON = "Payment timeout"


class BackgroundTaskService:
    @staticmethod
    async def reclaim_timeouts(session: AsyncSession | Session, now: datetime | None = None) -> ReclaimReportDTO:
        """
        Cancel orders stuck in an unresolved state and return their stock.

        - PENDING_PRESCRIPTION older than PRESCRIPTION_TIMEOUT_HOURS: "Prescription verification timeout"
        - PENDING older than PAYMENT_TIMEOUT_HOURS: "Payment timeout"

        Each order is its own transaction (cancel + release of every line). A failing
        order is rolled back and recorded in the report; the sweep continues.

        Args:
            session: Database session
            now: Reference time, defaults to datetime.now() (tests pass a fixed value)
        """
        now = now or datetime.now()
        report = ReclaimReportDTO()

        sweeps = [
            (OrderStatus.PENDING_PRESCRIPTION, now - timedelta(hours=config.PRESCRIPTION_TIMEOUT_HOURS),
             PRESCRIPTION_TIMEOUT_REASON),
            (OrderStatus.PENDING, now - timedelta(hours=config.PAYMENT_TIMEOUT_HOURS),
             PAYMENT_TIMEOUT_REASON),
        ]

        for status, created_before, reason in sweeps:
            timed_out_orders = await OrderRepository.get_timed_out(status, created_before, session)
            if not timed_out_orders:
                logger.info(f"No {status.value} orders older than {created_before:%Y-%m-%d %H:%M}")
                continue

            logger.info(f"Reclaiming {len(timed_out_orders)} {status.value} orders ({reason})")
            for order in timed_out_orders:
                try:
                    cancelled = await BackgroundTaskService._cancel_order(order, reason, now, session)
                    await session_commit(session)
                    if cancelled:
                        report.cancelled_order_ids.append(order.id)
                except Exception as e:
                    await session_rollback(session)
                    logger.error(f"Failed to reclaim order {order.id}: {str(e)}")
                    report.failed_order_ids.append(order.id)
                    report.errors[order.id] = str(e)

        logger.info(f"Timeout sweep finished: {report.cancelled} cancelled, {report.failed} failed")
        return report

    @staticmethod
    async def _cancel_order(order: OrderDTO, reason: str, now: datetime, session: AsyncSession | Session) -> bool:
        OrderStateMachine.assert_transition(order.id, order.status, OrderStatus.CANCELLED)
        cancelled = await OrderRepository.update_status(order.id, order.status, OrderStatus.CANCELLED, session,
                                                        cancel_reason=reason, cancelled_at=now)
        if not cancelled:
            # Resolved (paid, verified) between the query and now
            logger.info(f"Order {order.id} left {order.status.value} before it could be cancelled, skipped")
            return False

        lines = await OrderItemRepository.get_by_order_id(order.id, session)
        await InventoryLedger.release_lines(lines, session)
        logger.info(f"Cancelled order {order.id} for guest {order.guest_id}: {reason}; "
                    f"released {sum(line.quantity for line in lines)} units")
        return True

    @staticmethod
    async def schedule_cleanup_tasks() -> None:
        """
        Run the timeout sweep every ORDER_TIMEOUT_SWEEP_INTERVAL_SECONDS
        """
        interval_seconds = getattr(config, 'ORDER_TIMEOUT_SWEEP_INTERVAL_SECONDS', 86400)

        logger.info(f"Starting order timeout scheduler with {interval_seconds}s interval")

        while True:
            try:
                async with get_db_session() as session:
                    await BackgroundTaskService.reclaim_timeouts(session)
            except Exception as e:
                logger.error(f"Error in order timeout scheduler: {str(e)}")
                # Continue running even if there's an error
            await asyncio.sleep(interval_seconds)
