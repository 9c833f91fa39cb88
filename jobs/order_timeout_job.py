"""
Order Timeout Job

One-shot run of the timeout sweep for an external scheduler (cron, systemd timer):

    python -m jobs.order_timeout_job

Cancels PENDING orders past PAYMENT_TIMEOUT_HOURS and PENDING_PRESCRIPTION
orders past PRESCRIPTION_TIMEOUT_HOURS, returning their stock. The long-running
API process runs the same sweep on an interval, see run.py.
"""

import asyncio
import logging
import sys

from db import create_db_and_tables, get_db_session
from models.checkout import ReclaimReportDTO
from services.background_tasks import BackgroundTaskService
from utils.logging_config import setup_logging

logger = logging.getLogger(__name__)


async def run_order_timeout_job() -> ReclaimReportDTO:
    await create_db_and_tables()
    async with get_db_session() as session:
        report = await BackgroundTaskService.reclaim_timeouts(session)

    logger.info(f"Order timeout job: cancelled {report.cancelled_order_ids}, failed {report.failed_order_ids}")
    for order_id, error in report.errors.items():
        logger.error(f"Order timeout job: order {order_id} not reclaimed: {error}")
    return report


def main() -> int:
    setup_logging()
    report = asyncio.run(run_order_timeout_job())
    return 1 if report.failed else 0


if __name__ == "__main__":
    sys.exit(main())
