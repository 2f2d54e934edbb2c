"""
Background job that runs auto-scheduling for every active company.
"""
import asyncio
import logging
from typing import Dict

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from cafm.core.config import get_settings
from cafm.core.exceptions import NoCapacityAvailable
from cafm.models.company import Company
from cafm.models.scheduler_control import SchedulerControl
from cafm.services.work_order_service import WorkOrderService

logger = logging.getLogger(__name__)


class AutoScheduleJob:
    """
    One pass over all companies. Companies with pause_auto_schedule set are
    skipped; each company runs in its own session.
    """

    def __init__(self, session_maker: async_sessionmaker[AsyncSession]):
        self.session_maker = session_maker

    async def _paused_companies(self, db: AsyncSession) -> Dict[int, bool]:
        result = await db.execute(select(SchedulerControl))
        return {row.company_id: row.pause_auto_schedule for row in result.scalars().all()}

    async def run_once(self) -> Dict[int, int]:
        """Returns the number of orders assigned per company."""
        async with self.session_maker() as db:
            paused = await self._paused_companies(db)
            result = await db.execute(select(Company.id).where(Company.is_active == True))  # noqa: E712
            company_ids = list(result.scalars().all())

        assigned: Dict[int, int] = {}
        for company_id in company_ids:
            if paused.get(company_id):
                logger.info(f"Auto-schedule paused for company {company_id}")
                continue
            async with self.session_maker() as db:
                try:
                    report = await WorkOrderService(db).run_auto_schedule(company_id)
                except NoCapacityAvailable:
                    continue
            assigned[company_id] = len(report.assigned)
        return assigned


async def run_auto_scheduler(session_maker: async_sessionmaker[AsyncSession]):
    """
    Background task to run the auto-scheduler periodically.
    """
    job = AutoScheduleJob(session_maker)
    interval = get_settings().AUTO_SCHEDULE_INTERVAL_SECONDS

    while True:
        try:
            logger.info("Running auto-scheduler...")
            assigned = await job.run_once()
            logger.info(f"Auto-scheduler completed. Assigned {sum(assigned.values())} work orders.")
        except Exception as e:
            logger.error(f"Auto-scheduler error: {e}")

        await asyncio.sleep(interval)
