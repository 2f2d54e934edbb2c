"""
Auto-scheduling of pending work orders.

Pending orders are handed to available technicians round-robin, highest
priority first, and each gets the technician's next free slot inside
working hours. This is a simple heuristic, not an optimiser.
"""
import logging
from dataclasses import dataclass, field
from datetime import datetime, timedelta
from typing import List, Optional

from cafm.core.clock import Clock, utcnow
from cafm.core.config import Settings, get_settings
from cafm.core.exceptions import (
    InvalidAssignment,
    InvalidStateTransition,
    NoCapacityAvailable,
    WorkOrderError,
)
from cafm.models.work_order import WorkOrderStatus
from cafm.services.directory import TechnicianDirectory
from cafm.services.state_machine import WorkOrderStateMachine
from cafm.services.work_order_repository import WorkOrderRepository

logger = logging.getLogger(__name__)

AUTO_SCHEDULE_REASON = "Auto-scheduled"


@dataclass
class ScheduledAssignment:
    work_order_id: int
    work_order_number: str
    technician_id: int
    scheduled_start: Optional[datetime]
    scheduled_end: Optional[datetime]


@dataclass
class ScheduleFailure:
    work_order_id: int
    technician_id: int
    reason: str


@dataclass
class AutoScheduleReport:
    assigned: List[ScheduledAssignment] = field(default_factory=list)
    failed: List[ScheduleFailure] = field(default_factory=list)


def next_available_slot(
    latest_end: Optional[datetime],
    now: datetime,
    settings: Optional[Settings] = None,
) -> datetime:
    """
    Start of the next slot after a technician's last scheduled job.

    Adds the buffer, pushes anything at or past the end of the working day to
    the next morning (and anything before the start of the day to that
    morning), then skips Saturday and Sunday.
    """
    settings = settings or get_settings()
    start = (latest_end or now) + timedelta(minutes=settings.SCHEDULE_BUFFER_MINUTES)

    if start.hour >= settings.WORKDAY_END_HOUR:
        start = (start + timedelta(days=1)).replace(
            hour=settings.WORKDAY_START_HOUR, minute=0, second=0, microsecond=0
        )
    elif start.hour < settings.WORKDAY_START_HOUR:
        start = start.replace(hour=settings.WORKDAY_START_HOUR, minute=0, second=0, microsecond=0)

    while start.weekday() >= 5:
        start += timedelta(days=1)
    return start


class AssignmentScheduler:
    """
    Runs one auto-schedule pass for a company.

    Orders are re-read and committed one at a time, so a failure on one
    order (state changed underneath, technician became unavailable, lost
    update) is reported and the rest of the batch continues.
    """

    def __init__(
        self,
        repository: WorkOrderRepository,
        directory: TechnicianDirectory,
        state_machine: WorkOrderStateMachine,
        settings: Optional[Settings] = None,
        clock: Clock = utcnow,
    ):
        self.repository = repository
        self.directory = directory
        self.state_machine = state_machine
        self.settings = settings or get_settings()
        self.clock = clock

    async def run(self, company_id: int) -> AutoScheduleReport:
        pending = await self.repository.pending_ids(company_id)
        technicians = await self.directory.find_available_technicians(company_id)
        if not technicians:
            logger.warning(f"Auto-schedule for company {company_id}: no available technicians")
            raise NoCapacityAvailable(company_id)

        report = AutoScheduleReport()
        for index, work_order_id in enumerate(pending):
            technician_id = technicians[index % len(technicians)].id
            try:
                assignment = await self._assign_one(company_id, work_order_id, technician_id)
            except WorkOrderError as e:
                await self.repository.rollback()
                logger.warning(f"Auto-schedule skipped work order {work_order_id}: {e.message}")
                report.failed.append(
                    ScheduleFailure(work_order_id=work_order_id, technician_id=technician_id, reason=e.message)
                )
                continue
            report.assigned.append(assignment)

        logger.info(
            f"Auto-schedule for company {company_id}: "
            f"{len(report.assigned)} assigned, {len(report.failed)} failed"
        )
        return report

    async def _assign_one(self, company_id: int, work_order_id: int, technician_id: int) -> ScheduledAssignment:
        work_order = await self.repository.load(company_id, work_order_id, for_update=True)
        if work_order.status != WorkOrderStatus.PENDING:
            raise InvalidStateTransition(work_order.status, WorkOrderStatus.ASSIGNED, "auto_schedule")

        technician = await self.directory.get_technician(company_id, technician_id)
        if technician is None:
            raise InvalidAssignment(technician_id, "technician not found")

        # Read before mutating so the query does not flush a half-applied change
        latest_end = None
        if work_order.scheduled_start is None:
            latest_end = await self.repository.latest_scheduled_end(company_id, technician_id)

        transition = self.state_machine.assign(work_order, technician)
        if work_order.scheduled_start is None:
            start = next_available_slot(latest_end, self.clock(), self.settings)
            hours = work_order.estimated_hours or self.settings.DEFAULT_ESTIMATED_HOURS
            work_order.scheduled_start = start
            work_order.scheduled_end = start + timedelta(hours=hours)

        self.repository.record_transition(work_order, transition, None, AUTO_SCHEDULE_REASON)
        await self.repository.save(work_order.id)

        return ScheduledAssignment(
            work_order_id=work_order.id,
            work_order_number=work_order.work_order_number,
            technician_id=technician_id,
            scheduled_start=work_order.scheduled_start,
            scheduled_end=work_order.scheduled_end,
        )
