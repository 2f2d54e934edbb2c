"""
Work Order service for business logic.

Each public method is one unit of work: load the order for the caller's
company, apply the change through the state machine or a ledger, record the
status change, commit.
"""
import logging
import random
from datetime import datetime, time
from typing import List, Optional

from sqlalchemy import or_
from sqlalchemy.ext.asyncio import AsyncSession

from cafm.core.clock import Clock, utcnow
from cafm.core.config import Settings, get_settings
from cafm.core.exceptions import InvalidInput, NotFound
from cafm.models.report import ReportPriority, ReportStatus
from cafm.models.work_order import (
    WorkOrder,
    WorkOrderMaterial,
    WorkOrderPriority,
    WorkOrderStatus,
    WorkOrderStatusHistory,
    WorkOrderTask,
)
from cafm.services.directory import (
    ReportGateway,
    SqlReportGateway,
    SqlTechnicianDirectory,
    TechnicianDirectory,
)
from cafm.services.material_ledger import MaterialLedger
from cafm.services.scheduler import AssignmentScheduler, AutoScheduleReport
from cafm.services.state_machine import Transition, WorkOrderStateMachine
from cafm.services.task_ledger import TaskLedger
from cafm.services.work_order_repository import Page, WorkOrderRepository
from cafm.services.work_order_statistics import (
    TechnicianPerformance,
    WorkOrderStatistics,
    compute_statistics,
    compute_technician_performance,
)

logger = logging.getLogger(__name__)

REPORT_PRIORITY_MAP = {
    ReportPriority.CRITICAL: WorkOrderPriority.EMERGENCY,
    ReportPriority.URGENT: WorkOrderPriority.HIGH,
    ReportPriority.HIGH: WorkOrderPriority.HIGH,
    ReportPriority.MEDIUM: WorkOrderPriority.MEDIUM,
    ReportPriority.LOW: WorkOrderPriority.LOW,
}

_CLOSED_STATUSES = [s for s in WorkOrderStatus if s.is_closed]


class WorkOrderService:
    """Service class for work order operations."""

    def __init__(
        self,
        db: AsyncSession,
        directory: Optional[TechnicianDirectory] = None,
        reports: Optional[ReportGateway] = None,
        clock: Clock = utcnow,
        settings: Optional[Settings] = None,
    ):
        self.db = db
        self.clock = clock
        self.settings = settings or get_settings()
        self.repository = WorkOrderRepository(db)
        self.directory = directory or SqlTechnicianDirectory(db)
        self.reports = reports or SqlReportGateway(db)
        self.state_machine = WorkOrderStateMachine(clock)
        self.tasks = TaskLedger(self.state_machine, clock)
        self.materials = MaterialLedger()

    # ------------------------------------------------------------------
    # Creation
    # ------------------------------------------------------------------

    async def _generate_work_order_number(self, company_id: int) -> str:
        prefix = f"{self.settings.WORK_ORDER_NUMBER_PREFIX}-{self.clock():%Y%m%d}"
        while True:
            number = f"{prefix}-{random.randint(0, 9999):04d}"
            if not await self.repository.number_exists(company_id, number):
                return number

    async def _new_work_order(
        self,
        company_id: int,
        title: str,
        created_by_id: Optional[int],
        task_descriptions: Optional[List[str]] = None,
        **fields,
    ) -> WorkOrder:
        if not title or not title.strip():
            raise InvalidInput("Work order title is required")
        if fields.get("estimated_hours") is not None and fields["estimated_hours"] < 0:
            raise InvalidInput("Estimated hours cannot be negative")
        if fields.get("priority") is None:
            fields["priority"] = WorkOrderPriority.MEDIUM

        now = self.clock()
        work_order = WorkOrder(
            company_id=company_id,
            work_order_number=await self._generate_work_order_number(company_id),
            title=title.strip(),
            status=WorkOrderStatus.PENDING,
            completion_percentage=0,
            actual_hours=0,
            labor_cost=0,
            material_cost=0,
            other_cost=0,
            total_cost=0,
            created_at=now,
            updated_at=now,
            created_by_id=created_by_id,
            tasks=[],
            materials=[],
            **fields,
        )
        for description in task_descriptions or []:
            self.tasks.add(work_order, description, created_by_id)

        await self.repository.add(work_order)
        self.repository.record_transition(
            work_order, Transition(None, WorkOrderStatus.PENDING), created_by_id, "Created"
        )
        return work_order

    async def create(
        self,
        company_id: int,
        title: str,
        description: Optional[str] = None,
        priority: Optional[WorkOrderPriority] = None,
        category: Optional[str] = None,
        school_id: Optional[int] = None,
        location_details: Optional[str] = None,
        scheduled_start: Optional[datetime] = None,
        scheduled_end: Optional[datetime] = None,
        estimated_hours: Optional[float] = None,
        tasks: Optional[List[str]] = None,
        created_by_id: Optional[int] = None,
    ) -> WorkOrder:
        """Create a PENDING work order with an optional initial checklist."""
        work_order = await self._new_work_order(
            company_id,
            title,
            created_by_id,
            task_descriptions=tasks,
            description=description,
            priority=priority,
            category=category,
            school_id=school_id,
            location_details=location_details,
            scheduled_start=scheduled_start,
            scheduled_end=scheduled_end,
            estimated_hours=estimated_hours,
        )
        await self.repository.save(work_order.id)
        logger.info(f"Created work order {work_order.work_order_number} for company {company_id}")
        return work_order

    async def create_from_report(
        self,
        company_id: int,
        report_id: int,
        created_by_id: Optional[int] = None,
        estimated_hours: Optional[float] = None,
    ) -> WorkOrder:
        """
        Derive a work order from a maintenance report and mark the report
        IN_PROGRESS. The report's scheduled date becomes a working-day window.
        """
        report = await self.reports.get_report(company_id, report_id)
        if report is None:
            raise NotFound("Report", report_id)

        scheduled_start = scheduled_end = None
        if report.scheduled_date is not None:
            scheduled_start = datetime.combine(report.scheduled_date, time(0, 0))
            scheduled_end = datetime.combine(report.scheduled_date, time(self.settings.WORKDAY_END_HOUR, 0))

        work_order = await self._new_work_order(
            company_id,
            report.title,
            created_by_id,
            description=report.description,
            priority=REPORT_PRIORITY_MAP.get(report.priority, WorkOrderPriority.MEDIUM),
            school_id=report.school_id,
            report_id=report.id,
            scheduled_start=scheduled_start,
            scheduled_end=scheduled_end,
            estimated_hours=estimated_hours,
        )
        await self.reports.mark_status(company_id, report.id, ReportStatus.IN_PROGRESS)
        await self.repository.save(work_order.id)
        logger.info(f"Created work order {work_order.work_order_number} from report {report_id}")
        return work_order

    # ------------------------------------------------------------------
    # Lifecycle
    # ------------------------------------------------------------------

    async def _save(
        self,
        work_order: WorkOrder,
        transition: Transition,
        actor_id: Optional[int],
        reason: Optional[str] = None,
    ) -> WorkOrder:
        if actor_id is not None:
            work_order.updated_by_id = actor_id
        self.repository.record_transition(work_order, transition, actor_id, reason)
        await self.repository.flush(work_order.id)
        if transition.to_status == WorkOrderStatus.COMPLETED and transition.changed and work_order.report_id:
            await self.reports.mark_status(work_order.company_id, work_order.report_id, ReportStatus.COMPLETED)
        await self.repository.save(work_order.id)
        if transition.changed:
            logger.info(
                f"Work order {work_order.work_order_number}: "
                f"{transition.from_status.value} -> {transition.to_status.value}"
            )
        return work_order

    async def _assignee_rate(self, work_order: WorkOrder) -> Optional[float]:
        if work_order.assigned_to_id is None:
            return None
        technician = await self.directory.get_technician(work_order.company_id, work_order.assigned_to_id)
        return technician.hourly_rate if technician else None

    async def assign(
        self,
        company_id: int,
        work_order_id: int,
        technician_id: int,
        assigned_by_id: Optional[int] = None,
    ) -> WorkOrder:
        work_order = await self.repository.load(company_id, work_order_id, for_update=True)
        technician = await self.directory.get_technician(company_id, technician_id)
        if technician is None:
            raise NotFound("Technician", technician_id)
        transition = self.state_machine.assign(work_order, technician, assigned_by_id)
        return await self._save(work_order, transition, assigned_by_id, f"Assigned to {technician_id}")

    async def start_work(self, company_id: int, work_order_id: int, technician_id: int) -> WorkOrder:
        work_order = await self.repository.load(company_id, work_order_id, for_update=True)
        transition = self.state_machine.start(work_order, technician_id)
        return await self._save(work_order, transition, technician_id)

    async def update_progress(
        self,
        company_id: int,
        work_order_id: int,
        percentage: int,
        notes: Optional[str] = None,
        actual_hours: Optional[float] = None,
        user_id: Optional[int] = None,
    ) -> WorkOrder:
        work_order = await self.repository.load(company_id, work_order_id, for_update=True)
        rate = await self._assignee_rate(work_order)
        transition = self.state_machine.update_progress(work_order, percentage, notes, actual_hours, rate)
        return await self._save(work_order, transition, user_id, "Progress update")

    async def hold(
        self,
        company_id: int,
        work_order_id: int,
        reason: Optional[str],
        user_id: Optional[int] = None,
    ) -> WorkOrder:
        work_order = await self.repository.load(company_id, work_order_id, for_update=True)
        transition = self.state_machine.hold(work_order, reason)
        return await self._save(work_order, transition, user_id, reason)

    async def resume(self, company_id: int, work_order_id: int, user_id: Optional[int] = None) -> WorkOrder:
        work_order = await self.repository.load(company_id, work_order_id, for_update=True)
        transition = self.state_machine.resume(work_order)
        return await self._save(work_order, transition, user_id)

    async def complete(
        self,
        company_id: int,
        work_order_id: int,
        notes: Optional[str] = None,
        actual_hours: Optional[float] = None,
        signature_url: Optional[str] = None,
        user_id: Optional[int] = None,
    ) -> WorkOrder:
        work_order = await self.repository.load(company_id, work_order_id, for_update=True)
        rate = await self._assignee_rate(work_order)
        transition = self.state_machine.complete(work_order, rate, notes, actual_hours, signature_url)
        return await self._save(work_order, transition, user_id)

    async def verify(self, company_id: int, work_order_id: int, verifier_id: int) -> WorkOrder:
        work_order = await self.repository.load(company_id, work_order_id, for_update=True)
        transition = self.state_machine.verify(work_order, verifier_id)
        return await self._save(work_order, transition, verifier_id)

    async def cancel(
        self,
        company_id: int,
        work_order_id: int,
        reason: Optional[str],
        user_id: Optional[int] = None,
    ) -> WorkOrder:
        work_order = await self.repository.load(company_id, work_order_id, for_update=True)
        transition = self.state_machine.cancel(work_order, reason)
        return await self._save(work_order, transition, user_id, reason)

    async def soft_delete(self, company_id: int, work_order_id: int, user_id: Optional[int] = None) -> None:
        work_order = await self.repository.load(company_id, work_order_id, for_update=True)
        work_order.deleted_at = self.clock()
        work_order.updated_by_id = user_id
        await self.repository.save(work_order.id)
        logger.info(f"Deleted work order {work_order.work_order_number}")

    # ------------------------------------------------------------------
    # Tasks and materials
    # ------------------------------------------------------------------

    async def add_task(
        self,
        company_id: int,
        work_order_id: int,
        description: str,
        user_id: Optional[int] = None,
    ) -> WorkOrderTask:
        work_order = await self.repository.load(company_id, work_order_id, for_update=True)
        task = self.tasks.add(work_order, description, user_id)
        await self.repository.save(work_order.id)
        return task

    async def update_task_status(
        self,
        company_id: int,
        task_id: int,
        completed: bool,
        user_id: Optional[int] = None,
    ) -> WorkOrderTask:
        task = await self.repository.load_task(company_id, task_id)
        work_order = await self.repository.load(company_id, task.work_order_id, for_update=True)
        self.tasks.set_status(work_order, task, completed, user_id)
        await self.repository.save(work_order.id)
        return task

    async def add_material(
        self,
        company_id: int,
        work_order_id: int,
        item_reference: str,
        quantity: float,
        unit_cost: float,
        notes: Optional[str] = None,
        user_id: Optional[int] = None,
    ) -> WorkOrderMaterial:
        work_order = await self.repository.load(company_id, work_order_id, for_update=True)
        material = self.materials.add(work_order, item_reference, quantity, unit_cost, notes, user_id)
        await self.repository.save(work_order.id)
        return material

    # ------------------------------------------------------------------
    # Scheduling
    # ------------------------------------------------------------------

    async def run_auto_schedule(self, company_id: int) -> AutoScheduleReport:
        scheduler = AssignmentScheduler(
            self.repository, self.directory, self.state_machine, self.settings, self.clock
        )
        return await scheduler.run(company_id)

    # ------------------------------------------------------------------
    # Queries
    # ------------------------------------------------------------------

    async def get_by_id(self, company_id: int, work_order_id: int) -> WorkOrder:
        return await self.repository.load(company_id, work_order_id)

    async def get_by_number(self, company_id: int, work_order_number: str) -> WorkOrder:
        return await self.repository.load_by_number(company_id, work_order_number)

    async def get_history(self, company_id: int, work_order_id: int) -> List[WorkOrderStatusHistory]:
        await self.repository.load(company_id, work_order_id)
        return await self.repository.history(company_id, work_order_id)

    async def list_by_assignee(
        self,
        company_id: int,
        technician_id: int,
        status: Optional[WorkOrderStatus] = None,
        offset: int = 0,
        limit: Optional[int] = None,
    ) -> Page[WorkOrder]:
        conditions = [WorkOrder.assigned_to_id == technician_id]
        if status is not None:
            conditions.append(WorkOrder.status == status)
        return await self.repository.query(company_id, *conditions, offset=offset, limit=limit)

    async def list_by_school(
        self,
        company_id: int,
        school_id: int,
        offset: int = 0,
        limit: Optional[int] = None,
    ) -> Page[WorkOrder]:
        return await self.repository.query(
            company_id, WorkOrder.school_id == school_id, offset=offset, limit=limit
        )

    async def list_overdue(self, company_id: int) -> List[WorkOrder]:
        page = await self.repository.query(
            company_id,
            WorkOrder.scheduled_end < self.clock(),
            WorkOrder.status.notin_(_CLOSED_STATUSES),
            order_by=(WorkOrder.scheduled_end.asc(), WorkOrder.id.asc()),
        )
        return page.items

    async def list_high_priority_pending(self, company_id: int) -> List[WorkOrder]:
        orders = await self.repository.all(
            company_id,
            WorkOrder.status == WorkOrderStatus.PENDING,
            WorkOrder.priority.in_([p for p in WorkOrderPriority if p.is_critical]),
        )
        orders.sort(key=lambda wo: (wo.priority.rank, wo.created_at, wo.id))
        return orders

    async def search(
        self,
        company_id: int,
        query: Optional[str] = None,
        status: Optional[WorkOrderStatus] = None,
        priority: Optional[WorkOrderPriority] = None,
        assigned_to_id: Optional[int] = None,
        school_id: Optional[int] = None,
        offset: int = 0,
        limit: Optional[int] = None,
    ) -> Page[WorkOrder]:
        conditions = []
        if query:
            pattern = f"%{query}%"
            conditions.append(
                or_(
                    WorkOrder.work_order_number.ilike(pattern),
                    WorkOrder.title.ilike(pattern),
                    WorkOrder.description.ilike(pattern),
                )
            )
        if status is not None:
            conditions.append(WorkOrder.status == status)
        if priority is not None:
            conditions.append(WorkOrder.priority == priority)
        if assigned_to_id is not None:
            conditions.append(WorkOrder.assigned_to_id == assigned_to_id)
        if school_id is not None:
            conditions.append(WorkOrder.school_id == school_id)
        return await self.repository.query(company_id, *conditions, offset=offset, limit=limit)

    async def get_statistics(self, company_id: int) -> WorkOrderStatistics:
        return compute_statistics(await self.repository.all(company_id), self.clock())

    async def get_technician_performance(
        self,
        company_id: int,
        technician_id: int,
        start: Optional[datetime] = None,
        end: Optional[datetime] = None,
    ) -> TechnicianPerformance:
        conditions = [WorkOrder.assigned_to_id == technician_id]
        if start is not None:
            conditions.append(WorkOrder.created_at >= start)
        if end is not None:
            conditions.append(WorkOrder.created_at <= end)
        orders = await self.repository.all(company_id, *conditions)
        return compute_technician_performance(technician_id, orders, start, end)
