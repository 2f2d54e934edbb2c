"""
Persistence for work orders.

Every query is scoped to a company and skips soft-deleted rows. Mutating
loads take a row lock where the backend supports it; lost updates are
caught by the version column and surface as ConcurrentModification.
"""
import logging
from dataclasses import dataclass
from datetime import datetime
from typing import Generic, List, Optional, Sequence, TypeVar

from sqlalchemy import select, func
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import selectinload
from sqlalchemy.orm.exc import StaleDataError

from cafm.core.exceptions import ConcurrentModification, NotFound
from cafm.models.work_order import (
    WorkOrder,
    WorkOrderTask,
    WorkOrderStatus,
    WorkOrderStatusHistory,
)
from cafm.services.state_machine import Transition

logger = logging.getLogger(__name__)

T = TypeVar("T")


@dataclass
class Page(Generic[T]):
    items: List[T]
    total: int


class WorkOrderRepository:
    """Loads and saves work orders for one AsyncSession."""

    def __init__(self, db: AsyncSession):
        self.db = db

    def _base_query(self, company_id: int):
        return (
            select(WorkOrder)
            .where(WorkOrder.company_id == company_id)
            .where(WorkOrder.deleted_at.is_(None))
        )

    async def load(self, company_id: int, work_order_id: int, for_update: bool = False) -> WorkOrder:
        """Load a work order with its tasks and materials, or raise NotFound."""
        query = (
            self._base_query(company_id)
            .where(WorkOrder.id == work_order_id)
            .options(selectinload(WorkOrder.tasks), selectinload(WorkOrder.materials))
            .execution_options(populate_existing=True)
        )
        if for_update:
            query = query.with_for_update()

        result = await self.db.execute(query)
        work_order = result.scalar_one_or_none()
        if work_order is None:
            raise NotFound("Work order", work_order_id)
        return work_order

    async def load_by_number(self, company_id: int, work_order_number: str) -> WorkOrder:
        result = await self.db.execute(
            self._base_query(company_id)
            .where(WorkOrder.work_order_number == work_order_number)
            .options(selectinload(WorkOrder.tasks), selectinload(WorkOrder.materials))
        )
        work_order = result.scalar_one_or_none()
        if work_order is None:
            raise NotFound("Work order", work_order_number)
        return work_order

    async def load_task(self, company_id: int, task_id: int) -> WorkOrderTask:
        """Resolve a task to its owning work order's company."""
        result = await self.db.execute(
            select(WorkOrderTask)
            .join(WorkOrder, WorkOrderTask.work_order_id == WorkOrder.id)
            .where(WorkOrderTask.id == task_id)
            .where(WorkOrder.company_id == company_id)
            .where(WorkOrder.deleted_at.is_(None))
        )
        task = result.scalar_one_or_none()
        if task is None:
            raise NotFound("Task", task_id)
        return task

    async def number_exists(self, company_id: int, work_order_number: str) -> bool:
        # Deleted rows still hold their number
        result = await self.db.execute(
            select(func.count())
            .select_from(WorkOrder)
            .where(WorkOrder.company_id == company_id)
            .where(WorkOrder.work_order_number == work_order_number)
        )
        return result.scalar_one() > 0

    async def add(self, work_order: WorkOrder) -> WorkOrder:
        self.db.add(work_order)
        await self.db.flush()
        return work_order

    def record_transition(
        self,
        work_order: WorkOrder,
        transition: Transition,
        actor_id: Optional[int] = None,
        reason: Optional[str] = None,
    ) -> None:
        """Queue a status history row; no-op when the status did not change."""
        if not transition.changed:
            return
        self.db.add(
            WorkOrderStatusHistory(
                work_order_id=work_order.id,
                from_status=transition.from_status.value if transition.from_status else None,
                to_status=transition.to_status.value,
                changed_by_id=actor_id,
                reason=reason,
                created_by_id=actor_id,
            )
        )

    async def flush(self, work_order_id: Optional[int] = None) -> None:
        try:
            await self.db.flush()
        except StaleDataError:
            await self._conflict(work_order_id)

    async def save(self, work_order_id: Optional[int] = None) -> None:
        """Commit the unit of work; a lost update raises ConcurrentModification."""
        try:
            await self.db.commit()
        except StaleDataError:
            await self._conflict(work_order_id)

    async def _conflict(self, work_order_id: Optional[int]) -> None:
        await self.db.rollback()
        logger.warning(f"Concurrent modification detected on work order {work_order_id}")
        raise ConcurrentModification(work_order_id)

    async def rollback(self) -> None:
        await self.db.rollback()

    async def history(self, company_id: int, work_order_id: int) -> List[WorkOrderStatusHistory]:
        result = await self.db.execute(
            select(WorkOrderStatusHistory)
            .join(WorkOrder, WorkOrderStatusHistory.work_order_id == WorkOrder.id)
            .where(WorkOrder.company_id == company_id)
            .where(WorkOrderStatusHistory.work_order_id == work_order_id)
            .order_by(WorkOrderStatusHistory.id)
        )
        return list(result.scalars().all())

    async def query(
        self,
        company_id: int,
        *conditions,
        order_by: Sequence = (),
        offset: int = 0,
        limit: Optional[int] = None,
    ) -> Page[WorkOrder]:
        """Filtered, paginated listing. Conditions are plain SQLAlchemy clauses."""
        query = self._base_query(company_id)
        for condition in conditions:
            query = query.where(condition)

        count_query = select(func.count()).select_from(query.subquery())
        total = (await self.db.execute(count_query)).scalar_one()

        query = query.order_by(*(order_by or (WorkOrder.created_at.desc(), WorkOrder.id.desc())))
        query = query.offset(offset)
        if limit is not None:
            query = query.limit(limit)

        result = await self.db.execute(query)
        return Page(items=list(result.scalars().all()), total=total)

    async def all(self, company_id: int, *conditions) -> List[WorkOrder]:
        query = self._base_query(company_id)
        for condition in conditions:
            query = query.where(condition)
        result = await self.db.execute(query)
        return list(result.scalars().all())

    async def pending_ids(self, company_id: int) -> List[int]:
        """Pending orders in scheduling order: priority, then age, then id."""
        pending = await self.all(company_id, WorkOrder.status == WorkOrderStatus.PENDING)
        pending.sort(key=lambda wo: (wo.priority.rank, wo.created_at, wo.id))
        return [wo.id for wo in pending]

    async def latest_scheduled_end(self, company_id: int, technician_id: int) -> Optional[datetime]:
        result = await self.db.execute(
            select(func.max(WorkOrder.scheduled_end))
            .where(WorkOrder.company_id == company_id)
            .where(WorkOrder.deleted_at.is_(None))
            .where(WorkOrder.assigned_to_id == technician_id)
            .where(WorkOrder.status.in_([s for s in WorkOrderStatus if s.is_active]))
        )
        return result.scalar_one_or_none()
