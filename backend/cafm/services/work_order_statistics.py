"""
Dashboard statistics and technician performance figures.
"""
from dataclasses import dataclass, field
from datetime import datetime, timedelta
from typing import Dict, Iterable, Optional

from cafm.models.work_order import WorkOrder, WorkOrderStatus


@dataclass
class WorkOrderStatistics:
    total: int = 0
    by_status: Dict[str, int] = field(default_factory=dict)
    pending: int = 0
    in_progress: int = 0
    completed: int = 0
    verified: int = 0
    overdue: int = 0
    average_completion: float = 0.0
    total_cost_this_month: float = 0.0
    created_last_7_days: int = 0


@dataclass
class TechnicianPerformance:
    technician_id: int
    start: Optional[datetime]
    end: Optional[datetime]
    total_assigned: int = 0
    completed: int = 0
    in_progress: int = 0
    completion_rate: float = 0.0
    average_completion_hours: float = 0.0
    total_hours: float = 0.0


_DONE = (WorkOrderStatus.COMPLETED, WorkOrderStatus.VERIFIED)
_WITH_PROGRESS = (WorkOrderStatus.IN_PROGRESS, WorkOrderStatus.COMPLETED, WorkOrderStatus.VERIFIED)


def compute_statistics(work_orders: Iterable[WorkOrder], now: datetime) -> WorkOrderStatistics:
    stats = WorkOrderStatistics(by_status={s.value: 0 for s in WorkOrderStatus})
    month_start = now.replace(day=1, hour=0, minute=0, second=0, microsecond=0)
    week_ago = now - timedelta(days=7)
    progress_values = []

    for wo in work_orders:
        stats.total += 1
        stats.by_status[wo.status.value] += 1
        if wo.is_overdue(now):
            stats.overdue += 1
        if wo.status in _WITH_PROGRESS:
            progress_values.append(wo.completion_percentage)
        if wo.status in _DONE and wo.actual_end is not None and wo.actual_end >= month_start:
            stats.total_cost_this_month += wo.total_cost or 0
        if wo.created_at is not None and wo.created_at >= week_ago:
            stats.created_last_7_days += 1

    stats.pending = stats.by_status[WorkOrderStatus.PENDING.value]
    stats.in_progress = stats.by_status[WorkOrderStatus.IN_PROGRESS.value]
    stats.completed = stats.by_status[WorkOrderStatus.COMPLETED.value]
    stats.verified = stats.by_status[WorkOrderStatus.VERIFIED.value]
    if progress_values:
        stats.average_completion = round(sum(progress_values) / len(progress_values), 2)
    stats.total_cost_this_month = round(stats.total_cost_this_month, 2)
    return stats


def compute_technician_performance(
    technician_id: int,
    work_orders: Iterable[WorkOrder],
    start: Optional[datetime] = None,
    end: Optional[datetime] = None,
) -> TechnicianPerformance:
    """
    Figures over the technician's orders; callers pass orders already filtered
    by window. Average hours cover finished orders only, total hours cover all.
    """
    perf = TechnicianPerformance(technician_id=technician_id, start=start, end=end)
    completed_hours = []
    worked = 0.0

    for wo in work_orders:
        perf.total_assigned += 1
        worked += wo.actual_hours or 0
        if wo.status in _DONE:
            perf.completed += 1
            completed_hours.append(wo.actual_hours or 0)
        elif wo.status == WorkOrderStatus.IN_PROGRESS:
            perf.in_progress += 1

    if perf.total_assigned:
        perf.completion_rate = round(perf.completed * 100 / perf.total_assigned, 2)
    if completed_hours:
        perf.average_completion_hours = round(sum(completed_hours) / len(completed_hours), 2)
    perf.total_hours = round(worked, 2)
    return perf
