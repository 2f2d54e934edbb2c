"""
Database models for the CAFM work order engine.
"""
from cafm.models.company import Company, School
from cafm.models.user import User, UserType, UserStatus
from cafm.models.report import Report, ReportStatus, ReportPriority
from cafm.models.work_order import (
    WorkOrder,
    WorkOrderTask,
    WorkOrderMaterial,
    WorkOrderStatusHistory,
    WorkOrderStatus,
    WorkOrderPriority,
)
from cafm.models.scheduler_control import SchedulerControl

__all__ = [
    "Company",
    "School",
    "User",
    "UserType",
    "UserStatus",
    "Report",
    "ReportStatus",
    "ReportPriority",
    "WorkOrder",
    "WorkOrderTask",
    "WorkOrderMaterial",
    "WorkOrderStatusHistory",
    "WorkOrderStatus",
    "WorkOrderPriority",
    "SchedulerControl",
]
