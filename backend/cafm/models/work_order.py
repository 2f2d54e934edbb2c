"""
Work Order models including tasks, materials, and status history.
"""
from datetime import datetime
from typing import Optional, List
from sqlalchemy import String, Text, Integer, ForeignKey, Float, DateTime, UniqueConstraint, Enum as SQLEnum
from sqlalchemy.orm import Mapped, mapped_column, relationship
import enum

from cafm.core.database import Base
from cafm.models.base import AuditMixin, TenantMixin, SoftDeleteMixin


class WorkOrderStatus(str, enum.Enum):
    """Work order lifecycle status."""
    PENDING = "PENDING"  # Awaiting assignment
    ASSIGNED = "ASSIGNED"  # Assigned to technician, not started
    IN_PROGRESS = "IN_PROGRESS"  # Work is being performed
    ON_HOLD = "ON_HOLD"  # Paused (waiting for parts, access, etc.)
    COMPLETED = "COMPLETED"  # Finished, awaiting verification
    VERIFIED = "VERIFIED"  # Verified by supervisor
    CANCELLED = "CANCELLED"  # Cancelled

    @property
    def is_closed(self) -> bool:
        """No further task, material, or progress changes are accepted."""
        return self in (WorkOrderStatus.COMPLETED, WorkOrderStatus.VERIFIED, WorkOrderStatus.CANCELLED)

    @property
    def is_active(self) -> bool:
        return self in (WorkOrderStatus.ASSIGNED, WorkOrderStatus.IN_PROGRESS, WorkOrderStatus.ON_HOLD)


class WorkOrderPriority(str, enum.Enum):
    """Work order priority level."""
    EMERGENCY = "EMERGENCY"  # P1 - Immediate
    HIGH = "HIGH"  # P2 - Within 24 hours
    MEDIUM = "MEDIUM"  # P3 - Within 3 days
    LOW = "LOW"  # P4 - Within 7 days

    @property
    def rank(self) -> int:
        """Sort key, lowest first (EMERGENCY = 1)."""
        return _PRIORITY_RANK[self]

    @property
    def is_critical(self) -> bool:
        return self in (WorkOrderPriority.EMERGENCY, WorkOrderPriority.HIGH)


_PRIORITY_RANK = {
    WorkOrderPriority.EMERGENCY: 1,
    WorkOrderPriority.HIGH: 2,
    WorkOrderPriority.MEDIUM: 3,
    WorkOrderPriority.LOW: 4,
}

TASK_PENDING = "pending"
TASK_COMPLETED = "completed"


class WorkOrder(Base, AuditMixin, TenantMixin, SoftDeleteMixin):
    """
    Work Order represents a unit of maintenance work to be performed.
    """

    __tablename__ = "work_orders"
    __table_args__ = (
        UniqueConstraint("company_id", "work_order_number"),
    )

    id: Mapped[int] = mapped_column(primary_key=True, autoincrement=True)
    work_order_number: Mapped[str] = mapped_column(String(50), nullable=False, index=True)
    title: Mapped[str] = mapped_column(String(255), nullable=False)
    description: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    category: Mapped[Optional[str]] = mapped_column(String(50), nullable=True)

    status: Mapped[WorkOrderStatus] = mapped_column(
        SQLEnum(WorkOrderStatus), default=WorkOrderStatus.PENDING, nullable=False, index=True
    )
    priority: Mapped[WorkOrderPriority] = mapped_column(
        SQLEnum(WorkOrderPriority), default=WorkOrderPriority.MEDIUM, nullable=False
    )

    # Origin and location
    report_id: Mapped[Optional[int]] = mapped_column(
        Integer, ForeignKey("reports.id"), nullable=True, index=True
    )
    school_id: Mapped[Optional[int]] = mapped_column(
        Integer, ForeignKey("schools.id"), nullable=True, index=True
    )
    location_details: Mapped[Optional[str]] = mapped_column(Text, nullable=True)

    # Assignment
    assigned_to_id: Mapped[Optional[int]] = mapped_column(
        Integer, ForeignKey("users.id"), nullable=True, index=True
    )
    assigned_by_id: Mapped[Optional[int]] = mapped_column(Integer, ForeignKey("users.id"), nullable=True)
    assignment_date: Mapped[Optional[datetime]] = mapped_column(DateTime(), nullable=True)
    started_by_id: Mapped[Optional[int]] = mapped_column(Integer, ForeignKey("users.id"), nullable=True)

    # Scheduling
    scheduled_start: Mapped[Optional[datetime]] = mapped_column(DateTime(), nullable=True)
    scheduled_end: Mapped[Optional[datetime]] = mapped_column(DateTime(), nullable=True)

    # Actual times
    actual_start: Mapped[Optional[datetime]] = mapped_column(DateTime(), nullable=True)
    actual_end: Mapped[Optional[datetime]] = mapped_column(DateTime(), nullable=True)

    # Hours and costs
    estimated_hours: Mapped[Optional[float]] = mapped_column(Float, nullable=True)
    actual_hours: Mapped[float] = mapped_column(Float, default=0, nullable=False)
    labor_cost: Mapped[float] = mapped_column(Float, default=0, nullable=False)
    material_cost: Mapped[float] = mapped_column(Float, default=0, nullable=False)
    other_cost: Mapped[float] = mapped_column(Float, default=0, nullable=False)
    total_cost: Mapped[float] = mapped_column(Float, default=0, nullable=False)

    # Completion
    completion_percentage: Mapped[int] = mapped_column(Integer, default=0, nullable=False)
    completion_notes: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    signature_url: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    verified_by_id: Mapped[Optional[int]] = mapped_column(Integer, ForeignKey("users.id"), nullable=True)
    verified_at: Mapped[Optional[datetime]] = mapped_column(DateTime(), nullable=True)

    # Optimistic concurrency token
    version: Mapped[int] = mapped_column(Integer, nullable=False)

    # Relationships
    tasks: Mapped[List["WorkOrderTask"]] = relationship(
        "WorkOrderTask",
        back_populates="work_order",
        cascade="all, delete-orphan",
        order_by="WorkOrderTask.sequence",
    )
    materials: Mapped[List["WorkOrderMaterial"]] = relationship(
        "WorkOrderMaterial", back_populates="work_order", cascade="all, delete-orphan"
    )
    status_history: Mapped[List["WorkOrderStatusHistory"]] = relationship(
        "WorkOrderStatusHistory", back_populates="work_order", cascade="all, delete-orphan"
    )

    __mapper_args__ = {"version_id_col": version}

    def __repr__(self) -> str:
        return f"<WorkOrder(id={self.id}, number='{self.work_order_number}', status='{self.status}')>"

    def is_overdue(self, now: datetime) -> bool:
        if self.status.is_closed or self.scheduled_end is None:
            return False
        return self.scheduled_end < now

    def calculate_actual_duration(self) -> float:
        """Hours between actual start and end, rounded to 2 decimals."""
        if self.actual_start is None or self.actual_end is None:
            return 0.0
        minutes = (self.actual_end - self.actual_start).total_seconds() // 60
        return round(minutes / 60, 2)


class WorkOrderTask(Base, AuditMixin):
    """
    Checklist item within a work order.
    """

    __tablename__ = "work_order_tasks"

    id: Mapped[int] = mapped_column(primary_key=True, autoincrement=True)
    work_order_id: Mapped[int] = mapped_column(
        Integer, ForeignKey("work_orders.id", ondelete="CASCADE"), nullable=False, index=True
    )
    sequence: Mapped[int] = mapped_column(Integer, default=0, nullable=False)
    description: Mapped[str] = mapped_column(Text, nullable=False)

    # Completion
    status: Mapped[str] = mapped_column(String(20), default=TASK_PENDING, nullable=False)
    completed_at: Mapped[Optional[datetime]] = mapped_column(DateTime(), nullable=True)
    completed_by_id: Mapped[Optional[int]] = mapped_column(Integer, ForeignKey("users.id"), nullable=True)

    # Relationships
    work_order: Mapped["WorkOrder"] = relationship("WorkOrder", back_populates="tasks")

    @property
    def is_completed(self) -> bool:
        return self.status == TASK_COMPLETED

    def __repr__(self) -> str:
        return f"<WorkOrderTask(wo_id={self.work_order_id}, seq={self.sequence}, status='{self.status}')>"


class WorkOrderMaterial(Base, AuditMixin, TenantMixin):
    """
    Material consumed on a work order. Entries are never edited; a correction
    is recorded as an offsetting entry with a negative quantity.
    """

    __tablename__ = "work_order_materials"

    id: Mapped[int] = mapped_column(primary_key=True, autoincrement=True)
    work_order_id: Mapped[int] = mapped_column(
        Integer, ForeignKey("work_orders.id", ondelete="CASCADE"), nullable=False, index=True
    )
    item_reference: Mapped[str] = mapped_column(String(255), nullable=False)

    # Quantity and cost
    quantity: Mapped[float] = mapped_column(Float, nullable=False)
    unit_cost: Mapped[float] = mapped_column(Float, nullable=False)
    total_cost: Mapped[float] = mapped_column(Float, nullable=False)
    notes: Mapped[Optional[str]] = mapped_column(Text, nullable=True)

    # Relationships
    work_order: Mapped["WorkOrder"] = relationship("WorkOrder", back_populates="materials")

    def __repr__(self) -> str:
        return f"<WorkOrderMaterial(wo_id={self.work_order_id}, item='{self.item_reference}')>"


class WorkOrderStatusHistory(Base, AuditMixin):
    """
    Audit trail of work order status changes.
    """

    __tablename__ = "work_order_status_history"

    id: Mapped[int] = mapped_column(primary_key=True, autoincrement=True)
    work_order_id: Mapped[int] = mapped_column(
        Integer, ForeignKey("work_orders.id", ondelete="CASCADE"), nullable=False, index=True
    )
    from_status: Mapped[Optional[str]] = mapped_column(String(50), nullable=True)
    to_status: Mapped[str] = mapped_column(String(50), nullable=False)
    # NULL when the change was made by the auto-scheduler
    changed_by_id: Mapped[Optional[int]] = mapped_column(Integer, ForeignKey("users.id"), nullable=True)
    reason: Mapped[Optional[str]] = mapped_column(Text, nullable=True)

    # Relationships
    work_order: Mapped["WorkOrder"] = relationship("WorkOrder", back_populates="status_history")

    def __repr__(self) -> str:
        return f"<WorkOrderStatusHistory(wo_id={self.work_order_id}, {self.from_status}->{self.to_status})>"
