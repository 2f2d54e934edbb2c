"""
Work Order schemas.
"""
from typing import Optional, List, Dict
from datetime import datetime
from pydantic import BaseModel, ConfigDict

from cafm.models.work_order import WorkOrderStatus, WorkOrderPriority


class WorkOrderTaskCreate(BaseModel):
    """Work order task creation schema."""
    description: str


class WorkOrderTaskStatusUpdate(BaseModel):
    """Work order task completion toggle."""
    completed: bool


class WorkOrderTaskResponse(BaseModel):
    """Work order task response schema."""
    id: int
    work_order_id: int
    sequence: int
    description: str
    status: str
    is_completed: bool
    completed_at: Optional[datetime] = None
    completed_by_id: Optional[int] = None
    created_at: datetime

    model_config = ConfigDict(from_attributes=True)


class WorkOrderMaterialCreate(BaseModel):
    """Material entry creation schema. Negative quantities record a correction."""
    item_reference: str
    quantity: float
    unit_cost: float
    notes: Optional[str] = None


class WorkOrderMaterialResponse(BaseModel):
    """Material entry response schema."""
    id: int
    work_order_id: int
    item_reference: str
    quantity: float
    unit_cost: float
    total_cost: float
    notes: Optional[str] = None
    created_at: datetime

    model_config = ConfigDict(from_attributes=True)


class WorkOrderStatusHistoryResponse(BaseModel):
    """Work order status history response schema."""
    id: int
    work_order_id: int
    from_status: Optional[str] = None
    to_status: str
    changed_by_id: Optional[int] = None
    reason: Optional[str] = None
    created_at: datetime

    model_config = ConfigDict(from_attributes=True)


class WorkOrderBase(BaseModel):
    """Base work order schema."""
    title: str
    description: Optional[str] = None
    category: Optional[str] = None
    priority: WorkOrderPriority = WorkOrderPriority.MEDIUM
    school_id: Optional[int] = None
    location_details: Optional[str] = None
    scheduled_start: Optional[datetime] = None
    scheduled_end: Optional[datetime] = None
    estimated_hours: Optional[float] = None


class WorkOrderCreate(WorkOrderBase):
    """Work order creation schema."""
    tasks: List[WorkOrderTaskCreate] = []


class WorkOrderFromReport(BaseModel):
    """Create a work order from an existing report."""
    report_id: int
    estimated_hours: Optional[float] = None


class AssignRequest(BaseModel):
    technician_id: int


class ProgressUpdate(BaseModel):
    completion_percentage: int
    notes: Optional[str] = None
    actual_hours: Optional[float] = None


class ReasonRequest(BaseModel):
    """Hold or cancel request."""
    reason: str


class CompleteRequest(BaseModel):
    completion_notes: Optional[str] = None
    actual_hours: Optional[float] = None
    signature_url: Optional[str] = None


class WorkOrderResponse(WorkOrderBase):
    """Work order response schema."""
    id: int
    work_order_number: str
    company_id: int
    status: WorkOrderStatus
    report_id: Optional[int] = None
    assigned_to_id: Optional[int] = None
    assigned_by_id: Optional[int] = None
    assignment_date: Optional[datetime] = None
    started_by_id: Optional[int] = None
    actual_start: Optional[datetime] = None
    actual_end: Optional[datetime] = None
    actual_hours: float
    labor_cost: float
    material_cost: float
    other_cost: float
    total_cost: float
    completion_percentage: int
    completion_notes: Optional[str] = None
    signature_url: Optional[str] = None
    verified_by_id: Optional[int] = None
    verified_at: Optional[datetime] = None
    version: int
    created_at: datetime
    updated_at: datetime

    model_config = ConfigDict(from_attributes=True)


class WorkOrderDetailResponse(WorkOrderResponse):
    """Work order with tasks and materials."""
    tasks: List[WorkOrderTaskResponse] = []
    materials: List[WorkOrderMaterialResponse] = []


class ScheduledAssignmentResponse(BaseModel):
    work_order_id: int
    work_order_number: str
    technician_id: int
    scheduled_start: Optional[datetime] = None
    scheduled_end: Optional[datetime] = None

    model_config = ConfigDict(from_attributes=True)


class ScheduleFailureResponse(BaseModel):
    work_order_id: int
    technician_id: int
    reason: str

    model_config = ConfigDict(from_attributes=True)


class AutoScheduleResponse(BaseModel):
    """Outcome of one auto-schedule run."""
    assigned: List[ScheduledAssignmentResponse] = []
    failed: List[ScheduleFailureResponse] = []

    model_config = ConfigDict(from_attributes=True)


class WorkOrderStatisticsResponse(BaseModel):
    total: int
    by_status: Dict[str, int]
    pending: int
    in_progress: int
    completed: int
    verified: int
    overdue: int
    average_completion: float
    total_cost_this_month: float
    created_last_7_days: int

    model_config = ConfigDict(from_attributes=True)


class TechnicianPerformanceResponse(BaseModel):
    technician_id: int
    start: Optional[datetime] = None
    end: Optional[datetime] = None
    total_assigned: int
    completed: int
    in_progress: int
    completion_rate: float
    average_completion_hours: float
    total_hours: float

    model_config = ConfigDict(from_attributes=True)
