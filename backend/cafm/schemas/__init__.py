"""
Pydantic schemas for API request/response validation.
"""
from cafm.schemas.common import PaginatedResponse, MessageResponse, ErrorResponse
from cafm.schemas.work_order import (
    WorkOrderCreate, WorkOrderFromReport, WorkOrderResponse, WorkOrderDetailResponse,
    WorkOrderTaskCreate, WorkOrderTaskStatusUpdate, WorkOrderTaskResponse,
    WorkOrderMaterialCreate, WorkOrderMaterialResponse,
    WorkOrderStatusHistoryResponse,
    AssignRequest, ProgressUpdate, ReasonRequest, CompleteRequest,
    AutoScheduleResponse, WorkOrderStatisticsResponse, TechnicianPerformanceResponse,
)

__all__ = [
    "PaginatedResponse",
    "MessageResponse",
    "ErrorResponse",
    "WorkOrderCreate",
    "WorkOrderFromReport",
    "WorkOrderResponse",
    "WorkOrderDetailResponse",
    "WorkOrderTaskCreate",
    "WorkOrderTaskStatusUpdate",
    "WorkOrderTaskResponse",
    "WorkOrderMaterialCreate",
    "WorkOrderMaterialResponse",
    "WorkOrderStatusHistoryResponse",
    "AssignRequest",
    "ProgressUpdate",
    "ReasonRequest",
    "CompleteRequest",
    "AutoScheduleResponse",
    "WorkOrderStatisticsResponse",
    "TechnicianPerformanceResponse",
]
