"""
Work Order management endpoints with status workflow.
"""
from typing import Any, List, Optional
from datetime import datetime

from fastapi import APIRouter, status, Query

from cafm.api.deps import CurrentPrincipal, CurrentSupervisor, Pagination, PaginationParams, Service
from cafm.models.work_order import WorkOrderStatus, WorkOrderPriority
from cafm.schemas.work_order import (
    WorkOrderCreate,
    WorkOrderFromReport,
    WorkOrderResponse,
    WorkOrderDetailResponse,
    WorkOrderTaskCreate,
    WorkOrderTaskStatusUpdate,
    WorkOrderTaskResponse,
    WorkOrderMaterialCreate,
    WorkOrderMaterialResponse,
    WorkOrderStatusHistoryResponse,
    AssignRequest,
    ProgressUpdate,
    ReasonRequest,
    CompleteRequest,
    AutoScheduleResponse,
    WorkOrderStatisticsResponse,
    TechnicianPerformanceResponse,
)
from cafm.schemas.common import PaginatedResponse, MessageResponse
from cafm.services.work_order_repository import Page

router = APIRouter()


def _paginated(page: Page, pagination: PaginationParams) -> dict:
    return {
        "items": page.items,
        "total": page.total,
        "page": pagination.page,
        "page_size": pagination.page_size,
        "pages": (page.total + pagination.page_size - 1) // pagination.page_size,
    }


@router.get("", response_model=PaginatedResponse[WorkOrderResponse])
async def list_work_orders(
    service: Service,
    principal: CurrentPrincipal,
    pagination: Pagination,
    status: WorkOrderStatus = Query(None, description="Filter by status"),
    priority: WorkOrderPriority = Query(None, description="Filter by priority"),
    assigned_to_id: int = Query(None, description="Filter by assigned technician"),
    school_id: int = Query(None, description="Filter by school"),
    search: str = Query(None, description="Search by WO number, title or description"),
) -> Any:
    """
    List work orders with filtering and pagination.
    """
    page = await service.search(
        principal.company_id,
        query=search,
        status=status,
        priority=priority,
        assigned_to_id=assigned_to_id,
        school_id=school_id,
        offset=pagination.offset,
        limit=pagination.page_size,
    )
    return _paginated(page, pagination)


@router.post("", response_model=WorkOrderDetailResponse, status_code=status.HTTP_201_CREATED)
async def create_work_order(
    service: Service,
    principal: CurrentPrincipal,
    wo_data: WorkOrderCreate,
) -> Any:
    """
    Create a new work order.
    """
    wo_dict = wo_data.model_dump(exclude={"tasks"})
    return await service.create(
        principal.company_id,
        tasks=[task.description for task in wo_data.tasks],
        created_by_id=principal.user_id,
        **wo_dict,
    )


@router.post("/from-report", response_model=WorkOrderDetailResponse, status_code=status.HTTP_201_CREATED)
async def create_work_order_from_report(
    service: Service,
    principal: CurrentPrincipal,
    data: WorkOrderFromReport,
) -> Any:
    """
    Create a work order from a maintenance report.
    """
    return await service.create_from_report(
        principal.company_id,
        data.report_id,
        created_by_id=principal.user_id,
        estimated_hours=data.estimated_hours,
    )


@router.get("/statistics", response_model=WorkOrderStatisticsResponse)
async def get_work_order_statistics(service: Service, principal: CurrentPrincipal) -> Any:
    """
    Dashboard counts, overdue orders and this month's cost.
    """
    return await service.get_statistics(principal.company_id)


@router.get("/overdue", response_model=List[WorkOrderResponse])
async def list_overdue_work_orders(service: Service, principal: CurrentPrincipal) -> Any:
    return await service.list_overdue(principal.company_id)


@router.get("/high-priority", response_model=List[WorkOrderResponse])
async def list_high_priority_pending(service: Service, principal: CurrentPrincipal) -> Any:
    return await service.list_high_priority_pending(principal.company_id)


@router.post("/auto-schedule", response_model=AutoScheduleResponse)
async def auto_schedule(service: Service, principal: CurrentPrincipal) -> Any:
    """
    Assign pending work orders to available technicians round-robin.
    """
    return await service.run_auto_schedule(principal.company_id)


@router.get("/number/{work_order_number}", response_model=WorkOrderDetailResponse)
async def get_work_order_by_number(
    service: Service,
    principal: CurrentPrincipal,
    work_order_number: str,
) -> Any:
    return await service.get_by_number(principal.company_id, work_order_number)


@router.get("/assignee/{technician_id}", response_model=PaginatedResponse[WorkOrderResponse])
async def list_by_assignee(
    service: Service,
    principal: CurrentPrincipal,
    pagination: Pagination,
    technician_id: int,
    status: WorkOrderStatus = Query(None, description="Filter by status"),
) -> Any:
    page = await service.list_by_assignee(
        principal.company_id,
        technician_id,
        status=status,
        offset=pagination.offset,
        limit=pagination.page_size,
    )
    return _paginated(page, pagination)


@router.get("/school/{school_id}", response_model=PaginatedResponse[WorkOrderResponse])
async def list_by_school(
    service: Service,
    principal: CurrentPrincipal,
    pagination: Pagination,
    school_id: int,
) -> Any:
    page = await service.list_by_school(
        principal.company_id, school_id, offset=pagination.offset, limit=pagination.page_size
    )
    return _paginated(page, pagination)


@router.get("/technicians/{technician_id}/performance", response_model=TechnicianPerformanceResponse)
async def get_technician_performance(
    service: Service,
    principal: CurrentPrincipal,
    technician_id: int,
    start: Optional[datetime] = Query(None, description="Window start (created_at)"),
    end: Optional[datetime] = Query(None, description="Window end (created_at)"),
) -> Any:
    return await service.get_technician_performance(principal.company_id, technician_id, start, end)


@router.patch("/tasks/{task_id}", response_model=WorkOrderTaskResponse)
async def update_task_status(
    service: Service,
    principal: CurrentPrincipal,
    task_id: int,
    data: WorkOrderTaskStatusUpdate,
) -> Any:
    """
    Mark a task completed or pending; the order's completion is recomputed.
    """
    return await service.update_task_status(principal.company_id, task_id, data.completed, principal.user_id)


@router.get("/{wo_id}", response_model=WorkOrderDetailResponse)
async def get_work_order(service: Service, principal: CurrentPrincipal, wo_id: int) -> Any:
    """
    Get work order by ID with tasks and materials.
    """
    return await service.get_by_id(principal.company_id, wo_id)


@router.delete("/{wo_id}", response_model=MessageResponse)
async def delete_work_order(service: Service, principal: CurrentPrincipal, wo_id: int) -> Any:
    """
    Soft delete a work order.
    """
    await service.soft_delete(principal.company_id, wo_id, principal.user_id)
    return MessageResponse(message="Work order deleted")


@router.get("/{wo_id}/history", response_model=List[WorkOrderStatusHistoryResponse])
async def get_work_order_history(service: Service, principal: CurrentPrincipal, wo_id: int) -> Any:
    return await service.get_history(principal.company_id, wo_id)


@router.post("/{wo_id}/assign", response_model=WorkOrderDetailResponse)
async def assign_work_order(
    service: Service,
    principal: CurrentPrincipal,
    wo_id: int,
    data: AssignRequest,
) -> Any:
    return await service.assign(principal.company_id, wo_id, data.technician_id, principal.user_id)


@router.post("/{wo_id}/start", response_model=WorkOrderDetailResponse)
async def start_work_order(service: Service, principal: CurrentPrincipal, wo_id: int) -> Any:
    return await service.start_work(principal.company_id, wo_id, principal.user_id)


@router.post("/{wo_id}/progress", response_model=WorkOrderDetailResponse)
async def update_work_order_progress(
    service: Service,
    principal: CurrentPrincipal,
    wo_id: int,
    data: ProgressUpdate,
) -> Any:
    return await service.update_progress(
        principal.company_id,
        wo_id,
        data.completion_percentage,
        notes=data.notes,
        actual_hours=data.actual_hours,
        user_id=principal.user_id,
    )


@router.post("/{wo_id}/hold", response_model=WorkOrderDetailResponse)
async def hold_work_order(
    service: Service,
    principal: CurrentPrincipal,
    wo_id: int,
    data: ReasonRequest,
) -> Any:
    return await service.hold(principal.company_id, wo_id, data.reason, principal.user_id)


@router.post("/{wo_id}/resume", response_model=WorkOrderDetailResponse)
async def resume_work_order(service: Service, principal: CurrentPrincipal, wo_id: int) -> Any:
    return await service.resume(principal.company_id, wo_id, principal.user_id)


@router.post("/{wo_id}/complete", response_model=WorkOrderDetailResponse)
async def complete_work_order(
    service: Service,
    principal: CurrentPrincipal,
    wo_id: int,
    data: CompleteRequest,
) -> Any:
    return await service.complete(
        principal.company_id,
        wo_id,
        notes=data.completion_notes,
        actual_hours=data.actual_hours,
        signature_url=data.signature_url,
        user_id=principal.user_id,
    )


@router.post("/{wo_id}/verify", response_model=WorkOrderDetailResponse)
async def verify_work_order(service: Service, principal: CurrentSupervisor, wo_id: int) -> Any:
    """
    Verify completed work. Supervisors and admins only.
    """
    return await service.verify(principal.company_id, wo_id, principal.user_id)


@router.post("/{wo_id}/cancel", response_model=WorkOrderDetailResponse)
async def cancel_work_order(
    service: Service,
    principal: CurrentPrincipal,
    wo_id: int,
    data: ReasonRequest,
) -> Any:
    return await service.cancel(principal.company_id, wo_id, data.reason, principal.user_id)


@router.post("/{wo_id}/tasks", response_model=WorkOrderTaskResponse, status_code=status.HTTP_201_CREATED)
async def add_work_order_task(
    service: Service,
    principal: CurrentPrincipal,
    wo_id: int,
    task_data: WorkOrderTaskCreate,
) -> Any:
    """
    Add a task to a work order.
    """
    return await service.add_task(principal.company_id, wo_id, task_data.description, principal.user_id)


@router.post("/{wo_id}/materials", response_model=WorkOrderMaterialResponse, status_code=status.HTTP_201_CREATED)
async def add_work_order_material(
    service: Service,
    principal: CurrentPrincipal,
    wo_id: int,
    material_data: WorkOrderMaterialCreate,
) -> Any:
    """
    Record material used on a work order.
    """
    return await service.add_material(
        principal.company_id,
        wo_id,
        material_data.item_reference,
        material_data.quantity,
        material_data.unit_cost,
        notes=material_data.notes,
        user_id=principal.user_id,
    )
