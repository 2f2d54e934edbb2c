"""
API dependencies for the calling principal, pagination and services.

Authentication happens upstream; the gateway forwards the authenticated
tenant, user and role as headers.
"""
from dataclasses import dataclass
from typing import Annotated
from fastapi import Depends, HTTPException, status, Header, Query
from sqlalchemy.ext.asyncio import AsyncSession

from cafm.core.database import get_db
from cafm.core.config import get_settings
from cafm.models.user import UserType
from cafm.services.work_order_service import WorkOrderService

settings = get_settings()


@dataclass(frozen=True)
class Principal:
    company_id: int
    user_id: int
    role: UserType

    @property
    def can_verify(self) -> bool:
        return self.role in (UserType.SUPERVISOR, UserType.ADMIN)


async def get_principal(
    company_id: int = Header(..., alias="X-Tenant-Id"),
    user_id: int = Header(..., alias="X-User-Id"),
    role: str = Header(UserType.VIEWER.value, alias="X-User-Role"),
) -> Principal:
    """Build the principal from the forwarded identity headers."""
    try:
        user_type = UserType(role.upper())
    except ValueError:
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail=f"Unknown role '{role}'",
        )
    return Principal(company_id=company_id, user_id=user_id, role=user_type)


async def get_supervisor(
    principal: Principal = Depends(get_principal),
) -> Principal:
    """Ensure the caller may verify work."""
    if not principal.can_verify:
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail="Supervisor or admin role required",
        )
    return principal


async def get_work_order_service(db: AsyncSession = Depends(get_db)) -> WorkOrderService:
    return WorkOrderService(db)


# Common query parameters
class PaginationParams:
    """Common pagination parameters."""

    def __init__(
        self,
        page: int = Query(1, ge=1, description="Page number"),
        page_size: int = Query(
            settings.DEFAULT_PAGE_SIZE, ge=1, le=settings.MAX_PAGE_SIZE, description="Items per page"
        ),
    ):
        self.page = page
        self.page_size = page_size
        self.offset = (page - 1) * page_size


# Type aliases for cleaner signatures
CurrentPrincipal = Annotated[Principal, Depends(get_principal)]
CurrentSupervisor = Annotated[Principal, Depends(get_supervisor)]
Service = Annotated[WorkOrderService, Depends(get_work_order_service)]
Pagination = Annotated[PaginationParams, Depends()]
