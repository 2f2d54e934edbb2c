"""
Lookups the work order engine needs from the rest of the system.

The engine only depends on the two protocols below. The SQLAlchemy-backed
implementations read the users and reports tables directly; deployments with
a separate directory or reporting service can pass their own.
"""
from dataclasses import dataclass
from datetime import date
from typing import List, Optional, Protocol

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from cafm.models.report import Report, ReportStatus, ReportPriority
from cafm.models.user import User, UserType, UserStatus


@dataclass(frozen=True)
class TechnicianInfo:
    id: int
    hourly_rate: Optional[float]
    is_technician: bool
    is_available: bool


@dataclass(frozen=True)
class ReportInfo:
    id: int
    title: str
    description: Optional[str]
    school_id: Optional[int]
    priority: Optional[ReportPriority]
    scheduled_date: Optional[date]


class TechnicianDirectory(Protocol):
    async def find_available_technicians(self, company_id: int) -> List[TechnicianInfo]:
        ...

    async def get_technician(self, company_id: int, user_id: int) -> Optional[TechnicianInfo]:
        ...


class ReportGateway(Protocol):
    async def get_report(self, company_id: int, report_id: int) -> Optional[ReportInfo]:
        ...

    async def mark_status(self, company_id: int, report_id: int, status: ReportStatus) -> None:
        ...


def _technician_info(user: User) -> TechnicianInfo:
    return TechnicianInfo(
        id=user.id,
        hourly_rate=user.hourly_rate,
        is_technician=user.is_technician,
        is_available=user.is_available_for_assignment,
    )


class SqlTechnicianDirectory:
    """Technician directory backed by the users table."""

    def __init__(self, db: AsyncSession):
        self.db = db

    async def find_available_technicians(self, company_id: int) -> List[TechnicianInfo]:
        result = await self.db.execute(
            select(User)
            .where(User.company_id == company_id)
            .where(User.user_type == UserType.TECHNICIAN)
            .where(User.status == UserStatus.ACTIVE)
            .where(User.is_available == True)  # noqa: E712
            .order_by(User.id)
        )
        return [_technician_info(user) for user in result.scalars().all()]

    async def get_technician(self, company_id: int, user_id: int) -> Optional[TechnicianInfo]:
        result = await self.db.execute(
            select(User)
            .where(User.id == user_id)
            .where(User.company_id == company_id)
            .execution_options(populate_existing=True)
        )
        user = result.scalar_one_or_none()
        return _technician_info(user) if user else None


class SqlReportGateway:
    """Report lookups backed by the reports table."""

    def __init__(self, db: AsyncSession):
        self.db = db

    async def _load(self, company_id: int, report_id: int) -> Optional[Report]:
        result = await self.db.execute(
            select(Report)
            .where(Report.id == report_id)
            .where(Report.company_id == company_id)
        )
        return result.scalar_one_or_none()

    async def get_report(self, company_id: int, report_id: int) -> Optional[ReportInfo]:
        report = await self._load(company_id, report_id)
        if report is None:
            return None
        return ReportInfo(
            id=report.id,
            title=report.title,
            description=report.description,
            school_id=report.school_id,
            priority=report.priority,
            scheduled_date=report.scheduled_date,
        )

    async def mark_status(self, company_id: int, report_id: int, status: ReportStatus) -> None:
        report = await self._load(company_id, report_id)
        if report is None:
            return
        report.status = status
        if status == ReportStatus.COMPLETED:
            report.completed_date = date.today()
