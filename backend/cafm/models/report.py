"""
Maintenance report model. Work orders can be derived from a report.
"""
from datetime import date
from typing import Optional
from sqlalchemy import String, Text, Integer, ForeignKey, Date, Enum as SQLEnum
from sqlalchemy.orm import Mapped, mapped_column
import enum

from cafm.core.database import Base
from cafm.models.base import AuditMixin, TenantMixin


class ReportStatus(str, enum.Enum):
    SUBMITTED = "SUBMITTED"
    IN_PROGRESS = "IN_PROGRESS"
    COMPLETED = "COMPLETED"
    REJECTED = "REJECTED"


class ReportPriority(str, enum.Enum):
    CRITICAL = "CRITICAL"
    URGENT = "URGENT"
    HIGH = "HIGH"
    MEDIUM = "MEDIUM"
    LOW = "LOW"


class Report(Base, AuditMixin, TenantMixin):
    """
    A problem reported at a school, reviewed before work is ordered.
    """

    __tablename__ = "reports"

    id: Mapped[int] = mapped_column(primary_key=True, autoincrement=True)
    title: Mapped[str] = mapped_column(String(255), nullable=False)
    description: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    school_id: Mapped[Optional[int]] = mapped_column(
        Integer, ForeignKey("schools.id"), nullable=True, index=True
    )
    status: Mapped[ReportStatus] = mapped_column(
        SQLEnum(ReportStatus), default=ReportStatus.SUBMITTED, nullable=False
    )
    priority: Mapped[Optional[ReportPriority]] = mapped_column(SQLEnum(ReportPriority), nullable=True)
    scheduled_date: Mapped[Optional[date]] = mapped_column(Date, nullable=True)
    completed_date: Mapped[Optional[date]] = mapped_column(Date, nullable=True)

    def __repr__(self) -> str:
        return f"<Report(id={self.id}, status='{self.status}')>"
