"""
Scheduler control flags for pausing the periodic auto-schedule job.
"""
from sqlalchemy import Boolean, Integer, ForeignKey
from sqlalchemy.orm import Mapped, mapped_column

from cafm.core.database import Base


class SchedulerControl(Base):
    """
    Per-company control to pause automatic work order assignment.
    """

    __tablename__ = "scheduler_controls"

    id: Mapped[int] = mapped_column(primary_key=True, autoincrement=True)
    company_id: Mapped[int] = mapped_column(Integer, ForeignKey("companies.id"), unique=True, nullable=False)

    pause_auto_schedule: Mapped[bool] = mapped_column(Boolean, default=False, nullable=False)

    def __repr__(self) -> str:
        return f"<SchedulerControl(company={self.company_id}, paused={self.pause_auto_schedule})>"
