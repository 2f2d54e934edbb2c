"""
Company (tenant) and School (work location) models.
"""
from typing import Optional, List, TYPE_CHECKING
from sqlalchemy import String, Boolean, Text, Integer, ForeignKey
from sqlalchemy.orm import Mapped, mapped_column, relationship

from cafm.core.database import Base
from cafm.models.base import TimestampMixin, TenantMixin

if TYPE_CHECKING:
    from cafm.models.user import User


class Company(Base, TimestampMixin):
    """
    Company represents a tenant in the CAFM system.
    All data is isolated by company for multi-tenancy.
    """

    __tablename__ = "companies"

    id: Mapped[int] = mapped_column(primary_key=True, autoincrement=True)
    name: Mapped[str] = mapped_column(String(255), nullable=False)
    code: Mapped[str] = mapped_column(String(50), unique=True, nullable=False, index=True)
    is_active: Mapped[bool] = mapped_column(Boolean, default=True, nullable=False)

    # Relationships
    users: Mapped[List["User"]] = relationship("User", back_populates="company")
    schools: Mapped[List["School"]] = relationship("School", back_populates="company")

    def __repr__(self) -> str:
        return f"<Company(id={self.id}, code='{self.code}')>"


class School(Base, TimestampMixin, TenantMixin):
    """
    School is the physical site where maintenance work is performed.
    """

    __tablename__ = "schools"

    id: Mapped[int] = mapped_column(primary_key=True, autoincrement=True)
    code: Mapped[str] = mapped_column(String(50), nullable=False, index=True)
    name: Mapped[str] = mapped_column(String(255), nullable=False)
    address: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    is_active: Mapped[bool] = mapped_column(Boolean, default=True, nullable=False)

    # Relationships
    company: Mapped["Company"] = relationship("Company", back_populates="schools")

    def __repr__(self) -> str:
        return f"<School(id={self.id}, code='{self.code}')>"
