"""
User model backing the technician directory.
"""
from typing import Optional, TYPE_CHECKING
from sqlalchemy import String, Boolean, Enum as SQLEnum
from sqlalchemy.orm import Mapped, mapped_column, relationship
import enum

from cafm.core.database import Base
from cafm.models.base import TimestampMixin, TenantMixin

if TYPE_CHECKING:
    from cafm.models.company import Company


class UserType(str, enum.Enum):
    """Role of a user within a company."""
    ADMIN = "ADMIN"
    SUPERVISOR = "SUPERVISOR"
    TECHNICIAN = "TECHNICIAN"
    VIEWER = "VIEWER"


class UserStatus(str, enum.Enum):
    """Account status."""
    ACTIVE = "ACTIVE"
    INACTIVE = "INACTIVE"
    SUSPENDED = "SUSPENDED"


class User(Base, TimestampMixin, TenantMixin):
    """
    User represents a person who works with the CAFM system.
    Technicians are the users work orders get assigned to.
    """

    __tablename__ = "users"

    id: Mapped[int] = mapped_column(primary_key=True, autoincrement=True)
    email: Mapped[str] = mapped_column(String(255), unique=True, nullable=False, index=True)
    first_name: Mapped[str] = mapped_column(String(100), nullable=False)
    last_name: Mapped[str] = mapped_column(String(100), nullable=False)

    user_type: Mapped[UserType] = mapped_column(
        SQLEnum(UserType), default=UserType.TECHNICIAN, nullable=False, index=True
    )
    status: Mapped[UserStatus] = mapped_column(
        SQLEnum(UserStatus), default=UserStatus.ACTIVE, nullable=False
    )
    is_available: Mapped[bool] = mapped_column(Boolean, default=True, nullable=False)

    # Labor rate for cost tracking
    hourly_rate: Mapped[Optional[float]] = mapped_column(nullable=True)

    # Relationships
    company: Mapped["Company"] = relationship("Company", back_populates="users")

    @property
    def is_technician(self) -> bool:
        return self.user_type == UserType.TECHNICIAN

    @property
    def is_available_for_assignment(self) -> bool:
        return self.status == UserStatus.ACTIVE and self.is_available

    def __repr__(self) -> str:
        return f"<User(id={self.id}, email='{self.email}', type='{self.user_type}')>"
