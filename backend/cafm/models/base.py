"""
Base model with common fields and mixins.
"""
from datetime import datetime
from typing import Optional
from sqlalchemy import DateTime, Integer, ForeignKey, func
from sqlalchemy.orm import Mapped, mapped_column, declared_attr

from cafm.core.clock import utcnow


class TimestampMixin:
    """Mixin for created_at and updated_at timestamps."""

    # Python-side defaults keep the values loaded on the instance after flush,
    # so async callers never trigger an implicit refresh.
    created_at: Mapped[datetime] = mapped_column(
        DateTime(),
        default=utcnow,
        server_default=func.now(),
        nullable=False,
    )
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(),
        default=utcnow,
        onupdate=utcnow,
        server_default=func.now(),
        nullable=False,
    )


class AuditMixin(TimestampMixin):
    """Mixin for audit fields including created_by and updated_by."""

    @declared_attr
    def created_by_id(cls) -> Mapped[Optional[int]]:
        return mapped_column(Integer, ForeignKey("users.id"), nullable=True)

    @declared_attr
    def updated_by_id(cls) -> Mapped[Optional[int]]:
        return mapped_column(Integer, ForeignKey("users.id"), nullable=True)


class TenantMixin:
    """Mixin for multi-tenancy support via company_id."""

    @declared_attr
    def company_id(cls) -> Mapped[int]:
        return mapped_column(Integer, ForeignKey("companies.id"), nullable=False, index=True)


class SoftDeleteMixin:
    """Rows with deleted_at set are hidden from every query but kept for history."""

    deleted_at: Mapped[Optional[datetime]] = mapped_column(DateTime(), nullable=True)
