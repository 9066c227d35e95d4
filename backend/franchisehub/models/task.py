"""Task model."""

from __future__ import annotations

import enum
from datetime import date, datetime
from decimal import Decimal
from typing import Optional

from sqlalchemy import (
    JSON, Boolean, Date, DateTime, Enum as SQLEnum, ForeignKey, Integer, Numeric, String, Text,
)
from sqlalchemy.orm import Mapped, mapped_column, relationship

from franchisehub.core.periods import RecurrenceType
from franchisehub.db.base import Base, TimestampMixin, enum_values
from franchisehub.models.lead import Priority


class TaskType(str, enum.Enum):
    ONBOARDING = "onboarding"
    TRAINING = "training"
    COMPLIANCE = "compliance"
    MAINTENANCE = "maintenance"
    MARKETING = "marketing"
    OPERATIONS = "operations"
    FINANCE = "finance"
    SUPPORT = "support"
    OTHER = "other"
    LEAD_MANAGEMENT = "lead_management"
    SALES = "sales"
    MARKET_RESEARCH = "market_research"


class TaskStatus(str, enum.Enum):
    PENDING = "pending"
    IN_PROGRESS = "in_progress"
    COMPLETED = "completed"
    CANCELLED = "cancelled"
    ON_HOLD = "on_hold"


class Task(Base, TimestampMixin):
    """Work item assigned within a franchise, optionally tied to a unit or lead."""

    __tablename__ = "tasks"

    id: Mapped[int] = mapped_column(primary_key=True)
    title: Mapped[str] = mapped_column(String(255), nullable=False)
    description: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    type: Mapped[TaskType] = mapped_column(
        SQLEnum(TaskType, values_callable=enum_values, native_enum=False, length=30),
        default=TaskType.OTHER,
        nullable=False,
    )
    priority: Mapped[Priority] = mapped_column(
        SQLEnum(Priority, values_callable=enum_values, native_enum=False, length=10),
        default=Priority.MEDIUM,
        nullable=False,
    )
    status: Mapped[TaskStatus] = mapped_column(
        SQLEnum(TaskStatus, values_callable=enum_values, native_enum=False, length=20),
        default=TaskStatus.PENDING,
        nullable=False,
        index=True,
    )
    assigned_to: Mapped[Optional[int]] = mapped_column(
        Integer, ForeignKey("users.id", ondelete="SET NULL"), nullable=True, index=True
    )
    created_by: Mapped[Optional[int]] = mapped_column(
        Integer, ForeignKey("users.id", ondelete="SET NULL"), nullable=True
    )
    franchise_id: Mapped[Optional[int]] = mapped_column(
        Integer, ForeignKey("franchises.id", ondelete="CASCADE"), nullable=True, index=True
    )
    unit_id: Mapped[Optional[int]] = mapped_column(
        Integer, ForeignKey("units.id", ondelete="CASCADE"), nullable=True, index=True
    )
    lead_id: Mapped[Optional[int]] = mapped_column(
        Integer, ForeignKey("leads.id", ondelete="SET NULL"), nullable=True
    )
    due_date: Mapped[Optional[date]] = mapped_column(Date, nullable=True)
    started_at: Mapped[Optional[datetime]] = mapped_column(DateTime(timezone=True), nullable=True)
    completed_at: Mapped[Optional[datetime]] = mapped_column(DateTime(timezone=True), nullable=True)
    estimated_hours: Mapped[Optional[Decimal]] = mapped_column(Numeric(8, 2), nullable=True)
    actual_hours: Mapped[Optional[Decimal]] = mapped_column(Numeric(8, 2), nullable=True)
    # [{"item": "...", "completed": bool}]
    checklist: Mapped[Optional[list]] = mapped_column(JSON, nullable=True)
    attachments: Mapped[Optional[list]] = mapped_column(JSON, nullable=True)
    completion_notes: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    is_recurring: Mapped[bool] = mapped_column(Boolean, default=False, nullable=False)
    recurrence_type: Mapped[Optional[RecurrenceType]] = mapped_column(
        SQLEnum(RecurrenceType, values_callable=enum_values, native_enum=False, length=20),
        nullable=True,
    )
    recurrence_interval: Mapped[int] = mapped_column(Integer, default=1, nullable=False)
    recurrence_end_date: Mapped[Optional[date]] = mapped_column(Date, nullable=True)
    parent_task_id: Mapped[Optional[int]] = mapped_column(
        Integer, ForeignKey("tasks.id", ondelete="SET NULL"), nullable=True
    )

    assignee: Mapped[Optional["User"]] = relationship("User", foreign_keys=[assigned_to])
    creator: Mapped[Optional["User"]] = relationship("User", foreign_keys=[created_by])
    unit: Mapped[Optional["Unit"]] = relationship("Unit")

    @property
    def is_overdue(self) -> bool:
        if self.due_date is None:
            return False
        if self.status in (TaskStatus.COMPLETED, TaskStatus.CANCELLED):
            return False
        return self.due_date < date.today()

    @property
    def progress(self) -> float:
        """Share of completed checklist items, in percent."""
        if self.status == TaskStatus.COMPLETED:
            return 100.0
        items = self.checklist or []
        if not items:
            return 0.0
        done = sum(1 for item in items if isinstance(item, dict) and item.get("completed"))
        return round(done / len(items) * 100, 2)
