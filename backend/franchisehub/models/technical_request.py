"""Technical support ticket model."""

from __future__ import annotations

import enum
from datetime import datetime
from decimal import Decimal
from typing import Optional

from sqlalchemy import (
    JSON, Boolean, DateTime, Enum as SQLEnum, ForeignKey, Integer, Numeric, String, Text,
)
from sqlalchemy.orm import Mapped, mapped_column, relationship

from franchisehub.db.base import Base, TimestampMixin, enum_values
from franchisehub.models.lead import Priority


class RequestCategory(str, enum.Enum):
    HARDWARE = "hardware"
    SOFTWARE = "software"
    NETWORK = "network"
    POS_SYSTEM = "pos_system"
    WEBSITE = "website"
    MOBILE_APP = "mobile_app"
    TRAINING = "training"
    OTHER = "other"


class RequestStatus(str, enum.Enum):
    OPEN = "open"
    IN_PROGRESS = "in_progress"
    PENDING_INFO = "pending_info"
    RESOLVED = "resolved"
    CLOSED = "closed"
    CANCELLED = "cancelled"


class TechnicalRequest(Base, TimestampMixin):
    """Support ticket raised by any user of a franchise."""

    __tablename__ = "technical_requests"

    id: Mapped[int] = mapped_column(primary_key=True)
    ticket_number: Mapped[str] = mapped_column(String(20), unique=True, nullable=False)
    title: Mapped[str] = mapped_column(String(255), nullable=False)
    description: Mapped[str] = mapped_column(Text, nullable=False)
    category: Mapped[RequestCategory] = mapped_column(
        SQLEnum(RequestCategory, values_callable=enum_values, native_enum=False, length=20),
        default=RequestCategory.OTHER,
        nullable=False,
    )
    priority: Mapped[Priority] = mapped_column(
        SQLEnum(Priority, values_callable=enum_values, native_enum=False, length=10),
        default=Priority.MEDIUM,
        nullable=False,
    )
    status: Mapped[RequestStatus] = mapped_column(
        SQLEnum(RequestStatus, values_callable=enum_values, native_enum=False, length=20),
        default=RequestStatus.OPEN,
        nullable=False,
        index=True,
    )
    requester_id: Mapped[int] = mapped_column(
        Integer, ForeignKey("users.id", ondelete="CASCADE"), nullable=False, index=True
    )
    assigned_to: Mapped[Optional[int]] = mapped_column(
        Integer, ForeignKey("users.id", ondelete="SET NULL"), nullable=True, index=True
    )
    franchise_id: Mapped[Optional[int]] = mapped_column(
        Integer, ForeignKey("franchises.id", ondelete="CASCADE"), nullable=True, index=True
    )
    unit_id: Mapped[Optional[int]] = mapped_column(
        Integer, ForeignKey("units.id", ondelete="SET NULL"), nullable=True
    )
    affected_system: Mapped[Optional[str]] = mapped_column(String(255), nullable=True)
    steps_to_reproduce: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    expected_behavior: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    actual_behavior: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    browser_version: Mapped[Optional[str]] = mapped_column(String(100), nullable=True)
    operating_system: Mapped[Optional[str]] = mapped_column(String(100), nullable=True)
    device_type: Mapped[Optional[str]] = mapped_column(String(100), nullable=True)
    attachments: Mapped[Optional[list]] = mapped_column(JSON, nullable=True)
    internal_notes: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    resolution_notes: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    first_response_at: Mapped[Optional[datetime]] = mapped_column(DateTime(timezone=True), nullable=True)
    resolved_at: Mapped[Optional[datetime]] = mapped_column(DateTime(timezone=True), nullable=True)
    closed_at: Mapped[Optional[datetime]] = mapped_column(DateTime(timezone=True), nullable=True)
    response_time_hours: Mapped[Optional[Decimal]] = mapped_column(Numeric(10, 2), nullable=True)
    resolution_time_hours: Mapped[Optional[Decimal]] = mapped_column(Numeric(10, 2), nullable=True)
    satisfaction_rating: Mapped[Optional[int]] = mapped_column(Integer, nullable=True)
    satisfaction_feedback: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    is_escalated: Mapped[bool] = mapped_column(Boolean, default=False, nullable=False)
    escalated_at: Mapped[Optional[datetime]] = mapped_column(DateTime(timezone=True), nullable=True)

    requester: Mapped["User"] = relationship("User", foreign_keys=[requester_id])
    assignee: Mapped[Optional["User"]] = relationship("User", foreign_keys=[assigned_to])
