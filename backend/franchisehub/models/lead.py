"""Sales leads and the notes recorded against them."""

from __future__ import annotations

import enum
from datetime import date
from decimal import Decimal
from typing import Optional

from sqlalchemy import JSON, Date, Enum as SQLEnum, ForeignKey, Integer, Numeric, String, Text
from sqlalchemy.orm import Mapped, mapped_column, relationship

from franchisehub.db.base import Base, TimestampMixin, enum_values


class LeadSource(str, enum.Enum):
    WEBSITE = "website"
    REFERRAL = "referral"
    SOCIAL_MEDIA = "social_media"
    ADVERTISEMENT = "advertisement"
    COLD_CALL = "cold_call"
    EVENT = "event"
    OTHER = "other"


class LeadStatus(str, enum.Enum):
    NEW = "new"
    CONTACTED = "contacted"
    QUALIFIED = "qualified"
    PROPOSAL_SENT = "proposal_sent"
    NEGOTIATING = "negotiating"
    CLOSED_WON = "closed_won"
    CLOSED_LOST = "closed_lost"


class Priority(str, enum.Enum):
    LOW = "low"
    MEDIUM = "medium"
    HIGH = "high"
    URGENT = "urgent"


class Lead(Base, TimestampMixin):
    """Prospective franchisee worked by the franchisor or a broker."""

    __tablename__ = "leads"

    id: Mapped[int] = mapped_column(primary_key=True)
    franchise_id: Mapped[Optional[int]] = mapped_column(
        Integer, ForeignKey("franchises.id", ondelete="CASCADE"), nullable=True, index=True
    )
    assigned_to: Mapped[Optional[int]] = mapped_column(
        Integer, ForeignKey("users.id", ondelete="SET NULL"), nullable=True, index=True
    )
    first_name: Mapped[str] = mapped_column(String(100), nullable=False)
    last_name: Mapped[str] = mapped_column(String(100), nullable=False)
    email: Mapped[str] = mapped_column(String(255), unique=True, nullable=False)
    phone: Mapped[Optional[str]] = mapped_column(String(50), nullable=True)
    company_name: Mapped[Optional[str]] = mapped_column(String(255), nullable=True)
    job_title: Mapped[Optional[str]] = mapped_column(String(100), nullable=True)
    country: Mapped[Optional[str]] = mapped_column(String(100), nullable=True)
    state: Mapped[Optional[str]] = mapped_column(String(100), nullable=True)
    city: Mapped[Optional[str]] = mapped_column(String(100), nullable=True)
    address: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    lead_source: Mapped[LeadSource] = mapped_column(
        SQLEnum(LeadSource, values_callable=enum_values, native_enum=False, length=20),
        default=LeadSource.WEBSITE,
        nullable=False,
    )
    status: Mapped[LeadStatus] = mapped_column(
        SQLEnum(LeadStatus, values_callable=enum_values, native_enum=False, length=20),
        default=LeadStatus.NEW,
        nullable=False,
        index=True,
    )
    priority: Mapped[Priority] = mapped_column(
        SQLEnum(Priority, values_callable=enum_values, native_enum=False, length=10),
        default=Priority.MEDIUM,
        nullable=False,
    )
    estimated_investment: Mapped[Optional[Decimal]] = mapped_column(Numeric(14, 2), nullable=True)
    franchise_fee_quoted: Mapped[Optional[Decimal]] = mapped_column(Numeric(12, 2), nullable=True)
    expected_decision_date: Mapped[Optional[date]] = mapped_column(Date, nullable=True)
    last_contact_date: Mapped[Optional[date]] = mapped_column(Date, nullable=True)
    next_follow_up_date: Mapped[Optional[date]] = mapped_column(Date, nullable=True)
    contact_attempts: Mapped[int] = mapped_column(Integer, default=0, nullable=False)
    notes: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    lost_reason: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    communication_log: Mapped[Optional[list]] = mapped_column(JSON, nullable=True)

    assignee: Mapped[Optional["User"]] = relationship("User", foreign_keys=[assigned_to])
    lead_notes: Mapped[list["Note"]] = relationship(
        "Note", back_populates="lead", cascade="all, delete-orphan"
    )

    @property
    def full_name(self) -> str:
        return f"{self.first_name} {self.last_name}".strip()


class Note(Base, TimestampMixin):
    """Free-form note with optional attachments on a lead."""

    __tablename__ = "notes"

    id: Mapped[int] = mapped_column(primary_key=True)
    lead_id: Mapped[int] = mapped_column(
        Integer, ForeignKey("leads.id", ondelete="CASCADE"), nullable=False, index=True
    )
    user_id: Mapped[int] = mapped_column(
        Integer, ForeignKey("users.id", ondelete="CASCADE"), nullable=False
    )
    title: Mapped[str] = mapped_column(String(255), nullable=False)
    description: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    attachments: Mapped[Optional[list]] = mapped_column(JSON, nullable=True)

    lead: Mapped["Lead"] = relationship("Lead", back_populates="lead_notes")
    author: Mapped["User"] = relationship("User")
