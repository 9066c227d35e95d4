"""Franchise units and their inventory, staff, reviews and performance snapshots."""

from __future__ import annotations

import enum
from datetime import date, time
from decimal import Decimal
from typing import Optional

from sqlalchemy import (
    JSON, Boolean, Date, Enum as SQLEnum, ForeignKey, Integer, Numeric, String, Text, Time,
    UniqueConstraint,
)
from sqlalchemy.orm import Mapped, mapped_column, relationship

from franchisehub.db.base import Base, TimestampMixin, enum_values


class UnitType(str, enum.Enum):
    STORE = "store"
    KIOSK = "kiosk"
    MOBILE = "mobile"
    ONLINE = "online"
    WAREHOUSE = "warehouse"
    OFFICE = "office"


class UnitStatus(str, enum.Enum):
    PLANNING = "planning"
    CONSTRUCTION = "construction"
    TRAINING = "training"
    ACTIVE = "active"
    TEMPORARILY_CLOSED = "temporarily_closed"
    PERMANENTLY_CLOSED = "permanently_closed"


class StaffStatus(str, enum.Enum):
    WORKING = "working"
    LEAVE = "leave"
    TERMINATED = "terminated"


class EmploymentType(str, enum.Enum):
    FULL_TIME = "full_time"
    PART_TIME = "part_time"
    CONTRACT = "contract"
    TEMPORARY = "temporary"


class ReviewSource(str, enum.Enum):
    IN_PERSON = "in_person"
    PHONE = "phone"
    EMAIL = "email"
    SOCIAL_MEDIA = "social_media"
    OTHER = "other"


class ReviewStatus(str, enum.Enum):
    PUBLISHED = "published"
    DRAFT = "draft"
    ARCHIVED = "archived"


class Sentiment(str, enum.Enum):
    POSITIVE = "positive"
    NEUTRAL = "neutral"
    NEGATIVE = "negative"

    @classmethod
    def from_rating(cls, rating: int) -> "Sentiment":
        if rating >= 4:
            return cls.POSITIVE
        if rating == 3:
            return cls.NEUTRAL
        return cls.NEGATIVE


class Unit(Base, TimestampMixin):
    """A location operated under a franchise."""

    __tablename__ = "units"

    id: Mapped[int] = mapped_column(primary_key=True)
    franchise_id: Mapped[int] = mapped_column(
        Integer, ForeignKey("franchises.id", ondelete="CASCADE"), nullable=False, index=True
    )
    franchisee_id: Mapped[Optional[int]] = mapped_column(
        Integer, ForeignKey("users.id", ondelete="SET NULL"), nullable=True, index=True
    )
    unit_name: Mapped[str] = mapped_column(String(255), nullable=False)
    unit_code: Mapped[str] = mapped_column(String(50), unique=True, nullable=False)
    unit_type: Mapped[UnitType] = mapped_column(
        SQLEnum(UnitType, values_callable=enum_values, native_enum=False, length=20),
        default=UnitType.STORE,
        nullable=False,
    )
    address: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    city: Mapped[Optional[str]] = mapped_column(String(100), nullable=True, index=True)
    state_province: Mapped[Optional[str]] = mapped_column(String(100), nullable=True)
    postal_code: Mapped[Optional[str]] = mapped_column(String(20), nullable=True)
    nationality: Mapped[Optional[str]] = mapped_column(String(100), nullable=True)
    phone: Mapped[Optional[str]] = mapped_column(String(50), nullable=True)
    email: Mapped[Optional[str]] = mapped_column(String(255), nullable=True)
    size_sqft: Mapped[Optional[Decimal]] = mapped_column(Numeric(10, 2), nullable=True)
    monthly_rent: Mapped[Optional[Decimal]] = mapped_column(Numeric(12, 2), nullable=True)
    monthly_revenue: Mapped[Optional[Decimal]] = mapped_column(Numeric(12, 2), nullable=True)
    monthly_expenses: Mapped[Optional[Decimal]] = mapped_column(Numeric(12, 2), nullable=True)
    employee_count: Mapped[int] = mapped_column(Integer, default=0, nullable=False)
    opening_date: Mapped[Optional[date]] = mapped_column(Date, nullable=True)
    status: Mapped[UnitStatus] = mapped_column(
        SQLEnum(UnitStatus, values_callable=enum_values, native_enum=False, length=30),
        default=UnitStatus.PLANNING,
        nullable=False,
        index=True,
    )
    operating_hours: Mapped[Optional[dict]] = mapped_column(JSON, nullable=True)

    # Relationships
    franchise: Mapped["Franchise"] = relationship("Franchise", back_populates="units")
    franchisee: Mapped[Optional["User"]] = relationship(
        "User", back_populates="managed_units", foreign_keys=[franchisee_id]
    )
    staff: Mapped[list["Staff"]] = relationship(
        "Staff", back_populates="unit", cascade="all, delete-orphan"
    )
    reviews: Mapped[list["Review"]] = relationship(
        "Review", back_populates="unit", cascade="all, delete-orphan"
    )
    inventory: Mapped[list["UnitInventory"]] = relationship(
        "UnitInventory", back_populates="unit", cascade="all, delete-orphan"
    )

    @property
    def location(self) -> str:
        return ", ".join(p for p in (self.city, self.state_province) if p) or (self.address or "")


class UnitInventory(Base, TimestampMixin):
    """Stock of a franchise product held at a unit."""

    __tablename__ = "unit_inventory"
    __table_args__ = (UniqueConstraint("unit_id", "product_id", name="uq_unit_inventory_product"),)

    id: Mapped[int] = mapped_column(primary_key=True)
    unit_id: Mapped[int] = mapped_column(
        Integer, ForeignKey("units.id", ondelete="CASCADE"), nullable=False, index=True
    )
    product_id: Mapped[int] = mapped_column(
        Integer, ForeignKey("products.id", ondelete="CASCADE"), nullable=False
    )
    quantity: Mapped[int] = mapped_column(Integer, default=0, nullable=False)
    reorder_level: Mapped[int] = mapped_column(Integer, default=0, nullable=False)

    unit: Mapped["Unit"] = relationship("Unit", back_populates="inventory")
    product: Mapped["Product"] = relationship("Product")


class Staff(Base, TimestampMixin):
    """Employee working at a unit."""

    __tablename__ = "staff"

    id: Mapped[int] = mapped_column(primary_key=True)
    unit_id: Mapped[int] = mapped_column(
        Integer, ForeignKey("units.id", ondelete="CASCADE"), nullable=False, index=True
    )
    name: Mapped[str] = mapped_column(String(255), nullable=False)
    email: Mapped[Optional[str]] = mapped_column(String(255), nullable=True)
    phone: Mapped[Optional[str]] = mapped_column(String(50), nullable=True)
    job_title: Mapped[Optional[str]] = mapped_column(String(100), nullable=True)
    department: Mapped[Optional[str]] = mapped_column(String(100), nullable=True)
    salary: Mapped[Optional[Decimal]] = mapped_column(Numeric(12, 2), nullable=True)
    hire_date: Mapped[Optional[date]] = mapped_column(Date, nullable=True)
    shift_start: Mapped[Optional[time]] = mapped_column(Time, nullable=True)
    shift_end: Mapped[Optional[time]] = mapped_column(Time, nullable=True)
    status: Mapped[StaffStatus] = mapped_column(
        SQLEnum(StaffStatus, values_callable=enum_values, native_enum=False, length=20),
        default=StaffStatus.WORKING,
        nullable=False,
    )
    employment_type: Mapped[EmploymentType] = mapped_column(
        SQLEnum(EmploymentType, values_callable=enum_values, native_enum=False, length=20),
        default=EmploymentType.FULL_TIME,
        nullable=False,
    )

    unit: Mapped["Unit"] = relationship("Unit", back_populates="staff")


class Review(Base, TimestampMixin):
    """Customer review of a unit."""

    __tablename__ = "reviews"

    id: Mapped[int] = mapped_column(primary_key=True)
    unit_id: Mapped[int] = mapped_column(
        Integer, ForeignKey("units.id", ondelete="CASCADE"), nullable=False, index=True
    )
    franchisee_id: Mapped[Optional[int]] = mapped_column(
        Integer, ForeignKey("users.id", ondelete="SET NULL"), nullable=True
    )
    customer_name: Mapped[str] = mapped_column(String(255), nullable=False)
    customer_email: Mapped[Optional[str]] = mapped_column(String(255), nullable=True)
    rating: Mapped[int] = mapped_column(Integer, nullable=False)
    comment: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    review_source: Mapped[ReviewSource] = mapped_column(
        SQLEnum(ReviewSource, values_callable=enum_values, native_enum=False, length=20),
        default=ReviewSource.IN_PERSON,
        nullable=False,
    )
    status: Mapped[ReviewStatus] = mapped_column(
        SQLEnum(ReviewStatus, values_callable=enum_values, native_enum=False, length=20),
        default=ReviewStatus.DRAFT,
        nullable=False,
    )
    internal_notes: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    sentiment: Mapped[Sentiment] = mapped_column(
        SQLEnum(Sentiment, values_callable=enum_values, native_enum=False, length=20),
        default=Sentiment.NEUTRAL,
        nullable=False,
    )
    review_date: Mapped[date] = mapped_column(Date, nullable=False)
    verified_purchase: Mapped[bool] = mapped_column(Boolean, default=False, nullable=False)

    unit: Mapped["Unit"] = relationship("Unit", back_populates="reviews")


class UnitPerformance(Base, TimestampMixin):
    """Stored per-period performance snapshot of a unit."""

    __tablename__ = "unit_performances"
    __table_args__ = (
        UniqueConstraint("unit_id", "period_type", "period_date", name="uq_unit_performance_period"),
    )

    id: Mapped[int] = mapped_column(primary_key=True)
    franchise_id: Mapped[int] = mapped_column(
        Integer, ForeignKey("franchises.id", ondelete="CASCADE"), nullable=False, index=True
    )
    unit_id: Mapped[int] = mapped_column(
        Integer, ForeignKey("units.id", ondelete="CASCADE"), nullable=False, index=True
    )
    period_type: Mapped[str] = mapped_column(String(10), nullable=False)  # daily, monthly, yearly
    period_date: Mapped[date] = mapped_column(Date, nullable=False)
    revenue: Mapped[Decimal] = mapped_column(Numeric(14, 2), default=Decimal("0"), nullable=False)
    expenses: Mapped[Decimal] = mapped_column(Numeric(14, 2), default=Decimal("0"), nullable=False)
    royalties: Mapped[Decimal] = mapped_column(Numeric(14, 2), default=Decimal("0"), nullable=False)
    profit: Mapped[Decimal] = mapped_column(Numeric(14, 2), default=Decimal("0"), nullable=False)
    total_transactions: Mapped[int] = mapped_column(Integer, default=0, nullable=False)
    customer_rating: Mapped[Optional[Decimal]] = mapped_column(Numeric(3, 2), nullable=True)
    customer_reviews_count: Mapped[int] = mapped_column(Integer, default=0, nullable=False)
    growth_rate: Mapped[Optional[Decimal]] = mapped_column(Numeric(8, 2), nullable=True)

    unit: Mapped["Unit"] = relationship("Unit")
