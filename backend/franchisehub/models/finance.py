"""Ledger models: transactions, revenues and royalties."""

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


class TransactionType(str, enum.Enum):
    REVENUE = "revenue"
    EXPENSE = "expense"
    ROYALTY = "royalty"
    MARKETING_FEE = "marketing_fee"
    FRANCHISE_FEE = "franchise_fee"
    REFUND = "refund"
    ADJUSTMENT = "adjustment"


class TransactionCategory(str, enum.Enum):
    SALES = "sales"
    COST_OF_GOODS = "cost_of_goods"
    LABOR = "labor"
    RENT = "rent"
    UTILITIES = "utilities"
    MARKETING = "marketing"
    EQUIPMENT = "equipment"
    SUPPLIES = "supplies"
    INSURANCE = "insurance"
    TAXES = "taxes"
    OTHER = "other"


class TransactionStatus(str, enum.Enum):
    PENDING = "pending"
    COMPLETED = "completed"
    CANCELLED = "cancelled"
    REFUNDED = "refunded"


class PaymentMethod(str, enum.Enum):
    CASH = "cash"
    CREDIT_CARD = "credit_card"
    DEBIT_CARD = "debit_card"
    BANK_TRANSFER = "bank_transfer"
    CHECK = "check"
    DIGITAL_WALLET = "digital_wallet"
    OTHER = "other"


class RevenueType(str, enum.Enum):
    SALES = "sales"
    FRANCHISE_FEE = "franchise_fee"
    ROYALTY = "royalty"
    MARKETING_FEE = "marketing_fee"
    OTHER = "other"


class RevenueCategory(str, enum.Enum):
    PRODUCT_SALES = "product_sales"
    SERVICE_SALES = "service_sales"
    INITIAL_FEE = "initial_fee"
    ONGOING_FEE = "ongoing_fee"
    COMMISSION = "commission"
    OTHER = "other"


class PaymentStatus(str, enum.Enum):
    PENDING = "pending"
    COMPLETED = "completed"
    FAILED = "failed"
    REFUNDED = "refunded"


class RevenueStatus(str, enum.Enum):
    PENDING = "pending"
    VERIFIED = "verified"
    DISPUTED = "disputed"


class RoyaltyType(str, enum.Enum):
    ROYALTY = "royalty"
    MARKETING_FEE = "marketing_fee"
    TECHNOLOGY_FEE = "technology_fee"
    OTHER = "other"


class RoyaltyStatus(str, enum.Enum):
    DRAFT = "draft"
    PENDING = "pending"
    PAID = "paid"
    OVERDUE = "overdue"
    DISPUTED = "disputed"
    CANCELLED = "cancelled"


class Transaction(Base, TimestampMixin):
    """Money movement recorded against a franchise or unit."""

    __tablename__ = "transactions"

    id: Mapped[int] = mapped_column(primary_key=True)
    transaction_number: Mapped[str] = mapped_column(String(20), unique=True, nullable=False)
    type: Mapped[TransactionType] = mapped_column(
        SQLEnum(TransactionType, values_callable=enum_values, native_enum=False, length=20),
        nullable=False,
        index=True,
    )
    category: Mapped[TransactionCategory] = mapped_column(
        SQLEnum(TransactionCategory, values_callable=enum_values, native_enum=False, length=20),
        default=TransactionCategory.OTHER,
        nullable=False,
    )
    amount: Mapped[Decimal] = mapped_column(Numeric(12, 2), nullable=False)
    currency: Mapped[str] = mapped_column(String(3), default="SAR", nullable=False)
    description: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    franchise_id: Mapped[Optional[int]] = mapped_column(
        Integer, ForeignKey("franchises.id", ondelete="CASCADE"), nullable=True, index=True
    )
    unit_id: Mapped[Optional[int]] = mapped_column(
        Integer, ForeignKey("units.id", ondelete="SET NULL"), nullable=True, index=True
    )
    user_id: Mapped[Optional[int]] = mapped_column(
        Integer, ForeignKey("users.id", ondelete="SET NULL"), nullable=True
    )
    transaction_date: Mapped[date] = mapped_column(Date, nullable=False, index=True)
    status: Mapped[TransactionStatus] = mapped_column(
        SQLEnum(TransactionStatus, values_callable=enum_values, native_enum=False, length=20),
        default=TransactionStatus.PENDING,
        nullable=False,
        index=True,
    )
    payment_method: Mapped[Optional[PaymentMethod]] = mapped_column(
        SQLEnum(PaymentMethod, values_callable=enum_values, native_enum=False, length=20),
        nullable=True,
    )
    reference_number: Mapped[Optional[str]] = mapped_column(String(100), nullable=True)
    vendor_customer: Mapped[Optional[str]] = mapped_column(String(255), nullable=True)
    extra_metadata: Mapped[Optional[dict]] = mapped_column("metadata", JSON, nullable=True)
    attachments: Mapped[Optional[list]] = mapped_column(JSON, nullable=True)
    notes: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    is_recurring: Mapped[bool] = mapped_column(Boolean, default=False, nullable=False)
    recurrence_type: Mapped[Optional[RecurrenceType]] = mapped_column(
        SQLEnum(RecurrenceType, values_callable=enum_values, native_enum=False, length=20),
        nullable=True,
    )
    recurrence_interval: Mapped[int] = mapped_column(Integer, default=1, nullable=False)
    recurrence_end_date: Mapped[Optional[date]] = mapped_column(Date, nullable=True)
    parent_transaction_id: Mapped[Optional[int]] = mapped_column(
        Integer, ForeignKey("transactions.id", ondelete="SET NULL"), nullable=True
    )

    unit: Mapped[Optional["Unit"]] = relationship("Unit")


class Revenue(Base, TimestampMixin):
    """Income line recorded by a unit or franchise."""

    __tablename__ = "revenues"

    id: Mapped[int] = mapped_column(primary_key=True)
    revenue_number: Mapped[str] = mapped_column(String(20), unique=True, nullable=False)
    franchise_id: Mapped[Optional[int]] = mapped_column(
        Integer, ForeignKey("franchises.id", ondelete="CASCADE"), nullable=True, index=True
    )
    unit_id: Mapped[Optional[int]] = mapped_column(
        Integer, ForeignKey("units.id", ondelete="SET NULL"), nullable=True, index=True
    )
    user_id: Mapped[Optional[int]] = mapped_column(
        Integer, ForeignKey("users.id", ondelete="SET NULL"), nullable=True
    )
    type: Mapped[RevenueType] = mapped_column(
        SQLEnum(RevenueType, values_callable=enum_values, native_enum=False, length=20),
        default=RevenueType.SALES,
        nullable=False,
        index=True,
    )
    category: Mapped[RevenueCategory] = mapped_column(
        SQLEnum(RevenueCategory, values_callable=enum_values, native_enum=False, length=20),
        default=RevenueCategory.PRODUCT_SALES,
        nullable=False,
    )
    amount: Mapped[Decimal] = mapped_column(Numeric(12, 2), nullable=False)
    currency: Mapped[str] = mapped_column(String(3), default="SAR", nullable=False)
    description: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    revenue_date: Mapped[date] = mapped_column(Date, nullable=False, index=True)
    period_year: Mapped[int] = mapped_column(Integer, nullable=False)
    period_month: Mapped[int] = mapped_column(Integer, nullable=False)
    source: Mapped[Optional[str]] = mapped_column(String(100), nullable=True)
    customer_name: Mapped[Optional[str]] = mapped_column(String(255), nullable=True)
    customer_email: Mapped[Optional[str]] = mapped_column(String(255), nullable=True)
    payment_method: Mapped[Optional[PaymentMethod]] = mapped_column(
        SQLEnum(PaymentMethod, values_callable=enum_values, native_enum=False, length=20),
        nullable=True,
    )
    payment_status: Mapped[PaymentStatus] = mapped_column(
        SQLEnum(PaymentStatus, values_callable=enum_values, native_enum=False, length=20),
        default=PaymentStatus.COMPLETED,
        nullable=False,
    )
    discount_amount: Mapped[Decimal] = mapped_column(Numeric(12, 2), default=Decimal("0"), nullable=False)
    tax_amount: Mapped[Decimal] = mapped_column(Numeric(12, 2), default=Decimal("0"), nullable=False)
    net_amount: Mapped[Decimal] = mapped_column(Numeric(12, 2), nullable=False)
    # [{"product_name", "quantity", "unit_price", "total"}]
    line_items: Mapped[Optional[list]] = mapped_column(JSON, nullable=True)
    attachments: Mapped[Optional[list]] = mapped_column(JSON, nullable=True)
    notes: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    status: Mapped[RevenueStatus] = mapped_column(
        SQLEnum(RevenueStatus, values_callable=enum_values, native_enum=False, length=20),
        default=RevenueStatus.VERIFIED,
        nullable=False,
        index=True,
    )
    verified_by: Mapped[Optional[int]] = mapped_column(
        Integer, ForeignKey("users.id", ondelete="SET NULL"), nullable=True
    )
    verified_at: Mapped[Optional[datetime]] = mapped_column(DateTime(timezone=True), nullable=True)
    is_recurring: Mapped[bool] = mapped_column(Boolean, default=False, nullable=False)
    recurrence_type: Mapped[Optional[RecurrenceType]] = mapped_column(
        SQLEnum(RecurrenceType, values_callable=enum_values, native_enum=False, length=20),
        nullable=True,
    )
    parent_revenue_id: Mapped[Optional[int]] = mapped_column(
        Integer, ForeignKey("revenues.id", ondelete="SET NULL"), nullable=True
    )

    unit: Mapped[Optional["Unit"]] = relationship("Unit")


class Royalty(Base, TimestampMixin):
    """Periodic fee owed by a unit to its franchisor."""

    __tablename__ = "royalties"

    id: Mapped[int] = mapped_column(primary_key=True)
    royalty_number: Mapped[str] = mapped_column(String(20), unique=True, nullable=False)
    franchise_id: Mapped[int] = mapped_column(
        Integer, ForeignKey("franchises.id", ondelete="CASCADE"), nullable=False, index=True
    )
    unit_id: Mapped[Optional[int]] = mapped_column(
        Integer, ForeignKey("units.id", ondelete="SET NULL"), nullable=True, index=True
    )
    franchisee_id: Mapped[Optional[int]] = mapped_column(
        Integer, ForeignKey("users.id", ondelete="SET NULL"), nullable=True
    )
    type: Mapped[RoyaltyType] = mapped_column(
        SQLEnum(RoyaltyType, values_callable=enum_values, native_enum=False, length=20),
        default=RoyaltyType.ROYALTY,
        nullable=False,
    )
    period_year: Mapped[int] = mapped_column(Integer, nullable=False)
    period_month: Mapped[int] = mapped_column(Integer, nullable=False)
    period_start_date: Mapped[date] = mapped_column(Date, nullable=False, index=True)
    period_end_date: Mapped[date] = mapped_column(Date, nullable=False)
    gross_revenue: Mapped[Decimal] = mapped_column(Numeric(14, 2), default=Decimal("0"), nullable=False)
    royalty_percentage: Mapped[Decimal] = mapped_column(Numeric(5, 2), default=Decimal("0"), nullable=False)
    royalty_amount: Mapped[Decimal] = mapped_column(Numeric(12, 2), default=Decimal("0"), nullable=False)
    marketing_fee_percentage: Mapped[Decimal] = mapped_column(Numeric(5, 2), default=Decimal("0"), nullable=False)
    marketing_fee_amount: Mapped[Decimal] = mapped_column(Numeric(12, 2), default=Decimal("0"), nullable=False)
    technology_fee_amount: Mapped[Decimal] = mapped_column(Numeric(12, 2), default=Decimal("0"), nullable=False)
    other_fees: Mapped[Decimal] = mapped_column(Numeric(12, 2), default=Decimal("0"), nullable=False)
    adjustments: Mapped[Decimal] = mapped_column(Numeric(12, 2), default=Decimal("0"), nullable=False)
    adjustment_notes: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    total_amount: Mapped[Decimal] = mapped_column(Numeric(12, 2), default=Decimal("0"), nullable=False)
    due_date: Mapped[date] = mapped_column(Date, nullable=False)
    paid_date: Mapped[Optional[date]] = mapped_column(Date, nullable=True)
    status: Mapped[RoyaltyStatus] = mapped_column(
        SQLEnum(RoyaltyStatus, values_callable=enum_values, native_enum=False, length=20),
        default=RoyaltyStatus.PENDING,
        nullable=False,
        index=True,
    )
    payment_method: Mapped[Optional[PaymentMethod]] = mapped_column(
        SQLEnum(PaymentMethod, values_callable=enum_values, native_enum=False, length=20),
        nullable=True,
    )
    payment_reference: Mapped[Optional[str]] = mapped_column(String(100), nullable=True)
    late_fee: Mapped[Decimal] = mapped_column(Numeric(12, 2), default=Decimal("0"), nullable=False)
    attachments: Mapped[Optional[list]] = mapped_column(JSON, nullable=True)
    notes: Mapped[Optional[str]] = mapped_column(Text, nullable=True)

    unit: Mapped[Optional["Unit"]] = relationship("Unit")
    franchise: Mapped["Franchise"] = relationship("Franchise")

    @property
    def is_overdue(self) -> bool:
        return self.status in (RoyaltyStatus.PENDING, RoyaltyStatus.OVERDUE) and self.due_date < date.today()
