"""Transaction, revenue and royalty schemas."""

from __future__ import annotations

from datetime import date, datetime
from decimal import Decimal
from typing import List, Optional

from pydantic import BaseModel, EmailStr, Field, model_validator

from franchisehub.core.periods import RecurrenceType
from franchisehub.models.finance import (
    PaymentMethod, PaymentStatus, RevenueCategory, RevenueStatus, RevenueType, RoyaltyStatus,
    RoyaltyType, TransactionCategory, TransactionStatus, TransactionType,
)

Money = Decimal


# ==================== TRANSACTIONS ====================

class TransactionBase(BaseModel):
    """Base transaction schema."""

    type: TransactionType
    category: TransactionCategory = TransactionCategory.OTHER
    amount: Money = Field(..., gt=0)
    currency: str = Field(default="SAR", min_length=3, max_length=3)
    description: Optional[str] = None
    transaction_date: date
    payment_method: Optional[PaymentMethod] = None
    reference_number: Optional[str] = Field(default=None, max_length=100)
    vendor_customer: Optional[str] = Field(default=None, max_length=255)
    notes: Optional[str] = None
    is_recurring: bool = False
    recurrence_type: Optional[RecurrenceType] = None
    recurrence_interval: int = Field(default=1, ge=1, le=365)
    recurrence_end_date: Optional[date] = None


class TransactionCreate(TransactionBase):
    unit_id: Optional[int] = None
    franchise_id: Optional[int] = None
    status: TransactionStatus = TransactionStatus.PENDING

    @model_validator(mode="after")
    def recurrence_needs_type(self) -> "TransactionCreate":
        if self.is_recurring and self.recurrence_type is None:
            raise ValueError("recurrence_type is required for recurring transactions")
        return self


class TransactionUpdate(BaseModel):
    type: Optional[TransactionType] = None
    category: Optional[TransactionCategory] = None
    amount: Optional[Money] = Field(default=None, gt=0)
    description: Optional[str] = None
    transaction_date: Optional[date] = None
    payment_method: Optional[PaymentMethod] = None
    reference_number: Optional[str] = None
    vendor_customer: Optional[str] = None
    notes: Optional[str] = None
    unit_id: Optional[int] = None


class TransactionResponse(TransactionBase):
    id: int
    transaction_number: str
    amount: Money
    status: TransactionStatus
    franchise_id: Optional[int] = None
    unit_id: Optional[int] = None
    user_id: Optional[int] = None
    attachments: Optional[list] = None
    parent_transaction_id: Optional[int] = None
    created_at: datetime
    updated_at: datetime

    model_config = {"from_attributes": True}


class RefundRequest(BaseModel):
    amount: Optional[Money] = Field(default=None, gt=0)
    reason: str = Field(..., min_length=1, max_length=2000)


# ==================== REVENUES ====================

class LineItem(BaseModel):
    product_name: str = Field(..., min_length=1, max_length=255)
    quantity: int = Field(..., ge=1)
    unit_price: Money = Field(..., ge=0)


class RevenueBase(BaseModel):
    """Base revenue schema."""

    type: RevenueType = RevenueType.SALES
    category: RevenueCategory = RevenueCategory.PRODUCT_SALES
    amount: Money = Field(..., gt=0)
    currency: str = Field(default="SAR", min_length=3, max_length=3)
    description: Optional[str] = None
    revenue_date: date
    source: Optional[str] = Field(default=None, max_length=100)
    customer_name: Optional[str] = Field(default=None, max_length=255)
    customer_email: Optional[EmailStr] = None
    payment_method: Optional[PaymentMethod] = None
    payment_status: PaymentStatus = PaymentStatus.COMPLETED
    discount_amount: Money = Field(default=Decimal("0"), ge=0)
    tax_amount: Money = Field(default=Decimal("0"), ge=0)
    notes: Optional[str] = None


class RevenueCreate(RevenueBase):
    unit_id: Optional[int] = None
    franchise_id: Optional[int] = None
    status: RevenueStatus = RevenueStatus.VERIFIED
    line_items: Optional[List[LineItem]] = None

    @model_validator(mode="after")
    def discount_within_amount(self) -> "RevenueCreate":
        if self.discount_amount > self.amount:
            raise ValueError("discount_amount cannot exceed amount")
        return self


class RevenueUpdate(BaseModel):
    type: Optional[RevenueType] = None
    category: Optional[RevenueCategory] = None
    amount: Optional[Money] = Field(default=None, gt=0)
    description: Optional[str] = None
    revenue_date: Optional[date] = None
    source: Optional[str] = None
    customer_name: Optional[str] = None
    customer_email: Optional[EmailStr] = None
    payment_method: Optional[PaymentMethod] = None
    payment_status: Optional[PaymentStatus] = None
    discount_amount: Optional[Money] = Field(default=None, ge=0)
    tax_amount: Optional[Money] = Field(default=None, ge=0)
    notes: Optional[str] = None
    unit_id: Optional[int] = None


class RevenueResponse(RevenueBase):
    id: int
    revenue_number: str
    amount: Money
    customer_email: Optional[str] = None
    discount_amount: Money
    tax_amount: Money
    net_amount: Money
    period_year: int
    period_month: int
    status: RevenueStatus
    franchise_id: Optional[int] = None
    unit_id: Optional[int] = None
    user_id: Optional[int] = None
    line_items: Optional[list] = None
    attachments: Optional[list] = None
    verified_by: Optional[int] = None
    verified_at: Optional[datetime] = None
    parent_revenue_id: Optional[int] = None
    created_at: datetime
    updated_at: datetime

    model_config = {"from_attributes": True}


class RevenueDispute(BaseModel):
    reason: str = Field(..., min_length=1, max_length=2000)


class LineItemsAdd(BaseModel):
    line_items: List[LineItem] = Field(..., min_length=1)
    recalculate_amount: bool = False


# ==================== ROYALTIES ====================

class RoyaltyCreate(BaseModel):
    """Royalty creation; amounts are derived from gross revenue and percentages."""

    unit_id: Optional[int] = None
    franchise_id: Optional[int] = None
    type: RoyaltyType = RoyaltyType.ROYALTY
    period_year: int = Field(..., ge=2000, le=2100)
    period_month: int = Field(..., ge=1, le=12)
    gross_revenue: Money = Field(..., ge=0)
    royalty_percentage: Optional[Money] = Field(default=None, ge=0, le=100)
    marketing_fee_percentage: Optional[Money] = Field(default=None, ge=0, le=100)
    technology_fee_amount: Optional[Money] = Field(default=None, ge=0)
    other_fees: Money = Field(default=Decimal("0"), ge=0)
    due_date: Optional[date] = None
    status: RoyaltyStatus = RoyaltyStatus.PENDING
    notes: Optional[str] = None


class RoyaltyUpdate(BaseModel):
    gross_revenue: Optional[Money] = Field(default=None, ge=0)
    royalty_percentage: Optional[Money] = Field(default=None, ge=0, le=100)
    marketing_fee_percentage: Optional[Money] = Field(default=None, ge=0, le=100)
    technology_fee_amount: Optional[Money] = Field(default=None, ge=0)
    other_fees: Optional[Money] = Field(default=None, ge=0)
    due_date: Optional[date] = None
    status: Optional[RoyaltyStatus] = None
    notes: Optional[str] = None


class RoyaltyResponse(BaseModel):
    id: int
    royalty_number: str
    franchise_id: int
    unit_id: Optional[int] = None
    franchisee_id: Optional[int] = None
    type: RoyaltyType
    period_year: int
    period_month: int
    period_start_date: date
    period_end_date: date
    gross_revenue: Money
    royalty_percentage: Money
    royalty_amount: Money
    marketing_fee_percentage: Money
    marketing_fee_amount: Money
    technology_fee_amount: Money
    other_fees: Money
    adjustments: Money
    adjustment_notes: Optional[str] = None
    late_fee: Money
    total_amount: Money
    due_date: date
    paid_date: Optional[date] = None
    status: RoyaltyStatus
    payment_method: Optional[PaymentMethod] = None
    payment_reference: Optional[str] = None
    attachments: Optional[list] = None
    notes: Optional[str] = None
    created_at: datetime

    model_config = {"from_attributes": True}


class MarkPaid(BaseModel):
    payment_method: PaymentMethod
    payment_reference: Optional[str] = Field(default=None, max_length=100)
    paid_date: Optional[date] = None


class RoyaltyAdjustment(BaseModel):
    amount: Money
    reason: str = Field(..., min_length=1, max_length=2000)


class GenerateMonthly(BaseModel):
    year: int = Field(..., ge=2000, le=2100)
    month: int = Field(..., ge=1, le=12)
    franchise_id: Optional[int] = None


class BulkMarkPaid(BaseModel):
    royalty_ids: List[int] = Field(..., min_length=1, max_length=500)
    payment_method: PaymentMethod
    payment_reference: Optional[str] = None
