"""Schemas for the financial reporting and performance endpoints."""

from __future__ import annotations

import datetime as dt
from decimal import Decimal
from typing import Annotated, Optional

from fastapi import Depends, Query
from pydantic import BaseModel, Field

from franchisehub.core.periods import PeriodType
from franchisehub.models.finance import TransactionCategory


class ReportFilters(BaseModel):
    """Period selector used by every financial report."""

    period: PeriodType
    year: int = Field(..., ge=2020, le=2030)
    month: int = Field(..., ge=1, le=12)
    unit_id: Optional[int] = None


def get_report_filters(
    period: PeriodType = Query(...),
    year: Optional[int] = Query(None, ge=2020, le=2030),
    month: Optional[int] = Query(None, ge=1, le=12),
    unit_id: Optional[int] = Query(None),
) -> ReportFilters:
    today = dt.date.today()
    return ReportFilters(
        period=period,
        year=year or today.year,
        month=month or today.month,
        unit_id=unit_id,
    )


ReportParams = Annotated[ReportFilters, Depends(get_report_filters)]


class SaleCreate(BaseModel):
    product: str = Field(..., min_length=1, max_length=255)
    amount: Decimal = Field(..., gt=0)
    date: dt.date
    unit_id: Optional[int] = None
    description: Optional[str] = None


class SaleUpdate(BaseModel):
    product: Optional[str] = Field(default=None, min_length=1, max_length=255)
    amount: Optional[Decimal] = Field(default=None, gt=0)
    date: Optional[dt.date] = None
    description: Optional[str] = None


class ExpenseCreate(BaseModel):
    category: TransactionCategory
    amount: Decimal = Field(..., gt=0)
    date: dt.date
    description: Optional[str] = None
    unit_id: Optional[int] = None


class ExpenseUpdate(BaseModel):
    category: Optional[TransactionCategory] = None
    amount: Optional[Decimal] = Field(default=None, gt=0)
    date: Optional[dt.date] = None
    description: Optional[str] = None


class UnitPerformanceResponse(BaseModel):
    id: int
    franchise_id: int
    unit_id: int
    period_type: PeriodType
    period_date: dt.date
    revenue: Decimal
    expenses: Decimal
    royalties: Decimal
    profit: Decimal
    total_transactions: int
    customer_rating: Optional[Decimal] = None
    customer_reviews_count: int
    growth_rate: Optional[Decimal] = None

    model_config = {"from_attributes": True}


class SnapshotRequest(BaseModel):
    period_type: PeriodType = PeriodType.MONTHLY
    period_date: Optional[dt.date] = None
