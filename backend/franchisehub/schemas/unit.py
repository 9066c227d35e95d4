"""Unit, inventory, staff and review schemas."""

from __future__ import annotations

from datetime import date, datetime, time
from decimal import Decimal
from typing import Optional

from pydantic import BaseModel, EmailStr, Field, model_validator

from franchisehub.models.unit import (
    EmploymentType, ReviewSource, ReviewStatus, Sentiment, StaffStatus, UnitStatus, UnitType,
)


class UnitBase(BaseModel):
    """Base unit schema."""

    unit_name: str = Field(..., min_length=1, max_length=255)
    unit_type: UnitType = UnitType.STORE
    address: Optional[str] = None
    city: Optional[str] = Field(default=None, max_length=100)
    state_province: Optional[str] = Field(default=None, max_length=100)
    postal_code: Optional[str] = Field(default=None, max_length=20)
    nationality: Optional[str] = Field(default=None, max_length=100)
    phone: Optional[str] = Field(default=None, max_length=50)
    email: Optional[EmailStr] = None
    size_sqft: Optional[Decimal] = Field(default=None, ge=0)
    monthly_rent: Optional[Decimal] = Field(default=None, ge=0)
    monthly_revenue: Optional[Decimal] = Field(default=None, ge=0)
    monthly_expenses: Optional[Decimal] = Field(default=None, ge=0)
    opening_date: Optional[date] = None
    operating_hours: Optional[dict] = None


class UnitCreate(UnitBase):
    """Unit creation schema. ``unit_code`` is generated when omitted."""

    unit_code: Optional[str] = Field(default=None, max_length=50)
    franchise_id: Optional[int] = None
    franchisee_id: Optional[int] = None
    status: UnitStatus = UnitStatus.PLANNING


class UnitUpdate(BaseModel):
    """Unit update schema."""

    unit_name: Optional[str] = Field(default=None, min_length=1, max_length=255)
    unit_type: Optional[UnitType] = None
    address: Optional[str] = None
    city: Optional[str] = None
    state_province: Optional[str] = None
    postal_code: Optional[str] = None
    nationality: Optional[str] = None
    phone: Optional[str] = None
    email: Optional[EmailStr] = None
    size_sqft: Optional[Decimal] = Field(default=None, ge=0)
    monthly_rent: Optional[Decimal] = Field(default=None, ge=0)
    monthly_revenue: Optional[Decimal] = Field(default=None, ge=0)
    monthly_expenses: Optional[Decimal] = Field(default=None, ge=0)
    opening_date: Optional[date] = None
    operating_hours: Optional[dict] = None
    franchisee_id: Optional[int] = None
    status: Optional[UnitStatus] = None


class UnitResponse(UnitBase):
    """Unit response schema."""

    id: int
    franchise_id: int
    franchisee_id: Optional[int] = None
    unit_code: str
    email: Optional[str] = None
    employee_count: int
    status: UnitStatus
    created_at: datetime
    updated_at: datetime

    model_config = {"from_attributes": True}


class InventoryUpsert(BaseModel):
    quantity: int = Field(..., ge=0)
    reorder_level: int = Field(default=0, ge=0)


class InventoryResponse(BaseModel):
    id: int
    unit_id: int
    product_id: int
    product_name: Optional[str] = None
    sku: Optional[str] = None
    quantity: int
    reorder_level: int
    needs_reorder: bool
    updated_at: datetime


class StaffBase(BaseModel):
    name: str = Field(..., min_length=1, max_length=255)
    email: Optional[EmailStr] = None
    phone: Optional[str] = Field(default=None, max_length=50)
    job_title: Optional[str] = Field(default=None, max_length=100)
    department: Optional[str] = Field(default=None, max_length=100)
    salary: Optional[Decimal] = Field(default=None, ge=0)
    hire_date: Optional[date] = None
    shift_start: Optional[time] = None
    shift_end: Optional[time] = None
    status: StaffStatus = StaffStatus.WORKING
    employment_type: EmploymentType = EmploymentType.FULL_TIME


class StaffCreate(StaffBase):

    @model_validator(mode="after")
    def check_shift(self) -> "StaffCreate":
        if self.shift_start and self.shift_end and self.shift_end <= self.shift_start:
            raise ValueError("shift_end must be after shift_start")
        return self


class StaffUpdate(BaseModel):
    name: Optional[str] = Field(default=None, min_length=1, max_length=255)
    email: Optional[EmailStr] = None
    phone: Optional[str] = None
    job_title: Optional[str] = None
    department: Optional[str] = None
    salary: Optional[Decimal] = Field(default=None, ge=0)
    hire_date: Optional[date] = None
    shift_start: Optional[time] = None
    shift_end: Optional[time] = None
    status: Optional[StaffStatus] = None
    employment_type: Optional[EmploymentType] = None


class StaffResponse(StaffBase):
    id: int
    unit_id: int
    email: Optional[str] = None
    created_at: datetime

    model_config = {"from_attributes": True}


class ReviewBase(BaseModel):
    customer_name: str = Field(..., min_length=1, max_length=255)
    customer_email: Optional[EmailStr] = None
    rating: int = Field(..., ge=1, le=5)
    comment: Optional[str] = None
    review_source: ReviewSource = ReviewSource.IN_PERSON
    status: ReviewStatus = ReviewStatus.DRAFT
    review_date: Optional[date] = None
    verified_purchase: bool = False


class ReviewCreate(ReviewBase):
    pass


class ReviewUpdate(BaseModel):
    customer_name: Optional[str] = Field(default=None, min_length=1, max_length=255)
    customer_email: Optional[EmailStr] = None
    rating: Optional[int] = Field(default=None, ge=1, le=5)
    comment: Optional[str] = None
    review_source: Optional[ReviewSource] = None
    status: Optional[ReviewStatus] = None
    review_date: Optional[date] = None
    verified_purchase: Optional[bool] = None


class ReviewNotes(BaseModel):
    internal_notes: str = Field(..., max_length=5000)


class ReviewResponse(ReviewBase):
    id: int
    unit_id: int
    franchisee_id: Optional[int] = None
    customer_email: Optional[str] = None
    sentiment: Sentiment
    internal_notes: Optional[str] = None
    review_date: date
    created_at: datetime

    model_config = {"from_attributes": True}



class FranchiseeInfo(BaseModel):
    """Account details of a franchisee created together with their unit."""

    name: str = Field(..., min_length=1, max_length=255)
    email: EmailStr
    phone: Optional[str] = Field(default=None, max_length=50)
    nationality: Optional[str] = Field(default=None, max_length=100)
    state: Optional[str] = Field(default=None, max_length=100)
    city: Optional[str] = Field(default=None, max_length=100)
    address: Optional[str] = None


class UnitDetails(UnitBase):
    status: UnitStatus = UnitStatus.PLANNING


class FranchiseeWithUnitCreate(BaseModel):
    franchisee: FranchiseeInfo
    unit: UnitDetails
    franchise_id: Optional[int] = None
