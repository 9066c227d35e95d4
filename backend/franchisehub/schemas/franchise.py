"""Franchise, document and product schemas."""

from __future__ import annotations

from datetime import date, datetime
from decimal import Decimal
from typing import List, Literal, Optional

from pydantic import AliasChoices, BaseModel, EmailStr, Field

from franchisehub.models.franchise import (
    BusinessType, DocumentStatus, FranchiseStatus, ProductStatus,
)


class FranchiseBase(BaseModel):
    """Base franchise schema."""

    business_name: str = Field(..., min_length=1, max_length=255)
    brand_name: Optional[str] = Field(default=None, max_length=255)
    industry: Optional[str] = Field(default=None, max_length=100)
    description: Optional[str] = None
    website: Optional[str] = Field(default=None, max_length=255)
    tax_id: Optional[str] = Field(default=None, max_length=100)
    business_type: BusinessType = BusinessType.CORPORATION
    established_date: Optional[date] = None
    headquarters_country: Optional[str] = None
    headquarters_city: Optional[str] = None
    headquarters_address: Optional[str] = None
    contact_phone: Optional[str] = Field(default=None, max_length=50)
    contact_email: Optional[EmailStr] = None
    franchise_fee: Optional[Decimal] = Field(default=None, ge=0)
    royalty_percentage: Optional[Decimal] = Field(default=None, ge=0, le=100)
    marketing_fee_percentage: Optional[Decimal] = Field(default=None, ge=0, le=100)
    plan: Optional[str] = None


class FranchiseCreate(FranchiseBase):
    """Admin franchise creation schema."""

    franchisor_id: int
    business_registration_number: Optional[str] = Field(default=None, max_length=100)
    status: FranchiseStatus = FranchiseStatus.ACTIVE


class FranchiseRegister(FranchiseBase):
    """Franchise registration by its own franchisor."""

    business_registration_number: Optional[str] = Field(default=None, max_length=100)


class FranchiseUpdate(BaseModel):
    """Franchise update schema."""

    business_name: Optional[str] = Field(default=None, min_length=1, max_length=255)
    brand_name: Optional[str] = None
    industry: Optional[str] = None
    description: Optional[str] = None
    website: Optional[str] = None
    tax_id: Optional[str] = None
    business_type: Optional[BusinessType] = None
    established_date: Optional[date] = None
    headquarters_country: Optional[str] = None
    headquarters_city: Optional[str] = None
    headquarters_address: Optional[str] = None
    contact_phone: Optional[str] = None
    contact_email: Optional[EmailStr] = None
    franchise_fee: Optional[Decimal] = Field(default=None, ge=0)
    royalty_percentage: Optional[Decimal] = Field(default=None, ge=0, le=100)
    marketing_fee_percentage: Optional[Decimal] = Field(default=None, ge=0, le=100)
    plan: Optional[str] = None
    status: Optional[FranchiseStatus] = None


class FranchiseResponse(FranchiseBase):
    """Franchise response schema."""

    id: int
    franchisor_id: int
    business_registration_number: str
    logo: Optional[str] = None
    contact_email: Optional[str] = None
    total_units: int
    active_units: int
    status: FranchiseStatus
    is_marketplace_listed: bool
    created_at: datetime
    updated_at: datetime

    model_config = {"from_attributes": True}


class IdList(BaseModel):
    """Body of bulk endpoints; accepts `ids` or a resource-specific key."""

    ids: List[int] = Field(
        ...,
        min_length=1,
        max_length=500,
        validation_alias=AliasChoices(
            "ids", "franchise_ids", "unit_ids", "lead_ids", "task_ids", "request_ids",
            "transaction_ids", "royalty_ids", "revenue_ids",
        ),
    )


class DocumentUpdate(BaseModel):
    name: Optional[str] = Field(default=None, min_length=1, max_length=255)
    description: Optional[str] = None
    type: Optional[str] = Field(default=None, min_length=1, max_length=100)
    expiry_date: Optional[date] = None
    is_confidential: Optional[bool] = None


class DocumentReject(BaseModel):
    reason: str = Field(..., min_length=1, max_length=1000)


class DocumentResponse(BaseModel):
    id: int
    franchise_id: int
    unit_id: Optional[int] = None
    name: str
    description: Optional[str] = None
    type: str
    file_path: str
    file_name: str
    file_extension: Optional[str] = None
    file_size: int
    mime_type: Optional[str] = None
    expiry_date: Optional[date] = None
    is_confidential: bool
    status: DocumentStatus
    rejection_reason: Optional[str] = None
    reviewed_by: Optional[int] = None
    reviewed_at: Optional[datetime] = None
    created_at: datetime

    model_config = {"from_attributes": True}


class ProductBase(BaseModel):
    """Base product schema."""

    name: str = Field(..., min_length=1, max_length=255)
    description: Optional[str] = None
    category: Optional[str] = Field(default=None, max_length=100)
    unit_price: Decimal = Field(..., ge=0)
    cost_price: Optional[Decimal] = Field(default=None, ge=0)
    stock: int = Field(default=0, ge=0)
    minimum_stock: int = Field(default=0, ge=0)
    sku: Optional[str] = Field(default=None, max_length=100)
    status: ProductStatus = ProductStatus.ACTIVE


class ProductCreate(ProductBase):
    pass


class ProductUpdate(BaseModel):
    name: Optional[str] = Field(default=None, min_length=1, max_length=255)
    description: Optional[str] = None
    category: Optional[str] = None
    unit_price: Optional[Decimal] = Field(default=None, ge=0)
    cost_price: Optional[Decimal] = Field(default=None, ge=0)
    minimum_stock: Optional[int] = Field(default=None, ge=0)
    sku: Optional[str] = None
    status: Optional[ProductStatus] = None


class StockUpdate(BaseModel):
    stock: int = Field(..., ge=0)
    operation: Literal["set", "add", "subtract"] = "set"


class ProductResponse(ProductBase):
    id: int
    franchise_id: int
    image: Optional[str] = None
    is_low_stock: bool
    created_at: datetime

    model_config = {"from_attributes": True}
